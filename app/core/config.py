"""
Core configuration and settings for the Catalog Import Service
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields to be ignored
    )

    # Service information
    service_name: str = Field(default="catalog-import-service")
    service_version: str = Field(default="1.0.0")
    api_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    # Server configuration
    port: int = Field(default=8010)
    host: str = Field(default="0.0.0.0")  # nosec B104
    api_prefix: str = Field(default="/api")

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_to_file: bool = Field(default=False)
    log_to_console: bool = Field(default=True)
    log_file_path: str = Field(default="logs/catalog-import-service.log")

    # Security configuration
    correlation_id_header: str = Field(default="X-Correlation-ID")

    # Ingestion limits
    max_file_size: int = Field(default=10 * 1024 * 1024, description="Upload ceiling in bytes")
    preview_rows: int = Field(default=5)

    # Execution settings
    default_chunk_size: int = Field(default=100)
    min_chunk_size: int = Field(default=10)
    max_chunk_size: int = Field(default=1000)
    row_timeout_seconds: float = Field(default=10.0)
    abort_when_unreachable: bool = Field(
        default=False,
        description="Stop the run when the write service is unreachable before any row succeeded",
    )

    # Dapr configuration
    dapr_http_port: int = Field(default=3500)
    write_service_app_id: str = Field(default="product-service")
    write_service_method: str = Field(default="api/products/import-row")
    backup_method: str = Field(default="api/admin/products/backup")
    pubsub_name: str = Field(default="product-pubsub")
    import_completed_topic: str = Field(default="product.bulk.import.completed")


# Global config instance
config = Config()
