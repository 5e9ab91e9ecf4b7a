"""
Import Execution Models

Options, progress tracking and results of an import run.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.core.config import config


class ImportPhase(str, Enum):
    """Execution engine state"""
    IDLE = "idle"
    PREPARING = "preparing"
    IMPORTING = "importing"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportPhase.COMPLETED, ImportPhase.CANCELLED, ImportPhase.ERROR)

    @property
    def is_running(self) -> bool:
        return self in (
            ImportPhase.PREPARING,
            ImportPhase.IMPORTING,
            ImportPhase.PAUSED,
            ImportPhase.FINALIZING,
        )


class ImportStatus(str, Enum):
    """Final status of an import run"""
    SUCCESS = "success"
    PARTIAL = "partial"  # Some rows succeeded, some failed
    FAILED = "failed"
    CANCELLED = "cancelled"


class ImportOptions(BaseModel):
    """Operator-chosen import configuration"""
    model_config = ConfigDict(frozen=True)

    skip_error_rows: bool = Field(default=True, description="Import valid rows, leave error rows out")
    auto_fix_warnings: bool = Field(default=True, description="Apply warning fixes before importing")
    create_backup: bool = Field(default=True, description="Ask the catalog to back up before writing")
    update_existing: bool = Field(default=False, description="Update products whose SKU already exists")
    send_notification: bool = Field(default=True, description="Publish an event when the run ends")
    chunk_size: int = Field(
        default=config.default_chunk_size,
        ge=config.min_chunk_size,
        le=config.max_chunk_size,
    )
    dry_run: bool = Field(default=False, description="Walk the run without calling the write service")


class ImportProgress(BaseModel):
    """Live counters of a run, published to observers as copies"""
    phase: ImportPhase = ImportPhase.IDLE
    current_chunk: int = 0
    total_chunks: int = 0
    processed_rows: int = 0
    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    estimated_time_left: Optional[float] = Field(None, description="Seconds until completion")
    rows_per_second: float = 0.0
    start_time: Optional[datetime] = None

    @computed_field
    @property
    def percentage(self) -> float:
        """Calculate completion percentage"""
        if self.total_rows == 0:
            return 0.0
        return round((self.processed_rows / self.total_rows) * 100, 2)


class FailedRow(BaseModel):
    """Row that did not make it into the catalog"""
    row_index: int
    data: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    skipped: bool = Field(default=False, description="Excluded by validation, never submitted")


class DownloadUrls(BaseModel):
    error_report: Optional[str] = None
    full_report: Optional[str] = None
    validation_report: Optional[str] = None


class ImportSummary(BaseModel):
    new_products: int = 0
    updated_products: int = 0
    skipped_rows: int = 0
    total_processed: int = 0


class ImportResult(BaseModel):
    """Terminal record of an import run"""
    model_config = ConfigDict(frozen=True)

    import_id: str
    status: ImportStatus
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    warning_count: int = 0
    duration: float = Field(..., description="Wall-clock seconds from preparing to terminal phase")
    created_products: List[str] = Field(default_factory=list)
    updated_products: List[str] = Field(default_factory=list)
    failed_rows: List[FailedRow] = Field(default_factory=list)
    skipped_rows: List[FailedRow] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
    download_urls: DownloadUrls = Field(default_factory=DownloadUrls)
    error_message: Optional[str] = None
    notification_sent: bool = False
    dry_run: bool = False


class WriteAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class WriteResult(BaseModel):
    """Outcome of a single write-service call"""
    success: bool
    product_id: Optional[str] = None
    action: Optional[WriteAction] = None
    error_code: Optional[str] = None
    reason: Optional[str] = None
