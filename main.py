"""
FastAPI Application - Catalog Import Service
Bulk product import pipeline: upload, mapping, validation and chunked execution
"""

# Load environment variables from .env file FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import config
from app.core.errors import error_response_handler, http_exception_handler, ErrorResponse
from app.core.logger import logger
from app.core.telemetry import instrument_app
from app.api import health, imports
from app.clients.product_write_client import get_product_write_client
from app.middleware import CorrelationIdMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(
        "Catalog Import Service started successfully",
        metadata={
            "event": "service_started",
            "service_name": config.service_name,
            "version": config.service_version,
            "environment": config.environment,
            "port": config.port,
        }
    )

    yield

    # Shutdown
    logger.info("Shutting down Catalog Import Service...", metadata={"event": "service_stopping"})
    await get_product_write_client().close()


async def request_validation_handler(request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "code": "REQUEST_VALIDATION", "details": jsonable_encoder(exc.errors())},
    )


# Create FastAPI application with lifespan management
app = FastAPI(
    title="Catalog Import Service",
    description="Bulk product import wizard: file ingestion, field mapping, validation and chunked execution",
    version=config.service_version,
    lifespan=lifespan,
)

# Instrument app with OpenTelemetry for automatic tracing
instrument_app(app)

# Configure error handlers
app.add_exception_handler(ErrorResponse, error_response_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

# Correlation IDs for every request
app.add_middleware(CorrelationIdMiddleware)

# Include API routers
app.include_router(health.router, prefix=config.api_prefix, tags=["health"])
app.include_router(imports.router, prefix=f"{config.api_prefix}/imports", tags=["imports"])


if __name__ == "__main__":
    import uvicorn

    logger.info(
        f"Starting {config.service_name} on port {config.port}",
        metadata={
            "service_name": config.service_name,
            "version": config.service_version,
            "environment": config.environment,
            "port": config.port,
        }
    )

    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.environment == "development",
    )
