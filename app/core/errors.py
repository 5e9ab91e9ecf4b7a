"""
Error handling for the Catalog Import Service

Pipeline failures that stop a stage are raised as typed ErrorResponse
subclasses so the API layer can render them without a stack trace.
Row-level problems never become exceptions; they are ValidationIssue
and FailedRow records.
"""

import traceback
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.core.config import config
from app.core.logger import logger


class ErrorResponse(Exception):
    """Custom exception for application errors"""

    code = "ERROR"

    def __init__(self, message: str, status_code: int = 400, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ErrorResponseModel(BaseModel):
    """Pydantic model for error responses"""
    error: str
    code: Optional[str] = None
    details: Optional[dict] = None


# File-level errors: fatal for the upload, operator must re-upload

class FileTooLarge(ErrorResponse):
    code = "FILE_TOO_LARGE"

    def __init__(self, file_size: int, max_size: int):
        super().__init__(
            f"File size ({file_size / 1024 / 1024:.1f}MB) exceeds maximum allowed size "
            f"({max_size / 1024 / 1024:.0f}MB)",
            status_code=413,
            details={"file_size": file_size, "max_size": max_size},
        )


class MalformedFile(ErrorResponse):
    code = "MALFORMED_FILE"

    def __init__(self, reason: str, **details):
        super().__init__(f"Failed to parse file: {reason}", status_code=400, details=details)


class EmptyFile(ErrorResponse):
    code = "EMPTY_FILE"

    def __init__(self, filename: str = ""):
        super().__init__(
            "File is empty or contains no readable data",
            status_code=400,
            details={"filename": filename},
        )


class NoHeaders(ErrorResponse):
    code = "NO_HEADERS"

    def __init__(self, filename: str = ""):
        super().__init__("No headers found in file", status_code=400, details={"filename": filename})


# Mapping-level errors: block forward navigation only

class MissingRequiredField(ErrorResponse):
    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, fields: list):
        super().__init__(
            f"Required fields are not mapped: {', '.join(fields)}",
            status_code=422,
            details={"missing_required": list(fields)},
        )


class DuplicateFieldTarget(ErrorResponse):
    code = "DUPLICATE_FIELD_TARGET"

    def __init__(self, duplicates: dict):
        columns = sorted({column for cols in duplicates.values() for column in cols})
        super().__init__(
            f"Duplicate mappings found for columns: {', '.join(columns)}",
            status_code=422,
            details={"duplicate_targets": {k: list(v) for k, v in duplicates.items()}},
        )


# Execution-level errors

class UnresolvedErrors(ErrorResponse):
    code = "UNRESOLVED_ERRORS"

    def __init__(self, error_count: int):
        super().__init__(
            f"{error_count} validation errors must be fixed or skipped before importing",
            status_code=409,
            details={"error_count": error_count},
        )


class ImportAlreadyStarted(ErrorResponse):
    code = "IMPORT_ALREADY_STARTED"

    def __init__(self, phase: str):
        super().__init__(
            f"Import has already started (phase: {phase})",
            status_code=409,
            details={"phase": phase},
        )


async def error_response_handler(request: Request, exc: ErrorResponse):
    """Handler for custom ErrorResponse exceptions"""
    metadata = {
        "event": "error_response",
        "code": exc.code,
        "status_code": exc.status_code,
        "url": str(request.url),
        "method": request.method,
        **exc.details,
    }

    if config.environment == "development":
        metadata["traceback"] = traceback.format_exc()

    logger.error(f"Error: {exc.message}", metadata=metadata)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "details": exc.details}
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handler for FastAPI HTTPException"""
    metadata = {
        "event": "http_exception",
        "status_code": exc.status_code,
        "url": str(request.url),
        "method": request.method,
    }

    logger.error(f"HTTPException: {exc.detail}", metadata=metadata)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )
