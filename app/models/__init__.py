"""
Models module initialization
"""

from .dataset import Dataset, IngestionResult, Preview, SourceFormat
from .execution import (
    DownloadUrls,
    FailedRow,
    ImportOptions,
    ImportPhase,
    ImportProgress,
    ImportResult,
    ImportStatus,
    ImportSummary,
    WriteAction,
    WriteResult,
)
from .field_catalog import FIELD_CATALOG, FieldCatalogEntry, FieldConstraints, FieldType
from .mapping import FieldDetectionResult, FieldMapping, MappingError, MappingStatus
from .validation import (
    AutoFixSuggestion,
    BulkAutoFix,
    IssueCode,
    IssueType,
    ProductRow,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
)

__all__ = [
    "Dataset",
    "IngestionResult",
    "Preview",
    "SourceFormat",
    "DownloadUrls",
    "FailedRow",
    "ImportOptions",
    "ImportPhase",
    "ImportProgress",
    "ImportResult",
    "ImportStatus",
    "ImportSummary",
    "WriteAction",
    "WriteResult",
    "FIELD_CATALOG",
    "FieldCatalogEntry",
    "FieldConstraints",
    "FieldType",
    "FieldDetectionResult",
    "FieldMapping",
    "MappingError",
    "MappingStatus",
    "AutoFixSuggestion",
    "BulkAutoFix",
    "IssueCode",
    "IssueType",
    "ProductRow",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSummary",
]
