"""
Services module initialization
"""

from .execution import ImportExecutor, partition_rows
from .field_mapping import FieldMappingEngine, normalize_header
from .ingestion import parse_upload
from .reports import ReportService, get_report_service
from .validation import ValidationEngine
from .wizard import ImportWizard, WizardStage

__all__ = [
    "ImportExecutor",
    "partition_rows",
    "FieldMappingEngine",
    "normalize_header",
    "parse_upload",
    "ReportService",
    "get_report_service",
    "ValidationEngine",
    "ImportWizard",
    "WizardStage",
]
