"""
Validation Models

Issues, typed rows and auto-fix suggestions produced by the validation engine.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IssueType(str, Enum):
    """Validation issue severity"""
    ERROR = "error"  # Excludes the row from import
    WARNING = "warning"  # Row is still imported


class IssueCode(str, Enum):
    """Machine-readable validation issue codes"""
    REQUIRED_FIELD_MISSING = "REQUIRED_FIELD_MISSING"
    INVALID_NUMBER = "INVALID_NUMBER"
    INVALID_INTEGER = "INVALID_INTEGER"
    INVALID_BOOLEAN = "INVALID_BOOLEAN"
    INVALID_DATE = "INVALID_DATE"
    INVALID_ENUM = "INVALID_ENUM"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    VALUE_TOO_LOW = "VALUE_TOO_LOW"
    VALUE_TOO_HIGH = "VALUE_TOO_HIGH"
    TOO_SHORT = "TOO_SHORT"
    TOO_LONG = "TOO_LONG"
    DUPLICATE_VALUE = "DUPLICATE_VALUE"
    SUSPICIOUS_PRICE = "SUSPICIOUS_PRICE"
    RECOMMENDED_FIELD_MISSING = "RECOMMENDED_FIELD_MISSING"
    WHITESPACE = "WHITESPACE"
    ENUM_CASE = "ENUM_CASE"
    LIST_ITEMS = "LIST_ITEMS"


class ValidationIssue(BaseModel):
    """Problem found in one cell"""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    row: int = Field(..., description="0-based index into the dataset rows")
    column: str = Field(..., description="Header of the offending column")
    column_index: int
    field: str = Field(..., description="Catalog key the column is mapped to")
    type: IssueType
    code: IssueCode
    message: str
    value: str = Field(default="", description="Offending raw value")
    suggestion: Optional[str] = Field(None, description="Human-readable hint")
    auto_fixable: bool = False


class ProductRow(BaseModel):
    """Typed, coerced view of a row without error-level issues"""
    row_index: int
    data: Dict[str, Any]
    issues: List[ValidationIssue] = Field(default_factory=list)


class ValidationSummary(BaseModel):
    total_rows: int
    valid_rows: int
    error_count: int
    warning_count: int
    error_rows: List[int] = Field(default_factory=list)
    warning_rows: List[int] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Full validation outcome for a dataset and mapping pair"""
    is_valid: bool
    valid_rows: List[ProductRow] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    summary: ValidationSummary

    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.type == IssueType.ERROR]

    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.type == IssueType.WARNING]


class AutoFixSuggestion(BaseModel):
    """Concrete replacement value for one auto-fixable cell"""
    suggestion_id: str
    row: int
    column: str
    column_index: int
    code: str
    description: str
    before: str
    after: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class BulkAutoFix(BaseModel):
    """All fix suggestions for the current issue set"""
    suggestions: List[AutoFixSuggestion] = Field(default_factory=list)
    total_affected_rows: int = 0
    estimated_time: float = Field(default=0.0, description="Seconds to apply and re-validate")
