"""
Field Mapping Models

Column to catalog-field assignments and the auto-detection report.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.field_catalog import FieldType


class FieldMapping(BaseModel):
    """Assignment of one file column to one catalog field, or skip"""
    model_config = ConfigDict(frozen=True)

    csv_column: str = Field(..., description="Header of the source column")
    column_index: int = Field(..., description="Position of the column in the file")
    ppm_field: str = Field(default="", description="Catalog field key, empty means skip")
    field_type: Optional[FieldType] = None
    is_required: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    confirmed: bool = Field(default=False, description="Set by the operator, kept on auto-apply")

    @property
    def is_skipped(self) -> bool:
        return not self.ppm_field


class FieldDetectionResult(BaseModel):
    """Auto-detection report for a header row"""
    suggested_mappings: List[FieldMapping]
    confidence: float = Field(..., description="Share of headers matched with confidence >= 0.8")
    ambiguous_fields: List[str] = Field(default_factory=list)
    unmapped_columns: List[str] = Field(default_factory=list)


class MappingError(BaseModel):
    """Blocking mapping problem"""
    code: str
    message: str
    fields: List[str] = Field(default_factory=list)


class MappingStatus(BaseModel):
    """Completion check of a mapping set"""
    is_complete: bool
    missing_required: List[str] = Field(default_factory=list)
    duplicate_targets: Dict[str, List[str]] = Field(default_factory=dict)
    mapped_fields: int = 0
    total_columns: int = 0
    errors: List[MappingError] = Field(default_factory=list)
