"""
Request and response schemas of the import API
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.field_catalog import FieldCatalogEntry
from app.models.mapping import FieldMapping, MappingStatus
from app.models.validation import ValidationSummary
from app.services.wizard import WizardStage


class MappingUpdate(BaseModel):
    """Operator override for one column"""
    csv_column: str
    ppm_field: str = Field(default="", description="Catalog field key, empty to skip the column")
    column_index: Optional[int] = Field(None, description="Disambiguates repeated headers")


class MappingsResponse(BaseModel):
    mappings: List[FieldMapping]
    status: MappingStatus


class NavigationRequest(BaseModel):
    stage: WizardStage


class NavigationResponse(BaseModel):
    stage: WizardStage
    moved: bool
    blocked_reasons: List[str] = Field(default_factory=list)


class AutoFixApplyRequest(BaseModel):
    suggestion_ids: Optional[List[str]] = Field(None, description="Apply only these, all when omitted")


class CellEdit(BaseModel):
    row: int = Field(..., ge=0, description="0-based row index")
    column_index: int = Field(..., ge=0)
    value: str


class CellEditRequest(BaseModel):
    edits: List[CellEdit] = Field(..., min_length=1)


class ControlResponse(BaseModel):
    accepted: bool
    phase: str


class CatalogResponse(BaseModel):
    fields: List[FieldCatalogEntry]
    groups: dict


class ValidationSummaryResponse(BaseModel):
    is_valid: bool
    summary: ValidationSummary
