"""
Dataset Models

In-memory representation of an uploaded import file.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SourceFormat(str, Enum):
    """Format the dataset was read from"""
    CSV = "csv"
    XLSX = "xlsx"


class Dataset(BaseModel):
    """Parsed import file: header row plus aligned data rows"""
    model_config = ConfigDict(frozen=True)

    headers: List[str] = Field(..., description="Header row, first row of the file")
    rows: List[List[str]] = Field(default_factory=list, description="Data rows aligned to headers")
    file_name: str = Field(default="", description="Original uploaded filename")
    file_size: int = Field(default=0, description="File size in bytes")
    delimiter: Optional[str] = Field(None, description="Detected delimiter for text files")
    source_format: SourceFormat = Field(default=SourceFormat.CSV)

    @model_validator(mode="after")
    def check_alignment(self):
        width = len(self.headers)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"Row {index} has {len(row)} cells, expected {width}")
        return self

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def cell(self, row: int, column_index: int) -> str:
        return self.rows[row][column_index]

    def with_cells(self, edits: Dict[Tuple[int, int], str]) -> "Dataset":
        """
        Return a copy of the dataset with the given cells replaced.

        Args:
            edits: Mapping of (row, column_index) to the new cell value

        Returns:
            New Dataset; the original is left untouched
        """
        rows = [list(row) for row in self.rows]
        for (row, column_index), value in edits.items():
            if not 0 <= row < len(rows):
                raise IndexError(f"Row {row} is out of range")
            if not 0 <= column_index < len(self.headers):
                raise IndexError(f"Column {column_index} is out of range")
            rows[row][column_index] = value
        return self.model_copy(update={"rows": rows})


class Preview(BaseModel):
    """Bounded preview shown to the operator after upload"""
    headers: List[str]
    sample_rows: List[List[str]]
    total_rows: int
    detected_encoding: str = "utf-8"
    delimiter: Optional[str] = None
    has_headers: bool = True
    warnings: List[str] = Field(default_factory=list)


class IngestionResult(BaseModel):
    """Outcome of parsing an upload"""
    dataset: Dataset
    preview: Preview
