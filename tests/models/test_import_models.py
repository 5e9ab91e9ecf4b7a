"""Tests for dataset, catalog and execution models"""
import re

import pytest
from pydantic import ValidationError

from app.models.dataset import Dataset
from app.models.execution import ImportOptions, ImportPhase, ImportProgress
from app.models.field_catalog import FIELD_CATALOG, SAMPLE_ROWS, FieldType, get_field, required_fields
from app.models.mapping import FieldMapping
from app.models.validation import IssueCode, IssueType, ValidationIssue


class TestDataset:
    """Test the Dataset model"""

    @pytest.fixture
    def dataset(self):
        return Dataset(headers=["SKU", "Name"], rows=[["A1", "Widget"], ["B2", "Gadget"]], file_name="p.csv")

    def test_rows_must_align(self):
        """Test every row has exactly one cell per header"""
        with pytest.raises(ValidationError):
            Dataset(headers=["SKU", "Name"], rows=[["A1"]])

    def test_total_rows_and_cell(self, dataset):
        assert dataset.total_rows == 2
        assert dataset.cell(1, 0) == "B2"

    def test_with_cells_returns_new_dataset(self, dataset):
        """Test edits never mutate the original"""
        edited = dataset.with_cells({(0, 1): "Widget Pro"})

        assert edited.cell(0, 1) == "Widget Pro"
        assert dataset.cell(0, 1) == "Widget"
        assert edited.file_name == "p.csv"

    def test_with_cells_out_of_range(self, dataset):
        with pytest.raises(IndexError):
            dataset.with_cells({(5, 0): "x"})
        with pytest.raises(IndexError):
            dataset.with_cells({(0, 9): "x"})

    def test_dataset_is_frozen(self, dataset):
        with pytest.raises(ValidationError):
            dataset.file_name = "other.csv"


class TestFieldCatalog:
    """Test the static catalog configuration"""

    def test_keys_are_unique(self):
        keys = [entry.key for entry in FIELD_CATALOG]
        assert len(keys) == len(set(keys))

    def test_required_fields(self):
        assert [entry.key for entry in required_fields()] == ["sku", "name", "price"]

    def test_enum_fields_declare_allowed_values(self):
        for entry in FIELD_CATALOG:
            if entry.type == FieldType.ENUM:
                assert entry.constraints.allowed_values, entry.key

    def test_get_field(self):
        assert get_field("price").type == FieldType.NUMBER
        assert get_field("unknown") is None

    def test_sample_rows_cover_catalog(self):
        """Test template samples fill every catalog column"""
        keys = {entry.key for entry in FIELD_CATALOG}
        for sample in SAMPLE_ROWS:
            assert set(sample) == keys

    def test_sample_skus_match_pattern(self):
        pattern = get_field("sku").constraints.pattern
        for sample in SAMPLE_ROWS:
            assert re.match(pattern, sample["sku"])


class TestImportOptions:
    """Test operator options"""

    def test_defaults(self):
        options = ImportOptions()
        assert options.skip_error_rows is True
        assert options.auto_fix_warnings is True
        assert options.create_backup is True
        assert options.update_existing is False
        assert options.send_notification is True
        assert options.chunk_size == 100
        assert options.dry_run is False

    @pytest.mark.parametrize("chunk_size", [9, 1001])
    def test_chunk_size_bounds(self, chunk_size):
        with pytest.raises(ValidationError):
            ImportOptions(chunk_size=chunk_size)

    @pytest.mark.parametrize("chunk_size", [10, 1000])
    def test_chunk_size_limits_accepted(self, chunk_size):
        assert ImportOptions(chunk_size=chunk_size).chunk_size == chunk_size


class TestImportProgress:
    """Test progress counters"""

    def test_percentage(self):
        progress = ImportProgress(total_rows=200, processed_rows=50)
        assert progress.percentage == 25.0

    def test_percentage_without_rows(self):
        assert ImportProgress().percentage == 0.0

    def test_percentage_is_serialized(self):
        assert ImportProgress(total_rows=4, processed_rows=1).model_dump()["percentage"] == 25.0

    def test_phase_flags(self):
        assert ImportPhase.PAUSED.is_running
        assert not ImportPhase.IDLE.is_running
        assert ImportPhase.CANCELLED.is_terminal
        assert not ImportPhase.FINALIZING.is_terminal


class TestMappingAndIssues:
    """Test mapping and issue records"""

    def test_skipped_mapping(self):
        assert FieldMapping(csv_column="Notes", column_index=3).is_skipped
        assert not FieldMapping(csv_column="SKU", column_index=0, ppm_field="sku").is_skipped

    def test_issue_stores_enum_values(self):
        issue = ValidationIssue(
            row=0, column="Price", column_index=2, field="price",
            type=IssueType.ERROR, code=IssueCode.INVALID_NUMBER, message="Price must be a number",
        )
        assert issue.type == "error"
        assert issue.code == "INVALID_NUMBER"
