"""
Unit tests for templates and downloadable reports.
"""

import csv
import io

import pytest
from openpyxl import load_workbook

from app.models.execution import FailedRow, ImportResult, ImportStatus
from app.models.field_catalog import FIELD_CATALOG
from app.services.ingestion import parse_upload
from app.services.reports import ISSUE_REPORT_HEADERS, ReportService


def read_csv(text):
    return list(csv.reader(io.StringIO(text)))


@pytest.fixture
def service():
    return ReportService()


class TestTemplates:
    """Test template generation"""

    def test_template_rows(self, service):
        rows = service.template_rows()

        assert rows[0] == [entry.label for entry in FIELD_CATALOG]
        assert len(rows) == 4
        assert rows[1][0] == "DEMO-001"

    def test_csv_template_round_trip(self, service, mapping_engine, validation_engine):
        """Test the CSV template parses back to catalog labels with no errors"""
        dataset = parse_upload(service.template_csv().encode("utf-8"), "template.csv").dataset
        detection = mapping_engine.detect(dataset.headers)
        result = validation_engine.validate(dataset, detection.suggested_mappings)

        assert dataset.headers == [entry.label for entry in FIELD_CATALOG]
        assert [m.ppm_field for m in detection.suggested_mappings] == [entry.key for entry in FIELD_CATALOG]
        assert result.summary.error_count == 0
        assert result.summary.valid_rows == 3

    def test_xlsx_template_round_trip(self, service, mapping_engine, validation_engine):
        dataset = parse_upload(service.template_xlsx(), "template.xlsx").dataset
        result = validation_engine.validate(dataset, mapping_engine.detect(dataset.headers).suggested_mappings)

        assert dataset.headers == [entry.label for entry in FIELD_CATALOG]
        assert dataset.total_rows == 3
        assert result.summary.error_count == 0

    def test_xlsx_template_layout(self, service):
        wb = load_workbook(io.BytesIO(service.template_xlsx()))

        assert wb.sheetnames == ["Products", "Instructions"]
        ws = wb["Products"]
        assert ws.cell(row=1, column=1).font.bold
        assert ws.cell(row=1, column=1).comment is not None
        assert ws.freeze_panes == "A2"
        assert len(ws.data_validations.dataValidation) == 4

    def test_instructions_list_every_field(self, service):
        ws = load_workbook(io.BytesIO(service.template_xlsx()))["Instructions"]
        labels = {row[0] for row in ws.iter_rows(values_only=True)}

        assert {entry.label for entry in FIELD_CATALOG} <= labels


class TestReports:
    """Test validation and import reports"""

    def test_validation_report(self, service, validated, scenario_csv):
        _, _, result = validated(scenario_csv)
        rows = read_csv(service.validation_report_csv(result.issues))

        assert rows[0] == ISSUE_REPORT_HEADERS
        assert [row[:3] for row in rows[1:]] == [["2", "SKU", "error"], ["3", "SKU", "error"]]
        assert rows[1][4] == "A1"

    @pytest.fixture
    def result(self):
        return ImportResult(
            import_id="import-1",
            status=ImportStatus.PARTIAL,
            total_rows=2,
            processed_rows=2,
            success_count=1,
            error_count=1,
            duration=1.5,
            created_products=["id-A1"],
            failed_rows=[FailedRow(row_index=2, data={"sku": "C1"}, errors=["REJECTED: bad"])],
            skipped_rows=[FailedRow(row_index=1, errors=["SKU: Duplicate SKU"], skipped=True)],
        )

    def test_failed_rows(self, service, result):
        rows = read_csv(service.failed_rows_csv(result))

        assert rows == [
            ["Row", "Status", "Errors"],
            ["2", "skipped", "SKU: Duplicate SKU"],
            ["3", "failed", "REJECTED: bad"],
        ]

    def test_failed_rows_include_original_cells(self, service, result, validated, scenario_csv):
        dataset, _, _ = validated(scenario_csv)
        rows = read_csv(service.failed_rows_csv(result, dataset))

        assert rows[0] == ["Row", "Status", "Errors", "SKU", "Name", "Price"]
        assert rows[1][3:] == ["A1", "Gadget", "14.99"]

    def test_import_result(self, service, result):
        rows = dict(read_csv(service.import_result_csv(result))[1:])

        assert rows["Status"] == "partial"
        assert rows["Successful"] == "1"
        assert rows["Skipped"] == "1"
        assert rows["Dry Run"] == "no"
