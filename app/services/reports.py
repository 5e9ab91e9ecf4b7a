"""
Report Service

Import templates (CSV and Excel) and downloadable validation and import reports.
Templates mirror the input contract so they round-trip through ingestion.
"""

import csv
import io
from typing import Dict, List, Optional

try:
    from openpyxl import Workbook
    from openpyxl.comments import Comment
    from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
    from openpyxl.utils import get_column_letter
    from openpyxl.worksheet.datavalidation import DataValidation
except ImportError:
    raise ImportError(
        "openpyxl is required for template generation. "
        "Install it with: pip install openpyxl"
    )

from app.core.logger import logger
from app.models.dataset import Dataset
from app.models.execution import FailedRow, ImportResult
from app.models.field_catalog import FIELD_CATALOG, FIELD_GROUPS, SAMPLE_ROWS, FieldCatalogEntry, FieldType
from app.models.validation import ValidationIssue

ISSUE_REPORT_HEADERS = ["Row", "Column", "Type", "Message", "Value", "Suggestion"]


class ReportService:
    """Service for generating import templates and result reports"""

    def __init__(
        self,
        catalog: Optional[List[FieldCatalogEntry]] = None,
        sample_rows: Optional[List[Dict[str, str]]] = None,
    ):
        self.catalog = catalog or FIELD_CATALOG
        self.sample_rows = SAMPLE_ROWS if sample_rows is None else sample_rows

    def template_rows(self) -> List[List[str]]:
        """Header row of catalog labels followed by the sample rows."""
        rows = [[entry.label for entry in self.catalog]]
        for sample in self.sample_rows:
            rows.append([sample.get(entry.key, "") for entry in self.catalog])
        return rows

    def template_csv(self) -> str:
        """Generate the CSV import template."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerows(self.template_rows())

        logger.info(
            "CSV import template generated",
            metadata={"event": "template_generated", "format": "csv", "columns": len(self.catalog)}
        )
        return output.getvalue()

    def template_xlsx(self) -> bytes:
        """
        Generate the Excel import template.

        The Products sheet holds only the header row and sample rows so it
        parses exactly like the CSV template; field descriptions are attached
        as header comments and listed on the Instructions sheet.

        Returns:
            Workbook bytes
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Products"

        rows = self.template_rows()
        for row in rows:
            ws.append(row)

        self._style_headers(ws)
        self._add_validation(ws)
        self._add_instructions_sheet(wb)

        output = io.BytesIO()
        wb.save(output)

        logger.info(
            "Excel import template generated",
            metadata={
                "event": "template_generated",
                "format": "xlsx",
                "columns": len(self.catalog),
                "size_bytes": output.getbuffer().nbytes,
            }
        )
        return output.getvalue()

    def _style_headers(self, ws):
        thin = Side(style="thin")
        for col_idx, entry in enumerate(self.catalog, start=1):
            cell = ws.cell(row=1, column=col_idx)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
            cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
            cell.border = Border(left=thin, right=thin, top=thin, bottom=thin)
            if entry.description:
                cell.comment = Comment(entry.description, "Catalog Import")
            ws.column_dimensions[get_column_letter(col_idx)].width = 20

        ws.row_dimensions[1].height = 30
        ws.freeze_panes = "A2"

    def _add_validation(self, ws):
        """Dropdowns for enumerated fields"""
        for col_idx, entry in enumerate(self.catalog, start=1):
            allowed = entry.constraints.allowed_values
            if entry.type == FieldType.BOOLEAN:
                allowed = ["yes", "no"]
            if not allowed:
                continue

            col_letter = get_column_letter(col_idx)
            dv = DataValidation(type="list", formula1=f'"{",".join(allowed)}"', allow_blank=not entry.required)
            dv.error = f"Please select from: {', '.join(allowed)}"
            dv.errorTitle = "Invalid Value"
            ws.add_data_validation(dv)
            dv.add(f"{col_letter}2:{col_letter}10000")

    def _add_instructions_sheet(self, wb):
        ws = wb.create_sheet("Instructions")

        ws.cell(row=1, column=1).value = "Product Import Template Instructions"
        ws.cell(row=1, column=1).font = Font(bold=True, size=14)

        row = 3
        instructions = [
            "GENERAL INSTRUCTIONS:",
            "1. Fill out the 'Products' sheet, one product per row",
            "2. Keep the header row; columns can be reordered or removed",
            "3. Replace the sample rows with your own products",
            "4. Dates use YYYY-MM-DD, decimals use a dot",
            "5. Lists (tags, features) are comma-separated",
            "",
            "FIELD SPECIFICATIONS:",
        ]
        for instruction in instructions:
            ws.cell(row=row, column=1).value = instruction
            if instruction.endswith(":"):
                ws.cell(row=row, column=1).font = Font(bold=True)
            row += 1

        row += 1
        for col, title in enumerate(["Column Name", "Group", "Required", "Type", "Validation"], start=1):
            ws.cell(row=row, column=col).value = title
            ws.cell(row=row, column=col).font = Font(bold=True)
        row += 1

        for entry in self.catalog:
            constraints = entry.constraints
            validation = []
            if constraints.allowed_values:
                validation.append(f"Values: {', '.join(constraints.allowed_values)}")
            if constraints.min_value is not None or constraints.max_value is not None:
                validation.append(f"Range: {_bound(constraints.min_value)} to {_bound(constraints.max_value)}")
            if constraints.min_length or constraints.max_length:
                validation.append(f"Length: {constraints.min_length or 0} to {constraints.max_length or 'any'}")
            if constraints.unique:
                validation.append("Unique within file")

            ws.cell(row=row, column=1).value = entry.label
            ws.cell(row=row, column=2).value = FIELD_GROUPS.get(entry.group, entry.group)
            ws.cell(row=row, column=3).value = "Yes" if entry.required else "No"
            ws.cell(row=row, column=4).value = entry.type.value
            ws.cell(row=row, column=5).value = "; ".join(validation) if validation else "None"
            row += 1

        for col in range(1, 6):
            ws.column_dimensions[get_column_letter(col)].width = 30

    def validation_report_csv(self, issues: List[ValidationIssue]) -> str:
        """One line per issue, rows numbered from 1."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(ISSUE_REPORT_HEADERS)
        for issue in issues:
            writer.writerow([
                issue.row + 1,
                issue.column,
                issue.type,
                issue.message,
                issue.value,
                issue.suggestion or "",
            ])
        return output.getvalue()

    def failed_rows_csv(self, result: ImportResult, dataset: Optional[Dataset] = None) -> str:
        """
        Rows that failed at execution or were skipped by validation.

        When the dataset is given, the original cells are appended so the
        file can be corrected and uploaded again.
        """
        rows: List[FailedRow] = sorted(
            [*result.failed_rows, *result.skipped_rows],
            key=lambda failed: failed.row_index,
        )

        output = io.StringIO()
        writer = csv.writer(output)
        headers = ["Row", "Status", "Errors"]
        if dataset is not None:
            headers.extend(dataset.headers)
        writer.writerow(headers)

        for failed in rows:
            line = [failed.row_index + 1, "skipped" if failed.skipped else "failed", "; ".join(failed.errors)]
            if dataset is not None and failed.row_index < dataset.total_rows:
                line.extend(dataset.rows[failed.row_index])
            writer.writerow(line)
        return output.getvalue()

    def import_result_csv(self, result: ImportResult) -> str:
        """Key/value summary of an import run."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Field", "Value"])
        writer.writerows([
            ["Import ID", result.import_id],
            ["Status", result.status.value],
            ["Total Rows", result.total_rows],
            ["Processed Rows", result.processed_rows],
            ["Successful", result.success_count],
            ["Failed", result.error_count],
            ["Skipped", len(result.skipped_rows)],
            ["Warnings", result.warning_count],
            ["Created Products", len(result.created_products)],
            ["Updated Products", len(result.updated_products)],
            ["Duration (s)", result.duration],
            ["Dry Run", "yes" if result.dry_run else "no"],
            ["Error", result.error_message or ""],
        ])
        return output.getvalue()


def _bound(value: Optional[float]) -> str:
    if value is None:
        return "any"
    return f"{value:g}"


# Singleton instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get singleton report service instance"""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
