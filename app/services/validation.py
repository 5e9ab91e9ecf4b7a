"""
Validation Service

Classifies every dataset row as valid, warning-only or erroring and proposes
auto-fixes. Validation is always a full pass over the dataset; fixes are
applied as dataset edits followed by a fresh validation.
"""

import re
import time
from datetime import datetime
from difflib import SequenceMatcher
from typing import Any, Dict, List, Optional, Tuple

from app.core.logger import logger
from app.models.dataset import Dataset
from app.models.field_catalog import FIELD_CATALOG, FieldCatalogEntry, FieldType
from app.models.mapping import FieldMapping
from app.models.validation import (
    AutoFixSuggestion,
    BulkAutoFix,
    IssueCode,
    IssueType,
    ProductRow,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
)
from app.services.field_mapping import FieldMappingEngine

NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
INTEGER_RE = re.compile(r"^[+-]?\d+$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TRUE_VALUES = {"true", "yes", "y", "1", "on"}
FALSE_VALUES = {"false", "no", "n", "0", "off"}

# Day-first formats are tried before month-first ones
DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d", "%Y.%m.%d", "%m/%d/%Y", "%m-%d-%Y")

PRICE_FIELDS = {"price", "priceWithTax"}
LOW_PRICE = 1.0
HIGH_PRICE = 10000.0
ENUM_SIMILARITY = 0.6

# Seconds per suggestion, used for the advisory apply estimate
FIX_COST = 0.01


def parse_number(value: str) -> Optional[float]:
    if NUMBER_RE.match(value):
        return float(value)
    return None


def fix_number(value: str) -> Optional[str]:
    """Normalize decimal commas, thousands separators and currency symbols."""
    candidate = re.sub(r"[\s$€£]", "", value)
    if re.fullmatch(r"[+-]?\d{1,3}(,\d{3})+(\.\d+)?", candidate):
        candidate = candidate.replace(",", "")
    elif re.fullmatch(r"[+-]?\d{1,3}(\.\d{3})+,\d+", candidate):
        candidate = candidate.replace(".", "").replace(",", ".")
    elif re.fullmatch(r"[+-]?\d+,\d+", candidate):
        candidate = candidate.replace(",", ".")
    if NUMBER_RE.match(candidate):
        return candidate
    return None


def fix_integer(value: str) -> Optional[str]:
    """Integral decimals like 5.0 become 5, anything fractional is left alone."""
    if INTEGER_RE.match(value):
        return value
    candidate = fix_number(value)
    if candidate is None:
        return None
    number = float(candidate)
    if not number.is_integer():
        return None
    return str(int(number))


def parse_date(value: str) -> Optional[str]:
    if not ISO_DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date().isoformat()
    except ValueError:
        return None


def fix_date(value: str) -> Optional[str]:
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(value, date_format).date().isoformat()
        except ValueError:
            continue
    return None


def closest_value(value: str, allowed: List[str]) -> Tuple[Optional[str], float]:
    """Allowed value most similar to the input, if similar enough."""
    best, best_ratio = None, 0.0
    for candidate in allowed:
        ratio = SequenceMatcher(None, value.lower(), candidate.lower()).ratio()
        if ratio > best_ratio:
            best, best_ratio = candidate, ratio
    if best_ratio > ENUM_SIMILARITY:
        return best, round(best_ratio, 2)
    return None, 0.0


def split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",")]


def clean_list(value: str) -> str:
    items: List[str] = []
    for item in split_list(value):
        if item and item not in items:
            items.append(item)
    return ", ".join(items)


class ValidationEngine:
    """Per-cell, cross-row and heuristic checks over a mapped dataset"""

    def __init__(self, catalog: Optional[List[FieldCatalogEntry]] = None):
        """
        Initialize the validation engine.

        Args:
            catalog: Catalog entries the mappings refer to
        """
        self.catalog = catalog or FIELD_CATALOG
        self._fields = {entry.key: entry for entry in self.catalog}
        self._mapping_engine = FieldMappingEngine(self.catalog)

    def validate(self, dataset: Dataset, mappings: List[FieldMapping]) -> ValidationResult:
        """
        Validate every row of the dataset against the mapped catalog fields.

        Args:
            dataset: Parsed import file
            mappings: Complete mapping set

        Returns:
            ValidationResult covering the whole dataset

        Raises:
            DuplicateFieldTarget, MissingRequiredField: if the mapping is incomplete
        """
        started = time.perf_counter()
        self._mapping_engine.require_complete(mappings)

        columns = [
            (mapping, self._fields[mapping.ppm_field])
            for mapping in sorted(mappings, key=lambda m: m.column_index)
            if mapping.ppm_field in self._fields
        ]

        issues: List[ValidationIssue] = []
        valid_rows: List[ProductRow] = []
        error_rows: List[int] = []
        warning_rows: List[int] = []
        seen: Dict[str, Dict[str, int]] = {}

        for row_index, row in enumerate(dataset.rows):
            row_issues: List[ValidationIssue] = []
            data: Dict[str, Any] = {}

            for mapping, entry in columns:
                raw = row[mapping.column_index]
                cell_issues, value = self._check_cell(row_index, mapping, entry, raw, seen)
                row_issues.extend(cell_issues)
                if value is not None:
                    data[entry.key] = value

            issues.extend(row_issues)
            row_errors = [issue for issue in row_issues if issue.type == IssueType.ERROR]
            row_warnings = [issue for issue in row_issues if issue.type == IssueType.WARNING]

            if row_errors:
                error_rows.append(row_index)
            else:
                valid_rows.append(ProductRow(row_index=row_index, data=data, issues=row_warnings))
            if row_warnings:
                warning_rows.append(row_index)

        error_count = sum(1 for issue in issues if issue.type == IssueType.ERROR)
        warning_count = len(issues) - error_count

        summary = ValidationSummary(
            total_rows=dataset.total_rows,
            valid_rows=len(valid_rows),
            error_count=error_count,
            warning_count=warning_count,
            error_rows=error_rows,
            warning_rows=warning_rows,
        )

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Validated {dataset.total_rows} rows: {error_count} errors, {warning_count} warnings",
            metadata={
                "event": "validation_completed",
                "total_rows": dataset.total_rows,
                "valid_rows": len(valid_rows),
                "error_count": error_count,
                "warning_count": warning_count,
                "duration_ms": duration_ms,
            }
        )

        return ValidationResult(
            is_valid=error_count == 0,
            valid_rows=valid_rows,
            issues=issues,
            summary=summary,
        )

    def _check_cell(
        self,
        row_index: int,
        mapping: FieldMapping,
        entry: FieldCatalogEntry,
        raw: str,
        seen: Dict[str, Dict[str, int]],
    ) -> Tuple[List[ValidationIssue], Any]:
        issues: List[ValidationIssue] = []
        constraints = entry.constraints

        def issue(issue_type, code, message, suggestion=None, auto_fixable=False):
            issues.append(ValidationIssue(
                row=row_index,
                column=mapping.csv_column,
                column_index=mapping.column_index,
                field=entry.key,
                type=issue_type,
                code=code,
                message=message,
                value=raw,
                suggestion=suggestion,
                auto_fixable=auto_fixable,
            ))

        value = raw.strip()

        # Presence
        if not value:
            if entry.required:
                issue(IssueType.ERROR, IssueCode.REQUIRED_FIELD_MISSING, f"{entry.label} is required")
            elif entry.recommended:
                issue(
                    IssueType.WARNING,
                    IssueCode.RECOMMENDED_FIELD_MISSING,
                    f"{entry.label} is empty",
                    suggestion=f"Adding a {entry.label.lower()} improves product discoverability",
                )
            return issues, None

        # Format
        coerced, format_ok = self._check_format(entry, value, issue)

        # Range and length
        if format_ok:
            format_ok = self._check_range(entry, value, coerced, issue)

        # Cross-row uniqueness, file order decides the first occurrence
        if constraints.unique:
            occurrences = seen.setdefault(entry.key, {})
            if value in occurrences and format_ok:
                first = occurrences[value]
                issue(
                    IssueType.ERROR,
                    IssueCode.DUPLICATE_VALUE,
                    f"Duplicate {entry.label} '{value}' (first seen in row {first + 1})",
                    suggestion=f"Each {entry.label} must be unique within the file",
                )
                format_ok = False
            occurrences.setdefault(value, row_index)

        # Soft heuristics
        if format_ok and entry.key in PRICE_FIELDS:
            if coerced < LOW_PRICE:
                issue(
                    IssueType.WARNING,
                    IssueCode.SUSPICIOUS_PRICE,
                    f"{entry.label} {value} looks unusually low",
                    suggestion="Check the decimal separator and currency",
                )
            elif coerced > HIGH_PRICE:
                issue(
                    IssueType.WARNING,
                    IssueCode.SUSPICIOUS_PRICE,
                    f"{entry.label} {value} looks unusually high",
                    suggestion="Check the decimal separator and currency",
                )
        if raw != value:
            issue(
                IssueType.WARNING,
                IssueCode.WHITESPACE,
                f"{entry.label} has leading or trailing whitespace",
                suggestion=value,
                auto_fixable=True,
            )

        return issues, coerced if format_ok else None

    def _check_format(self, entry: FieldCatalogEntry, value: str, issue) -> Tuple[Any, bool]:
        constraints = entry.constraints

        if entry.type == FieldType.NUMBER:
            number = parse_number(value)
            if number is None:
                fixed = fix_number(value)
                issue(
                    IssueType.ERROR,
                    IssueCode.INVALID_NUMBER,
                    f"{entry.label} must be a number",
                    suggestion=f"Use {fixed}" if fixed else "Use digits with a dot as decimal separator, e.g. 9.99",
                    auto_fixable=fixed is not None,
                )
                return None, False
            return number, True

        if entry.type == FieldType.INTEGER:
            if not INTEGER_RE.match(value):
                fixed = fix_integer(value)
                issue(
                    IssueType.ERROR,
                    IssueCode.INVALID_INTEGER,
                    f"{entry.label} must be a whole number",
                    suggestion=f"Use {fixed}" if fixed else "Use a whole number, e.g. 10",
                    auto_fixable=fixed is not None,
                )
                return None, False
            return int(value), True

        if entry.type == FieldType.BOOLEAN:
            lowered = value.lower()
            if lowered in TRUE_VALUES:
                return True, True
            if lowered in FALSE_VALUES:
                return False, True
            issue(
                IssueType.ERROR,
                IssueCode.INVALID_BOOLEAN,
                f"{entry.label} must be yes or no",
                suggestion="Use yes/no, true/false or 1/0",
            )
            return None, False

        if entry.type == FieldType.DATE:
            parsed = parse_date(value)
            if parsed is None:
                fixed = fix_date(value)
                issue(
                    IssueType.ERROR,
                    IssueCode.INVALID_DATE,
                    f"{entry.label} must be a date in YYYY-MM-DD format",
                    suggestion=f"Use {fixed}" if fixed else "Use YYYY-MM-DD, e.g. 2024-01-31",
                    auto_fixable=fixed is not None,
                )
                return None, False
            return parsed, True

        if entry.type == FieldType.ENUM:
            allowed = constraints.allowed_values or []
            if value in allowed:
                return value, True
            lowered = {option.lower(): option for option in allowed}
            if value.lower() in lowered:
                match = lowered[value.lower()]
                issue(
                    IssueType.WARNING,
                    IssueCode.ENUM_CASE,
                    f"{entry.label} '{value}' should be written as '{match}'",
                    suggestion=match,
                    auto_fixable=True,
                )
                return match, True
            closest, _ = closest_value(value, allowed)
            issue(
                IssueType.ERROR,
                IssueCode.INVALID_ENUM,
                f"{entry.label} must be one of: {', '.join(allowed)}",
                suggestion=f"Did you mean '{closest}'?" if closest else f"Allowed values: {', '.join(allowed)}",
                auto_fixable=closest is not None,
            )
            return None, False

        if entry.type == FieldType.ARRAY:
            items = split_list(value)
            cleaned = [item for index, item in enumerate(items) if item and item not in items[:index]]
            if len(cleaned) != len(items):
                issue(
                    IssueType.WARNING,
                    IssueCode.LIST_ITEMS,
                    f"{entry.label} contains empty or repeated items",
                    suggestion=", ".join(cleaned),
                    auto_fixable=True,
                )
            return cleaned, True

        if constraints.pattern and not re.match(constraints.pattern, value):
            issue(
                IssueType.ERROR,
                IssueCode.PATTERN_MISMATCH,
                f"{entry.label} has an invalid format",
                suggestion=entry.description or None,
            )
            return None, False
        return value, True

    def _check_range(self, entry: FieldCatalogEntry, value: str, coerced: Any, issue) -> bool:
        constraints = entry.constraints

        if entry.type in (FieldType.NUMBER, FieldType.INTEGER):
            if constraints.min_value is not None and coerced < constraints.min_value:
                issue(
                    IssueType.ERROR,
                    IssueCode.VALUE_TOO_LOW,
                    f"{entry.label} must be at least {constraints.min_value:g}",
                )
                return False
            if constraints.max_value is not None and coerced > constraints.max_value:
                issue(
                    IssueType.ERROR,
                    IssueCode.VALUE_TOO_HIGH,
                    f"{entry.label} must be at most {constraints.max_value:g}",
                )
                return False
            return True

        if entry.type == FieldType.TEXT:
            if constraints.min_length is not None and len(value) < constraints.min_length:
                issue(
                    IssueType.ERROR,
                    IssueCode.TOO_SHORT,
                    f"{entry.label} must be at least {constraints.min_length} characters",
                )
                return False
            if constraints.max_length is not None and len(value) > constraints.max_length:
                issue(
                    IssueType.ERROR,
                    IssueCode.TOO_LONG,
                    f"{entry.label} must be at most {constraints.max_length} characters",
                    suggestion=f"Shorten to {constraints.max_length} characters",
                    auto_fixable=True,
                )
                return False
        return True

    def suggest_fixes(
        self,
        dataset: Dataset,
        result: ValidationResult,
        issue_type: Optional[IssueType] = None,
    ) -> BulkAutoFix:
        """
        Propose replacement values for every auto-fixable issue.

        Fixes touching the same cell chain: each suggestion starts from the
        value left by the previous one.

        Args:
            dataset: Dataset the result was computed on
            result: Current validation result
            issue_type: Restrict to errors or warnings

        Returns:
            BulkAutoFix with one suggestion per fixable issue that changes the cell
        """
        suggestions: List[AutoFixSuggestion] = []
        current: Dict[Tuple[int, int], str] = {}

        for issue in result.issues:
            if not issue.auto_fixable:
                continue
            if issue_type is not None and issue.type != issue_type:
                continue
            entry = self._fields.get(issue.field)
            if entry is None:
                continue

            cell = (issue.row, issue.column_index)
            before = current.get(cell, dataset.cell(issue.row, issue.column_index))
            after, confidence = self._fix_value(issue.code, entry, before)
            if after is None or after == before:
                continue

            current[cell] = after
            suggestions.append(AutoFixSuggestion(
                suggestion_id=f"{issue.row}-{issue.column_index}-{issue.code}",
                row=issue.row,
                column=issue.column,
                column_index=issue.column_index,
                code=issue.code,
                description=self._describe_fix(issue.code, entry),
                before=before,
                after=after,
                confidence=confidence,
            ))

        return BulkAutoFix(
            suggestions=suggestions,
            total_affected_rows=len({suggestion.row for suggestion in suggestions}),
            estimated_time=round(len(suggestions) * FIX_COST, 2),
        )

    def apply_fixes(
        self,
        dataset: Dataset,
        mappings: List[FieldMapping],
        suggestions: List[AutoFixSuggestion],
    ) -> Tuple[Dataset, ValidationResult]:
        """
        Write suggestions into a new dataset and re-validate it in full.

        Returns:
            Tuple of (edited dataset, fresh validation result)
        """
        edits: Dict[Tuple[int, int], str] = {}
        for suggestion in suggestions:
            edits[(suggestion.row, suggestion.column_index)] = suggestion.after

        fixed = dataset.with_cells(edits)

        logger.info(
            f"Applied {len(suggestions)} auto-fixes to {len(edits)} cells",
            metadata={"event": "autofix_applied", "suggestions": len(suggestions), "cells": len(edits)}
        )

        return fixed, self.validate(fixed, mappings)

    def _fix_value(self, code: str, entry: FieldCatalogEntry, value: str) -> Tuple[Optional[str], float]:
        stripped = value.strip()

        if code == IssueCode.WHITESPACE:
            return stripped, 1.0
        if code == IssueCode.INVALID_NUMBER:
            return fix_number(stripped), 0.95
        if code == IssueCode.INVALID_INTEGER:
            return fix_integer(stripped), 0.95
        if code == IssueCode.INVALID_DATE:
            return fix_date(stripped), 0.8
        if code == IssueCode.ENUM_CASE:
            allowed = {option.lower(): option for option in entry.constraints.allowed_values or []}
            return allowed.get(stripped.lower()), 1.0
        if code == IssueCode.INVALID_ENUM:
            return closest_value(stripped, entry.constraints.allowed_values or [])
        if code == IssueCode.TOO_LONG:
            max_length = entry.constraints.max_length
            return stripped[:max_length].rstrip(), 0.7
        if code == IssueCode.LIST_ITEMS:
            return clean_list(stripped), 1.0
        return None, 0.0

    def _describe_fix(self, code: str, entry: FieldCatalogEntry) -> str:
        descriptions = {
            IssueCode.WHITESPACE: "Trim surrounding whitespace",
            IssueCode.INVALID_NUMBER: "Normalize number format",
            IssueCode.INVALID_INTEGER: "Convert to whole number",
            IssueCode.INVALID_DATE: "Convert date to YYYY-MM-DD",
            IssueCode.ENUM_CASE: "Normalize letter case",
            IssueCode.INVALID_ENUM: "Replace with closest allowed value",
            IssueCode.TOO_LONG: f"Truncate to {entry.constraints.max_length} characters",
            IssueCode.LIST_ITEMS: "Remove empty and repeated list items",
        }
        return f"{entry.label}: {descriptions.get(IssueCode(code), 'Auto-fix')}"
