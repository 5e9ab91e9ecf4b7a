"""
Field Mapping Service

Suggests column to catalog-field assignments from header names and checks
that a mapping set is complete before validation may run.
"""

import re
from typing import Dict, List, Optional, Tuple

from app.core.errors import DuplicateFieldTarget, ErrorResponse, MissingRequiredField
from app.core.logger import logger
from app.models.field_catalog import FIELD_CATALOG, FieldCatalogEntry
from app.models.mapping import FieldDetectionResult, FieldMapping, MappingError, MappingStatus

EXACT_MATCH = 1.0
PARTIAL_MATCH = 0.8
TOKEN_MATCH = 0.5
MIN_TOKEN_LENGTH = 3
MIN_SUBSTRING_LENGTH = 3


def normalize_header(value: str) -> str:
    """Lowercase, trim and join words with underscores."""
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


def _tokens(value: str) -> set:
    return {token for token in re.split(r"[^a-z0-9]+", value) if len(token) >= MIN_TOKEN_LENGTH}


class FieldMappingEngine:
    """Auto-detection and completion checks for column mappings"""

    def __init__(self, catalog: Optional[List[FieldCatalogEntry]] = None):
        """
        Initialize the mapping engine.

        Args:
            catalog: Catalog entries to map onto, defaults to the product catalog
        """
        self.catalog = catalog or FIELD_CATALOG
        self._fields = {entry.key: entry for entry in self.catalog}
        self._synonyms: List[Tuple[FieldCatalogEntry, List[str]]] = []
        self._synonyms_by_key: Dict[str, List[str]] = {}
        for entry in self.catalog:
            names = [entry.key, entry.label, *entry.synonyms]
            normalized = []
            for name in names:
                value = normalize_header(name)
                if value and value not in normalized:
                    normalized.append(value)
            self._synonyms.append((entry, normalized))
            self._synonyms_by_key[entry.key] = normalized

    def score(self, header: str, entry: FieldCatalogEntry) -> float:
        """Confidence that a header refers to the given catalog entry."""
        normalized = normalize_header(header)
        if not normalized:
            return 0.0

        synonyms = self._synonyms_by_key.get(entry.key, [])
        best = 0.0
        header_tokens = _tokens(normalized)
        for synonym in synonyms:
            if normalized == synonym:
                return EXACT_MATCH
            if len(synonym) >= MIN_SUBSTRING_LENGTH and len(normalized) >= MIN_SUBSTRING_LENGTH and (
                synonym in normalized or normalized in synonym
            ):
                best = max(best, PARTIAL_MATCH)
            elif header_tokens & _tokens(synonym):
                best = max(best, TOKEN_MATCH)
        return best

    def best_match(self, header: str) -> Tuple[Optional[FieldCatalogEntry], float]:
        """Highest scoring entry for a header; catalog order breaks ties."""
        best_entry, best_score = None, 0.0
        for entry, _ in self._synonyms:
            score = self.score(header, entry)
            if score > best_score:
                best_entry, best_score = entry, score
                if score == EXACT_MATCH:
                    break
        return best_entry, best_score

    def detect(self, headers: List[str]) -> FieldDetectionResult:
        """
        Suggest a mapping for every header.

        When two headers pick the same field, the stronger match keeps it
        (first header on a tie) and the other is left unmapped and reported
        as ambiguous.

        Args:
            headers: Dataset header row

        Returns:
            FieldDetectionResult with suggestions, confidence and the columns
            needing operator attention
        """
        candidates = [self.best_match(header) for header in headers]

        owner: Dict[str, int] = {}
        for index, (entry, score) in enumerate(candidates):
            if entry is None:
                continue
            current = owner.get(entry.key)
            if current is None or score > candidates[current][1]:
                owner[entry.key] = index

        mappings: List[FieldMapping] = []
        ambiguous: List[str] = []
        unmapped: List[str] = []

        for index, (header, (entry, score)) in enumerate(zip(headers, candidates)):
            if entry is None:
                unmapped.append(header)
                mappings.append(self._build_mapping(header, index, None))
                continue

            if owner[entry.key] != index:
                ambiguous.append(header)
                mappings.append(self._build_mapping(header, index, None))
                continue

            if score < PARTIAL_MATCH:
                ambiguous.append(header)
            mappings.append(self._build_mapping(header, index, entry, confidence=score))

        # Counted before ownership, so a header that lost a contested field still counts
        strong = sum(1 for _, score in candidates if score >= PARTIAL_MATCH)
        confidence = round(strong / len(headers), 4) if headers else 0.0

        logger.info(
            f"Detected mappings for {len(headers)} columns",
            metadata={
                "event": "mapping_detected",
                "columns": len(headers),
                "confidence": confidence,
                "ambiguous": len(ambiguous),
                "unmapped": len(unmapped),
            }
        )

        return FieldDetectionResult(
            suggested_mappings=mappings,
            confidence=confidence,
            ambiguous_fields=ambiguous,
            unmapped_columns=unmapped,
        )

    def auto_apply(
        self,
        current: List[FieldMapping],
        detection: FieldDetectionResult,
    ) -> List[FieldMapping]:
        """
        Replace auto suggestions with a fresh detection, keeping confirmed mappings.

        Args:
            current: Mappings in effect, possibly with operator overrides
            detection: Result of detect() on the same header row

        Returns:
            New mapping list ordered by column position
        """
        confirmed = {mapping.column_index: mapping for mapping in current if mapping.confirmed}
        taken = {mapping.ppm_field for mapping in confirmed.values() if mapping.ppm_field}

        applied: List[FieldMapping] = []
        for suggestion in detection.suggested_mappings:
            if suggestion.column_index in confirmed:
                applied.append(confirmed[suggestion.column_index])
            elif suggestion.ppm_field and suggestion.ppm_field in taken:
                applied.append(self._build_mapping(suggestion.csv_column, suggestion.column_index, None))
            else:
                applied.append(suggestion)

        return applied

    def set_mapping(
        self,
        mappings: List[FieldMapping],
        csv_column: str,
        ppm_field: str,
        column_index: Optional[int] = None,
    ) -> List[FieldMapping]:
        """
        Operator override for one column.

        Args:
            mappings: Current mapping list
            csv_column: Header of the column to change
            ppm_field: Catalog key, or empty string to skip the column
            column_index: Disambiguates repeated headers

        Returns:
            New mapping list with the column marked confirmed
        """
        entry = None
        if ppm_field:
            entry = self._fields.get(ppm_field)
            if entry is None:
                raise ErrorResponse(
                    f"Unknown catalog field: {ppm_field}",
                    status_code=422,
                    details={"ppm_field": ppm_field},
                )

        target = None
        for mapping in mappings:
            if column_index is not None:
                if mapping.column_index == column_index:
                    target = mapping
                    break
            elif mapping.csv_column == csv_column:
                target = mapping
                break

        if target is None:
            raise ErrorResponse(
                f"Column not found: {csv_column}",
                status_code=404,
                details={"csv_column": csv_column, "column_index": column_index},
            )

        replacement = self._build_mapping(
            target.csv_column, target.column_index, entry, confidence=1.0 if entry else 0.0, confirmed=True
        )
        return [replacement if mapping is target else mapping for mapping in mappings]

    def check(self, mappings: List[FieldMapping]) -> MappingStatus:
        """Evaluate the completion contract of a mapping set."""
        targets: Dict[str, List[str]] = {}
        for mapping in mappings:
            if mapping.ppm_field:
                targets.setdefault(mapping.ppm_field, []).append(mapping.csv_column)

        duplicates = {field: columns for field, columns in targets.items() if len(columns) > 1}
        missing = [entry.key for entry in self.catalog if entry.required and entry.key not in targets]

        errors: List[MappingError] = []
        if duplicates:
            error = DuplicateFieldTarget(duplicates)
            errors.append(MappingError(code=error.code, message=error.message, fields=sorted(duplicates)))
        if missing:
            error = MissingRequiredField(missing)
            errors.append(MappingError(code=error.code, message=error.message, fields=missing))

        return MappingStatus(
            is_complete=not errors,
            missing_required=missing,
            duplicate_targets=duplicates,
            mapped_fields=len(targets),
            total_columns=len(mappings),
            errors=errors,
        )

    def require_complete(self, mappings: List[FieldMapping]) -> MappingStatus:
        """Raise the blocking mapping error, duplicate targets first."""
        status = self.check(mappings)
        if status.duplicate_targets:
            raise DuplicateFieldTarget(status.duplicate_targets)
        if status.missing_required:
            raise MissingRequiredField(status.missing_required)
        return status

    def _build_mapping(
        self,
        header: str,
        index: int,
        entry: Optional[FieldCatalogEntry],
        confidence: float = 0.0,
        confirmed: bool = False,
    ) -> FieldMapping:
        return FieldMapping(
            csv_column=header,
            column_index=index,
            ppm_field=entry.key if entry else "",
            field_type=entry.type if entry else None,
            is_required=entry.required if entry else False,
            confidence=confidence,
            confirmed=confirmed,
        )
