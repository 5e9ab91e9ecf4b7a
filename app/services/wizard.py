"""
Import Wizard Service

Stage state machine tying ingestion, mapping, validation and execution
together. Each stage caches its output; upstream changes invalidate every
downstream output, and forward moves are gated by per-stage predicates.
"""

import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.clients.product_write_client import ProductWriteService
from app.core.errors import ErrorResponse, ImportAlreadyStarted, UnresolvedErrors
from app.core.logger import logger
from app.models.dataset import Dataset, Preview
from app.models.execution import ImportOptions, ImportPhase, ImportProgress, ImportResult
from app.models.field_catalog import FIELD_CATALOG, FieldCatalogEntry
from app.models.mapping import FieldDetectionResult, FieldMapping, MappingStatus
from app.models.validation import AutoFixSuggestion, BulkAutoFix, IssueType, ValidationResult
from app.services.execution import ImportExecutor, ProgressCallback
from app.services.field_mapping import FieldMappingEngine
from app.services.ingestion import parse_upload
from app.services.validation import ValidationEngine


class WizardStage(str, Enum):
    """Wizard stages in forward order"""
    UPLOAD = "upload"
    MAPPING = "mapping"
    VALIDATION = "validation"
    EXECUTION = "execution"

    @property
    def position(self) -> int:
        return list(WizardStage).index(self)


class ImportWizard:
    """One import session: the current stage plus the cached output of each stage"""

    def __init__(
        self,
        catalog: Optional[List[FieldCatalogEntry]] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.catalog = catalog or FIELD_CATALOG
        self.mapping_engine = FieldMappingEngine(self.catalog)
        self.validation_engine = ValidationEngine(self.catalog)

        self.stage = WizardStage.UPLOAD
        self.blocked_reasons: List[str] = []

        self.dataset: Optional[Dataset] = None
        self.preview: Optional[Preview] = None
        self.detection: Optional[FieldDetectionResult] = None
        self.mappings: List[FieldMapping] = []
        self.validation: Optional[ValidationResult] = None
        self.options = ImportOptions()
        self.executor: Optional[ImportExecutor] = None
        self.result: Optional[ImportResult] = None

    # Stage outputs

    def upload(
        self,
        content: bytes,
        filename: str,
        declared_size: Optional[int] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> Preview:
        """
        Parse a new file; mapping is re-detected and everything downstream is cleared.

        Raises:
            ImportAlreadyStarted: while a run is in flight
            FileTooLarge, MalformedFile, EmptyFile, NoHeaders: file-level errors
        """
        self._ensure_idle()
        ingestion = parse_upload(content, filename, declared_size, on_progress)

        self.dataset = ingestion.dataset
        self.preview = ingestion.preview
        self.detection = self.mapping_engine.detect(self.dataset.headers)
        self.mappings = list(self.detection.suggested_mappings)
        self._clear_validation()
        self._clear_execution()
        self.stage = WizardStage.UPLOAD
        self.blocked_reasons = []

        logger.info(
            f"Session {self.session_id}: file {filename} uploaded",
            metadata={"event": "session_file_uploaded", "session_id": self.session_id}
        )
        return self.preview

    def detect_mappings(self) -> FieldDetectionResult:
        """Re-run detection without touching the mappings in effect."""
        self._require_dataset()
        self.detection = self.mapping_engine.detect(self.dataset.headers)
        return self.detection

    def auto_apply_mappings(self) -> List[FieldMapping]:
        """Apply the latest detection, keeping operator-confirmed mappings."""
        self._ensure_idle()
        detection = self.detect_mappings()
        self._replace_mappings(self.mapping_engine.auto_apply(self.mappings, detection))
        return self.mappings

    def set_mapping(self, csv_column: str, ppm_field: str, column_index: Optional[int] = None) -> List[FieldMapping]:
        self._ensure_idle()
        self._require_dataset()
        self._replace_mappings(self.mapping_engine.set_mapping(self.mappings, csv_column, ppm_field, column_index))
        return self.mappings

    def mapping_status(self) -> MappingStatus:
        return self.mapping_engine.check(self.mappings)

    def validate(self) -> ValidationResult:
        """Validate the dataset against the current mappings, reusing a fresh result."""
        self._require_dataset()
        if self.validation is None:
            self.validation = self.validation_engine.validate(self.dataset, self.mappings)
        return self.validation

    def suggest_fixes(self, issue_type: Optional[IssueType] = None) -> BulkAutoFix:
        return self.validation_engine.suggest_fixes(self.dataset, self.validate(), issue_type)

    def apply_fixes(self, suggestion_ids: Optional[List[str]] = None) -> ValidationResult:
        """
        Apply suggested fixes and re-validate.

        Args:
            suggestion_ids: Subset of suggestions to apply, all when omitted

        Returns:
            Fresh validation result of the edited dataset
        """
        self._ensure_idle()
        suggestions = self.suggest_fixes().suggestions
        if suggestion_ids is not None:
            wanted = set(suggestion_ids)
            suggestions = [suggestion for suggestion in suggestions if suggestion.suggestion_id in wanted]
        self._clear_execution()
        return self._apply(suggestions)

    def edit_cells(self, edits: Dict[Tuple[int, int], str]) -> ValidationResult:
        """Manual corrections; validation is recomputed immediately."""
        self._ensure_idle()
        self._require_dataset()
        self.dataset = self.dataset.with_cells(edits)
        self._clear_execution()
        self.validation = self.validation_engine.validate(self.dataset, self.mappings)
        return self.validation

    def set_options(self, options: ImportOptions) -> ImportOptions:
        """Options are frozen from the moment a run is prepared until it ends."""
        self._ensure_no_open_run()
        self.options = options
        return self.options

    # Navigation

    def can_proceed(self, stage: Optional[WizardStage] = None) -> Tuple[bool, List[str]]:
        """Completion predicate of a stage and the reasons it does not hold."""
        stage = stage or self.stage

        if stage == WizardStage.UPLOAD:
            if self.dataset is None:
                return False, ["Upload a file first"]
            return True, []

        if stage == WizardStage.MAPPING:
            if self.dataset is None:
                return False, ["Upload a file first"]
            status = self.mapping_status()
            return status.is_complete, [error.message for error in status.errors]

        if stage == WizardStage.VALIDATION:
            ok, reasons = self.can_proceed(WizardStage.MAPPING)
            if not ok:
                return ok, reasons
            summary = self.validate().summary
            if summary.error_count == 0 or self.options.skip_error_rows:
                return True, []
            return False, [
                f"{summary.error_count} validation errors must be fixed, or enable skipping error rows"
            ]

        if self.executor is not None and self.executor.phase.is_terminal:
            return True, []
        return False, ["Import has not finished"]

    def go_to(self, stage: WizardStage) -> WizardStage:
        """
        Move to a stage. Backward moves always succeed and discard nothing;
        forward moves advance one stage and are a no-op when the current
        stage is not complete, leaving the reasons in blocked_reasons.
        """
        stage = WizardStage(stage)
        self.blocked_reasons = []

        if stage.position <= self.stage.position:
            self.stage = stage
            return self.stage

        if stage.position > self.stage.position + 1:
            self.blocked_reasons = [f"Complete the {self.stage.value} step first"]
            return self.stage

        ok, reasons = self.can_proceed(self.stage)
        if not ok:
            self.blocked_reasons = reasons
            logger.info(
                f"Session {self.session_id}: move to {stage.value} blocked",
                metadata={"event": "wizard_navigation_blocked", "stage": self.stage.value, "reasons": reasons}
            )
            return self.stage

        self.stage = stage
        if stage == WizardStage.VALIDATION:
            self.validate()
        return self.stage

    # Execution

    def create_executor(
        self,
        write_service: ProductWriteService,
        on_progress: Optional[ProgressCallback] = None,
        report_url_prefix: Optional[str] = None,
        publisher=None,
    ) -> ImportExecutor:
        """
        Prepare the run: apply warning fixes when enabled and check the policy.
        A finished run is discarded first, along with its progress and result.

        Raises:
            ImportAlreadyStarted: a run is already prepared or in flight
            UnresolvedErrors: errors remain and skip_error_rows is off
        """
        self._ensure_no_open_run()
        if self.executor is not None:
            self.reset_execution()

        self.mapping_engine.require_complete(self.mappings)
        while self.stage != WizardStage.EXECUTION:
            current = self.stage
            if self.go_to(list(WizardStage)[current.position + 1]) == current:
                break
        validation = self.validate()
        if validation.summary.error_count and not self.options.skip_error_rows:
            raise UnresolvedErrors(validation.summary.error_count)
        if self.stage != WizardStage.EXECUTION:
            raise ErrorResponse(
                "Import cannot start: " + "; ".join(self.blocked_reasons),
                status_code=409,
                details={"blocked_reasons": self.blocked_reasons},
            )

        if self.options.auto_fix_warnings:
            warnings = self.suggest_fixes(IssueType.WARNING).suggestions
            if warnings:
                self._apply(warnings)

        self.executor = ImportExecutor(
            write_service,
            self.options,
            on_progress=on_progress,
            report_url_prefix=report_url_prefix,
            publisher=publisher,
        )
        return self.executor

    def reset_execution(self):
        """
        Discard the prepared or finished run and return to validation; the
        next run starts with fresh progress.

        Raises:
            ImportAlreadyStarted: while a run is in flight
        """
        self._ensure_idle()
        if self.executor is not None:
            logger.info(
                f"Session {self.session_id}: previous import discarded",
                metadata={
                    "event": "import_reset",
                    "session_id": self.session_id,
                    "phase": self.executor.phase.value,
                    "status": self.result.status.value if self.result else None,
                }
            )
        self._clear_execution()

    async def run(self) -> ImportResult:
        """Run the prepared executor on the current validation result."""
        if self.executor is None:
            raise ErrorResponse("Import has not been prepared", status_code=409)
        self.result = await self.executor.run(self.validate())
        return self.result

    async def start_execution(
        self,
        write_service: ProductWriteService,
        on_progress: Optional[ProgressCallback] = None,
        report_url_prefix: Optional[str] = None,
        publisher=None,
    ) -> ImportResult:
        self.create_executor(write_service, on_progress, report_url_prefix, publisher)
        return await self.run()

    def progress(self) -> Optional[ImportProgress]:
        return self.executor.snapshot() if self.executor else None

    def snapshot(self) -> Dict[str, Any]:
        """Serialisable view of the whole session."""
        ok, reasons = self.can_proceed() if self.stage != WizardStage.EXECUTION else (False, [])
        validation = self.validation
        return {
            "session_id": self.session_id,
            "stage": self.stage.value,
            "can_proceed": ok,
            "blocked_reasons": self.blocked_reasons or reasons,
            "file": {
                "name": self.dataset.file_name,
                "size": self.dataset.file_size,
                "total_rows": self.dataset.total_rows,
                "headers": self.dataset.headers,
            } if self.dataset else None,
            "preview": self.preview.model_dump() if self.preview else None,
            "mappings": [mapping.model_dump() for mapping in self.mappings],
            "mapping_status": self.mapping_status().model_dump() if self.dataset else None,
            "validation_summary": validation.summary.model_dump() if validation else None,
            "options": self.options.model_dump(),
            "progress": self.progress().model_dump(mode="json") if self.executor else None,
            "result": self.result.model_dump(mode="json") if self.result else None,
        }

    # Internals

    def _apply(self, suggestions: List[AutoFixSuggestion]) -> ValidationResult:
        self.dataset, self.validation = self.validation_engine.apply_fixes(self.dataset, self.mappings, suggestions)
        return self.validation

    def _replace_mappings(self, mappings: List[FieldMapping]):
        self.mappings = mappings
        self._clear_validation()

    def _clear_validation(self):
        self.validation = None
        self._clear_execution()

    def _clear_execution(self):
        self.executor = None
        self.result = None
        if self.stage == WizardStage.EXECUTION:
            self.stage = WizardStage.VALIDATION

    def _run_in_flight(self) -> bool:
        return self.executor is not None and self.executor.phase.is_running

    def _ensure_idle(self):
        if self._run_in_flight():
            raise ImportAlreadyStarted(self.executor.phase.value)

    def _ensure_no_open_run(self):
        if self.executor is not None and not self.executor.phase.is_terminal:
            raise ImportAlreadyStarted(self.executor.phase.value)

    def _require_dataset(self):
        if self.dataset is None:
            raise ErrorResponse("No file uploaded", status_code=409)
