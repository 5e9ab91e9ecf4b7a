"""
Import Execution Service

Applies validated rows to the catalog write service in sequential chunks,
with pause, resume and cancellation at row boundaries and live progress/ETA.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from app.clients.event_publisher import get_event_publisher
from app.clients.product_write_client import ProductWriteService, WriteServiceUnavailable
from app.core.config import config
from app.core.errors import ImportAlreadyStarted, UnresolvedErrors
from app.core.logger import logger
from app.models.execution import (
    DownloadUrls,
    FailedRow,
    ImportOptions,
    ImportPhase,
    ImportProgress,
    ImportResult,
    ImportStatus,
    ImportSummary,
    WriteAction,
)
from app.models.validation import IssueType, ProductRow, ValidationResult

T = TypeVar("T")
ProgressCallback = Callable[[ImportProgress], None]


class RunAborted(Exception):
    """Unrecoverable run-level condition, unrelated to any single row"""


def partition_rows(rows: Sequence[T], chunk_size: int) -> List[List[T]]:
    """Split rows into sequential chunks without reordering them."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [list(rows[start:start + chunk_size]) for start in range(0, len(rows), chunk_size)]


class ImportExecutor:
    """
    Runs one import. The executor is the only writer of its ImportProgress;
    observers receive copies through on_progress or snapshot().
    """

    def __init__(
        self,
        write_service: ProductWriteService,
        options: Optional[ImportOptions] = None,
        *,
        import_id: Optional[str] = None,
        row_timeout: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        report_url_prefix: Optional[str] = None,
        publisher=None,
        abort_when_unreachable: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the executor.

        Args:
            write_service: Per-row create-or-update collaborator
            options: Operator import options, frozen for the run
            import_id: Identifier of the run, generated when omitted
            row_timeout: Seconds allowed per row write
            on_progress: Receives a progress snapshot after every state change
            report_url_prefix: Base path of downloadable reports for this run
            publisher: Event publisher used when send_notification is set
            abort_when_unreachable: Stop the run when the write service is
                unreachable before any row succeeded
            clock: Monotonic clock, injectable for tests
        """
        self.write_service = write_service
        self.options = options or ImportOptions()
        self.import_id = import_id or f"import-{uuid.uuid4().hex[:12]}"
        self.row_timeout = row_timeout or config.row_timeout_seconds
        self.on_progress = on_progress
        self.report_url_prefix = report_url_prefix
        self.publisher = publisher
        self.abort_when_unreachable = (
            config.abort_when_unreachable if abort_when_unreachable is None else abort_when_unreachable
        )
        self._clock = clock

        self._progress = ImportProgress()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._pause_requested = False
        self._cancel_requested = False
        self._started_at = 0.0
        self._paused_since: Optional[float] = None
        self._paused_total = 0.0

        self._failed_rows: List[FailedRow] = []
        self._created: List[str] = []
        self._updated: List[str] = []
        self.result: Optional[ImportResult] = None

    @property
    def phase(self) -> ImportPhase:
        return self._progress.phase

    def snapshot(self) -> ImportProgress:
        """Copy of the current progress."""
        return self._progress.model_copy()

    def pause(self) -> bool:
        """Request a pause at the next row boundary."""
        if self.phase not in (ImportPhase.PREPARING, ImportPhase.IMPORTING) or self._cancel_requested:
            return False
        self._pause_requested = True
        self._resume_event.clear()
        logger.info(f"Pause requested for import {self.import_id}", metadata={"event": "import_pause_requested"})
        return True

    def resume(self) -> bool:
        """Continue from the next unprocessed row."""
        if not self._pause_requested:
            return False
        self._pause_requested = False
        self._resume_event.set()
        return True

    def cancel(self) -> bool:
        """Stop attempting rows after the one in flight."""
        if self.phase.is_terminal:
            return False
        self._cancel_requested = True
        self._resume_event.set()
        logger.info(f"Cancel requested for import {self.import_id}", metadata={"event": "import_cancel_requested"})
        return True

    async def run(self, validation: ValidationResult) -> ImportResult:
        """
        Apply the valid rows of a validation result.

        Args:
            validation: Current validation result of the dataset

        Returns:
            Terminal ImportResult (success, partial, failed or cancelled)

        Raises:
            ImportAlreadyStarted: run() was already called on this executor
            UnresolvedErrors: errors remain and skip_error_rows is off
        """
        if self.phase != ImportPhase.IDLE:
            raise ImportAlreadyStarted(self.phase.value)

        error_count = validation.summary.error_count
        if error_count > 0 and not self.options.skip_error_rows:
            raise UnresolvedErrors(error_count)

        rows = sorted(validation.valid_rows, key=lambda row: row.row_index)
        chunks = partition_rows(rows, self.options.chunk_size)
        skipped = self._skipped_rows(validation)

        self._started_at = self._clock()
        self._progress = ImportProgress(
            phase=ImportPhase.PREPARING,
            total_chunks=len(chunks),
            total_rows=len(rows),
            start_time=datetime.now(timezone.utc),
        )
        self._publish()

        logger.info(
            f"Starting import {self.import_id}: {len(rows)} rows in {len(chunks)} chunks",
            metadata={
                "event": "import_started",
                "import_id": self.import_id,
                "total_rows": len(rows),
                "skipped_rows": len(skipped),
                "chunk_size": self.options.chunk_size,
                "dry_run": self.options.dry_run,
            }
        )

        try:
            await self._prepare()
            self._set_phase(ImportPhase.IMPORTING)
            cancelled = await self._process(chunks)
        except RunAborted as e:
            return await self._finish(ImportPhase.ERROR, skipped, error_message=str(e))

        if cancelled:
            return await self._finish(ImportPhase.CANCELLED, skipped)

        self._set_phase(ImportPhase.FINALIZING)
        return await self._finish(ImportPhase.COMPLETED, skipped)

    async def _prepare(self):
        if not self.options.create_backup or self.options.dry_run:
            return
        try:
            await asyncio.wait_for(self.write_service.create_backup(self.import_id), timeout=self.row_timeout)
        except Exception as e:
            logger.error(
                f"Backup before import {self.import_id} failed",
                error=e,
                metadata={"event": "import_backup_failed", "import_id": self.import_id},
            )
            raise RunAborted(f"Backup failed: {str(e) or type(e).__name__}")

    async def _process(self, chunks: List[List[ProductRow]]) -> bool:
        """Process all chunks; returns True when the run was cancelled."""
        for chunk_number, chunk in enumerate(chunks, start=1):
            self._progress.current_chunk = chunk_number
            logger.debug(
                f"Import {self.import_id}: chunk {chunk_number}/{len(chunks)}",
                metadata={
                    "event": "import_chunk_started",
                    "import_id": self.import_id,
                    "chunk": chunk_number,
                    "rows": len(chunk),
                }
            )

            for row in chunk:
                if not await self._checkpoint():
                    return True
                await self._write_row(row)
                self._advance(row)

        return False

    async def _checkpoint(self) -> bool:
        """Row boundary: honour pause and cancel requests."""
        if self._cancel_requested:
            return False

        if self._pause_requested:
            self._paused_since = self._clock()
            self._set_phase(ImportPhase.PAUSED)
            logger.info(
                f"Import {self.import_id} paused at row {self._progress.processed_rows}",
                metadata={"event": "import_paused", "processed_rows": self._progress.processed_rows}
            )

            await self._resume_event.wait()

            self._paused_total += self._clock() - self._paused_since
            self._paused_since = None
            if self._cancel_requested:
                return False
            self._set_phase(ImportPhase.IMPORTING)
            logger.info(f"Import {self.import_id} resumed", metadata={"event": "import_resumed"})

        return True

    async def _write_row(self, row: ProductRow):
        if self.options.dry_run:
            self._progress.success_count += 1
            return

        try:
            result = await asyncio.wait_for(
                self.write_service.write_product(row.data, update_existing=self.options.update_existing),
                timeout=self.row_timeout,
            )
        except asyncio.TimeoutError:
            self._record_failure(row, f"Write timed out after {self.row_timeout:g}s")
            return
        except WriteServiceUnavailable as e:
            if self.abort_when_unreachable and self._progress.success_count == 0:
                raise RunAborted(str(e))
            self._record_failure(row, str(e))
            return
        except Exception as e:
            logger.error(
                f"Row {row.row_index + 1} failed: {str(e)}",
                error=e,
                metadata={"event": "import_row_failed", "import_id": self.import_id, "row": row.row_index},
            )
            self._record_failure(row, str(e) or type(e).__name__)
            return

        if not result.success:
            reason = result.reason or "Write rejected"
            if result.error_code:
                reason = f"{result.error_code}: {reason}"
            self._record_failure(row, reason)
            return

        self._progress.success_count += 1
        product_id = result.product_id or str(row.data.get("sku", row.row_index))
        if result.action == WriteAction.UPDATED:
            self._updated.append(product_id)
        else:
            self._created.append(product_id)

    def _record_failure(self, row: ProductRow, reason: str):
        self._progress.error_count += 1
        self._failed_rows.append(FailedRow(row_index=row.row_index, data=row.data, errors=[reason]))

    def _advance(self, row: ProductRow):
        progress = self._progress
        progress.processed_rows += 1
        progress.warning_count += len(row.issues)

        active = self._clock() - self._started_at - self._paused_total
        if active > 0:
            progress.rows_per_second = round(progress.processed_rows / active, 2)
            remaining = progress.total_rows - progress.processed_rows
            progress.estimated_time_left = round(remaining / (progress.processed_rows / active), 2)
        else:
            progress.estimated_time_left = None

        self._publish()

    def _skipped_rows(self, validation: ValidationResult) -> List[FailedRow]:
        messages: Dict[int, List[str]] = {}
        for issue in validation.issues:
            if issue.type == IssueType.ERROR:
                messages.setdefault(issue.row, []).append(f"{issue.column}: {issue.message}")
        return [
            FailedRow(row_index=row, errors=messages.get(row, []), skipped=True)
            for row in validation.summary.error_rows
        ]

    def _set_phase(self, phase: ImportPhase):
        self._progress.phase = phase
        self._publish()

    def _publish(self):
        if self.on_progress is not None:
            self.on_progress(self.snapshot())

    def _status(self, phase: ImportPhase, skipped: List[FailedRow]) -> ImportStatus:
        progress = self._progress
        if phase == ImportPhase.CANCELLED:
            return ImportStatus.CANCELLED
        if phase == ImportPhase.ERROR:
            return ImportStatus.FAILED
        if progress.total_rows == 0:
            return ImportStatus.FAILED if skipped else ImportStatus.SUCCESS
        if progress.error_count == 0:
            return ImportStatus.SUCCESS
        if progress.error_count < progress.total_rows:
            return ImportStatus.PARTIAL
        return ImportStatus.FAILED

    async def _finish(
        self,
        phase: ImportPhase,
        skipped: List[FailedRow],
        error_message: Optional[str] = None,
    ) -> ImportResult:
        progress = self._progress
        duration = round(self._clock() - self._started_at, 3)
        status = self._status(phase, skipped)

        progress.phase = phase
        progress.estimated_time_left = 0.0 if phase == ImportPhase.COMPLETED else None

        result = ImportResult(
            import_id=self.import_id,
            status=status,
            total_rows=progress.total_rows,
            processed_rows=progress.processed_rows,
            success_count=progress.success_count,
            error_count=progress.error_count,
            warning_count=progress.warning_count,
            duration=duration,
            created_products=list(self._created),
            updated_products=list(self._updated),
            failed_rows=sorted(self._failed_rows, key=lambda row: row.row_index),
            skipped_rows=skipped,
            summary=ImportSummary(
                new_products=len(self._created),
                updated_products=len(self._updated),
                skipped_rows=len(skipped),
                total_processed=progress.processed_rows,
            ),
            download_urls=self._download_urls(skipped),
            error_message=error_message,
            dry_run=self.options.dry_run,
        )

        if self.options.send_notification:
            result = result.model_copy(update={"notification_sent": await self._notify(result)})

        self.result = result
        self._publish()

        log = logger.error if phase == ImportPhase.ERROR else logger.info
        log(
            f"Import {self.import_id} finished with status {status.value}",
            metadata={
                "event": "import_completed",
                "import_id": self.import_id,
                "status": status.value,
                "processed_rows": progress.processed_rows,
                "success_count": progress.success_count,
                "error_count": progress.error_count,
                "skipped_rows": len(skipped),
            }
        )
        logger.performance("bulk_import", int(duration * 1000), metadata={"import_id": self.import_id})

        return result

    def _download_urls(self, skipped: List[FailedRow]) -> DownloadUrls:
        if not self.report_url_prefix:
            return DownloadUrls()
        prefix = self.report_url_prefix.rstrip("/")
        return DownloadUrls(
            error_report=f"{prefix}/failed-rows.csv" if self._failed_rows or skipped else None,
            full_report=f"{prefix}/import-result.csv",
            validation_report=f"{prefix}/validation-issues.csv",
        )

    async def _notify(self, result: ImportResult) -> bool:
        publisher = self.publisher
        if publisher is None:
            publisher = get_event_publisher()

        return await publisher.publish_import_completed({
            "importId": result.import_id,
            "status": result.status.value,
            "totalRows": result.total_rows,
            "successCount": result.success_count,
            "errorCount": result.error_count,
            "skippedRows": len(result.skipped_rows),
            "durationSeconds": result.duration,
            "completedAt": datetime.now(timezone.utc).isoformat(),
        })
