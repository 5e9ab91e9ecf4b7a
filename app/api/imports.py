"""
Import wizard API endpoints
Session-based upload, mapping, validation and execution of bulk product imports
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Response, UploadFile, status

from app.clients.event_publisher import DaprEventPublisher
from app.clients.product_write_client import ProductWriteService
from app.core.config import config
from app.core.errors import ErrorResponse, ErrorResponseModel
from app.core.logger import logger
from app.dependencies.imports import (
    ImportSessionStore,
    get_import_session,
    get_publisher,
    get_reports,
    get_session_store,
    get_write_service,
)
from app.middleware.correlation_id import set_import_session_id
from app.models.execution import ImportOptions, ImportProgress, ImportResult
from app.models.field_catalog import FIELD_CATALOG, FIELD_GROUPS
from app.models.mapping import FieldDetectionResult
from app.models.validation import BulkAutoFix, IssueType, ValidationResult
from app.schemas.imports import (
    AutoFixApplyRequest,
    CatalogResponse,
    CellEditRequest,
    ControlResponse,
    MappingsResponse,
    MappingUpdate,
    NavigationRequest,
    NavigationResponse,
    ValidationSummaryResponse,
)
from app.services.reports import ReportService
from app.services.wizard import ImportWizard

router = APIRouter()

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(content, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _reports_prefix(wizard: ImportWizard) -> str:
    return f"{config.api_prefix}/imports/sessions/{wizard.session_id}/reports"


def _mappings_response(wizard: ImportWizard) -> MappingsResponse:
    return MappingsResponse(mappings=wizard.mappings, status=wizard.mapping_status())


def _summary_response(result: ValidationResult) -> ValidationSummaryResponse:
    return ValidationSummaryResponse(is_valid=result.is_valid, summary=result.summary)


def _upload_progress(session_id: str):
    def log_tick(percentage: int):
        logger.debug(
            f"Session {session_id}: file parsed {percentage}%",
            metadata={"event": "upload_progress", "session_id": session_id, "percentage": percentage}
        )
    return log_tick


# Catalog and templates

@router.get("/fields", response_model=CatalogResponse)
async def list_fields():
    """Catalog fields a column can be mapped to, with their constraints."""
    return CatalogResponse(fields=FIELD_CATALOG, groups=FIELD_GROUPS)


@router.get("/template")
async def download_template(
    format: str = Query("csv", pattern="^(csv|xlsx)$", description="Template file format"),
    reports: ReportService = Depends(get_reports),
):
    """Download an import template listing every catalog field with sample rows."""
    if format == "xlsx":
        return _attachment(reports.template_xlsx(), XLSX_MEDIA_TYPE, "product-import-template.xlsx")
    return _attachment(reports.template_csv(), CSV_MEDIA_TYPE, "product-import-template.csv")


# Sessions

@router.post(
    "/sessions",
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponseModel}, 413: {"model": ErrorResponseModel}},
)
async def create_session(
    file: UploadFile = File(..., description="CSV or Excel file with product data"),
    store: ImportSessionStore = Depends(get_session_store),
):
    """
    Start an import session from an uploaded file.

    The file is parsed, columns are auto-mapped and the session snapshot is
    returned. File-level errors (too large, malformed, empty, no headers)
    reject the upload and no session is kept.
    """
    content = await file.read()
    wizard = store.create()
    set_import_session_id(wizard.session_id)
    try:
        wizard.upload(
            content,
            file.filename or "upload.csv",
            declared_size=file.size,
            on_progress=_upload_progress(wizard.session_id),
        )
    except ErrorResponse:
        store.delete(wizard.session_id)
        raise

    logger.info(
        f"Import session created: {wizard.session_id}",
        metadata={
            "event": "import_session_created",
            "session_id": wizard.session_id,
            "file_name": file.filename,
            "total_rows": wizard.dataset.total_rows,
        }
    )
    return wizard.snapshot()


@router.get("/sessions/{session_id}")
async def get_session(wizard: ImportWizard = Depends(get_import_session)):
    return wizard.snapshot()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, store: ImportSessionStore = Depends(get_session_store)):
    """Discard a session; a running import is cancelled at the next row boundary."""
    store.delete(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/file", responses={400: {"model": ErrorResponseModel}})
async def replace_file(
    file: UploadFile = File(...),
    wizard: ImportWizard = Depends(get_import_session),
):
    """Upload a new file into the session; mapping and validation start over."""
    content = await file.read()
    wizard.upload(
        content,
        file.filename or "upload.csv",
        declared_size=file.size,
        on_progress=_upload_progress(wizard.session_id),
    )
    return wizard.snapshot()


@router.post("/sessions/{session_id}/navigate", response_model=NavigationResponse)
async def navigate(request: NavigationRequest, wizard: ImportWizard = Depends(get_import_session)):
    """Move between wizard stages; blocked forward moves report why."""
    previous = wizard.stage
    stage = wizard.go_to(request.stage)
    return NavigationResponse(
        stage=stage,
        moved=stage != previous,
        blocked_reasons=wizard.blocked_reasons,
    )


# Mapping

@router.post("/sessions/{session_id}/mappings/detect", response_model=FieldDetectionResult)
async def detect_mappings(wizard: ImportWizard = Depends(get_import_session)):
    """Suggest mappings without changing the ones in effect."""
    return wizard.detect_mappings()


@router.post("/sessions/{session_id}/mappings/auto-apply", response_model=MappingsResponse)
async def auto_apply_mappings(wizard: ImportWizard = Depends(get_import_session)):
    """Apply detected mappings, keeping operator-confirmed columns."""
    wizard.auto_apply_mappings()
    return _mappings_response(wizard)


@router.put(
    "/sessions/{session_id}/mappings",
    response_model=MappingsResponse,
    responses={404: {"model": ErrorResponseModel}, 422: {"model": ErrorResponseModel}},
)
async def update_mapping(update: MappingUpdate, wizard: ImportWizard = Depends(get_import_session)):
    wizard.set_mapping(update.csv_column, update.ppm_field, update.column_index)
    return _mappings_response(wizard)


@router.get("/sessions/{session_id}/mappings", response_model=MappingsResponse)
async def get_mappings(wizard: ImportWizard = Depends(get_import_session)):
    return _mappings_response(wizard)


# Validation

@router.get(
    "/sessions/{session_id}/validation",
    response_model=ValidationResult,
    responses={422: {"model": ErrorResponseModel}},
)
async def get_validation(wizard: ImportWizard = Depends(get_import_session)):
    """Full validation result; mapping errors are returned as 422."""
    return wizard.validate()


@router.get("/sessions/{session_id}/autofix", response_model=BulkAutoFix)
async def get_autofix_suggestions(
    type: Optional[IssueType] = Query(None, description="Only errors or only warnings"),
    wizard: ImportWizard = Depends(get_import_session),
):
    return wizard.suggest_fixes(type)


@router.post("/sessions/{session_id}/autofix", response_model=ValidationSummaryResponse)
async def apply_autofix(
    request: Optional[AutoFixApplyRequest] = None,
    wizard: ImportWizard = Depends(get_import_session),
):
    """Apply suggestions and re-validate."""
    suggestion_ids = request.suggestion_ids if request else None
    return _summary_response(wizard.apply_fixes(suggestion_ids))


@router.patch("/sessions/{session_id}/cells", response_model=ValidationSummaryResponse)
async def edit_cells(request: CellEditRequest, wizard: ImportWizard = Depends(get_import_session)):
    """Correct cells by hand; validation is recomputed."""
    try:
        result = wizard.edit_cells({(edit.row, edit.column_index): edit.value for edit in request.edits})
    except IndexError as e:
        raise ErrorResponse(str(e), status_code=400)
    return _summary_response(result)


# Execution

@router.put("/sessions/{session_id}/options", response_model=ImportOptions)
async def set_options(options: ImportOptions, wizard: ImportWizard = Depends(get_import_session)):
    return wizard.set_options(options)


@router.post(
    "/sessions/{session_id}/execute",
    status_code=status.HTTP_202_ACCEPTED,
    responses={409: {"model": ErrorResponseModel}, 422: {"model": ErrorResponseModel}},
)
async def execute_import(
    background_tasks: BackgroundTasks,
    wait: bool = Query(False, description="Respond with the final result instead of progress"),
    wizard: ImportWizard = Depends(get_import_session),
    write_service: ProductWriteService = Depends(get_write_service),
    publisher: DaprEventPublisher = Depends(get_publisher),
):
    """
    Start the import run.

    By default the run continues in the background and the response carries
    the initial progress; poll /progress and /result. With wait=true the
    response is the final ImportResult. A finished run is replaced.
    """
    wizard.create_executor(
        write_service,
        report_url_prefix=_reports_prefix(wizard),
        publisher=publisher,
    )

    if wait:
        return (await wizard.run()).model_dump(mode="json")

    background_tasks.add_task(wizard.run)
    return wizard.progress().model_dump(mode="json")


@router.post("/sessions/{session_id}/pause", response_model=ControlResponse)
async def pause_import(wizard: ImportWizard = Depends(get_import_session)):
    executor = _require_executor(wizard)
    return ControlResponse(accepted=executor.pause(), phase=executor.phase.value)


@router.post("/sessions/{session_id}/resume", response_model=ControlResponse)
async def resume_import(wizard: ImportWizard = Depends(get_import_session)):
    executor = _require_executor(wizard)
    return ControlResponse(accepted=executor.resume(), phase=executor.phase.value)


@router.post("/sessions/{session_id}/cancel", response_model=ControlResponse)
async def cancel_import(wizard: ImportWizard = Depends(get_import_session)):
    executor = _require_executor(wizard)
    return ControlResponse(accepted=executor.cancel(), phase=executor.phase.value)


@router.post("/sessions/{session_id}/reset", responses={409: {"model": ErrorResponseModel}})
async def reset_import(wizard: ImportWizard = Depends(get_import_session)):
    """Discard a finished import so a new one can be configured and started."""
    wizard.reset_execution()
    return wizard.snapshot()


@router.get("/sessions/{session_id}/progress", response_model=ImportProgress)
async def get_progress(wizard: ImportWizard = Depends(get_import_session)):
    return _require_executor(wizard).snapshot()


@router.get("/sessions/{session_id}/result", response_model=ImportResult)
async def get_result(wizard: ImportWizard = Depends(get_import_session)):
    return _require_result(wizard)


# Reports

@router.get("/sessions/{session_id}/reports/validation-issues.csv")
async def download_validation_report(
    wizard: ImportWizard = Depends(get_import_session),
    reports: ReportService = Depends(get_reports),
):
    """Validation issues as CSV: Row, Column, Type, Message, Value, Suggestion."""
    content = reports.validation_report_csv(wizard.validate().issues)
    return _attachment(content, CSV_MEDIA_TYPE, f"validation-issues-{wizard.session_id}.csv")


@router.get("/sessions/{session_id}/reports/failed-rows.csv")
async def download_failed_rows(
    wizard: ImportWizard = Depends(get_import_session),
    reports: ReportService = Depends(get_reports),
):
    result = _require_result(wizard)
    content = reports.failed_rows_csv(result, wizard.dataset)
    return _attachment(content, CSV_MEDIA_TYPE, f"failed-rows-{result.import_id}.csv")


@router.get("/sessions/{session_id}/reports/import-result.csv")
async def download_import_result(
    wizard: ImportWizard = Depends(get_import_session),
    reports: ReportService = Depends(get_reports),
):
    result = _require_result(wizard)
    return _attachment(reports.import_result_csv(result), CSV_MEDIA_TYPE, f"import-result-{result.import_id}.csv")


def _require_executor(wizard: ImportWizard):
    if wizard.executor is None:
        raise ErrorResponse("Import has not been started", status_code=409)
    return wizard.executor


def _require_result(wizard: ImportWizard) -> ImportResult:
    if wizard.result is None:
        raise ErrorResponse("Import has not finished", status_code=409)
    return wizard.result
