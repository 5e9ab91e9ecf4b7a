"""
Ingestion Service

Turns raw upload bytes into a Dataset plus a bounded preview.
Delimited text is read with the csv module, .xlsx workbooks with openpyxl.
"""

import csv
import io
from datetime import date, datetime
from typing import Any, Callable, Iterator, List, Optional, Tuple

try:
    from openpyxl import load_workbook
except ImportError:
    raise ImportError(
        "openpyxl is required for spreadsheet imports. "
        "Install it with: pip install openpyxl"
    )

from app.core.config import config
from app.core.errors import EmptyFile, FileTooLarge, MalformedFile, NoHeaders
from app.core.logger import logger
from app.models.dataset import Dataset, IngestionResult, Preview, SourceFormat

ProgressCallback = Callable[[int], None]

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")
PROGRESS_STEP = 10
# Reading the file covers progress up to here; row alignment finishes it
READ_SHARE = 90


class ProgressTicker:
    """Forwards each multiple of PROGRESS_STEP once, in order, up to the given percentage."""

    def __init__(self, on_progress: Optional[ProgressCallback]):
        self._on_progress = on_progress
        self._next = 0

    def update(self, percentage: int):
        if self._on_progress is None:
            return
        while self._next <= min(percentage, 100):
            self._on_progress(self._next)
            self._next += PROGRESS_STEP


def parse_upload(
    content: bytes,
    filename: str,
    declared_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> IngestionResult:
    """
    Parse an uploaded file into a Dataset.

    Args:
        content: Raw file bytes
        filename: Original filename, the .xlsx extension selects the workbook reader
        declared_size: Size reported by the client, checked before parsing
        on_progress: Receives coarse percentage ticks (0, 10, ..., 100)

    Returns:
        IngestionResult with the dataset and a preview of the first rows

    Raises:
        FileTooLarge, MalformedFile, EmptyFile, NoHeaders
    """
    file_size = max(declared_size or 0, len(content))
    if file_size > config.max_file_size:
        raise FileTooLarge(file_size, config.max_file_size)

    ticker = ProgressTicker(on_progress)
    ticker.update(0)

    if filename.lower().endswith(".xlsx"):
        raw_rows = _read_workbook(content, ticker)
        delimiter = None
        source_format = SourceFormat.XLSX
    else:
        raw_rows, delimiter = _read_delimited(content, ticker)
        source_format = SourceFormat.CSV

    if not any(cell.strip() for row in raw_rows for cell in row):
        raise EmptyFile(filename)

    headers = _extract_headers(raw_rows[0], filename)
    rows, warnings = _align_rows(raw_rows[1:], len(headers))

    if not rows:
        raise EmptyFile(filename)
    ticker.update(100)

    dataset = Dataset(
        headers=headers,
        rows=rows,
        file_name=filename,
        file_size=file_size,
        delimiter=delimiter,
        source_format=source_format,
    )
    preview = Preview(
        headers=headers,
        sample_rows=[list(row) for row in rows[:config.preview_rows]],
        total_rows=dataset.total_rows,
        delimiter=delimiter,
        warnings=warnings,
    )

    logger.info(
        f"Parsed {filename}: {dataset.total_rows} rows, {len(headers)} columns",
        metadata={
            "event": "file_parsed",
            "file_name": filename,
            "file_size": file_size,
            "total_rows": dataset.total_rows,
            "columns": len(headers),
            "format": source_format.value,
            "warnings": len(warnings),
        }
    )

    return IngestionResult(dataset=dataset, preview=preview)


def detect_delimiter(header_line: str) -> str:
    """Pick the candidate delimiter that splits the header line most often, comma otherwise."""
    best, best_count = ",", 0
    for candidate in CANDIDATE_DELIMITERS:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def _read_delimited(content: bytes, ticker: ProgressTicker) -> Tuple[List[List[str]], str]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedFile("file is not valid UTF-8 text", position=e.start)

    if not text.strip():
        return [], ","

    delimiter = detect_delimiter(text.lstrip("\r\n").splitlines()[0])
    # A cell may be as large as the upload itself
    csv.field_size_limit(max(csv.field_size_limit(), config.max_file_size))
    reader = csv.reader(_tracked_lines(text, ticker), delimiter=delimiter, strict=True)
    try:
        rows = [row for row in reader]
    except csv.Error as e:
        raise MalformedFile(str(e), line=reader.line_num)

    # Leading empty lines never hold the header row; a row of blank cells does
    while rows and len(rows[0]) <= 1 and not "".join(rows[0]).strip():
        rows.pop(0)

    return rows, delimiter


def _read_workbook(content: bytes, ticker: ProgressTicker) -> List[List[str]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise MalformedFile(f"unreadable spreadsheet ({type(e).__name__})")

    try:
        sheet = workbook.active
        total = sheet.max_row or 0
        rows = []
        for position, row in enumerate(sheet.iter_rows(values_only=True), start=1):
            rows.append([_cell_to_text(value) for value in row])
            if total:
                ticker.update(position * READ_SHARE // total)
    finally:
        workbook.close()

    while rows and not any(cell.strip() for cell in rows[0]):
        rows.pop(0)

    return rows


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _extract_headers(header_row: List[str], filename: str) -> List[str]:
    headers = [cell.strip() for cell in header_row]

    # Trailing empty cells are spreadsheet padding, not columns
    while headers and not headers[-1]:
        headers.pop()

    if not headers:
        raise NoHeaders(filename)

    blank = [index + 1 for index, header in enumerate(headers) if not header]
    if blank:
        raise MalformedFile("empty header cell", columns=blank)

    return headers


def _align_rows(raw_rows: List[List[str]], width: int) -> Tuple[List[List[str]], List[str]]:
    rows: List[List[str]] = []
    warnings: List[str] = []

    for raw in raw_rows:
        if not any(cell.strip() for cell in raw):
            continue

        if len(raw) > width:
            extra = raw[width:]
            if any(cell.strip() for cell in extra):
                warnings.append(
                    f"Row {len(rows) + 1} has {len(raw)} cells, "
                    f"{len(raw) - width} extra value(s) were dropped"
                )
            row = raw[:width]
        else:
            row = raw + [""] * (width - len(raw))

        rows.append(row)

    return rows, warnings


def _tracked_lines(text: str, ticker: ProgressTicker) -> Iterator[str]:
    """Feed the csv reader line by line, reporting how much of the text was read."""
    total = len(text)
    consumed = 0
    for line in io.StringIO(text, newline=""):
        consumed += len(line)
        ticker.update(consumed * READ_SHARE // total)
        yield line
