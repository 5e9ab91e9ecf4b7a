"""Shared test fixtures"""
import csv
import io
from typing import Any, Callable, Dict, List, Optional

import pytest

from app.models.execution import WriteAction, WriteResult
from app.services.field_mapping import FieldMappingEngine
from app.services.ingestion import parse_upload
from app.services.validation import ValidationEngine


class FakeWriteService:
    """In-memory stand-in for the catalog write service"""

    def __init__(
        self,
        fail_skus: Optional[set] = None,
        existing_skus: Optional[set] = None,
        on_write: Optional[Callable[[int, Dict[str, Any]], Any]] = None,
        backup_error: Optional[Exception] = None,
    ):
        self.fail_skus = fail_skus or set()
        self.existing_skus = existing_skus or set()
        self.on_write = on_write
        self.backup_error = backup_error
        self.written: List[Dict[str, Any]] = []
        self.backups: List[str] = []

    async def write_product(self, record: Dict[str, Any], update_existing: bool = False) -> WriteResult:
        self.written.append(record)
        if self.on_write is not None:
            outcome = self.on_write(len(self.written), record)
            if hasattr(outcome, "__await__"):
                await outcome

        sku = record.get("sku")
        if sku in self.fail_skus:
            return WriteResult(success=False, error_code="REJECTED", reason=f"{sku} rejected")
        if sku in self.existing_skus:
            if not update_existing:
                return WriteResult(success=False, error_code="DUPLICATE_SKU", reason=f"{sku} already exists")
            return WriteResult(success=True, product_id=f"id-{sku}", action=WriteAction.UPDATED)
        return WriteResult(success=True, product_id=f"id-{sku}", action=WriteAction.CREATED)

    async def create_backup(self, import_id: str) -> str:
        if self.backup_error is not None:
            raise self.backup_error
        self.backups.append(import_id)
        return f"backup-{import_id}"


class FakePublisher:
    """Records published import-completed events"""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.events: List[Dict[str, Any]] = []

    async def publish_import_completed(self, result_data: Dict[str, Any]) -> bool:
        self.events.append(result_data)
        return self.succeed


def make_csv(headers: List[str], rows: List[List[Any]], delimiter: str = ",") -> bytes:
    """Build CSV upload bytes"""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue().encode("utf-8")


def product_rows(count: int, start: int = 1) -> List[List[str]]:
    """Valid SKU/Name/Price rows"""
    return [[f"SKU-{i:04d}", f"Product {i}", f"{10 + i % 50}.99"] for i in range(start, start + count)]


@pytest.fixture
def fake_write_service():
    return FakeWriteService()


@pytest.fixture
def write_service_factory():
    """Build a FakeWriteService with failures, existing SKUs or hooks"""
    return FakeWriteService


@pytest.fixture
def csv_bytes():
    """make_csv as a fixture"""
    return make_csv


@pytest.fixture
def rows_of_products():
    """product_rows as a fixture"""
    return product_rows


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def mapping_engine():
    return FieldMappingEngine()


@pytest.fixture
def validation_engine():
    return ValidationEngine()


@pytest.fixture
def scenario_csv():
    """Three rows: a duplicate SKU and a missing SKU"""
    return make_csv(
        ["SKU", "Name", "Price"],
        [["A1", "Widget", "9.99"], ["A1", "Gadget", "14.99"], ["", "Gizmo", "5"]],
    )


@pytest.fixture
def load_mapped(mapping_engine):
    """Parse bytes and auto-map them; returns (dataset, mappings)"""
    def _load(content: bytes, filename: str = "products.csv"):
        dataset = parse_upload(content, filename).dataset
        mappings = mapping_engine.detect(dataset.headers).suggested_mappings
        return dataset, mappings
    return _load


@pytest.fixture
def validated(load_mapped, validation_engine):
    """Parse, map and validate bytes; returns (dataset, mappings, result)"""
    def _validate(content: bytes, filename: str = "products.csv"):
        dataset, mappings = load_mapped(content, filename)
        return dataset, mappings, validation_engine.validate(dataset, mappings)
    return _validate
