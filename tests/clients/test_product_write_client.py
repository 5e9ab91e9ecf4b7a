"""Unit tests for the Dapr product write client"""
import json

import httpx
import pytest

from app.clients.product_write_client import (
    DaprProductWriteClient,
    ProductWriteError,
    WriteServiceUnavailable,
)
from app.middleware.correlation_id import set_correlation_id
from app.models.execution import WriteAction


def client_for(handler):
    return DaprProductWriteClient(app_id="product-service", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestWriteProduct:
    """Test per-row writes through service invocation"""

    async def test_created(self):
        """Test request shape and a created product"""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"id": "p-1"})

        set_correlation_id("corr-9")
        result = await client_for(handler).write_product({"sku": "A1", "price": 9.99})

        assert result.success is True
        assert result.product_id == "p-1"
        assert result.action == WriteAction.CREATED

        request = requests[0]
        assert request.url.path == "/v1.0/invoke/product-service/method/api/products/import-row"
        assert json.loads(request.content) == {"product": {"sku": "A1", "price": 9.99}, "update_existing": False}
        assert request.headers["dapr-app-id"] == "product-service"
        assert request.headers["X-Correlation-ID"] == "corr-9"

    async def test_updated_from_body(self):
        def handler(request):
            return httpx.Response(200, json={"id": "p-1", "action": "updated"})

        result = await client_for(handler).write_product({"sku": "A1"}, update_existing=True)

        assert result.action == WriteAction.UPDATED

    async def test_duplicate_sku(self):
        def handler(request):
            return httpx.Response(409, json={"error": "SKU A1 already exists"})

        result = await client_for(handler).write_product({"sku": "A1"})

        assert result.success is False
        assert result.error_code == "DUPLICATE_SKU"
        assert result.reason == "SKU A1 already exists"

    async def test_rejected_with_code(self):
        def handler(request):
            return httpx.Response(422, json={"detail": "price too high", "code": "PRICE_LIMIT"})

        result = await client_for(handler).write_product({"sku": "A1"})

        assert result.error_code == "PRICE_LIMIT"
        assert result.reason == "price too high"

    async def test_server_error(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        result = await client_for(handler).write_product({"sku": "A1"})

        assert result.success is False
        assert result.error_code == "WRITE_SERVICE_ERROR"
        assert result.reason == "unavailable"

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(WriteServiceUnavailable):
            await client_for(handler).write_product({"sku": "A1"})

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProductWriteError) as exc_info:
            await client_for(handler).write_product({"sku": "A1"})
        assert not isinstance(exc_info.value, WriteServiceUnavailable)


@pytest.mark.asyncio
class TestBackup:
    """Test the pre-import backup call"""

    async def test_backup_id(self):
        def handler(request):
            assert json.loads(request.content) == {"import_id": "import-1"}
            return httpx.Response(200, json={"backup_id": "b-77"})

        assert await client_for(handler).create_backup("import-1") == "b-77"

    async def test_backup_failure(self):
        def handler(request):
            return httpx.Response(500, text="disk full")

        with pytest.raises(ProductWriteError):
            await client_for(handler).create_backup("import-1")

    async def test_close(self):
        client = client_for(lambda request: httpx.Response(201, json={}))
        await client.write_product({"sku": "A1"})

        await client.close()

        assert client._client is None
