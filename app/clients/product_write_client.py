"""
Product Write Service Client
Writes imported rows to the catalog service through Dapr service invocation.
The executor depends only on the ProductWriteService protocol, so tests and
dry runs can swap in other implementations.
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from app.core.config import config
from app.core.logger import logger
from app.middleware.correlation_id import get_correlation_id
from app.models.execution import WriteAction, WriteResult


class ProductWriteError(Exception):
    """Write service call failed without a typed row-level reason"""


class WriteServiceUnavailable(ProductWriteError):
    """Write service (or its Dapr sidecar) could not be reached"""


class ProductWriteService(Protocol):
    """Per-row create-or-update operation of the catalog"""

    async def write_product(self, record: Dict[str, Any], update_existing: bool = False) -> WriteResult:
        ...

    async def create_backup(self, import_id: str) -> str:
        ...


class DaprProductWriteClient:
    """
    Catalog write client using Dapr's service invocation building block.
    No retries at this layer: a row write is not assumed to be idempotent.
    """

    def __init__(
        self,
        app_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.dapr_http_port = config.dapr_http_port
        self.base_url = f"http://localhost:{self.dapr_http_port}"
        self.app_id = app_id or config.write_service_app_id
        self.timeout = timeout or config.row_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Product write client initialized",
            metadata={
                "event": "write_client_init",
                "dapr_port": self.dapr_http_port,
                "app_id": self.app_id,
            }
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "dapr-app-id": self.app_id,
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[config.correlation_id_header] = correlation_id
        return headers

    def _method_url(self, method_name: str) -> str:
        # Format: /v1.0/invoke/<app-id>/method/<method-name>
        return f"/v1.0/invoke/{self.app_id}/method/{method_name}"

    async def _post(self, method_name: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            return await self._get_client().post(
                self._method_url(method_name),
                json=payload,
                headers=self._get_headers(),
            )
        except httpx.ConnectError as e:
            logger.error(
                f"Cannot connect to write service {self.app_id}: {str(e)}",
                metadata={
                    "event": "write_service_unreachable",
                    "app_id": self.app_id,
                    "method": method_name,
                    "hint": f"Ensure Dapr sidecar is running on port {self.dapr_http_port}",
                }
            )
            raise WriteServiceUnavailable(f"Failed to connect to service {self.app_id}: {str(e)}")
        except httpx.TimeoutException:
            raise ProductWriteError(f"Request to {self.app_id}/{method_name} timed out")
        except httpx.HTTPError as e:
            raise ProductWriteError(f"Request to {self.app_id}/{method_name} failed: {str(e)}")

    async def write_product(self, record: Dict[str, Any], update_existing: bool = False) -> WriteResult:
        """
        Create or update one product.

        Args:
            record: Typed product fields keyed by catalog key
            update_existing: Update the product when its SKU already exists

        Returns:
            WriteResult; rejected rows come back as success=False with a reason

        Raises:
            WriteServiceUnavailable: sidecar or service not reachable
            ProductWriteError: transport failure
        """
        response = await self._post(
            config.write_service_method,
            {"product": record, "update_existing": update_existing},
        )
        return self._to_write_result(response)

    async def create_backup(self, import_id: str) -> str:
        """
        Ask the catalog service to snapshot products before an import.

        Returns:
            Backup identifier reported by the service
        """
        response = await self._post(config.backup_method, {"import_id": import_id})
        if response.status_code >= 400:
            raise ProductWriteError(f"Backup failed with status {response.status_code}: {response.text}")

        body = _json_or_empty(response)
        backup_id = str(body.get("backup_id") or body.get("id") or import_id)
        logger.info(
            f"Catalog backup created: {backup_id}",
            metadata={"event": "catalog_backup_created", "import_id": import_id, "backup_id": backup_id}
        )
        return backup_id

    def _to_write_result(self, response: httpx.Response) -> WriteResult:
        body = _json_or_empty(response)

        if response.status_code < 400:
            action = body.get("action")
            if action not in (WriteAction.CREATED.value, WriteAction.UPDATED.value):
                action = WriteAction.CREATED.value if response.status_code == 201 else WriteAction.UPDATED.value
            return WriteResult(
                success=True,
                product_id=str(body.get("id") or body.get("product_id") or "") or None,
                action=action,
            )

        reason = body.get("error") or body.get("detail") or body.get("message") or response.text
        if response.status_code == 409:
            error_code = "DUPLICATE_SKU"
        elif response.status_code < 500:
            error_code = body.get("code") or "REJECTED"
        else:
            error_code = "WRITE_SERVICE_ERROR"

        logger.warning(
            f"Write service rejected product: {reason}",
            metadata={
                "event": "product_write_rejected",
                "app_id": self.app_id,
                "status_code": response.status_code,
                "error_code": error_code,
            }
        )
        return WriteResult(success=False, error_code=error_code, reason=str(reason))

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# Global instance
_write_client: Optional[DaprProductWriteClient] = None


def get_product_write_client() -> DaprProductWriteClient:
    """
    Get the global product write client instance.
    Creates a new instance if one doesn't exist.

    Returns:
        DaprProductWriteClient instance
    """
    global _write_client
    if _write_client is None:
        _write_client = DaprProductWriteClient()
    return _write_client
