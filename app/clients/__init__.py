"""
Clients Package
External service clients for inter-service communication.
"""

from .event_publisher import DaprEventPublisher, get_event_publisher
from .product_write_client import (
    DaprProductWriteClient,
    ProductWriteError,
    ProductWriteService,
    WriteServiceUnavailable,
    get_product_write_client,
)

__all__ = [
    "DaprEventPublisher",
    "get_event_publisher",
    "DaprProductWriteClient",
    "ProductWriteError",
    "ProductWriteService",
    "WriteServiceUnavailable",
    "get_product_write_client",
]
