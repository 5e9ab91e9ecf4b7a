"""
Dapr Event Publisher
Publishes import lifecycle events via Dapr Pub/Sub using the CloudEvents specification
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from app.core.config import config
from app.core.logger import logger
from app.middleware.correlation_id import get_correlation_id

IMPORT_COMPLETED_EVENT = "com.aioutlet.product.bulk.import.completed.v1"


class DaprEventPublisher:
    """Publisher for sending events via Dapr Pub/Sub"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.dapr_http_port = config.dapr_http_port
        self.dapr_pubsub_name = config.pubsub_name
        self.dapr_url = f"http://localhost:{self.dapr_http_port}"
        self.service_name = config.service_name
        self._transport = transport

    async def publish(
        self,
        topic: str,
        data: Dict[str, Any],
        event_type: str,
        correlation_id: Optional[str] = None,
    ) -> bool:
        """
        Publish an event to Dapr Pub/Sub.

        Args:
            topic: The topic to publish to (e.g., 'product.bulk.import.completed')
            data: The event payload (the 'data' field in CloudEvents)
            event_type: The CloudEvents type
            correlation_id: Defaults to the correlation ID of the current request

        Returns:
            bool: True if published successfully, False otherwise
        """
        correlation_id = correlation_id or get_correlation_id()
        now = datetime.now(timezone.utc)
        event_id = f"{self.service_name}-{now.strftime('%Y%m%d%H%M%S%f')}"

        cloud_event = {
            "specversion": "1.0",
            "type": event_type,
            "source": self.service_name,
            "id": event_id,
            "time": now.isoformat(),
            "datacontenttype": "application/json",
            "data": data,
        }
        headers = {"Content-Type": "application/cloudevents+json"}
        if correlation_id:
            cloud_event["correlationid"] = correlation_id
            headers[config.correlation_id_header] = correlation_id

        # Dapr publish endpoint: POST /v1.0/publish/{pubsubname}/{topic}
        publish_url = f"{self.dapr_url}/v1.0/publish/{self.dapr_pubsub_name}/{topic}"
        metadata = {
            "event": "event_publish",
            "eventId": event_id,
            "eventType": event_type,
            "topic": topic,
            "daprPubSubName": self.dapr_pubsub_name,
        }

        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.post(publish_url, json=cloud_event, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"Timeout publishing event to Dapr: {event_type}", metadata=metadata)
            return False
        except httpx.HTTPError as e:
            logger.error(
                f"Cannot reach Dapr sidecar: {str(e)}",
                error=e,
                metadata={**metadata, "hint": f"Ensure Dapr sidecar is running on port {self.dapr_http_port}"},
            )
            return False

        if response.status_code in (200, 204):
            logger.info(f"Published event to Dapr: {event_type}", metadata=metadata)
            return True

        logger.error(
            f"Failed to publish event to Dapr: {event_type}",
            metadata={**metadata, "statusCode": response.status_code, "response": response.text},
        )
        return False

    async def publish_import_completed(self, result_data: Dict[str, Any]) -> bool:
        """Announce a finished import run."""
        return await self.publish(config.import_completed_topic, result_data, IMPORT_COMPLETED_EVENT)


# Singleton instance
_publisher: Optional[DaprEventPublisher] = None


def get_event_publisher() -> DaprEventPublisher:
    """Get singleton Dapr publisher instance"""
    global _publisher
    if _publisher is None:
        _publisher = DaprEventPublisher()
    return _publisher
