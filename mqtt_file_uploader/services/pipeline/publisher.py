import asyncio
import logging

from mqtt_file_uploader.core.exceptions import PublishError
from mqtt_file_uploader.models import OutboundMessage
from mqtt_file_uploader.services.broker.connector import BrokerSession


class Publisher:
    """Hands payloads to the shared broker session. No retry, no requeue."""

    async def publish(self, session: BrokerSession, topic: str, payload: bytes) -> None:
        """
        Publish and wait for the broker client to complete the send.

        The blocking client call runs in a worker thread so the event loop
        keeps serving other notifications.

        Raises:
            PublishError: If the broker client or transport fails
        """
        message = OutboundMessage(topic=topic, payload=payload)
        try:
            await asyncio.to_thread(session.publish, message)
        except PublishError:
            raise
        except Exception as e:
            raise PublishError(f"Transport error publishing to {topic}: {e}") from e

        logging.debug(f"Published {len(payload)} bytes to {topic}")
