import logging
import ssl
import threading
import uuid
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.core.exceptions import (
    BrokerConnectionError,
    CertificateValidationError,
    PublishError,
)
from mqtt_file_uploader.models import OutboundMessage
from .tls import build_tls_context, describe_verification_error

PROTOCOL_VERSIONS = {
    3: mqtt.MQTTv31,
    4: mqtt.MQTTv311,
    5: mqtt.MQTTv5,
}

# How often a blocked publish re-checks whether the connection is still up
PUBLISH_POLL_SECONDS = 0.1

ClientFactory = Callable[..., mqtt.Client]


class BrokerSession:
    """
    A live broker connection shared by all pipeline workers.

    paho's ``publish`` is thread-safe; the enqueue step is additionally
    serialised here so concurrent workers never interleave inside the client.
    Waiting for the write to complete happens outside the lock.
    """

    def __init__(self, client: mqtt.Client, client_id: str):
        self._client = client
        self.client_id = client_id
        self._publish_lock = threading.Lock()
        self._closing = False
        self._closed = False
        self._connection_lost = threading.Event()

        self._client.on_disconnect = self._on_disconnect

    @property
    def is_connected(self) -> bool:
        return (
            not self._closed
            and not self._connection_lost.is_set()
            and self._client.is_connected()
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, message: OutboundMessage) -> None:
        """
        Publish a message with the client's default QoS and retain flag.

        Blocks until paho has handed the message to the socket, or until the
        connection is lost. paho never completes messages still in its
        outgoing queue when the socket drops without a reconnect, so the wait
        is polled against the connection state.

        Raises:
            PublishError: If the session is closed, the connection is lost or
                the client rejects the message
        """
        if self._closed:
            raise PublishError("Broker session is closed")
        if self._connection_lost.is_set():
            raise PublishError(f"Publish to {message.topic} failed: broker connection lost")

        try:
            with self._publish_lock:
                info = self._client.publish(message.topic, message.payload)
        except (ValueError, TypeError) as e:
            raise PublishError(f"Broker client rejected message for {message.topic}: {e}") from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"Publish to {message.topic} failed: {mqtt.error_string(info.rc)}"
            )

        try:
            while True:
                info.wait_for_publish(timeout=PUBLISH_POLL_SECONDS)
                if info.is_published():
                    return
                if self._connection_lost.is_set() or self._closed:
                    raise PublishError(
                        f"Publish to {message.topic} failed: broker connection lost"
                    )
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Publish to {message.topic} failed: {e}") from e

    def close(self) -> None:
        if self._closed:
            return

        self._closing = True
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()
            self._closed = True

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any,
    ) -> None:
        self._connection_lost.set()
        if self._closing:
            logging.debug(f"Broker session {self.client_id} disconnected")
            return
        logging.warning(
            f"Broker connection lost ({reason_code}); in-flight publishes will fail"
        )


class BrokerConnector:
    """Establishes and tears down the broker session for one run."""

    def __init__(self, settings: Settings, client_factory: Optional[ClientFactory] = None):
        self.settings = settings
        self._client_factory = client_factory or mqtt.Client

        logging.info(
            f"BrokerConnector initialiseret for "
            f"{settings.broker_hostname}:{settings.broker_port}"
        )

    def build_client(self, client_id: str) -> mqtt.Client:
        """Create a paho client with protocol, credentials and TLS applied."""
        kwargs: dict[str, Any] = {
            "client_id": client_id,
            "reconnect_on_failure": False,
        }
        if self.settings.protocol_version is not None:
            kwargs["protocol"] = PROTOCOL_VERSIONS[self.settings.protocol_version]

        client = self._client_factory(mqtt.CallbackAPIVersion.VERSION2, **kwargs)
        client.connect_timeout = self.settings.connect_timeout_seconds

        if self.settings.broker_username:
            client.username_pw_set(
                self.settings.broker_username,
                self.settings.broker_password or None,
            )

        if self.settings.tls_requested:
            client.tls_set_context(build_tls_context(self.settings))
        elif self.settings.ssl_enabled:
            logging.warning(
                "sslEnabled is set but sslCertificatePath is empty - "
                "connecting WITHOUT TLS"
            )

        return client

    def connect(self) -> BrokerSession:
        """
        Connect to the broker and block until the CONNACK arrives.

        Returns:
            BrokerSession: The live session

        Raises:
            CertificateValidationError: If the broker certificate is rejected
            BrokerConnectionError: If the handshake fails, is refused or times out
        """
        host = self.settings.broker_hostname
        port = self.settings.broker_port
        client_id = str(uuid.uuid4())
        client = self.build_client(client_id)

        connack = threading.Event()
        outcome: dict[str, Any] = {}

        def on_connect(client, userdata, flags, reason_code, properties) -> None:
            outcome["reason_code"] = reason_code
            connack.set()

        def on_connect_closed(client, userdata, *args) -> None:
            # paho drops some refusals (e.g. MQTT 3.1.1 protocol version)
            # before on_connect fires and only reports the closed socket
            reason_code = args[1] if len(args) > 1 else None
            outcome.setdefault("closed_reason", reason_code)
            connack.set()

        client.on_connect = on_connect
        client.on_connect_fail = on_connect_closed
        client.on_disconnect = on_connect_closed

        logging.info(f"Connecting to broker {host}:{port} as {client_id}")
        try:
            client.connect(host, port, keepalive=self.settings.keepalive_seconds)
        except ssl.SSLCertVerificationError as e:
            category = describe_verification_error(e)
            logging.error(f"Certificate validation error: {category}")
            raise CertificateValidationError(category) from e
        except (OSError, ValueError) as e:
            raise BrokerConnectionError(f"Could not connect to {host}:{port}: {e}") from e

        client.loop_start()

        if not connack.wait(self.settings.connect_timeout_seconds):
            self._abort(client)
            raise BrokerConnectionError(
                f"No CONNACK from {host}:{port} within "
                f"{self.settings.connect_timeout_seconds}s"
            )

        if "reason_code" not in outcome:
            self._abort(client)
            raise BrokerConnectionError(
                f"Broker {host}:{port} closed the connection before accepting it: "
                f"{outcome.get('closed_reason')}"
            )

        reason_code = outcome["reason_code"]
        if reason_code.is_failure:
            self._abort(client)
            raise BrokerConnectionError(
                f"Broker {host}:{port} refused connection: {reason_code}"
            )

        logging.info(f"Connected to broker {host}:{port}")
        return BrokerSession(client, client_id)

    @staticmethod
    def _abort(client: mqtt.Client) -> None:
        """Close the half-open socket and stop the network thread."""
        try:
            client.disconnect()
        except Exception as e:
            logging.debug(f"Ignoring error while aborting connect: {e}")
        finally:
            client.loop_stop()

    def disconnect(self, session: BrokerSession) -> None:
        if session.closed:
            return
        try:
            session.close()
            logging.info("Disconnected from broker")
        except Exception as e:
            logging.error(f"Error closing broker session: {e}")
