"""
TLS context construction for certificate-authenticated broker sessions.
"""

import logging
import ssl

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.core.exceptions import BrokerConnectionError


def build_tls_context(settings: Settings) -> ssl.SSLContext:
    """
    Build a client TLS context from the configured certificate.

    The context requires TLS 1.2 or newer and verifies the broker's
    certificate chain and hostname. A peer is accepted only when the TLS stack
    reports no verification errors at all.

    Raises:
        BrokerConnectionError: If the certificate, key or CA bundle cannot be loaded
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.verify_mode = ssl.CERT_REQUIRED
    context.check_hostname = True

    try:
        if settings.ssl_ca_path:
            context.load_verify_locations(cafile=settings.ssl_ca_path)
        else:
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    except OSError as e:
        raise BrokerConnectionError(
            f"Could not load CA bundle {settings.ssl_ca_path}: {e}"
        ) from e

    try:
        context.load_cert_chain(
            certfile=settings.ssl_certificate_path,
            keyfile=settings.ssl_key_path or None,
        )
    except OSError as e:
        # ssl.SSLError is an OSError subclass
        raise BrokerConnectionError(
            f"Could not load client certificate {settings.ssl_certificate_path}: {e}"
        ) from e

    logging.debug(
        f"TLS context ready (min TLS 1.2) with certificate {settings.ssl_certificate_path}"
    )
    return context


def describe_verification_error(error: ssl.SSLCertVerificationError) -> str:
    """Return the verification failure category reported by the TLS stack."""
    return (
        getattr(error, "verify_message", None)
        or getattr(error, "reason", None)
        or str(error)
    )
