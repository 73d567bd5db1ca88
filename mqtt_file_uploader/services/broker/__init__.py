"""
Broker package for the MQTT session.

Owns the connection lifecycle (connect, TLS, disconnect) and exposes a
publish-only session object shared by the pipeline workers.
"""

from .connector import BrokerConnector, BrokerSession
from .tls import build_tls_context, describe_verification_error

__all__ = [
    "BrokerConnector",
    "BrokerSession",
    "build_tls_context",
    "describe_verification_error",
]
