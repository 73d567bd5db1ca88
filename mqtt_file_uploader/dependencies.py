from functools import lru_cache
from typing import Any, Dict

from .config import Settings, load_settings
from .services.broker.connector import BrokerConnector
from .services.lifecycle import UploaderService

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    """Hent Settings singleton instance."""
    return load_settings()


def get_broker_connector() -> BrokerConnector:
    if "broker_connector" not in _singletons:
        _singletons["broker_connector"] = BrokerConnector(settings=get_settings())
    return _singletons["broker_connector"]


def get_uploader_service() -> UploaderService:
    if "uploader_service" not in _singletons:
        _singletons["uploader_service"] = UploaderService(
            settings=get_settings(),
            connector=get_broker_connector(),
        )
    return _singletons["uploader_service"]


def reset_singletons() -> None:
    """Drop cached instances; used by tests and between runs."""
    _singletons.clear()
    get_settings.cache_clear()
