"""
Pytest configuration og shared fixtures.
"""

import pytest

from mqtt_file_uploader.config import Settings
from mqtt_file_uploader.dependencies import reset_singletons


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep MQTT_UPLOADER_* variables from the developer shell out of the tests."""
    import os

    for name in list(os.environ):
        if name.startswith("MQTT_UPLOADER_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def watch_dir(tmp_path):
    directory = tmp_path / "watched"
    directory.mkdir()
    return directory


@pytest.fixture
def make_settings(watch_dir, tmp_path):
    """Factory for valid Settings with per-test overrides."""

    def _make(**overrides) -> Settings:
        values = {
            "directory_paths": [str(watch_dir)],
            "topic": "uploads/files",
            "broker_hostname": "localhost",
            "log_file_path": str(tmp_path / "logs" / "uploader.log"),
        }
        values.update(overrides)
        return Settings(**values)

    return _make
