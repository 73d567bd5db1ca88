"""
Tests for host-specific configuration file selection.
"""

from unittest.mock import patch

from mqtt_file_uploader.utils.host_config import (
    get_hostname_config_file,
    list_all_config_files,
)


class TestHostConfig:
    def test_environment_variable_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MQTT_UPLOADER_CONFIG", "/etc/uploader/site.toml")
        (tmp_path / "config.toml").write_text("", encoding="utf-8")

        assert get_hostname_config_file(tmp_path) == "/etc/uploader/site.toml"

    def test_host_specific_file_preferred(self, tmp_path):
        (tmp_path / "config.toml").write_text("", encoding="utf-8")
        (tmp_path / "box1-config.toml").write_text("", encoding="utf-8")

        with patch(
            "mqtt_file_uploader.utils.host_config.get_hostname", return_value="box1"
        ):
            assert get_hostname_config_file(tmp_path) == str(tmp_path / "box1-config.toml")

    def test_falls_back_to_base_file(self, tmp_path):
        with patch(
            "mqtt_file_uploader.utils.host_config.get_hostname", return_value="box2"
        ):
            assert get_hostname_config_file(tmp_path) == str(tmp_path / "config.toml")

    def test_list_all_config_files(self, tmp_path):
        (tmp_path / "config.toml").write_text("", encoding="utf-8")
        (tmp_path / "a-config.toml").write_text("", encoding="utf-8")
        (tmp_path / "notes.toml").write_text("", encoding="utf-8")

        assert list_all_config_files(tmp_path) == [
            str(tmp_path / "config.toml"),
            str(tmp_path / "a-config.toml"),
        ]
