"""
Host-specific configuration file selection.

Picks the TOML configuration file for this machine so the same checkout can
be deployed on several hosts with different watch directories or brokers.
"""

import logging
import os
import socket
from pathlib import Path

BASE_CONFIG_FILE = "config.toml"
CONFIG_ENV_VAR = "MQTT_UPLOADER_CONFIG"


def get_hostname() -> str:
    """Get the current hostname (without domain)."""
    return socket.gethostname().split(".")[0]


def get_hostname_config_file(base_dir: str | Path = ".") -> str:
    """
    Get the configuration file to use for this host.

    Logic:
    1. If MQTT_UPLOADER_CONFIG is set, use that path as-is
    2. If {hostname}-config.toml exists in base_dir, use it
    3. Otherwise fall back to config.toml in base_dir

    Returns:
        str: Path to the configuration file (it may not exist)
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        logging.debug(f"Using configuration from {CONFIG_ENV_VAR}: {explicit}")
        return explicit

    base = Path(base_dir)
    host_config = base / f"{get_hostname()}-config.toml"
    if host_config.exists():
        logging.debug(f"Using host-specific configuration: {host_config}")
        return str(host_config)

    return str(base / BASE_CONFIG_FILE)


def list_all_config_files(base_dir: str | Path = ".") -> list[str]:
    """
    List all available configuration files (base + host-specific).

    Returns:
        list[str]: List of configuration file paths
    """
    base = Path(base_dir)
    config_files = []

    if (base / BASE_CONFIG_FILE).exists():
        config_files.append(str(base / BASE_CONFIG_FILE))

    for file_path in sorted(base.glob("*-config.toml")):
        config_files.append(str(file_path))

    return config_files
