"""
Utilities package for MQTT File Uploader.
"""

from .host_config import get_hostname, get_hostname_config_file, list_all_config_files

__all__ = [
    "get_hostname",
    "get_hostname_config_file",
    "list_all_config_files",
]
