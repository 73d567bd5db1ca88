"""MQTT File Uploader.

Watches directories and publishes created, changed and deleted files to an
MQTT topic.
"""

__version__ = "0.1.0"
