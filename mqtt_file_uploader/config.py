import logging
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic.alias_generators import to_snake
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .core.exceptions import ConfigError
from .utils.host_config import get_hostname_config_file

ALL_FILES_TOKENS = {"*", "*.*"}
SUPPORTED_PROTOCOL_VERSIONS = {3, 4, 5}  # MQTT 3.1, 3.1.1, 5.0


@dataclass(frozen=True)
class FileTypeFilter:
    """
    Parsed form of the ``fileTypes`` setting.

    Extensions are compared lower-cased, so ``TXT`` and ``txt`` are the same
    entry. An empty setting, ``*`` or ``*.*`` selects all files.
    """

    all_files: bool = True
    extensions: frozenset = field(default_factory=frozenset)

    @classmethod
    def parse(cls, raw: str | None) -> "FileTypeFilter":
        if raw is None or not raw.strip():
            return cls(all_files=True)

        tokens = raw.replace(",", " ").replace(";", " ").split()
        if any(token in ALL_FILES_TOKENS for token in tokens):
            return cls(all_files=True)

        extensions = set()
        for token in tokens:
            if token.startswith("*."):
                token = token[2:]
            token = token.lstrip(".").lower()
            if token:
                extensions.add(token)

        return cls(all_files=False, extensions=frozenset(extensions))

    def matches(self, extension: str) -> bool:
        if self.all_files:
            return True
        return extension.lower() in self.extensions

    def describe(self) -> str:
        if self.all_files:
            return "All files"
        return ", ".join(sorted(self.extensions))


class Settings(BaseSettings):
    # Watch
    directory_paths: List[str] = Field(min_length=1)
    include_subdirectories: bool = False
    file_types: str = ""

    # Broker
    topic: str
    broker_hostname: str
    broker_port: int = Field(default=1883, ge=1, le=65535)
    broker_username: str = ""
    broker_password: str = ""
    protocol_version: Optional[int] = None  # None = paho default
    keepalive_seconds: int = Field(default=60, ge=0)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)

    # TLS
    ssl_enabled: bool = False
    ssl_certificate_path: str = ""
    ssl_key_path: str = ""  # Only needed when the key is not bundled in the certificate PEM
    ssl_ca_path: str = ""  # Empty = system trust store

    # Event handling
    created_event_enabled: bool = True
    changed_event_enabled: bool = True
    deleted_event_enabled: bool = True
    compress: bool = False

    # Pipeline
    pipeline_workers: int = Field(default=4, ge=1)
    queue_max_size: int = Field(default=0, ge=0)  # 0 = unbounded
    shutdown_drain_timeout_seconds: float = Field(default=10.0, ge=0)

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/mqtt_file_uploader.log"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(
        env_prefix="MQTT_UPLOADER_",
        frozen=True,
        extra="forbid",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over the TOML file so secrets can stay out of it
        return (env_settings, init_settings)

    @field_validator("directory_paths")
    @classmethod
    def _directories_exist(cls, value: List[str]) -> List[str]:
        for path in value:
            if not Path(path).is_dir():
                raise ValueError(f"not an existing directory: {path}")
        return value

    @field_validator("topic")
    @classmethod
    def _valid_topic(cls, value: str) -> str:
        if not value:
            raise ValueError("topic must not be empty")
        if "+" in value or "#" in value:
            raise ValueError("wildcards are not allowed in a publish topic")
        return value

    @field_validator("broker_hostname")
    @classmethod
    def _hostname_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("broker hostname must not be empty")
        return value

    @field_validator("protocol_version")
    @classmethod
    def _supported_protocol(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value not in SUPPORTED_PROTOCOL_VERSIONS:
            raise ValueError(
                f"unsupported MQTT protocol version {value}, "
                f"expected one of {sorted(SUPPORTED_PROTOCOL_VERSIONS)}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level

    @cached_property
    def file_type_filter(self) -> FileTypeFilter:
        return FileTypeFilter.parse(self.file_types)

    @property
    def tls_requested(self) -> bool:
        """TLS is only applied when a client certificate is configured."""
        return self.ssl_enabled and bool(self.ssl_certificate_path)

    @property
    def log_directory(self) -> Path:
        """Returnerer log directory som Path objekt"""
        return Path(self.log_file_path).parent

    def summary_lines(self) -> List[str]:
        """Configuration summary for the console; the password is masked."""
        lines = ["Configuration:", "  Directory paths:"]
        lines.extend(f"    {path}" for path in self.directory_paths)
        lines.extend(
            [
                f"  Include subdirectories: {self.include_subdirectories}",
                f"  Topic: {self.topic}",
                f"  File types: {self.file_type_filter.describe()}",
                f"  Broker hostname: {self.broker_hostname}",
                f"  Broker port: {self.broker_port}",
                f"  Broker username: {self.broker_username}",
                f"  Broker password: {'****' if self.broker_password else 'Not set'}",
                f"  Protocol version: {self.protocol_version or 'client default'}",
                f"  SSL enabled: {self.ssl_enabled}",
                f"  SSL certificate: {self.ssl_certificate_path or 'Not set'}",
                f"  Compress: {self.compress}",
                f"  Created event enabled: {self.created_event_enabled}",
                f"  Changed event enabled: {self.changed_event_enabled}",
                f"  Deleted event enabled: {self.deleted_event_enabled}",
            ]
        )
        return lines


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def load_settings(config_file: str | Path | None = None) -> Settings:
    """
    Load and validate the TOML configuration file.

    Keys in the file use the camelCase names (``brokerHostname``), which are
    mapped onto the snake_case fields of :class:`Settings`.

    Raises:
        ConfigError: If the file is missing, unparsable or fails validation
    """
    toml_file = Path(config_file or get_hostname_config_file())
    if not toml_file.is_file():
        raise ConfigError(f"Configuration file not found: {toml_file}")

    try:
        raw = TomlConfigSettingsSource(Settings, toml_file=toml_file)()
    except ValueError as e:
        # tomllib.TOMLDecodeError is a ValueError
        raise ConfigError(f"Invalid TOML in {toml_file}: {e}") from e

    values = {to_snake(key): value for key, value in raw.items()}

    try:
        settings = Settings(**values)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {toml_file}: {_format_validation_error(e)}"
        ) from e

    logging.debug(f"Configuration loaded from {toml_file}")
    return settings
