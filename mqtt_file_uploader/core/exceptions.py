# mqtt_file_uploader/core/exceptions.py


class UploaderError(Exception):
    """Base exception for all uploader failures."""
    pass


class ConfigError(UploaderError):
    """Raised when the configuration file is missing, malformed or invalid."""
    pass


class BrokerConnectionError(UploaderError, ConnectionError):
    """Raised when the broker session cannot be established."""
    pass


class CertificateValidationError(BrokerConnectionError):
    """Raised when the broker's TLS certificate is rejected."""
    def __init__(self, category: str, message: str | None = None):
        self.category = category
        super().__init__(message or f"Certificate validation error: {category}")


class PayloadIOError(UploaderError):
    """Raised when a watched file cannot be read at publish time."""
    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Could not read {file_path}: {reason}")


class PublishError(UploaderError):
    """Raised when the broker rejects a message or the transport fails."""
    pass


class InvalidStateTransitionError(UploaderError):
    """Raised when the uploader lifecycle is driven out of order."""
    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid lifecycle transition: "
            f"Cannot move from '{from_state}' to '{to_state}'."
        )
