"""Exception types for procview."""


class ProcviewError(Exception):
    """Base class for procview errors."""


class ConfigError(ProcviewError, ValueError):
    """Raised when a configuration value cannot be parsed."""


class PayloadError(ProcviewError, ValueError):
    """Raised when a backend payload does not have the expected shape."""


class InferenceError(ProcviewError):
    """Raised when the inference server rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
