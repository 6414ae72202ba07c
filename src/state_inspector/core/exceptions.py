"""Custom exceptions for State Inspector.

All exception classes carry enough context about the failing scan or store
operation for the caller to log a clear, actionable message.
"""


class StateInspectorError(Exception):
    """Base exception for all State Inspector errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(StateInspectorError):
    """Exception raised for configuration-related errors.

    Examples:
        - Missing config file
        - Invalid JSON in config file
        - Malformed watched-record specification
    """

    def __init__(
        self, message: str, config_file: str | None = None, field: str | None = None, details: str | None = None
    ):
        self.config_file = config_file
        self.field = field
        super().__init__(message, details)


class StoreAccessError(StateInspectorError):
    """Exception raised when a bulk enumeration against the state store fails.

    A scan that hits this error is aborted; the previously published report
    is left untouched.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.original_error = original_error
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class ConcurrentScanError(StateInspectorError):
    """Exception raised when a scan is requested while another one is in flight.

    Attributes:
        phase: Phase the running scan was in when the request was rejected
        started_at: When the running scan started
    """

    def __init__(self, phase: str | None = None, started_at: str | None = None):
        self.phase = phase
        self.started_at = started_at

        details_parts = []
        if phase:
            details_parts.append(f"phase {phase}")
        if started_at:
            details_parts.append(f"started at {started_at}")

        details = ", ".join(details_parts) if details_parts else None
        super().__init__("A scan is already running", details)


class ScanAbortedError(StateInspectorError):
    """Exception raised at a cooperative checkpoint after a stop was requested."""

    def __init__(self, message: str = "Scan aborted by stop request", processed: int = 0):
        self.processed = processed
        super().__init__(message, f"{processed} items processed" if processed else None)
