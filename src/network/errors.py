"""Exceptions raised by network discovery."""


class NetworkError(Exception):
    """Base exception for network discovery operations."""

    pass


class InvalidArgumentError(NetworkError, ValueError):
    """Raised when a network request is malformed."""

    pass


class EntityNotFoundError(NetworkError, LookupError):
    """Raised when none of the requested query entities exist."""

    def __init__(self, entity_ids):
        self.entity_ids = list(entity_ids)
        super().__init__(f"None of the specified entities were found: {self.entity_ids}")


class ProviderFailureError(NetworkError):
    """Raised when a link, label or algorithm provider call fails."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Provider call '{operation}' failed{detail}")


class ProviderTimeoutError(ProviderFailureError):
    """Raised when a provider call exceeds the caller-supplied timeout."""

    def __init__(self, operation: str, timeout: float):
        self.timeout = timeout
        super().__init__(operation)
        self.args = (f"Provider call '{operation}' timed out after {timeout:.2f}s",)


class RequestCancelledError(NetworkError):
    """Raised when a request is abandoned through its cancellation event."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Request cancelled during '{operation}'")
