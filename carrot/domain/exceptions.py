"""Domain-specific exceptions — backend-independent."""


class CarrotError(Exception):
    """Base class for all errors raised by this package."""

    code = "CARROT_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BackendError(CarrotError):
    """Raised when a chat backend fails.

    ``status_code`` is the HTTP(-like) status reported by the backend, or
    None for network failures where no response was received.
    """

    code = "BACKEND_ERROR"
    retryable = True

    def __init__(self, provider: str, status_code: int | None, message: str):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        status = self.status_code if self.status_code is not None else "network"
        return f"[{self.provider}] {status}: {self.message}"


class TransientBackendError(BackendError):
    """Network failure, 5xx, or any failure not otherwise classified."""

    code = "TRANSIENT_ERROR"


class RateLimitError(BackendError):
    """429 — the backend asked us to slow down."""

    code = "RATE_LIMIT_ERROR"


class AuthenticationError(BackendError):
    """401/403 — credentials were rejected."""

    code = "AUTH_ERROR"
    retryable = False


class ClientRequestError(BackendError):
    """Any other 4xx — the request itself is invalid for this model."""

    code = "CLIENT_REQUEST_ERROR"
    retryable = False


def classify_backend_error(
    provider: str, status_code: int | None, message: str
) -> BackendError:
    """Build the BackendError subclass matching a status code."""
    if status_code in (401, 403):
        return AuthenticationError(provider, status_code, message)
    if status_code == 429:
        return RateLimitError(provider, status_code, message)
    if status_code is not None and 400 <= status_code < 500:
        return ClientRequestError(provider, status_code, message)
    return TransientBackendError(provider, status_code, message)


class ToolValidationError(CarrotError):
    """Tool arguments did not satisfy the tool's parameter schema."""

    code = "VALIDATION_ERROR"

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f'Invalid arguments for tool "{tool_name}": {message}')


class ToolExecutionError(CarrotError):
    """A tool raised while executing."""

    code = "TOOL_ERROR"

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f'Error in tool "{tool_name}": {message}')
