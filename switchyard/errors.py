"""
Error Taxonomy for the Routing Engine

Boundary errors (validation, feature gate, internal) are raised and turned
into HTTP responses by the app. Dispatch-time errors (resolution, arguments,
transport) are caught by the router and folded into an InvocationResult.
"""

from typing import List, Optional, Tuple


class SwitchyardError(Exception):
    """Base exception for all routing engine errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(SwitchyardError):
    """Raised when a request is missing a required field or has the wrong type."""
    pass


class FeatureDisabledError(SwitchyardError):
    """Raised when smart routing is requested but not enabled."""
    pass


class ResolutionError(SwitchyardError):
    """Raised when a tool name cannot be mapped to exactly one live server."""
    def __init__(self, message: str, candidates: Optional[List[str]] = None):
        self.candidates = candidates or []
        super().__init__(message)


class ArgumentValidationError(SwitchyardError):
    """Raised when tool arguments do not satisfy the tool's input schema."""
    def __init__(self, tool_name: str, problems: List[str]):
        self.tool_name = tool_name
        self.problems = problems
        super().__init__(f"Invalid arguments for '{tool_name}': {'; '.join(problems)}")


class TransportError(SwitchyardError):
    """Raised by an adapter when the backend cannot be reached or the session breaks."""
    def __init__(self, server_name: str, message: str):
        self.server_name = server_name
        super().__init__(f"Transport failure for server '{server_name}': {message}")


class InternalError(SwitchyardError):
    """Raised for any other failure surfaced at the boundary."""
    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail or "Unknown error occurred"
        super().__init__(message)


# ==================== FAILURE CATEGORIES ====================

_PERMANENT_PATTERNS = [
    ("not found", "package_not_found"),
    ("404", "http_404"),
    ("could not determine executable", "no_executable"),
    ("no such file or directory", "file_not_found"),
    ("module not found", "module_not_found"),
    ("invalid url", "invalid_url"),
]

_AUTH_PATTERNS = [
    ("401", "http_401"),
    ("403", "http_403"),
    ("unauthorized", "unauthorized"),
    ("forbidden", "forbidden"),
    ("authentication required", "auth_required"),
]

_TRANSIENT_PATTERNS = [
    ("timeout", "timeout"),
    ("timed out", "timeout"),
    ("connection refused", "connection_refused"),
    ("connection reset", "connection_reset"),
    ("rate limit", "rate_limited"),
    ("502", "http_502"),
    ("503", "http_503"),
    ("504", "http_504"),
    ("server error", "server_error"),
]


def categorize_failure(error_message: Optional[str]) -> Tuple[str, str]:
    """
    Categorize a backend error message.

    Returns: (failure_category, failure_reason) where the category is one of
    permanent, auth_required or transient.
    """
    if not error_message:
        return "transient", "unknown_error"

    error_lower = error_message.lower()

    for pattern, reason in _PERMANENT_PATTERNS:
        if pattern in error_lower:
            return "permanent", reason

    for pattern, reason in _AUTH_PATTERNS:
        if pattern in error_lower:
            return "auth_required", reason

    for pattern, reason in _TRANSIENT_PATTERNS:
        if pattern in error_lower:
            return "transient", reason

    return "transient", "unknown_error"
