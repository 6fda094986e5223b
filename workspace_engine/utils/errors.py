from typing import Optional

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
FORBIDDEN_MESSAGE = "You do not have permission to perform this action."
NOT_FOUND_MESSAGE = "The requested resource was not found."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
FILE_TOO_LARGE_MESSAGE = "File is too large. Please choose a smaller file."
UNSUPPORTED_FILE_TYPE_MESSAGE = "Unsupported file type. Please choose a different file."


class WorkspaceError(Exception):
    """Base class for every error surfaced by the workspace engine.

    `message` is always a human-readable string suitable for display.
    """
    default_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(WorkspaceError):
    """Local, pre-network rejection of malformed input."""
    default_message = "Invalid input."


class InvalidStatusError(ValidationError):
    default_message = "Invalid task status."


class AuthError(WorkspaceError):
    default_message = SESSION_EXPIRED_MESSAGE


class PermissionDeniedError(AuthError):
    default_message = FORBIDDEN_MESSAGE


class NotFoundError(WorkspaceError):
    default_message = NOT_FOUND_MESSAGE


class NetworkError(WorkspaceError):
    default_message = NETWORK_ERROR_MESSAGE


class ServerError(WorkspaceError):
    default_message = GENERIC_ERROR_MESSAGE


def error_for_status(status_code: int, body_message: Optional[str] = None) -> WorkspaceError:
    """Map an HTTP error status (and optional body message) onto the taxonomy."""
    if status_code == 401:
        return AuthError(SESSION_EXPIRED_MESSAGE, status_code=status_code)
    if status_code == 403:
        return AuthError(FORBIDDEN_MESSAGE, status_code=status_code)
    if status_code == 404:
        return NotFoundError(NOT_FOUND_MESSAGE, status_code=status_code)
    if status_code == 0:
        return NetworkError(NETWORK_ERROR_MESSAGE, status_code=status_code)
    if body_message:
        return ServerError(body_message, status_code=status_code)
    if status_code == 413:
        return ServerError(FILE_TOO_LARGE_MESSAGE, status_code=status_code)
    if status_code == 415:
        return ServerError(UNSUPPORTED_FILE_TYPE_MESSAGE, status_code=status_code)
    return ServerError(GENERIC_ERROR_MESSAGE, status_code=status_code)
