"""
Error kinds surfaced to clients.

Every error carries the HTTP status it maps to and a message that is safe to
show inline in the UI. Raw Supabase errors are translated into these at the
backend/service boundary.
"""


class SnapfeedError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(SnapfeedError):
    """Invalid credentials, password mismatch or duplicate account."""
    status_code = 401
    default_message = "Authentication failed"

    def __init__(self, message: str = None, status_code: int = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class BackendError(SnapfeedError):
    """Generic read/write failure reported by the backend."""
    status_code = 502
    default_message = "Backend request failed"


class BackendUnavailable(BackendError):
    """Backend could not be reached."""
    status_code = 503
    default_message = "Backend unavailable"


class ProfileLookupFailure(BackendUnavailable):
    default_message = "Could not load your profile"


class UsernameTaken(SnapfeedError):
    status_code = 409
    default_message = "Username is already taken"


class ViewTransitionError(SnapfeedError):
    """Operation not permitted from the current view."""
    status_code = 409
    default_message = "Action not available right now"
