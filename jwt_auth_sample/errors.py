"""Error taxonomy.

Every error carries the HTTP status and the short plain-text message that is
sent to the client. Anything that is not an ``AuthError`` is rendered as a
generic 500 by the API layer.
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for the auth service"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """A required request field is missing"""

    status_code = 400
    default_message = "Bad request"


class AuthenticationError(AuthError):
    """Wrong credentials, or a missing/invalid session token"""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AuthenticationError):
    """No account for the email at sign-in.

    Reported to the client exactly like a wrong password.
    """

    default_message = "Incorrect password"


class ConflictError(AuthError):
    """An account with the same email already exists"""

    status_code = 409
    default_message = "Email already exists"


class StorageError(AuthError):
    """Failure from the underlying store. Details stay server-side."""

    status_code = 500

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(None)
