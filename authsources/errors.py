"""
Error Taxonomy

Every failure raised by the registry, the cache, the backend adapters and
the authenticator derives from AuthSourceError.

Rejection and unavailability are kept apart on purpose: a rejected
credential renders "Invalid credentials." while an unreachable backend
renders "Authentication service error.".
"""

from typing import Any, Optional


class AuthSourceError(Exception):
    """Base class for authentication source errors."""

    user_message = "Authentication source error."


# ========================================
# Registry / Catalog Errors
# ========================================


class AlreadyExists(AuthSourceError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"login source already exists [name: {name}]")


class NotFound(AuthSourceError):
    def __init__(self, source_id: int):
        self.source_id = source_id
        super().__init__(f"login source does not exist [id: {source_id}]")


class InUse(AuthSourceError):
    user_message = "This login source is still used by at least one user."

    def __init__(self, source_id: int):
        self.source_id = source_id
        super().__init__(f"login source is still used by some users [id: {source_id}]")


class SourceNotDeletable(AuthSourceError):
    """File-backed sources are provisioned out-of-band and cannot be deleted."""

    def __init__(self, source_id: int, path: str = ""):
        self.source_id = source_id
        self.path = path
        super().__init__(f"file-backed login source cannot be deleted [id: {source_id}, path: {path}]")


class SourceLoadError(AuthSourceError):
    """Fatal startup error while loading file-backed sources."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load authentication source '{path}': {reason}")


class InvalidSourceType(AuthSourceError):
    def __init__(self, login_type: Any):
        self.login_type = login_type
        super().__init__(f"invalid login source type [type: {login_type}]")


class PersistenceFailure(AuthSourceError):
    """
    An underlying store write (or read) failed.

    Attributes:
        operation: What was being done when the store failed
        cause: Original exception
        user: Partially-built user record (provisioning failures only)
    """

    def __init__(self, operation: str, cause: Exception, user: Optional[Any] = None):
        self.operation = operation
        self.cause = cause
        self.user = user
        super().__init__(f"{operation}: {cause}")


# ========================================
# Login Attempt Errors
# ========================================


class SourceNotActivated(AuthSourceError):
    def __init__(self, source_id: int):
        self.source_id = source_id
        super().__init__(f"login source is not activated [source_id: {source_id}]")


class CredentialRejected(AuthSourceError):
    """Bad login or password. Never says whether the login exists."""

    user_message = "Invalid credentials."

    def __init__(self, login: str):
        self.login = login
        super().__init__(f"user does not exist or password is incorrect [login: {login}]")


class BackendUnavailable(AuthSourceError):
    """Transport or protocol failure, distinct from a rejection."""

    user_message = "Authentication service error."

    def __init__(self, login: str, cause: Any):
        self.login = login
        self.cause = cause
        super().__init__(f"authentication backend failed [login: {login}]: {cause}")


class InvalidUsernamePattern(AuthSourceError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(
            f"invalid pattern for attribute 'username' [{username}]: "
            "must be valid alpha or numeric or dash(-_) or dot characters"
        )
