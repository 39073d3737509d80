"""Error taxonomy for the context core."""

from __future__ import annotations


class ContextError(Exception):
    """Base class for context errors."""


class AuthenticationRequired(ContextError):
    """No valid session; an expected state, not a failure."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class FetchFailed(ContextError):
    """The membership list could not be loaded."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidSwitchTarget(ContextError):
    def __init__(self, group_id: str):
        super().__init__(f"You are not a member of group {group_id!r}")
        self.group_id = group_id


class PersistenceFailure(ContextError):
    """Preference storage is unavailable."""
