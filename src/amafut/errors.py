"""Errors raised by the membership lifecycle.

Usage:
    from amafut.errors import ConflictError, MembershipError

    try:
        await store.create_team(details)
    except MembershipError as e:
        console.print(f"[red]{e}[/red]")
"""


class MembershipError(Exception):
    """Base class for membership lifecycle failures.

    `str(error)` is the human-readable message the store exposes as `error`.
    """

    code = "membership_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(MembershipError):
    """A mutator was called with no signed-in user."""

    code = "unauthenticated"

    def __init__(self, message: str = "You must be signed in to do that."):
        super().__init__(message)


class PermissionDenied(MembershipError):
    """The caller's effective role lacks authority for the mutation."""

    code = "permission_denied"


class ConflictError(MembershipError):
    """A single-occupancy office is already held and cannot be auto-resolved."""

    code = "conflict"


class NotFound(MembershipError):
    """A referenced team or member no longer exists."""

    code = "not_found"


class BackendError(MembershipError):
    """Any failure surfaced by the backend; its message is passed through."""

    code = "backend_error"
