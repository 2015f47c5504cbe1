"""Role rules shared by the store and the router."""

from amafut.models import Profile, Role

OFFICER_ROLES = frozenset({Role.PRESIDENT, Role.VICE_PRESIDENT})


def is_officer(role: Role | None) -> bool:
    """True for the two single-occupancy offices."""
    return role in OFFICER_ROLES


def effective_role(profile: Profile) -> Role | None:
    """Role used for authority checks.

    The granted role wins unless it is the unprivileged default, in which
    case the role the user asked for at sign-up is used.
    """
    if profile.role is not None and profile.role != Role.PLAYER:
        return profile.role
    return profile.intended_role


def resolve_approval_role(profile: Profile) -> Role:
    """Role granted when an officer approves a pending member."""
    return profile.intended_role or profile.role or Role.PLAYER
