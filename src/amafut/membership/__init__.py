"""Membership and authorization lifecycle."""

from amafut.membership.bootstrap import SessionBootstrapper
from amafut.membership.roles import (
    OFFICER_ROLES,
    effective_role,
    is_officer,
    resolve_approval_role,
)
from amafut.membership.routing import (
    InMemoryNavigator,
    LifecycleState,
    Navigator,
    Route,
    SmartRouter,
    compute_ideal_route,
    compute_lifecycle_state,
    decide_navigation,
    has_completed_setup,
)
from amafut.membership.runtime import MembershipRuntime
from amafut.membership.store import MembershipStore, call_backend

__all__ = [
    # Roles
    "OFFICER_ROLES",
    "effective_role",
    "is_officer",
    "resolve_approval_role",
    # Store
    "MembershipStore",
    "call_backend",
    # Bootstrap
    "SessionBootstrapper",
    # Routing
    "InMemoryNavigator",
    "LifecycleState",
    "Navigator",
    "Route",
    "SmartRouter",
    "compute_ideal_route",
    "compute_lifecycle_state",
    "decide_navigation",
    "has_completed_setup",
    # Runtime
    "MembershipRuntime",
]
