"""Supabase data access for the membership lifecycle."""

from amafut.dao.base import BaseDAO, SupabaseClient
from amafut.dao.gateway import (
    SupabaseAuthGateway,
    SupabaseMembershipRepository,
    create_backend,
)
from amafut.dao.notification_dao import NotificationDAO
from amafut.dao.profile_dao import ProfileDAO, parse_role
from amafut.dao.storage import FileSessionStorage
from amafut.dao.team_dao import TeamDAO, TeamMemberDAO

__all__ = [
    # Base
    "BaseDAO",
    "SupabaseClient",
    # DAOs
    "NotificationDAO",
    "ProfileDAO",
    "TeamDAO",
    "TeamMemberDAO",
    "parse_role",
    # Ports
    "SupabaseAuthGateway",
    "SupabaseMembershipRepository",
    "create_backend",
    # Storage
    "FileSessionStorage",
]
