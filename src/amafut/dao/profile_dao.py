"""Data Access Object for user profiles."""

from supabase import AsyncClient

from amafut.dao.base import BaseDAO
from amafut.models import MembershipStatus, Profile, Role


def parse_role(value: str | None) -> Role | None:
    """Map a stored role to Role; unknown values (e.g. "authenticated") become None."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


class ProfileDAO(BaseDAO[Profile]):
    """DAO for the `profiles` table."""

    table_name = "profiles"
    model_class = Profile

    def __init__(self, client: AsyncClient):
        super().__init__(client)

    async def find_officer_holder(
        self, team_id: str, role: Role, exclude_id: str | None = None
    ) -> Profile | None:
        """Find the approved holder of an office on a team.

        Args:
            team_id: The team to look in
            role: The office (president or vice-president)
            exclude_id: Profile to ignore, typically the one being promoted

        Returns:
            The holder's profile, or None if the office is free
        """
        query = (
            self.table.select("*")
            .eq("team_id", team_id)
            .eq("role", role.value)
            .eq("status", MembershipStatus.APPROVED.value)
        )
        if exclude_id:
            query = query.neq("id", exclude_id)

        result = await query.limit(1).execute()
        if not result.data:
            return None
        return self._to_model(result.data[0])

    async def demote_to_admin(self, profile_id: str) -> None:
        await self.update(profile_id, {"role": Role.ADMIN.value})

    def _to_model(self, row: dict) -> Profile:
        """Convert database row to Profile model."""
        status = row.get("status")
        if status is None:
            # Legacy rows only carry is_approved
            status = (
                MembershipStatus.APPROVED
                if row.get("is_approved", True)
                else MembershipStatus.PENDING
            )
        return Profile(
            id=str(row["id"]),
            email=row.get("email"),
            name=row.get("name"),
            role=parse_role(row.get("role")) or Role.PLAYER,
            intended_role=parse_role(row.get("intended_role")),
            team_id=str(row["team_id"]) if row.get("team_id") else None,
            status=MembershipStatus(status),
            is_first_manager=bool(row.get("is_first_manager")),
            is_setup_complete=bool(row.get("is_setup_complete")),
            avatar=row.get("avatar"),
            position=row.get("position"),
            stats=row.get("stats"),
        )
