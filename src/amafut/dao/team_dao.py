"""Data Access Objects for Teams and their roster rows."""

from typing import Any

from supabase import AsyncClient

from amafut.dao.base import BaseDAO
from amafut.models import DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR, Team, TeamMember


class TeamDAO(BaseDAO[Team]):
    """DAO for Team entities."""

    table_name = "teams"
    model_class = Team

    def __init__(self, client: AsyncClient):
        super().__init__(client)

    async def insert(self, team: Team) -> Team:
        """Insert a team.

        Returns:
            The created Team with its id populated
        """
        result = await self.table.insert(self._to_db(team)).execute()
        return self._to_model(result.data[0])

    async def update_flags(
        self,
        team_id: str,
        *,
        has_first_manager: bool | None = None,
        member_count: int | None = None,
    ) -> None:
        """Update the lifecycle flags of a team; None leaves a flag alone."""
        patch: dict[str, Any] = {}
        if has_first_manager is not None:
            patch["has_first_manager"] = has_first_manager
        if member_count is not None:
            patch["member_count"] = member_count
        if patch:
            await self.update(team_id, patch)

    async def find_by_name(self, name: str) -> list[Team]:
        """Find teams by name (partial match), for the join screen."""
        result = await self.table.select("*").ilike("name", f"%{name}%").execute()
        return [self._to_model(row) for row in result.data]

    def _to_model(self, row: dict) -> Team:
        """Convert database row to Team model."""
        return Team(
            id=str(row["id"]) if row.get("id") else None,
            name=row["name"],
            primary_color=row.get("primary_color") or DEFAULT_PRIMARY_COLOR,
            secondary_color=row.get("secondary_color") or DEFAULT_SECONDARY_COLOR,
            logo=row.get("logo"),
            creator_id=str(row["creator_id"]) if row.get("creator_id") else None,
            member_count=row.get("member_count") or 0,
            has_first_manager=bool(row.get("has_first_manager")),
        )

    def _to_db(self, model: Team) -> dict:
        """Convert Team model to database row."""
        data = {
            "name": model.name,
            "primary_color": model.primary_color,
            "secondary_color": model.secondary_color,
            "member_count": model.member_count,
            "has_first_manager": model.has_first_manager,
        }

        if model.id:
            data["id"] = model.id
        if model.logo:
            data["logo"] = model.logo
        if model.creator_id:
            data["creator_id"] = model.creator_id

        return data


class TeamMemberDAO(BaseDAO[TeamMember]):
    """DAO for `team_members` roster rows (one per team and profile)."""

    table_name = "team_members"
    model_class = TeamMember

    def __init__(self, client: AsyncClient):
        super().__init__(client)

    async def upsert(self, member: TeamMember) -> None:
        await self.table.upsert(
            self._to_db(member), on_conflict="team_id,profile_id"
        ).execute()

    async def delete(self, team_id: str, profile_id: str) -> None:
        await (
            self.table.delete()
            .eq("team_id", team_id)
            .eq("profile_id", profile_id)
            .execute()
        )

    async def find_by_team(self, team_id: str) -> list[TeamMember]:
        """List the roster of a team."""
        result = await self.table.select("*").eq("team_id", team_id).execute()
        return [self._to_model(row) for row in result.data]

    def _to_model(self, row: dict) -> TeamMember:
        """Convert database row to TeamMember model."""
        return TeamMember(
            team_id=str(row["team_id"]),
            profile_id=str(row["profile_id"]),
            role=row["role"],
            is_team_approved=bool(row.get("is_team_approved")),
        )
