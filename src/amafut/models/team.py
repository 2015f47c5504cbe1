"""Team models."""

from pydantic import BaseModel, Field

DEFAULT_PRIMARY_COLOR = "#13ec5b"
DEFAULT_SECONDARY_COLOR = "#ffffff"


class TeamDetails(BaseModel):
    """Display fields a founder chooses when creating a team."""

    name: str = Field(min_length=1)
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    logo: str | None = None

    def __str__(self) -> str:
        return self.name


class Team(BaseModel):
    """An amateur team (the `teams` table)."""

    id: str | None = None
    name: str
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    logo: str | None = None
    creator_id: str | None = None
    member_count: int = 0
    # Set once any user has been granted first-manager status for this team
    has_first_manager: bool = False

    @property
    def details(self) -> TeamDetails:
        return TeamDetails(
            name=self.name,
            primary_color=self.primary_color,
            secondary_color=self.secondary_color,
            logo=self.logo,
        )

    def __str__(self) -> str:
        return self.name


class TeamMember(BaseModel):
    """Roster row linking a profile to a team (the `team_members` table)."""

    team_id: str
    profile_id: str
    role: str
    is_team_approved: bool = False
