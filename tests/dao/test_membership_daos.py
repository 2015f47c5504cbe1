"""Tests for the Supabase DAOs and gateway, against a mocked query builder."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from amafut.dao import (
    FileSessionStorage,
    NotificationDAO,
    ProfileDAO,
    SupabaseAuthGateway,
    SupabaseMembershipRepository,
    TeamDAO,
    TeamMemberDAO,
    parse_role,
)
from amafut.dao.gateway import to_auth_event, to_session
from amafut.models import (
    AuthEvent,
    MembershipStatus,
    Notification,
    NotificationStatus,
    NotificationType,
    OAuthProvider,
    Role,
    Team,
    TeamMember,
)


def mock_client(rows=None):
    """A client whose every query chain resolves to `rows`."""
    query = MagicMock()
    for method in (
        "select", "eq", "neq", "limit", "ilike", "order", "insert", "update", "upsert", "delete"
    ):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=MagicMock(data=rows or []))

    client = MagicMock()
    client.table.return_value = query
    return client, query


class TestParseRole:
    def test_known_role(self):
        assert parse_role("vice_president") == Role.VICE_PRESIDENT

    @pytest.mark.parametrize("value", [None, "", "authenticated"])
    def test_unknown_values(self, value):
        assert parse_role(value) is None


class TestProfileDAO:
    def test_to_model(self):
        client, _ = mock_client()
        profile = ProfileDAO(client)._to_model(
            {
                "id": "u1",
                "email": "ana@example.com",
                "role": "president",
                "intended_role": "president",
                "team_id": "t1",
                "status": "approved",
                "is_first_manager": True,
                "is_setup_complete": True,
            }
        )

        assert profile.role == Role.PRESIDENT
        assert profile.team_id == "t1"
        assert profile.is_first_manager

    def test_to_model_defaults(self):
        client, _ = mock_client()
        profile = ProfileDAO(client)._to_model({"id": "u1", "role": "authenticated"})

        assert profile.role == Role.PLAYER
        assert profile.intended_role is None
        assert profile.status == MembershipStatus.APPROVED
        assert not profile.is_setup_complete

    def test_to_model_legacy_approval_flag(self):
        client, _ = mock_client()
        profile = ProfileDAO(client)._to_model({"id": "u1", "is_approved": False})

        assert profile.status == MembershipStatus.PENDING

    @pytest.mark.asyncio
    async def test_find_officer_holder(self):
        client, query = mock_client([{"id": "u2", "role": "president", "team_id": "t1"}])

        holder = await ProfileDAO(client).find_officer_holder("t1", Role.PRESIDENT, "u1")

        assert holder.id == "u2"
        client.table.assert_called_with("profiles")
        query.eq.assert_any_call("team_id", "t1")
        query.eq.assert_any_call("role", "president")
        query.eq.assert_any_call("status", "approved")
        query.neq.assert_called_once_with("id", "u1")

    @pytest.mark.asyncio
    async def test_find_officer_holder_free_office(self):
        client, _ = mock_client([])
        assert await ProfileDAO(client).find_officer_holder("t1", Role.PRESIDENT) is None

    @pytest.mark.asyncio
    async def test_demote_to_admin(self):
        client, query = mock_client()

        await ProfileDAO(client).demote_to_admin("u2")

        query.update.assert_called_once_with({"role": "admin"})
        query.eq.assert_called_once_with("id", "u2")


class TestTeamDAO:
    def test_to_db_omits_empty_fields(self):
        client, _ = mock_client()
        data = TeamDAO(client)._to_db(Team(name="FC Test", creator_id="u1", member_count=1))

        assert data["name"] == "FC Test"
        assert data["creator_id"] == "u1"
        assert data["member_count"] == 1
        assert "id" not in data
        assert "logo" not in data

    def test_to_model_fills_default_colours(self):
        client, _ = mock_client()
        team = TeamDAO(client)._to_model({"id": 7, "name": "FC Test", "primary_color": None})

        assert team.id == "7"
        assert team.primary_color == "#13ec5b"
        assert team.member_count == 0
        assert not team.has_first_manager

    @pytest.mark.asyncio
    async def test_insert_returns_created_row(self):
        client, query = mock_client([{"id": "t1", "name": "FC Test"}])

        team = await TeamDAO(client).insert(Team(name="FC Test"))

        assert team.id == "t1"
        query.insert.assert_called_once()

    @pytest.mark.asyncio
    async def test_update_flags_skips_empty_patch(self):
        client, query = mock_client()

        await TeamDAO(client).update_flags("t1")

        query.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_flags(self):
        client, query = mock_client()

        await TeamDAO(client).update_flags("t1", member_count=3)

        query.update.assert_called_once_with({"member_count": 3})

    @pytest.mark.asyncio
    async def test_find_by_name(self):
        client, query = mock_client([{"id": "t1", "name": "FC Test"}])

        teams = await TeamDAO(client).find_by_name("test")

        assert [t.name for t in teams] == ["FC Test"]
        query.ilike.assert_called_once_with("name", "%test%")


class TestTeamMemberDAO:
    @pytest.mark.asyncio
    async def test_upsert_on_team_and_profile(self):
        client, query = mock_client()
        member = TeamMember(team_id="t1", profile_id="u1", role="player")

        await TeamMemberDAO(client).upsert(member)

        client.table.assert_called_with("team_members")
        _, kwargs = query.upsert.call_args
        assert kwargs["on_conflict"] == "team_id,profile_id"

    @pytest.mark.asyncio
    async def test_find_by_team(self):
        client, _ = mock_client([{"team_id": "t1", "profile_id": "u1", "role": "admin"}])

        members = await TeamMemberDAO(client).find_by_team("t1")

        assert members[0].role == "admin"
        assert not members[0].is_team_approved


class TestNotificationDAO:
    def test_to_model_defaults(self):
        client, _ = mock_client()
        note = NotificationDAO(client)._to_model({"id": 3, "user_id": "u1", "data": None})

        assert note.id == "3"
        assert note.type == NotificationType.GENERAL_ALERT
        assert note.status == NotificationStatus.PENDING
        assert note.data == {}

    @pytest.mark.asyncio
    async def test_find_by_user_newest_first(self):
        row = {"id": "n1", "user_id": "u1", "type": "promotion_invite"}
        client, query = mock_client([{**row, "data": {"new_role": "admin"}}])

        notes = await NotificationDAO(client).find_by_user("u1")

        assert notes[0].offered_role == Role.ADMIN
        client.table.assert_called_with("notifications")
        query.eq.assert_called_once_with("user_id", "u1")
        query.order.assert_called_once_with("created_at", desc=True)

    @pytest.mark.asyncio
    async def test_insert(self):
        client, query = mock_client([{"id": "n1", "user_id": "u2", "type": "promotion_invite"}])
        note = Notification(
            user_id="u2", type=NotificationType.PROMOTION_INVITE, data={"new_role": "admin"}
        )

        created = await NotificationDAO(client).insert(note)

        assert created.id == "n1"
        row = query.insert.call_args.args[0]
        assert row["type"] == "promotion_invite"
        assert row["status"] == "pending"
        assert "id" not in row

    @pytest.mark.asyncio
    async def test_set_status(self):
        client, query = mock_client()

        await NotificationDAO(client).set_status("n1", NotificationStatus.REJECTED)

        query.update.assert_called_once_with({"status": "rejected"})
        query.eq.assert_called_once_with("id", "n1")

    @pytest.mark.asyncio
    async def test_confirm_promotion(self):
        client, _ = mock_client()
        client.rpc.return_value.execute = AsyncMock(
            return_value=MagicMock(data={"success": True, "new_role": "vice_president"})
        )

        role = await NotificationDAO(client).confirm_promotion("n1")

        assert role == Role.VICE_PRESIDENT
        client.rpc.assert_called_once_with("confirm_promotion", {"notification_id": "n1"})

    @pytest.mark.asyncio
    async def test_confirm_promotion_refused(self):
        client, _ = mock_client()
        client.rpc.return_value.execute = AsyncMock(
            return_value=MagicMock(data={"success": False, "error": "Invite expired"})
        )

        with pytest.raises(RuntimeError, match="Invite expired"):
            await NotificationDAO(client).confirm_promotion("n1")


class TestGateway:
    def test_to_session(self):
        raw = MagicMock(access_token="token")
        raw.user.id = "u1"
        raw.user.email = "ana@example.com"

        session = to_session(raw)

        assert session.user_id == "u1"
        assert session.access_token == "token"

    def test_to_session_without_user(self):
        assert to_session(None) is None
        assert to_session(MagicMock(user=None)) is None

    def test_to_auth_event(self):
        assert to_auth_event("SIGNED_OUT") == AuthEvent.SIGNED_OUT
        assert to_auth_event("MFA_CHALLENGE_VERIFIED") == "MFA_CHALLENGE_VERIFIED"

    @pytest.mark.asyncio
    async def test_full_profile_joins_team(self):
        client, _ = mock_client()
        profiles = MagicMock(spec=ProfileDAO)
        teams = MagicMock(spec=TeamDAO)
        profiles.get_by_id = AsyncMock(
            return_value=ProfileDAO(client)._to_model({"id": "u1", "team_id": "t1"})
        )
        teams.get_by_id = AsyncMock(return_value=Team(id="t1", name="FC Test"))
        gateway = SupabaseAuthGateway(client, profiles=profiles, teams=teams)

        profile = await gateway.get_full_profile("u1")

        assert profile.team.name == "FC Test"

    @pytest.mark.asyncio
    async def test_update_profile_requires_session(self):
        client, _ = mock_client()
        client.auth.get_session = AsyncMock(return_value=None)
        gateway = SupabaseAuthGateway(client)

        with pytest.raises(RuntimeError, match="Not signed in"):
            await gateway.update_profile({"intended_role": "player"})

    @pytest.mark.asyncio
    async def test_oauth_uses_configured_redirect(self):
        client, _ = mock_client()
        client.auth.sign_in_with_oauth = AsyncMock(
            return_value=MagicMock(url="https://auth.example.com/authorize")
        )
        gateway = SupabaseAuthGateway(client, oauth_redirect_url="amafut://dashboard")

        url = await gateway.sign_in_with_oauth(OAuthProvider.GOOGLE)

        assert url == "https://auth.example.com/authorize"
        client.auth.sign_in_with_oauth.assert_awaited_once_with(
            {"provider": "google", "options": {"redirect_to": "amafut://dashboard"}}
        )

    @pytest.mark.asyncio
    async def test_oauth_without_redirect(self):
        client, _ = mock_client()
        client.auth.sign_in_with_oauth = AsyncMock(return_value=MagicMock(url="https://x"))

        await SupabaseAuthGateway(client).sign_in_with_oauth(OAuthProvider.APPLE)

        client.auth.sign_in_with_oauth.assert_awaited_once_with({"provider": "apple"})

    @pytest.mark.asyncio
    async def test_repository_delegates_notification_queries(self):
        client, query = mock_client([{"id": "n1", "user_id": "u1"}])
        repository = SupabaseMembershipRepository(client)

        notes = await repository.list_notifications("u1")

        assert notes[0].id == "n1"
        client.table.assert_called_with("notifications")

    @pytest.mark.asyncio
    async def test_repository_delegates_roster_queries(self):
        client, query = mock_client([{"team_id": "t1", "profile_id": "u1", "role": "player"}])
        repository = SupabaseMembershipRepository(client)

        members = await repository.list_team_members("t1")

        assert members[0].profile_id == "u1"
        query.eq.assert_called_with("team_id", "t1")


class TestFileSessionStorage:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "session.json")

        await storage.set_item("token", "abc")
        assert await storage.get_item("token") == "abc"
        assert (tmp_path / "session.json").stat().st_mode & 0o777 == 0o600

        await storage.remove_item("token")
        assert await storage.get_item("token") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")

        assert await FileSessionStorage(path).get_item("token") is None
