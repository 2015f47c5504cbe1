"""AmaFut CLI application.

Usage:
    amafut auth register -u ana@example.com --name Ana
    amafut auth login
    amafut onboard role president
    amafut team create "FC Test"
    amafut members approve <profile-id>
    amafut members promote <profile-id> vice_president
    amafut notifications accept <notification-id>
    amafut route
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from amafut.cli import session as cli_session
from amafut.config import get_settings
from amafut.errors import MembershipError
from amafut.logging import configure_logging
from amafut.membership import MembershipRuntime, Route
from amafut.models import Credentials, OAuthProvider, Role, TeamDetails

console = Console()
app = typer.Typer(
    name="amafut",
    help="Team membership and onboarding CLI",
    no_args_is_help=True,
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Configure logging before any command runs."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_format.value)


def _execute(operation: Callable[[MembershipRuntime], Awaitable[Any]]) -> tuple[MembershipRuntime, Any]:
    """Run an operation and turn membership errors into a non-zero exit."""
    try:
        return asyncio.run(cli_session.run(operation, get_settings()))
    except MembershipError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None


def _execute_check(operation: Callable[[MembershipRuntime], Awaitable[bool]], done: str) -> None:
    """Run a boolean officer action, printing the store's error on failure."""
    runtime, ok = _execute(operation)
    if not ok:
        console.print(f"[red]Error: {runtime.store.error or 'Operation failed'}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{done}[/green]")
    _print_snapshot(runtime)


def _print_snapshot(runtime: MembershipRuntime) -> None:
    snapshot = runtime.store.snapshot

    table = Table(title="Membership")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("User ID", snapshot.user_id or "-")
    table.add_row("Email", snapshot.email or "-")
    table.add_row("Role", snapshot.role.value if snapshot.role else "-")
    table.add_row(
        "Intended Role", snapshot.intended_role.value if snapshot.intended_role else "-"
    )
    table.add_row("Team", str(snapshot.team) if snapshot.team else (snapshot.team_id or "-"))
    table.add_row("Status", snapshot.status.value)
    table.add_row("First Manager", "yes" if snapshot.is_first_manager else "no")
    table.add_row("Setup Complete", "yes" if snapshot.is_setup_complete else "no")
    table.add_row("Lifecycle", runtime.router.state.value)
    table.add_row("Screen", runtime.navigator.current_path)

    console.print(table)


def _parse_role(value: str) -> Role:
    try:
        return Role(value.lower().replace("-", "_"))
    except ValueError:
        choices = ", ".join(r.value for r in Role)
        console.print(f"[red]Unknown role: {value}. Choose one of: {choices}[/red]")
        raise typer.Exit(1) from None


# =============================================================================
# AUTH COMMANDS
# =============================================================================

auth_app = typer.Typer(help="Authentication commands", no_args_is_help=True)
app.add_typer(auth_app, name="auth")


@auth_app.command("login")
def auth_login(
    email: str = typer.Option(None, "--user", "-u", help="Email"),
    password: str = typer.Option(None, "--password", "-p", help="Password"),
):
    """Login to AmaFut."""
    if not email:
        email = typer.prompt("Email")
    if not password:
        password = typer.prompt("Password", hide_input=True)

    try:
        credentials = Credentials(email=email, password=password)
    except ValidationError as e:
        console.print(f"[red]Error: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1) from None

    runtime, profile = _execute(
        lambda rt: rt.store.login(credentials.email, credentials.password)
    )
    console.print(f"[green]Logged in as {profile.name or profile.email}[/green]")
    _print_snapshot(runtime)


@auth_app.command("register")
def auth_register(
    email: str = typer.Option(None, "--user", "-u", help="Email"),
    password: str = typer.Option(None, "--password", "-p", help="Password"),
    name: str = typer.Option(None, "--name", "-n", help="Display name"),
):
    """Create an account."""
    if not email:
        email = typer.prompt("Email")
    if not password:
        password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)

    try:
        credentials = Credentials(email=email, password=password, name=name)
    except ValidationError as e:
        console.print(f"[red]Error: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1) from None

    runtime, _ = _execute(
        lambda rt: rt.store.register(credentials.email, credentials.password, credentials.name)
    )
    console.print(f"[green]Account created for {credentials.email}[/green]")
    _print_snapshot(runtime)


@auth_app.command("oauth")
def auth_oauth(
    provider: str = typer.Argument(..., help="google, apple or facebook"),
    redirect_to: str = typer.Option(None, "--redirect-to", help="Where to land afterwards"),
):
    """Print the link that starts a sign-in with an external provider."""
    try:
        chosen = OAuthProvider(provider.lower())
    except ValueError:
        choices = ", ".join(p.value for p in OAuthProvider)
        console.print(f"[red]Unknown provider: {provider}. Choose one of: {choices}[/red]")
        raise typer.Exit(1) from None

    _, url = _execute(lambda rt: rt.store.login_with_oauth(chosen, redirect_to))
    console.print(f"Open this link to continue with {chosen.value}:")
    console.print(url)


@auth_app.command("logout")
def auth_logout():
    """Logout and clear the stored session."""
    _execute(lambda rt: rt.store.logout())
    cli_session.clear_session(get_settings())
    console.print("[green]Logged out[/green]")


@auth_app.command("reset-password")
def auth_reset_password(email: str = typer.Argument(..., help="Account email")):
    """Send a password reset e-mail."""
    _execute(lambda rt: rt.store.reset_password(email))
    console.print(f"[green]Password reset e-mail sent to {email}[/green]")


@auth_app.command("status")
def auth_status():
    """Show the current membership snapshot."""
    runtime, _ = _execute(lambda rt: asyncio.sleep(0))
    if runtime.store.user_id is None:
        console.print("[yellow]Not logged in[/yellow]")
        console.print("Run: amafut auth login")
        raise typer.Exit(1)
    _print_snapshot(runtime)


# =============================================================================
# ONBOARDING COMMANDS
# =============================================================================

onboard_app = typer.Typer(help="Onboarding wizard steps", no_args_is_help=True)
app.add_typer(onboard_app, name="onboard")


def _go(route: Route) -> Callable[[MembershipRuntime], Awaitable[str]]:
    async def go(rt: MembershipRuntime) -> str:
        return rt.router.go(route)

    return go


@onboard_app.command("role")
def onboard_role(role: str = typer.Argument(..., help="president, vice_president, admin or player")):
    """Choose the role you are asking for."""
    requested = _parse_role(role)
    runtime, _ = _execute(lambda rt: rt.store.set_intended_role(requested))
    console.print(f"[green]Requested role: {requested.value}[/green]")
    _print_snapshot(runtime)


@onboard_app.command("privacy")
def onboard_privacy():
    """Open the privacy step."""
    runtime, _ = _execute(_go(Route.REGISTER_PRIVACY))
    _print_snapshot(runtime)


@onboard_app.command("profile")
def onboard_profile():
    """Accept the privacy terms, then finish the profile step."""

    async def finish(rt: MembershipRuntime) -> None:
        if rt.router.go(Route.REGISTER_PROFILE) != Route.REGISTER_PROFILE:
            console.print("[yellow]Finish the earlier onboarding steps first.[/yellow]")
            return
        await rt.store.mark_setup_complete()

    runtime, _ = _execute(finish)
    _print_snapshot(runtime)


# =============================================================================
# TEAM COMMANDS
# =============================================================================

team_app = typer.Typer(help="Team commands", no_args_is_help=True)
app.add_typer(team_app, name="team")


@team_app.command("create")
def team_create(
    name: str = typer.Argument(..., help="Team name"),
    primary_color: str = typer.Option(None, "--primary-color", help="Hex colour"),
    secondary_color: str = typer.Option(None, "--secondary-color", help="Hex colour"),
    logo: str = typer.Option(None, "--logo", help="Logo URL"),
):
    """Found a team and become its first manager."""
    fields: dict[str, Any] = {"name": name, "logo": logo}
    if primary_color:
        fields["primary_color"] = primary_color
    if secondary_color:
        fields["secondary_color"] = secondary_color
    details = TeamDetails(**fields)

    runtime, team_id = _execute(lambda rt: rt.store.create_team(details))
    console.print(f"[green]Created team {details.name}[/green] ({team_id})")
    _print_snapshot(runtime)


@team_app.command("join")
def team_join(team_id: str = typer.Argument(..., help="Team ID")):
    """Ask to join an existing team."""
    runtime, _ = _execute(lambda rt: rt.store.join_team(team_id))
    console.print(f"[green]Requested to join {team_id}[/green]")
    _print_snapshot(runtime)


@team_app.command("edit")
def team_edit(
    name: str = typer.Option(..., "--name", help="Team name"),
    primary_color: str = typer.Option(None, "--primary-color", help="Hex colour"),
    secondary_color: str = typer.Option(None, "--secondary-color", help="Hex colour"),
):
    """Rename or recolour your team (officers only)."""
    fields: dict[str, Any] = {"name": name}
    if primary_color:
        fields["primary_color"] = primary_color
    if secondary_color:
        fields["secondary_color"] = secondary_color
    details = TeamDetails(**fields)

    runtime, _ = _execute(lambda rt: rt.store.update_team_details(details))
    console.print(f"[green]Updated team {details.name}[/green]")
    _print_snapshot(runtime)


@team_app.command("search")
def team_search(name: str = typer.Argument(..., help="Part of the team name")):
    """Find teams to join."""

    _, teams = _execute(lambda rt: rt.store.search_teams(name))
    if not teams:
        console.print("[yellow]No teams found[/yellow]")
        return

    table = Table(title=f"Teams matching '{name}'")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Members", justify="right")
    table.add_column("Managed")
    for team in teams:
        table.add_row(
            team.id or "-",
            team.name,
            str(team.member_count),
            "yes" if team.has_first_manager else "no",
        )
    console.print(table)


# =============================================================================
# MEMBER COMMANDS (officers)
# =============================================================================

members_app = typer.Typer(help="Team member management", no_args_is_help=True)
app.add_typer(members_app, name="members")


@members_app.command("list")
def members_list():
    """List your team's roster."""

    _, members = _execute(lambda rt: rt.store.list_roster())
    if not members:
        console.print("[yellow]No members found[/yellow]")
        return

    table = Table(title="Roster")
    table.add_column("Profile ID", style="dim")
    table.add_column("Role", style="cyan")
    table.add_column("Approved")
    for member in members:
        table.add_row(member.profile_id, member.role, "yes" if member.is_team_approved else "pending")
    console.print(table)


@members_app.command("approve")
def members_approve(member_id: str = typer.Argument(..., help="Profile ID")):
    """Approve a pending member into the role they asked for."""
    _execute_check(lambda rt: rt.store.approve_member(member_id), f"Approved {member_id}")


@members_app.command("reject")
def members_reject(member_id: str = typer.Argument(..., help="Profile ID")):
    """Reject a pending member."""
    _execute_check(lambda rt: rt.store.reject_member(member_id), f"Rejected {member_id}")


@members_app.command("remove")
def members_remove(member_id: str = typer.Argument(..., help="Profile ID")):
    """Remove a member from the team."""
    _execute_check(lambda rt: rt.store.remove_member(member_id), f"Removed {member_id}")


@members_app.command("role")
def members_role(
    member_id: str = typer.Argument(..., help="Profile ID"),
    new_role: str = typer.Argument(..., help="president, vice_president, admin or player"),
    current_role: str = typer.Option(None, "--current", help="The member's role today"),
):
    """Change a member's role; a taken office's holder becomes admin."""
    role = _parse_role(new_role)
    current = _parse_role(current_role) if current_role else None
    _execute_check(
        lambda rt: rt.store.update_member_role(member_id, current, role),
        f"{member_id} is now {role.value}",
    )


@members_app.command("promote")
def members_promote(
    member_id: str = typer.Argument(..., help="Profile ID"),
    new_role: str = typer.Argument(..., help="president, vice_president, admin or player"),
):
    """Invite a member to take on a new role."""
    role = _parse_role(new_role)
    _execute_check(
        lambda rt: rt.store.promote_member(member_id, role),
        f"Invited {member_id} to become {role.value}",
    )


# =============================================================================
# NOTIFICATION COMMANDS
# =============================================================================

notifications_app = typer.Typer(help="Notifications and promotion invites", no_args_is_help=True)
app.add_typer(notifications_app, name="notifications")


@notifications_app.command("list")
def notifications_list():
    """List your notifications, newest first."""

    runtime, notifications = _execute(lambda rt: rt.store.fetch_notifications())
    if not notifications:
        console.print("[yellow]No notifications[/yellow]")
        return

    table = Table(title=f"Notifications ({runtime.store.unread_count} unread)")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    for note in notifications:
        table.add_row(note.id or "-", note.type.value, note.title, note.status.value)
    console.print(table)


def _respond(notification_id: str, accept: bool) -> MembershipRuntime:
    async def respond(rt: MembershipRuntime):
        await rt.store.fetch_notifications()
        return await rt.store.respond_to_promotion(notification_id, accept)

    runtime, _ = _execute(respond)
    return runtime


@notifications_app.command("accept")
def notifications_accept(notification_id: str = typer.Argument(..., help="Notification ID")):
    """Accept a promotion invite."""
    runtime = _respond(notification_id, accept=True)
    console.print(f"[green]You are now {runtime.store.role.value}[/green]")
    _print_snapshot(runtime)


@notifications_app.command("decline")
def notifications_decline(notification_id: str = typer.Argument(..., help="Notification ID")):
    """Decline a promotion invite."""
    _respond(notification_id, accept=False)
    console.print("[green]Invite declined[/green]")


# =============================================================================
# ROUTING
# =============================================================================


@app.command("route")
def route(to: str = typer.Option(None, "--to", help="Screen to open, e.g. /dashboard")):
    """Show where the router sends you, optionally after opening a screen."""

    async def settle(rt: MembershipRuntime) -> None:
        if to:
            rt.router.go(to)

    runtime, _ = _execute(settle)
    ideal = runtime.router.ideal_route
    console.print(f"Lifecycle: [cyan]{runtime.router.state.value}[/cyan]")
    console.print(f"Ideal screen: [cyan]{ideal.value if ideal else '-'}[/cyan]")
    console.print(f"Current screen: [cyan]{runtime.navigator.current_path}[/cyan]")


if __name__ == "__main__":
    app()
