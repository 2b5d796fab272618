"""User management CLI commands."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from sqlalchemy.ext.asyncio import AsyncSession

user_app = typer.Typer()

T = TypeVar("T")


async def _with_session(action: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Open the configured database, run ``action`` in one session, then dispose."""
    from agua_api.core.config import get_settings
    from agua_api.core.database import dispose_engine, init_engine, session_scope

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with session_scope() as session:
            return await action(session)
    finally:
        await dispose_engine()


@user_app.command("create")
def create_user(
    email: str = typer.Option(..., prompt=True, help="Email address"),
    name: str = typer.Option(..., prompt=True, help="Display name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    role: str = typer.Option("viewer", prompt=True, help="User role (super_admin/admin/operator/viewer)"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if user already exists (idempotent mode)",
    ),
) -> None:
    """Create a new user interactively."""
    asyncio.run(_create_user(email, name, password, role, if_not_exists=if_not_exists))


async def _create_user(
    email: str,
    name: str,
    password: str,
    role: str,
    *,
    if_not_exists: bool = False,
) -> None:
    """Async implementation of user creation."""
    from pydantic import ValidationError

    from agua_api.schemas.auth import UserCreateRequest
    from agua_api.services.auth_service import create_user

    try:
        request = UserCreateRequest(email=email, name=name, password=password, role=role)
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    try:
        user = await _with_session(lambda session: create_user(session, request))
    except ValueError as e:
        if if_not_exists and "already exists" in str(e):
            typer.echo(f"User '{email}' already exists, skipping (--if-not-exists)")
            return
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"User '{user.email}' created with role '{user.role}'")


@user_app.command("list")
def list_users() -> None:
    """List all users."""
    asyncio.run(_list_users())


async def _list_users() -> None:
    """Async implementation of user listing."""
    from agua_api.services.auth_service import list_users

    users, total = await _with_session(lambda session: list_users(session, page=1, page_size=1000))
    typer.echo(f"{'Email':<32} {'Role':<12} {'Active':<8} {'Locked until':<25}")
    typer.echo("-" * 80)
    for user in users:
        locked = user.locked_until.isoformat() if user.locked_until else "-"
        typer.echo(f"{user.email:<32} {user.role:<12} {user.is_active!s:<8} {locked:<25}")
    typer.echo(f"\nTotal: {total}")


@user_app.command("deactivate")
def deactivate_user(
    email: str = typer.Argument(..., help="Email of the user to deactivate"),
) -> None:
    """Deactivate a user and end their open sessions."""
    asyncio.run(_deactivate_user(email))


async def _deactivate_user(email: str) -> None:
    from agua_api.core.config import get_settings
    from agua_api.services.auth_service import get_user_by_email, update_user

    settings = get_settings()

    async def action(session: AsyncSession) -> bool:
        user = await get_user_by_email(session, email)
        if user is None:
            return False
        await update_user(session, user, {"is_active": False}, settings=settings)
        return True

    if not await _with_session(action):
        typer.echo(f"Error: user '{email}' not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"User '{email}' deactivated")


@user_app.command("unlock")
def unlock_user(
    email: str = typer.Argument(..., help="Email of the user to unlock"),
) -> None:
    """Clear a user's failed-attempt counter and lockout."""
    asyncio.run(_unlock_user(email))


async def _unlock_user(email: str) -> None:
    from agua_api.services.auth_service import get_user_by_email
    from agua_api.services.auth_service import unlock_user as unlock

    async def action(session: AsyncSession) -> bool:
        user = await get_user_by_email(session, email)
        if user is None:
            return False
        await unlock(session, user)
        return True

    if not await _with_session(action):
        typer.echo(f"Error: user '{email}' not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"User '{email}' unlocked")


@user_app.command("seed-demo")
def seed_demo(
    domain: str = typer.Option("agua.local", "--domain", help="Email domain for the demo accounts"),
) -> None:
    """Create one demo account per role and print their generated passwords."""
    asyncio.run(_seed_demo(domain))


async def _seed_demo(domain: str) -> None:
    from agua_api.services.auth_service import seed_demo_users

    created = await _with_session(lambda session: seed_demo_users(session, domain=domain))
    if not created:
        typer.echo("All demo users already exist, nothing to do")
        return
    for user, password in created:
        typer.echo(f"{user.email:<32} {user.role:<12} {password}")
    typer.echo(f"\nCreated {len(created)} demo user(s); store these passwords now, they are not shown again")
