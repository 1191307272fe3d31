import asyncio

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from hello_api.core.exceptions import ApiError, field_error_messages

console = Console()
cli_app = typer.Typer(name="hello-admin", help="Hello API administrative CLI")


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


async def _ensure_db():
    from hello_api.core.database import init_db
    await init_db()


@cli_app.command("list-users")
def list_users():
    """List all users, newest first."""
    async def _list():
        await _ensure_db()
        from hello_api.services.users import UserService
        return await UserService().list_users()

    users = _run_async(_list())

    if not users:
        console.print("[dim]No users found.[/dim]")
        return

    table = Table(title="Users")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name")
    table.add_column("Email", style="green")
    table.add_column("Age", justify="right")
    table.add_column("Created")

    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M") if user.created_at else "-"
        age = str(user.age) if user.age is not None else "-"
        table.add_row(str(user.id), user.full_name, user.email, age, created)

    console.print(table)


@cli_app.command("create-user")
def create_user(
    first_name: str = typer.Option(..., "--first-name", help="Given name"),
    last_name: str = typer.Option(..., "--last-name", help="Family name"),
    email: str = typer.Option(..., "--email", help="Unique email address"),
    age: int = typer.Option(None, "--age", help="Age in years"),
):
    """Create a user after running business validation."""
    from hello_api.schemas.users import UserCreate
    from hello_api.services.validation import UserValidator

    try:
        candidate = UserCreate(first_name=first_name, last_name=last_name, email=email, age=age)
    except ValidationError as exc:
        for message in field_error_messages(exc):
            console.print(f"[bold red]Error:[/bold red] {message}")
        raise typer.Exit(code=1)

    result = UserValidator().validate_user(candidate)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if not result.valid:
        for err in result.errors:
            console.print(f"[bold red]Error:[/bold red] {err}")
        raise typer.Exit(code=1)

    async def _create():
        await _ensure_db()
        from hello_api.services.users import UserService
        return await UserService().create_user(**candidate.model_dump())

    try:
        user = _run_async(_create())
    except ApiError as exc:
        console.print(f"[bold red]{exc.message}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"\n[bold green]User created successfully![/bold green]\n")
    console.print(f"  ID:    {user.id}")
    console.print(f"  Name:  {user.full_name}")
    console.print(f"  Email: {user.email}\n")


@cli_app.command("delete-user")
def delete_user(
    user_id: int = typer.Argument(help="ID of the user to delete"),
):
    """Delete a user by ID."""
    async def _delete():
        await _ensure_db()
        from hello_api.services.users import UserService
        await UserService().delete_user(user_id)

    try:
        _run_async(_delete())
    except ApiError as exc:
        console.print(f"[yellow]{exc.message}[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[bold red]User {user_id} deleted.[/bold red]")


@cli_app.command("count-users")
def count_users():
    """Print the number of stored users."""
    async def _count():
        await _ensure_db()
        from hello_api.services.users import UserService
        return await UserService().count_users()

    console.print(f"Users: [bold]{_run_async(_count())}[/bold]")


def main():
    cli_app()


if __name__ == "__main__":
    main()
