import getpass
import typer

from cli.core.session import save_token, load_token, load_user_id, clear_token, is_logged_in
from cli.core.api import api_login, api_logout, api_me


app = typer.Typer(help="Authentication commands (login, logout, whoami)")

MAX_USER_ID_LENGTH = 128


@app.command("login")
def login(
    user_id: str = typer.Option(None, "--user", "-u", help="Display name recorded in the audit log"),
):
    """
    Login to the backend. Only allowed if no session is active.
    """
    if is_logged_in():
        typer.echo("Session already active. Logout first to remove current session token.")
        raise typer.Exit(code=1)

    if user_id is None:
        user_id = typer.prompt("User id")

    user_id = user_id.strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        typer.echo(f"Invalid user id. Use 1 to {MAX_USER_ID_LENGTH} characters.")
        raise typer.Exit(code=1)

    password = getpass.getpass("Password: ")

    token = api_login(user_id, password)

    if token is None:
        typer.echo("Login failed (invalid credentials or API error).")
        raise typer.Exit(code=1)

    save_token(token, user_id)
    typer.echo(f"Login successful as '{user_id}'.")


@app.command("logout")
def logout():
    """
    End session and delete local token.
    """
    token = load_token()
    if token:
        if api_logout(token):
            typer.echo("Logged out from backend.")
        else:
            typer.echo("Warning: Failed to reach the backend. The local session is removed anyway.")

    clear_token()
    typer.echo("Session ended.")


@app.command("whoami")
def whoami():
    """
    Show the user id bound to the current session.
    """
    token = load_token()
    if not token:
        typer.echo("No active session. Please login first.")
        raise typer.Exit(code=1)

    user_id = api_me(token)
    if user_id is None:
        typer.echo(f"Session for '{load_user_id()}' is no longer valid. Login again.")
        raise typer.Exit(code=1)

    typer.echo(user_id)
