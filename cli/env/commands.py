import secrets
from pathlib import Path

import typer

app = typer.Typer(help="Environment setup commands.")

ENV_TEMPLATE = """\
ENVIRONMENT=development
LOG_LEVEL=INFO
SESSION_SECRET="{session_secret}"
AUTH_PASSWORD="{auth_password}"
AUDIT_LOG_DIR=logs
LLMLITE_URL=
LLMLITE_API_KEY=
LLMLITE_MODEL=gpt-4o-mini
"""


def generate_session_secret() -> str:
    """
    256 random bits, URL-safe base64.
    """
    return secrets.token_urlsafe(32)


@app.command("init")
def init_env(
    path: Path = typer.Option(Path(".env"), "--path", help="Where to write the env file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """
    Write a .env file with a freshly generated SESSION_SECRET.
    """
    if path.exists() and not force:
        overwrite = typer.confirm(f"{path} already exists. Overwrite it?", default=False)
        if not overwrite:
            typer.echo("Aborted.")
            raise typer.Exit(code=1)

    auth_password = typer.prompt("Shared login password", hide_input=True, confirmation_prompt=True)
    if not auth_password.strip():
        typer.echo("Password cannot be empty.")
        raise typer.Exit(code=1)

    path.write_text(
        ENV_TEMPLATE.format(session_secret=generate_session_secret(), auth_password=auth_password),
        encoding="utf-8",
    )
    typer.echo(f"SUCCESS: {path} created with a new SESSION_SECRET.")
