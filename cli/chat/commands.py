from pathlib import Path
from typing import Optional

import typer

from cli.core.session import load_token
from cli.core.api import api_chat


app = typer.Typer(help="Chat commands (send a message to the scenario).")


def _read_prompt(prompt_file: Optional[Path]) -> Optional[str]:
    if prompt_file is None:
        return None
    try:
        return prompt_file.read_text(encoding="utf-8")
    except OSError as e:
        typer.echo(f"Could not read prompt file: {e}")
        raise typer.Exit(code=1)


@app.command("send")
def send(
    message: str = typer.Argument(..., help="Message to send"),
    prompt_file: Optional[Path] = typer.Option(None, "--prompt-file", "-p", help="Scenario system prompt"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Override the upstream model"),
):
    """
    Send a single message and print the assistant reply.
    """
    token = load_token()
    if not token:
        typer.echo("No active session. Please login first.")
        raise typer.Exit(code=1)

    assistant, error = api_chat(token, message, system_prompt=_read_prompt(prompt_file), model=model)
    if error is not None:
        typer.echo(f"Chat failed: {error}")
        raise typer.Exit(code=1)

    typer.echo(assistant)


@app.command("session")
def session(
    prompt_file: Optional[Path] = typer.Option(None, "--prompt-file", "-p", help="Scenario system prompt"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Override the upstream model"),
):
    """
    Interactive conversation. History is kept locally and resent on each turn.
    An empty line ends the session.
    """
    token = load_token()
    if not token:
        typer.echo("No active session. Please login first.")
        raise typer.Exit(code=1)

    system_prompt = _read_prompt(prompt_file)
    history = []
    while True:
        message = typer.prompt("You", default="", show_default=False)
        if not message.strip():
            break

        assistant, error = api_chat(token, message, system_prompt=system_prompt, history=list(history), model=model)
        if error is not None:
            typer.echo(f"Chat failed: {error}")
            continue

        typer.echo(f"Assistant: {assistant}")
        history.append({"role": "user", "content": message})
        history.append({"role": "assistant", "content": assistant})
