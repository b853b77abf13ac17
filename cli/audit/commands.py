import json
from pathlib import Path
from typing import Optional

import typer

from backend.app.audit.service import AuditLog
from cli.core.config import AUDIT_LOG_DIR

app = typer.Typer(help="Audit log tooling. Reads the backend's log directory directly.")


def _open_log(directory: Optional[Path]) -> AuditLog:
    directory = directory or Path(AUDIT_LOG_DIR)
    if not directory.is_dir():
        typer.echo(f"Audit directory not found: {directory}")
        raise typer.Exit(code=1)
    return AuditLog(directory)


@app.command("list")
def list_records(
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Audit log directory"),
    event_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only show this event type"),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="Only show this user id"),
):
    """
    Print the cumulative index as a table.
    """
    audit_log = _open_log(directory)
    records = [r for r in audit_log.read_index() if isinstance(r, dict)]
    if event_type:
        records = [r for r in records if r.get("eventType") == event_type]
    if user_id:
        records = [r for r in records if r.get("userId") == user_id]

    if not records:
        typer.echo("Audit log is empty.")
        return

    typer.echo(f"{'ID':<10} {'Timestamp':<26} {'Event':<14} {'OK':<4} {'User':<20} {'Path':<15}")
    typer.echo("-" * 92)
    for record in records:
        rid = str(record.get("id", ""))[:8]
        ts = str(record.get("timestamp", ""))
        event = str(record.get("eventType", ""))
        ok = "yes" if record.get("ok") else "no"
        user = str(record.get("userId") or "-")
        path = str(record.get("path") or "")
        typer.echo(f"{rid:<10} {ts:<26} {event:<14} {ok:<4} {user:<20} {path:<15}")


@app.command("show")
def show_record(
    record_id: str = typer.Argument(..., help="Record id or unique id prefix"),
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Audit log directory"),
):
    """
    Print one record from its standalone file.
    """
    audit_log = _open_log(directory)
    matches = [r for r in audit_log.load_records() if r["id"].startswith(record_id)]

    if not matches:
        typer.echo(f"Record {record_id} not found.")
        raise typer.Exit(code=1)
    if len(matches) > 1:
        typer.echo(f"Prefix {record_id} matches {len(matches)} records. Use a longer prefix.")
        raise typer.Exit(code=1)

    typer.echo(json.dumps(matches[0], indent=2))


@app.command("rebuild-index")
def rebuild_index(
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Audit log directory"),
):
    """
    Rebuild interactions.json from the standalone record files.
    Recovers index entries lost when several processes wrote concurrently.
    """
    audit_log = _open_log(directory)
    before = len(audit_log.read_index())
    count = audit_log.rebuild_index()
    typer.echo(f"Index rebuilt with {count} records ({count - before:+d} compared to the previous index).")
