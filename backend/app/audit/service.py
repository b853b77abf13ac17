import json
import os
import secrets
import threading
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from fastapi import Depends, Request

from ..core.logging import get_logger
from ..core.settings import Settings, get_settings
from ..models.Audit import AuditEventType, AuditRecord

logger = get_logger(__name__)

INDEX_FILENAME = "interactions.json"
RECORD_PREFIX = "interaction-"


@dataclass(frozen=True)
class AuditWriteResult:
    index_path: Path
    record_path: Path
    id: str


def create_audit_id() -> str:
    """
    Random 128-bit identifier, hex encoded.
    """
    return secrets.token_hex(16)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_audit_json(value: Any) -> str:
    """
    Serializes a snapshot for the audit record. Never raises.
    """
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return json.dumps({"unserializable": True, "type": type(value).__name__})


def error_snapshot(exc: BaseException) -> str:
    return to_audit_json({
        "message": str(exc),
        "name": type(exc).__name__,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    })


class AuditLog:
    """
    Append-only audit log on local disk.

    Every record is written twice: appended to the cumulative index
    (``interactions.json``) and as its own standalone file. Index updates are a
    read-modify-write serialized by a per-instance lock, so writers in the same
    process never lose each other's entries. Separate processes sharing the
    directory are not coordinated: the index is last-writer-wins between them,
    while standalone files are never lost and ``rebuild_index`` can restore the
    index from them. The replace is atomic only where the filesystem's rename is.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)
        self.index_path = self.directory / INDEX_FILENAME
        self._lock = threading.Lock()

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def read_index(self) -> list[Any]:
        """
        Returns the index entries, treating a missing or corrupt index as empty.
        """
        try:
            raw = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("audit_index_unreadable", path=str(self.index_path), error=str(e))
            return []

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("audit_index_corrupt", path=str(self.index_path))
            return []
        if not isinstance(parsed, list):
            logger.warning("audit_index_corrupt", path=str(self.index_path), type=type(parsed).__name__)
            return []
        return parsed

    def _replace_index(self, records: list[Any]) -> None:
        # Unique per write so concurrent processes never share a temporary file
        tmp_path = self.index_path.with_name(f"{self.index_path.name}.{os.getpid()}.{secrets.token_hex(4)}.tmp")
        tmp_path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
        try:
            os.replace(tmp_path, self.index_path)
        except OSError:
            # Some filesystems refuse to rename over an existing file
            try:
                self.index_path.unlink(missing_ok=True)
                os.replace(tmp_path, self.index_path)
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise

    def record_path_for(self, document: dict[str, Any]) -> Path:
        stamp = document["timestamp"].replace(":", "-").replace(".", "-")
        return self.directory / f"{RECORD_PREFIX}{stamp}-{document['id'][:8]}.json"

    def write(self, record: AuditRecord) -> AuditWriteResult:
        """
        Persists one record to the index and to its standalone file.
        Raises on I/O failure; callers on a request path use ``record_event``.
        """
        self._ensure_directory()

        updates = {}
        if not record.id:
            updates["id"] = create_audit_id()
        if not record.timestamp:
            updates["timestamp"] = utc_timestamp()
        if updates:
            record = record.model_copy(update=updates)
        document = record.to_document()

        # The standalone copy goes first and is kept even when the index update fails
        record_path = self.record_path_for(document)
        try:
            record_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        finally:
            with self._lock:
                existing = self.read_index()
                existing.append(document)
                self._replace_index(existing)

        return AuditWriteResult(index_path=self.index_path, record_path=record_path, id=document["id"])

    def iter_record_files(self) -> Iterator[Path]:
        if not self.directory.is_dir():
            return iter(())
        return iter(sorted(self.directory.glob(f"{RECORD_PREFIX}*.json")))

    def load_records(self) -> list[dict[str, Any]]:
        """
        Reads every standalone record file, skipping unreadable ones.
        Sorted by timestamp, then id.
        """
        records = []
        for path in self.iter_record_files():
            try:
                document = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("audit_record_unreadable", path=str(path), error=str(e))
                continue
            if isinstance(document, dict) and document.get("id") and document.get("timestamp"):
                records.append(document)
        records.sort(key=lambda r: (r["timestamp"], r["id"]))
        return records

    def rebuild_index(self) -> int:
        """
        Reconstructs the cumulative index from the standalone record files.
        Returns the number of records in the rebuilt index.
        """
        self._ensure_directory()
        with self._lock:
            records = self.load_records()
            self._replace_index(records)
        logger.info("audit_index_rebuilt", path=str(self.index_path), records=len(records))
        return len(records)


_audit_logs: dict[Path, AuditLog] = {}
_audit_logs_lock = threading.Lock()


def get_audit_log(settings: Settings = Depends(get_settings)) -> AuditLog:
    """
    One AuditLog per directory so that every request shares its index lock.
    """
    directory = Path(settings.AUDIT_LOG_DIR).resolve()
    with _audit_logs_lock:
        audit_log = _audit_logs.get(directory)
        if audit_log is None:
            audit_log = AuditLog(directory)
            _audit_logs[directory] = audit_log
        return audit_log


def request_context(request: Request) -> dict[str, Optional[str]]:
    forwarded_for = request.headers.get("x-forwarded-for")
    client_ip = forwarded_for or (request.client.host if request.client else None)
    return {
        "client_ip": client_ip or "",
        "user_agent": request.headers.get("user-agent", ""),
        "path": request.url.path,
        "method": request.method,
    }


def record_event(
    audit_log: AuditLog,
    request: Request,
    event_type: AuditEventType,
    ok: bool,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    **payload: Any,
) -> Optional[AuditWriteResult]:
    """
    Best-effort audit write for request handlers.
    A failure is logged for operators and never reaches the caller.
    """
    try:
        record = AuditRecord(
            event_type=event_type,
            ok=ok,
            user_id=user_id,
            session_id=session_id,
            **request_context(request),
            **payload,
        )
        return audit_log.write(record)
    except Exception:
        logger.exception("audit_write_failed", event_type=event_type.value, user_id=user_id)
        return None
