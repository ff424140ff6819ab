"""Chat sessions stored in a workspace's state.vscdb.

The editor keeps miscellaneous state in the ``ItemTable`` key/value table of
an SQLite file. Some keys hold chat data as JSON. All access is read-only and
best-effort: a database that cannot be opened contributes no sessions.
"""

import json
import logging
import time
from contextlib import closing
from typing import Any, Optional

try:
    import sqlite3
except ImportError:  # Python built without the _sqlite3 extension
    sqlite3 = None

from .builder import build_database_session
from .core import ChatSession, DatabaseLoad, SourceStatus, WorkspaceInfo
from .discovery import STATE_DB_NAME
from .parser import ValueShape, classify_value, parse_messages

logger = logging.getLogger(__name__)

# Case-sensitive substrings; a key matching any of them is read.
CHAT_KEY_PATTERNS = ("chat", "interactive", "copilot", "session")


def extract_database_sessions(workspace: WorkspaceInfo, now: Optional[float] = None) -> DatabaseLoad:
    """Return every session encoded in the workspace's state.vscdb."""
    if now is None:
        now = time.time() * 1000

    db_path = workspace.storage_path / STATE_DB_NAME
    try:
        exists = db_path.is_file()
    except OSError as e:
        logger.warning("Cannot stat %s: %s", db_path, e)
        return DatabaseLoad(
            workspace_id=workspace.workspace_id,
            status=SourceStatus.UNREADABLE,
            detail=str(e),
        )
    if not exists:
        return DatabaseLoad(workspace_id=workspace.workspace_id, status=SourceStatus.NOT_FOUND)

    if sqlite3 is None:
        logger.debug("sqlite3 unavailable, skipping %s", db_path)
        return DatabaseLoad(
            workspace_id=workspace.workspace_id,
            status=SourceStatus.DRIVER_UNAVAILABLE,
            detail="sqlite3 module not available",
        )

    try:
        rows = _query_chat_rows(db_path)
    except (sqlite3.Error, OSError) as e:
        logger.warning("Cannot read chat data from %s: %s", db_path, e)
        return DatabaseLoad(
            workspace_id=workspace.workspace_id,
            status=SourceStatus.UNREADABLE,
            detail=str(e),
        )

    sessions = []
    skipped = 0
    for key, value in rows:
        try:
            data = json.loads(_decode_value(value))
            found = sessions_from_value(data, workspace, now)
        except (json.JSONDecodeError, TypeError, RecursionError) as e:
            logger.debug("Skipping %s row %r: %s", db_path, key, e)
            skipped += 1
            continue
        sessions.extend(found)

    status = SourceStatus.OK if sessions else SourceStatus.EMPTY
    return DatabaseLoad(
        workspace_id=workspace.workspace_id,
        sessions=sessions,
        status=status,
        skipped_rows=skipped,
    )


def sessions_from_value(data: Any, workspace: WorkspaceInfo, now: float) -> list[ChatSession]:
    """Interpret one decoded ItemTable value as zero or more sessions."""
    shape = classify_value(data)

    if shape is ValueShape.RECORD_LIST:
        return _sessions_from_records(data, workspace, now)

    if shape is ValueShape.SESSION_LIST:
        return _sessions_from_records(data["sessions"], workspace, now)

    if shape is ValueShape.KEYED_SESSIONS:
        sessions = []
        for session_id, record in data["sessions"].items():
            if not isinstance(record, dict):
                continue
            messages = parse_messages(record, keep_raw=False)
            if messages:
                sessions.append(build_database_session(record, messages, workspace, session_id, now))
        return sessions

    if shape is ValueShape.SESSION:
        messages = parse_messages(data, keep_raw=False)
        if messages:
            return [build_database_session(data, messages, workspace, f"db_{int(now)}", now)]

    return []


# ── Private helpers ──────────────────────────────────────────────


def _query_chat_rows(db_path) -> list[tuple[str, Any]]:
    where = " OR ".join("instr(key, ?) > 0" for _ in CHAT_KEY_PATTERNS)
    with closing(sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)) as conn:
        cur = conn.execute(
            f"SELECT key, value FROM ItemTable WHERE {where} ORDER BY rowid",
            CHAT_KEY_PATTERNS,
        )
        return cur.fetchall()


def _decode_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _sessions_from_records(records: list, workspace: WorkspaceInfo, now: float) -> list[ChatSession]:
    sessions = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            continue
        messages = parse_messages(record, keep_raw=False)
        if messages:
            sessions.append(build_database_session(record, messages, workspace, f"db_{index}", now))
    return sessions
