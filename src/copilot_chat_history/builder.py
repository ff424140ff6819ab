"""Build ChatSession objects from transcript files and database records."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .core import ChatMessage, ChatSession, SessionLoad, SourceStatus, WorkspaceInfo
from .parser import first_truthy, parse_messages

logger = logging.getLogger(__name__)

TITLE_FIELDS = ("title", "name", "sessionTitle", "customTitle")
CREATED_FIELDS = ("createdAt", "created", "timestamp", "creationDate")
MODEL_FIELDS = ("model", "languageModel", "modelId")
AGENT_MODE_FIELDS = ("agentMode", "mode", "agent")

TITLE_MAX_LEN = 60


def load_session_file(path: Path, workspace: WorkspaceInfo) -> SessionLoad:
    """Read one chatSessions/*.json transcript into a session.

    The session id is the file name without extension and the modification
    time is the file's mtime.
    """
    try:
        raw = path.read_text(encoding="utf-8")
        stat = path.stat()
    except FileNotFoundError as e:
        return SessionLoad(path=path, status=SourceStatus.NOT_FOUND, detail=str(e))
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read session file %s: %s", path, e)
        return SessionLoad(path=path, status=SourceStatus.UNREADABLE, detail=str(e))

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.warning("Corrupt session file %s: %s", path, e)
        return SessionLoad(path=path, status=SourceStatus.MALFORMED, detail=str(e))

    if not isinstance(data, dict):
        return SessionLoad(
            path=path,
            status=SourceStatus.UNSUPPORTED,
            detail=f"top-level {type(data).__name__}, expected object",
        )

    try:
        messages = parse_messages(data, keep_raw=True)
    except RecursionError as e:
        logger.warning("Session file %s is nested too deeply: %s", path, e)
        return SessionLoad(path=path, status=SourceStatus.MALFORMED, detail=str(e))

    session = build_session(
        data,
        messages,
        workspace,
        session_id=path.stem,
        source="file",
        modified_at=stat.st_mtime * 1000,
        file_path=path,
    )
    status = SourceStatus.OK if messages else SourceStatus.EMPTY
    return SessionLoad(path=path, session=session, status=status)


def build_database_session(
    data: dict,
    messages: list[ChatMessage],
    workspace: WorkspaceInfo,
    fallback_id: str,
    now: float,
) -> ChatSession:
    """Build a session from a state.vscdb record.

    An explicit ``sessionId`` wins over ``fallback_id``. The database carries
    no modification time, so ``now`` (epoch ms) stands in for it.
    """
    session_id = data.get("sessionId") or fallback_id
    return build_session(
        data,
        messages,
        workspace,
        session_id=str(session_id),
        source="database",
        modified_at=now,
    )


def build_session(
    data: dict,
    messages: list[ChatMessage],
    workspace: WorkspaceInfo,
    session_id: str,
    source: str,
    modified_at: Optional[float] = None,
    file_path: Optional[Path] = None,
) -> ChatSession:
    return ChatSession(
        session_id=session_id,
        title=resolve_title(data, messages, session_id),
        messages=messages,
        workspace_id=workspace.workspace_id,
        workspace_name=workspace.project_name or f"Workspace {workspace.workspace_id[:8]}...",
        project_path=workspace.project_path,
        created_at=first_truthy(data, CREATED_FIELDS),
        modified_at=modified_at,
        model=_as_text(first_truthy(data, MODEL_FIELDS)),
        agent_mode=_as_text(first_truthy(data, AGENT_MODE_FIELDS)),
        source=source,
        file_path=file_path,
    )


def resolve_title(data: dict, messages: list[ChatMessage], session_id: str) -> str:
    """Explicit title, else the first user message, else a placeholder."""
    for key in TITLE_FIELDS:
        value = data.get(key)
        if value and isinstance(value, str):
            return value

    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user and first_user.content:
        return _truncate(first_user.content, TITLE_MAX_LEN)

    return f"Chat {session_id[:8]}..."


def _as_text(value: Any) -> Optional[str]:
    """Coerce model/mode values to text; some schemas store objects here."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("id", "name", "identifier"):
            if isinstance(value.get(key), str):
                return value[key]
    return json.dumps(value, ensure_ascii=False)


def _truncate(text: str, max_len: int) -> str:
    """Keep the first max_len characters, adding an ellipsis if anything was cut."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
