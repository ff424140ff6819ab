"""FastAPI web server for copilot-chat-history."""

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from . import __version__
from .aggregator import get_all_sessions
from .core import ChatMessage, ChatSession, WorkspaceInfo
from .discovery import discover_workspaces
from .export import EXPORT_FORMATS, format_session, generate_filename, to_datetime
from .search import search_sessions

logger = logging.getLogger(__name__)

app = FastAPI(title="copilot-chat-history", version=__version__)

# Session cache (populated on first request, rebuilt on refresh)
_sessions: list[ChatSession] | None = None

MEDIA_TYPES = {
    "markdown": "text/markdown",
    "json": "application/json",
    "html": "text/html",
}


def _get_sessions(refresh: bool = False) -> list[ChatSession]:
    """Lazily aggregate and cache sessions."""
    global _sessions
    if _sessions is None or refresh:
        _sessions = get_all_sessions()
        logger.info("Loaded %d chat sessions", len(_sessions))
    return _sessions


def _find_session(session_id: str) -> ChatSession:
    for session in _get_sessions():
        if session.session_id == session_id:
            return session
    raise HTTPException(status_code=404, detail="Session not found")


def _iso(ts) -> str | None:
    """ISO 8601 for parseable timestamps; other strings pass through unchanged."""
    dt = to_datetime(ts)
    if dt:
        return dt.isoformat()
    return ts if isinstance(ts, str) and ts else None


def _workspace_to_dict(ws: WorkspaceInfo) -> dict:
    return {
        "id": ws.workspace_id,
        "variant": ws.variant,
        "project_path": ws.project_path,
        "project_name": ws.project_name,
        "session_files": len(ws.chat_session_files),
        "has_state_db": ws.has_state_db,
    }


def _session_to_dict(session: ChatSession) -> dict:
    """Convert a ChatSession dataclass to a JSON-serializable summary."""
    return {
        "id": session.session_id,
        "title": session.title,
        "workspace_id": session.workspace_id,
        "workspace_name": session.workspace_name,
        "project_path": session.project_path,
        "message_count": len(session.messages),
        "created": _iso(session.created_at),
        "modified": _iso(session.modified_at),
        "model": session.model,
        "agent_mode": session.agent_mode,
        "source": session.source,
    }


def _message_to_dict(msg: ChatMessage) -> dict:
    return {
        "role": msg.role,
        "content": msg.content,
        "timestamp": _iso(msg.timestamp),
    }


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/workspaces")
async def get_workspaces():
    """Return every discovered workspace with chat data."""
    return [_workspace_to_dict(ws) for ws in discover_workspaces()]


@app.get("/api/sessions")
async def get_sessions(
    workspace: str | None = Query(None, description="Filter by workspace id"),
    refresh: bool = Query(False, description="Re-scan storage before answering"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Return all sessions, newest first."""
    sessions = _get_sessions(refresh=refresh)
    if workspace:
        sessions = [s for s in sessions if s.workspace_id == workspace]

    return {
        "total": len(sessions),
        "sessions": [_session_to_dict(s) for s in sessions[offset: offset + limit]],
    }


@app.get("/api/search")
async def search(
    q: str = Query(..., min_length=1, description="Case-insensitive search text"),
    limit: int = Query(50, ge=1, le=1000),
):
    """Return sessions whose title or messages contain q."""
    results = search_sessions(_get_sessions(), q, limit=limit)
    return {
        "query": q,
        "total": len(results),
        "results": [
            {
                "session": _session_to_dict(r.session),
                "matches": [_message_to_dict(m) for m in r.matches],
            }
            for r in results
        ],
    }


@app.get("/api/session/{session_id}")
async def get_session(session_id: str):
    """Return full messages for a session."""
    session = _find_session(session_id)
    return {
        "session": _session_to_dict(session),
        "messages": [_message_to_dict(m) for m in session.messages],
    }


@app.get("/api/export/{session_id}")
async def export_session(
    session_id: str,
    format: str = Query("markdown", description="Export format: markdown, json or html"),
    detailed: bool = Query(False, description="Include tool calls and raw records"),
):
    """Export a session as Markdown, JSON or HTML."""
    if format not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unknown format: {format}")

    session = _find_session(session_id)
    content = format_session(session, format, detailed=detailed)
    # Header values must be latin-1; drop anything else from the title part.
    filename = generate_filename(session, format).encode("ascii", "ignore").decode("ascii")
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
