"""Merge sessions from every workspace and source into one ordered list."""

import logging
import time
from typing import Optional

from .builder import load_session_file
from .core import ChatSession, StorageRoot, WorkspaceInfo
from .database import extract_database_sessions
from .discovery import discover_workspaces

logger = logging.getLogger(__name__)


def get_all_sessions(
    roots: Optional[list[StorageRoot]] = None,
    now: Optional[float] = None,
) -> list[ChatSession]:
    """Discover, parse, deduplicate and sort every chat session on this machine."""
    return collect_sessions(discover_workspaces(roots), now=now)


def collect_sessions(workspaces: list[WorkspaceInfo], now: Optional[float] = None) -> list[ChatSession]:
    """Aggregate sessions from transcript files and databases.

    Within each workspace, file sessions come before database sessions. Empty
    sessions are dropped; the first session seen for an id wins. The result
    is sorted newest first, ties keeping aggregation order.
    """
    if now is None:
        now = time.time() * 1000

    sessions = []
    seen_ids = set()

    def add(session: ChatSession) -> None:
        if not session.messages or session.session_id in seen_ids:
            return
        seen_ids.add(session.session_id)
        sessions.append(session)

    for workspace in workspaces:
        for path in workspace.chat_session_files:
            load = load_session_file(path, workspace)
            if load.session:
                add(load.session)

        if workspace.has_state_db:
            db_load = extract_database_sessions(workspace, now=now)
            for session in db_load.sessions:
                add(session)

    # list.sort is stable, so equal timestamps keep aggregation order.
    sessions.sort(key=lambda s: s.modified_at or 0, reverse=True)
    logger.debug("Aggregated %d sessions from %d workspaces", len(sessions), len(workspaces))
    return sessions


def group_by_workspace(
    sessions: list[ChatSession], max_sessions: int = 100
) -> list[tuple[str, list[ChatSession]]]:
    """Group the first max_sessions sessions by workspace name.

    Groups are ordered by their most recently modified session.
    """
    groups: dict[str, list[ChatSession]] = {}
    for session in sessions[:max_sessions]:
        groups.setdefault(session.workspace_name, []).append(session)

    return sorted(
        groups.items(),
        key=lambda item: max(s.modified_at or 0 for s in item[1]),
        reverse=True,
    )
