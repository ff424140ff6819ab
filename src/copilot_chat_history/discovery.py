"""Workspace discovery across editor workspaceStorage roots.

Each child folder of a workspaceStorage root is one workspace. A workspace is
kept when it has a ``chatSessions/`` folder of transcript files, a
``state.vscdb`` database, or both. The project it belongs to is read from the
``workspace.json`` sidecar when possible.
"""

import json
import logging
import posixpath
import urllib.parse
from pathlib import Path
from typing import Optional

from .config import get_workspace_storage_paths
from .core import RootScan, SourceStatus, StorageRoot, WorkspaceInfo

logger = logging.getLogger(__name__)

CHAT_SESSIONS_DIR = "chatSessions"
STATE_DB_NAME = "state.vscdb"
WORKSPACE_DESCRIPTOR = "workspace.json"


def discover_workspaces(roots: Optional[list[StorageRoot]] = None) -> list[WorkspaceInfo]:
    """Return every workspace with chat data, in root order then folder-name order."""
    if roots is None:
        roots = get_workspace_storage_paths()

    workspaces = []
    for root in roots:
        scan = scan_storage_root(root)
        if scan.status is not SourceStatus.OK:
            logger.warning("Skipping %s root %s: %s", root.variant, root.path, scan.detail)
        workspaces.extend(scan.workspaces)
    return workspaces


def scan_storage_root(root: StorageRoot) -> RootScan:
    """List one workspaceStorage root. Listing errors yield an empty scan."""
    try:
        children = sorted(root.path.iterdir(), key=lambda p: p.name)
    except FileNotFoundError as e:
        return RootScan(root=root, status=SourceStatus.NOT_FOUND, detail=str(e))
    except OSError as e:
        return RootScan(root=root, status=SourceStatus.UNREADABLE, detail=str(e))

    workspaces = []
    for ws_dir in children:
        try:
            if not ws_dir.is_dir():
                continue
            workspace = _read_workspace(ws_dir, root.variant)
        except OSError as e:
            logger.warning("Skipping unreadable workspace %s: %s", ws_dir, e)
            continue
        if workspace:
            workspaces.append(workspace)

    status = SourceStatus.OK if workspaces else SourceStatus.EMPTY
    return RootScan(root=root, workspaces=workspaces, status=status)


def parse_project_uri(uri: str) -> tuple[str, str]:
    """Turn a workspace.json folder URI into (project_path, project_name)."""
    path = uri[len("file://"):] if uri.startswith("file://") else uri
    path = urllib.parse.unquote(path)
    name = posixpath.basename(path.rstrip("/")) or path
    return path, name


# ── Private helpers ──────────────────────────────────────────────


def _read_workspace(ws_dir: Path, variant: str) -> Optional[WorkspaceInfo]:
    chat_dir = ws_dir / CHAT_SESSIONS_DIR
    has_chats = chat_dir.is_dir()
    has_state_db = (ws_dir / STATE_DB_NAME).is_file()
    if not has_chats and not has_state_db:
        return None

    workspace = WorkspaceInfo(
        workspace_id=ws_dir.name,
        storage_path=ws_dir,
        has_state_db=has_state_db,
        variant=variant,
    )

    project = _read_project(ws_dir)
    if project:
        workspace.project_path, workspace.project_name = project

    if has_chats:
        workspace.chat_session_files = _list_session_files(chat_dir)

    return workspace


def _read_project(ws_dir: Path) -> Optional[tuple[str, str]]:
    """Resolve the project folder from workspace.json, or None."""
    descriptor = ws_dir / WORKSPACE_DESCRIPTOR
    try:
        if not descriptor.is_file():
            return None
        data = json.loads(descriptor.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, RecursionError, UnicodeDecodeError, OSError) as e:
        logger.debug("Ignoring unreadable %s: %s", descriptor, e)
        return None

    if not isinstance(data, dict):
        return None
    uri = data.get("folder") or data.get("workspace")
    if not uri or not isinstance(uri, str):
        return None
    return parse_project_uri(uri)


def _list_session_files(chat_dir: Path) -> list[Path]:
    try:
        return sorted(p for p in chat_dir.iterdir() if p.name.endswith(".json"))
    except OSError as e:
        logger.warning("Cannot list transcripts in %s: %s", chat_dir, e)
        return []
