"""Core data models for copilot-chat-history."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

Timestamp = Union[int, float, str]


@dataclass
class WorkspaceInfo:
    """One per-workspace storage folder that holds chat data."""

    workspace_id: str  # folder name, e.g. "a1b2c3d4e5f6..."
    storage_path: Path
    project_path: Optional[str] = None
    project_name: Optional[str] = None
    chat_session_files: list[Path] = field(default_factory=list)
    has_state_db: bool = False
    variant: str = ""  # "VS Code" | "VS Code Insiders" | "VSCodium" | "Cursor" | "Custom"


@dataclass
class ChatMessage:
    """A single conversational turn."""

    role: str  # "user" | "assistant" | "system" | "unknown"
    content: str
    timestamp: Optional[Timestamp] = None
    tool_calls: Any = None
    tool_results: Any = None
    raw_data: Any = None  # only kept for file-sourced messages


@dataclass
class ChatSession:
    """A single normalized chat conversation."""

    session_id: str
    title: str
    messages: list[ChatMessage]
    workspace_id: str
    workspace_name: str
    project_path: Optional[str] = None
    created_at: Optional[Timestamp] = None
    modified_at: Optional[float] = None  # epoch milliseconds
    model: Optional[str] = None
    agent_mode: Optional[str] = None
    source: str = "file"  # "file" | "database"
    file_path: Optional[Path] = None


@dataclass
class SearchResult:
    """A session that matched a query, with the messages that matched."""

    session: ChatSession
    matches: list[ChatMessage] = field(default_factory=list)


class SourceStatus(str, Enum):
    """Why a source contributed what it did."""

    OK = "ok"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    UNREADABLE = "unreadable"
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"
    DRIVER_UNAVAILABLE = "driver_unavailable"


@dataclass
class StorageRoot:
    """A workspaceStorage directory belonging to one editor variant."""

    variant: str
    path: Path


@dataclass
class RootScan:
    """Outcome of listing one storage root."""

    root: StorageRoot
    workspaces: list[WorkspaceInfo] = field(default_factory=list)
    status: SourceStatus = SourceStatus.OK
    detail: str = ""


@dataclass
class SessionLoad:
    """Outcome of loading one transcript file."""

    path: Path
    session: Optional[ChatSession] = None
    status: SourceStatus = SourceStatus.OK
    detail: str = ""


@dataclass
class DatabaseLoad:
    """Outcome of scanning one workspace's state.vscdb."""

    workspace_id: str
    sessions: list[ChatSession] = field(default_factory=list)
    status: SourceStatus = SourceStatus.OK
    detail: str = ""
    skipped_rows: int = 0
