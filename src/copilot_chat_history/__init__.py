"""Locate, parse and export AI assistant chat history from VS Code-family editors."""

from .aggregator import collect_sessions, get_all_sessions, group_by_workspace
from .core import ChatMessage, ChatSession, SearchResult, WorkspaceInfo
from .discovery import discover_workspaces
from .search import search_sessions

__version__ = "0.1.0"

__all__ = [
    "ChatMessage",
    "ChatSession",
    "SearchResult",
    "WorkspaceInfo",
    "collect_sessions",
    "discover_workspaces",
    "get_all_sessions",
    "group_by_workspace",
    "search_sessions",
]
