"""Shared test fixtures for copilot-chat-history."""

import json
import os
import sqlite3
from datetime import datetime, timezone

import pytest

from copilot_chat_history.core import StorageRoot

JAN_15_MS = int(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)


def write_state_db(db_path, rows):
    """Create a state.vscdb with an ItemTable holding rows of (key, value)."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    for key, value in rows:
        if not isinstance(value, (str, bytes)):
            value = json.dumps(value)
        conn.execute("INSERT INTO ItemTable VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()


@pytest.fixture
def storage_root(tmp_path):
    """An empty VS Code workspaceStorage root."""
    path = tmp_path / "workspaceStorage"
    path.mkdir()
    return StorageRoot(variant="VS Code", path=path)


@pytest.fixture
def make_workspace(storage_root):
    """Factory building one workspace folder under storage_root.

    sessions maps file name -> JSON data (or raw text); db_rows creates a
    state.vscdb; mtimes maps file name -> epoch seconds.
    """

    def _make(ws_id, folder=None, sessions=None, db_rows=None, mtimes=None, descriptor=None):
        ws_dir = storage_root.path / ws_id
        ws_dir.mkdir()

        if descriptor is not None:
            (ws_dir / "workspace.json").write_text(descriptor, encoding="utf-8")
        elif folder is not None:
            (ws_dir / "workspace.json").write_text(json.dumps({"folder": folder}), encoding="utf-8")

        if sessions is not None:
            chat_dir = ws_dir / "chatSessions"
            chat_dir.mkdir()
            for name, data in sessions.items():
                path = chat_dir / name
                text = data if isinstance(data, str) else json.dumps(data)
                path.write_text(text, encoding="utf-8")
                if mtimes and name in mtimes:
                    os.utime(path, (mtimes[name], mtimes[name]))

        if db_rows is not None:
            write_state_db(ws_dir / "state.vscdb", db_rows)

        return ws_dir

    return _make


@pytest.fixture
def copilot_session():
    """A VS Code Copilot chat session in the request/response shape."""
    return {
        "version": 3,
        "sessionId": "9f1c2d3e-0000-4000-8000-000000000001",
        "creationDate": JAN_15_MS,
        "requesterUsername": "testuser",
        "responderUsername": "GitHub Copilot",
        "requests": [
            {
                "message": {"text": "How do I implement binary search in Python?", "parts": []},
                "response": [
                    {"value": "Here is an iterative binary search:"},
                    {"value": "```python\ndef bsearch(xs, x): ...\n```"},
                ],
                "timestamp": JAN_15_MS + 5000,
            },
            {
                "message": {"text": "Can you add type hints?"},
                "response": [{"value": "Sure, here it is with hints."}],
            },
        ],
    }


@pytest.fixture
def flat_session():
    """A session in the flat role/content message shape with tool data."""
    return {
        "title": "Refactor auth module",
        "createdAt": "2025-01-20T10:00:00Z",
        "model": "gpt-4o",
        "agentMode": "agent",
        "messages": [
            {"role": "user", "content": "Help me refactor the auth module", "timestamp": JAN_15_MS},
            {
                "role": "assistant",
                "content": [{"type": "text", "text": "Let me read the code first."}],
                "toolCalls": [{"name": "readFile", "arguments": {"path": "src/auth.ts"}}],
                "toolResults": [{"name": "readFile", "result": "export function authenticate() {}"}],
            },
            {"type": "progress", "data": {"percent": 50}},
            {"role": "user", "text": "Now split it into separate files"},
        ],
    }


@pytest.fixture
def state_db():
    """The write_state_db helper, for tests that build databases directly."""
    return write_state_db
