"""Tests for the state.vscdb extractor."""

import sqlite3
from unittest.mock import patch

import pytest

from copilot_chat_history.core import SourceStatus, WorkspaceInfo
from copilot_chat_history.database import extract_database_sessions, sessions_from_value

NOW = 1_736_935_200_000.0


@pytest.fixture
def db_workspace(tmp_path, state_db):
    """Factory: a workspace whose state.vscdb holds the given ItemTable rows."""

    def _make(rows):
        ws_dir = tmp_path / "ws-db-1234"
        ws_dir.mkdir()
        state_db(ws_dir / "state.vscdb", rows)
        return WorkspaceInfo(workspace_id="ws-db-1234", storage_path=ws_dir, has_state_db=True)

    return _make


PAIR = {"requests": [{"request": "fix bug", "response": "done"}]}


class _SpyConnection:
    """Wraps a real sqlite3 connection and records close()."""

    def __init__(self, conn):
        self._conn = conn
        self.closed = False

    def execute(self, *args, **kwargs):
        return self._conn.execute(*args, **kwargs)

    def close(self):
        self.closed = True
        self._conn.close()


class TestExtractDatabaseSessions:
    def test_record_list(self, db_workspace):
        ws = db_workspace([("chat.session.1", [PAIR, "junk", {"messages": []}, PAIR])])
        load = extract_database_sessions(ws, now=NOW)

        assert load.status is SourceStatus.OK
        assert [s.session_id for s in load.sessions] == ["db_0", "db_3"]
        session = load.sessions[0]
        assert session.source == "database"
        assert session.modified_at == NOW
        assert [(m.role, m.content) for m in session.messages] == [("user", "fix bug"), ("assistant", "done")]
        assert session.file_path is None

    def test_keyed_sessions(self, db_workspace):
        value = {"sessions": {
            "alpha": {"title": "Alpha", "messages": [{"role": "user", "content": "hi"}]},
            "beta": {"messages": []},
            "gamma": "not a session",
            "delta": {"sessionId": "explicit", "history": [{"role": "ai", "text": "hello"}]},
        }}
        ws = db_workspace([("interactive.sessions", value)])
        sessions = extract_database_sessions(ws, now=NOW).sessions

        assert [s.session_id for s in sessions] == ["alpha", "explicit"]
        assert sessions[0].title == "Alpha"
        assert sessions[1].messages[0].role == "assistant"

    def test_sessions_as_list(self, db_workspace):
        value = {"sessions": [PAIR, {"sessionId": "named", **PAIR}]}
        ws = db_workspace([("copilot.chat", value)])
        sessions = extract_database_sessions(ws, now=NOW).sessions
        assert [s.session_id for s in sessions] == ["db_0", "named"]

    def test_single_session_object(self, db_workspace):
        ws = db_workspace([("memento/interactive-session", PAIR)])
        sessions = extract_database_sessions(ws, now=NOW).sessions
        assert [s.session_id for s in sessions] == [f"db_{int(NOW)}"]

    def test_database_messages_have_no_raw_data(self, db_workspace):
        ws = db_workspace([("chat", {"messages": [{"role": "user", "content": "x"}]})])
        session = extract_database_sessions(ws, now=NOW).sessions[0]
        assert session.messages[0].raw_data is None

    def test_key_filter_is_case_sensitive(self, db_workspace):
        ws = db_workspace([
            ("workbench.CHAT.state", PAIR),
            ("editor.fontSize", PAIR),
            ("Session.restore", PAIR),
        ])
        load = extract_database_sessions(ws, now=NOW)
        assert load.sessions == []
        assert load.status is SourceStatus.EMPTY

    def test_bad_json_rows_are_skipped(self, db_workspace):
        ws = db_workspace([
            ("chat.broken", "{not json"),
            ("chat.blob", b'{"messages": [{"role": "user", "content": "from blob"}]}'),
        ])
        load = extract_database_sessions(ws, now=NOW)
        assert load.skipped_rows == 1
        assert [m.content for m in load.sessions[0].messages] == ["from blob"]

    def test_deeply_nested_rows_are_skipped(self, db_workspace):
        ws = db_workspace([("chat.deep", "[" * 100_000), ("chat.ok", PAIR)])
        load = extract_database_sessions(ws, now=NOW)
        assert load.skipped_rows == 1
        assert [s.session_id for s in load.sessions] == [f"db_{int(NOW)}"]

    def test_unstattable_database(self, tmp_path):
        ws = WorkspaceInfo(workspace_id="locked", storage_path=tmp_path, has_state_db=True)
        with patch("pathlib.Path.is_file", side_effect=PermissionError(13, "Permission denied")):
            load = extract_database_sessions(ws)
        assert load.status is SourceStatus.UNREADABLE

    def test_scalar_values_yield_nothing(self, db_workspace):
        ws = db_workspace([("chat.count", 3), ("chat.flag", "true")])
        load = extract_database_sessions(ws, now=NOW)
        assert load.sessions == []
        assert load.skipped_rows == 0

    def test_missing_database(self, tmp_path):
        ws = WorkspaceInfo(workspace_id="nodb", storage_path=tmp_path)
        assert extract_database_sessions(ws).status is SourceStatus.NOT_FOUND

    def test_corrupt_database(self, tmp_path):
        (tmp_path / "state.vscdb").write_bytes(b"this is not an sqlite file at all" * 10)
        ws = WorkspaceInfo(workspace_id="corrupt", storage_path=tmp_path, has_state_db=True)
        load = extract_database_sessions(ws)
        assert load.status is SourceStatus.UNREADABLE
        assert load.sessions == []

    def test_missing_item_table(self, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "state.vscdb"))
        conn.execute("CREATE TABLE cursorDiskKV (key TEXT, value BLOB)")
        conn.commit()
        conn.close()
        ws = WorkspaceInfo(workspace_id="notable", storage_path=tmp_path, has_state_db=True)
        assert extract_database_sessions(ws).status is SourceStatus.UNREADABLE

    def test_connection_closed_after_query_error(self, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "state.vscdb"))
        conn.execute("CREATE TABLE cursorDiskKV (key TEXT, value BLOB)")
        conn.commit()
        conn.close()
        ws = WorkspaceInfo(workspace_id="notable", storage_path=tmp_path, has_state_db=True)
        opened = []
        real_connect = sqlite3.connect

        def spy_connect(*args, **kwargs):
            spy = _SpyConnection(real_connect(*args, **kwargs))
            opened.append(spy)
            return spy

        with patch("copilot_chat_history.database.sqlite3.connect", spy_connect):
            load = extract_database_sessions(ws)

        assert load.status is SourceStatus.UNREADABLE
        assert len(opened) == 1
        assert opened[0].closed

    def test_connection_closed_after_success(self, db_workspace):
        ws = db_workspace([("chat", PAIR)])
        opened = []
        real_connect = sqlite3.connect

        def spy_connect(*args, **kwargs):
            spy = _SpyConnection(real_connect(*args, **kwargs))
            opened.append(spy)
            return spy

        with patch("copilot_chat_history.database.sqlite3.connect", spy_connect):
            load = extract_database_sessions(ws, now=NOW)

        assert load.status is SourceStatus.OK
        assert [spy.closed for spy in opened] == [True]

    def test_driver_unavailable(self, db_workspace):
        ws = db_workspace([("chat", PAIR)])
        with patch("copilot_chat_history.database.sqlite3", None):
            load = extract_database_sessions(ws, now=NOW)
        assert load.status is SourceStatus.DRIVER_UNAVAILABLE
        assert load.sessions == []


class TestSessionsFromValue:
    def test_unsupported_sessions_field(self, tmp_path):
        ws = WorkspaceInfo(workspace_id="w", storage_path=tmp_path)
        assert sessions_from_value({"sessions": 5, **PAIR}, ws, NOW) == []

    def test_empty_sessions_field_parses_object(self, tmp_path):
        ws = WorkspaceInfo(workspace_id="w", storage_path=tmp_path)
        sessions = sessions_from_value({"sessions": {}, **PAIR}, ws, NOW)
        assert len(sessions) == 1
