"""Schema-tolerant parsing of chat turns and message lists.

Transcripts have gone through many shapes over the editors' history. Rather
than probing fields ad hoc, every value is first classified into one of a
closed set of shapes and then decoded by the branch for that shape:

Turn shapes (one element of a message container):
- ``REQUEST_RESPONSE``: ``{"request": ..., "response": ...}`` (``message`` and
  ``result`` are accepted for either side). Yields up to two messages.
- ``FLAT_MESSAGE``: ``{"role": "user", "content": "..."}`` and relatives.

Value shapes (a whole decoded database value):
- ``RECORD_LIST``: a list of session-like objects.
- ``KEYED_SESSIONS``: ``{"sessions": {"<id>": {...}, ...}}``.
- ``SESSION_LIST``: ``{"sessions": [{...}, ...]}``.
- ``SESSION``: any other object, parsed as one session.
"""

from enum import Enum
from typing import Any, Optional

from .core import ChatMessage

CONTENT_FIELDS = ("text", "value", "content", "message")
MESSAGE_CONTENT_FIELDS = ("content", "text", "value", "message")
ROLE_FIELDS = ("role", "type", "kind")
TIMESTAMP_FIELDS = ("timestamp", "date")
MESSAGE_CONTAINERS = ("messages", "history", "exchanges", "requests", "turns", "chatMessages")
REQUEST_FIELDS = ("request", "message")
RESPONSE_FIELDS = ("response", "result")

# Nesting below this depth is ignored when flattening content.
MAX_CONTENT_DEPTH = 32

ROLE_ALIASES = {
    "user": "user",
    "human": "user",
    "User": "user",
    "assistant": "assistant",
    "bot": "assistant",
    "copilot": "assistant",
    "Assistant": "assistant",
    "ai": "assistant",
    "system": "system",
}


class TurnShape(str, Enum):
    REQUEST_RESPONSE = "request_response"
    FLAT_MESSAGE = "flat_message"
    NONE = "none"


class ValueShape(str, Enum):
    RECORD_LIST = "record_list"
    KEYED_SESSIONS = "keyed_sessions"
    SESSION_LIST = "session_list"
    SESSION = "session"
    NONE = "none"


def extract_content(data: Any, depth: int = 0) -> str:
    """Flatten any JSON value into plain text.

    Strings are returned as-is, lists are flattened element by element and
    joined with newlines, objects yield their first non-empty text-like field.
    Everything else, and anything nested deeper than MAX_CONTENT_DEPTH, is
    empty.
    """
    if isinstance(data, str):
        return data
    if depth >= MAX_CONTENT_DEPTH:
        return ""
    if isinstance(data, list):
        parts = [extract_content(item, depth + 1) for item in data]
        return "\n".join(part for part in parts if part)
    if isinstance(data, dict):
        for key in CONTENT_FIELDS:
            text = extract_content(data.get(key), depth + 1)
            if text:
                return text
    return ""


def resolve_role(record: dict) -> str:
    value = first_truthy(record, ROLE_FIELDS)
    if isinstance(value, str):
        return ROLE_ALIASES.get(value, "unknown")
    return "unknown"


def parse_message(record: Any, keep_raw: bool = True) -> Optional[ChatMessage]:
    """Parse one flat message record, or return None for junk/control records."""
    if not isinstance(record, dict):
        return None

    role = resolve_role(record)
    content = ""
    for key in MESSAGE_CONTENT_FIELDS:
        content = extract_content(record.get(key))
        if content:
            break

    if not content and role == "unknown":
        return None

    return ChatMessage(
        role=role,
        content=content,
        timestamp=first_truthy(record, TIMESTAMP_FIELDS),
        tool_calls=record.get("toolCalls"),
        tool_results=record.get("toolResults"),
        raw_data=record if keep_raw else None,
    )


def classify_turn(item: Any) -> TurnShape:
    if not isinstance(item, dict):
        return TurnShape.NONE
    if first_truthy(item, REQUEST_FIELDS) or first_truthy(item, RESPONSE_FIELDS):
        return TurnShape.REQUEST_RESPONSE
    return TurnShape.FLAT_MESSAGE


def classify_value(value: Any) -> ValueShape:
    if isinstance(value, list):
        return ValueShape.RECORD_LIST
    if not isinstance(value, dict):
        return ValueShape.NONE

    sessions = value.get("sessions")
    if not sessions:
        return ValueShape.SESSION
    if isinstance(sessions, dict):
        return ValueShape.KEYED_SESSIONS
    if isinstance(sessions, list):
        return ValueShape.SESSION_LIST
    return ValueShape.NONE


def parse_turn(item: Any, keep_raw: bool = True) -> list[ChatMessage]:
    """Decode one container element into zero, one or two messages."""
    shape = classify_turn(item)

    if shape is TurnShape.REQUEST_RESPONSE:
        messages = []
        request = first_truthy(item, REQUEST_FIELDS)
        if request:
            text = extract_content(request)
            if text:
                messages.append(ChatMessage(role="user", content=text, timestamp=_side_timestamp(request)))
        response = first_truthy(item, RESPONSE_FIELDS)
        if response:
            text = extract_content(response)
            if text:
                messages.append(ChatMessage(role="assistant", content=text, timestamp=_side_timestamp(response)))
        return messages

    if shape is TurnShape.FLAT_MESSAGE:
        msg = parse_message(item, keep_raw=keep_raw)
        if msg and msg.content:
            return [msg]

    return []


def parse_messages(data: Any, keep_raw: bool = True) -> list[ChatMessage]:
    """Extract the ordered message list from a session-like object.

    Only the first container field that yields messages is used.
    """
    if not isinstance(data, dict):
        return []

    for key in MESSAGE_CONTAINERS:
        container = data.get(key)
        if not isinstance(container, list):
            continue

        messages = []
        for item in container:
            messages.extend(parse_turn(item, keep_raw=keep_raw))
        if messages:
            return messages

    return []


def first_truthy(record: dict, keys: tuple[str, ...]) -> Any:
    """Return the first truthy value among keys, mirroring JSON-ish `a || b` lookups."""
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


# ── Private helpers ──────────────────────────────────────────────


def _side_timestamp(side: Any) -> Any:
    if isinstance(side, dict):
        return side.get("timestamp")
    return None
