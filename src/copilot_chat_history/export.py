"""Export chat sessions to Markdown, JSON and HTML."""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .core import ChatMessage, ChatSession, Timestamp

EXPORT_FORMATS = ("markdown", "json", "html")
FILE_EXTENSIONS = {"markdown": "md", "json": "json", "html": "html"}

ROLE_HEADINGS = {"user": "👤 User", "assistant": "🤖 Copilot"}

TEMPLATES_DIR = Path(__file__).parent / "templates"


def to_datetime(ts: Optional[Timestamp]) -> Optional[datetime]:
    """Convert epoch seconds/milliseconds or an ISO 8601 string to a UTC datetime."""
    if ts is None or ts == "" or isinstance(ts, bool):
        return None
    try:
        if isinstance(ts, (int, float)):
            seconds = ts / 1000 if ts > 1e12 else ts
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(ts).replace("Z", "+00:00"))
    except (ValueError, OSError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(ts: Optional[Timestamp]) -> str:
    """Human-readable timestamp; unparseable strings are returned verbatim."""
    if not ts:
        return "Unknown"
    dt = to_datetime(ts)
    if dt is None:
        return str(ts)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def sanitize_filename(name: str, max_length: int = 50) -> str:
    """Make a title safe for use in a file name."""
    sanitized = re.sub(r'[<>:"/\\|?*]', "_", name)
    sanitized = re.sub(r"\s+", "_", sanitized)
    sanitized = re.sub(r"_+", "_", sanitized).strip().strip("_")
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length].rstrip("_")
    return sanitized or "untitled"


def generate_filename(session: ChatSession, fmt: str) -> str:
    """e.g. copilot-chat-2025-01-15-Fix_auth_bug-a1b2c3d4.md"""
    dt = to_datetime(session.modified_at or session.created_at)
    date = dt.strftime("%Y-%m-%d") if dt else "unknown"
    title = sanitize_filename(session.title)
    ext = FILE_EXTENSIONS.get(fmt, fmt)
    return f"copilot-chat-{date}-{title}-{session.session_id[:8]}.{ext}"


def format_session(session: ChatSession, fmt: str = "markdown", detailed: bool = False) -> str:
    """Render a session in one of EXPORT_FORMATS (unknown formats fall back to Markdown)."""
    if fmt == "json":
        return session_to_json(session, detailed)
    if fmt == "html":
        return session_to_html(session, detailed)
    return session_to_markdown(session, detailed)


def session_to_markdown(session: ChatSession, detailed: bool = False) -> str:
    """Export a session and its messages as clean Markdown."""
    lines = [f"# {session.title}", "", "## Metadata", ""]

    lines.append(f"- **Session ID**: `{session.session_id}`")
    lines.append(f"- **Workspace**: {session.workspace_name}")
    if session.project_path:
        lines.append(f"- **Project Path**: `{session.project_path}`")
    if session.created_at:
        lines.append(f"- **Created**: {format_timestamp(session.created_at)}")
    if session.modified_at:
        lines.append(f"- **Modified**: {format_timestamp(session.modified_at)}")
    if session.model:
        lines.append(f"- **Model**: {session.model}")
    if session.agent_mode:
        lines.append(f"- **Agent Mode**: {session.agent_mode}")
    lines.append(f"- **Messages**: {len(session.messages)}")
    lines.extend(["", "## Conversation", ""])

    for msg in session.messages:
        lines.append(f"### {ROLE_HEADINGS.get(msg.role, '📝 ' + msg.role.capitalize())}")
        if msg.timestamp:
            lines.append(f"*{format_timestamp(msg.timestamp)}*")
        lines.append("")
        lines.append(msg.content)

        if detailed:
            lines.extend(_markdown_tool_lines(msg))

        lines.extend(["", "---", ""])

    return "\n".join(lines)


def session_to_json(session: ChatSession, detailed: bool = False) -> str:
    """Export a session and its messages as structured JSON."""
    data = {
        "sessionId": session.session_id,
        "title": session.title,
        "source": session.source,
        "workspace": {
            "id": session.workspace_id,
            "name": session.workspace_name,
            "projectPath": session.project_path,
        },
        "metadata": {
            "createdAt": format_timestamp(session.created_at) if session.created_at else None,
            "modifiedAt": format_timestamp(session.modified_at) if session.modified_at else None,
            "model": session.model,
            "agentMode": session.agent_mode,
            "messageCount": len(session.messages),
        },
        "messages": [_message_to_dict(msg, detailed) for msg in session.messages],
    }
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def session_to_html(session: ChatSession, detailed: bool = False) -> str:
    """Export a session as a standalone HTML page."""
    template = _get_jinja_env().get_template("session.html")
    return template.render(session=session, detailed=detailed, role_headings=ROLE_HEADINGS)


# ── Private helpers ──────────────────────────────────────────────


def _message_to_dict(msg: ChatMessage, detailed: bool) -> dict:
    data: dict[str, Any] = {
        "role": msg.role,
        "content": msg.content,
        "timestamp": format_timestamp(msg.timestamp) if msg.timestamp else None,
    }
    if detailed:
        if msg.tool_calls:
            data["toolCalls"] = msg.tool_calls
        if msg.tool_results:
            data["toolResults"] = msg.tool_results
        if msg.raw_data:
            data["rawData"] = msg.raw_data
    return data


def _markdown_tool_lines(msg: ChatMessage) -> list[str]:
    lines = []
    if msg.tool_calls and isinstance(msg.tool_calls, list):
        lines.extend(["", "**Tool Calls:**"])
        for call in msg.tool_calls:
            if isinstance(call, dict):
                args = json.dumps(call.get("arguments") or {}, ensure_ascii=False, default=str)
                lines.append(f"- `{call.get('name') or 'unknown'}`: {args[:200]}")
    if msg.tool_results and isinstance(msg.tool_results, list):
        lines.extend(["", "**Tool Results:**"])
        for result in msg.tool_results:
            if isinstance(result, dict):
                lines.append(f"- `{result.get('name') or 'unknown'}`: {str(result.get('result') or '')[:200]}")
    return lines


def _pretty_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _get_jinja_env() -> Environment:
    """Create a Jinja2 environment for the packaged templates."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["format_timestamp"] = format_timestamp
    env.filters["pretty_json"] = _pretty_json
    return env
