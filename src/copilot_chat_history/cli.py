"""CLI entry point for copilot-chat-history."""

import logging

import click
import uvicorn

from .aggregator import get_all_sessions, group_by_workspace
from .discovery import discover_workspaces
from .export import EXPORT_FORMATS, format_session, format_timestamp, generate_filename
from .search import search_sessions


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log skipped files and databases.")
def main(verbose: bool):
    """Browse and export AI assistant chat history from VS Code-family editors."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting copilot-chat-history on http://{host}:{port}")
    uvicorn.run("copilot_chat_history.server:app", host=host, port=port, reload=False)


@main.command()
def workspaces():
    """List workspaces that hold chat data."""
    found = discover_workspaces()
    if not found:
        click.echo("No workspaces with chat data found.")
        return
    for ws in found:
        db = " +db" if ws.has_state_db else ""
        name = ws.project_path or "(unknown project)"
        click.echo(f"{ws.workspace_id}  [{ws.variant}]  {len(ws.chat_session_files)} files{db}  {name}")


@main.command("list")
@click.option("--limit", default=100, show_default=True, help="Maximum sessions to show.")
@click.option("--by-workspace", is_flag=True, help="Group sessions by workspace.")
def list_sessions(limit: int, by_workspace: bool):
    """List chat sessions, newest first."""
    sessions = get_all_sessions()
    if not sessions:
        click.echo("No chat sessions found.")
        return

    if by_workspace:
        for name, group in group_by_workspace(sessions, max_sessions=limit):
            click.secho(name, bold=True)
            for session in group:
                click.echo(f"  {_session_line(session)}")
        return

    for session in sessions[:limit]:
        click.echo(_session_line(session))


@main.command()
@click.argument("query")
@click.option("--limit", default=20, show_default=True, help="Maximum sessions to show.")
def search(query: str, limit: int):
    """Search titles and messages (case-insensitive)."""
    results = search_sessions(get_all_sessions(), query, limit=limit)
    if not results:
        click.echo(f'No results found for "{query}"')
        return

    for result in results:
        click.echo(f"{_session_line(result.session)}  ({len(result.matches)} match(es))")
        if result.matches:
            preview = result.matches[0].content[:100].replace("\n", " ")
            click.echo(f"    {preview}")


@main.command()
@click.argument("session_id", required=False)
@click.option(
    "--format", "fmt",
    type=click.Choice(EXPORT_FORMATS),
    default="markdown",
    show_default=True,
    help="Export format.",
)
@click.option("--detailed", is_flag=True, help="Include tool calls and raw records.")
@click.option("--recent", type=click.IntRange(min=1), help="Export the N most recent sessions instead.")
def export(session_id: str | None, fmt: str, detailed: bool, recent: int | None):
    """Print one session, or the most recent ones, in the chosen format.

    With --recent each session is preceded by a "==> FILENAME <==" line
    naming the file it would be saved as.
    """
    if (session_id is None) == (recent is None):
        raise click.UsageError("Give either SESSION_ID or --recent N.")

    sessions = get_all_sessions()
    if recent is None:
        session = next((s for s in sessions if s.session_id == session_id), None)
        if session is None:
            raise click.ClickException(f"Session not found: {session_id}")
        click.echo(format_session(session, fmt, detailed=detailed))
        return

    if not sessions:
        click.echo("No chat sessions found.")
        return
    for session in sessions[:recent]:
        click.echo(f"==> {generate_filename(session, fmt)} <==")
        click.echo(format_session(session, fmt, detailed=detailed))
        click.echo()


def _session_line(session) -> str:
    modified = format_timestamp(session.modified_at)
    return f"{session.session_id}  {modified}  [{session.source}]  {session.title}  ({len(session.messages)} msgs)"
