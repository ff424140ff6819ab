"""Case-insensitive substring search over aggregated sessions."""

from typing import Optional

from .core import ChatSession, SearchResult


def search_sessions(
    sessions: list[ChatSession], query: str, limit: Optional[int] = None
) -> list[SearchResult]:
    """Return sessions whose title or any message contains query.

    Each result lists the matching messages in conversation order; a session
    matched only by its title has no matches. Results keep the input order.
    """
    needle = query.casefold()
    results = []

    for session in sessions:
        matches = [m for m in session.messages if needle in m.content.casefold()]
        if matches or needle in session.title.casefold():
            results.append(SearchResult(session=session, matches=matches))
            if limit is not None and len(results) >= limit:
                break

    return results
