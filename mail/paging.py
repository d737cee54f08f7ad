from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional


def _execute(request: Any) -> Any:
    return request.execute()


def paginate_gmail_messages(
    svc,
    *,
    query: Optional[str] = None,
    page_size: int = 100,
    execute: Callable[[Any], Any] = _execute,
) -> Iterator[List[str]]:
    """Yield lists of message IDs from Gmail messages.list for ``query``.

    - svc is a bound resource: service.users().messages()
    - execute runs each list request (adapters pass their error-mapping runner)
    - Yields one list of IDs per page, following nextPageToken to the end.
    """
    token: Optional[str] = None
    while True:
        kwargs: Dict = {"userId": "me", "maxResults": page_size}
        if query:
            kwargs["q"] = query
        if token:
            kwargs["pageToken"] = token
        resp: Dict = execute(svc.list(**kwargs)) or {}
        ids = [m.get("id") for m in resp.get("messages", []) if m.get("id")]
        if ids:
            yield ids
        token = resp.get("nextPageToken")
        if not token:
            break


def gather_pages(pages: Iterable[List[str]]) -> List[str]:
    """Flatten pages into one list, keeping listing order."""
    out: List[str] = []
    for ids in pages:
        out.extend(ids)
    return out
