"""Follow ``Link: <...>; rel="next"`` pagination across a page source."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Protocol, Sequence
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)


class PageFetchError(RuntimeError):
    """A page request did not succeed.

    The paginator fills in how far it got before the failure so callers can
    report it, and ``records`` holds everything accumulated so far. Whether
    those are kept or discarded is up to the caller.
    """

    def __init__(
        self,
        message: str,
        uri: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.uri = uri
        self.status_code = status_code
        self.pages_fetched = 0
        self.records_fetched = 0
        self.records: List[Any] = []


@dataclass
class Page:
    records: List[Any]
    link_headers: List[str] = field(default_factory=list)


class PageSource(Protocol):
    def get_page(self, path_or_uri: str) -> Page:
        ...


def _strip_origin(uri: str, base_url: Optional[str]) -> str:
    parts = urlsplit(uri)
    if not parts.netloc:
        return uri
    if base_url:
        base = urlsplit(base_url)
        if (parts.scheme.lower(), parts.netloc.lower()) != (base.scheme.lower(), base.netloc.lower()):
            return uri
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def parse_next_link(link_headers: Sequence[str], base_url: Optional[str] = None) -> Optional[str]:
    """Return the ``rel="next"`` target from ``Link`` header values, if any.

    Targets on the same scheme and host as ``base_url`` (or any target when no
    ``base_url`` is given) are reduced to ``path?query`` so they can be
    requested through a client already bound to that origin.
    """

    for header in link_headers:
        for link in requests.utils.parse_header_links(header):
            if "next" in link.get("rel", "").split():
                return _strip_origin(link["url"], base_url)
    return None


def iter_pages(
    source: PageSource,
    start_path: str,
    base_url: Optional[str] = None,
) -> Iterator[Page]:
    """Lazily fetch pages, one request at a time, until no next link is returned."""

    uri: Optional[str] = start_path
    seen = set()
    pages_fetched = 0
    records_fetched = 0
    while uri:
        try:
            page = source.get_page(uri)
        except PageFetchError as exc:
            exc.pages_fetched = pages_fetched
            exc.records_fetched = records_fetched
            if exc.uri is None:
                exc.uri = uri
            raise
        pages_fetched += 1
        records_fetched += len(page.records)
        logger.info("Fetched %d records from %s", len(page.records), uri)
        seen.add(uri)
        yield page
        uri = parse_next_link(page.link_headers, base_url)
        if uri in seen:
            logger.warning("Next page link %s was already fetched; stopping", uri)
            return


def iter_records(
    source: PageSource,
    start_path: str,
    base_url: Optional[str] = None,
) -> Iterator[Any]:
    for page in iter_pages(source, start_path, base_url=base_url):
        yield from page.records


def fetch_all(
    source: PageSource,
    start_path: str,
    limit: Optional[int] = None,
    base_url: Optional[str] = None,
) -> List[Any]:
    """Collect records from every page, stopping once ``limit`` is reached.

    The result is truncated to exactly ``limit`` records even when the last
    page overshoots it.
    """

    if limit is not None and limit < 1:
        raise ValueError("limit must be a positive integer")

    records: List[Any] = []
    try:
        for page in iter_pages(source, start_path, base_url=base_url):
            records.extend(page.records)
            if limit is not None and len(records) >= limit:
                break
    except PageFetchError as exc:
        exc.records = records
        logger.error(
            "Page fetch failed after %d pages (%d records): %s",
            exc.pages_fetched,
            exc.records_fetched,
            exc,
        )
        raise

    if limit is not None:
        return records[:limit]
    return records
