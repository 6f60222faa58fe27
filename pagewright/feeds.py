"""Blogroll aggregation from remote Atom/RSS feeds.

Every feed is fetched by its own task. A task never raises: it hands back a
``FeedResult`` carrying either entries or the error that stopped it, so one
slow or broken site cannot take the rest of the blogroll down with it.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import feedparser
import httpx

from .config import DEFAULT_FEED_TIMEOUT, ENTRIES_PER_FEED
from .errors import FeedFetchError, FeedParseError

logger = logging.getLogger(__name__)

USER_AGENT = "pagewright/0.1 (+blogroll)"
ACCEPT = "application/atom+xml, application/rss+xml, application/xml;q=0.9, */*;q=0.8"


@dataclass(frozen=True)
class FeedEntry:
    title: str
    url: str
    date: dt.datetime
    source: str = ""


@dataclass
class FeedResult:
    url: str
    entries: list[FeedEntry] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Blogroll:
    entries: list[FeedEntry] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


def read_feed_list(path: Path) -> list[str]:
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        urls.append(line)
    return urls


def is_html_link(link: dict) -> bool:
    if link["href"].lower().endswith((".html", ".htm")):
        return True
    # feedparser reports untyped links as text/html, so the type alone does
    # not mark a related or enclosure link as the page.
    return link.get("type") == "text/html" and link.get("rel", "alternate") == "alternate"


def select_link(entry: dict) -> Optional[str]:
    """Pick the page link for an entry.

    A link ending in ``.html``, or an ``alternate`` link typed as HTML, wins.
    Otherwise the first listed link is used. Entries without any link yield
    ``None``.
    """
    links = [link for link in entry.get("links") or [] if link.get("href")]
    for link in links:
        if is_html_link(link):
            return link["href"]
    if links:
        return links[0]["href"]
    return entry.get("link") or None


def entry_date(entry: dict) -> Optional[dt.datetime]:
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        value = entry.get(key)
        if value:
            return dt.datetime(*value[:6], tzinfo=dt.timezone.utc)
    return None


def extract_entries(parsed: dict, url: str, limit: int = ENTRIES_PER_FEED) -> list[FeedEntry]:
    entries = []
    for entry in parsed.get("entries", []):
        link = select_link(entry)
        date = entry_date(entry)
        if link is None or date is None:
            logger.debug("Dropping entry without link or date from %s", url)
            continue
        title = (entry.get("title") or "").strip() or link
        entries.append(FeedEntry(title=title, url=link, date=date, source=url))
    entries.sort(key=lambda e: e.date, reverse=True)
    return entries[:limit]


def parse_feed(content: bytes, url: str, limit: int = ENTRIES_PER_FEED) -> list[FeedEntry]:
    parsed = feedparser.parse(content)
    if not parsed.get("entries"):
        if parsed.get("bozo"):
            raise FeedParseError(url, str(parsed.get("bozo_exception") or "malformed feed"))
        if not parsed.get("version"):
            raise FeedParseError(url, "response is not a syndication feed")
    return extract_entries(parsed, url, limit)


async def fetch_feed(client: httpx.AsyncClient, url: str, limit: int = ENTRIES_PER_FEED) -> FeedResult:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        error = FeedFetchError(url, str(exc) or type(exc).__name__)
        logger.warning("%s", error)
        return FeedResult(url=url, error=error)
    try:
        entries = parse_feed(response.content, url, limit)
    except FeedParseError as error:
        logger.warning("%s", error)
        return FeedResult(url=url, error=error)
    logger.debug("Fetched %d entries from %s", len(entries), url)
    return FeedResult(url=url, entries=entries)


def merge_entries(results: Iterable[FeedResult]) -> list[FeedEntry]:
    """Concatenate per-feed entries in input order and sort newest first.

    ``sorted`` is stable, so entries with equal dates keep their input order.
    """
    combined = [entry for result in results for entry in result.entries]
    return sorted(combined, key=lambda e: e.date, reverse=True)


async def aggregate(
    urls: list[str],
    timeout: float = DEFAULT_FEED_TIMEOUT,
    per_source: int = ENTRIES_PER_FEED,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Blogroll:
    if not urls:
        return Blogroll()
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": ACCEPT},
        transport=transport,
    ) as client:
        outcomes = await asyncio.gather(
            *(fetch_feed(client, url, per_source) for url in urls),
            return_exceptions=True,
        )

    results = []
    for url, outcome in zip(urls, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            error = FeedFetchError(url, f"{type(outcome).__name__}: {outcome}")
            logger.warning("%s", error)
            outcome = FeedResult(url=url, error=error)
        results.append(outcome)
    return Blogroll(
        entries=merge_entries(results),
        errors=[result.error for result in results if result.error is not None],
    )


def aggregate_feeds(
    urls: list[str],
    timeout: float = DEFAULT_FEED_TIMEOUT,
    per_source: int = ENTRIES_PER_FEED,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Blogroll:
    return asyncio.run(aggregate(urls, timeout, per_source, transport))
