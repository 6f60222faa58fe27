from __future__ import annotations

import datetime as dt
import html as html_lib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import markdown

from .errors import ContentRootError, LoadError
from .utils import parse_bool

logger = logging.getLogger(__name__)

CONTENT_EXTENSIONS = (".md", ".markdown")
REQUIRED_KEYS = ("title", "date")
SUMMARY_LENGTH = 200

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
TAG_RE = re.compile(r"<[^>]+>")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")


@dataclass(frozen=True)
class Document:
    slug: str
    source: Path
    title: str
    date: dt.datetime
    body: str
    tags: tuple[str, ...] = ()
    meta: dict = field(default_factory=dict, compare=False)
    summary: str = ""
    words: int = 0
    mtime: float = 0.0

    @property
    def nav_key(self) -> tuple:
        """The parts of a document that show up in other pages' navigation."""
        return (self.slug, self.title, self.date, self.tags)


@dataclass
class LoadResult:
    documents: list[Document] = field(default_factory=list)
    errors: list[LoadError] = field(default_factory=list)
    drafts: list[Path] = field(default_factory=list)


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end = i
            break
    if end is None:
        raise ValueError("front matter block is not closed")

    meta = {}
    for number, line in enumerate(lines[1:end], start=2):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            raise ValueError(f"line {number} is not a 'key: value' pair")
        key, value = line.split(":", 1)
        meta[key.strip().lower()] = value.strip()
    body = "\n".join(lines[end + 1 :])
    return meta, body


def parse_date(meta: dict) -> dt.datetime:
    date_value = meta["date"].strip().strip("'\"")
    time_value = (meta.get("time") or "").strip()
    if "T" in date_value or " " in date_value:
        if date_value[-1] in "Zz":
            date_value = date_value[:-1] + "+00:00"
        value = dt.datetime.fromisoformat(date_value)
        # Documents are compared with each other, so keep every date naive UTC.
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value
    date_part = dt.date.fromisoformat(date_value)
    time_part = dt.time.fromisoformat(time_value) if time_value else dt.time()
    return dt.datetime.combine(date_part, time_part)


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count


def is_content_file(path: Path) -> bool:
    return path.suffix.lower() in CONTENT_EXTENSIONS and not path.name.startswith(".")


def list_content_files(content_dir: Path) -> list[Path]:
    return sorted(
        (path for path in content_dir.rglob("*") if path.is_file() and is_content_file(path)),
        key=lambda p: p.as_posix(),
    )


def load_document(path: Path) -> Document | None:
    """Read one source file. Returns ``None`` for drafts, raises ``LoadError`` otherwise."""
    try:
        raw = path.read_bytes()
        mtime = path.stat().st_mtime
    except OSError as exc:
        raise LoadError(path, f"cannot read file ({exc.strerror or exc})") from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise LoadError(path, "file is not valid UTF-8 text") from exc
    try:
        meta, body = parse_front_matter(text)
    except ValueError as exc:
        raise LoadError(path, f"malformed metadata: {exc}") from exc

    missing = [key for key in REQUIRED_KEYS if not meta.get(key)]
    if missing:
        raise LoadError(path, f"missing required metadata: {', '.join(missing)}")
    if parse_bool(meta.get("draft")):
        return None
    try:
        date = parse_date(meta)
    except ValueError as exc:
        raise LoadError(path, f"invalid date '{meta['date']}'") from exc

    body = normalize_list_spacing(body)
    plain = strip_tags(markdown.markdown(body, extensions=["fenced_code", "tables"]))
    summary = meta.get("summary") or meta.get("description") or ""
    if not summary:
        summary = " ".join(plain.split())
        summary = summary[:SUMMARY_LENGTH] + ("..." if len(summary) > SUMMARY_LENGTH else "")
    explicit_slug = (meta.get("slug") or "").strip()
    return Document(
        slug=slugify(explicit_slug or path.stem),
        source=path,
        title=meta["title"].strip("'\""),
        date=date,
        body=body,
        tags=tuple(parse_list(meta.get("tags", ""))),
        meta=meta,
        summary=summary,
        words=count_words(plain),
        mtime=mtime,
    )


def load_documents(content_dir: Path) -> LoadResult:
    if not content_dir.is_dir():
        raise ContentRootError(content_dir)
    result = LoadResult()
    for path in list_content_files(content_dir):
        try:
            document = load_document(path)
        except LoadError as exc:
            logger.warning("Skipping %s", exc)
            result.errors.append(exc)
            continue
        if document is None:
            logger.debug("Skipping draft %s", path)
            result.drafts.append(path)
            continue
        result.documents.append(document)
    return result


@dataclass
class SiteMeta:
    title: str
    description: str = ""
    base_url: str = ""
    year: int | None = None
    blogroll: bool = False


@dataclass
class Site:
    """Every loaded document plus the site-wide metadata pages are rendered with."""

    meta: SiteMeta
    documents: dict[Path, Document] = field(default_factory=dict)

    @property
    def posts(self) -> list[Document]:
        return sorted(self.documents.values(), key=lambda d: (d.date, d.slug), reverse=True)

    @property
    def slugs(self) -> frozenset[str]:
        return frozenset(document.slug for document in self.documents.values())

    @property
    def year(self) -> str:
        if self.meta.year:
            return str(self.meta.year)
        if self.documents:
            return str(max(document.date for document in self.documents.values()).year)
        return ""

    def tag_map(self) -> dict[str, list[Document]]:
        """Group posts by tag page.

        Tags sharing a slug (``Python`` and ``python``) share one page, named
        after the spelling seen first.
        """
        names: dict[str, str] = {}
        tags: dict[str, list[Document]] = {}
        for post in self.posts:
            for tag in post.tags:
                name = names.setdefault(slugify(tag), tag)
                bucket = tags.setdefault(name, [])
                if not bucket or bucket[-1] is not post:
                    bucket.append(post)
        return tags

    def by_slug(self, slug: str) -> Document | None:
        for document in self.documents.values():
            if document.slug == slug:
                return document
        return None
