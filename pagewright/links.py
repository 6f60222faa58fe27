from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urlsplit

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from .content import slugify
from .errors import BrokenLinkError

PAGE_SUFFIXES = {"", ".md", ".markdown", ".html", ".htm"}


def internal_target(href: str) -> tuple[str, str] | None:
    """Return ``(slug, fragment)`` when ``href`` points at another page of the site."""
    if not href or href.startswith(("#", "/")):
        return None
    parts = urlsplit(href)
    if parts.scheme or parts.netloc or not parts.path:
        return None
    name = PurePosixPath(parts.path).name
    suffix = PurePosixPath(name).suffix.lower()
    if suffix not in PAGE_SUFFIXES:
        return None
    stem = name[: -len(suffix)] if suffix else name
    return slugify(stem), parts.fragment


class LinkResolverProcessor(Treeprocessor):
    def __init__(self, md, page_slug: str, slugs: frozenset[str], root: str):
        super().__init__(md)
        self.page_slug = page_slug
        self.slugs = slugs
        self.root = root
        self.broken: list[BrokenLinkError] = []

    def run(self, root):
        for element in root.iter("a"):
            href = element.get("href", "")
            target = internal_target(href)
            if target is None:
                continue
            slug, fragment = target
            if slug in self.slugs:
                url = f"{self.root}/posts/{slug}.html"
                element.set("href", f"{url}#{fragment}" if fragment else url)
                continue
            self.broken.append(BrokenLinkError(self.page_slug, href))
            classes = element.get("class", "")
            element.set("class", f"{classes} broken-link".strip())
        return None


class LinkResolverExtension(Extension):
    def __init__(self, page_slug: str, slugs: frozenset[str], root: str, **kwargs):
        super().__init__(**kwargs)
        self.page_slug = page_slug
        self.slugs = slugs
        self.root = root
        self.processor: LinkResolverProcessor | None = None

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        # Runs after "inline" (20) so every <a> already exists.
        self.processor = LinkResolverProcessor(md, self.page_slug, self.slugs, self.root)
        md.treeprocessors.register(self.processor, "link_resolver", 15)

    @property
    def broken(self) -> list[BrokenLinkError]:
        return self.processor.broken if self.processor else []
