from __future__ import annotations

from pathlib import Path


class SiteError(Exception):
    """Base class for every error raised by the build pipeline."""


class ConfigError(SiteError):
    pass


class ContentRootError(SiteError):
    def __init__(self, path: Path):
        super().__init__(f"Content directory not found: {path}")
        self.path = path


class LoadError(SiteError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class DuplicateSlugError(SiteError):
    def __init__(self, slug: str, paths: list):
        listed = ", ".join(str(path) for path in paths)
        super().__init__(f"Duplicate slug '{slug}' produced by: {listed}")
        self.slug = slug
        self.paths = paths


class BrokenLinkError(SiteError):
    def __init__(self, slug: str, href: str):
        super().__init__(f"{slug}: broken internal link '{href}'")
        self.slug = slug
        self.href = href


class FeedFetchError(SiteError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch feed {url}: {reason}")
        self.url = url
        self.reason = reason


class FeedParseError(SiteError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to parse feed {url}: {reason}")
        self.url = url
        self.reason = reason


class WriteError(SiteError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Could not write {path}: {reason}")
        self.path = path
        self.reason = reason
