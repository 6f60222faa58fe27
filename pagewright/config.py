from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .errors import ConfigError
from .utils import parse_float, parse_int

DEFAULT_DEBOUNCE = 0.5
DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_FEED_TIMEOUT = 10.0
ENTRIES_PER_FEED = 3
FEED_LIMIT = 20
POSTS_PER_PAGE = 8


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


@dataclass
class SiteConfig:
    site_name: str = "pagewright"
    site_description: str = "Notes, essays and the feeds I follow."
    site_url: str = ""
    year: Optional[int] = None
    content: Path = Path("posts")
    static: Path = Path("static")
    templates: Optional[Path] = None
    output: Path = Path("dist")
    feeds: Optional[Path] = None
    feed_timeout: float = DEFAULT_FEED_TIMEOUT
    entries_per_feed: int = ENTRIES_PER_FEED
    feed_limit: int = FEED_LIMIT
    posts_per_page: int = POSTS_PER_PAGE
    debounce: float = DEFAULT_DEBOUNCE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_mapping(cls, data: dict, base_dir: Optional[Path] = None) -> "SiteConfig":
        """Build a config from a loaded file, resolving paths against ``base_dir``."""
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        config = cls()
        for key, value in data.items():
            if value is None:
                continue
            config.set(key, value, base_dir)
        return config

    def set(self, key: str, value: object, base_dir: Optional[Path] = None) -> None:
        current = getattr(self, key)
        if key in {"content", "static", "templates", "output", "feeds"}:
            path = Path(str(value))
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            setattr(self, key, path)
        elif key in {"feed_timeout", "debounce", "poll_interval"}:
            setattr(self, key, parse_float(value, current))
        elif key in {"entries_per_feed", "feed_limit", "posts_per_page", "port"}:
            setattr(self, key, parse_int(value, current))
        elif key == "year":
            setattr(self, key, parse_int(value, 0) or None)
        else:
            setattr(self, key, str(value))

    def watched_roots(self) -> list[Path]:
        roots = [self.content, self.static]
        if self.templates is not None:
            roots.append(self.templates)
        if self.feeds is not None:
            roots.append(self.feeds)
        return roots
