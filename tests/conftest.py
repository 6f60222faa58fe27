from __future__ import annotations

import pytest

from pagewright.config import SiteConfig


@pytest.fixture
def content_dir(tmp_path):
    path = tmp_path / "posts"
    path.mkdir()
    return path


@pytest.fixture
def write_post(content_dir):
    """Write a markdown post with front matter into the content directory."""

    def write(name, title="A post", date="2024-01-01", body="Some text.", tags="", extra=""):
        lines = ["---", f"title: {title}", f"date: {date}"]
        if tags:
            lines.append(f"tags: {tags}")
        if extra:
            lines.append(extra)
        lines.extend(["---", "", body])
        path = content_dir / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write


@pytest.fixture
def config(tmp_path, content_dir):
    return SiteConfig(
        site_name="Test Site",
        site_description="Notes for testing.",
        site_url="https://example.com",
        year=2024,
        content=content_dir,
        static=tmp_path / "static",
        output=tmp_path / "dist",
    )

