"""Full and incremental build passes.

A pass takes the previous ``BuildResult`` (if any) and returns a new one; the
``Site`` inside it is the only state carried between passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import SiteConfig
from .content import (
    Document,
    Site,
    SiteMeta,
    is_content_file,
    load_document,
    load_documents,
)
from .errors import BrokenLinkError, DuplicateSlugError, LoadError, WriteError
from .feeds import Blogroll, aggregate_feeds, read_feed_list
from .pages import (
    BuildArtifact,
    build_404,
    build_archive,
    build_atom,
    build_blogroll,
    build_index,
    build_post,
    build_rss,
    build_sitemap,
    build_tags,
)
from .render import copy_static, read_template

logger = logging.getLogger(__name__)

FeedFetcher = Callable[[SiteConfig], Optional[Blogroll]]


@dataclass
class BuildReport:
    full: bool = True
    written: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    load_errors: list[LoadError] = field(default_factory=list)
    broken_links: list[BrokenLinkError] = field(default_factory=list)
    feed_errors: list[Exception] = field(default_factory=list)
    write_errors: list[WriteError] = field(default_factory=list)

    @property
    def problems(self) -> list[Exception]:
        return [*self.load_errors, *self.broken_links, *self.feed_errors, *self.write_errors]

    def summary(self) -> str:
        kind = "Full" if self.full else "Incremental"
        return (
            f"{kind} build: {len(self.written)} files written, {len(self.removed)} removed, "
            f"{len(self.problems)} problems."
        )


@dataclass
class BuildResult:
    site: Site
    report: BuildReport
    blogroll: Optional[Blogroll] = None
    paths: frozenset[str] = frozenset()


def site_meta(config: SiteConfig, blogroll: Optional[Blogroll] = None) -> SiteMeta:
    return SiteMeta(
        title=config.site_name,
        description=config.site_description,
        base_url=config.site_url,
        year=config.year,
        blogroll=blogroll is not None,
    )


def fetch_blogroll(config: SiteConfig) -> Optional[Blogroll]:
    if config.feeds is None:
        return None
    try:
        urls = read_feed_list(config.feeds)
    except OSError as exc:
        logger.warning("Cannot read feed list %s: %s", config.feeds, exc)
        return Blogroll(errors=[exc])
    logger.info("Aggregating %d feeds", len(urls))
    return aggregate_feeds(urls, timeout=config.feed_timeout, per_source=config.entries_per_feed)


def check_unique_slugs(documents: Iterable[Document]) -> None:
    seen: dict[str, list[Path]] = {}
    for document in documents:
        seen.setdefault(document.slug, []).append(document.source)
    for slug, sources in sorted(seen.items()):
        if len(sources) > 1:
            raise DuplicateSlugError(slug, sorted(sources))


def check_unique_paths(artifacts: list[BuildArtifact]) -> None:
    seen: dict[str, list[str]] = {}
    for artifact in artifacts:
        seen.setdefault(artifact.path, []).append(",".join(sorted(artifact.depends_on)))
    for path, owners in sorted(seen.items()):
        if len(owners) > 1:
            raise DuplicateSlugError(path, owners)


def listing_artifacts(
    template: str, site: Site, config: SiteConfig, blogroll: Optional[Blogroll]
) -> list[BuildArtifact]:
    artifacts = build_index(template, site, config.posts_per_page)
    artifacts.extend(build_tags(template, site))
    artifacts.append(build_archive(template, site))
    if blogroll is not None:
        artifacts.append(build_blogroll(template, site, blogroll))
    artifacts.append(build_404(template, site))
    pages = [artifact.path for artifact in artifacts if artifact.path != "404.html"]
    for artifact in (
        build_rss(site, config.feed_limit),
        build_atom(site, config.feed_limit),
        build_sitemap(site, pages),
    ):
        if artifact is not None:
            artifacts.append(artifact)
    return artifacts


def render_artifacts(
    template: str,
    site: Site,
    config: SiteConfig,
    blogroll: Optional[Blogroll],
    only_slugs: Optional[set[str]] = None,
) -> tuple[list[BuildArtifact], list[BrokenLinkError]]:
    artifacts = []
    broken = []
    for document in site.posts:
        if only_slugs is not None and document.slug not in only_slugs:
            continue
        artifact, links = build_post(template, site, document)
        for error in links:
            logger.warning("%s", error)
        artifacts.append(artifact)
        broken.extend(links)
    artifacts.extend(listing_artifacts(template, site, config, blogroll))
    check_unique_paths(artifacts)
    return artifacts, broken


def write_artifacts(output_dir: Path, artifacts: list[BuildArtifact], report: BuildReport) -> None:
    for artifact in artifacts:
        target = output_dir / artifact.path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(artifact.content)
        except OSError as exc:
            error = WriteError(target, exc.strerror or str(exc))
            logger.error("%s", error)
            report.write_errors.append(error)
            continue
        report.written.append(artifact.path)


def remove_stale(output_dir: Path, paths: Iterable[str], report: BuildReport) -> None:
    for path in sorted(paths):
        try:
            (output_dir / path).unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            report.write_errors.append(WriteError(output_dir / path, exc.strerror or str(exc)))
            continue
        report.removed.append(path)


def copy_static_assets(config: SiteConfig, report: BuildReport) -> None:
    if not config.static.is_dir():
        return
    try:
        copy_static(config.static, config.output)
    except OSError as exc:
        error = WriteError(config.output, f"copying static assets failed: {exc}")
        logger.error("%s", error)
        report.write_errors.append(error)


def full_build(
    config: SiteConfig,
    previous: Optional[BuildResult] = None,
    fetch: FeedFetcher = fetch_blogroll,
) -> BuildResult:
    report = BuildReport(full=True)
    loaded = load_documents(config.content)
    report.load_errors.extend(loaded.errors)
    check_unique_slugs(loaded.documents)

    blogroll = fetch(config)
    if blogroll is not None:
        report.feed_errors.extend(blogroll.errors)
    site = Site(site_meta(config, blogroll), {document.source: document for document in loaded.documents})
    return finish_full(config, site, blogroll, report, previous)


def finish_full(
    config: SiteConfig,
    site: Site,
    blogroll: Optional[Blogroll],
    report: BuildReport,
    previous: Optional[BuildResult],
) -> BuildResult:
    template = read_template(config.templates)
    artifacts, broken = render_artifacts(template, site, config, blogroll)
    report.broken_links.extend(broken)
    paths = frozenset(artifact.path for artifact in artifacts)
    write_artifacts(config.output, artifacts, report)
    if previous is not None:
        remove_stale(config.output, previous.paths - paths, report)
    copy_static_assets(config, report)
    return BuildResult(site=site, report=report, blogroll=blogroll, paths=paths)


def within(path: Path, root: Optional[Path]) -> bool:
    if root is None:
        return False
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def incremental_build(
    config: SiteConfig,
    previous: BuildResult,
    changed: set[Path],
    fetch: FeedFetcher = fetch_blogroll,
) -> BuildResult:
    if any(within(path, config.templates) for path in changed):
        logger.info("Templates changed, rebuilding everything")
        return full_build(config, previous, fetch)
    if not config.content.is_dir():
        return full_build(config, previous, fetch)

    report = BuildReport(full=False)
    blogroll = previous.blogroll
    if config.feeds is not None and any(path.resolve() == config.feeds.resolve() for path in changed):
        blogroll = fetch(config)
        if blogroll is not None:
            report.feed_errors.extend(blogroll.errors)

    documents = dict(previous.site.documents)
    touched: list[Path] = []
    for path in sorted(changed):
        if not within(path, config.content) or not is_content_file(path):
            continue
        key = next((source for source in documents if source.resolve() == path.resolve()), path)
        documents.pop(key, None)
        touched.append(key)
        if not path.exists():
            continue
        try:
            document = load_document(path)
        except LoadError as exc:
            logger.warning("Skipping %s", exc)
            report.load_errors.append(exc)
            continue
        if document is not None:
            documents[key] = document

    check_unique_slugs(documents.values())
    site = Site(site_meta(config, blogroll), documents)

    old_site = previous.site
    if site.slugs != old_site.slugs or site.meta != old_site.meta:
        logger.info("Documents added or removed, rebuilding every page")
        report.full = True
        return finish_full(config, site, blogroll, report, previous)

    nav_changed = any(
        old_site.documents[key].nav_key != documents[key].nav_key
        for key in touched
        if key in old_site.documents and key in documents
    )
    only_slugs = None if nav_changed else {documents[key].slug for key in touched if key in documents}
    template = read_template(config.templates)
    artifacts, broken = render_artifacts(template, site, config, blogroll, only_slugs)
    report.broken_links.extend(broken)
    paths = frozenset(artifact.path for artifact in artifacts)
    write_artifacts(config.output, artifacts, report)
    if only_slugs is None:
        remove_stale(config.output, previous.paths - paths, report)
        result_paths = paths
    else:
        result_paths = previous.paths | paths

    if any(within(path, config.static) for path in changed):
        copy_static_assets(config, report)
    return BuildResult(site=site, report=report, blogroll=blogroll, paths=result_paths)


def build_site(
    config: SiteConfig,
    previous: Optional[BuildResult] = None,
    changed: Optional[set[Path]] = None,
    fetch: FeedFetcher = fetch_blogroll,
) -> BuildResult:
    """Run one build pass.

    Without ``previous`` and ``changed`` this is a full build. With both, only
    the changed sources are re-read; adding or removing a document still
    re-renders every page because every page carries the navigation.
    """
    if previous is None or changed is None:
        result = full_build(config, previous, fetch)
    else:
        result = incremental_build(config, previous, changed, fetch)
    logger.info("%s", result.report.summary())
    return result
