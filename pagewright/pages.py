from __future__ import annotations

import html
import math
from dataclasses import dataclass, field

from .content import Document, Site, slugify
from .errors import BrokenLinkError
from .feeds import Blogroll
from .render import build_sidebar, render_document, render_page, tag_chips
from .utils import iso_date, join_url, rfc822_date


@dataclass(frozen=True)
class BuildArtifact:
    path: str
    content: bytes
    depends_on: frozenset[str] = field(default_factory=frozenset)


def text_artifact(path: str, text: str, depends_on: frozenset[str] = frozenset()) -> BuildArtifact:
    return BuildArtifact(path=path, content=text.encode("utf-8"), depends_on=depends_on)


def post_path(slug: str) -> str:
    return f"posts/{slug}.html"


def build_post(template: str, site: Site, document: Document) -> tuple[BuildArtifact, list[BrokenLinkError]]:
    result = render_document(document, site, template)
    artifact = text_artifact(post_path(document.slug), result.html, frozenset({document.slug}))
    return artifact, result.broken_links


def build_post_cards(posts: list[Document], root: str) -> str:
    cards = []
    for post in posts:
        url = f"{root}/{post_path(post.slug)}"
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta"><div class="post-meta-left">'
            f'<span class="post-date">{post.date:%Y-%m-%d}</span>'
            f'<span class="post-words">{post.words} words</span>'
            "</div>"
            f'<div class="post-tags">{tag_chips(post.tags, root)}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(post.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(post.summary)}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def page_url(page: int) -> str:
    if page == 1:
        return "index.html"
    return f"page-{page}.html"


def build_pagination(page: int, total_pages: int) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link" href="./{page_url(page - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, total_pages + 1):
        if num == page:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="./{page_url(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page < total_pages:
        items.append(f'<a class="page-link" href="./{page_url(page + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_index(template: str, site: Site, per_page: int) -> list[BuildArtifact]:
    root = "."
    posts = site.posts
    sidebar = build_sidebar(site, root)
    per_page = max(1, per_page)
    total_pages = max(1, math.ceil(len(posts) / per_page))
    artifacts = []
    for page in range(1, total_pages + 1):
        start = (page - 1) * per_page
        page_posts = posts[start : start + per_page]
        content = (
            '<div class="section-head">'
            "<h2>Latest posts</h2>"
            "</div>"
            f'<div class="post-grid">{build_post_cards(page_posts, root)}</div>'
            f"{build_pagination(page, total_pages)}"
        )
        title = f"{site.meta.title} | Home" if page == 1 else f"{site.meta.title} | Page {page}"
        text = render_page(template, site, title=title, root=root, content=content, sidebar=sidebar)
        artifacts.append(text_artifact(page_url(page), text, site.slugs))
    return artifacts


def build_tags(template: str, site: Site) -> list[BuildArtifact]:
    root = ".."
    sidebar = build_sidebar(site, root)
    artifacts = []
    for tag, posts in sorted(site.tag_map().items(), key=lambda x: x[0].lower()):
        content = (
            '<div class="section-head">'
            f"<h2>{html.escape(tag)}</h2>"
            "<p>Posts with this tag.</p>"
            "</div>"
            f'<div class="post-grid">{build_post_cards(posts, root)}</div>'
        )
        text = render_page(
            template, site, title=f"{tag} | {site.meta.title}", root=root, content=content, sidebar=sidebar
        )
        depends = frozenset(post.slug for post in posts)
        artifacts.append(text_artifact(f"tags/{slugify(tag)}.html", text, depends))
    return artifacts


def build_archive(template: str, site: Site) -> BuildArtifact:
    root = "."
    groups: dict[str, list[Document]] = {}
    for post in site.posts:
        groups.setdefault(post.date.strftime("%Y-%m"), []).append(post)
    sections = []
    for key, items in groups.items():
        rows = "".join(
            f'<li><span class="archive-date">{item.date:%Y-%m-%d}</span>'
            f'<a href="{root}/{post_path(item.slug)}">{html.escape(item.title)}</a></li>'
            for item in items
        )
        sections.append(
            f'<section class="archive-group"><h3>{key}</h3>'
            f'<ul class="archive-list">{rows}</ul></section>'
        )
    if not sections:
        sections.append('<p class="archive-empty">Nothing here yet.</p>')
    total_words = sum(post.words for post in site.posts)
    content = (
        '<div class="section-head">'
        "<h2>Archive</h2>"
        f"<p>{len(site.posts)} posts, {total_words} words.</p>"
        "</div>"
        f'{"".join(sections)}'
    )
    text = render_page(
        template,
        site,
        title=f"Archive | {site.meta.title}",
        root=root,
        content=content,
        sidebar=build_sidebar(site, root),
    )
    return text_artifact("archive.html", text, site.slugs)


def build_blogroll(template: str, site: Site, blogroll: Blogroll) -> BuildArtifact:
    root = "."
    rows = []
    for entry in blogroll.entries:
        rows.append(
            '<li class="blogroll-entry">'
            f'<span class="blogroll-date">{entry.date:%Y-%m-%d}</span>'
            f'<a href="{html.escape(entry.url, quote=True)}">{html.escape(entry.title)}</a>'
            "</li>"
        )
    listing = (
        f'<ul class="blogroll">{"".join(rows)}</ul>'
        if rows
        else '<p class="blogroll-empty">No entries from followed feeds.</p>'
    )
    content = (
        '<div class="section-head">'
        "<h2>Blogroll</h2>"
        "<p>Recent posts from sites I follow.</p>"
        "</div>"
        f"{listing}"
    )
    text = render_page(
        template,
        site,
        title=f"Blogroll | {site.meta.title}",
        root=root,
        content=content,
        sidebar=build_sidebar(site, root),
    )
    return text_artifact("blogroll.html", text)


def build_404(template: str, site: Site) -> BuildArtifact:
    root = "."
    content = (
        '<div class="section-head">'
        "<h2>404</h2>"
        "<p>Page not found. Try heading back to the homepage.</p>"
        "</div>"
        f'<a class="post-more" href="{root}/index.html">Back to home</a>'
    )
    text = render_page(
        template,
        site,
        title=f"404 | {site.meta.title}",
        root=root,
        content=content,
        sidebar=build_sidebar(site, root),
    )
    return text_artifact("404.html", text, site.slugs)


def build_rss(site: Site, feed_limit: int) -> BuildArtifact | None:
    site_url = site.meta.base_url.rstrip("/")
    if not site_url:
        return None
    posts = site.posts[:feed_limit]
    items = []
    for post in posts:
        link = join_url(site_url, post_path(post.slug))
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post.title)}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(post.date)}</pubDate>",
                    f"<description>{html.escape(post.summary)}</description>",
                    "</item>",
                ]
            )
        )
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{html.escape(site.meta.title)}</title>",
        f"<link>{site_url}/</link>",
        f"<description>{html.escape(site.meta.description)}</description>",
    ]
    if posts:
        lines.append(f"<lastBuildDate>{rfc822_date(posts[0].date)}</lastBuildDate>")
    lines.extend(["\n".join(items), "</channel>", "</rss>"])
    return text_artifact("rss.xml", "\n".join(lines), site.slugs)


def build_atom(site: Site, feed_limit: int) -> BuildArtifact | None:
    site_url = site.meta.base_url.rstrip("/")
    if not site_url:
        return None
    posts = site.posts[:feed_limit]
    entries = []
    for post in posts:
        link = join_url(site_url, post_path(post.slug))
        entries.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(post.title)}</title>",
                    f'<link href="{link}" type="text/html" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(post.date)}</updated>",
                    f"<summary>{html.escape(post.summary)}</summary>",
                    "</entry>",
                ]
            )
        )
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<feed xmlns="http://www.w3.org/2005/Atom">',
        f"<title>{html.escape(site.meta.title)}</title>",
        f"<id>{site_url}/</id>",
    ]
    if posts:
        lines.append(f"<updated>{iso_date(posts[0].date)}</updated>")
    lines.extend(
        [
            f'<link href="{site_url}/atom.xml" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(entries),
            "</feed>",
        ]
    )
    return text_artifact("atom.xml", "\n".join(lines), site.slugs)


def build_sitemap(site: Site, pages: list[str]) -> BuildArtifact | None:
    site_url = site.meta.base_url.rstrip("/")
    if not site_url:
        return None
    items = []
    for path in pages:
        items.append(f"<url>\n<loc>{join_url(site_url, path)}</loc>\n</url>")
    for post in site.posts:
        items.append(
            "\n".join(
                [
                    "<url>",
                    f"<loc>{join_url(site_url, post_path(post.slug))}</loc>",
                    f"<lastmod>{post.date.date().isoformat()}</lastmod>",
                    "</url>",
                ]
            )
        )
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    return text_artifact("sitemap.xml", sitemap, site.slugs)
