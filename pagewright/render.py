from __future__ import annotations

import html
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import markdown

from .content import Document, Site, slugify
from .errors import BrokenLinkError
from .links import LinkResolverExtension

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
DEFAULT_TEMPLATE = Path(__file__).parent / "templates" / "base.html"
TOC_DEPTH = "2-4"


@dataclass
class RenderResult:
    html: str
    toc: str = ""
    broken_links: list[BrokenLinkError] = field(default_factory=list)


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def render_template(template: str, **context: str) -> str:
    """Fill ``{{key}}`` placeholders in one pass over the template.

    Inserted values are never scanned again, so text inside a post or title
    that looks like a placeholder comes out unchanged. Unknown keys render
    empty.
    """
    return PLACEHOLDER_RE.sub(lambda m: context.get(m.group(1), ""), template)


def read_template(templates_dir: Optional[Path] = None) -> str:
    if templates_dir is not None:
        candidate = templates_dir / "base.html"
        if candidate.exists():
            return candidate.read_text(encoding="utf-8")
    return DEFAULT_TEMPLATE.read_text(encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> list[Path]:
    copied = []
    for item in sorted(static_dir.iterdir()):
        dest = output_dir / item.name
        if item.is_dir():
            if dest.exists():
                shutil.rmtree(dest)
            shutil.copytree(item, dest)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, dest)
        copied.append(dest)
    return copied


def convert_markdown(document: Document, slugs: frozenset[str], root: str) -> RenderResult:
    resolver = LinkResolverExtension(document.slug, slugs, root)
    md = markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite", resolver],
        extension_configs={
            "toc": {"toc_depth": TOC_DEPTH},
            "codehilite": {"guess_lang": False, "css_class": "codehilite"},
        },
    )
    html_content = md.convert(document.body)
    html_content = fix_relative_img_src(html_content, root)
    return RenderResult(html=html_content, toc=md.toc, broken_links=list(resolver.broken))


def build_nav(root: str, blogroll: bool = False) -> str:
    links = [("index.html", "Home"), ("archive.html", "Archive")]
    if blogroll:
        links.append(("blogroll.html", "Blogroll"))
    links.append(("rss.xml", "RSS"))
    return "".join(f'<a href="{root}/{href}">{label}</a>' for href, label in links)


def build_post_list(site: Site, root: str, current: str = "") -> str:
    items = []
    for post in site.posts:
        active = ' class="is-active"' if post.slug == current else ""
        items.append(
            f'<li{active}><a href="{root}/posts/{post.slug}.html">{html.escape(post.title)}</a>'
            f'<span class="post-date">{post.date:%Y-%m-%d}</span></li>'
        )
    return "\n".join(items) if items else "<li>No posts yet.</li>"


def build_tag_list(site: Site, root: str) -> str:
    items = []
    for name, posts in sorted(site.tag_map().items(), key=lambda x: (-len(x[1]), x[0].lower())):
        items.append(
            f'<li><a href="{root}/tags/{slugify(name)}.html">{html.escape(name)}</a>'
            f'<span class="count">{len(posts)}</span></li>'
        )
    return "\n".join(items) if items else "<li>No tags yet.</li>"


def build_sidebar(site: Site, root: str, toc_html: str = "", current: str = "") -> str:
    panels = [
        '<div class="panel">'
        "<h3>About</h3>"
        f"<p>{html.escape(site.meta.description)}</p>"
        "</div>"
    ]
    if toc_html and "<li" in toc_html:
        panels.append(
            '<div class="panel">'
            "<h3>Contents</h3>"
            f"{toc_html}"
            "</div>"
        )
    panels.append(
        '<div class="panel">'
        "<h3>Posts</h3>"
        f'<ul class="post-list">{build_post_list(site, root, current)}</ul>'
        "</div>"
    )
    panels.append(
        '<div class="panel">'
        "<h3>Tags</h3>"
        f'<ul class="tag-list">{build_tag_list(site, root)}</ul>'
        "</div>"
    )
    return "".join(panels)


def render_page(
    template: str,
    site: Site,
    title: str,
    root: str,
    content: str,
    sidebar: str,
    extra_head: str = "",
) -> str:
    return render_template(
        template,
        title=html.escape(title),
        root=root,
        nav=build_nav(root, site.meta.blogroll),
        content=content,
        sidebar=sidebar,
        site_name=html.escape(site.meta.title),
        site_description=html.escape(site.meta.description),
        year=site.year,
        extra_head=extra_head,
    )


def tag_chips(tags: tuple[str, ...], root: str) -> str:
    return " ".join(
        f'<a class="chip" href="{root}/tags/{slugify(tag)}.html">{html.escape(tag)}</a>' for tag in tags
    )


def render_document(document: Document, site: Site, template: str) -> RenderResult:
    root = ".."
    converted = convert_markdown(document, site.slugs, root)
    content = (
        '<article class="post">'
        '<div class="post-meta"><div class="post-meta-left">'
        f'<span class="post-date">{document.date:%Y-%m-%d}</span>'
        f'<span class="post-words">{document.words} words</span>'
        "</div>"
        f'<div class="post-tags">{tag_chips(document.tags, root)}</div></div>'
        f'<h1 class="post-title">{html.escape(document.title)}</h1>'
        f'<div class="post-body">{converted.html}</div>'
        f'<div class="post-footer"><a href="{root}/index.html">Back to home</a></div>'
        "</article>"
    )
    page = render_page(
        template,
        site,
        title=f"{document.title} | {site.meta.title}",
        root=root,
        content=content,
        sidebar=build_sidebar(site, root, converted.toc, current=document.slug),
    )
    return RenderResult(html=page, toc=converted.toc, broken_links=converted.broken_links)
