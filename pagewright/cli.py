from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .builder import build_site
from .config import SiteConfig, load_config
from .content import slugify
from .errors import SiteError
from .serve import serve
from .spelling import check_files, load_dictionary
from .utils import clean_output_dir
from .watch import WatchLoop

NEW_POST_TEMPLATE = """---
title: {title}
date: {date}
tags: {tags}
---

Write something.
"""


def config_from_args(args: argparse.Namespace, file_config: SiteConfig) -> SiteConfig:
    config = file_config
    for key in ("site_name", "site_url", "content", "static", "templates", "output", "feeds", "host", "port"):
        value = getattr(args, key, None)
        if value is not None:
            config.set(key, value)
    return config


def print_problems(result) -> None:
    for problem in result.report.problems:
        print(f"warning: {problem}", file=sys.stderr)


def cmd_build(args: argparse.Namespace, config: SiteConfig) -> int:
    if args.clean:
        clean_output_dir(config.output, Path.cwd())
    start = time.perf_counter()
    result = build_site(config)
    elapsed = time.perf_counter() - start
    print_problems(result)
    print(result.report.summary())
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {config.output}")
    return 0


def cmd_watch(args: argparse.Namespace, config: SiteConfig) -> int:
    loop = WatchLoop(config)
    try:
        loop.run()
    except KeyboardInterrupt:
        print("\nStopped watching.")
    return 0


def cmd_serve(args: argparse.Namespace, config: SiteConfig) -> int:
    if not config.output.is_dir():
        print(f"Output directory not found: {config.output}. Run 'build' first.", file=sys.stderr)
        return 1
    try:
        serve(config.output, config.host, config.port)
    except KeyboardInterrupt:
        print("\nServer stopped.")
    return 0


def cmd_new(args: argparse.Namespace, config: SiteConfig) -> int:
    config.content.mkdir(parents=True, exist_ok=True)
    path = config.content / f"{slugify(args.title)}.md"
    if path.exists():
        print(f"Refusing to overwrite existing post: {path}", file=sys.stderr)
        return 1
    text = NEW_POST_TEMPLATE.format(
        title=args.title,
        date=(args.date or dt.date.today().isoformat()),
        tags=", ".join(args.tags or []),
    )
    path.write_text(text, encoding="utf-8")
    print(f"Created {path}")
    return 0


def cmd_spellcheck(args: argparse.Namespace, config: SiteConfig) -> int:
    dictionary_path = Path(args.dictionary)
    if not dictionary_path.exists():
        print(f"Dictionary file not found: {dictionary_path}", file=sys.stderr)
        return 1
    found = check_files(config.content, load_dictionary(dictionary_path))
    for item in found:
        print(item)
    if found:
        print(f"{len(found)} unknown words.", file=sys.stderr)
        return 1
    print("No unknown words.")
    return 0


def make_parser(config_path: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagewright", description="Markdown site generator with a blogroll.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    parser.add_argument("--content", help="Directory containing Markdown posts.")
    parser.add_argument("--static", help="Directory containing static assets.")
    parser.add_argument("--templates", help="Directory containing base.html.")
    parser.add_argument("--output", help="Output directory for the site.")
    parser.add_argument("--feeds", help="File listing blogroll feed URLs, one per line.")
    parser.add_argument("--site-name", dest="site_name", help="Site title.")
    parser.add_argument("--site-url", dest="site_url", help="Public site URL used for RSS, Atom and sitemap.")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Build the site once and exit.")
    build.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Remove the output directory before building.",
    )
    build.set_defaults(handler=cmd_build)

    watch = commands.add_parser("watch", help="Rebuild whenever sources change.")
    watch.set_defaults(handler=cmd_watch)

    serve_cmd = commands.add_parser("serve", help="Serve the output directory for preview.")
    serve_cmd.add_argument("--host", help="Interface to bind.")
    serve_cmd.add_argument("--port", type=int, help="Port to listen on.")
    serve_cmd.set_defaults(handler=cmd_serve)

    new = commands.add_parser("new", help="Create a new post from a template.")
    new.add_argument("title", help="Post title.")
    new.add_argument("--date", help="Publish date (YYYY-MM-DD), defaults to today.")
    new.add_argument("--tag", dest="tags", action="append", help="Tag for the post; repeatable.")
    new.set_defaults(handler=cmd_new)

    spell = commands.add_parser("spellcheck", help="List words missing from a dictionary file.")
    spell.add_argument("--dictionary", default="words.txt", help="Word list, one word per line.")
    spell.set_defaults(handler=cmd_spellcheck)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="site.toml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    config_path = Path(pre_args.config)

    args = make_parser(pre_args.config).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        file_config = SiteConfig.from_mapping(load_config(config_path), config_path.parent)
        config = config_from_args(args, file_config)
        return args.handler(args, config)
    except SiteError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
