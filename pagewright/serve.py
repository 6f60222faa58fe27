from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import partial
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)


class MimeType(enum.Enum):
    HTML = "text/html; charset=utf-8"
    CSS = "text/css; charset=utf-8"
    XML = "application/xml"
    JSON = "application/json"
    TEXT = "text/plain; charset=utf-8"
    JPG = "image/jpeg"
    PNG = "image/png"
    SVG = "image/svg+xml"
    GIF = "image/gif"
    ICO = "image/vnd.microsoft.icon"
    WOFF2 = "font/woff2"
    JS = "application/javascript"
    WASM = "application/wasm"


EXTENSIONS = {
    "html": MimeType.HTML,
    "htm": MimeType.HTML,
    "css": MimeType.CSS,
    "xml": MimeType.XML,
    "json": MimeType.JSON,
    "txt": MimeType.TEXT,
    "jpg": MimeType.JPG,
    "jpeg": MimeType.JPG,
    "png": MimeType.PNG,
    "svg": MimeType.SVG,
    "gif": MimeType.GIF,
    "ico": MimeType.ICO,
    "woff2": MimeType.WOFF2,
    "js": MimeType.JS,
    "wasm": MimeType.WASM,
}


def mime_type_for(path: PurePosixPath | Path) -> Optional[MimeType]:
    return EXTENSIONS.get(path.suffix.lower().lstrip("."))


@dataclass
class Resolved:
    status: HTTPStatus
    path: Optional[Path] = None
    mime: Optional[MimeType] = None


def resolve_request(output_dir: Path, url_path: str) -> Resolved:
    request_path = unquote(urlsplit(url_path).path)
    if request_path.endswith("/"):
        request_path += "index.html"
    relative = PurePosixPath(request_path.lstrip("/"))
    root = output_dir.resolve()
    target = (root / relative).resolve()
    if not target.is_relative_to(root):
        return Resolved(HTTPStatus.NOT_FOUND)
    if target.is_dir():
        target = target / "index.html"
    mime = mime_type_for(target)
    if mime is None:
        return Resolved(HTTPStatus.UNSUPPORTED_MEDIA_TYPE, target)
    if not target.is_file():
        return Resolved(HTTPStatus.NOT_FOUND, target, mime)
    return Resolved(HTTPStatus.OK, target, mime)


class PreviewHandler(BaseHTTPRequestHandler):
    server_version = "pagewright"

    def __init__(self, *args, output_dir: Path, **kwargs):
        self.output_dir = output_dir
        super().__init__(*args, **kwargs)

    def send_body(self, include_body: bool) -> None:
        resolved = resolve_request(self.output_dir, self.path)
        if resolved.status is not HTTPStatus.OK:
            self.send_error(resolved.status)
            return
        data = resolved.path.read_bytes()
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", resolved.mime.value)
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if include_body:
            self.wfile.write(data)

    def do_GET(self):
        self.send_body(include_body=True)

    def do_HEAD(self):
        self.send_body(include_body=False)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


def make_server(output_dir: Path, host: str, port: int) -> ThreadingHTTPServer:
    handler = partial(PreviewHandler, output_dir=output_dir)
    return ThreadingHTTPServer((host, port), handler)


def serve(output_dir: Path, host: str = "127.0.0.1", port: int = 8000) -> None:
    server = make_server(output_dir, host, port)
    logger.info("Serving %s at http://%s:%d/", output_dir, host, server.server_address[1])
    try:
        server.serve_forever()
    finally:
        server.server_close()
