"""Tests for serve.py"""

import threading
from http import HTTPStatus
from pathlib import PurePosixPath

import httpx
import pytest

from pagewright.serve import EXTENSIONS, MimeType, make_server, mime_type_for, resolve_request


@pytest.fixture
def site_dir(tmp_path):
    root = tmp_path / "dist"
    (root / "posts").mkdir(parents=True)
    (root / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (root / "posts" / "first.html").write_text("<h1>first</h1>", encoding="utf-8")
    (root / "posts" / "index.html").write_text("<h1>posts</h1>", encoding="utf-8")
    (root / "rss.xml").write_text("<rss/>", encoding="utf-8")
    (root / "notes.md").write_text("# raw", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("outside", encoding="utf-8")
    return root


class TestResolveRequest:
    def test_root_serves_index(self, site_dir):
        resolved = resolve_request(site_dir, "/")
        assert resolved.status is HTTPStatus.OK
        assert resolved.path == (site_dir / "index.html").resolve()
        assert resolved.mime is MimeType.HTML

    def test_directory_serves_its_index(self, site_dir):
        assert resolve_request(site_dir, "/posts").path == (site_dir / "posts" / "index.html").resolve()
        assert resolve_request(site_dir, "/posts/").status is HTTPStatus.OK

    def test_query_string_is_ignored(self, site_dir):
        resolved = resolve_request(site_dir, "/rss.xml?v=2")
        assert resolved.status is HTTPStatus.OK
        assert resolved.mime is MimeType.XML

    def test_missing_file(self, site_dir):
        assert resolve_request(site_dir, "/posts/none.html").status is HTTPStatus.NOT_FOUND

    def test_unknown_extension(self, site_dir):
        assert resolve_request(site_dir, "/notes.md").status is HTTPStatus.UNSUPPORTED_MEDIA_TYPE

    @pytest.mark.parametrize("path", ["/../secret.txt", "/posts/../../secret.txt", "/%2e%2e/secret.txt"])
    def test_paths_outside_root_are_not_found(self, site_dir, path):
        assert resolve_request(site_dir, path).status is HTTPStatus.NOT_FOUND


def test_every_extension_maps_to_a_mime_type():
    assert set(EXTENSIONS.values()) == set(MimeType)
    assert mime_type_for(PurePosixPath("a/B.JPEG")) is MimeType.JPG
    assert mime_type_for(PurePosixPath("archive.tar.gz")) is None
    assert mime_type_for(PurePosixPath("Makefile")) is None


def test_live_server(site_dir):
    server = make_server(site_dir, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        with httpx.Client(base_url=base) as client:
            home = client.get("/")
            assert home.status_code == 200
            assert home.headers["content-type"] == "text/html; charset=utf-8"
            assert home.text == "<h1>home</h1>"

            head = client.head("/posts/first.html")
            assert head.status_code == 200
            assert head.content == b""

            assert client.get("/nope.html").status_code == 404
            assert client.get("/notes.md").status_code == 415
    finally:
        server.shutdown()
        server.server_close()
        thread.join()
