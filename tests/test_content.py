"""Tests for content.py"""

import datetime as dt

import pytest

from pagewright.content import (
    Site,
    SiteMeta,
    load_document,
    load_documents,
    normalize_list_spacing,
    parse_front_matter,
    parse_list,
    slugify,
)
from pagewright.errors import ContentRootError, LoadError


class TestFrontMatter:
    def test_splits_meta_and_body(self):
        meta, body = parse_front_matter("---\ntitle: Hi\nDate: 2024-01-01\n---\nBody line\n")
        assert meta == {"title": "Hi", "date": "2024-01-01"}
        assert body == "Body line"

    def test_no_front_matter(self):
        meta, body = parse_front_matter("just text")
        assert meta == {}
        assert body == "just text"

    def test_unclosed_block_is_an_error(self):
        with pytest.raises(ValueError):
            parse_front_matter("---\ntitle: Hi\nno end here\n")

    def test_line_without_colon_is_an_error(self):
        with pytest.raises(ValueError, match="line 3"):
            parse_front_matter("---\ntitle: Hi\nbroken line\n---\nbody")

    def test_parse_list_accepts_both_styles(self):
        assert parse_list("[a, 'b', \"c\"]") == ["a", "b", "c"]
        assert parse_list("python, web ,") == ["python", "web"]


class TestSlugify:
    def test_underscores_and_spaces_collapse(self):
        assert slugify("Hello_World") == "hello-world"
        assert slugify("Hello World!") == "hello-world"

    def test_empty_falls_back(self):
        assert slugify("???") == "post"


class TestLoadDocument:
    def test_reads_fields(self, write_post):
        path = write_post("My First Post.md", title="First", date="2024-03-02", tags="[python, web]")
        document = load_document(path)
        assert document.slug == "my-first-post"
        assert document.title == "First"
        assert document.date == dt.datetime(2024, 3, 2)
        assert document.tags == ("python", "web")
        assert document.summary == "Some text."
        assert document.words == 2
        assert document.source == path

    def test_explicit_slug_wins(self, write_post):
        path = write_post("file.md", extra="slug: Custom Slug")
        assert load_document(path).slug == "custom-slug"

    def test_timezone_dates_are_normalized_to_utc(self, write_post):
        path = write_post("tz.md", date="2024-03-02T10:00:00+02:00")
        assert load_document(path).date == dt.datetime(2024, 3, 2, 8, 0)

    def test_zulu_suffix_is_utc(self, write_post):
        path = write_post("zulu.md", date="2024-03-02T10:00:00Z")
        assert load_document(path).date == dt.datetime(2024, 3, 2, 10, 0)

    def test_draft_returns_none(self, write_post):
        path = write_post("draft.md", extra="draft: true")
        assert load_document(path) is None

    def test_missing_date(self, content_dir):
        path = content_dir / "nodate.md"
        path.write_text("---\ntitle: No date\n---\nbody\n", encoding="utf-8")
        with pytest.raises(LoadError, match="date"):
            load_document(path)

    def test_invalid_date(self, write_post):
        path = write_post("bad.md", date="yesterday")
        with pytest.raises(LoadError, match="invalid date"):
            load_document(path)

    def test_not_utf8(self, content_dir):
        path = content_dir / "binary.md"
        path.write_bytes(b"---\ntitle: \xff\xfe\n---\n")
        with pytest.raises(LoadError, match="UTF-8"):
            load_document(path)

    def test_no_front_matter(self, content_dir):
        path = content_dir / "plain.md"
        path.write_text("# Just a heading\n", encoding="utf-8")
        with pytest.raises(LoadError, match="missing required metadata"):
            load_document(path)


class TestLoadDocuments:
    def test_one_bad_file_does_not_stop_the_rest(self, content_dir, write_post):
        write_post("good-one.md", title="Good one")
        write_post("good-two.md", title="Good two")
        bad = content_dir / "bad.md"
        bad.write_text("---\ntitle: Bad\nthis is not metadata\n---\n", encoding="utf-8")

        result = load_documents(content_dir)

        assert sorted(d.slug for d in result.documents) == ["good-one", "good-two"]
        assert len(result.errors) == 1
        assert result.errors[0].path == bad

    def test_ignores_other_extensions_and_collects_drafts(self, content_dir, write_post):
        write_post("post.md")
        write_post("draft.md", extra="draft: yes")
        (content_dir / "notes.txt").write_text("not content", encoding="utf-8")
        nested = content_dir / "2024"
        nested.mkdir()
        write_post("2024/nested.markdown")

        result = load_documents(content_dir)

        assert sorted(d.slug for d in result.documents) == ["nested", "post"]
        assert result.drafts == [content_dir / "draft.md"]
        assert result.errors == []

    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(ContentRootError):
            load_documents(tmp_path / "nope")


class TestSite:
    def test_posts_are_newest_first(self, write_post, content_dir):
        write_post("old.md", date="2023-01-01", tags="a")
        write_post("new.md", date="2024-01-01", tags="a, b")
        result = load_documents(content_dir)
        site = Site(SiteMeta("t"), {d.source: d for d in result.documents})

        assert [d.slug for d in site.posts] == ["new", "old"]
        assert site.slugs == frozenset({"new", "old"})
        assert site.year == "2024"
        assert {tag: [d.slug for d in docs] for tag, docs in site.tag_map().items()} == {
            "a": ["new", "old"],
            "b": ["new"],
        }

    def test_tags_differing_in_case_share_a_page(self, write_post, content_dir):
        write_post("new.md", date="2024-02-01", tags="Python")
        write_post("old.md", date="2024-01-01", tags="python, PYTHON")
        result = load_documents(content_dir)
        site = Site(SiteMeta("t"), {d.source: d for d in result.documents})

        tags = site.tag_map()
        assert list(tags) == ["Python"]
        assert [d.slug for d in tags["Python"]] == ["new", "old"]

    def test_configured_year_wins(self):
        assert Site(SiteMeta("t", year=2020)).year == "2020"


def test_normalize_list_spacing_inserts_blank_line_before_lists():
    text = "Intro\n- one\n- two\n```\nText\n- inside fence\n```"
    assert normalize_list_spacing(text) == "Intro\n\n- one\n- two\n```\nText\n- inside fence\n```"
