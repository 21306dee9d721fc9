"""Tests for internal link rewriting."""

import pytest

from matters_sync.core.config import Domain
from matters_sync.core.links import LinkRewriter
from matters_sync.core.storage import ProjectFiles

PATH_MAP = {
    "https://matters.town/@alice/trip-abc": "posts/travel/trip.md",
    "abc": "posts/travel/trip.md",
    "https://matters.town/@alice/solo-def": "posts/solo.md",
    "def": "posts/solo.md",
}


class TestRewriteLinksInContent:

    @pytest.fixture
    def rewriter(self, tmp_path):
        return LinkRewriter(ProjectFiles(tmp_path), Domain(), "alice")

    def test_exact_url(self, rewriter):
        content, count = rewriter.rewrite_links_in_content(
            "See [trip](https://matters.town/@alice/trip-abc).", PATH_MAP, "posts/solo.md",
        )
        assert content == "See [trip](travel/trip.md)."
        assert count == 1

    def test_short_hash_fallback(self, rewriter):
        content, count = rewriter.rewrite_links_in_content(
            "[renamed](https://matters.town/@alice/old-slug-def)", PATH_MAP, "posts/travel/trip.md",
        )
        assert content == "[renamed](../solo.md)"
        assert count == 1

    def test_other_users_untouched(self, rewriter):
        text = "[bob](https://matters.town/@bob/trip-abc)"
        assert rewriter.rewrite_links_in_content(text, PATH_MAP, "a.md") == (text, 0)

    def test_images_untouched(self, rewriter):
        text = "![img](https://matters.town/@alice/trip-abc)"
        assert rewriter.rewrite_links_in_content(text, PATH_MAP, "a.md") == (text, 0)

    def test_unresolved_untouched(self, rewriter):
        text = "[gone](https://matters.town/@alice/gone-zzz)"
        assert rewriter.rewrite_links_in_content(text, PATH_MAP, "a.md") == (text, 0)

    def test_keeps_link_title(self, rewriter):
        content, _ = rewriter.rewrite_links_in_content(
            '[t](https://matters.town/@alice/solo-def "Solo")', PATH_MAP, "index.md",
        )
        assert content == '[t](posts/solo.md "Solo")'

    def test_repeated_link(self, rewriter):
        text = "[a](https://matters.town/@alice/solo-def) and [b](https://matters.town/@alice/solo-def)"
        content, count = rewriter.rewrite_links_in_content(text, PATH_MAP, "posts/x.md")
        assert content == "[a](solo.md) and [b](solo.md)"
        assert count == 2


class TestRewriteAll:

    def test_rewrites_files_and_counts(self, tmp_path):
        files = ProjectFiles(tmp_path)
        files.write_file("posts/solo.md", "---\ntitle: Solo\n---\n\nGo to [trip](https://matters.town/@alice/trip-abc)\n")
        files.write_file("posts/travel/trip.md", "---\ntitle: Trip\n---\n\nNo links\n")

        result = LinkRewriter(files, Domain(), "alice").rewrite_all(PATH_MAP)

        assert result.files_processed == 1
        assert result.links_rewritten == 1
        assert files.read_file("posts/solo.md") == "---\ntitle: Solo\n---\n\nGo to [trip](travel/trip.md)\n"
        assert files.read_file("posts/travel/trip.md") == "---\ntitle: Trip\n---\n\nNo links\n"

    def test_empty_map_short_circuits(self, tmp_path):
        result = LinkRewriter(ProjectFiles(tmp_path / "missing"), Domain(), "alice").rewrite_all({})
        assert result.files_processed == 0
        assert result.errors == []

    def test_malformed_file_recorded(self, tmp_path):
        files = ProjectFiles(tmp_path)
        files.write_file("bad.md", "---\ntitle: [oops\n---\n[x](https://matters.town/@alice/solo-def)\n")
        result = LinkRewriter(files, Domain(), "alice").rewrite_all(PATH_MAP)
        assert len(result.errors) == 1
