"""Tests for the social data store."""

import json

import pytest

from matters_sync.core.models import Appreciation, Comment, Donation, SocialUser
from matters_sync.core.social import (
    SCHEMA_VERSION,
    SocialStore,
    article_social,
    empty_document,
    merge_social,
    social_counts,
)
from matters_sync.core.storage import ProjectFiles

BOB = SocialUser(id="u2", user_name="bob", display_name="Bob")


def comment(cid, content="hi", upvotes=0):
    return Comment(id=cid, content=content, created_at="2024-01-01T00:00:00Z", author=BOB, upvotes=upvotes)


def appreciation(created_at, amount=1):
    return Appreciation(amount=amount, created_at=created_at, sender=BOB)


class TestMerge:

    def test_adds_new_entries(self):
        doc = merge_social(empty_document(), "abc", comments=[comment("c1")], donations=[Donation("d1", BOB)])
        social = article_social(doc, "abc")
        assert [c.id for c in social.comments] == ["c1"]
        assert [d.id for d in social.donations] == ["d1"]

    def test_never_removes(self):
        doc = merge_social(empty_document(), "abc", comments=[comment("c1"), comment("c2")])
        doc = merge_social(doc, "abc", comments=[])
        assert [c.id for c in article_social(doc, "abc").comments] == ["c1", "c2"]

    def test_updates_in_place_and_appends(self):
        doc = merge_social(empty_document(), "abc", comments=[comment("c1"), comment("c2")])
        doc = merge_social(doc, "abc", comments=[comment("c3"), comment("c1", content="edited", upvotes=5)])
        comments = article_social(doc, "abc").comments
        assert [c.id for c in comments] == ["c1", "c2", "c3"]
        assert comments[0].content == "edited"
        assert comments[0].upvotes == 5

    def test_appreciations_keyed_by_sender_and_time(self):
        doc = merge_social(empty_document(), "abc", appreciations=[appreciation("t1"), appreciation("t2")])
        doc = merge_social(doc, "abc", appreciations=[appreciation("t1", amount=5)])
        appreciations = article_social(doc, "abc").appreciations
        assert len(appreciations) == 2
        assert appreciations[0].amount == 5

    def test_is_pure(self):
        original = merge_social(empty_document(), "abc", comments=[comment("c1")])
        merge_social(original, "abc", comments=[comment("c2")])
        merge_social(original, "xyz", comments=[comment("c3")])
        assert [c.id for c in original.articles["abc"].comments] == ["c1"]
        assert "xyz" not in original.articles

    def test_other_articles_untouched(self):
        doc = merge_social(empty_document(), "abc", comments=[comment("c1")])
        doc = merge_social(doc, "def", comments=[comment("c9")])
        assert [c.id for c in doc.articles["abc"].comments] == ["c1"]

    def test_counts(self):
        doc = merge_social(
            empty_document(), "abc",
            comments=[comment("c1")],
            appreciations=[appreciation("t1", 3), appreciation("t2", 4)],
        )
        assert social_counts(doc, "abc") == {"comments": 1, "donations": 0, "appreciations": 2, "total_claps": 7}
        assert social_counts(doc, "missing")["total_claps"] == 0


class TestSocialStore:
    """Tests for loading and saving the JSON file."""

    @pytest.fixture
    def files(self, tmp_path):
        return ProjectFiles(tmp_path)

    def test_missing_file_gives_empty(self, files):
        doc = SocialStore(files).load()
        assert doc.schema_version == SCHEMA_VERSION
        assert doc.articles == {}

    @pytest.mark.parametrize("content", [
        "not json",
        "[]",
        '{"articles": {}}',
        '{"schemaVersion": "1.0.0"}',
        '{"schemaVersion": "1.0.0", "articles": {"abc": {"comments": [{"content": "no id"}]}}}',
    ])
    def test_invalid_file_gives_empty(self, files, content):
        files.write_file(".moss/social/matters.json", content)
        assert SocialStore(files).load().articles == {}

    def test_save_and_load(self, files):
        store = SocialStore(files)
        doc = merge_social(store.load(), "abc", comments=[comment("c1")])
        store.save(doc)

        data = json.loads(files.read_file(".moss/social/matters.json"))
        assert data["schemaVersion"] == "1.0.0"
        assert data["updatedAt"]
        assert data["articles"]["abc"]["comments"][0]["author"]["userName"] == "bob"

        loaded = store.load()
        assert [c.id for c in loaded.articles["abc"].comments] == ["c1"]
        assert loaded.articles["abc"].comments[0].author == BOB

    def test_save_stamps_updated_at(self, files):
        doc = empty_document()
        doc.updated_at = "old"
        SocialStore(files).save(doc)
        assert json.loads(files.read_file(".moss/social/matters.json"))["updatedAt"] != "old"

    def test_custom_path(self, files):
        SocialStore(files, "data/social.json").save(empty_document())
        assert files.file_exists("data/social.json")
