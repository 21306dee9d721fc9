"""Tests for the sync orchestrator."""

import pytest

from matters_sync.core.config import Domain, SyncConfig
from matters_sync.core.models import (
    CollectionArticle,
    LayoutMode,
    OverwritePolicy,
    RemoteArticle,
    RemoteCollection,
    RemoteDraft,
    UserProfile,
)
from matters_sync.core.storage import ProjectFiles
from matters_sync.core.sync import SyncOrchestrator, collection_memberships, detect_layout_mode
from matters_sync.transforms.frontmatter import parse_document

PROFILE = UserProfile(user_name="alice", display_name="Alice", description="I write things.")


def article(short_hash, slug, title=None, content="<p>Hello</p>"):
    return RemoteArticle(
        id=short_hash, title=title or slug.title(), slug=slug, short_hash=short_hash,
        content=content, created_at="2024-01-01T00:00:00Z",
    )


def collection(cid, title, *articles):
    return RemoteCollection(
        id=cid, title=title,
        articles=[CollectionArticle(id=a.id, short_hash=a.short_hash) for a in articles],
    )


def converter(html):
    return html.replace("<p>", "").replace("</p>", "") + "\n"


class TestLayoutMode:

    def test_folder_when_memberships_disjoint(self):
        a, b = article("h1", "a"), article("h2", "b")
        assert detect_layout_mode([collection("c1", "One", a), collection("c2", "Two", b)]) is LayoutMode.FOLDER

    def test_file_when_shared(self):
        a = article("h1", "a")
        assert detect_layout_mode([collection("c1", "One", a), collection("c2", "Two", a)]) is LayoutMode.FILE

    def test_no_collections(self):
        assert detect_layout_mode([]) is LayoutMode.FOLDER

    def test_first_collection_is_earliest(self):
        a = article("h1", "a")
        memberships, first = collection_memberships([
            collection("c1", "Travel", article("h0", "z"), a),
            collection("c2", "Poems", a),
        ])
        assert first["h1"] == "travel"
        assert memberships["h1"] == {"travel": 1, "poems": 0}


class TestSyncOrchestrator:
    """Tests for SyncOrchestrator.sync."""

    @pytest.fixture
    def files(self, tmp_path):
        return ProjectFiles(tmp_path)

    def orchestrator(self, files, **config):
        return SyncOrchestrator(files, SyncConfig(**config), converter=converter)

    def test_folder_layout(self, files):
        a, b, c = article("h1", "a"), article("h2", "b"), article("h3", "c")
        collections = [collection("c1", "Travel", a, b)]

        result, path_map = self.orchestrator(files).sync([a, b, c], [], collections, "alice", PROFILE)

        assert result.created == 5
        assert files.file_exists("index.md")
        assert files.file_exists("posts/travel/index.md")
        assert files.file_exists("posts/travel/a.md")
        assert files.file_exists("posts/c.md")
        assert path_map["h1"] == "posts/travel/a.md"
        assert path_map["https://matters.town/@alice/a-h1"] == "posts/travel/a.md"

    def test_file_layout(self, files):
        a, b = article("h1", "a"), article("h2", "b")
        collections = [collection("c1", "Travel", a, b), collection("c2", "Best Of", b)]

        self.orchestrator(files).sync([a, b], [], collections, "alice", PROFILE)

        travel = parse_document(files.read_file("posts/travel.md"))
        assert travel.frontmatter["is_collection"] is True
        assert travel.frontmatter["order"] == ["posts/a.md", "posts/b.md"]
        b_doc = parse_document(files.read_file("posts/b.md"))
        assert b_doc.frontmatter["collections"] == {"travel": 1, "best-of": 0}

    def test_folder_layout_lists_only_additional_collections(self, files):
        a = article("h1", "a")
        self.orchestrator(files).sync([a], [], [collection("c1", "Travel", a)], "alice", PROFILE)
        doc = parse_document(files.read_file("posts/travel/a.md"))
        assert "collections" not in doc.frontmatter

    def test_article_document(self, files):
        a = RemoteArticle(
            id="1", title="Hello", slug="hello", short_hash="abc", content="<p>Body</p>",
            created_at="2024-01-01T00:00:00Z", tags=["life"],
            cover="https://assets.matters.news/cover.jpg",
        )
        self.orchestrator(files).sync([a], [], [], "alice", PROFILE)

        doc = parse_document(files.read_file("posts/hello.md"))
        assert doc.frontmatter["syndicated"] == ["https://matters.town/@alice/hello-abc"]
        assert doc.frontmatter["cover"] == "https://assets.matters.news/cover.jpg"
        assert doc.frontmatter["tags"] == ["life"]
        assert doc.body == "\nBody\n"

    def test_homepage(self, files):
        self.orchestrator(files).sync([], [], [], "alice", PROFILE)
        doc = parse_document(files.read_file("index.md"))
        assert doc.frontmatter == {"title": "Alice"}
        assert doc.body == "\nI write things."

    def test_second_run_changes_nothing(self, files):
        a, b = article("h1", "a"), article("h2", "b")
        collections = [collection("c1", "Travel", a)]
        self.orchestrator(files).sync([a, b], [], collections, "alice", PROFILE)
        snapshot = {p: files.read_file(p) for p in files.list_files()}

        result, _ = self.orchestrator(files).sync([a, b], [], collections, "alice", PROFILE)

        assert result.created == 0
        assert result.skipped == 4
        assert {p: files.read_file(p) for p in files.list_files()} == snapshot

    def test_local_edits_survive(self, files):
        a = article("h1", "a")
        self.orchestrator(files).sync([a], [], [], "alice", PROFILE)
        files.write_file("posts/a.md", "my own edits")

        result, path_map = self.orchestrator(files).sync([a], [], [], "alice", PROFILE)

        assert files.read_file("posts/a.md") == "my own edits"
        assert path_map["h1"] == "posts/a.md"

    def test_content_equal_policy_updates_changed_files(self, files):
        self.orchestrator(files).sync([], [], [], "alice", PROFILE)
        profile = UserProfile(user_name="alice", display_name="Alice B.")
        orchestrator = self.orchestrator(files, overwrite={"homepage": OverwritePolicy.SKIP_IF_CONTENT_EQUAL})

        result, _ = orchestrator.sync([], [], [], "alice", profile)
        assert result.updated == 1
        result, _ = orchestrator.sync([], [], [], "alice", profile)
        assert result.skipped == 1
        assert parse_document(files.read_file("index.md")).frontmatter["title"] == "Alice B."

    def test_explicit_content_folder(self, files):
        a = article("h1", "a")
        _, path_map = self.orchestrator(files, content_folder="article").sync([a], [], [], "alice", PROFILE)
        assert path_map["h1"] == "article/a.md"

    def test_detects_existing_content_folder(self, files):
        files.write_file("writing/old.md", "---\nsyndicated:\n  - https://matters.town/@alice/old-h9\n---\n")
        _, path_map = self.orchestrator(files).sync([article("h1", "a")], [], [], "alice", PROFILE)
        assert path_map["h1"] == "writing/a.md"

    def test_slug_falls_back_to_title(self, files):
        a = RemoteArticle(id="1", title="Hello World", slug="", short_hash="h1", content="", created_at="d")
        _, path_map = self.orchestrator(files).sync([a], [], [], "alice", PROFILE)
        assert path_map["h1"] == "posts/hello-world.md"

    def test_custom_domain_in_urls(self, files):
        _, path_map = self.orchestrator(files, domain=Domain("matters.icu")).sync(
            [article("h1", "a")], [], [], "alice", PROFILE,
        )
        assert "https://matters.icu/@alice/a-h1" in path_map

    def test_entity_failure_does_not_stop_pass(self, files):
        def flaky(html):
            if "bad" in html:
                raise ValueError("cannot convert")
            return html

        orchestrator = SyncOrchestrator(files, SyncConfig(), converter=flaky)
        result, path_map = orchestrator.sync(
            [article("h1", "a", content="bad"), article("h2", "b", content="good")], [], [], "alice", PROFILE,
        )

        assert len(result.errors) == 1
        assert "cannot convert" in result.errors[0]
        assert files.file_exists("posts/b.md")
        assert "h1" in path_map

    def test_progress_phases(self, files):
        calls = []
        orchestrator = SyncOrchestrator(
            files, SyncConfig(sync_drafts=True), converter=converter,
            progress=lambda phase, current, total, message: calls.append((phase, current, total)),
        )
        a = article("h1", "a")
        draft = RemoteDraft(id="d1", title="WIP", content="", created_at="d")
        orchestrator.sync([a], [draft], [collection("c1", "Travel", a)], "alice", PROFILE)

        assert calls == [
            ("syncing_homepage", 1, 4),
            ("syncing_collections", 2, 4),
            ("syncing_articles", 3, 4),
            ("syncing_drafts", 4, 4),
        ]


class TestDraftSync:
    """Tests for draft handling."""

    @pytest.fixture
    def files(self, tmp_path):
        return ProjectFiles(tmp_path)

    def test_drafts_disabled_by_default(self, files):
        draft = RemoteDraft(id="d1", title="WIP", content="<p>x</p>", created_at="d")
        SyncOrchestrator(files, SyncConfig(), converter=converter).sync([], [draft], [], "alice", PROFILE)
        assert not files.file_exists("_drafts/wip.md")

    def test_draft_written_and_recognized(self, files):
        orchestrator = SyncOrchestrator(files, SyncConfig(sync_drafts=True), converter=converter)
        draft = RemoteDraft(id="d1", title="WIP", content="<p>x</p>", created_at="d")

        result, _ = orchestrator.sync([], [draft], [], "alice", PROFILE)
        assert result.created == 2
        assert parse_document(files.read_file("_drafts/wip.md")).frontmatter["draft_id"] == "d1"

        result, _ = orchestrator.sync([], [draft], [], "alice", PROFILE)
        assert result.created == 0
        assert not files.file_exists("_drafts/wip-2.md")

    def test_name_collision_gets_suffix(self, files):
        files.write_file("_drafts/wip.md", "someone else's notes")
        orchestrator = SyncOrchestrator(files, SyncConfig(sync_drafts=True), converter=converter)
        drafts = [
            RemoteDraft(id="d1", title="WIP", content="", created_at="d"),
            RemoteDraft(id="d2", title="WIP", content="", created_at="d"),
        ]

        orchestrator.sync([], drafts, [], "alice", PROFILE)

        assert files.read_file("_drafts/wip.md") == "someone else's notes"
        assert parse_document(files.read_file("_drafts/wip-2.md")).frontmatter["draft_id"] == "d1"
        assert parse_document(files.read_file("_drafts/wip-3.md")).frontmatter["draft_id"] == "d2"

    def test_untitled_draft(self, files):
        orchestrator = SyncOrchestrator(files, SyncConfig(sync_drafts=True), converter=converter)
        orchestrator.sync([], [RemoteDraft(id="d1", title="", content="", created_at="d")], [], "alice", PROFILE)
        doc = parse_document(files.read_file("_drafts/untitled.md"))
        assert doc.frontmatter["title"] == "Untitled Draft"
