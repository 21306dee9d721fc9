"""Incremental sync of remote content into the local markdown tree.

Two layouts are supported, chosen once per pass:

FOLDER mode (no article belongs to more than one collection):
    {root}/{collection}/index.md       collection page
    {root}/{collection}/{article}.md   article, in its first collection
    {root}/{article}.md                article outside any collection

FILE mode (some article belongs to two or more collections):
    {root}/{collection}.md             collection page with an ``order`` list
    {root}/{article}.md                every article, memberships in frontmatter

Existing files are never overwritten unless the entity kind is configured
with ``skip_if_content_equal``.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Set, Tuple

from matters_sync.core.config import SyncConfig
from matters_sync.core.discovery import LocalDiscovery
from matters_sync.core.models import (
    LayoutMode,
    LocalDocument,
    OverwritePolicy,
    RemoteArticle,
    RemoteCollection,
    RemoteDraft,
    SyncResult,
    UserProfile,
)
from matters_sync.core.progress import ProgressCallback, log_progress
from matters_sync.core.storage import ProjectFiles
from matters_sync.transforms.frontmatter import (
    article_frontmatter,
    collection_frontmatter,
    draft_frontmatter,
    homepage_frontmatter,
    render_document,
)
from matters_sync.transforms.html import html_to_markdown
from matters_sync.transforms.paths import slugify

logger = logging.getLogger(__name__)

HOMEPAGE_PATH = "index.md"

Converter = Callable[[str], str]


def detect_layout_mode(collections: List[RemoteCollection]) -> LayoutMode:
    """FILE layout iff any article is a member of two or more collections."""
    membership: Dict[str, Set[str]] = defaultdict(set)
    for collection in collections:
        for article in collection.articles:
            membership[article.short_hash].add(collection.id)
            if len(membership[article.short_hash]) > 1:
                return LayoutMode.FILE
    return LayoutMode.FOLDER


def collection_memberships(
    collections: List[RemoteCollection],
) -> Tuple[Dict[str, Dict[str, int]], Dict[str, str]]:
    """Index collection membership by article shortHash.

    Returns:
        Tuple of (shortHash -> {collection slug: order index},
        shortHash -> slug of the earliest collection holding the article)
    """
    memberships: Dict[str, Dict[str, int]] = {}
    first: Dict[str, str] = {}
    for collection in collections:
        collection_slug = slugify(collection.title)
        for index, article in enumerate(collection.articles):
            memberships.setdefault(article.short_hash, {})[collection_slug] = index
            first.setdefault(article.short_hash, collection_slug)
    return memberships, first


def _with_body(frontmatter, text: Optional[str]) -> str:
    return render_document(LocalDocument(frontmatter=frontmatter, body="\n" + (text or "")))


class SyncOrchestrator:
    """Writes remote entities into the project without clobbering local edits."""

    def __init__(
        self,
        files: ProjectFiles,
        config: SyncConfig,
        converter: Converter = html_to_markdown,
        progress: Optional[ProgressCallback] = None,
    ):
        """Initialize SyncOrchestrator.

        Args:
            files: Project file access
            config: Sync configuration (domain, folders, overwrite policies)
            converter: HTML to Markdown conversion for article and draft bodies
            progress: Progress sink, called once per entity
        """
        self.files = files
        self.config = config
        self.converter = converter
        self.progress = progress or log_progress
        self.discovery = LocalDiscovery(files, config.domain, config.drafts_folder)

    def sync(
        self,
        articles: List[RemoteArticle],
        drafts: List[RemoteDraft],
        collections: List[RemoteCollection],
        user_name: str,
        profile: UserProfile,
    ) -> Tuple[SyncResult, Dict[str, str]]:
        """Run one sync pass.

        Args:
            articles: Published articles
            drafts: Drafts; ignored unless ``sync_drafts`` is enabled
            collections: Collections in remote order
            user_name: Platform user name used in canonical URLs
            profile: Profile rendered into the homepage

        Returns:
            Tuple of (counts and errors, ArticlePathMap)

        Raises:
            ProjectAccessError: If the project cannot be listed at all
        """
        result = SyncResult()
        path_map: Dict[str, str] = {}

        mode = detect_layout_mode(collections)
        root = self.discovery.content_folder(self.config)
        logger.info("Syncing into %s/ (%s mode)", root, mode.value)

        memberships, first_collection = collection_memberships(collections)
        article_slugs = {a.short_hash: a.slug or slugify(a.title) for a in articles}

        drafts = drafts if self.config.sync_drafts else []
        total = len(articles) + len(drafts) + len(collections) + 1
        processed = 0

        processed += 1
        self.progress("syncing_homepage", processed, total, "Creating homepage...")
        self._guard(result, "Failed to create homepage", self._sync_homepage, profile, result)

        for collection in collections:
            processed += 1
            self.progress("syncing_collections", processed, total, f"Syncing collection: {collection.title}")
            self._guard(
                result, f'Failed to sync collection "{collection.title}"',
                self._sync_collection, collection, root, mode, article_slugs, result,
            )

        for article in articles:
            processed += 1
            self.progress("syncing_articles", processed, total, f"Syncing article: {article.title}")
            self._guard(
                result, f'Failed to sync article "{article.title}"',
                self._sync_article, article, root, mode, user_name,
                memberships.get(article.short_hash, {}), first_collection.get(article.short_hash),
                path_map, result,
            )

        if drafts:
            existing_drafts = self._existing_drafts()
            for draft in drafts:
                processed += 1
                title = draft.title or "Untitled"
                self.progress("syncing_drafts", processed, total, f"Syncing draft: {title}")
                self._guard(
                    result, f'Failed to sync draft "{title}"',
                    self._sync_draft, draft, existing_drafts, result,
                )

        logger.info(
            "Sync complete: %d created, %d updated, %d skipped, %d errors",
            result.created, result.updated, result.skipped, len(result.errors),
        )
        return result, path_map

    def _guard(self, result: SyncResult, message: str, func, *args) -> None:
        try:
            func(*args)
        except Exception as e:
            error = f"{message}: {e}"
            logger.error(error)
            result.errors.append(error)

    def _write(self, path: str, kind: str, render: Callable[[], str], result: SyncResult) -> None:
        """Write a document according to the overwrite policy for its kind.

        ``render`` is only called when the content is actually needed.
        """
        if self.files.file_exists(path):
            if self.config.policy_for(kind) is OverwritePolicy.SKIP_IF_EXISTS:
                logger.info("Skipping (file exists): %s", path)
                result.skipped += 1
                return

            content = render()
            if self.files.read_file(path) == content:
                logger.debug("Unchanged: %s", path)
                result.skipped += 1
                return

            self.files.write_file(path, content)
            logger.info("Updated: %s", path)
            result.updated += 1
            return

        self.files.write_file(path, render())
        logger.info("Created: %s", path)
        result.created += 1

    def _sync_homepage(self, profile: UserProfile, result: SyncResult) -> None:
        self._write(
            HOMEPAGE_PATH, "homepage",
            lambda: _with_body(homepage_frontmatter(profile), profile.description),
            result,
        )

    def _sync_collection(
        self,
        collection: RemoteCollection,
        root: str,
        mode: LayoutMode,
        article_slugs: Dict[str, str],
        result: SyncResult,
    ) -> None:
        collection_slug = slugify(collection.title)

        if mode is LayoutMode.FILE:
            path = f"{root}/{collection_slug}.md"
            order = [
                f"{root}/{article_slugs[a.short_hash]}.md"
                for a in collection.articles
                if a.short_hash in article_slugs
            ]
        else:
            path = f"{root}/{collection_slug}/index.md"
            order = None

        self._write(
            path, "collection",
            lambda: _with_body(collection_frontmatter(collection, order), collection.description),
            result,
        )

    def _sync_article(
        self,
        article: RemoteArticle,
        root: str,
        mode: LayoutMode,
        user_name: str,
        memberships: Dict[str, int],
        first_collection: Optional[str],
        path_map: Dict[str, str],
        result: SyncResult,
    ) -> None:
        slug = article.slug or slugify(article.title)
        canonical_url = self.config.domain.article_url(user_name, slug, article.short_hash)

        if mode is LayoutMode.FOLDER and first_collection:
            path = f"{root}/{first_collection}/{slug}.md"
            collections = {k: v for k, v in memberships.items() if k != first_collection}
        else:
            path = f"{root}/{slug}.md"
            collections = dict(memberships)

        # Mapped before the existence check so skipped articles stay linkable
        path_map[canonical_url] = path
        path_map[article.short_hash] = path

        self._write(
            path, "article",
            lambda: _with_body(
                article_frontmatter(article, canonical_url, collections),
                self.converter(article.content),
            ),
            result,
        )

    def _existing_drafts(self) -> Dict[str, str]:
        """Map ``draft_id`` to path for drafts already in the drafts folder."""
        prefix = f"{self.discovery.drafts_folder}/"
        existing = {}
        for path in self.files.list_files():
            if not path.startswith(prefix) or not path.endswith('.md'):
                continue
            doc = self.discovery.read_document(path)
            if doc is None:
                continue
            draft_id = doc.frontmatter.get('draft_id')
            if draft_id:
                existing.setdefault(str(draft_id), path)
        return existing

    def _sync_draft(self, draft: RemoteDraft, existing: Dict[str, str], result: SyncResult) -> None:
        path = existing.get(draft.id)
        if path is None:
            path = self._available_draft_path(slugify(draft.title or "untitled") or "untitled")
            existing[draft.id] = path

        self._write(
            path, "draft",
            lambda: _with_body(draft_frontmatter(draft), self.converter(draft.content)),
            result,
        )

    def _available_draft_path(self, slug: str) -> str:
        folder = self.discovery.drafts_folder
        candidate = f"{folder}/{slug}.md"
        counter = 2
        while self.files.file_exists(candidate):
            candidate = f"{folder}/{slug}-{counter}.md"
            counter += 1
        return candidate
