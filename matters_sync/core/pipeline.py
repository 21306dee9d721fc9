"""Full sync pass: content, media, internal links, then social data."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from matters_sync.core.config import SyncConfig
from matters_sync.core.discovery import LocalDiscovery
from matters_sync.core.downloader import AssetFetcher, Sleeper
from matters_sync.core.links import LinkRewriter
from matters_sync.core.media import MediaLocalizer
from matters_sync.core.models import (
    Comment,
    LinkResult,
    MediaResult,
    RemoteSnapshot,
    SyncResult,
)
from matters_sync.core.progress import ProgressCallback, log_progress
from matters_sync.core.social import SocialStore
from matters_sync.core.storage import ProjectFiles
from matters_sync.core.sync import Converter, SyncOrchestrator
from matters_sync.transforms.html import html_to_markdown

logger = logging.getLogger(__name__)

CommentFetcher = Callable[[str], Awaitable[List[Comment]]]


def snapshot_comment_fetcher(snapshot: RemoteSnapshot) -> CommentFetcher:
    """Serve comments from a snapshot instead of the network."""

    async def fetch(short_hash: str) -> List[Comment]:
        return list(snapshot.comments.get(short_hash, []))

    return fetch


@dataclass
class PipelineResult:
    """Outcome of every phase of one pass."""
    sync: SyncResult
    media: MediaResult = field(default_factory=MediaResult)
    links: LinkResult = field(default_factory=LinkResult)
    comments_fetched: int = 0
    social_errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Media, link and social failures do not fail the pass."""
        return not self.sync.errors

    def summary(self) -> str:
        parts = []
        if self.sync.created:
            parts.append(f"{self.sync.created} created")
        if self.sync.updated:
            parts.append(f"{self.sync.updated} updated")
        if self.sync.skipped:
            parts.append(f"{self.sync.skipped} unchanged")
        if self.sync.errors:
            parts.append(f"{len(self.sync.errors)} errors")
        text = ", ".join(parts) if parts else "no changes"

        media_parts = []
        if self.media.downloaded:
            media_parts.append(f"{self.media.downloaded} downloaded")
        if self.media.skipped:
            media_parts.append(f"{self.media.skipped} skipped")
        if self.media.errors:
            media_parts.append(f"{len(self.media.errors)} failed")
        if media_parts:
            text += f", images: {', '.join(media_parts)}"

        if self.links.links_rewritten:
            text += f", {self.links.links_rewritten} internal links rewritten"
        if self.comments_fetched:
            text += f", {self.comments_fetched} comments"
        return text


class SyncPipeline:
    """Runs the phases of a pass in order.

    Media and link rewriting both rewrite markdown files, so they run
    strictly one after the other.
    """

    def __init__(
        self,
        files: ProjectFiles,
        config: SyncConfig,
        fetcher: Optional[AssetFetcher] = None,
        comment_fetcher: Optional[CommentFetcher] = None,
        progress: Optional[ProgressCallback] = None,
        converter: Optional[Converter] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize SyncPipeline.

        Args:
            files: Project file access
            config: Sync configuration
            fetcher: Asset fetcher; an aiohttp session is opened when None
            comment_fetcher: Comment source; the snapshot's comments when None
            progress: Progress sink shared by every phase
            converter: HTML to Markdown conversion
            sleep: Retry backoff sleeper
        """
        self.files = files
        self.config = config
        self.fetcher = fetcher
        self.comment_fetcher = comment_fetcher
        self.progress = progress or log_progress
        self.converter = converter or html_to_markdown
        self.sleep = sleep

    async def run(self, snapshot: RemoteSnapshot) -> PipelineResult:
        """Run one full pass against a remote snapshot.

        Raises:
            ProjectAccessError: If the project cannot be listed at all
        """
        user_name = self.config.user_name or snapshot.profile.user_name

        orchestrator = SyncOrchestrator(self.files, self.config, converter=self.converter, progress=self.progress)
        sync_result, path_map = orchestrator.sync(
            snapshot.articles, snapshot.drafts, snapshot.collections, user_name, snapshot.profile,
        )
        result = PipelineResult(sync=sync_result)

        localizer = MediaLocalizer(
            self.files, self.config, fetcher=self.fetcher, progress=self.progress, sleep=self.sleep,
        )
        result.media = await localizer.run()

        rewriter = LinkRewriter(self.files, self.config.domain, user_name)
        result.links = rewriter.rewrite_all(path_map)

        fetch_comments = self.comment_fetcher or snapshot_comment_fetcher(snapshot)
        await self._sync_social(fetch_comments, result)

        logger.info("Sync complete: %s", result.summary())
        return result

    async def _sync_social(self, fetch_comments: CommentFetcher, result: PipelineResult) -> None:
        """Fetch comments for every local article, saving after each one."""
        discovery = LocalDiscovery(self.files, self.config.domain, self.config.drafts_folder)
        local_articles = discovery.scan_local_articles()
        if not local_articles:
            return

        logger.info("Fetching social data for %d local articles...", len(local_articles))
        store = SocialStore(self.files, self.config.social_path)
        document = store.load()
        total = len(local_articles)

        for i, article in enumerate(local_articles, 1):
            self.progress("fetching_social", i, total, f"Social data: {article.title}")
            try:
                comments = await fetch_comments(article.short_hash)
            except Exception as e:
                logger.warning("Failed to fetch social data for %s: %s", article.title, e)
                result.social_errors.append(f"{article.short_hash}: {e}")
                continue

            document = store.merge(document, article.short_hash, comments=comments)
            result.comments_fetched += len(comments)
            try:
                store.save(document)
            except OSError as e:
                logger.error("Failed to save social data: %s", e)
                result.social_errors.append(f"Failed to save social data: {e}")

        logger.info("Social data saved: %d comments", result.comments_fetched)
