"""Media reference scanning, dedup index and reference rewriting.

The media pass is self-correcting: references are rewritten whenever the
dedup index knows a local copy of the asset, whether it was fetched in this
run or left behind by an interrupted one.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

import aiohttp

from matters_sync.core.config import SyncConfig
from matters_sync.core.downloader import AiohttpAssetFetcher, AssetFetcher, DownloadEngine, Sleeper
from matters_sync.core.models import (
    DownloadOutcome,
    LocalDocument,
    MediaReference,
    MediaResult,
    ProjectAccessError,
)
from matters_sync.core.progress import ProgressCallback, log_progress
from matters_sync.core.storage import ProjectFiles
from matters_sync.transforms.frontmatter import FrontmatterError, parse_document, render_document
from matters_sync.transforms.paths import relative_path

logger = logging.getLogger(__name__)

CONTENT_ID_PATTERN = re.compile(
    r'[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}',
    re.IGNORECASE,
)

# Characters that end a URL inside markdown or JSON
URL_DELIMITERS = r'\s"\'()<>'


def extract_content_id(text: str) -> Optional[str]:
    """Extract the asset UUID from a URL or path, lowercased."""
    match = CONTENT_ID_PATTERN.search(text)
    return match.group(0).lower() if match else None


def media_url_pattern(hosts: Iterable[str]) -> re.Pattern:
    """Pattern matching full URLs on any of the given media hosts."""
    alternatives = '|'.join(re.escape(h) for h in hosts)
    return re.compile(rf'https?://(?:{alternatives})(?:[/?#][^{URL_DELIMITERS}]*)?', re.IGNORECASE)


def asset_url_pattern(content_id: str) -> re.Pattern:
    """Pattern matching any URL that contains the given content id."""
    return re.compile(
        rf'https?://[^{URL_DELIMITERS}]*{re.escape(content_id)}[^{URL_DELIMITERS}]*',
        re.IGNORECASE,
    )


def scan_references(doc: LocalDocument, hosts: Iterable[str]) -> List[MediaReference]:
    """Find remote media in a document's body and cover field.

    References sharing a content id (or URL, when there is no id) collapse
    into one, with the body/cover flags merged.
    """
    found: Dict[str, MediaReference] = {}

    def add(url: str, in_body: bool, in_cover: bool) -> None:
        ref = MediaReference(url=url, content_id=extract_content_id(url), in_body=in_body, in_cover=in_cover)
        existing = found.get(ref.key)
        if existing:
            existing.in_body = existing.in_body or in_body
            existing.in_cover = existing.in_cover or in_cover
        else:
            found[ref.key] = ref

    for match in media_url_pattern(hosts).finditer(doc.body):
        add(match.group(0), in_body=True, in_cover=False)

    cover = doc.frontmatter.get('cover')
    if isinstance(cover, str) and cover.startswith(('http://', 'https://')):
        add(cover, in_body=False, in_cover=True)

    return list(found.values())


def build_dedup_index(paths: Iterable[str], assets_folder: str = "assets") -> Dict[str, str]:
    """Map content ids to existing local asset paths.

    The first path wins when two files carry the same id.
    """
    index: Dict[str, str] = {}
    prefix = f"{assets_folder.rstrip('/')}/"
    for path in paths:
        if not path.startswith(prefix):
            continue
        content_id = extract_content_id(path)
        if not content_id:
            continue
        if content_id in index:
            logger.debug("Duplicate asset for %s: keeping %s, ignoring %s", content_id, index[content_id], path)
            continue
        index[content_id] = path
    return index


def replace_asset_urls(content: str, content_id: str, local_path: str) -> Tuple[str, bool]:
    """Replace every URL containing ``content_id`` with ``local_path``."""
    new_content, count = asset_url_pattern(content_id).subn(lambda _: local_path, content)
    return new_content, count > 0


def rewrite_document(
    path: str,
    doc: LocalDocument,
    dedup_index: Dict[str, str],
    url_paths: Optional[Dict[str, str]] = None,
    references: Optional[Iterable[MediaReference]] = None,
) -> Tuple[LocalDocument, bool]:
    """Point a document's media references at local copies.

    Args:
        path: Project-relative path of the document
        doc: Parsed document
        dedup_index: Content id to local asset path
        url_paths: Exact URL to local path, for references without a content id
        references: Media references already found in the document; scanned
            against the default media hosts when omitted

    Returns:
        Tuple of (document, whether anything changed)
    """
    if references is None:
        references = scan_references(doc, SyncConfig().all_media_hosts())
    url_paths = url_paths or {}
    body = doc.body
    cover = doc.frontmatter.get('cover')
    modified = False

    for ref in references:
        if ref.content_id:
            local = dedup_index.get(ref.content_id)
            if not local:
                continue
            rel = relative_path(path, local)
            if ref.in_body:
                body, replaced = replace_asset_urls(body, ref.content_id, rel)
                modified = modified or replaced
            if ref.in_cover and isinstance(cover, str) and ref.content_id in cover.lower():
                cover = rel
                modified = True
        else:
            local = url_paths.get(ref.url)
            if not local:
                continue
            rel = relative_path(path, local)
            if ref.in_body and ref.url in body:
                body = body.replace(ref.url, rel)
                modified = True
            if ref.in_cover and cover == ref.url:
                cover = rel
                modified = True

    if not modified:
        return doc, False

    frontmatter = dict(doc.frontmatter)
    if 'cover' in frontmatter:
        frontmatter['cover'] = cover
    return replace(doc, frontmatter=frontmatter, body=body), True


def select_downloads(
    references: Iterable[MediaReference],
    dedup_index: Dict[str, str],
) -> Tuple[List[MediaReference], int]:
    """Pick the references that still need fetching.

    Returns:
        Tuple of (unique references to download, number of unique ids
        already present locally)
    """
    pending: Dict[str, MediaReference] = {}
    skipped = set()
    for ref in references:
        if ref.content_id and ref.content_id in dedup_index:
            skipped.add(ref.content_id)
            continue
        pending.setdefault(ref.key, ref)
    return list(pending.values()), len(skipped)


@dataclass
class _FileState:
    path: str
    doc: LocalDocument
    references: List[MediaReference] = field(default_factory=list)


class MediaLocalizer:
    """Downloads remote media for every markdown file and rewrites references.

    Flow:
    1. Seed the dedup index from files already in the assets folder
    2. Scan every markdown file for remote media
    3. Download what the index does not know, through the bounded engine
    4. Rewrite references in each file and write only the files that changed
    """

    def __init__(
        self,
        files: ProjectFiles,
        config: SyncConfig,
        fetcher: Optional[AssetFetcher] = None,
        progress: Optional[ProgressCallback] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.files = files
        self.config = config
        self.fetcher = fetcher
        self.progress = progress or log_progress
        self.sleep = sleep

    async def run(self) -> MediaResult:
        result = MediaResult()
        logger.info("Downloading media assets and updating references...")

        try:
            all_files = self.files.list_files()
        except ProjectAccessError as e:
            logger.error("Failed to list project files: %s", e)
            result.errors.append(f"Failed to list files: {e}")
            return result

        dedup_index = build_dedup_index(all_files, self.config.assets_folder)
        logger.info("Found %d existing assets", len(dedup_index))

        states = self._scan([f for f in all_files if f.endswith('.md')])
        logger.info("Found %d files with remote media", len(states))
        if not states:
            return result

        all_refs = [ref for state in states for ref in state.references]
        pending, result.skipped = select_downloads(all_refs, dedup_index)
        logger.info("Downloading %d media files (%d skipped)...", len(pending), result.skipped)

        outcomes: Dict[str, DownloadOutcome] = {}
        if pending:
            outcomes = await self._download(pending, dedup_index)

        url_paths: Dict[str, str] = {}
        for outcome in outcomes.values():
            if outcome.ok:
                result.downloaded += 1
                if not outcome.content_id and outcome.local_path:
                    url_paths[outcome.url] = outcome.local_path
            else:
                result.errors.append(f"{outcome.url}: {outcome.error}")

        for state in states:
            doc, modified = rewrite_document(
                state.path, state.doc, dedup_index, url_paths, references=state.references,
            )
            if not modified:
                continue
            try:
                self.files.write_file(state.path, render_document(doc))
            except OSError as e:
                logger.error("Failed to write %s: %s", state.path, e)
                result.errors.append(f"Failed to write {state.path}: {e}")
                continue
            result.files_processed += 1
            logger.debug("Wrote: %s", state.path)

        total = len(pending) + result.skipped
        self.progress(
            "downloading_media", total, total,
            f"Downloaded {result.downloaded} media, updated {result.files_processed} files",
        )
        logger.info(
            "Downloaded %d, skipped %d, updated %d files",
            result.downloaded, result.skipped, result.files_processed,
        )
        return result

    def _scan(self, markdown_files: List[str]) -> List[_FileState]:
        hosts = self.config.all_media_hosts()
        states = []
        for path in markdown_files:
            try:
                doc = parse_document(self.files.read_file(path))
            except (OSError, UnicodeDecodeError, FrontmatterError) as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue
            references = scan_references(doc, hosts)
            if references:
                states.append(_FileState(path=path, doc=doc, references=references))
        return states

    async def _download(self, pending: List[MediaReference], dedup_index: Dict[str, str]) -> Dict[str, DownloadOutcome]:
        if self.fetcher is not None:
            return await self._engine(self.fetcher, dedup_index).download_all(pending)

        connector = aiohttp.TCPConnector(limit=max(8, self.config.download_concurrency * 2))
        async with aiohttp.ClientSession(connector=connector) as session:
            fetcher = AiohttpAssetFetcher(self.files, session, request_timeout=self.config.download_timeout)
            return await self._engine(fetcher, dedup_index).download_all(pending)

    def _engine(self, fetcher: AssetFetcher, dedup_index: Dict[str, str]) -> DownloadEngine:
        return DownloadEngine(
            fetcher,
            dedup_index,
            dest_dir=self.config.assets_folder,
            concurrency=self.config.download_concurrency,
            max_retries=self.config.max_retries,
            timeout=self.config.download_timeout,
            progress=self.progress,
            sleep=self.sleep,
        )
