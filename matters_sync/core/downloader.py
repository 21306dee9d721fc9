"""Bounded, retrying media downloads.

Every fetch goes through a fixed-size semaphore; a failed item never cancels
its siblings. Transient failures (network errors, HTTP 408/429/5xx) are
retried with Fibonacci backoff, terminal ones (other 4xx) fail immediately.
"""

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import aiohttp

from matters_sync.core.models import DownloadError, DownloadOutcome, MediaReference
from matters_sync.core.progress import ProgressCallback, log_progress
from matters_sync.core.storage import ProjectFiles

logger = logging.getLogger(__name__)

UUID_SEGMENT = re.compile(r'^[a-f0-9-]{36}$', re.IGNORECASE)
UUID_ANYWHERE = re.compile(r'[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}', re.IGNORECASE)
EXTENSION = re.compile(r'\.(\w+)$')

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


@dataclass
class FetchResult:
    """Outcome of a single download-to-disk call."""
    local_path: str
    status: int
    ok: bool


AssetFetcher = Callable[[str, str], Awaitable[FetchResult]]
Sleeper = Callable[[float], Awaitable[None]]


def fibonacci_delay(attempt: int) -> int:
    """Seconds to wait after failed attempt ``attempt``: 1, 1, 2, 3, 5, 8, ..."""
    if attempt <= 2:
        return 1
    a, b = 1, 1
    for _ in range(2, attempt):
        a, b = b, a + b
    return b


def extension_for_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    for mime, ext in CONTENT_TYPE_EXTENSIONS.items():
        if mime in content_type:
            return ext
    return None


def local_filename(url: str, content_type: Optional[str] = None) -> str:
    """Derive an asset filename from its URL.

    Prefers ``{uuid}.{ext}`` when the URL carries an asset UUID, so that the
    dedup index can recognize the file on later runs. Named files without a
    UUID get a short URL hash suffix.
    """
    path = re.sub(r'/public$', '', urlparse(url).path)
    segments = [s for s in path.split('/') if s]
    content_ext = extension_for_content_type(content_type)
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()

    for i in range(len(segments) - 1, -1, -1):
        match = EXTENSION.search(segments[i])
        if match:
            ext = match.group(1).lower()
            if i > 0 and UUID_SEGMENT.match(segments[i - 1]):
                return f"{segments[i - 1]}.{ext}"
            if UUID_ANYWHERE.search(segments[i]):
                return segments[i]
            stem = segments[i][:match.start()]
            return f"{stem}-{digest[:8]}.{ext}"

    for segment in segments:
        if UUID_SEGMENT.match(segment):
            return f"{segment}.{content_ext}" if content_ext else segment

    return f"{digest[:16]}.{content_ext}" if content_ext else digest[:16]


class AiohttpAssetFetcher:
    """Downloads one URL into the project's assets folder."""

    def __init__(self, files: ProjectFiles, session: aiohttp.ClientSession, request_timeout: float = 30.0):
        self.files = files
        self.session = session
        self.request_timeout = request_timeout

    async def __call__(self, url: str, dest_dir: str) -> FetchResult:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with self.session.get(url, timeout=timeout) as resp:
            if not 200 <= resp.status < 300:
                return FetchResult(local_path="", status=resp.status, ok=False)
            body = await resp.read()
            content_type = resp.headers.get("Content-Type")

        rel_path = f"{dest_dir.rstrip('/')}/{local_filename(url, content_type)}"
        target = self.files.resolve(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(body)
        return FetchResult(local_path=rel_path, status=resp.status, ok=True)


class DownloadEngine:
    """Fetches unique media references with a concurrency cap and retries."""

    def __init__(
        self,
        fetcher: AssetFetcher,
        dedup_index: Dict[str, str],
        dest_dir: str = "assets",
        concurrency: int = 5,
        max_retries: int = 3,
        timeout: float = 30.0,
        progress: Optional[ProgressCallback] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize DownloadEngine.

        Args:
            fetcher: Download-to-disk collaborator
            dedup_index: Content id to local asset path; grown in place
            dest_dir: Project-relative folder assets are written to
            concurrency: Maximum simultaneous fetches
            max_retries: Additional attempts after the first for transient errors
            timeout: Cumulative seconds allowed per item, retries included
            progress: Called once per completed item
            sleep: Backoff sleeper, replaceable in tests
        """
        self.fetcher = fetcher
        self.dedup_index = dedup_index
        self.dest_dir = dest_dir
        self.concurrency = max(1, concurrency)
        self.max_retries = max_retries
        self.timeout = timeout
        self.progress = progress or log_progress
        self.sleep = sleep

    async def download_all(self, refs: Iterable[MediaReference]) -> Dict[str, DownloadOutcome]:
        """Download every unique reference.

        References are deduplicated by content id (or URL when there is no
        id) before anything is dispatched.

        Returns:
            Outcome per dedup key
        """
        unique: Dict[str, MediaReference] = {}
        for ref in refs:
            unique.setdefault(ref.key, ref)

        pending: List[MediaReference] = list(unique.values())
        total = len(pending)
        completed = 0
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(ref: MediaReference) -> DownloadOutcome:
            nonlocal completed
            async with semaphore:
                outcome = await self.download_one(ref)
            # Single event loop thread: no lock needed around the index
            if outcome.ok and ref.content_id and outcome.local_path:
                self.dedup_index.setdefault(ref.content_id, outcome.local_path)
            completed += 1
            status = "downloaded" if outcome.ok else "failed"
            self.progress("downloading_media", completed, total, f"{status}: {ref.url}")
            return outcome

        settled = await asyncio.gather(*(worker(ref) for ref in pending), return_exceptions=True)

        outcomes: Dict[str, DownloadOutcome] = {}
        for ref, result in zip(pending, settled):
            if isinstance(result, BaseException):
                outcomes[ref.key] = DownloadOutcome(
                    url=ref.url, content_id=ref.content_id, ok=False, error=f"Download failed: {result}",
                )
            else:
                outcomes[ref.key] = result
        return outcomes

    async def download_one(self, ref: MediaReference) -> DownloadOutcome:
        """Download one reference, retrying within the per-item time budget."""
        outcome = DownloadOutcome(url=ref.url, content_id=ref.content_id, ok=False)
        try:
            await asyncio.wait_for(self._attempt(outcome), timeout=self.timeout)
        except asyncio.TimeoutError:
            outcome.ok = False
            outcome.error = f"TIMEOUT after {self.timeout:g}s ({outcome.attempts} attempts)"
            logger.error("[x] TIMEOUT: %s", ref.url)
        return outcome

    async def _attempt(self, outcome: DownloadOutcome) -> None:
        total_attempts = self.max_retries + 1
        url = outcome.url

        for attempt in range(1, total_attempts + 1):
            outcome.attempts = attempt
            logger.debug("[v] Attempt %d/%d: %s", attempt, total_attempts, url)
            try:
                result = await self.fetcher(url, self.dest_dir)
                if result.ok:
                    outcome.ok = True
                    outcome.local_path = result.local_path
                    outcome.error = None
                    logger.debug("[ok] Downloaded: %s", result.local_path)
                    return
                error = DownloadError(f"HTTP {result.status}", result.status)
                logger.warning("[!] HTTP %s for %s", result.status, url)
            except DownloadError as e:
                error = e
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                error = DownloadError(str(e) or type(e).__name__)
                logger.warning("[x] ERROR: %s - %s", url, error)
            except Exception as e:
                # Unclassified errors are terminal
                outcome.error = f"Download failed: {e}"
                logger.error("[x] FAILED: %s - %s", url, e)
                return

            outcome.error = str(error)
            if not error.is_retryable() or attempt == total_attempts:
                logger.error("[x] FAILED after %d attempts: %s - %s", attempt, url, error)
                return

            delay = fibonacci_delay(attempt)
            logger.info("[r] Retrying %s in %ss (attempt %d/%d)", url, delay, attempt + 1, total_attempts)
            await self.sleep(delay)
