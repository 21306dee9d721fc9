"""Local discovery: find synced content already present in the project."""

import logging
from typing import List, Optional
from urllib.parse import urlparse

from matters_sync.core.config import DEFAULT_CONTENT_FOLDER, Domain, SyncConfig
from matters_sync.core.models import DocumentError, LocalArticle, LocalDocument
from matters_sync.core.storage import ProjectFiles
from matters_sync.transforms.frontmatter import FrontmatterError, parse_document, string_list

logger = logging.getLogger(__name__)

SKIPPED_ROOT_FILES = {"index.md", "README.md"}


def extract_short_hash(url: str) -> Optional[str]:
    """Extract the article shortHash from a platform URL.

    URL format: https://matters.town/@userName/slug-shortHash; the shortHash
    is whatever follows the final hyphen of the last path segment.

    Args:
        url: Article URL

    Returns:
        shortHash, or None if the URL has no hyphenated last segment
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return None

    last_segment = path.rstrip('/').split('/')[-1] if path else ''
    if '-' not in last_segment:
        return None
    short_hash = last_segment.rsplit('-', 1)[1]
    return short_hash or None


class LocalDiscovery:
    """Scans the project for documents that carry platform syndication URLs."""

    def __init__(self, files: ProjectFiles, domain: Domain, drafts_folder: str = "_drafts"):
        """Initialize LocalDiscovery.

        Args:
            files: Project file access
            domain: Platform domain used to recognize syndicated URLs
            drafts_folder: Folder excluded from the local article scan
        """
        self.files = files
        self.domain = domain
        self.drafts_folder = drafts_folder.rstrip('/')
        self.errors: List[DocumentError] = []

    def read_document(self, path: str) -> Optional[LocalDocument]:
        """Read and parse a document, recording failures instead of raising."""
        try:
            return parse_document(self.files.read_file(path))
        except (OSError, UnicodeDecodeError, FrontmatterError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            self.errors.append(DocumentError(path=path, error=str(e)))
            return None

    def platform_url(self, doc: LocalDocument) -> Optional[str]:
        """First syndicated URL that points at the platform, if any."""
        for url in string_list(doc.frontmatter.get('syndicated')):
            if self.domain.is_platform_url(url):
                return url
        return None

    def detect_content_folder(self) -> Optional[str]:
        """Find the top-level folder that already holds synced articles.

        Hidden and underscore folders are ignored, as are root-level files.

        Returns:
            Folder name, or None when the project has no synced content yet
        """
        for path in self.files.list_files():
            if not path.endswith('.md'):
                continue
            segments = path.split('/')
            if len(segments) < 2:
                continue

            top = segments[0]
            if top.startswith('.') or top.startswith('_'):
                continue

            doc = self.read_document(path)
            if doc is not None and self.platform_url(doc):
                return top

        return None

    def content_folder(self, config: SyncConfig) -> str:
        """Content folder for this pass.

        Priority: explicit config, then auto-detection, then the default.
        """
        if config.content_folder:
            return config.content_folder.strip('/')

        detected = self.detect_content_folder()
        if detected:
            logger.debug("Detected content folder: %s", detected)
            return detected

        return DEFAULT_CONTENT_FOLDER

    def scan_local_articles(self) -> List[LocalArticle]:
        """Find every local article synced from the platform.

        Skips the homepage, README, the drafts folder and hidden folders.
        """
        articles = []
        for path in self.files.list_files():
            if not path.endswith('.md'):
                continue
            if path in SKIPPED_ROOT_FILES or path.startswith('.'):
                continue
            if path.startswith(f"{self.drafts_folder}/"):
                continue

            doc = self.read_document(path)
            if doc is None:
                continue

            url = self.platform_url(doc)
            if not url:
                continue

            short_hash = extract_short_hash(url)
            if short_hash:
                title = doc.frontmatter.get('title') or path
                articles.append(LocalArticle(short_hash=short_hash, path=path, title=str(title)))

        return articles
