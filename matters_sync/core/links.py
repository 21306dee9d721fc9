"""Rewrite links to the user's own platform articles into local relative links."""

import logging
import re
from typing import Dict, Tuple

from matters_sync.core.config import Domain
from matters_sync.core.discovery import extract_short_hash
from matters_sync.core.models import LinkResult, ProjectAccessError
from matters_sync.core.storage import ProjectFiles
from matters_sync.transforms.frontmatter import FrontmatterError, parse_document, render_document
from matters_sync.transforms.paths import relative_path

logger = logging.getLogger(__name__)


class LinkRewriter:
    """Points internal platform links at the synced local files.

    Must run after the media pass: both passes rewrite document bodies and
    files are never written concurrently.
    """

    # [text](target "optional title"), but not image embeds ![alt](src)
    MARKDOWN_LINK_PATTERN = re.compile(r'(?<!!)\[([^\]]*)\]\(([^)\s]+)([^)]*)\)')

    def __init__(self, files: ProjectFiles, domain: Domain, user_name: str):
        self.files = files
        self.domain = domain
        self.user_name = user_name

    def resolve(self, url: str, path_map: Dict[str, str]) -> str:
        """Local path for an internal URL: exact match first, then shortHash."""
        local = path_map.get(url)
        if local:
            return local
        short_hash = extract_short_hash(url)
        return path_map.get(short_hash, "") if short_hash else ""

    def rewrite_links_in_content(
        self,
        content: str,
        path_map: Dict[str, str],
        current_path: str,
    ) -> Tuple[str, int]:
        """Rewrite internal links in one document body.

        Args:
            content: Markdown body
            path_map: ArticlePathMap from the sync pass
            current_path: Project-relative path of the document being rewritten

        Returns:
            Tuple of (new content, number of links rewritten)
        """
        rewritten = 0

        def replace(match: re.Match) -> str:
            nonlocal rewritten
            text, url, title = match.group(1), match.group(2), match.group(3)
            if not self.domain.is_internal_link(url, self.user_name):
                return match.group(0)
            local = self.resolve(url, path_map)
            if not local:
                logger.debug("Unresolved internal link in %s: %s", current_path, url)
                return match.group(0)
            rewritten += 1
            return f"[{text}]({relative_path(current_path, local)}{title})"

        new_content = self.MARKDOWN_LINK_PATTERN.sub(replace, content)
        return new_content, rewritten

    def rewrite_all(self, path_map: Dict[str, str]) -> LinkResult:
        """Rewrite internal links in every markdown file of the project."""
        result = LinkResult()

        if not path_map:
            logger.info("No articles to rewrite links for")
            return result

        logger.info("Rewriting internal links...")

        try:
            markdown_files = [f for f in self.files.list_files() if f.endswith('.md')]
        except ProjectAccessError as e:
            logger.error("Failed to list project files: %s", e)
            result.errors.append(f"Failed to list files: {e}")
            return result

        logger.debug("Scanning %d markdown files for internal links", len(markdown_files))

        for path in markdown_files:
            try:
                doc = parse_document(self.files.read_file(path))
                body, count = self.rewrite_links_in_content(doc.body, path_map, path)
                if count == 0:
                    continue
                doc.body = body
                self.files.write_file(path, render_document(doc))
            except (OSError, UnicodeDecodeError, FrontmatterError) as e:
                logger.warning("Failed to process %s: %s", path, e)
                result.errors.append(f"Failed to process {path}: {e}")
                continue

            result.files_processed += 1
            result.links_rewritten += count

        logger.info("Rewrote %d links in %d files", result.links_rewritten, result.files_processed)
        return result
