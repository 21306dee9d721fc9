"""Upsert-only store for social interactions, keyed by article shortHash.

Data lives in one JSON file per platform (``.moss/social/matters.json`` by
default)::

    {
      "schemaVersion": "1.0.0",
      "updatedAt": "2024-01-01T00:00:00+00:00",
      "articles": {
        "<shortHash>": {"comments": [], "donations": [], "appreciations": []}
      }
    }

Merges add new entries and update existing ones in place. Nothing is ever
removed, so data gathered by earlier runs survives later partial fetches.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, TypeVar

from matters_sync.core.models import (
    Appreciation,
    ArticleSocial,
    Comment,
    Donation,
    SocialDocument,
)
from matters_sync.core.storage import ProjectFiles

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
DEFAULT_SOCIAL_PATH = ".moss/social/matters.json"

T = TypeVar("T")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def empty_document() -> SocialDocument:
    return SocialDocument(schema_version=SCHEMA_VERSION, updated_at=_now(), articles={})


def _upsert(existing: List[T], incoming: List[T], key: Callable[[T], str]) -> List[T]:
    """Existing entries keep their position; new keys are appended in order."""
    merged: Dict[str, T] = {key(item): item for item in existing}
    for item in incoming:
        merged[key(item)] = item
    return list(merged.values())


def merge_social(
    document: SocialDocument,
    key: str,
    comments: Optional[List[Comment]] = None,
    donations: Optional[List[Donation]] = None,
    appreciations: Optional[List[Appreciation]] = None,
) -> SocialDocument:
    """Merge fetched interactions for one article into a copy of ``document``.

    Args:
        document: Current social data; not modified
        key: Article shortHash
        comments: Fetched comments, upserted by id
        donations: Fetched donations, upserted by id
        appreciations: Fetched appreciations, upserted by sender id and time

    Returns:
        New document with the article's entries merged
    """
    existing = document.articles.get(key) or ArticleSocial()
    merged = ArticleSocial(
        comments=_upsert(existing.comments, comments or [], lambda c: c.id),
        donations=_upsert(existing.donations, donations or [], lambda d: d.id),
        appreciations=_upsert(existing.appreciations, appreciations or [], lambda a: a.key),
    )

    articles = dict(document.articles)
    articles[key] = merged
    return SocialDocument(
        schema_version=document.schema_version,
        updated_at=document.updated_at,
        articles=articles,
    )


def article_social(document: SocialDocument, key: str) -> Optional[ArticleSocial]:
    return document.articles.get(key)


def social_counts(document: SocialDocument, key: str) -> Dict[str, int]:
    """Counts for one article; ``total_claps`` sums appreciation amounts."""
    social = document.articles.get(key)
    if social is None:
        return {"comments": 0, "donations": 0, "appreciations": 0, "total_claps": 0}
    return {
        "comments": len(social.comments),
        "donations": len(social.donations),
        "appreciations": len(social.appreciations),
        "total_claps": sum(a.amount for a in social.appreciations),
    }


def document_from_dict(data: Dict) -> SocialDocument:
    """Build a SocialDocument from its JSON form.

    Raises:
        ValueError: If ``schemaVersion`` or ``articles`` is missing
    """
    if not isinstance(data, dict) or not data.get("schemaVersion") or not isinstance(data.get("articles"), dict):
        raise ValueError("missing schemaVersion or articles")
    return SocialDocument(
        schema_version=data["schemaVersion"],
        updated_at=data.get("updatedAt", ""),
        articles={key: ArticleSocial.from_dict(value or {}) for key, value in data["articles"].items()},
    )


class SocialStore:
    """Loads and saves the social JSON file inside a project."""

    def __init__(self, files: ProjectFiles, path: str = DEFAULT_SOCIAL_PATH):
        self.files = files
        self.path = path

    def load(self) -> SocialDocument:
        """Load stored data; any missing or invalid file yields an empty document."""
        try:
            content = self.files.read_file(self.path)
        except (OSError, UnicodeDecodeError):
            return empty_document()

        try:
            return document_from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Invalid social data file %s, starting fresh: %s", self.path, e)
            return empty_document()

    def save(self, document: SocialDocument) -> SocialDocument:
        """Stamp ``updatedAt`` and write the document as indented JSON.

        Returns:
            The stamped document that was written
        """
        document.updated_at = _now()
        content = json.dumps(document.to_dict(), indent=2, ensure_ascii=False)
        self.files.write_file(self.path, content + "\n")
        logger.debug("Saved social data to %s", self.path)
        return document

    def merge(
        self,
        document: SocialDocument,
        key: str,
        comments: Optional[List[Comment]] = None,
        donations: Optional[List[Donation]] = None,
        appreciations: Optional[List[Appreciation]] = None,
    ) -> SocialDocument:
        return merge_social(document, key, comments, donations, appreciations)
