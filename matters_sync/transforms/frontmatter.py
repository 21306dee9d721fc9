"""Frontmatter codec and frontmatter builders for synced documents.

Documents are stored as a YAML header fenced by ``---`` lines followed by a
markdown body. Parsed headers are normalized to a small closed set of value
kinds (see ``FrontmatterValue``) so that a parse/render round trip never
changes what a document means.
"""

import datetime
import re
from typing import Any, Dict, List, Optional

import yaml

from matters_sync.core.models import (
    FrontmatterValue,
    LocalDocument,
    MattersSyncError,
    RemoteArticle,
    RemoteCollection,
    RemoteDraft,
    UserProfile,
)

FRONTMATTER_PATTERN = re.compile(
    r'\A---[ \t]*\n(.*?)^---[ \t]*(?:\n|\Z)(.*)\Z',
    re.DOTALL | re.MULTILINE,
)


class FrontmatterError(MattersSyncError):
    """The header of a document is not a YAML mapping."""


def parse_document(content: str) -> LocalDocument:
    """Split file content into frontmatter and body.

    Content without a header parses to an empty frontmatter and the whole
    content as body.

    Args:
        content: Full file content

    Returns:
        LocalDocument with normalized frontmatter

    Raises:
        FrontmatterError: If the header is present but is not a YAML mapping
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return LocalDocument(frontmatter={}, body=content)

    header, body = match.group(1), match.group(2)
    try:
        data = yaml.safe_load(header) if header.strip() else {}
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid YAML frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError("Frontmatter is not a mapping")

    frontmatter = {str(k): normalize_value(v) for k, v in data.items()}
    return LocalDocument(frontmatter=frontmatter, body=body, has_header=True)


def render_document(doc: LocalDocument) -> str:
    """Build file content from a document.

    Keys are written in the document's own order. A document that neither
    has frontmatter nor was read with a header renders as its bare body.
    """
    if not doc.frontmatter:
        if doc.has_header:
            return f"---\n---\n{doc.body}"
        return doc.body

    header = yaml.dump(
        doc.frontmatter,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
    return f"---\n{header}---\n{doc.body}"


def normalize_value(value: Any) -> FrontmatterValue:
    """Coerce a YAML value into one of the supported frontmatter kinds.

    Lists and mappings are normalized recursively; only dates and values of
    other types become strings.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime.datetime, datetime.date)):
        return _date_string(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    if isinstance(value, dict):
        return {str(k): normalize_value(v) for k, v in value.items()}
    return str(value)


def _date_string(value) -> str:
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    return value.strftime('%Y-%m-%d')


def string_list(value: Optional[FrontmatterValue]) -> List[str]:
    """Read a frontmatter field that should hold a list of strings.

    Handles both list and single string formats.
    """
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str) and value:
        return [value]
    return []


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def homepage_frontmatter(profile: UserProfile) -> Dict[str, FrontmatterValue]:
    """Homepage header holds only the display name."""
    return {'title': profile.display_name}


def collection_frontmatter(
    collection: RemoteCollection,
    order: Optional[List[str]] = None,
) -> Dict[str, FrontmatterValue]:
    """Create the header for a collection document.

    Args:
        collection: Remote collection
        order: Article paths in collection order (file layout only)

    Returns:
        Frontmatter dict; empty optional fields are omitted
    """
    result: Dict[str, FrontmatterValue] = {
        'title': collection.title,
        'is_collection': True,
    }
    if collection.description:
        result['description'] = collection.description
    # Remote URL on purpose; the media pass localizes it
    if collection.cover:
        result['cover'] = collection.cover
    if order:
        result['order'] = list(order)
    return result


def article_frontmatter(
    article: RemoteArticle,
    canonical_url: str,
    collections: Optional[Dict[str, int]] = None,
) -> Dict[str, FrontmatterValue]:
    """Create the header for a published article.

    Args:
        article: Remote article
        canonical_url: The article's URL on the platform
        collections: Collection slug to order index; omitted when empty

    Returns:
        Frontmatter dict
    """
    result: Dict[str, FrontmatterValue] = {
        'title': article.title,
        'date': article.created_at,
    }
    if article.revised_at:
        result['updated'] = article.revised_at
    if article.tags:
        result['tags'] = list(article.tags)
    if article.cover:
        result['cover'] = article.cover
    result['syndicated'] = [canonical_url]
    if collections:
        result['collections'] = dict(collections)
    return result


def draft_frontmatter(draft: RemoteDraft) -> Dict[str, FrontmatterValue]:
    """Create the header for a draft; ``draft_id`` identifies it on later runs."""
    result: Dict[str, FrontmatterValue] = {
        'title': draft.title or 'Untitled Draft',
        'date': draft.created_at,
    }
    if draft.updated_at:
        result['updated'] = draft.updated_at
    if draft.tags:
        result['tags'] = list(draft.tags)
    if draft.cover:
        result['cover'] = draft.cover
    result['syndicated'] = []
    result['draft_id'] = draft.id
    return result
