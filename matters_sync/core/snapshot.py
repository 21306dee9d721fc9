"""Load a remote snapshot: everything one sync pass needs from the platform.

A snapshot is a JSON file with camelCase keys, as produced by any API
client::

    {
      "profile": {"userName": "alice", "displayName": "Alice"},
      "articles": [{"id": "1", "title": "...", "slug": "...", "shortHash": "...",
                    "content": "<p>...</p>", "createdAt": "...",
                    "tags": [{"content": "poetry"}]}],
      "drafts": [],
      "collections": [{"id": "c1", "title": "...", "articles": [{"id": "1", "shortHash": "..."}]}],
      "comments": {"<shortHash>": [{"id": "...", "content": "...", "author": {...}}]}
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from matters_sync.core.models import (
    CollectionArticle,
    Comment,
    RemoteArticle,
    RemoteCollection,
    RemoteDraft,
    RemoteSnapshot,
    SnapshotError,
    UserProfile,
)


def _tags(value: Any) -> List[str]:
    """Tags arrive either as plain strings or as ``{"content": ...}`` objects."""
    tags = []
    for tag in value or []:
        if isinstance(tag, dict):
            if tag.get("content"):
                tags.append(str(tag["content"]))
        elif tag:
            tags.append(str(tag))
    return tags


def _article(data: Dict[str, Any]) -> RemoteArticle:
    return RemoteArticle(
        id=str(data["id"]),
        title=data.get("title", ""),
        slug=data.get("slug", ""),
        short_hash=data["shortHash"],
        content=data.get("content", ""),
        created_at=data.get("createdAt", ""),
        summary=data.get("summary") or "",
        revised_at=data.get("revisedAt"),
        tags=_tags(data.get("tags")),
        cover=data.get("cover"),
    )


def _draft(data: Dict[str, Any]) -> RemoteDraft:
    return RemoteDraft(
        id=str(data["id"]),
        title=data.get("title") or "",
        content=data.get("content", ""),
        created_at=data.get("createdAt", ""),
        updated_at=data.get("updatedAt"),
        tags=_tags(data.get("tags")),
        cover=data.get("cover"),
    )


def _collection(data: Dict[str, Any]) -> RemoteCollection:
    return RemoteCollection(
        id=str(data["id"]),
        title=data.get("title", ""),
        description=data.get("description"),
        cover=data.get("cover"),
        articles=[
            CollectionArticle(
                id=str(a.get("id", "")),
                short_hash=a["shortHash"],
                title=a.get("title", ""),
                slug=a.get("slug", ""),
            )
            for a in data.get("articles") or []
        ],
    )


def _profile(data: Dict[str, Any]) -> UserProfile:
    return UserProfile(
        user_name=data["userName"],
        display_name=data.get("displayName") or data["userName"],
        description=data.get("description"),
        avatar=data.get("avatar"),
        language=data.get("language"),
    )


def snapshot_from_dict(data: Dict[str, Any]) -> RemoteSnapshot:
    """Build a RemoteSnapshot from parsed JSON.

    Raises:
        SnapshotError: If a required field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    try:
        return RemoteSnapshot(
            profile=_profile(data["profile"]),
            articles=[_article(a) for a in data.get("articles") or []],
            drafts=[_draft(d) for d in data.get("drafts") or []],
            collections=[_collection(c) for c in data.get("collections") or []],
            comments={
                key: [Comment.from_dict(c) for c in comments or []]
                for key, comments in (data.get("comments") or {}).items()
            },
        )
    except KeyError as e:
        raise SnapshotError(f"Snapshot is missing required field {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise SnapshotError(f"Malformed snapshot: {e}") from e


def load_snapshot(path: Union[str, Path]) -> RemoteSnapshot:
    """Read a snapshot JSON file.

    Raises:
        SnapshotError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except ValueError as e:
        raise SnapshotError(f"Invalid JSON in {path.name}: {e}") from e
    return snapshot_from_dict(data)
