"""Data models for Matters Sync."""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

FrontmatterScalar = Union[str, int, float, bool, None]
# Lists and mappings nest the same kinds
FrontmatterValue = Union[FrontmatterScalar, List["FrontmatterValue"], Dict[str, "FrontmatterValue"]]


class MattersSyncError(Exception):
    """Base class for errors raised by Matters Sync."""


class ConfigError(MattersSyncError):
    """Configuration file is missing, malformed, or holds invalid values."""


class ProjectAccessError(MattersSyncError):
    """The project tree cannot be listed at all; the pass must abort."""


class SnapshotError(MattersSyncError):
    """A remote snapshot file cannot be read or has the wrong shape."""


class DownloadError(MattersSyncError):
    """A single download attempt failed.

    Carries the HTTP status when the server answered, so the retry loop can
    tell transient failures from terminal ones.
    """

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status

    def is_retryable(self) -> bool:
        # No status means the request never completed (network, timeout)
        if self.http_status is None:
            return True
        return is_retryable_status(self.http_status)


def is_retryable_status(status: int) -> bool:
    """408, 429 and 5xx are transient; every other 4xx is terminal."""
    return status in (408, 429) or 500 <= status < 600


class LayoutMode(enum.Enum):
    """Project-wide collection layout chosen once per sync pass."""
    FOLDER = "folder"
    FILE = "file"


class OverwritePolicy(enum.Enum):
    """How an existing local file is treated when its entity is synced again."""
    SKIP_IF_EXISTS = "skip_if_exists"
    SKIP_IF_CONTENT_EQUAL = "skip_if_content_equal"


# ---------------------------------------------------------------------------
# Remote entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RemoteArticle:
    """A published article as fetched for one sync pass."""
    id: str
    title: str
    slug: str
    short_hash: str
    content: str
    created_at: str
    summary: str = ""
    revised_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    cover: Optional[str] = None


@dataclass(frozen=True)
class RemoteDraft:
    """An unpublished draft."""
    id: str
    title: str
    content: str
    created_at: str
    updated_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    cover: Optional[str] = None


@dataclass(frozen=True)
class CollectionArticle:
    """Reference to an article from inside a collection."""
    id: str
    short_hash: str
    title: str = ""
    slug: str = ""


@dataclass(frozen=True)
class RemoteCollection:
    """A collection; the position in ``articles`` is the order index."""
    id: str
    title: str
    description: Optional[str] = None
    cover: Optional[str] = None
    articles: List[CollectionArticle] = field(default_factory=list)


@dataclass(frozen=True)
class UserProfile:
    """Profile of the syncing user, used for the homepage."""
    user_name: str
    display_name: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    language: Optional[str] = None


@dataclass
class RemoteSnapshot:
    """Everything one pass needs from the platform."""
    profile: UserProfile
    articles: List[RemoteArticle] = field(default_factory=list)
    drafts: List[RemoteDraft] = field(default_factory=list)
    collections: List[RemoteCollection] = field(default_factory=list)
    comments: Dict[str, List["Comment"]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Local documents
# ---------------------------------------------------------------------------

@dataclass
class LocalDocument:
    """On-disk markdown document: structured header plus body.

    ``frontmatter`` keeps insertion order, which is the order fields are
    written back out. ``has_header`` records that the file had ``---``
    fences, even empty ones.
    """
    frontmatter: Dict[str, FrontmatterValue] = field(default_factory=dict)
    body: str = ""
    has_header: bool = False

    def with_frontmatter(self, **updates: FrontmatterValue) -> "LocalDocument":
        frontmatter = dict(self.frontmatter)
        frontmatter.update(updates)
        return LocalDocument(frontmatter=frontmatter, body=self.body, has_header=True)


@dataclass(frozen=True)
class LocalArticle:
    """A local file that was synced from the platform."""
    short_hash: str
    path: str
    title: str


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SyncResult:
    """Counts accumulated across every entity kind in one pass."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class MediaReference:
    """A remote media URL found in a document."""
    url: str
    content_id: Optional[str]
    in_body: bool = False
    in_cover: bool = False

    @property
    def key(self) -> str:
        """Dedup key: the content id, or the URL when no id can be extracted."""
        return self.content_id or self.url


@dataclass
class DownloadOutcome:
    """Final state of one unique download."""
    url: str
    content_id: Optional[str]
    ok: bool
    local_path: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass
class MediaResult:
    """Result of the media localization pass."""
    files_processed: int = 0
    downloaded: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class LinkResult:
    """Result of the internal link rewriting pass."""
    files_processed: int = 0
    links_rewritten: int = 0
    errors: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Social data
# ---------------------------------------------------------------------------

@dataclass
class SocialUser:
    id: str
    user_name: str = ""
    display_name: str = ""
    avatar: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SocialUser":
        return cls(
            id=str(data.get("id", "")),
            user_name=data.get("userName", ""),
            display_name=data.get("displayName", ""),
            avatar=data.get("avatar"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "userName": self.user_name,
            "displayName": self.display_name,
        }
        if self.avatar is not None:
            data["avatar"] = self.avatar
        return data


@dataclass
class Comment:
    id: str
    content: str
    created_at: str
    author: SocialUser
    state: str = "active"
    upvotes: int = 0
    reply_to_id: Optional[str] = None
    reply_to_author: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=str(data["id"]),
            content=data.get("content", ""),
            created_at=data.get("createdAt", ""),
            author=SocialUser.from_dict(data.get("author") or {}),
            state=data.get("state", "active"),
            upvotes=int(data.get("upvotes", 0)),
            reply_to_id=data.get("replyToId"),
            reply_to_author=data.get("replyToAuthor"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "createdAt": self.created_at,
            "state": self.state,
            "upvotes": self.upvotes,
            "author": self.author.to_dict(),
        }
        if self.reply_to_id is not None:
            data["replyToId"] = self.reply_to_id
        if self.reply_to_author is not None:
            data["replyToAuthor"] = self.reply_to_author
        return data


@dataclass
class Donation:
    id: str
    sender: SocialUser

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Donation":
        return cls(id=str(data["id"]), sender=SocialUser.from_dict(data.get("sender") or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "sender": self.sender.to_dict()}


@dataclass
class Appreciation:
    """An appreciation has no id of its own; see ``key``."""
    amount: int
    created_at: str
    sender: SocialUser

    @property
    def key(self) -> str:
        return f"{self.sender.id}_{self.created_at}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Appreciation":
        return cls(
            amount=int(data.get("amount", 0)),
            created_at=data.get("createdAt", ""),
            sender=SocialUser.from_dict(data.get("sender") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "createdAt": self.created_at,
            "sender": self.sender.to_dict(),
        }


@dataclass
class ArticleSocial:
    comments: List[Comment] = field(default_factory=list)
    donations: List[Donation] = field(default_factory=list)
    appreciations: List[Appreciation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleSocial":
        return cls(
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            donations=[Donation.from_dict(d) for d in data.get("donations") or []],
            appreciations=[Appreciation.from_dict(a) for a in data.get("appreciations") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comments": [c.to_dict() for c in self.comments],
            "donations": [d.to_dict() for d in self.donations],
            "appreciations": [a.to_dict() for a in self.appreciations],
        }


@dataclass
class SocialDocument:
    """Persisted social interactions keyed by article shortHash."""
    schema_version: str
    updated_at: str
    articles: Dict[str, ArticleSocial] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "updatedAt": self.updated_at,
            "articles": {key: social.to_dict() for key, social in self.articles.items()},
        }


@dataclass
class DocumentError:
    """A local document that could not be read or parsed."""
    path: str
    error: str
