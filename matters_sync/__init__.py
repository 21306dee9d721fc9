"""
Matters Sync - Mirror Matters content into a local markdown project

Incrementally pulls articles, drafts and collections from the Matters
platform into markdown files with YAML frontmatter, with support for:
- Folder and file collection layouts
- Bounded, retrying media downloads with local reference rewriting
- Internal link rewriting to relative paths
- Upsert-only storage of comments, donations and appreciations
"""

from matters_sync.core.config import Domain, SyncConfig, load_config
from matters_sync.core.models import (
    ConfigError,
    DownloadError,
    MattersSyncError,
    ProjectAccessError,
    RemoteSnapshot,
    SnapshotError,
    SyncResult,
)
from matters_sync.core.pipeline import PipelineResult, SyncPipeline
from matters_sync.core.storage import ProjectFiles
from matters_sync.core.sync import SyncOrchestrator

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Domain",
    "DownloadError",
    "MattersSyncError",
    "PipelineResult",
    "ProjectAccessError",
    "ProjectFiles",
    "RemoteSnapshot",
    "SnapshotError",
    "SyncConfig",
    "SyncOrchestrator",
    "SyncPipeline",
    "SyncResult",
    "load_config",
]
