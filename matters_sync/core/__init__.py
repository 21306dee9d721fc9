"""Core components for Matters Sync."""

from matters_sync.core.config import Domain, SyncConfig, config_from_dict, load_config
from matters_sync.core.discovery import LocalDiscovery
from matters_sync.core.downloader import DownloadEngine
from matters_sync.core.links import LinkRewriter
from matters_sync.core.media import MediaLocalizer
from matters_sync.core.pipeline import PipelineResult, SyncPipeline
from matters_sync.core.social import SocialStore
from matters_sync.core.storage import ProjectFiles
from matters_sync.core.sync import SyncOrchestrator

__all__ = [
    "Domain",
    "SyncConfig",
    "config_from_dict",
    "load_config",
    "LocalDiscovery",
    "DownloadEngine",
    "LinkRewriter",
    "MediaLocalizer",
    "PipelineResult",
    "SyncPipeline",
    "SocialStore",
    "ProjectFiles",
    "SyncOrchestrator",
]
