"""Configuration for a sync pass.

The platform domain lives on the config object and is handed to every
component, so two configs for different domains never interfere.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from matters_sync.core.models import ConfigError, OverwritePolicy

DEFAULT_DOMAIN = "matters.town"
DEFAULT_CONTENT_FOLDER = "posts"
DEFAULT_MEDIA_HOSTS = ["assets.matters.news", "imagedelivery.net"]
ENTITY_KINDS = ("homepage", "collection", "article", "draft")


@dataclass(frozen=True)
class Domain:
    """URL builders and matchers for one platform domain."""
    name: str = DEFAULT_DOMAIN

    def login_url(self) -> str:
        return f"https://{self.name}/login"

    def draft_url(self, draft_id: str) -> str:
        return f"https://{self.name}/me/drafts/{draft_id}"

    def article_url(self, user_name: str, slug: str, short_hash: str) -> str:
        return f"https://{self.name}/@{user_name}/{slug}-{short_hash}"

    def is_platform_url(self, url: str) -> bool:
        return self.name in url

    def is_internal_link(self, url: str, user_name: str) -> bool:
        """Check if a URL points to the given user's content on this domain."""
        pattern = rf"^https?://{re.escape(self.name)}/@{re.escape(user_name)}/"
        return re.match(pattern, url) is not None


@dataclass
class SyncConfig:
    """Runtime configuration, usually loaded from a YAML file."""
    domain: Domain = field(default_factory=Domain)
    user_name: Optional[str] = None
    content_folder: Optional[str] = None
    drafts_folder: str = "_drafts"
    assets_folder: str = "assets"
    sync_drafts: bool = False
    media_hosts: List[str] = field(default_factory=lambda: list(DEFAULT_MEDIA_HOSTS))
    download_concurrency: int = 5
    max_retries: int = 3
    download_timeout: float = 30.0
    social_path: str = ".moss/social/matters.json"
    overwrite: Dict[str, OverwritePolicy] = field(default_factory=dict)

    def policy_for(self, kind: str) -> OverwritePolicy:
        """Overwrite policy for an entity kind; skip-if-exists unless configured."""
        return self.overwrite.get(kind, OverwritePolicy.SKIP_IF_EXISTS)

    def all_media_hosts(self) -> List[str]:
        """Configured media hosts plus the platform's own asset host."""
        hosts = list(self.media_hosts)
        own = f"assets.{self.domain.name}"
        if own not in hosts:
            hosts.append(own)
        return hosts


def config_from_dict(data: Dict[str, Any]) -> SyncConfig:
    """Build a SyncConfig from a parsed mapping, applying defaults.

    Raises:
        ConfigError: If a value has the wrong type or an unknown policy
    """
    try:
        overwrite = {}
        for kind, value in (data.get("overwrite") or {}).items():
            if kind not in ENTITY_KINDS:
                raise ConfigError(f"Unknown entity kind in overwrite: {kind}")
            overwrite[kind] = OverwritePolicy(value)

        media_hosts = data.get("media_hosts", DEFAULT_MEDIA_HOSTS)
        if not isinstance(media_hosts, list):
            raise ConfigError("media_hosts must be a list")

        return SyncConfig(
            domain=Domain(str(data.get("domain") or DEFAULT_DOMAIN)),
            user_name=data.get("user_name"),
            content_folder=data.get("content_folder"),
            drafts_folder=str(data.get("drafts_folder", "_drafts")),
            assets_folder=str(data.get("assets_folder", "assets")).rstrip("/"),
            sync_drafts=bool(data.get("sync_drafts", False)),
            media_hosts=[str(h) for h in media_hosts],
            download_concurrency=max(1, int(data.get("download_concurrency", 5))),
            max_retries=max(0, int(data.get("max_retries", 3))),
            download_timeout=float(data.get("download_timeout", 30)),
            social_path=str(data.get("social_path", ".moss/social/matters.json")),
            overwrite=overwrite,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e


def load_config(config_path: Union[str, Path, None]) -> SyncConfig:
    """Load a YAML config file; a missing path yields the defaults.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    if config_path is None:
        return SyncConfig()

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must be a mapping")

    return config_from_dict(data)
