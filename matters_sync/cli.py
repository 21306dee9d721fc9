"""Command line entry point: ``matters-sync {sync,media,hugo}``."""

import argparse
import asyncio
import logging
from typing import List, Optional

from matters_sync.core.config import load_config
from matters_sync.core.media import MediaLocalizer
from matters_sync.core.models import ConfigError, ProjectAccessError, SnapshotError
from matters_sync.core.pipeline import SyncPipeline
from matters_sync.core.snapshot import load_snapshot
from matters_sync.core.storage import ProjectFiles
from matters_sync.translate.hugo import export_hugo_site

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog="matters-sync", description="Sync Matters content into a markdown project")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Full pass: content, media, internal links, social data")
    sync.add_argument("--project", required=True, help="Project directory")
    sync.add_argument("--snapshot", required=True, help="Remote snapshot JSON file")
    sync.add_argument("--config", default=None, help="Path to config YAML file")

    media = sub.add_parser("media", help="Download missing media and repair references")
    media.add_argument("--project", required=True, help="Project directory")
    media.add_argument("--config", default=None, help="Path to config YAML file")

    hugo = sub.add_parser("hugo", help="Translate the project into a Hugo site tree")
    hugo.add_argument("--project", required=True, help="Project directory")
    hugo.add_argument("--out", required=True, help="Output directory")
    hugo.add_argument("--config", default=None, help="Path to config YAML file")

    return parser.parse_args(argv)


async def run_sync(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    snapshot = load_snapshot(args.snapshot)
    pipeline = SyncPipeline(ProjectFiles(args.project), config)
    result = await pipeline.run(snapshot)
    print(f"Synced from Matters: {result.summary()}")
    return 0 if result.success else 1


async def run_media(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    result = await MediaLocalizer(ProjectFiles(args.project), config).run()
    print(f"Media: {result.downloaded} downloaded, {result.skipped} skipped, "
          f"{len(result.errors)} failed, {result.files_processed} files updated")
    return 0


def run_hugo(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    written = export_hugo_site(ProjectFiles(args.project), args.out, config)
    print(f"Hugo: {written} content files written to {args.out}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        if args.command == "sync":
            return asyncio.run(run_sync(args))
        if args.command == "media":
            return asyncio.run(run_media(args))
        return run_hugo(args)
    except (ConfigError, SnapshotError, ProjectAccessError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
