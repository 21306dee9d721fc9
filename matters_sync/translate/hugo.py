"""Translate a synced project into a Hugo content tree.

| Project                    | Hugo                              |
|----------------------------|-----------------------------------|
| ``index.md`` (homepage)    | ``content/_index.md``             |
| ``posts/`` (folder)        | ``content/posts/_index.md``       |
| ``posts/article.md``       | ``content/posts/article.md``      |
| ``assets/*``               | ``static/assets/*``               |

Hugo expects section indexes to be named ``_index.md``; every other page is
copied unchanged. Drafts (the drafts folder, or ``draft: true`` in a page's
frontmatter) are left out.
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from titlecase import titlecase

from matters_sync.core.config import SyncConfig
from matters_sync.core.models import LocalDocument
from matters_sync.core.storage import ProjectFiles
from matters_sync.transforms.frontmatter import FrontmatterError, parse_document, render_document

logger = logging.getLogger(__name__)

INDEX_FILE = "index.md"
HUGO_INDEX_FILE = "_index.md"


@dataclass(frozen=True)
class LeafNode:
    """A single page."""
    source_path: str
    title: str
    draft: bool = False


@dataclass(frozen=True)
class FolderNode:
    """A folder; its ``index.md`` (if any) supplies title, weight and body."""
    source_path: str
    title: str
    body: str = ""
    weight: Optional[int] = None
    draft: bool = False
    children: Tuple["PageNode", ...] = field(default_factory=tuple)


PageNode = Union[FolderNode, LeafNode]


def folder_title(name: str) -> str:
    """Derive a display title from a folder name.

    >>> folder_title("travel-notes")
    'Travel Notes'
    """
    return titlecase(name.replace("-", " ").replace("_", " "))


def _read(files: ProjectFiles, path: str) -> LocalDocument:
    try:
        return parse_document(files.read_file(path))
    except (OSError, UnicodeDecodeError, FrontmatterError) as e:
        logger.warning("Could not parse %s: %s", path, e)
        return LocalDocument()


def _weight(doc: LocalDocument) -> Optional[int]:
    value = doc.frontmatter.get("weight")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def build_page_tree(files: ProjectFiles, drafts_folder: str = "_drafts") -> FolderNode:
    """Build the page tree of a project from its markdown files.

    Hidden folders are ignored. The root ``index.md`` becomes the homepage.
    """
    markdown = [
        path for path in files.list_files()
        if path.endswith(".md") and not any(part.startswith(".") for part in path.split("/"))
    ]

    # Directory -> (subdirectories, pages), in listing order
    subdirs: Dict[str, List[str]] = {"": []}
    pages: Dict[str, List[str]] = {"": []}
    for path in markdown:
        parts = path.split("/")
        for depth in range(1, len(parts)):
            parent = "/".join(parts[:depth - 1])
            current = "/".join(parts[:depth])
            if current not in subdirs:
                subdirs[current] = []
                pages[current] = []
                subdirs[parent].append(current)
        pages["/".join(parts[:-1])].append(path)

    def build(folder: str, inherited_draft: bool) -> FolderNode:
        name = folder.rsplit("/", 1)[-1]
        draft = inherited_draft or folder == drafts_folder
        index_path = f"{folder}/{INDEX_FILE}" if folder else INDEX_FILE

        title = folder_title(name) if folder else "Home"
        body = ""
        weight = None
        if index_path in pages[folder]:
            doc = _read(files, index_path)
            title = str(doc.frontmatter.get("title") or title)
            body = doc.body
            weight = _weight(doc)
            draft = draft or doc.frontmatter.get("draft") is True

        children: List[PageNode] = []
        for path in pages[folder]:
            if path == index_path:
                continue
            doc = _read(files, path)
            stem = path.rsplit("/", 1)[-1][:-len(".md")]
            children.append(LeafNode(
                source_path=path,
                title=str(doc.frontmatter.get("title") or stem),
                draft=draft or doc.frontmatter.get("draft") is True,
            ))
        for sub in subdirs[folder]:
            children.append(build(sub, draft))

        return FolderNode(
            source_path=folder,
            title=title,
            body=body,
            weight=weight,
            draft=draft,
            children=tuple(children),
        )

    return build("", False)


def translate_page_tree(node: PageNode, files: ProjectFiles, content_dir: Path) -> int:
    """Write a page tree into a Hugo content directory.

    Folders get an ``_index.md`` with title and optional weight, then their
    children are translated. Leaves are copied. Draft nodes are skipped
    together with everything below them.

    Returns:
        Number of files written
    """
    if node.draft:
        return 0

    if isinstance(node, LeafNode):
        target = content_dir / node.source_path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(files.resolve(node.source_path), target)
        return 1

    frontmatter: Dict = {"title": node.title}
    if node.weight is not None:
        frontmatter["weight"] = node.weight
    folder = content_dir / node.source_path if node.source_path else content_dir
    folder.mkdir(parents=True, exist_ok=True)
    (folder / HUGO_INDEX_FILE).write_text(
        render_document(LocalDocument(frontmatter=frontmatter, body=node.body)),
        encoding="utf-8",
    )

    written = 1
    for child in node.children:
        written += translate_page_tree(child, files, content_dir)
    return written


def export_hugo_site(files: ProjectFiles, out_dir: Union[str, Path], config: Optional[SyncConfig] = None) -> int:
    """Translate the project into ``{out_dir}/content`` and copy assets to ``{out_dir}/static``.

    Returns:
        Number of content files written
    """
    config = config or SyncConfig()
    out = Path(out_dir)
    tree = build_page_tree(files, config.drafts_folder)
    written = translate_page_tree(tree, files, out / "content")

    prefix = f"{config.assets_folder}/"
    copied = 0
    for path in files.list_files():
        if not path.startswith(prefix):
            continue
        target = out / "static" / path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(files.resolve(path), target)
        copied += 1

    logger.info("Hugo export: %d content files, %d assets -> %s", written, copied, out)
    return written
