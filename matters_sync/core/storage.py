"""Project file access.

All paths handed to and returned by ``ProjectFiles`` are project-relative
and use forward slashes, whatever the host platform.
"""

from pathlib import Path
from typing import List, Union

from matters_sync.core.models import ProjectAccessError

IGNORED_DIRS = {".git", "node_modules", "__pycache__"}


class ProjectFiles:
    """Read, write and list files under a project root."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        return self.root / path

    def list_files(self) -> List[str]:
        """List every file in the project, sorted.

        Raises:
            ProjectAccessError: If the project root cannot be walked
        """
        if not self.root.is_dir():
            raise ProjectAccessError(f"Project directory not found: {self.root}")

        try:
            files = []
            for path in self.root.rglob("*"):
                rel = path.relative_to(self.root)
                if any(part in IGNORED_DIRS for part in rel.parts):
                    continue
                if path.is_file():
                    files.append(rel.as_posix())
        except OSError as e:
            raise ProjectAccessError(f"Failed to list {self.root}: {e}") from e

        return sorted(files)

    def read_file(self, path: str) -> str:
        """Read a text file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        return self.resolve(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        """Write a text file, creating parent directories as needed."""
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def file_exists(self, path: str) -> bool:
        return self.resolve(path).is_file()
