"""Candidate folder discovery for deployment batches."""
from pathlib import Path
from typing import Iterable, List

# Metadata and dependency folders that are never projects.
IGNORED_FOLDERS = {".git", "node_modules", "__pycache__"}


class FolderScanner:
    """Collects project folders from the working root."""

    def __init__(self, excluded: Iterable[str] = ()):
        self._excluded = set(excluded) | IGNORED_FOLDERS

    def collect_folders(self, root: Path) -> List[Path]:
        """
        Collect immediate subdirectories of root.

        Args:
            root: Working root

        Returns:
            Sorted folder paths, without excluded and hidden folders
        """
        folders = []
        for item in Path(root).iterdir():
            if not item.is_dir():
                continue
            if item.name in self._excluded or item.name.startswith("."):
                continue
            folders.append(item)
        return sorted(folders, key=lambda p: p.name)
