"""Ignore-list file management for project folders."""
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_ignore_file(folder: Path, filename: str, content: str) -> bool:
    """
    Create the ignore file from content if it is missing.

    An existing file is never touched.

    Returns:
        True if the file was created
    """
    path = Path(folder) / filename
    if path.exists():
        return False
    path.write_text(content, encoding="utf-8")
    logger.info(f"Created {filename} in {Path(folder).name}")
    return True
