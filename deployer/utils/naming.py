"""Folder name to repository/site name conversion."""
import random
import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-+")


def derive_identity(folder_name: str, index: int = 0) -> str:
    """
    Sanitize a folder name into a repo-safe identity.

    "My Cool App" -> "my-cool-app". Falls back to ``project-<index>`` when
    nothing usable is left.
    """
    name = _WHITESPACE.sub("-", folder_name.lower())
    name = _INVALID.sub("", name)
    name = _DASHES.sub("-", name).strip("-")
    return name or f"project-{index}"


def with_random_suffix(base: str, upper: int = 99999, rng: Optional[random.Random] = None) -> str:
    """Append a random numeric disambiguator: ``<base>-<0..upper>``."""
    rng = rng or random
    return f"{base}-{rng.randint(0, upper)}"
