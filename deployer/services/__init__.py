"""Services for deployer module."""
from .command import CommandRunner
from .github import GitHubService
from .ignore_file import ensure_ignore_file
from .netlify import NetlifyService
from .progress_store import ProgressStore
from .relocation import ProcessReaper, RelocationGuard, RelocationResult
from .vercel import VercelService

__all__ = [
    "CommandRunner",
    "GitHubService",
    "NetlifyService",
    "ProgressStore",
    "ProcessReaper",
    "RelocationGuard",
    "RelocationResult",
    "VercelService",
    "ensure_ignore_file",
]
