"""
Protocols (Interfaces) for Dependency Inversion.

Collaborators are reached only through their command line tools; these
interfaces let the orchestrator be driven by fakes in tests.
"""
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .models import AuthStatus, CommandResult


@runtime_checkable
class ICommandRunner(Protocol):
    """Interface for running external commands."""

    async def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        """Run command in cwd and capture its output."""
        ...


@runtime_checkable
class IVersionControlHost(Protocol):
    """Interface for the version-control host (GitHub)."""

    async def check_auth(self, cwd: Path) -> AuthStatus:
        ...

    async def prepare(self, cwd: Path) -> None:
        """Make sure the folder is a repository with a commit."""
        ...

    async def create_and_publish(self, name: str, cwd: Path) -> CommandResult:
        """Create a named remote and push."""
        ...

    async def push_existing(self, cwd: Path) -> CommandResult:
        """Push to an already configured remote."""
        ...


@runtime_checkable
class IHostProvider(Protocol):
    """Interface for a hosting provider (Vercel, Netlify)."""

    async def check_auth(self, cwd: Path) -> AuthStatus:
        ...

    def is_linked(self, cwd: Path) -> bool:
        """True when the folder carries provider linkage metadata."""
        ...

    async def provision(self, name: str, cwd: Path) -> Optional[str]:
        """Create and link a site/project. Returns the provider id when known."""
        ...

    async def deploy(self, cwd: Path) -> CommandResult:
        """Deploy the folder to production."""
        ...
