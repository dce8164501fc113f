"""Vercel Service - host A, reached through the ``vercel`` CLI."""
import logging
from pathlib import Path
from typing import Optional

from ..models import AuthStatus, CommandResult, DeployConfig
from ..protocols import ICommandRunner

logger = logging.getLogger(__name__)

LINK_DIR = ".vercel"


class VercelService:
    """
    Service for deploying a folder to Vercel.

    Implements IHostProvider protocol.
    """

    def __init__(self, runner: ICommandRunner, config: Optional[DeployConfig] = None):
        self._runner = runner
        self._config = config or DeployConfig()

    async def check_auth(self, cwd: Path) -> AuthStatus:
        result = await self._runner.run([self._config.vercel_bin, "whoami"], cwd)
        if result.ok:
            return AuthStatus("Vercel", True, result.stdout.strip())
        return AuthStatus("Vercel", False, "not logged in, run `vercel login`")

    def is_linked(self, cwd: Path) -> bool:
        return (Path(cwd) / LINK_DIR).is_dir()

    async def provision(self, name: str, cwd: Path) -> Optional[str]:
        """
        Create project ``name`` and link the folder to it.

        Returns:
            Project name when linked, None otherwise. Failures are logged only;
            ``vercel --prod`` can still infer a project from the folder.
        """
        vercel = self._config.vercel_bin
        created = await self._runner.run([vercel, "project", "add", name], cwd)
        if not created.ok:
            logger.info(f"[vercel] project add {name} failed: {created.summary()}")
        linked = await self._runner.run([vercel, "link", "--yes", "--project", name], cwd)
        if not linked.ok:
            logger.info(f"[vercel] link {name} failed: {linked.summary()}")
            return None
        return name

    async def deploy(self, cwd: Path) -> CommandResult:
        return await self._runner.run([self._config.vercel_bin, "--prod", "--yes"], cwd)
