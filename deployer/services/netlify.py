"""Netlify Service - host B, reached through the ``netlify`` CLI."""
import json
import logging
from pathlib import Path
from typing import Optional

from ..models import AuthStatus, CommandResult, DeployConfig
from ..protocols import ICommandRunner

logger = logging.getLogger(__name__)

LINK_DIR = ".netlify"

# `netlify status` exits non-zero when the folder is not linked even though
# the user is logged in; its output tells the two cases apart.
_LOGGED_IN_MARKERS = ("Current Netlify User", "Email:")


def parse_site_id(output: str) -> Optional[str]:
    """Extract the site id from ``netlify sites:create --json`` output."""
    try:
        data = json.loads(output)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    site_id = data.get("site_id") or data.get("id")
    return str(site_id) if site_id else None


class NetlifyService:
    """
    Service for deploying a folder to Netlify.

    Implements IHostProvider protocol.
    """

    def __init__(self, runner: ICommandRunner, config: Optional[DeployConfig] = None):
        self._runner = runner
        self._config = config or DeployConfig()

    async def check_auth(self, cwd: Path) -> AuthStatus:
        result = await self._runner.run([self._config.netlify_bin, "status"], cwd)
        if result.ok:
            return AuthStatus("Netlify", True)
        if any(marker in result.output for marker in _LOGGED_IN_MARKERS):
            return AuthStatus("Netlify", True, "logged in, folder not linked")
        return AuthStatus("Netlify", False, "not logged in (or error checking)")

    def is_linked(self, cwd: Path) -> bool:
        return (Path(cwd) / LINK_DIR).is_dir()

    async def provision(self, name: str, cwd: Path) -> Optional[str]:
        """
        Create site ``name`` and link the folder by site id.

        Returns:
            Site id when linked, None otherwise. Failures are logged only.
        """
        netlify = self._config.netlify_bin
        created = await self._runner.run(
            [netlify, "sites:create", "--name", name, "--json"], cwd
        )
        if not created.ok:
            logger.info(f"[netlify] sites:create {name} failed: {created.summary()}")
            return None

        site_id = parse_site_id(created.stdout)
        if not site_id:
            logger.info(f"[netlify] sites:create {name} returned no site id")
            return None

        linked = await self._runner.run([netlify, "link", "--id", site_id], cwd)
        if not linked.ok:
            logger.info(f"[netlify] link {site_id} failed: {linked.summary()}")
            return None
        return site_id

    async def deploy(self, cwd: Path) -> CommandResult:
        return await self._runner.run(
            [self._config.netlify_bin, "deploy", "--prod", "--dir=."], cwd
        )
