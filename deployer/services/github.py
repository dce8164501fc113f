"""
GitHub Service - version-control host reached through ``gh`` and ``git``.

Flow for one folder:
1. prepare(): git init (if needed), git add, initial commit
2. create_and_publish(): gh repo create <name> --source=. --remote=origin --push
3. push_existing(): used when origin is already configured
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from ..models import AuthStatus, CommandResult, DeployConfig
from ..protocols import ICommandRunner

logger = logging.getLogger(__name__)


class CreateFailure(Enum):
    """Why ``gh repo create`` failed."""
    NAME_TAKEN = "name_taken"
    REMOTE_EXISTS = "remote_exists"
    OTHER = "other"


def classify_create_failure(result: CommandResult) -> CreateFailure:
    """Map a failed ``gh repo create`` to a tie-break case."""
    output = result.output.lower()
    # Checked first: also contains "already exists".
    if "remote origin already exists" in output:
        return CreateFailure.REMOTE_EXISTS
    if "name already exists" in output or "already exists" in output:
        return CreateFailure.NAME_TAKEN
    return CreateFailure.OTHER


class GitHubService:
    """
    Service for publishing a folder as a GitHub repository.

    Implements IVersionControlHost protocol.
    """

    def __init__(self, runner: ICommandRunner, config: Optional[DeployConfig] = None):
        self._runner = runner
        self._config = config or DeployConfig()

    async def check_auth(self, cwd: Path) -> AuthStatus:
        result = await self._runner.run([self._config.gh_bin, "auth", "status"], cwd)
        if result.ok:
            return AuthStatus("GitHub", True)
        return AuthStatus("GitHub", False, "not logged in, run `gh auth login`")

    async def prepare(self, cwd: Path) -> None:
        """Initialise the repository and commit everything present."""
        git = self._config.git_bin
        if not (Path(cwd) / ".git").exists():
            result = await self._runner.run([git, "init"], cwd)
            if not result.ok:
                logger.warning(f"[github] git init failed in {Path(cwd).name}: {result.summary()}")
        await self._runner.run([git, "add", "."], cwd)
        commit = await self._runner.run([git, "commit", "-m", self._config.commit_message], cwd)
        if not commit.ok:
            # Usually "nothing to commit" on a rerun.
            logger.debug(f"[github] commit skipped in {Path(cwd).name}: {commit.summary()}")

    async def create_and_publish(self, name: str, cwd: Path) -> CommandResult:
        return await self._runner.run(
            [
                self._config.gh_bin, "repo", "create", name,
                f"--{self._config.repo_visibility}",
                "--source=.", "--remote=origin", "--push",
            ],
            cwd,
        )

    async def push_existing(self, cwd: Path) -> CommandResult:
        """Push to origin, trying each default branch name in order."""
        result = None
        for branch in self._config.push_branches:
            result = await self._runner.run(
                [self._config.git_bin, "push", "-u", "origin", branch], cwd
            )
            if result.ok:
                return result
        return result
