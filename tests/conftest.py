"""Shared fixtures: a scripted command runner that records every call."""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from deployer.models import STAGE_ORDER, CommandResult, DeployConfig


@dataclass
class _Rule:
    prefix: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    times: Optional[int]


class FakeRunner:
    """
    Spy implementation of ICommandRunner.

    Commands succeed with empty output unless a rule matching their prefix
    says otherwise. Rules are checked in the order they were added.
    """

    def __init__(self):
        self.calls: List[Tuple[Tuple[str, ...], Path]] = []
        self._rules: List[_Rule] = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "", times: Optional[int] = None):
        self._rules.append(_Rule(tuple(prefix), returncode, stdout, stderr, times))
        return self

    async def run(self, args, cwd):
        argv = tuple(str(a) for a in args)
        self.calls.append((argv, Path(cwd)))
        for rule in self._rules:
            if argv[: len(rule.prefix)] != rule.prefix:
                continue
            if rule.times is not None:
                if rule.times == 0:
                    continue
                rule.times -= 1
            return CommandResult(argv, rule.returncode, rule.stdout, rule.stderr)
        return CommandResult(argv, 0)

    def commands(self, *prefix: str) -> List[Tuple[str, ...]]:
        return [argv for argv, _ in self.calls if argv[: len(prefix)] == tuple(prefix)]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def config():
    """Config without waits or process killing."""
    return DeployConfig(relocation_delay=0.0, settle_delay=0.0, kill_lingering=False)


def write_record(folder: Path, repo_name=None, github=False, vercel=False, netlify=False,
                 status_file: str = ".deploy_progress.json") -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / status_file
    path.write_text(
        json.dumps({"repoName": repo_name, "github": github, "vercel": vercel, "netlify": netlify}),
        encoding="utf-8",
    )
    return path


def read_record(folder: Path, status_file: str = ".deploy_progress.json") -> dict:
    return json.loads((folder / status_file).read_text(encoding="utf-8"))


def flags(data: dict) -> Tuple[bool, ...]:
    return tuple(data[stage.value] for stage in STAGE_ORDER)
