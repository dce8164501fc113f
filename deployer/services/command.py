"""Subprocess adapter for external command line tools."""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..models import CommandResult

logger = logging.getLogger(__name__)

# Exit status reported when the executable cannot be started at all.
EXIT_NOT_FOUND = 127


class CommandRunner:
    """
    Runs command line tools with an explicit working directory.

    Implements ICommandRunner protocol. The process-wide current directory is
    never changed; each call passes ``cwd`` to the child process.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None, encoding: str = "utf-8"):
        self._env = env
        self._encoding = encoding

    def _resolve(self, executable: str) -> str:
        # Windows shims (gh.exe, vercel.cmd) need a full path for exec.
        return shutil.which(executable) or executable

    async def run(self, args: Sequence[str], cwd: Path) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        if not argv:
            raise ValueError("empty command")

        env = None
        if self._env is not None:
            env = {**os.environ, **self._env}

        logger.debug(f"[cmd] {' '.join(argv)} (cwd={cwd})")
        try:
            proc = await asyncio.create_subprocess_exec(
                self._resolve(argv[0]),
                *argv[1:],
                cwd=str(cwd),
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            logger.warning(f"[cmd] cannot start {argv[0]}: {exc}")
            return CommandResult(argv, EXIT_NOT_FOUND, stderr=str(exc))

        stdout, stderr = await proc.communicate()
        result = CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout.decode(self._encoding, errors="replace"),
            stderr=stderr.decode(self._encoding, errors="replace"),
        )
        if not result.ok:
            logger.debug(f"[cmd] {argv[0]} failed: {result.summary()}")
        return result
