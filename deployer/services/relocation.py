"""
Relocation Guard - moves finished folders out of the working set.

A folder that was just handed to git/vercel/netlify can still be held open by
a child process that has not fully exited (on Windows this blocks renames
with EBUSY/EPERM). The guard retries the rename a bounded number of times and
never deletes, merges or partially moves anything.
"""
import asyncio
import errno
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

import psutil

from ..utils.retry import retry_async

logger = logging.getLogger(__name__)

LOCK_ERRNOS = {errno.EBUSY, errno.EACCES, errno.EPERM}
# ERROR_ACCESS_DENIED, ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
LOCK_WINERRORS = {5, 32, 33}


def is_lock_error(exc: BaseException) -> bool:
    """True for OS errors caused by another process holding the folder."""
    if not isinstance(exc, OSError):
        return False
    if getattr(exc, "winerror", None) in LOCK_WINERRORS:
        return True
    return exc.errno in LOCK_ERRNOS


def unique_destination(dest: Path) -> Path:
    """
    Return dest, or a timestamp-suffixed sibling when dest already exists.

    Existing destinations are never reused.
    """
    dest = Path(dest)
    candidate = dest
    while candidate.exists():
        candidate = dest.with_name(f"{dest.name}_{time.time_ns()}")
    return candidate


class ProcessReaper:
    """Terminates lingering processes whose working directory is inside a folder."""

    def __init__(self, names: Iterable[str] = ("git", "git.exe"), timeout: float = 3.0):
        self._names = {name.lower() for name in names}
        self._timeout = timeout

    def _holds(self, proc: psutil.Process, folder: Path) -> bool:
        try:
            name = (proc.info.get("name") or "").lower()
            if name not in self._names:
                return False
            cwd = Path(proc.cwd()).resolve()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError):
            return False
        return cwd == folder or folder in cwd.parents

    def terminate_holders(self, folder: Path) -> int:
        """
        Terminate matching processes.

        Returns:
            Number of processes that were signalled
        """
        folder = Path(folder).resolve()
        victims = [p for p in psutil.process_iter(["name"]) if self._holds(p, folder)]
        for proc in victims:
            try:
                logger.info(f"[relocate] terminating {proc.info.get('name')} (pid {proc.pid})")
                proc.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.debug(f"[relocate] could not terminate pid {proc.pid}: {e}")
        if victims:
            _, alive = psutil.wait_procs(victims, timeout=self._timeout)
            for proc in alive:
                try:
                    proc.kill()
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    pass
        return len(victims)


@dataclass(frozen=True)
class RelocationResult:
    """Outcome of one relocation."""
    success: bool
    source: Path
    destination: Path
    attempts: int
    error: Optional[str] = None


class RelocationGuard:
    """
    Lock-tolerant folder move.

    Usage:
        guard = RelocationGuard(max_attempts=10, delay=3.0)
        result = await guard.relocate(project_dir, done_dir / project_dir.name)
    """

    def __init__(
        self,
        max_attempts: int = 10,
        delay: float = 3.0,
        reaper: Optional[ProcessReaper] = None,
        rename: Optional[Callable[[Path, Path], None]] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        """
        Args:
            max_attempts: Rename attempts before giving up
            delay: Seconds between attempts
            reaper: Optional ProcessReaper run between attempts
            rename: Rename primitive (defaults to Path.rename)
            sleep: Wait primitive
        """
        self._max_attempts = max_attempts
        self._delay = delay
        self._reaper = reaper
        self._rename = rename or (lambda src, dst: Path(src).rename(dst))
        self._sleep = sleep

    async def relocate(self, src: Path, dest: Path) -> RelocationResult:
        """
        Rename src to dest (or a unique sibling of dest).

        Raises:
            OSError: For failures that are not lock-related; the folder stays
                where it was.
        """
        src = Path(src)
        final_dest = unique_destination(dest)
        if final_dest != Path(dest):
            logger.info(f"[relocate] {Path(dest).name} exists, using {final_dest.name}")

        async def attempt():
            self._rename(src, final_dest)
            return final_dest

        async def between_attempts(exc: BaseException, attempt_no: int):
            logger.warning(
                f"[relocate] {src.name} locked ({exc}), "
                f"retry {attempt_no}/{self._max_attempts - 1}"
            )
            if self._reaper is not None:
                try:
                    # wait_procs blocks for up to the reaper timeout
                    await asyncio.to_thread(self._reaper.terminate_holders, src)
                except psutil.Error as e:
                    logger.debug(f"[relocate] process scan failed: {e}")

        outcome = await retry_async(
            attempt,
            is_retryable=is_lock_error,
            max_attempts=self._max_attempts,
            delay=self._delay,
            on_retry=between_attempts,
            sleep=self._sleep,
        )

        if outcome.success:
            logger.info(f"[relocate] moved {src.name} -> {final_dest}")
            return RelocationResult(True, src, final_dest, outcome.attempts)

        logger.error(f"[relocate] failed to move {src.name} after {outcome.attempts} attempts")
        return RelocationResult(False, src, final_dest, outcome.attempts, str(outcome.error))
