"""Core orchestrator - drives every project folder through the pipeline."""
import asyncio
import logging
import random
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..models import (
    HOST_STAGES,
    STAGE_ORDER,
    AuthStatus,
    DeployConfig,
    FolderState,
    FolderUnit,
    ProjectRecord,
    StageName,
)
from ..protocols import ICommandRunner, IHostProvider, IVersionControlHost
from ..services.command import CommandRunner
from ..services.github import GitHubService
from ..services.ignore_file import ensure_ignore_file
from ..services.netlify import NetlifyService
from ..services.progress_store import ProgressStore
from ..services.relocation import ProcessReaper, RelocationGuard
from ..services.vercel import VercelService
from ..utils import events
from ..utils.events import EventEmitter
from ..utils.naming import derive_identity
from .folder_scanner import FolderScanner
from .models import BatchResult, FolderReport
from .stages import StageRunner

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Raised when the batch as a whole cannot run."""


def progress_state(record: ProjectRecord) -> FolderState:
    """State of a folder that was not (or not yet) relocated."""
    if record.is_complete:
        return FolderState.COMPLETE
    if any(record.is_done(stage) for stage in STAGE_ORDER):
        return FolderState.PARTIALLY_DONE
    return FolderState.PENDING


class PipelineOrchestrator:
    """
    Publishes every project folder under a working root.

    Folders are handled one at a time. For each folder the record is loaded,
    pending stages run in order (GitHub, Vercel, Netlify), and a folder whose
    stages are all done is moved into the done directory. Anything left
    pending is picked up again by the next run.

    Usage:
        orchestrator = PipelineOrchestrator(Path("~/projects").expanduser())
        orchestrator.on_folder_finish(lambda report: print(report.state))
        result = await orchestrator.run()

    Services default to the real CLI-backed ones; tests inject fakes.
    """

    def __init__(
        self,
        root: Path,
        config: Optional[DeployConfig] = None,
        runner: Optional[ICommandRunner] = None,
        github: Optional[IVersionControlHost] = None,
        vercel: Optional[IHostProvider] = None,
        netlify: Optional[IHostProvider] = None,
        store: Optional[ProgressStore] = None,
        guard: Optional[RelocationGuard] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            root: Working root holding the project folders
            config: DeployConfig
            runner: Command runner shared by the default services
            github: Version-control host (default GitHubService)
            vercel: Host A (default VercelService)
            netlify: Host B (default NetlifyService)
            store: ProgressStore (default uses config.status_file)
            guard: RelocationGuard (default built from config)
            rng: Random source for name disambiguators
            sleep: Wait primitive for the settle delay
        """
        self._root = Path(root)
        self._config = config or DeployConfig()
        self._done_dir = self._root / self._config.done_dir_name
        self._sleep = sleep

        runner = runner or CommandRunner()
        self._github = github or GitHubService(runner, self._config)
        self._vercel = vercel or VercelService(runner, self._config)
        self._netlify = netlify or NetlifyService(runner, self._config)
        self._store = store or ProgressStore(self._config.status_file)

        if guard is None:
            reaper = ProcessReaper(self._config.lingering_process_names) if self._config.kill_lingering else None
            guard = RelocationGuard(
                max_attempts=self._config.relocation_attempts,
                delay=self._config.relocation_delay,
                reaper=reaper,
            )
        self._guard = guard

        self._stages = StageRunner(
            self._store, self._github, self._vercel, self._netlify, self._config, rng
        )
        self._scanner = FolderScanner(excluded={self._config.done_dir_name})
        self._events = EventEmitter()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def done_dir(self) -> Path:
        return self._done_dir

    # Event subscription methods
    def on_batch_start(self, callback: Callable[[int], None]):
        """Called before the first folder. Receives folder count."""
        self._events.on(events.BATCH_START, callback)

    def on_folder_start(self, callback: Callable[[FolderUnit, int, int], None]):
        """Called when a folder starts. Receives (unit, index, total)."""
        self._events.on(events.FOLDER_START, callback)

    def on_stage_complete(self, callback):
        """Called after each stage. Receives (unit, StageResult)."""
        self._events.on(events.STAGE_COMPLETE, callback)

    def on_folder_finish(self, callback: Callable[[FolderReport], None]):
        """Called when a folder is finished. Receives FolderReport."""
        self._events.on(events.FOLDER_FINISH, callback)

    def on_batch_finish(self, callback: Callable[[BatchResult], None]):
        """Called after the last folder. Receives BatchResult."""
        self._events.on(events.BATCH_FINISH, callback)

    async def check_auth(self) -> Dict[str, AuthStatus]:
        """Ask each collaborator CLI whether it is logged in. Never fatal."""
        statuses = {}
        for name, service in (("github", self._github), ("vercel", self._vercel), ("netlify", self._netlify)):
            try:
                status = await service.check_auth(self._root)
            except Exception as e:
                logger.warning(f"Auth check for {name} failed: {e}")
                status = AuthStatus(name, False, str(e))
            if not status.ok:
                logger.warning(f"{status.provider}: {status.detail}")
            statuses[name] = status
        return statuses

    def scan(self) -> List[Path]:
        return self._scanner.collect_folders(self._root)

    async def run(self) -> BatchResult:
        """
        Process every candidate folder under the root.

        Raises:
            PipelineError: If the root does not exist
        """
        if not self._root.is_dir():
            raise PipelineError(f"working root not found: {self._root}")
        self._done_dir.mkdir(parents=True, exist_ok=True)
        return await self._run_batch(self._root, self.scan(), STAGE_ORDER, relocate=True)

    async def repair(self) -> BatchResult:
        """
        Re-attempt pending host deployments for folders already in the done directory.

        Raises:
            PipelineError: If the done directory does not exist
        """
        if not self._done_dir.is_dir():
            raise PipelineError(f"done directory not found: {self._done_dir}")
        folders = FolderScanner().collect_folders(self._done_dir)
        return await self._run_batch(self._done_dir, folders, HOST_STAGES, relocate=False)

    async def _run_batch(
        self,
        base: Path,
        folders: List[Path],
        stages: Iterable[StageName],
        relocate: bool,
    ) -> BatchResult:
        total = len(folders)
        logger.info(f"Starting batch for {total} folder(s) in {base}")
        await self._events.emit(events.BATCH_START, total)

        batch = BatchResult(root=base)
        for index, folder in enumerate(folders):
            report = await self.process_folder(folder, index, total, stages, relocate)
            batch.reports.append(report)

        logger.info(
            f"Batch finished: {batch.relocated} relocated, {batch.pending} pending, "
            f"{batch.errored} errored"
        )
        await self._events.emit(events.BATCH_FINISH, batch)
        return batch

    async def process_folder(
        self,
        folder: Path,
        index: int = 0,
        total: int = 1,
        stages: Iterable[StageName] = STAGE_ORDER,
        relocate: bool = True,
    ) -> FolderReport:
        """
        Take one folder as far through the pipeline as possible.

        Errors are contained here; the report says where the folder ended up.
        """
        folder = Path(folder)
        stages = tuple(stages)
        report = FolderReport(folder_name=folder.name, identity=None, state=FolderState.PENDING)

        try:
            # Stages left out of this pass (GitHub in repair mode) already
            # happened for folders without a readable sidecar.
            skipped = [stage for stage in STAGE_ORDER if stage not in stages]
            record = self._store.load(folder, derive_identity(folder.name, index), assume_done=skipped)
            unit = FolderUnit(folder, record)
            report.identity = record.identity
            logger.info(f"[{index + 1}/{total}] {folder.name}: {record.describe()}")
            await self._events.emit(events.FOLDER_START, unit, index, total)

            ensure_ignore_file(folder, self._config.ignore_file, self._config.ignore_content())

            for stage in STAGE_ORDER:
                if stage not in stages:
                    continue
                result = await self._stages.run(unit, stage)
                report.results.append(result)
                await self._events.emit(events.STAGE_COMPLETE, unit, result)

            report.identity = record.identity
            report.state = progress_state(record)

            if relocate and record.is_complete:
                report.state, report.destination, report.error = await self._relocate(folder)
            elif not record.is_complete:
                pending = ", ".join(stage.label for stage in record.pending_stages)
                logger.warning(f"{folder.name}: pending {pending}, keeping folder for next run")
        except Exception as e:
            logger.error(f"{folder.name}: error, folder left in place: {e}", exc_info=True)
            report.state = FolderState.ERRORED_RETAINED
            report.error = f"{type(e).__name__}: {e}"

        await self._events.emit(events.FOLDER_FINISH, report)
        return report

    async def _relocate(self, folder: Path):
        # Give just-exited child processes time to release handles.
        await self._sleep(self._config.settle_delay)
        moved = await self._guard.relocate(folder, self._done_dir / folder.name)
        if moved.success:
            return FolderState.RELOCATED, moved.destination, None
        logger.warning(f"{folder.name}: still locked, will move on a later run")
        return FolderState.COMPLETE, None, moved.error
