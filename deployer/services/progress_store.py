"""
ProgressStore - per-folder deployment progress sidecar.

Each project folder carries a small JSON file recording which stages already
succeeded. The file is the ground truth for resuming interrupted batches and
stays inside the folder after relocation.

Format (compatible with earlier deploy scripts):
    {"repoName": "my-cool-app", "github": true, "vercel": false, "netlify": false}
"""
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..models import STAGE_ORDER, ProjectRecord, StageName

logger = logging.getLogger(__name__)

DEFAULT_STATUS_FILE = ".deploy_progress.json"


class ProgressStore:
    """
    Reads and writes ProjectRecord sidecars.

    Loading never fails: anything that is not a well-formed record yields a
    fresh record. Saving never lets a finished stage regress.
    """

    def __init__(self, status_file: str = DEFAULT_STATUS_FILE):
        self._status_file = status_file

    @property
    def status_file(self) -> str:
        return self._status_file

    def path_for(self, folder: Path) -> Path:
        return Path(folder) / self._status_file

    def load(
        self,
        folder: Path,
        default_identity: str,
        assume_done: Iterable[StageName] = (),
    ) -> ProjectRecord:
        """
        Load the record for folder.

        Args:
            folder: Project folder
            default_identity: Identity used when the sidecar has none
            assume_done: Stages marked done on a fresh record

        Returns:
            Stored record, or a fresh one when the sidecar is absent,
            unreadable or malformed
        """
        record = self._read(self.path_for(folder), default_identity)
        if record is None:
            record = ProjectRecord.fresh(default_identity)
            for stage in assume_done:
                record.mark_done(stage)
        return record

    def save(self, folder: Path, record: ProjectRecord) -> None:
        """
        Persist record, overwriting the sidecar.

        A valid record already on disk is merged in first: its finished
        stages stay finished and a frozen identity is kept.
        """
        path = self.path_for(folder)
        on_disk = self._read(path, record.identity)
        if on_disk is not None:
            for stage in STAGE_ORDER:
                if on_disk.is_done(stage) and not record.is_done(stage):
                    logger.warning(
                        "ProgressStore: keeping %s done for %s (stale record in memory)",
                        stage.label, Path(folder).name,
                    )
                    record.mark_done(stage)
            if on_disk.identity_frozen and on_disk.identity != record.identity:
                logger.warning(
                    "ProgressStore: keeping identity %s for %s (was %s)",
                    on_disk.identity, Path(folder).name, record.identity,
                )
                record.identity = on_disk.identity

        with open(path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, indent=2)
        logger.debug("ProgressStore: saved %s (%s)", path, record.describe())

    def _read(self, path: Path, default_identity: str) -> Optional[ProjectRecord]:
        try:
            if not path.is_file():
                logger.debug("ProgressStore: no record at %s, starting fresh", path)
                return None
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("ProgressStore: unreadable record %s: %s - starting fresh", path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("ProgressStore: record %s is not an object - starting fresh", path)
            return None

        identity = data.get("repoName")
        if identity is not None and not isinstance(identity, str):
            logger.warning("ProgressStore: bad repoName in %s - starting fresh", path)
            return None

        stages = {}
        for stage in STAGE_ORDER:
            value = data.get(stage.value, False)
            if not isinstance(value, bool):
                logger.warning("ProgressStore: bad %s flag in %s - starting fresh", stage.value, path)
                return None
            stages[stage] = value

        return ProjectRecord(identity=identity or default_identity, stages=stages)
