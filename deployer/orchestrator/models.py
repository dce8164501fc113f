"""Orchestrator data models."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..models import FolderState, StageName, StageResult


@dataclass
class FolderReport:
    """Result of one pass over one folder."""
    folder_name: str
    identity: Optional[str]
    state: FolderState
    results: List[StageResult] = field(default_factory=list)
    destination: Optional[Path] = None
    error: Optional[str] = None

    @property
    def failed_stages(self) -> List[StageName]:
        return [r.stage for r in self.results if not r.success]

    @property
    def relocated(self) -> bool:
        return self.state == FolderState.RELOCATED


@dataclass
class BatchResult:
    """Result of one pipeline run over the working root."""
    root: Path
    reports: List[FolderReport] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.reports)

    def count(self, state: FolderState) -> int:
        return sum(1 for r in self.reports if r.state == state)

    @property
    def relocated(self) -> int:
        return self.count(FolderState.RELOCATED)

    @property
    def errored(self) -> int:
        return self.count(FolderState.ERRORED_RETAINED)

    @property
    def pending(self) -> int:
        return self.total - self.relocated - self.errored

    @property
    def all_success(self) -> bool:
        return self.pending == 0 and self.errored == 0
