"""
Models for deployer module.

Records, result types and configuration shared by services and orchestrator.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class StageName(Enum):
    """Deployment stage. Values double as sidecar keys."""
    GITHUB = "github"    # version control
    VERCEL = "vercel"    # host A
    NETLIFY = "netlify"  # host B

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    StageName.GITHUB: "GitHub",
    StageName.VERCEL: "Vercel",
    StageName.NETLIFY: "Netlify",
}

# Fixed execution order.
STAGE_ORDER: Tuple[StageName, ...] = (StageName.GITHUB, StageName.VERCEL, StageName.NETLIFY)
HOST_STAGES: Tuple[StageName, ...] = (StageName.VERCEL, StageName.NETLIFY)


class RecordError(ValueError):
    """Raised when a ProjectRecord invariant would be violated."""


@dataclass
class ProjectRecord:
    """
    Persisted per-folder progress.

    Flags only ever move from False to True. The identity may change while
    the GitHub stage is pending (name collisions) and is frozen afterwards.
    """
    identity: str
    stages: Dict[StageName, bool] = field(
        default_factory=lambda: {stage: False for stage in STAGE_ORDER}
    )

    def __post_init__(self):
        if not self.identity:
            raise RecordError("identity must be a non-empty string")
        for stage in STAGE_ORDER:
            self.stages.setdefault(stage, False)

    @classmethod
    def fresh(cls, identity: str) -> "ProjectRecord":
        return cls(identity=identity)

    def is_done(self, stage: StageName) -> bool:
        return bool(self.stages.get(stage, False))

    def mark_done(self, stage: StageName) -> None:
        self.stages[stage] = True

    def rename(self, identity: str) -> None:
        if not identity:
            raise RecordError("identity must be a non-empty string")
        if self.identity_frozen and identity != self.identity:
            raise RecordError(
                f"identity '{self.identity}' is frozen once {StageName.GITHUB.label} is done"
            )
        self.identity = identity

    @property
    def identity_frozen(self) -> bool:
        return self.is_done(StageName.GITHUB)

    @property
    def is_complete(self) -> bool:
        return all(self.is_done(stage) for stage in STAGE_ORDER)

    @property
    def pending_stages(self) -> List[StageName]:
        return [stage for stage in STAGE_ORDER if not self.is_done(stage)]

    def to_dict(self) -> dict:
        data = {"repoName": self.identity}
        for stage in STAGE_ORDER:
            data[stage.value] = self.is_done(stage)
        return data

    def describe(self) -> str:
        return ", ".join(f"{stage.label}={self.is_done(stage)}" for stage in STAGE_ORDER)


@dataclass
class FolderUnit:
    """Handle on one project folder for the duration of a single pass."""
    path: Path
    record: ProjectRecord

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def identity(self) -> str:
        return self.record.identity


class StageStatus(Enum):
    """Stage outcome."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"  # already done in a previous run


@dataclass(frozen=True)
class StageResult:
    """Immutable result of one stage invocation."""
    stage: StageName
    status: StageStatus
    detail: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (StageStatus.SUCCESS, StageStatus.SKIPPED)

    @property
    def skipped(self) -> bool:
        return self.status == StageStatus.SKIPPED

    @classmethod
    def ok(cls, stage: StageName, detail: Optional[str] = None):
        return cls(stage=stage, status=StageStatus.SUCCESS, detail=detail)

    @classmethod
    def fail(cls, stage: StageName, detail: str):
        return cls(stage=stage, status=StageStatus.FAILED, detail=detail)

    @classmethod
    def already_done(cls, stage: StageName):
        return cls(stage=stage, status=StageStatus.SKIPPED)


class FolderState(Enum):
    """Where a folder ended up after one pass."""
    PENDING = "pending"
    PARTIALLY_DONE = "partially_done"
    COMPLETE = "complete"  # all stages done, relocation did not happen
    RELOCATED = "relocated"
    ERRORED_RETAINED = "errored_retained"


DEFAULT_IGNORE_TEMPLATE = (
    "node_modules\n"
    ".env\n"
    ".DS_Store\n"
    "dist\n"
    "build\n"
    "coverage\n"
)


@dataclass(frozen=True)
class DeployConfig:
    """Immutable configuration for a deployment batch."""
    status_file: str = ".deploy_progress.json"
    done_dir_name: str = "upload done"
    ignore_file: str = ".gitignore"
    ignore_template: str = DEFAULT_IGNORE_TEMPLATE
    # Executables
    gh_bin: str = "gh"
    vercel_bin: str = "vercel"
    netlify_bin: str = "netlify"
    git_bin: str = "git"
    # GitHub
    repo_visibility: str = "public"
    commit_message: str = "Auto-deploy: Initial commit"
    push_branches: Tuple[str, ...] = ("master", "main")
    max_name_attempts: int = 5
    name_suffix_max: int = 99999
    # Relocation
    relocation_attempts: int = 10
    relocation_delay: float = 3.0  # seconds between lock retries
    settle_delay: float = 1.0      # seconds before the first move attempt
    kill_lingering: bool = True
    lingering_process_names: Tuple[str, ...] = ("git", "git.exe")

    def ignore_content(self) -> str:
        """Ignore template, always covering the sidecar file."""
        content = self.ignore_template
        if not content.endswith("\n"):
            content += "\n"
        if self.status_file not in content.splitlines():
            content += f"{self.status_file}\n"
        return content


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""
    args: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for message matching."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def summary(self, limit: int = 200) -> str:
        text = (self.stderr or self.stdout).strip()
        if len(text) > limit:
            text = text[:limit] + "..."
        return f"exit {self.returncode}: {text}" if text else f"exit {self.returncode}"


@dataclass(frozen=True)
class AuthStatus:
    """Login state of one collaborator CLI."""
    provider: str
    ok: bool
    detail: str = ""
