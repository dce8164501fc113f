"""
Deployer - bulk publishing of project folders to GitHub, Vercel and Netlify.

Each folder under a working root is published as a GitHub repository and
deployed to Vercel and Netlify. Progress is kept in a sidecar file inside the
folder, so an interrupted batch resumes where it stopped. Folders with every
stage done are moved into the done directory.

Usage:
    from deployer import PipelineOrchestrator, DeployConfig

    orchestrator = PipelineOrchestrator(root, DeployConfig(done_dir_name="upload done"))
    result = await orchestrator.run()
    print(result.relocated, result.pending, result.errored)

    # Retry host deployments for folders already moved
    result = await orchestrator.repair()
"""
from .models import (
    DeployConfig,
    FolderState,
    FolderUnit,
    ProjectRecord,
    StageName,
    StageResult,
    StageStatus,
)
from .orchestrator import BatchResult, FolderReport, PipelineError, PipelineOrchestrator
from .services import ProgressStore, RelocationGuard

__version__ = "0.1.0"
__all__ = [
    # Main
    "PipelineOrchestrator",
    "PipelineError",
    "BatchResult",
    "FolderReport",
    # Models
    "DeployConfig",
    "FolderState",
    "FolderUnit",
    "ProjectRecord",
    "StageName",
    "StageResult",
    "StageStatus",
    # Services
    "ProgressStore",
    "RelocationGuard",
]
