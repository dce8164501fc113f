"""Orchestrator package - drives project folders through the deployment pipeline."""
from .core import PipelineError, PipelineOrchestrator
from .models import BatchResult, FolderReport
from .stages import StageRunner

__all__ = ["PipelineOrchestrator", "PipelineError", "BatchResult", "FolderReport", "StageRunner"]
