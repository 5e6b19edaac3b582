"""Batch workflows: scoring, reconciliation and evaluation."""

from .stages import (
    WorkflowStage,
    StageResult,
    StageStatus,
    ScoringStage,
    ReconciliationStage,
    EvaluationStage,
    STAGE_REGISTRY,
    get_stage,
    list_stages,
)
from .orchestrator import (
    Orchestrator,
    WorkflowType,
    WorkflowResult,
)

__all__ = [
    # Stage classes
    "WorkflowStage",
    "StageResult",
    "StageStatus",
    "ScoringStage",
    "ReconciliationStage",
    "EvaluationStage",
    # Stage utilities
    "STAGE_REGISTRY",
    "get_stage",
    "list_stages",
    # Orchestrator
    "Orchestrator",
    "WorkflowType",
    "WorkflowResult",
]
