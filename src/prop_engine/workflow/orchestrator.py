"""Central workflow orchestrator for the prop engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..utils import get_logger
from .stages import StageResult, StageStatus, get_stage, list_stages

logger = get_logger(__name__)


class WorkflowType(Enum):
    """Types of predefined workflows."""

    PRE_GAME = "pre_game"  # score_props
    POST_GAME = "post_game"  # reconcile_outcomes -> evaluate_models
    FULL = "full"  # All stages in order


@dataclass
class WorkflowResult:
    """Result of executing a workflow."""

    workflow_type: str
    prediction_date: date
    stage_results: List[StageResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        """Check if all stages succeeded or were skipped."""
        return all(
            r.status in (StageStatus.SUCCESS, StageStatus.SKIPPED)
            for r in self.stage_results
        )

    @property
    def failed_stages(self) -> List[str]:
        """Get list of failed stage names."""
        return [r.stage_name for r in self.stage_results if r.status == StageStatus.FAILED]

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate total duration in seconds."""
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary."""
        lines = [
            f"Workflow: {self.workflow_type}",
            f"Date: {self.prediction_date.isoformat()}",
            f"Status: {'SUCCESS' if self.success else 'FAILED'}",
            "",
            "Stage Results:",
        ]

        for result in self.stage_results:
            status_icon = {
                StageStatus.SUCCESS: "✓",
                StageStatus.FAILED: "✗",
                StageStatus.SKIPPED: "○",
                StageStatus.PENDING: "·",
                StageStatus.RUNNING: "►",
            }.get(result.status, "?")

            duration = f" ({result.duration_seconds:.1f}s)" if result.duration_seconds else ""
            lines.append(f"  {status_icon} {result.stage_name}: {result.message}{duration}")

        if self.duration_seconds:
            lines.append("")
            lines.append(f"Total duration: {self.duration_seconds:.1f}s")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "workflow_type": self.workflow_type,
            "prediction_date": self.prediction_date.isoformat(),
            "success": self.success,
            "stage_results": [r.to_dict() for r in self.stage_results],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
        }


class Orchestrator:
    """Run single stages or whole workflows for a prediction date.

    Providers and per-stage overrides are passed through ``**kwargs``; every
    stage ignores the arguments it does not use.
    """

    WORKFLOWS = {
        WorkflowType.PRE_GAME: ["score_props"],
        WorkflowType.POST_GAME: ["reconcile_outcomes", "evaluate_models"],
        WorkflowType.FULL: ["score_props", "reconcile_outcomes", "evaluate_models"],
    }

    def __init__(self):
        self.settings = get_settings()
        self.logger = get_logger(f"{__name__}.Orchestrator")

    def get_status(self) -> Dict[str, Any]:
        """Configuration summary plus the workflows and stages on offer."""
        return {
            "season": self.settings.current_season,
            "model_version": self.settings.model_version,
            "probability_strategy": self.settings.probability_strategy,
            "workflows": {wf.value: stages for wf, stages in self.WORKFLOWS.items()},
            "all_stages": list_stages(),
        }

    def run_stage(
        self,
        stage_name: str,
        prediction_date: Optional[date] = None,
        **kwargs,
    ) -> StageResult:
        """
        Run a single stage.

        Args:
            stage_name: Name of the stage to run
            prediction_date: Day to run for (default: today)
            **kwargs: Additional arguments passed to stage

        Returns:
            StageResult with execution outcome
        """
        prediction_date = prediction_date or date.today()
        self.logger.info(f"Running stage '{stage_name}' for {prediction_date}")

        stage = get_stage(stage_name)
        result = stage.execute(prediction_date, **kwargs)

        self.logger.info(f"Stage '{stage_name}' completed: {result.status.value}")
        return result

    def run_workflow(
        self,
        workflow_type: WorkflowType,
        prediction_date: Optional[date] = None,
        stop_on_failure: bool = True,
        **kwargs,
    ) -> WorkflowResult:
        """
        Run a complete workflow.

        Args:
            workflow_type: Type of workflow to run
            prediction_date: Day to run for (default: today)
            stop_on_failure: Stop workflow if a stage fails (default True)
            **kwargs: Additional arguments passed to all stages

        Returns:
            WorkflowResult with all stage outcomes
        """
        started_at = datetime.now()
        prediction_date = prediction_date or date.today()

        self.logger.info(f"Starting {workflow_type.value} workflow for {prediction_date}")

        stage_results = []
        for stage_name in self.WORKFLOWS.get(workflow_type, []):
            result = self.run_stage(stage_name, prediction_date, **kwargs)
            stage_results.append(result)

            if result.status == StageStatus.FAILED and stop_on_failure:
                self.logger.warning(f"Workflow stopped due to failure in '{stage_name}'")
                break

        workflow_result = WorkflowResult(
            workflow_type=workflow_type.value,
            prediction_date=prediction_date,
            stage_results=stage_results,
            started_at=started_at,
            ended_at=datetime.now(),
        )

        status = "SUCCESS" if workflow_result.success else "FAILED"
        self.logger.info(f"Workflow {workflow_type.value} completed: {status}")

        return workflow_result

    def run_pre_game(self, prediction_date: Optional[date] = None, **kwargs) -> WorkflowResult:
        """Convenience method for running PRE_GAME workflow."""
        return self.run_workflow(WorkflowType.PRE_GAME, prediction_date, **kwargs)

    def run_post_game(self, prediction_date: Optional[date] = None, **kwargs) -> WorkflowResult:
        """Convenience method for running POST_GAME workflow."""
        return self.run_workflow(WorkflowType.POST_GAME, prediction_date, **kwargs)

    def run_full(self, prediction_date: Optional[date] = None, **kwargs) -> WorkflowResult:
        """Convenience method for running FULL workflow."""
        return self.run_workflow(WorkflowType.FULL, prediction_date, **kwargs)
