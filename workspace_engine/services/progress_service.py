"""Project completion percentage.

Two stages, always in this order: a raw percentage from the task list
(time-estimate weighted, falling back to task count), then a clamp driven by
the owning project's lifecycle status. An empty task list skips both and
uses a status-based estimate instead. Every dashboard and the workspace view
consume this one implementation.
"""
import logging
import math
from typing import Iterable, Union

from workspace_engine.models.progress_models import EfficiencyLabelEnum, ProgressFormulaEnum, WorkspaceProgress
from workspace_engine.models.project_models import ProjectStatusEnum
from workspace_engine.models.task_models import TaskPublic, TaskStatusEnum

logger = logging.getLogger(__name__)

StatusLike = Union[ProjectStatusEnum, str, None]


def round_half_up(value: float) -> int:
    # Halves always round toward +infinity, negatives included
    return int(math.floor(value + 0.5))


def _normalize_status(status: StatusLike):
    if isinstance(status, ProjectStatusEnum) or status is None:
        return status
    try:
        return ProjectStatusEnum(status)
    except ValueError:
        return status


def _format_hours(hours: float) -> str:
    return f"{hours:g}"


def status_based_progress(project_status: StatusLike) -> int:
    status = _normalize_status(project_status)
    if status == ProjectStatusEnum.OPEN:
        return 0
    if status == ProjectStatusEnum.IN_PROGRESS:
        return 25
    if status == ProjectStatusEnum.COMPLETED:
        return 100
    return 0


def apply_status_clamp(percentage: int, project_status: StatusLike) -> int:
    status = _normalize_status(project_status)
    if status == ProjectStatusEnum.OPEN:
        return min(percentage, 5)
    if status == ProjectStatusEnum.IN_PROGRESS:
        return max(min(percentage, 95), 5)
    if status == ProjectStatusEnum.COMPLETED:
        return 100
    return max(min(percentage, 100), 0)


def compute_progress(tasks: Iterable[TaskPublic], project_status: StatusLike) -> WorkspaceProgress:
    tasks = list(tasks)

    if not tasks:
        status = _normalize_status(project_status)
        label = status.value if isinstance(status, ProjectStatusEnum) else str(status)
        return WorkspaceProgress(
            percentage=status_based_progress(status),
            formula_used=ProgressFormulaEnum.STATUS_BASED,
            calculation=f"Status: {label}",
        )

    done = [t for t in tasks if t.status == TaskStatusEnum.DONE]
    total_estimated_hours = sum((t.estimated_hours or 0) for t in tasks)
    completed_estimated_hours = sum((t.estimated_hours or 0) for t in done)
    actual_hours_spent = sum((t.actual_hours or 0) for t in tasks)

    if total_estimated_hours > 0:
        raw = round_half_up(completed_estimated_hours * 100 / total_estimated_hours)
        formula = ProgressFormulaEnum.ESTIMATED_HOURS_WEIGHTED
        calculation = (f"({_format_hours(completed_estimated_hours)} × 100) ÷ "
                       f"{_format_hours(total_estimated_hours)} = {raw}%")
    else:
        raw = round_half_up(len(done) * 100 / len(tasks))
        formula = ProgressFormulaEnum.TASK_COUNT
        calculation = f"{len(done)}/{len(tasks)} tasks = {raw}%"

    percentage = apply_status_clamp(raw, project_status)
    if percentage != raw:
        logger.debug(f"Progress {raw}% clamped to {percentage}% for project status {project_status}")

    return WorkspaceProgress(
        percentage=percentage,
        total_tasks=len(tasks),
        completed_tasks=len(done),
        total_estimated_hours=total_estimated_hours,
        completed_estimated_hours=completed_estimated_hours,
        actual_hours_spent=actual_hours_spent,
        formula_used=formula,
        calculation=calculation,
    )


def efficiency_label(progress: WorkspaceProgress) -> EfficiencyLabelEnum:
    """Compare estimated hours already delivered with the hours actually logged."""
    if progress.total_estimated_hours == 0:
        return EfficiencyLabelEnum.NO_TIME_ESTIMATES
    if progress.actual_hours_spent == 0:
        return EfficiencyLabelEnum.NOT_STARTED

    efficiency = progress.completed_estimated_hours / progress.actual_hours_spent * 100
    if efficiency > 120:
        return EfficiencyLabelEnum.HIGHLY_EFFICIENT
    if efficiency > 100:
        return EfficiencyLabelEnum.AHEAD_OF_ESTIMATE
    if efficiency > 80:
        return EfficiencyLabelEnum.ON_TRACK
    if efficiency > 60:
        return EfficiencyLabelEnum.SLIGHTLY_BEHIND
    return EfficiencyLabelEnum.NEEDS_ATTENTION
