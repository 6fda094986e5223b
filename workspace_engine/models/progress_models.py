from pydantic import BaseModel
from enum import Enum

class ProgressFormulaEnum(str, Enum):
    STATUS_BASED = "status-based"
    ESTIMATED_HOURS_WEIGHTED = "estimated-hours-weighted"
    TASK_COUNT = "task-count"

class EfficiencyLabelEnum(str, Enum):
    NO_TIME_ESTIMATES = "No time estimates"
    NOT_STARTED = "Not started"
    HIGHLY_EFFICIENT = "Highly efficient"
    AHEAD_OF_ESTIMATE = "Ahead of estimate"
    ON_TRACK = "On track"
    SLIGHTLY_BEHIND = "Slightly behind"
    NEEDS_ATTENTION = "Needs attention"

class WorkspaceProgress(BaseModel):
    # Derived on every task list change, never persisted
    percentage: int
    total_tasks: int = 0
    completed_tasks: int = 0
    total_estimated_hours: float = 0
    completed_estimated_hours: float = 0
    actual_hours_spent: float = 0
    formula_used: ProgressFormulaEnum
    calculation: str = ""

    class Config:
        frozen = True
