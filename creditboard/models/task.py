"""Task data model for creditboard."""

from datetime import date, datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class Quadrant(str, Enum):
    """Eisenhower matrix cell (importance x urgency)."""
    Q1 = "Q1"  # Important & urgent
    Q2 = "Q2"  # Important, not urgent
    Q3 = "Q3"  # Urgent, not important
    Q4 = "Q4"  # Neither


class TaskType(str, Enum):
    """Credit-operations task type enumeration."""
    DISBURSEMENT = "disbursement"
    APPRAISAL = "appraisal"
    FUNDRAISING = "fundraising"
    COLLECTION = "collection"
    LOAN_FILE = "loan_file"
    COLLATERAL_FILE = "collateral_file"
    OTHER = "other"


class LifecycleState(str, Enum):
    """Derived lifecycle state of a task."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Task(BaseModel):
    """Canonical Task model."""

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    title: str = Field(..., min_length=1, description="Task title")
    quadrant: Quadrant = Field(..., description="Priority quadrant")
    type: TaskType = Field(..., description="Business operation type")
    note: Optional[str] = Field(None, description="Free-text note (only for type 'other')")
    deadline: Optional[date] = Field(None, description="Deadline (date-only)")

    amount_disbursement: Optional[int] = Field(None, ge=0, description="Disbursed amount")
    service_fee: Optional[int] = Field(None, ge=0, description="Service fee collected on disbursement")
    amount_recovery: Optional[int] = Field(None, ge=0, description="Recovered (collected) amount")
    amount_mobilized: Optional[int] = Field(None, ge=0, description="Mobilized (fundraising) amount")

    completed: bool = Field(False, description="Whether the task is completed")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp (null unless completed)")
    archived_at: Optional[datetime] = Field(None, description="Archive timestamp (null if on the active board)")
    position: int = Field(0, description="Ordering key within the quadrant's active tasks")
    created_at: datetime = Field(..., description="Task creation timestamp")

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def lifecycle_state(self) -> LifecycleState:
        if not self.completed:
            return LifecycleState.ACTIVE
        if self.archived_at is None:
            return LifecycleState.COMPLETED
        return LifecycleState.ARCHIVED

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
