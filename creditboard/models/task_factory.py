"""Task creation factory for creditboard.

This module centralizes task creation logic so that every entry point applies
the same defaults and the same type-scoped financial fields.
"""

import uuid
from datetime import date, datetime
from typing import Optional, Dict, Any

from creditboard.models.task import Task, Quadrant, TaskType
from creditboard.models.constants import FINANCIAL_FIELDS, TYPE_FINANCIAL_FIELDS


def applicable_financial_fields(task_type) -> tuple:
    """Return the financial fields a task type may carry.

    Args:
        task_type: TaskType member or its string value

    Returns:
        Tuple of field names (empty for types without amounts)
    """
    return TYPE_FINANCIAL_FIELDS.get(TaskType(task_type).value, ())


def normalize_task_fields(task_type, note: Optional[str], amounts: Dict[str, Optional[int]]) -> Dict[str, Any]:
    """Scope note and amounts to the task type.

    Fields the type does not carry are cleared; carried fields that are
    missing default to zero, matching what the dashboard form submits.

    Args:
        task_type: TaskType member or its string value
        note: Free-text note (kept only for TaskType.OTHER)
        amounts: Mapping of financial field name to amount

    Returns:
        Dictionary with ``note`` and the four financial fields
    """
    allowed = applicable_financial_fields(task_type)
    fields: Dict[str, Any] = {}
    for name in FINANCIAL_FIELDS:
        if name in allowed:
            fields[name] = amounts.get(name) or 0
        else:
            fields[name] = None

    if TaskType(task_type) == TaskType.OTHER and note and note.strip():
        fields["note"] = note.strip()
    else:
        fields["note"] = None
    return fields


def create_task_base(
    title: str,
    quadrant: Quadrant,
    task_type: TaskType,
    position: int = 0,
    note: Optional[str] = None,
    deadline: Optional[date] = None,
    amount_disbursement: Optional[int] = None,
    service_fee: Optional[int] = None,
    amount_recovery: Optional[int] = None,
    amount_mobilized: Optional[int] = None,
    completed: bool = False,
    now: Optional[datetime] = None,
) -> Task:
    """Create a task with defaults, allowing overrides.

    Args:
        title: Task title (required, stripped)
        quadrant: Target quadrant
        task_type: Business operation type
        position: Ordering key (callers pass max + 1 for the target quadrant)
        note: Free-text note, kept only for TaskType.OTHER
        deadline: Date-only deadline
        amount_disbursement: Disbursed amount (disbursement tasks)
        service_fee: Service fee (disbursement tasks)
        amount_recovery: Recovered amount (collection tasks)
        amount_mobilized: Mobilized amount (fundraising tasks)
        completed: Create the task already completed
        now: Creation timestamp (defaults to utcnow)

    Returns:
        Task object with defaults applied
    """
    now = now or datetime.utcnow()
    scoped = normalize_task_fields(
        task_type,
        note,
        {
            "amount_disbursement": amount_disbursement,
            "service_fee": service_fee,
            "amount_recovery": amount_recovery,
            "amount_mobilized": amount_mobilized,
        },
    )

    return Task(
        id=str(uuid.uuid4()),
        title=title.strip(),
        quadrant=quadrant,
        type=task_type,
        deadline=deadline,
        completed=completed,
        completed_at=now if completed else None,
        archived_at=None,
        position=position,
        created_at=now,
        **scoped,
    )
