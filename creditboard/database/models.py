"""SQLAlchemy database models for creditboard."""

from datetime import datetime
import uuid
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, Date, DateTime, JSON, Index

from typing import Union, TypeVar, Type
from creditboard.database.database import Base
from creditboard.models.task import Quadrant, TaskType

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value)
    except (ValueError, AttributeError):
        return default


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"
    __table_args__ = (
        # Next-position lookups and board loads filter on (quadrant, archived_at).
        Index("ix_tasks_quadrant_archived_at", "quadrant", "archived_at"),
    )

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Basic fields
    title = Column(String, nullable=False)
    quadrant = Column(String, nullable=False, default=Quadrant.Q1.value)
    type = Column(String, nullable=False, default=TaskType.OTHER.value)
    note = Column(String, nullable=True)
    deadline = Column(Date, nullable=True)

    # Financial fields (whole currency units)
    amount_disbursement = Column(BigInteger, nullable=True)
    service_fee = Column(BigInteger, nullable=True)
    amount_recovery = Column(BigInteger, nullable=True)
    amount_mobilized = Column(BigInteger, nullable=True)

    # Lifecycle
    completed = Column(Boolean, nullable=False, default=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True, index=True)

    # Ordering
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from creditboard.models.task import Task

        return Task(
            id=self.id,
            title=self.title,
            quadrant=value_to_enum(self.quadrant, Quadrant, Quadrant.Q1),
            type=value_to_enum(self.type, TaskType, TaskType.OTHER),
            note=self.note,
            deadline=self.deadline,
            amount_disbursement=self.amount_disbursement,
            service_fee=self.service_fee,
            amount_recovery=self.amount_recovery,
            amount_mobilized=self.amount_mobilized,
            completed=bool(self.completed),
            completed_at=self.completed_at,
            archived_at=self.archived_at,
            position=self.position or 0,
            created_at=self.created_at,
        )

    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            title=task.title,
            quadrant=enum_to_value(task.quadrant),
            type=enum_to_value(task.type),
            note=task.note,
            deadline=task.deadline,
            amount_disbursement=task.amount_disbursement,
            service_fee=task.service_fee,
            amount_recovery=task.amount_recovery,
            amount_mobilized=task.amount_mobilized,
            completed=task.completed,
            completed_at=task.completed_at,
            archived_at=task.archived_at,
            position=task.position,
            created_at=task.created_at,
        )


class SettingDB(Base):
    """Key-value settings record (JSON value)."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
