"""Board and task database models.

Boards and tasks are owned by the task CRUD layer; the notification core reads them
and writes only reminder_at, completed_at, column_id and status_history.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, JSON

from pillar.domain.common.types import utcnow
from pillar.infra.db.base import Base


class BoardModel(Base):
    """Kanban board. columns: [{"id", "name", "order"}]; the highest order is the done column."""

    __tablename__ = "boards"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    columns = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TaskModel(Base):
    """Task on a board."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    assignee_id = Column(String, nullable=True, index=True)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    column_id = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String, nullable=False, default="medium")
    order = Column(Integer, nullable=False, default=0)
    due_date = Column(DateTime, nullable=True, index=True)
    reminder_at = Column(DateTime, nullable=True, index=True)  # one-shot; cleared when fired
    completed_at = Column(DateTime, nullable=True)
    # {"frequency": none|daily|weekly|monthly|yearly, "interval": int, "end_date": iso str|None}
    recurrence = Column(JSON, nullable=True)
    subtasks = Column(JSON, nullable=False, default=list)  # [{"title", "completed"}]
    labels = Column(JSON, nullable=False, default=list)
    status_history = Column(JSON, nullable=False, default=list)  # [{"column_id", "timestamp"}]
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
