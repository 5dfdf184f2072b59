"""Notification domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    REMINDER = "reminder"
    OVERDUE = "overdue"
    DAILY_SUMMARY = "daily-summary"


class PushPlatform(str, Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


NATIVE_PLATFORMS = (PushPlatform.ANDROID.value, PushPlatform.IOS.value)

REMINDER_TITLE = "Task reminder"
DUE_SOON_TITLE_PREFIX = "Task due in"
OVERDUE_TITLE = "Task is overdue"
DAILY_SUMMARY_TITLE = "Daily Summary"

TAG_PREFIX = "pillar"

# "daysBefore" the due date at local "time"; 1 day before at 09:00, then on the day at 08:00
DEFAULT_DUE_DATE_REMINDERS = (
    {"daysBefore": 1, "time": "09:00"},
    {"daysBefore": 0, "time": "08:00"},
)


class PushAction(BaseModel):
    """An action button the client renders on a push notification."""

    action: str
    title: str


# Single-task notifications can be acted on from the notification itself.
TASK_PUSH_ACTIONS = [
    PushAction(action="complete", title="Mark Complete"),
    PushAction(action="snooze", title="Snooze 1 Day"),
]


class DeliveryPayload(BaseModel):
    """Channel-agnostic push payload. Serialized with camelCase keys, None fields dropped."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    message: str
    notification_id: Optional[str] = Field(default=None, alias="notificationId")
    task_id: Optional[str] = Field(default=None, alias="taskId")
    tag: Optional[str] = None
    url: Optional[str] = None
    actions: Optional[list[PushAction]] = None
    notification_type: Optional[str] = Field(default=None, alias="notificationType")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class TaskView:
    """Read-only snapshot of the task fields the rule engine needs."""

    id: str
    user_id: str
    title: str
    board_id: Optional[str] = None
    priority: Optional[str] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    reminder_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: Any) -> "TaskView":
        return cls(
            id=model.id,
            user_id=model.user_id,
            title=model.title,
            board_id=model.board_id,
            priority=model.priority,
            assignee_id=model.assignee_id,
            due_date=model.due_date,
            reminder_at=model.reminder_at,
            completed_at=model.completed_at,
        )

    def preview(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "priority": self.priority, "boardId": self.board_id}


@dataclass(frozen=True)
class PreferenceView:
    """Read-only snapshot of a user's notification preferences."""

    user_id: str
    enable_in_app_notifications: bool = True
    enable_browser_push: bool = False
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"
    enable_overdue_summary: bool = True
    enable_daily_summary: bool = True
    daily_summary_time: str = "09:00"
    reminder_timings: tuple[int, ...] = (1440, 60, 15)
    timezone: str = "UTC"

    @classmethod
    def from_model(cls, model: Any) -> "PreferenceView":
        return cls(
            user_id=model.user_id,
            enable_in_app_notifications=model.enable_in_app_notifications,
            enable_browser_push=model.enable_browser_push,
            quiet_hours_enabled=model.quiet_hours_enabled,
            quiet_hours_start=model.quiet_hours_start,
            quiet_hours_end=model.quiet_hours_end,
            enable_overdue_summary=model.enable_overdue_summary,
            enable_daily_summary=model.enable_daily_summary,
            daily_summary_time=model.daily_summary_time,
            reminder_timings=tuple(model.reminder_timings or ()),
            timezone=model.timezone or "UTC",
        )


@dataclass
class EvaluationResult:
    """Outcome of one user's evaluation. Mutated in place so a timeout keeps partial progress."""

    user_id: str
    reminders: int = 0
    overdue: int = 0
    daily_summaries: int = 0
    anomalies: int = 0
    timed_out: bool = False
    created: list[dict[str, Any]] = field(default_factory=list)  # serialized notifications, creation order

    @property
    def total(self) -> int:
        return self.reminders + self.overdue + self.daily_summaries

    def as_counts(self) -> dict[str, int]:
        return {
            "reminders": self.reminders,
            "overdue": self.overdue,
            "dailySummaries": self.daily_summaries,
        }


@dataclass
class SweepResult:
    """Aggregate over all users evaluated in one sweep."""

    users: int = 0
    reminders: int = 0
    overdue: int = 0
    daily_summaries: int = 0
    anomalies: int = 0
    timed_out_users: list[str] = field(default_factory=list)
    failed_users: list[str] = field(default_factory=list)

    def add(self, result: EvaluationResult) -> None:
        self.users += 1
        self.reminders += result.reminders
        self.overdue += result.overdue
        self.daily_summaries += result.daily_summaries
        self.anomalies += result.anomalies
        if result.timed_out:
            self.timed_out_users.append(result.user_id)

    @property
    def total(self) -> int:
        return self.reminders + self.overdue + self.daily_summaries


def notification_snapshot(model: Any) -> dict[str, Any]:
    """Plain-dict copy of a persisted notification, safe to keep after the session rolls back."""
    created_at = model.created_at
    return {
        "id": model.id,
        "userId": model.user_id,
        "taskId": model.task_id,
        "type": model.type,
        "title": model.title,
        "message": model.message,
        "read": model.read,
        "metadata": model.meta or {},
        "createdAt": created_at.isoformat() if created_at else None,
    }
