"""Notification database models."""
from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, Index

from pillar.domain.common.types import utcnow
from pillar.domain.notifications.models import DEFAULT_DUE_DATE_REMINDERS
from pillar.infra.db.base import Base


class NotificationModel(Base):
    """In-app notification: reminder, overdue or daily-summary."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        Index("ix_notifications_task_type", "task_id", "type"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    task_id = Column(String, nullable=True)  # absent for daily summaries
    type = Column(String, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    dismissed = Column(Boolean, default=False, nullable=False)
    scheduled_for = Column(DateTime, nullable=True)
    snoozed_until = Column(DateTime, nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class NotificationPreferenceModel(Base):
    """Per-user notification settings. Local times are "HH:MM" in the user's timezone."""

    __tablename__ = "notification_preferences"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, unique=True, index=True)
    enable_in_app_notifications = Column(Boolean, default=True, nullable=False)
    enable_browser_push = Column(Boolean, default=False, nullable=False)
    quiet_hours_enabled = Column(Boolean, default=False, nullable=False)
    quiet_hours_start = Column(String, default="22:00", nullable=False)
    quiet_hours_end = Column(String, default="08:00", nullable=False)
    enable_overdue_summary = Column(Boolean, default=True, nullable=False)
    enable_daily_summary = Column(Boolean, default=True, nullable=False)
    daily_summary_time = Column(String, default="09:00", nullable=False)
    reminder_timings = Column(JSON, default=lambda: [1440, 60, 15], nullable=False)  # minutes before due
    due_date_reminders = Column(JSON, default=lambda: [dict(r) for r in DEFAULT_DUE_DATE_REMINDERS], nullable=False)
    timezone = Column(String, default="UTC", nullable=False)
    timezone_detected = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
