"""Notification preference routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from pillar.api.deps import get_current_user_id, get_db
from pillar.domain.common.errors import ValidationError
from pillar.domain.notifications.schedule import is_valid_hhmm, is_valid_timezone
from pillar.infra.db.repositories.preference_repo import PreferenceRepository

router = APIRouter()

MAX_REMINDER_OFFSET_MINUTES = 60 * 24 * 30
MAX_DAYS_BEFORE = 30
MAX_DUE_DATE_REMINDERS = 10


class DueDateReminder(BaseModel):
    """Remind days_before the due date at a local HH:MM time."""

    model_config = ConfigDict(populate_by_name=True)

    days_before: int = Field(alias="daysBefore", ge=0, le=MAX_DAYS_BEFORE)
    time: str

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not is_valid_hhmm(value):
            raise ValueError("must be a 24-hour HH:MM time")
        return value

    def to_stored(self) -> dict:
        return self.model_dump(by_alias=True)


class PreferencesResponse(BaseModel):
    """A user's notification preferences."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    enable_in_app_notifications: bool = Field(alias="enableInAppNotifications")
    enable_browser_push: bool = Field(alias="enableBrowserPush")
    quiet_hours_enabled: bool = Field(alias="quietHoursEnabled")
    quiet_hours_start: str = Field(alias="quietHoursStart")
    quiet_hours_end: str = Field(alias="quietHoursEnd")
    enable_overdue_summary: bool = Field(alias="enableOverdueSummary")
    enable_daily_summary: bool = Field(alias="enableDailySummary")
    daily_summary_time: str = Field(alias="dailySummaryTime")
    reminder_timings: List[int] = Field(alias="reminderTimings")
    due_date_reminders: List[DueDateReminder] = Field(alias="dueDateReminders")
    timezone: str
    timezone_detected: bool = Field(alias="timezoneDetected")


class PreferencesUpdateRequest(BaseModel):
    """Partial update. camelCase and snake_case names are both accepted; unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enable_in_app_notifications: Optional[bool] = Field(default=None, alias="enableInAppNotifications")
    enable_browser_push: Optional[bool] = Field(default=None, alias="enableBrowserPush")
    quiet_hours_enabled: Optional[bool] = Field(default=None, alias="quietHoursEnabled")
    quiet_hours_start: Optional[str] = Field(default=None, alias="quietHoursStart")
    quiet_hours_end: Optional[str] = Field(default=None, alias="quietHoursEnd")
    enable_overdue_summary: Optional[bool] = Field(default=None, alias="enableOverdueSummary")
    enable_daily_summary: Optional[bool] = Field(default=None, alias="enableDailySummary")
    daily_summary_time: Optional[str] = Field(default=None, alias="dailySummaryTime")
    reminder_timings: Optional[List[int]] = Field(default=None, alias="reminderTimings")
    due_date_reminders: Optional[List[DueDateReminder]] = Field(default=None, alias="dueDateReminders")
    timezone: Optional[str] = None

    @field_validator("quiet_hours_start", "quiet_hours_end", "daily_summary_time")
    @classmethod
    def _check_hhmm(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_hhmm(value):
            raise ValueError("must be a 24-hour HH:MM time")
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_timezone(value):
            raise ValueError("must be an IANA timezone name")
        return value

    @field_validator("reminder_timings")
    @classmethod
    def _check_timings(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return value
        for minutes in value:
            if minutes < 0 or minutes > MAX_REMINDER_OFFSET_MINUTES:
                raise ValueError(f"offsets must be between 0 and {MAX_REMINDER_OFFSET_MINUTES} minutes")
        return sorted(set(value), reverse=True)

    @field_validator("due_date_reminders")
    @classmethod
    def _check_due_date_reminders(cls, value: Optional[List[DueDateReminder]]) -> Optional[List[DueDateReminder]]:
        if value is not None and len(value) > MAX_DUE_DATE_REMINDERS:
            raise ValueError(f"at most {MAX_DUE_DATE_REMINDERS} due-date reminders")
        return value


class TimezoneRequest(BaseModel):
    timezone: str


@router.get("", response_model=PreferencesResponse)
async def get_preferences(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's preferences, creating the defaults on first read."""
    repo = PreferenceRepository(db)
    return await repo.get_or_create(current_user_id)


@router.patch("", response_model=PreferencesResponse)
async def update_preferences(
    request: PreferencesUpdateRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    values = request.model_dump(exclude_unset=True, exclude_none=True)
    if request.due_date_reminders is not None:
        values["due_date_reminders"] = [r.to_stored() for r in request.due_date_reminders]
    if "timezone" in values:
        # An explicit choice is never replaced by auto-detection
        values["timezone_detected"] = True
    repo = PreferenceRepository(db)
    return await repo.update(current_user_id, values)


@router.post("/timezone")
async def detect_timezone(
    request: TimezoneRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Record the client's detected timezone. Only the first report is applied."""
    if not is_valid_timezone(request.timezone):
        raise ValidationError(f"Unknown timezone: {request.timezone}")
    repo = PreferenceRepository(db)
    prefs, applied = await repo.apply_detected_timezone(current_user_id, request.timezone)
    return {"timezone": prefs.timezone, "applied": applied}
