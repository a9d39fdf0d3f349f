from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ScheduleType = Literal["one_time", "daily", "weekly", "monthly", "custom"]


class ScheduleCreate(BaseModel):
    schedule_type: ScheduleType
    frequency_value: int | None = None
    day_of_week: int | None = None  # 0=Sunday .. 6=Saturday
    day_of_month: int | None = None
    time_of_day: str = "09:00"
    timezone: str | None = None
    start_date: datetime
    end_date: datetime | None = None
    is_active: bool = True


class ScheduleUpdate(BaseModel):
    schedule_type: ScheduleType | None = None
    frequency_value: int | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None
    time_of_day: str | None = None
    timezone: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class ScheduleToggle(BaseModel):
    is_active: bool = Field(...)
