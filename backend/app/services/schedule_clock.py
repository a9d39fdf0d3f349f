"""Recurrence arithmetic for survey schedules.

``compute_next_run`` is a pure function: no I/O, no wall-clock reads. It works
on anything exposing the schedule attributes (a ``SurveySchedule`` row or a
``ScheduleRule``). Day and time arithmetic happens in the schedule's own
timezone; results are returned as UTC-aware datetimes.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.errors import InvalidScheduleConfig
from app.models.schedule import SCHEDULE_TYPES

_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Longest DST gap we will walk through minute by minute (Lord Howe is 30 min,
# most zones 60 min; anything past this is a broken tz database).
_MAX_GAP_MINUTES = 3 * 60


@dataclass(frozen=True)
class ScheduleRule:
    """Immutable view of the recurrence fields of a schedule."""

    schedule_type: str
    start_date: datetime
    time_of_day: str = "09:00"
    timezone: str = "UTC"
    end_date: datetime | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None
    frequency_value: int | None = None
    is_active: bool = True
    last_run: datetime | None = None

    @classmethod
    def from_schedule(cls, schedule) -> ScheduleRule:
        return cls(
            schedule_type=schedule.schedule_type,
            start_date=schedule.start_date,
            time_of_day=schedule.time_of_day,
            timezone=schedule.timezone,
            end_date=schedule.end_date,
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
            frequency_value=schedule.frequency_value,
            is_active=bool(schedule.is_active),
            last_run=schedule.last_run,
        )


def as_utc(value: datetime) -> datetime:
    """Normalise to UTC. Naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_time_of_day(value: str) -> time:
    match = _TIME_OF_DAY.match(value or "")
    if not match:
        raise InvalidScheduleConfig(
            "Invalid schedule configuration",
            [f'time_of_day must be HH:mm (24h), got "{value}"'],
        )
    return time(int(match.group(1)), int(match.group(2)))


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidScheduleConfig(
            "Invalid schedule configuration", [f'Unknown timezone "{name}"']
        ) from None


def validate_schedule_config(schedule) -> None:
    """Raise InvalidScheduleConfig listing every problem with the rule."""
    errors: list[str] = []
    kind = schedule.schedule_type

    if kind not in SCHEDULE_TYPES:
        errors.append(f'Unknown schedule type "{kind}"')
    if kind == "weekly":
        if schedule.day_of_week is None:
            errors.append("Weekly schedules require day_of_week")
        elif not 0 <= schedule.day_of_week <= 6:
            errors.append("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if kind == "monthly":
        if schedule.day_of_month is None:
            errors.append("Monthly schedules require day_of_month")
        elif not 1 <= schedule.day_of_month <= 31:
            errors.append("day_of_month must be between 1 and 31")
    if kind == "custom" and (schedule.frequency_value is None or schedule.frequency_value < 1):
        errors.append("Custom schedules require a frequency_value of at least 1 day")

    if not _TIME_OF_DAY.match(schedule.time_of_day or ""):
        errors.append(f'time_of_day must be HH:mm (24h), got "{schedule.time_of_day}"')
    try:
        _zone(schedule.timezone)
    except InvalidScheduleConfig as exc:
        errors.extend(exc.errors)

    if schedule.start_date is None:
        errors.append("start_date is required")
    elif schedule.end_date is not None and as_utc(schedule.end_date) < as_utc(schedule.start_date):
        errors.append("end_date must not be before start_date")

    if errors:
        raise InvalidScheduleConfig("Invalid schedule configuration", errors)


def _exists(local: datetime) -> bool:
    """False when the wall-clock time falls into a DST gap."""
    roundtrip = local.astimezone(timezone.utc).astimezone(local.tzinfo)
    return roundtrip.replace(tzinfo=None) == local.replace(tzinfo=None)


def _at_wall_time(day: date, at: time, tz: ZoneInfo) -> datetime:
    """UTC instant of ``at`` on ``day`` in ``tz``.

    A time skipped by a DST transition moves forward to the first wall-clock
    minute that exists (the transition itself). Ambiguous times resolve to the
    first occurrence (fold=0).
    """
    naive = datetime.combine(day, at)
    for _ in range(_MAX_GAP_MINUTES):
        local = naive.replace(tzinfo=tz)
        if _exists(local):
            return local.astimezone(timezone.utc)
        naive += timedelta(minutes=1)
    raise InvalidScheduleConfig(
        "Invalid schedule configuration",
        [f"No valid local time near {day.isoformat()} {at.strftime('%H:%M')} in {tz.key}"],
    )


def _daily_days(first: date) -> Iterator[date]:
    day = first
    while True:
        yield day
        day += timedelta(days=1)


def _weekly_days(first: date, day_of_week: int) -> Iterator[date]:
    # Python: Monday=0; schedules: Sunday=0
    current = (first.weekday() + 1) % 7
    day = first + timedelta(days=(day_of_week - current) % 7)
    while True:
        yield day
        day += timedelta(days=7)


def _clamped(year: int, month: int, day_of_month: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last))


def _monthly_days(first: date, day_of_month: int) -> Iterator[date]:
    year, month = first.year, first.month
    while True:
        yield _clamped(year, month, day_of_month)
        month += 1
        if month > 12:
            year, month = year + 1, 1


def _custom_days(anchor: date, step: int, floor: date, skip_anchor: bool) -> Iterator[date]:
    day = anchor + timedelta(days=step) if skip_anchor else anchor
    if day < floor:
        # jump straight to the period containing ``floor``
        periods = (floor - day).days // step
        day += timedelta(days=periods * step)
    while True:
        yield day
        day += timedelta(days=step)


def compute_next_run(schedule, reference: datetime) -> datetime | None:
    """Next due instant of ``schedule`` at or after ``reference``, or None if retired."""
    if not schedule.is_active:
        return None
    validate_schedule_config(schedule)

    reference = as_utc(reference)
    start = as_utc(schedule.start_date)
    end = as_utc(schedule.end_date) if schedule.end_date is not None else None

    if schedule.schedule_type == "one_time":
        if schedule.last_run is None and reference < start:
            return start
        return None

    tz = _zone(schedule.timezone)
    at = parse_time_of_day(schedule.time_of_day)
    floor = max(reference, start)
    floor_day = floor.astimezone(tz).date()

    kind = schedule.schedule_type
    if kind == "daily":
        days = _daily_days(floor_day)
    elif kind == "weekly":
        days = _weekly_days(floor_day, schedule.day_of_week)
    elif kind == "monthly":
        days = _monthly_days(floor_day, schedule.day_of_month)
    else:
        anchor = schedule.last_run if schedule.last_run is not None else start
        days = _custom_days(
            as_utc(anchor).astimezone(tz).date(),
            schedule.frequency_value,
            floor_day,
            skip_anchor=schedule.last_run is not None,
        )

    for day in days:
        candidate = _at_wall_time(day, at, tz)
        if candidate >= floor:
            break

    if end is not None and candidate > end:
        return None
    return candidate


def prime_next_run(schedule, now: datetime) -> datetime | None:
    """First ``next_run`` for a newly created or re-activated schedule.

    Differs from ``compute_next_run`` only for a one-time schedule whose start
    has already passed without a run: it becomes due immediately.
    """
    if (
        schedule.schedule_type == "one_time"
        and schedule.is_active
        and schedule.last_run is None
    ):
        validate_schedule_config(schedule)
        return as_utc(schedule.start_date)
    return compute_next_run(schedule, now)
