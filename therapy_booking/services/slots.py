"""Slot generation and weekly-grid normalization.

Pure functions: no database access and no clock reads, so the same inputs
always give the same slots. Window and busy inputs are duck-typed, so ORM
rows (``AvailabilityRule``, ``DateOverride``, ``Appointment``) can be passed
straight in alongside the named tuples defined here.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, NamedTuple

from therapy_booking.errors import ValidationFailedError

# Grid cells are whole hours; a run ending at hour 23 closes at the last minute of the day.
END_OF_DAY = time(23, 59)


class Slot(NamedTuple):
    """Candidate appointment start on a given date."""
    date: date
    time: time
    available: bool


class TimeWindow(NamedTuple):
    """Open window within a single day."""
    start_time: time
    end_time: time


class WeeklyWindow(NamedTuple):
    """Open window on a weekday (0 = Sunday)."""
    day_of_week: int
    start_time: time
    end_time: time


class BusyInterval(NamedTuple):
    """Occupied half-open interval [scheduled_at, scheduled_at + duration)."""
    scheduled_at: datetime
    duration_minutes: int


class GridCell(NamedTuple):
    """One (weekday, hour) cell of the therapist calendar editor."""
    day_of_week: int
    hour: int
    available: bool = True


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def weekday_index(target_date: date) -> int:
    """Weekday of a calendar date, counted from Sunday = 0."""
    return (target_date.weekday() + 1) % 7


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return start_a < end_b and start_b < end_a


def generate_slots(
    target_date: date,
    windows: Iterable,
    busy: Iterable,
    step_minutes: int = 60,
) -> list[Slot]:
    """Walk each window in fixed steps and flag slots that collide with busy intervals.

    A slot covers [start, start + step). It is unavailable iff that interval
    overlaps any busy interval. Slots come back sorted by time, one per
    distinct start even when windows overlap.
    """
    if step_minutes <= 0:
        raise ValidationFailedError("Slot length must be a positive number of minutes.")

    busy_ranges = [
        (interval.scheduled_at, interval.scheduled_at + timedelta(minutes=interval.duration_minutes))
        for interval in busy
    ]

    starts: set[int] = set()
    for window in windows:
        offset = to_minutes(window.start_time)
        end = to_minutes(window.end_time)
        while offset < end:
            starts.add(offset)
            offset += step_minutes

    slots = []
    for offset in sorted(starts):
        slot_start = datetime.combine(target_date, from_minutes(offset))
        slot_end = slot_start + timedelta(minutes=step_minutes)
        taken = any(
            intervals_overlap(slot_start, slot_end, busy_start, busy_end)
            for busy_start, busy_end in busy_ranges
        )
        slots.append(Slot(date=target_date, time=slot_start.time(), available=not taken))

    return slots


def normalize_grid(cells: Iterable) -> list[WeeklyWindow]:
    """Fold selected (day, hour) cells into one window per run of consecutive hours.

    {Tue: 9, 10, 14, 15} gives Tue 09:00-11:00 and Tue 14:00-16:00; the gap
    stays closed. Later cells for the same (day, hour) override earlier ones.
    """
    selected: dict[tuple[int, int], bool] = {}
    for cell in cells:
        if not 0 <= cell.day_of_week <= 6:
            raise ValidationFailedError(f"Invalid day of week: {cell.day_of_week}.")
        if not 0 <= cell.hour <= 23:
            raise ValidationFailedError(f"Invalid hour: {cell.hour}.")
        selected[(cell.day_of_week, cell.hour)] = cell.available

    hours_by_day: dict[int, list[int]] = {}
    for (day, hour), available in selected.items():
        if available:
            hours_by_day.setdefault(day, []).append(hour)

    windows = []
    for day in sorted(hours_by_day):
        hours = sorted(hours_by_day[day])
        run_start = previous = hours[0]
        for hour in hours[1:]:
            if hour != previous + 1:
                windows.append(_hour_window(day, run_start, previous))
                run_start = hour
            previous = hour
        windows.append(_hour_window(day, run_start, previous))

    return windows


def _hour_window(day: int, first_hour: int, last_hour: int) -> WeeklyWindow:
    end_time = END_OF_DAY if last_hour == 23 else time(last_hour + 1)
    return WeeklyWindow(day_of_week=day, start_time=time(first_hour), end_time=end_time)


def expand_to_grid(windows: Iterable) -> list[GridCell]:
    """Inverse of ``normalize_grid``: one available cell per hour a window touches."""
    cells = []
    for window in windows:
        end = to_minutes(window.end_time)
        hour = window.start_time.hour
        while hour * 60 < end:
            cells.append(GridCell(day_of_week=window.day_of_week, hour=hour))
            hour += 1
    return sorted(cells)
