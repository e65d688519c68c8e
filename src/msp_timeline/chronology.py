from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Literal, Sequence

from .project_models import ChronoEvent, Row, Task

JUST_FINISHED_WINDOW = timedelta(days=14)
UPCOMING_WINDOW = timedelta(days=21)
TODAY_FOCUS_SECONDS = 3.0

EventStatus = Literal["completed", "in_progress", "upcoming"]


def key_date(task: Task, now: datetime) -> datetime | None:
    """Finish for tasks already done, otherwise start, falling back to finish."""
    if task.finish is not None and task.finish < now:
        return task.finish
    return task.start if task.start is not None else task.finish


def build_chronology(rows: Iterable[Row], now: datetime) -> list[ChronoEvent]:
    """Visible, dated, non-summary tasks ordered by key date (stable on ties)."""

    events: list[ChronoEvent] = []
    for row in rows:
        task = row.task
        if task.is_summary or not task.is_dated:
            continue
        events.append(ChronoEvent(uid=task.uid, key_date=key_date(task, now)))
    events.sort(key=lambda event: event.key_date)
    return events


def next_index(events: Sequence[ChronoEvent], cursor: int | None, now: datetime) -> int | None:
    """
    Cursor after moving forward.

    With no cursor, jump to the first event at or after `now` (else the last
    event). Otherwise step forward, stopping at the last event.
    """

    if not events:
        return None
    if cursor is None:
        for idx, event in enumerate(events):
            if event.key_date >= now:
                return idx
        return len(events) - 1
    return min(cursor + 1, len(events) - 1)


def prev_index(events: Sequence[ChronoEvent], cursor: int | None, now: datetime) -> int | None:
    """
    Cursor after moving backward.

    With no cursor, jump to the last event before `now` (else the first
    event). Otherwise step back, stopping at index 0.
    """

    if not events:
        return None
    if cursor is None:
        for idx in range(len(events) - 1, -1, -1):
            if events[idx].key_date < now:
                return idx
        return 0
    return max(cursor - 1, 0)


def can_go_next(events: Sequence[ChronoEvent], cursor: int | None) -> bool:
    if not events:
        return False
    return cursor is None or cursor < len(events) - 1


def can_go_prev(events: Sequence[ChronoEvent], cursor: int | None) -> bool:
    if not events:
        return False
    return cursor != 0


def cursor_label(events: Sequence[ChronoEvent], cursor: int | None) -> str | None:
    if cursor is None or not 0 <= cursor < len(events):
        return None
    return f"{cursor + 1}/{len(events)}"


def is_in_progress(task: Task, now: datetime) -> bool:
    return task.start is not None and task.finish is not None and task.start <= now <= task.finish


def is_just_finished(task: Task, now: datetime) -> bool:
    return task.finish is not None and now - JUST_FINISHED_WINDOW <= task.finish <= now


def is_upcoming(task: Task, now: datetime) -> bool:
    return task.start is not None and now <= task.start <= now + UPCOMING_WINDOW


def near_today(rows: Iterable[Row], now: datetime) -> set[str]:
    """Uids of leaf tasks in progress, finished within 14 days, or starting within 21 days."""

    found: set[str] = set()
    for row in rows:
        task = row.task
        if task.is_summary or task.is_milestone:
            continue
        if is_just_finished(task, now) or is_upcoming(task, now) or is_in_progress(task, now):
            found.add(task.uid)
    return found


def event_status(task: Task, now: datetime) -> EventStatus:
    if task.finish is not None and task.finish < now:
        return "completed"
    if is_in_progress(task, now):
        return "in_progress"
    return "upcoming"
