from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .project_models import Column, Granularity, HeaderGroup

# Column sizing knobs.
MIN_COL_WIDTH = 28.0
BASE_COL_WIDTH: dict[str, float] = {"day": 40.0, "week": 120.0, "month": 60.0}
# Average Gregorian month; keeps month columns uniform at the cost of a small drift at boundaries.
AVG_MONTH_DAYS = 30.4375
UNIT_DAYS: dict[str, float] = {"day": 1.0, "week": 7.0, "month": AVG_MONTH_DAYS}
DAY_PAD_DAYS = 4
MIN_BAR_WIDTH = 4.0
GRID_EXTRA_WIDTH = 60.0
MIN_GRID_WIDTH = 600.0

_SECONDS_PER_DAY = 86400.0


def column_width(granularity: Granularity, zoom: float) -> float:
    return max(MIN_COL_WIDTH, BASE_COL_WIDTH[granularity] * zoom)


@dataclass(frozen=True)
class TimelineScale:
    """
    Ordered time columns plus the date <-> pixel mapping shared by layout,
    routing and navigation.
    """

    granularity: Granularity
    zoom: float
    col_width: float
    columns: tuple[Column, ...]

    @property
    def origin(self) -> datetime:
        return self.columns[0].date

    @property
    def unit_seconds(self) -> float:
        return UNIT_DAYS[self.granularity] * _SECONDS_PER_DAY

    @property
    def total_width(self) -> float:
        return len(self.columns) * self.col_width

    @property
    def grid_width(self) -> float:
        return max(self.total_width + GRID_EXTRA_WIDTH, MIN_GRID_WIDTH)

    def x_of(self, when: datetime | None) -> float:
        """Horizontal pixel offset of `when`; absent dates map to the origin."""
        if when is None:
            return 0.0
        return (when - self.origin).total_seconds() / self.unit_seconds * self.col_width

    def bar_width(self, start: datetime | None, finish: datetime | None) -> float:
        """Width between two instants, never below MIN_BAR_WIDTH; one column when an end is missing."""
        if start is None or finish is None:
            return self.col_width
        return max(MIN_BAR_WIDTH, (finish - start).total_seconds() / self.unit_seconds * self.col_width)

    def today_x(self, now: datetime) -> float | None:
        """Marker position for `now`, or None when it falls outside the columns."""
        x = self.x_of(now)
        if 0 < x < self.total_width:
            return x
        return None

    def header_groups(self) -> list[HeaderGroup]:
        """Month bands over week columns ("January 2024"); empty for other granularities."""
        if self.granularity != "week":
            return []
        groups: list[HeaderGroup] = []
        current_key: str | None = None
        start_idx = 0
        for idx, col in enumerate(self.columns):
            key = col.date.strftime("%B %Y")
            if key != current_key:
                if current_key is not None:
                    groups.append(self._group(current_key, start_idx, idx))
                current_key = key
                start_idx = idx
        if current_key is not None:
            groups.append(self._group(current_key, start_idx, len(self.columns)))
        return groups

    def _group(self, label: str, first: int, end: int) -> HeaderGroup:
        return HeaderGroup(label=label, x=first * self.col_width, width=(end - first) * self.col_width)


def build_scale(min_date: datetime, max_date: datetime, granularity: Granularity, zoom: float) -> TimelineScale:
    """Generate the columns spanning [min_date, max_date] plus the trailing pad."""

    if granularity == "day":
        columns = _day_columns(min_date, max_date)
    elif granularity == "week":
        columns = _week_columns(min_date, max_date)
    elif granularity == "month":
        columns = _month_columns(min_date, max_date)
    else:
        raise ValueError(f"unknown granularity '{granularity}'")
    return TimelineScale(
        granularity=granularity,
        zoom=zoom,
        col_width=column_width(granularity, zoom),
        columns=tuple(columns),
    )


def _floor_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _day_columns(min_date: datetime, max_date: datetime) -> list[Column]:
    start = _floor_day(min_date)
    span_days = math.ceil((max_date - min_date).total_seconds() / _SECONDS_PER_DAY)
    total_days = max(1, span_days) + DAY_PAD_DAYS
    columns: list[Column] = []
    for offset in range(total_days + 1):
        day = start + timedelta(days=offset)
        columns.append(
            Column(
                label=str(day.day),
                date=day,
                is_major=day.day == 1,
                is_weekend=day.weekday() >= 5,
            )
        )
    return columns


def _week_columns(min_date: datetime, max_date: datetime) -> list[Column]:
    start = _floor_day(min_date)
    week = start - timedelta(days=start.weekday())
    limit = max_date + timedelta(days=7)
    columns: list[Column] = []
    while week <= limit:
        columns.append(Column(label=f"{week.day} {week.strftime('%b')}", date=week, is_major=week.day <= 7))
        week += timedelta(days=7)
    return columns


def _month_columns(min_date: datetime, max_date: datetime) -> list[Column]:
    month = _floor_day(min_date).replace(day=1)
    limit = _next_month(_floor_day(max_date).replace(day=1))
    columns: list[Column] = []
    while month <= limit:
        columns.append(
            Column(
                label=month.strftime("%b"),
                date=month,
                is_major=month.month == 1,
                sub_label=str(month.year),
            )
        )
        month = _next_month(month)
    return columns


def _next_month(value: datetime) -> datetime:
    if value.month == 12:
        return value.replace(year=value.year + 1, month=1)
    return value.replace(month=value.month + 1)
