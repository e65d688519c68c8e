from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from . import chronology
from .hierarchy import top_level_groups
from .project_models import (
    GRANULARITIES,
    SORT_MODES,
    Arrow,
    ChronoEvent,
    Granularity,
    HeaderGroup,
    Project,
    ProjectSummary,
    RenderRow,
    Row,
    SortMode,
)
from .render_rows import ROW_HEIGHT, to_render_rows
from .routing import route_dependencies
from .scroll_sync import ScrollPanel, ScrollSynchronizer
from .timeline_scale import TimelineScale, build_scale
from .visibility import row_index, visible_rows

logger = logging.getLogger(__name__)

MIN_ZOOM = 0.3
MAX_ZOOM = 4.0
ZOOM_STEP = 0.2
EVENT_SCROLL_MARGIN = 120.0
TODAY_SCROLL_MARGIN = 80.0


@dataclass(frozen=True)
class ViewState:
    """All transient UI state; replaced wholesale by every mutator."""

    filter_text: str = ""
    collapsed: frozenset[str] = frozenset()
    sort_mode: SortMode = "outline"
    zoom: float = 1.0
    granularity: Granularity = "week"
    highlighted: str | None = None
    cursor: int | None = None
    show_arrows: bool = True
    today_focus_until: float | None = None


@dataclass(frozen=True)
class TimelineStats:
    tasks: int
    milestones: int
    summaries: int
    complete: int
    links: int
    resources: int


@dataclass(frozen=True)
class TimelineSnapshot:
    """Everything the shell draws for one view state."""

    rows: list[Row]
    row_index: dict[str, int]
    scale: TimelineScale
    render_rows: list[RenderRow]
    arrows: list[Arrow]
    chronology: list[ChronoEvent]
    cursor: int | None
    near_today: set[str]
    today_focus: bool
    today_x: float | None
    header_groups: list[HeaderGroup]
    stats: TimelineStats
    nav_event_uid: str | None = None
    can_prev: bool = False
    can_next: bool = False
    cursor_label: str | None = None
    groups: dict[str, int] = field(default_factory=dict)

    @property
    def link_count(self) -> int:
        return len(self.arrows)

    @property
    def total_rows_height(self) -> float:
        return len(self.rows) * ROW_HEIGHT


def derive_view(project: Project, state: ViewState, now: datetime, today_focus: bool = False) -> TimelineSnapshot:
    """
    Run the whole derivation for one state: visibility, scale, bars, arrows, chronology.

    Pure: the project is never touched and every result is freshly built.
    """

    rows = visible_rows(project, state.filter_text, state.collapsed, state.sort_mode)
    uid_to_row = row_index(rows)
    summary = project.summary
    scale = build_scale(summary.min_date, summary.max_date, state.granularity, state.zoom)
    groups = top_level_groups(project.order, {uid: t.parent_uid for uid, t in project.tasks_by_uid.items()})
    render_rows = to_render_rows(rows, scale, groups, state.sort_mode)

    arrows: list[Arrow] = []
    if state.show_arrows:
        arrows = route_dependencies(rows, uid_to_row, project.tasks_by_uid, scale, state.highlighted)

    events = chronology.build_chronology(rows, now)
    cursor = _clamp_cursor(state.cursor, events)
    nav_event_uid = events[cursor].uid if cursor is not None else None

    return TimelineSnapshot(
        rows=rows,
        row_index=uid_to_row,
        scale=scale,
        render_rows=render_rows,
        arrows=arrows,
        chronology=events,
        cursor=cursor,
        near_today=chronology.near_today(rows, now),
        today_focus=today_focus,
        today_x=scale.today_x(now),
        header_groups=scale.header_groups(),
        stats=_stats(project, len(arrows)),
        nav_event_uid=nav_event_uid,
        can_prev=chronology.can_go_prev(events, cursor),
        can_next=chronology.can_go_next(events, cursor),
        cursor_label=chronology.cursor_label(events, cursor),
        groups=groups,
    )


def _clamp_cursor(cursor: int | None, events: list[ChronoEvent]) -> int | None:
    if cursor is None or not events:
        return None
    return min(max(cursor, 0), len(events) - 1)


def _stats(project: Project, links: int) -> TimelineStats:
    tasks = project.tasks
    return TimelineStats(
        tasks=sum(1 for t in tasks if not t.is_summary and not t.is_milestone),
        milestones=sum(1 for t in tasks if t.is_milestone),
        summaries=sum(1 for t in tasks if t.is_summary),
        complete=sum(1 for t in tasks if t.percent_complete == 100),
        links=links,
        resources=len(project.resources),
    )


class TimelineView:
    """
    Interactive timeline over one loaded project.

    Holds the current `ViewState` and the two scroll panels; every read
    re-derives from scratch, every mutator swaps in a new state value.
    `now` and `clock` are injectable so navigation and the today-focus decay
    can be driven deterministically.
    """

    def __init__(
        self,
        project: Project,
        state: ViewState | None = None,
        now: Callable[[], datetime] = datetime.now,
        clock: Callable[[], float] = time.monotonic,
        viewport_width: float = 1200.0,
    ) -> None:
        self.project = project
        self.state = state or ViewState()
        self._now = now
        self._clock = clock
        self.labels_panel = ScrollPanel("labels")
        self.grid_panel = ScrollPanel("grid", width=viewport_width)
        self.scroll = ScrollSynchronizer(self.labels_panel, self.grid_panel)

    @property
    def summary(self) -> ProjectSummary:
        return self.project.summary

    @property
    def today_focus_active(self) -> bool:
        until = self.state.today_focus_until
        return until is not None and self._clock() < until

    def snapshot(self) -> TimelineSnapshot:
        return derive_view(self.project, self.state, self._now(), self.today_focus_active)

    def set_filter(self, text: str) -> None:
        self.state = replace(self.state, filter_text=text)

    def toggle_collapse(self, uid: str) -> None:
        collapsed = set(self.state.collapsed)
        if uid in collapsed:
            collapsed.discard(uid)
        else:
            collapsed.add(uid)
        self.state = replace(self.state, collapsed=frozenset(collapsed))

    def set_sort_mode(self, mode: SortMode) -> None:
        if mode not in SORT_MODES:
            raise ValueError(f"unknown sort mode '{mode}', expected one of {list(SORT_MODES)}")
        self.state = replace(self.state, sort_mode=mode)

    def set_zoom(self, factor: float) -> None:
        if factor <= 0:
            raise ValueError(f"zoom must be positive, got {factor}")
        self.state = replace(self.state, zoom=factor)

    def zoom_in(self) -> None:
        self.set_zoom(min(MAX_ZOOM, round((self.state.zoom + ZOOM_STEP) * 10) / 10))

    def zoom_out(self) -> None:
        self.set_zoom(max(MIN_ZOOM, round((self.state.zoom - ZOOM_STEP) * 10) / 10))

    def set_granularity(self, granularity: Granularity) -> None:
        if granularity not in GRANULARITIES:
            raise ValueError(f"unknown granularity '{granularity}', expected one of {list(GRANULARITIES)}")
        self.state = replace(self.state, granularity=granularity)

    def set_highlighted(self, uid: str | None) -> None:
        self.state = replace(self.state, highlighted=uid)

    def toggle_highlight(self, uid: str) -> None:
        self.set_highlighted(None if self.state.highlighted == uid else uid)

    def toggle_arrows(self, show: bool | None = None) -> None:
        if show is None:
            show = not self.state.show_arrows
        self.state = replace(self.state, show_arrows=show)

    def navigate_next(self) -> str | None:
        """Move the cursor forward and bring the event into view; returns its uid."""
        now = self._now()
        snap = derive_view(self.project, self.state, now)
        return self._navigate(snap, chronology.next_index(snap.chronology, snap.cursor, now), now)

    def navigate_prev(self) -> str | None:
        """Move the cursor backward and bring the event into view; returns its uid."""
        now = self._now()
        snap = derive_view(self.project, self.state, now)
        return self._navigate(snap, chronology.prev_index(snap.chronology, snap.cursor, now), now)

    def navigate_today(self) -> None:
        """Clear the cursor, centre on now and start the near-today emphasis."""
        now = self._now()
        self.state = replace(
            self.state,
            cursor=None,
            highlighted=None,
            today_focus_until=self._clock() + chronology.TODAY_FOCUS_SECONDS,
        )
        snap = derive_view(self.project, self.state, now)
        self.scroll.center_horizontally_on(snap.scale.x_of(now))
        for row in snap.rows:
            if row.task.uid in snap.near_today:
                self.scroll.scroll_vertical_to(max(0.0, row.index * ROW_HEIGHT - TODAY_SCROLL_MARGIN))
                break

    def _navigate(self, snap: TimelineSnapshot, index: int | None, now: datetime) -> str | None:
        if index is None:
            return None
        event = snap.chronology[index]
        logger.debug("navigating to event %d/%d (%s)", index + 1, len(snap.chronology), event.uid)
        self.state = replace(self.state, cursor=index, highlighted=event.uid, today_focus_until=None)

        row = snap.row_index.get(event.uid)
        if row is not None:
            self.scroll.scroll_vertical_to(max(0.0, row * ROW_HEIGHT - EVENT_SCROLL_MARGIN))
        task = self.project.get(event.uid)
        focus = chronology.key_date(task, now) if task is not None else None
        if focus is not None:
            self.scroll.center_horizontally_on(snap.scale.x_of(focus))
        return event.uid
