from __future__ import annotations

from typing import Mapping, Sequence

from .project_models import BarGeometry, RenderRow, Row, SortMode, Task
from .timeline_scale import TimelineScale

# Row and bar sizing, in pixels.
ROW_HEIGHT = 36.0
BAR_PADDING_V = 8.0
SUMMARY_TOP_FRAC = 0.33
SUMMARY_HEIGHT_FRAC = 0.28
MILESTONE_SIZE = 14.0
INDENT_STEP = 14.0
FLAT_INDENT = 8.0
RESOURCE_LABEL_MIN_WIDTH = 20.0

MILESTONE_COLOR = "#fbbf24"
SUMMARY_COLOR = "#1e3a52"
GROUP_COLORS = (
    "#38bdf8",
    "#f472b6",
    "#34d399",
    "#a78bfa",
    "#fb923c",
    "#facc15",
    "#2dd4bf",
    "#60a5fa",
)


def bar_color(task: Task, group_index: int) -> str:
    if task.is_milestone:
        return MILESTONE_COLOR
    if task.is_summary:
        return SUMMARY_COLOR
    return GROUP_COLORS[group_index % len(GROUP_COLORS)]


def row_center_y(index: int) -> float:
    return index * ROW_HEIGHT + ROW_HEIGHT / 2


def to_render_rows(
    rows: Sequence[Row],
    scale: TimelineScale,
    groups: Mapping[str, int],
    sort_mode: SortMode = "outline",
) -> list[RenderRow]:
    """
    Convert visible rows into render rows with label indent and bar geometry.

    Tasks without a start, and non-milestones without a finish, get no bar.
    """

    render_rows: list[RenderRow] = []
    for row in rows:
        task = row.task
        top = row.index * ROW_HEIGHT
        indent = (task.outline_level - 1) * INDENT_STEP if sort_mode == "outline" else FLAT_INDENT
        bar = layout_bar(task, top, scale, groups.get(task.uid, 0))
        resource_label = None
        if bar is not None and bar.shape != "diamond" and task.resources and bar.width > RESOURCE_LABEL_MIN_WIDTH:
            resource_label = ", ".join(task.resources)
        render_rows.append(
            RenderRow(
                task=task,
                index=row.index,
                top=top,
                indent=indent,
                bar=bar,
                resource_label=resource_label,
            )
        )
    return render_rows


def layout_bar(task: Task, row_top: float, scale: TimelineScale, group_index: int = 0) -> BarGeometry | None:
    """Geometric primitive for one task placed in the row starting at `row_top`."""

    if task.start is None:
        return None

    color = bar_color(task, group_index)

    if task.is_milestone:
        return BarGeometry(
            shape="diamond",
            x=scale.x_of(task.start),
            top=row_top + ROW_HEIGHT / 2 - MILESTONE_SIZE / 2,
            width=MILESTONE_SIZE,
            height=MILESTONE_SIZE,
            color=color,
            fill_opacity=1.0,
        )

    if task.finish is None:
        return None

    width = scale.bar_width(task.start, task.finish)
    progress_width = width * task.percent_complete / 100.0

    if task.is_summary:
        return BarGeometry(
            shape="summary",
            x=scale.x_of(task.start),
            top=row_top + ROW_HEIGHT * SUMMARY_TOP_FRAC,
            width=width,
            height=ROW_HEIGHT * SUMMARY_HEIGHT_FRAC,
            color=color,
            fill_opacity=0.1,
            progress_width=progress_width,
            progress_opacity=0.5,
        )

    return BarGeometry(
        shape="bar",
        x=scale.x_of(task.start),
        top=row_top + BAR_PADDING_V,
        width=width,
        height=ROW_HEIGHT - BAR_PADDING_V * 2,
        color=color,
        fill_opacity=0.18,
        progress_width=progress_width,
        progress_opacity=0.85,
    )
