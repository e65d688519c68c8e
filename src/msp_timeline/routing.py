from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .project_models import Arrow, Row, Task
from .render_rows import ROW_HEIGHT, row_center_y
from .timeline_scale import TimelineScale

logger = logging.getLogger(__name__)

# Routing knobs, in pixels.
STEP = 8.0  # horizontal elbow offset from the predecessor end
ARROWHEAD_OFFSET = 6.0  # line stops short so the marker tip lands on the target
DETOUR_FRAC = 0.6  # vertical detour as a fraction of row height

ARROW_COLOR = "#627d98"
ARROW_HIGHLIGHT = "#38bdf8"

Point = tuple[float, float]


def route_pattern_forward(start: Point, goal: Point) -> list[Point]:
    """Three segments: right -> vertical -> right."""
    px, py = start
    sx, sy = goal
    elbow_x = px + STEP
    return [start, (elbow_x, py), (elbow_x, sy), (sx - ARROWHEAD_OFFSET, sy)]


def route_pattern_detour(start: Point, goal: Point, row_height: float = ROW_HEIGHT) -> list[Point]:
    """
    Five segments: right -> vertical -> left -> vertical -> right.

    The first vertical leg leaves the predecessor row toward the successor so
    the leftward leg never runs back through the predecessor's own bar.
    """
    px, py = start
    sx, sy = goal
    right_x = px + STEP
    left_x = sx - STEP - ARROWHEAD_OFFSET
    offset = row_height * DETOUR_FRAC
    detour_y = py + offset if sy > py else py - offset
    return [
        start,
        (right_x, py),
        (right_x, detour_y),
        (left_x, detour_y),
        (left_x, sy),
        (sx - ARROWHEAD_OFFSET, sy),
    ]


def route_dependency(start: Point, goal: Point, row_height: float = ROW_HEIGHT) -> list[Point]:
    """Pick the forward pattern when the successor starts clear of the elbow, else detour."""
    if goal[0] > start[0] + STEP:
        return route_pattern_forward(start, goal)
    return route_pattern_detour(start, goal, row_height)


def route_dependencies(
    rows: Sequence[Row],
    uid_to_row: Mapping[str, int],
    tasks_by_uid: Mapping[str, Task],
    scale: TimelineScale,
    highlighted: str | None = None,
) -> list[Arrow]:
    """
    Route one arrow per (predecessor, successor) pair where both ends are visible rows.

    Edges whose predecessor is hidden or unknown, has no finish, or whose
    successor has no start are dropped; collapsed summaries absorb the edges
    of their descendants this way.
    """

    arrows: list[Arrow] = []
    for row in rows:
        succ = row.task
        if not succ.predecessors:
            continue
        succ_row = uid_to_row.get(succ.uid)
        if succ_row is None:
            continue
        for pred_uid in succ.predecessors:
            pred = tasks_by_uid.get(pred_uid)
            pred_row = uid_to_row.get(pred_uid)
            if pred is None or pred_row is None:
                logger.debug("dropping link %s -> %s: predecessor not visible", pred_uid, succ.uid)
                continue
            if pred.finish is None or succ.start is None:
                logger.debug("dropping link %s -> %s: missing dates", pred_uid, succ.uid)
                continue

            start = (scale.x_of(pred.finish), row_center_y(pred_row))
            goal = (scale.x_of(succ.start), row_center_y(succ_row))
            points = route_dependency(start, goal)
            is_highlighted = highlighted is not None and highlighted in (succ.uid, pred_uid)
            arrows.append(_styled_arrow(pred_uid, succ.uid, points, is_highlighted))
    return arrows


def _styled_arrow(pred_uid: str, succ_uid: str, points: list[Point], highlighted: bool) -> Arrow:
    if highlighted:
        return Arrow(
            predecessor_uid=pred_uid,
            successor_uid=succ_uid,
            points=tuple(points),
            highlighted=True,
            stroke=ARROW_HIGHLIGHT,
            stroke_width=1.8,
            opacity=1.0,
            marker="arrowH",
        )
    return Arrow(
        predecessor_uid=pred_uid,
        successor_uid=succ_uid,
        points=tuple(points),
        highlighted=False,
        stroke=ARROW_COLOR,
        stroke_width=1.1,
        opacity=0.6,
        marker="arrowN",
    )
