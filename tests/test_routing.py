import datetime as dt

import pytest

from msp_timeline.normalize import normalize_records
from msp_timeline.project_models import RecordSet, TaskRecord
from msp_timeline.routing import ARROW_HIGHLIGHT, route_dependencies, route_dependency
from msp_timeline.timeline_scale import build_scale
from msp_timeline.visibility import row_index, visible_rows

D = dt.datetime


def _project(*tasks):
    return normalize_records(RecordSet(tasks=list(tasks)), now=D(2024, 2, 1))


def _route(project, collapsed=(), highlighted=None):
    rows = visible_rows(project, collapsed=collapsed)
    summary = project.summary
    scale = build_scale(summary.min_date, summary.max_date, "day", 1.0)
    return route_dependencies(rows, row_index(rows), project.tasks_by_uid, scale, highlighted), rows


def _pair(pred_finish, succ_start):
    return _project(
        TaskRecord(uid="1", name="Pred", start=D(2024, 1, 29), finish=pred_finish),
        TaskRecord(uid="2", name="Succ", start=succ_start, finish=D(2024, 2, 20), predecessors=["1"]),
    )


def test_forward_dependency_has_three_segments():
    arrows, _ = _route(_pair(D(2024, 2, 1), D(2024, 2, 5)))

    assert len(arrows) == 1
    arrow = arrows[0]
    assert arrow.segments == 3
    # origin is 2024-01-29 at 40px/day
    assert arrow.points == ((120.0, 18.0), (128.0, 18.0), (128.0, 54.0), (274.0, 54.0))
    assert arrow.path == "M120,18 H128 V54 H274"


def test_backward_dependency_detours_with_five_segments():
    arrows, _ = _route(_pair(D(2024, 2, 10), D(2024, 2, 5)))

    arrow = arrows[0]
    assert arrow.segments == 5
    (px, py), (rx, _), (_, detour_y), (left_x, _), (_, sy), (end_x, _) = arrow.points
    assert px == pytest.approx(480)
    assert rx == pytest.approx(488)
    assert detour_y == pytest.approx(18 + 36 * 0.6)
    assert left_x == pytest.approx(280 - 8 - 6)
    assert sy == 54
    assert end_x == pytest.approx(274)


def test_detour_goes_up_when_successor_is_above():
    points = route_dependency((100.0, 90.0), (50.0, 18.0))

    assert len(points) == 6
    assert points[2][1] == pytest.approx(90 - 36 * 0.6)


def test_successor_just_inside_step_takes_detour():
    assert len(route_dependency((100.0, 18.0), (108.0, 54.0))) == 6
    assert len(route_dependency((100.0, 18.0), (108.5, 54.0))) == 4


def test_hidden_or_undated_predecessors_are_dropped():
    project = _project(
        TaskRecord(uid="1", name="Phase", outline_level=1, is_summary=True, start=D(2024, 1, 1), finish=D(2024, 1, 9)),
        TaskRecord(uid="2", name="Inner", outline_level=2, start=D(2024, 1, 1), finish=D(2024, 1, 5)),
        TaskRecord(uid="3", name="Undated", outline_level=1),
        TaskRecord(uid="4", name="Later", outline_level=1, start=D(2024, 1, 10), finish=D(2024, 1, 12), predecessors=["2", "3", "99"]),
    )

    expanded, _ = _route(project)
    collapsed, rows = _route(project, collapsed={"1"})

    assert [(a.predecessor_uid, a.successor_uid) for a in expanded] == [("2", "4")]
    assert collapsed == []
    assert "2" not in {row.task.uid for row in rows}


def test_successor_without_start_is_dropped():
    project = _pair(D(2024, 2, 1), None)

    arrows, _ = _route(project)

    assert arrows == []


def test_endpoints_always_visible_rows():
    project = _project(
        TaskRecord(uid="1", name="A", start=D(2024, 1, 1), finish=D(2024, 1, 3)),
        TaskRecord(uid="2", name="B", start=D(2024, 1, 4), finish=D(2024, 1, 6), predecessors=["1"]),
        TaskRecord(uid="3", name="C", start=D(2024, 1, 2), finish=D(2024, 1, 8), predecessors=["1", "2"]),
    )

    arrows, rows = _route(project)
    visible = {row.task.uid for row in rows}

    assert len(arrows) == 3
    for arrow in arrows:
        assert arrow.predecessor_uid in visible
        assert arrow.successor_uid in visible


def test_highlight_changes_style_not_geometry():
    project = _pair(D(2024, 2, 1), D(2024, 2, 5))

    plain, _ = _route(project)
    lit, _ = _route(project, highlighted="1")
    other, _ = _route(project, highlighted="7")

    assert lit[0].points == plain[0].points
    assert lit[0].highlighted and not plain[0].highlighted and not other[0].highlighted
    assert lit[0].stroke == ARROW_HIGHLIGHT
    assert lit[0].marker != plain[0].marker
