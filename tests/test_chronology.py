import datetime as dt

from msp_timeline import chronology
from msp_timeline.normalize import normalize_records
from msp_timeline.project_models import RecordSet, TaskRecord
from msp_timeline.visibility import visible_rows

D = dt.datetime
NOW = D(2024, 3, 1, 12)


def _rows():
    tasks = [
        TaskRecord(uid="1", name="Phase", is_summary=True, start=D(2024, 1, 1), finish=D(2024, 4, 1)),
        TaskRecord(uid="2", name="Done long ago", outline_level=2, start=D(2024, 1, 1), finish=D(2024, 1, 10)),
        TaskRecord(uid="3", name="Just finished", outline_level=2, start=D(2024, 2, 1), finish=D(2024, 2, 25)),
        TaskRecord(uid="4", name="Running", outline_level=2, start=D(2024, 2, 20), finish=D(2024, 3, 10)),
        TaskRecord(uid="5", name="Soon", outline_level=2, start=D(2024, 3, 15), finish=D(2024, 3, 20)),
        TaskRecord(uid="6", name="Far", outline_level=2, start=D(2024, 5, 1), finish=D(2024, 5, 5)),
        TaskRecord(uid="7", name="Gate", outline_level=2, is_milestone=True, start=D(2024, 3, 5), finish=D(2024, 3, 5)),
        TaskRecord(uid="8", name="Undated", outline_level=2),
    ]
    project = normalize_records(RecordSet(tasks=tasks), now=NOW)
    return visible_rows(project)


def test_chronology_orders_dated_leaves_by_key_date():
    events = chronology.build_chronology(_rows(), NOW)

    assert [e.uid for e in events] == ["2", "4", "3", "7", "5", "6"]
    keyed = {e.uid: e.key_date for e in events}
    assert keyed["2"] == D(2024, 1, 10)  # done: finish
    assert keyed["4"] == D(2024, 2, 20)  # running: start


def test_next_from_unset_jumps_to_first_event_at_or_after_now():
    events = chronology.build_chronology(_rows(), NOW)

    assert events[chronology.next_index(events, None, NOW)].uid == "7"


def test_prev_from_unset_jumps_to_last_event_before_now():
    events = chronology.build_chronology(_rows(), NOW)

    assert events[chronology.prev_index(events, None, NOW)].uid == "3"


def test_unset_cursor_falls_back_to_list_ends():
    events = chronology.build_chronology(_rows(), NOW)

    assert chronology.next_index(events, None, D(2030, 1, 1)) == len(events) - 1
    assert chronology.prev_index(events, None, D(2020, 1, 1)) == 0


def test_cursor_clamps_without_wrapping():
    events = chronology.build_chronology(_rows(), NOW)
    last = len(events) - 1

    assert chronology.next_index(events, last, NOW) == last
    assert chronology.prev_index(events, 0, NOW) == 0
    assert chronology.next_index(events, 1, NOW) == 2
    assert chronology.prev_index(events, 3, NOW) == 2


def test_boundaries_disable_moves():
    events = chronology.build_chronology(_rows(), NOW)

    assert chronology.can_go_prev(events, None) and chronology.can_go_next(events, None)
    assert not chronology.can_go_prev(events, 0)
    assert not chronology.can_go_next(events, len(events) - 1)
    assert chronology.cursor_label(events, 0) == f"1/{len(events)}"
    assert chronology.cursor_label(events, None) is None


def test_empty_chronology_is_inert():
    assert chronology.next_index([], None, NOW) is None
    assert chronology.prev_index([], 3, NOW) is None
    assert not chronology.can_go_next([], None)
    assert not chronology.can_go_prev([], None)


def test_near_today_classification():
    near = chronology.near_today(_rows(), NOW)

    assert near == {"3", "4", "5"}


def test_event_status():
    rows = {row.task.uid: row.task for row in _rows()}

    assert chronology.event_status(rows["2"], NOW) == "completed"
    assert chronology.event_status(rows["4"], NOW) == "in_progress"
    assert chronology.event_status(rows["6"], NOW) == "upcoming"
