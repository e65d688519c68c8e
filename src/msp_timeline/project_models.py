from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


SortMode = Literal["outline", "document", "date"]
"""Row orders: outline traversal, raw document order, or start date."""

Granularity = Literal["day", "week", "month"]
"""Time-bucket size of timeline columns."""

BarShape = Literal["bar", "summary", "diamond"]
"""Render primitives: leaf bar, thin summary bar, milestone diamond."""

SORT_MODES: tuple[str, ...] = ("outline", "document", "date")
GRANULARITIES: tuple[str, ...] = ("day", "week", "month")


@dataclass
class TaskRecord:
    """Raw task as handed over by the document parser, in document order."""

    uid: str
    name: str
    start: datetime | None = None
    finish: datetime | None = None
    duration_hours: float = 0.0
    outline_level: int = 1
    is_summary: bool = False
    is_milestone: bool = False
    percent_complete: int = 0
    predecessors: list[str] = field(default_factory=list)
    id: str = ""
    wbs: str = ""
    notes: str = ""
    priority: int = 500


@dataclass
class ResourceRecord:
    uid: str
    name: str
    initials: str = ""
    email: str = ""
    type: str = ""


@dataclass
class AssignmentRecord:
    task_uid: str
    resource_uid: str
    units: float = 1.0


@dataclass
class ProjectInfo:
    """Project-level metadata found in the document header."""

    name: str = ""
    author: str = ""
    company: str = ""
    last_saved: str = ""
    start: datetime | None = None
    finish: datetime | None = None


@dataclass
class RecordSet:
    """Flat, validated parse result; the only thing the core consumes."""

    info: ProjectInfo = field(default_factory=ProjectInfo)
    tasks: list[TaskRecord] = field(default_factory=list)
    resources: list[ResourceRecord] = field(default_factory=list)
    assignments: list[AssignmentRecord] = field(default_factory=list)


@dataclass(frozen=True)
class Task:
    """Canonical, immutable schedule entry with resolved hierarchy links."""

    uid: str
    name: str
    outline_level: int
    parent_uid: str | None = None
    children: tuple[str, ...] = ()
    start: datetime | None = None
    finish: datetime | None = None
    duration_hours: float = 0.0
    percent_complete: int = 0
    is_summary: bool = False
    is_milestone: bool = False
    predecessors: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()
    id: str = ""
    wbs: str = ""
    notes: str = ""
    priority: int = 500

    @property
    def is_dated(self) -> bool:
        return self.start is not None or self.finish is not None


@dataclass(frozen=True)
class Resource:
    uid: str
    name: str
    initials: str = ""
    email: str = ""
    type: str = ""


@dataclass(frozen=True)
class ProjectSummary:
    """Header and footer facts about the loaded project."""

    name: str
    author: str
    company: str
    last_saved: str
    project_start: datetime
    project_finish: datetime
    min_date: datetime
    max_date: datetime
    resource_count: int


@dataclass(frozen=True)
class Project:
    """Arena of tasks keyed by uid plus the document-order uid list."""

    summary: ProjectSummary
    order: tuple[str, ...]
    tasks_by_uid: dict[str, Task]
    resources: tuple[Resource, ...] = ()

    @property
    def tasks(self) -> list[Task]:
        """Tasks in document order."""
        return [self.tasks_by_uid[uid] for uid in self.order]

    def get(self, uid: str | None) -> Task | None:
        if uid is None:
            return None
        return self.tasks_by_uid.get(uid)


@dataclass(frozen=True)
class Row:
    """A visible task at a vertical index; recomputed on every view change."""

    task: Task
    index: int


@dataclass(frozen=True)
class Column:
    """One time bucket of the timeline header."""

    label: str
    date: datetime
    is_major: bool = False
    is_weekend: bool = False
    sub_label: str | None = None


@dataclass(frozen=True)
class HeaderGroup:
    """Month band spanning consecutive week columns."""

    label: str
    x: float
    width: float


@dataclass(frozen=True)
class BarGeometry:
    """
    Pixel geometry of one task's primitive on the time grid.

    For diamonds, `x` is the centre and `width`/`height` the fixed shape size.
    """

    shape: BarShape
    x: float
    top: float
    width: float
    height: float
    color: str
    fill_opacity: float
    progress_width: float = 0.0
    progress_opacity: float = 0.0


@dataclass(frozen=True)
class RenderRow:
    """
    A visible task placed on the grid.

    `top` is the absolute y of the row in pixels and `indent` the label offset
    for its outline depth. `bar` is None when the task has no start, or has
    a start but no finish and is not a milestone.
    """

    task: Task
    index: int
    top: float
    indent: float
    bar: BarGeometry | None = None
    resource_label: str | None = None


@dataclass(frozen=True)
class Arrow:
    """Routed dependency connector between two visible rows."""

    predecessor_uid: str
    successor_uid: str
    points: tuple[tuple[float, float], ...]
    highlighted: bool = False
    stroke: str = ""
    stroke_width: float = 1.1
    opacity: float = 0.6
    marker: str = "arrowN"

    @property
    def segments(self) -> int:
        return max(0, len(self.points) - 1)

    @property
    def path(self) -> str:
        """SVG path data using absolute H/V commands after the first point."""
        if not self.points:
            return ""
        x0, y0 = self.points[0]
        parts = [f"M{_fmt(x0)},{_fmt(y0)}"]
        prev = self.points[0]
        for x, y in self.points[1:]:
            if y == prev[1] and x != prev[0]:
                parts.append(f"H{_fmt(x)}")
            elif x == prev[0]:
                parts.append(f"V{_fmt(y)}")
            else:
                parts.append(f"L{_fmt(x)},{_fmt(y)}")
            prev = (x, y)
        return " ".join(parts)


@dataclass(frozen=True)
class ChronoEvent:
    uid: str
    key_date: datetime


def _fmt(value: float) -> str:
    return f"{value:g}"
