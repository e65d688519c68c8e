from __future__ import annotations

import logging
from datetime import datetime

from .hierarchy import index_hierarchy
from .project_models import Project, ProjectSummary, RecordSet, Resource, Task, TaskRecord

logger = logging.getLogger(__name__)

UNTITLED_PROJECT = "Untitled Project"


class ProjectValidationError(Exception):
    """Raised when a source document cannot be turned into a record set (bad syntax, types, duplicates)."""


def normalize_records(records: RecordSet, now: datetime | None = None) -> Project:
    """
    Turn a parsed record set into the immutable task arena used by the view.

    - Rejects duplicate task uids and outline levels below 1.
    - Resolves parent/children links from outline levels.
    - Resolves assignments into per-task resource names (unknown resources skipped).
    - Clamps percent complete to [0, 100]; dates are kept as given.
    """

    if not records.tasks:
        raise ProjectValidationError("no tasks found in document")

    seen: set[str] = set()
    for record in records.tasks:
        if record.uid in seen:
            raise ProjectValidationError(f"duplicate task uid '{record.uid}'")
        seen.add(record.uid)
        if record.outline_level < 1:
            raise ProjectValidationError(
                f"task '{record.uid}' has outline level {record.outline_level}, expected >= 1"
            )

    hierarchy = index_hierarchy(records.tasks)
    resource_names = _resource_names_by_task(records)

    tasks_by_uid: dict[str, Task] = {}
    for record in records.tasks:
        tasks_by_uid[record.uid] = _to_task(
            record,
            parent_uid=hierarchy.parents[record.uid],
            children=tuple(hierarchy.children[record.uid]),
            resources=tuple(resource_names.get(record.uid, ())),
        )

    resources = tuple(
        Resource(uid=r.uid, name=r.name, initials=r.initials, email=r.email, type=r.type) for r in records.resources
    )
    summary = _summarize(records, list(tasks_by_uid.values()), now or datetime.now())
    logger.debug("normalized %d tasks and %d resources", len(tasks_by_uid), len(resources))
    return Project(
        summary=summary,
        order=tuple(r.uid for r in records.tasks),
        tasks_by_uid=tasks_by_uid,
        resources=resources,
    )


def _to_task(record: TaskRecord, parent_uid: str | None, children: tuple[str, ...], resources: tuple[str, ...]) -> Task:
    return Task(
        uid=record.uid,
        name=record.name,
        outline_level=record.outline_level,
        parent_uid=parent_uid,
        children=children,
        start=record.start,
        finish=record.finish,
        duration_hours=record.duration_hours,
        percent_complete=min(100, max(0, record.percent_complete)),
        is_summary=record.is_summary,
        is_milestone=record.is_milestone,
        predecessors=tuple(record.predecessors),
        resources=resources,
        id=record.id or record.uid,
        wbs=record.wbs,
        notes=record.notes,
        priority=record.priority,
    )


def _resource_names_by_task(records: RecordSet) -> dict[str, list[str]]:
    names = {r.uid: r.name for r in records.resources if r.name}
    by_task: dict[str, list[str]] = {}
    for assignment in records.assignments:
        name = names.get(assignment.resource_uid)
        if name is None:
            logger.debug(
                "assignment of task %s references unknown resource %s", assignment.task_uid, assignment.resource_uid
            )
            continue
        by_task.setdefault(assignment.task_uid, []).append(name)
    return by_task


def _summarize(records: RecordSet, tasks: list[Task], now: datetime) -> ProjectSummary:
    bounds: list[datetime] = []
    for task in tasks:
        if task.start is not None and task.finish is not None:
            bounds.extend((task.start, task.finish))
    min_date = min(bounds) if bounds else now
    max_date = max(bounds) if bounds else now

    info = records.info
    return ProjectSummary(
        name=info.name or UNTITLED_PROJECT,
        author=info.author,
        company=info.company,
        last_saved=info.last_saved,
        project_start=info.start or min_date,
        project_finish=info.finish or max_date,
        min_date=min_date,
        max_date=max_date,
        resource_count=len(records.resources),
    )
