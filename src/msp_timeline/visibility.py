from __future__ import annotations

from typing import Iterable

from .hierarchy import hidden_by_collapse, walk_outline
from .project_models import Project, Row, SortMode, Task


def visible_rows(
    project: Project,
    filter_text: str = "",
    collapsed: Iterable[str] = (),
    sort_mode: SortMode = "outline",
) -> list[Row]:
    """
    Project the task arena onto ordered visible rows.

    - outline: depth-first hierarchy order.
    - document: raw input order.
    - date: outline order stably sorted by start; undated tasks last.

    In every mode descendants of collapsed summaries are dropped and leaves
    whose name does not contain `filter_text` (case-insensitive) are dropped.
    Summaries always survive the filter.
    """

    hidden = _hidden_uids(project, collapsed)
    needle = filter_text.lower()

    if sort_mode == "document":
        order: Iterable[str] = project.order
    else:
        order = walk_outline(_roots(project), _children(project))

    tasks = [project.tasks_by_uid[uid] for uid in order if uid not in hidden]
    tasks = [task for task in tasks if _passes_filter(task, needle)]

    if sort_mode == "date":
        tasks = sorted(tasks, key=_start_key)

    return [Row(task=task, index=idx) for idx, task in enumerate(tasks)]


def row_index(rows: Iterable[Row]) -> dict[str, int]:
    """uid -> vertical index of the visible row."""
    return {row.task.uid: row.index for row in rows}


def _passes_filter(task: Task, needle: str) -> bool:
    if not needle or task.is_summary:
        return True
    return needle in task.name.lower()


def _start_key(task: Task) -> tuple:
    if task.start is None:
        return (1, None)
    return (0, task.start)


def _hidden_uids(project: Project, collapsed: Iterable[str]) -> set[str]:
    summaries = []
    for uid in collapsed:
        task = project.get(uid)
        if task is not None and task.is_summary:
            summaries.append(uid)
    return hidden_by_collapse(summaries, _children(project))


def _children(project: Project) -> dict[str, tuple[str, ...]]:
    return {uid: task.children for uid, task in project.tasks_by_uid.items()}


def _roots(project: Project) -> list[str]:
    return [uid for uid in project.order if project.tasks_by_uid[uid].parent_uid is None]
