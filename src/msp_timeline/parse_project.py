from __future__ import annotations

import datetime as _dt
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .normalize import ProjectValidationError, normalize_records
from .project_models import AssignmentRecord, Project, ProjectInfo, RecordSet, ResourceRecord, TaskRecord

logger = logging.getLogger(__name__)

HOURS_PER_WORKDAY = 8
_DURATION_RE = re.compile(r"P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?")


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable document path strings like tasks[0].uid."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_project(path: str, now: _dt.datetime | None = None) -> Project:
    """Load and normalize a project from an MS Project XML or YAML file."""

    records = load_records(path)
    project = normalize_records(records, now=now)
    logger.info("loaded %s: %d tasks, %d resources", path, len(project.order), len(project.resources))
    return project


def load_records(path: str) -> RecordSet:
    """Parse a document into a record set, choosing the format from the file suffix."""

    suffix = Path(path).suffix.lower()
    if suffix not in (".xml", ".yaml", ".yml"):
        raise ProjectValidationError(f"unsupported document type '{suffix}', expected .xml, .yaml or .yml")
    # Bytes, so the XML declaration or a YAML byte order mark picks the encoding.
    data = Path(path).read_bytes()
    try:
        if suffix == ".xml":
            return parse_ms_project_xml(data)
        try:
            raw = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            raise ProjectValidationError(f"invalid YAML: {exc}") from exc
        return parse_record_mapping(raw)
    except UnicodeDecodeError as exc:
        raise ProjectValidationError(f"{path}: undecodable text: {exc}") from exc


# --- Microsoft Project XML ------------------------------------------------


def parse_ms_project_xml(text: str | bytes) -> RecordSet:
    """
    Parse the standard MS Project XML export.

    Namespaces are ignored. The UID 0 project root task and nameless
    tasks/resources are skipped.
    """

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ProjectValidationError(f"invalid XML: {exc}") from exc
    if _local(root.tag) != "Project":
        raise ProjectValidationError(f"root: expected <Project> element, found <{_local(root.tag)}>")

    info = ProjectInfo(
        name=_text(root, "Name") or _text(root, "Title"),
        author=_text(root, "Author") or _text(root, "Manager"),
        company=_text(root, "Company"),
        last_saved=_text(root, "LastSaved"),
        start=_parse_instant(_text(root, "StartDate") or _text(root, "Start")),
        finish=_parse_instant(_text(root, "FinishDate") or _text(root, "Finish")),
    )

    tasks: list[TaskRecord] = []
    for el in _children(_child(root, "Tasks"), "Task"):
        task = _xml_task(el)
        if task is not None:
            tasks.append(task)

    resources: list[ResourceRecord] = []
    for el in _children(_child(root, "Resources"), "Resource"):
        uid = _text(el, "UID")
        name = _text(el, "Name")
        if uid == "0" or not name:
            continue
        resources.append(
            ResourceRecord(
                uid=uid,
                name=name,
                initials=_text(el, "Initials"),
                email=_text(el, "EmailAddress"),
                type=_text(el, "Type"),
            )
        )

    assignments: list[AssignmentRecord] = []
    for el in _children(_child(root, "Assignments"), "Assignment"):
        path = _Path(("Assignments", f"Assignment[{_text(el, 'UID')}]"))
        assignments.append(
            AssignmentRecord(
                task_uid=_text(el, "TaskUID"),
                resource_uid=_text(el, "ResourceUID"),
                units=_to_float(_text(el, "Units") or "1", path.child("Units")),
            )
        )

    return RecordSet(info=info, tasks=tasks, resources=resources, assignments=assignments)


def _xml_task(el: ET.Element) -> TaskRecord | None:
    uid = _text(el, "UID")
    if uid == "0":
        return None
    name = _text(el, "Name")
    if not name:
        logger.debug("skipping nameless task uid=%s", uid)
        return None

    path = _Path(("Tasks", f"Task[{uid}]"))
    predecessors = [_text(link, "PredecessorUID") for link in _children(el, "PredecessorLink")]
    predecessors = [pred_uid for pred_uid in predecessors if pred_uid]
    return TaskRecord(
        uid=uid,
        name=name,
        start=_parse_instant(_text(el, "Start")),
        finish=_parse_instant(_text(el, "Finish")),
        duration_hours=parse_duration(_text(el, "Duration")),
        outline_level=_to_int(_text(el, "OutlineLevel") or "1", path.child("OutlineLevel")),
        is_summary=_text(el, "Summary") == "1",
        is_milestone=_text(el, "Milestone") == "1",
        percent_complete=_to_int(_text(el, "PercentComplete") or "0", path.child("PercentComplete")),
        predecessors=predecessors,
        id=_text(el, "ID") or uid,
        wbs=_text(el, "WBS"),
        notes=_text(el, "Notes"),
        priority=_to_int(_text(el, "Priority") or "500", path.child("Priority")),
    )


def parse_duration(value: str) -> float:
    """ISO 8601 work duration (PT40H0M0S, P2DT4H) in hours with 8-hour days; bare numbers are hours."""

    if not value:
        return 0.0
    match = _DURATION_RE.search(value)
    if match and any(match.groups()):
        days, hours, minutes = (int(g or 0) for g in match.groups())
        return days * HOURS_PER_WORKDAY + hours + minutes / 60
    try:
        return float(value)
    except ValueError:
        return 0.0


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(el: ET.Element | None, name: str) -> ET.Element | None:
    if el is None:
        return None
    for child in el:
        if _local(child.tag) == name:
            return child
    return None


def _children(el: ET.Element | None, name: str) -> list[ET.Element]:
    if el is None:
        return []
    return [child for child in el if _local(child.tag) == name]


def _text(el: ET.Element | None, name: str) -> str:
    child = _child(el, name)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _to_int(value: str, path: _Path) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected integer, got '{value}'") from exc


def _to_float(value: str, path: _Path) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected number, got '{value}'") from exc


def _parse_instant(value: str) -> _dt.datetime | None:
    """Lenient ISO instant: unparseable values degrade to None, aware values become naive UTC."""
    if not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = _dt.datetime.fromisoformat(text)
    except ValueError:
        logger.debug("ignoring unparseable date '%s'", value)
        return None
    return _naive_utc(parsed)


def _naive_utc(value: _dt.datetime) -> _dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(_dt.timezone.utc).replace(tzinfo=None)


# --- YAML record set ------------------------------------------------------

_PROJECT_KEYS = {"name", "author", "company", "last_saved", "start", "finish"}
_TASK_KEYS = {
    "uid",
    "id",
    "name",
    "start",
    "finish",
    "duration_hours",
    "outline_level",
    "summary",
    "milestone",
    "percent_complete",
    "predecessors",
    "wbs",
    "notes",
    "priority",
}
_RESOURCE_KEYS = {"uid", "name", "initials", "email", "type"}
_ASSIGNMENT_KEYS = {"task_uid", "resource_uid", "units"}


def parse_record_mapping(data: Any) -> RecordSet:
    """Validate a YAML-shaped mapping (project/tasks/resources/assignments) into a record set."""

    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "tasks", "resources", "assignments"}, path)

    info = _parse_info(data.get("project"), path.child("project"))

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise ProjectValidationError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise ProjectValidationError(f"{path.child('tasks')}: expected list")
    tasks = [_parse_task(raw, path.child(f"tasks[{idx}]")) for idx, raw in enumerate(tasks_raw)]

    resources = [
        _parse_resource(raw, path.child(f"resources[{idx}]"))
        for idx, raw in enumerate(_optional_list(data, "resources", path))
    ]
    assignments = [
        _parse_assignment(raw, path.child(f"assignments[{idx}]"))
        for idx, raw in enumerate(_optional_list(data, "assignments", path))
    ]
    return RecordSet(info=info, tasks=tasks, resources=resources, assignments=assignments)


def _parse_info(data: Any, path: _Path) -> ProjectInfo:
    if data is None:
        return ProjectInfo()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping")
    _assert_allowed_keys(data, _PROJECT_KEYS, path)
    return ProjectInfo(
        name=_optional_str(data, "name", path),
        author=_optional_str(data, "author", path),
        company=_optional_str(data, "company", path),
        last_saved=_optional_str(data, "last_saved", path),
        start=_optional_instant(data, "start", path),
        finish=_optional_instant(data, "finish", path),
    )


def _parse_task(data: Any, path: _Path) -> TaskRecord:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    uid = _require_uid(data, "uid", path)
    predecessors_raw = data.get("predecessors") or []
    if not isinstance(predecessors_raw, list):
        raise ProjectValidationError(f"{path.child('predecessors')}: expected list of task uids")
    predecessors = [_as_uid(dep, path.child(f"predecessors[{idx}]")) for idx, dep in enumerate(predecessors_raw)]

    return TaskRecord(
        uid=uid,
        name=_require_str(data, "name", path),
        start=_optional_instant(data, "start", path),
        finish=_optional_instant(data, "finish", path),
        duration_hours=_optional_number(data, "duration_hours", path, 0.0),
        outline_level=_optional_int(data, "outline_level", path, 1),
        is_summary=_optional_bool(data, "summary", path),
        is_milestone=_optional_bool(data, "milestone", path),
        percent_complete=_optional_int(data, "percent_complete", path, 0),
        predecessors=predecessors,
        id=_optional_str(data, "id", path) or uid,
        wbs=_optional_str(data, "wbs", path),
        notes=_optional_str(data, "notes", path),
        priority=_optional_int(data, "priority", path, 500),
    )


def _parse_resource(data: Any, path: _Path) -> ResourceRecord:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for resource")
    _assert_allowed_keys(data, _RESOURCE_KEYS, path)
    return ResourceRecord(
        uid=_require_uid(data, "uid", path),
        name=_require_str(data, "name", path),
        initials=_optional_str(data, "initials", path),
        email=_optional_str(data, "email", path),
        type=_optional_str(data, "type", path),
    )


def _parse_assignment(data: Any, path: _Path) -> AssignmentRecord:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for assignment")
    _assert_allowed_keys(data, _ASSIGNMENT_KEYS, path)
    return AssignmentRecord(
        task_uid=_require_uid(data, "task_uid", path),
        resource_uid=_require_uid(data, "resource_uid", path),
        units=_optional_number(data, "units", path, 1.0),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectValidationError(f"{path.child(key)}: expected list")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_uid(data: dict[str, Any], key: str, path: _Path) -> str:
    return _as_uid(_require_value(data, key, path), path.child(key))


def _as_uid(value: Any, path: _Path) -> str:
    # Uids are numeric in MS Project; accept YAML ints and keep them as strings.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ProjectValidationError(f"{path}: expected string or integer uid")
    return str(value)


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_int(data: dict[str, Any], key: str, path: _Path, default: int) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProjectValidationError(f"{path.child(key)}: expected integer")
    return value


def _optional_number(data: dict[str, Any], key: str, path: _Path, default: float) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProjectValidationError(f"{path.child(key)}: expected number")
    return float(value)


def _optional_bool(data: dict[str, Any], key: str, path: _Path) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ProjectValidationError(f"{path.child(key)}: expected boolean")
    return value


def _optional_instant(data: dict[str, Any], key: str, path: _Path) -> _dt.datetime | None:
    value = data.get(key)
    if value is None:
        return None
    # PyYAML already turns unquoted timestamps into date/datetime objects.
    if isinstance(value, _dt.datetime):
        return _naive_utc(value)
    if isinstance(value, _dt.date):
        return _dt.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        parsed = _parse_instant(value)
        if parsed is None:
            raise ProjectValidationError(f"{path.child(key)}: expected ISO date or datetime")
        return parsed
    raise ProjectValidationError(f"{path.child(key)}: expected ISO date or datetime")
