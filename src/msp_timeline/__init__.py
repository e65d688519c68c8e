"""Gantt timeline engine for Microsoft Project schedules."""

from .normalize import ProjectValidationError, normalize_records
from .parse_project import load_project, parse_ms_project_xml, parse_record_mapping
from .timeline_view import TimelineSnapshot, TimelineView, ViewState, derive_view

__all__ = [
    "ProjectValidationError",
    "TimelineSnapshot",
    "TimelineView",
    "ViewState",
    "derive_view",
    "load_project",
    "normalize_records",
    "parse_ms_project_xml",
    "parse_record_mapping",
]
