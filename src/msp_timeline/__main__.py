from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from importlib import metadata
from pathlib import Path
from typing import Any

import yaml

from .normalize import ProjectValidationError
from .parse_project import load_project
from .project_models import GRANULARITIES, SORT_MODES, Project
from .timeline_view import TimelineSnapshot, TimelineView, ViewState

logger = logging.getLogger("msp_timeline")


def _parse_now(value: str) -> dt.datetime:
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid instant '{value}', expected YYYY-MM-DD[THH:MM[:SS]]") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_zoom(value: str) -> float:
    try:
        zoom = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid zoom '{value}'") from exc
    if zoom <= 0:
        raise argparse.ArgumentTypeError(f"zoom must be positive, got {value}")
    return zoom


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msp-timeline",
        description="Derive an interactive Gantt timeline from a Microsoft Project XML export",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("project", help="Path to an MS Project .xml export or a .yaml record set")
    parser.add_argument("--granularity", choices=GRANULARITIES, default="week", help="Timeline column size")
    parser.add_argument("--zoom", type=_parse_zoom, default=1.0, help="Column width multiplier")
    parser.add_argument("--sort", dest="sort_mode", choices=SORT_MODES, default="outline", help="Row order")
    parser.add_argument("--filter", dest="filter_text", default="", help="Case-insensitive task name filter")
    parser.add_argument(
        "--collapse",
        action="append",
        default=[],
        metavar="UID",
        help="Collapse the summary task with this uid (repeatable)",
    )
    parser.add_argument("--highlight", metavar="UID", help="Focus a task and highlight its links")
    parser.add_argument("--no-arrows", dest="show_arrows", action="store_false", help="Do not route dependency arrows")
    parser.add_argument("--now", type=_parse_now, help="Reference instant for navigation; defaults to the clock")
    parser.add_argument("--format", choices=("yaml", "text"), default="text", help="Output format")
    parser.add_argument("--out", help="Write output to this path instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_tool_version()}")
    return parser


def _tool_version() -> str:
    try:
        return metadata.version("msp-timeline")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    project_path = Path(args.project)
    now = args.now or dt.datetime.now()

    try:
        project = load_project(str(project_path), now=now)
    except ProjectValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {project_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        logger.debug("load failed", exc_info=True)
        print(f"Unexpected error while loading project: {exc}", file=sys.stderr)
        return 1

    state = ViewState(
        filter_text=args.filter_text,
        collapsed=frozenset(args.collapse),
        sort_mode=args.sort_mode,
        zoom=args.zoom,
        granularity=args.granularity,
        highlighted=args.highlight,
        show_arrows=args.show_arrows,
    )
    view = TimelineView(project, state=state, now=lambda: now)
    snapshot = view.snapshot()

    if args.format == "yaml":
        output = yaml.safe_dump(snapshot_to_dict(project, snapshot), sort_keys=False, allow_unicode=True)
    else:
        output = format_text(project, snapshot)

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    return 0


def snapshot_to_dict(project: Project, snapshot: TimelineSnapshot) -> dict[str, Any]:
    """Plain-data view of a snapshot, suitable for YAML/JSON dumps."""

    summary = project.summary
    return {
        "project": {
            "name": summary.name,
            "author": summary.author,
            "company": summary.company,
            "start": summary.project_start.isoformat(),
            "finish": summary.project_finish.isoformat(),
            "resources": summary.resource_count,
        },
        "scale": {
            "granularity": snapshot.scale.granularity,
            "zoom": snapshot.scale.zoom,
            "column_width": snapshot.scale.col_width,
            "columns": [
                {"label": col.label, "date": col.date.isoformat(), "major": col.is_major, "weekend": col.is_weekend}
                for col in snapshot.scale.columns
            ],
            "total_width": snapshot.scale.total_width,
            "today_x": snapshot.today_x,
        },
        "rows": [
            {
                "uid": rr.task.uid,
                "name": rr.task.name,
                "index": rr.index,
                "indent": rr.indent,
                "bar": None
                if rr.bar is None
                else {
                    "shape": rr.bar.shape,
                    "x": round(rr.bar.x, 2),
                    "top": round(rr.bar.top, 2),
                    "width": round(rr.bar.width, 2),
                    "height": round(rr.bar.height, 2),
                    "color": rr.bar.color,
                    "progress_width": round(rr.bar.progress_width, 2),
                },
                "resources": list(rr.task.resources),
            }
            for rr in snapshot.render_rows
        ],
        "arrows": [
            {
                "from": arrow.predecessor_uid,
                "to": arrow.successor_uid,
                "path": arrow.path,
                "highlighted": arrow.highlighted,
            }
            for arrow in snapshot.arrows
        ],
        "chronology": [{"uid": ev.uid, "date": ev.key_date.isoformat()} for ev in snapshot.chronology],
        "near_today": sorted(snapshot.near_today),
        "stats": {
            "tasks": snapshot.stats.tasks,
            "milestones": snapshot.stats.milestones,
            "summaries": snapshot.stats.summaries,
            "complete": snapshot.stats.complete,
            "links": snapshot.stats.links,
            "resources": snapshot.stats.resources,
        },
    }


def format_text(project: Project, snapshot: TimelineSnapshot) -> str:
    """Indented outline of visible rows followed by the footer statistics."""

    summary = project.summary
    lines = [summary.name]
    meta = [part for part in (summary.author, summary.company) if part]
    meta.append(f"{len(snapshot.rows)} tasks")
    lines.append(" · ".join(meta))
    lines.append(f"{summary.project_start:%b %d, %Y} -> {summary.project_finish:%b %d, %Y}")
    lines.append("")
    for rr in snapshot.render_rows:
        task = rr.task
        marker = "◆" if task.is_milestone else ("▼" if task.is_summary else "•")
        pad = " " * int(rr.indent / 7)
        dates = ""
        if task.start is not None:
            dates = f"{task.start:%Y-%m-%d}"
            if task.finish is not None and not task.is_milestone:
                dates += f" → {task.finish:%Y-%m-%d}"
        pct = f" {task.percent_complete}%" if task.percent_complete > 0 else ""
        lines.append(f"{pad}{marker} {task.name}  {dates}{pct}".rstrip())
    lines.append("")
    stats = snapshot.stats
    lines.append(
        f"Tasks {stats.tasks} · Milestones {stats.milestones} · Summary {stats.summaries} · "
        f"Complete {stats.complete} · Links {stats.links} · Resources {stats.resources}"
    )
    return "\n".join(lines) + "\n"


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
