from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Protocol, Sequence


class _OutlineNode(Protocol):
    uid: str
    outline_level: int
    is_summary: bool


@dataclass(frozen=True)
class Hierarchy:
    """Parent and children links keyed by uid, in document order."""

    parents: dict[str, str | None] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)

    @property
    def roots(self) -> list[str]:
        return [uid for uid, parent in self.parents.items() if parent is None]


def index_hierarchy(nodes: Sequence[_OutlineNode]) -> Hierarchy:
    """
    Derive parent/children links from outline levels.

    Nodes must arrive in document order. A stack of open summaries is kept;
    entries at or below the current level are popped, the remaining top
    becomes the parent, and the node is pushed only when it is a summary.
    Ambiguous nesting is accepted as-is.
    """

    parents: dict[str, str | None] = {}
    children: dict[str, list[str]] = {node.uid: [] for node in nodes}
    stack: list[_OutlineNode] = []

    for node in nodes:
        while stack and stack[-1].outline_level >= node.outline_level:
            stack.pop()
        parent_uid = stack[-1].uid if stack else None
        parents[node.uid] = parent_uid
        if parent_uid is not None:
            children[parent_uid].append(node.uid)
        if node.is_summary:
            stack.append(node)

    return Hierarchy(parents=parents, children=children)


def descendants(uid: str, children: Mapping[str, Sequence[str]]) -> set[str]:
    """Transitive closure of children below `uid` (the uid itself excluded)."""

    found: set[str] = set()
    pending = list(children.get(uid, ()))
    while pending:
        current = pending.pop()
        if current in found:
            continue
        found.add(current)
        pending.extend(children.get(current, ()))
    return found


def hidden_by_collapse(collapsed: Iterable[str], children: Mapping[str, Sequence[str]]) -> set[str]:
    hidden: set[str] = set()
    for uid in collapsed:
        hidden |= descendants(uid, children)
    return hidden


def walk_outline(roots: Iterable[str], children: Mapping[str, Sequence[str]]) -> Iterable[str]:
    """Depth-first traversal: each node precedes its children, siblings keep order."""

    for uid in roots:
        yield uid
        yield from walk_outline(children.get(uid, ()), children)


def top_level_groups(order: Sequence[str], parents: Mapping[str, str | None]) -> dict[str, int]:
    """
    Map every uid to the index of its top-level ancestor.

    Top-level tasks are numbered in document order; descendants inherit the
    number of their root.
    """

    groups: dict[str, int] = {}
    next_group = 0
    for uid in order:
        parent = parents.get(uid)
        if parent is None:
            groups[uid] = next_group
            next_group += 1
        else:
            groups[uid] = groups.get(parent, 0)
    return groups
