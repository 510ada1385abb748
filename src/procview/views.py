"""View transforms: turn a process snapshot into an ordered view sequence.

All functions here are pure. They never mutate the snapshot they are given
and an empty snapshot always yields an empty sequence.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from procview.models import ProcessRecord, SortDirection, SortKey, TreeNode, ViewMode

_SORT_FIELDS: dict[SortKey, Callable[[ProcessRecord], Any]] = {
    SortKey.PID: lambda p: p.pid,
    SortKey.OWNER: lambda p: p.owner,
    SortKey.CPU: lambda p: p.cpu_percent,
    SortKey.MEMORY: lambda p: p.memory_percent,
    SortKey.TIME: lambda p: p.cpu_time_seconds,
    SortKey.COMMAND: lambda p: p.command_line,
}


def filter_records(
    records: Iterable[ProcessRecord], pattern: str | None
) -> list[ProcessRecord]:
    """Keep records whose command line contains ``pattern``, ignoring case.

    A ``None`` or empty pattern lets every record through.
    """
    if not pattern:
        return list(records)
    needle = pattern.lower()
    return [p for p in records if needle in p.command_line.lower()]


def sort_records(
    records: Iterable[ProcessRecord], key: SortKey, direction: SortDirection
) -> list[ProcessRecord]:
    """Sort records by a single column.

    Numeric columns compare numerically, string columns lexically. Python's
    sort is stable, so equal keys keep their snapshot order.
    """
    return sorted(
        records,
        key=_SORT_FIELDS[key],
        reverse=direction is SortDirection.DESCENDING,
    )


def tree_order(records: Sequence[ProcessRecord]) -> list[TreeNode]:
    """Flatten the process hierarchy into a pre-order sequence.

    A record is a root when its parent pid is 0, is its own pid, or names a
    process that is not in ``records`` (the parent exited between samples).
    Roots and every set of siblings are ordered by ascending pid.

    Pids can be reused while psutil walks the process table, so parent links
    may form a cycle that no root reaches. Such records are appended as
    extra roots, lowest pid first, so every record appears exactly once.
    """
    known = {p.pid for p in records}
    children: dict[int, list[ProcessRecord]] = {}
    roots: list[ProcessRecord] = []

    for proc in records:
        parent = proc.parent_pid
        if parent == 0 or parent == proc.pid or parent not in known:
            roots.append(proc)
        else:
            children.setdefault(parent, []).append(proc)

    ordered: list[TreeNode] = []
    visited: set[int] = set()

    def walk(root: ProcessRecord) -> None:
        # Explicit stack instead of recursion: deep chains must not hit the
        # interpreter's recursion limit.
        stack = [(0, root)]
        while stack:
            depth, proc = stack.pop()
            if proc.pid in visited:
                continue
            visited.add(proc.pid)
            ordered.append(TreeNode(depth, proc))
            for child in sorted(children.get(proc.pid, ()), key=lambda p: p.pid, reverse=True):
                stack.append((depth + 1, child))

    for root in sorted(roots, key=lambda p: p.pid):
        walk(root)
    for proc in sorted(records, key=lambda p: p.pid):
        if proc.pid not in visited:
            walk(proc)
    return ordered


def render_view(
    records: Sequence[ProcessRecord],
    sort_key: SortKey,
    sort_direction: SortDirection,
    pattern: str | None,
    view_mode: ViewMode,
) -> list[TreeNode]:
    """Build the view sequence for one frame.

    FLAT mode filters then sorts and places every record at depth 0. TREE
    mode ignores both the filter and the sort and shows the full hierarchy.
    """
    if view_mode is ViewMode.TREE:
        return tree_order(records)
    matching = filter_records(records, pattern)
    return [TreeNode(0, p) for p in sort_records(matching, sort_key, sort_direction)]
