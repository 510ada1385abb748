"""Cursor arithmetic over the current view sequence.

The cursor is a plain index. It is ``None`` only while the view is empty; a
stale index left over from a longer view is clamped by every operation.
"""

from collections.abc import Sequence

from procview.models import TreeNode


def clamp(cursor: int | None, length: int) -> int | None:
    """Bring ``cursor`` inside ``[0, length)``, or ``None`` for an empty view."""
    if length <= 0:
        return None
    if cursor is None:
        return 0
    return max(0, min(cursor, length - 1))


def move_next(cursor: int | None, length: int) -> int | None:
    """Step down one row, wrapping from the last row to the first."""
    if length <= 0:
        return cursor
    current = -1 if cursor is None else min(cursor, length - 1)
    return (current + 1) % length


def move_previous(cursor: int | None, length: int) -> int | None:
    """Step up one row, wrapping from the first row to the last."""
    if length <= 0:
        return cursor
    if cursor is None:
        return length - 1
    current = min(cursor, length - 1)
    return (current - 1) % length


def page_down(cursor: int | None, length: int, page_size: int) -> int | None:
    if length <= 0:
        return cursor
    current = cursor or 0
    return min(current + max(page_size, 0), length - 1)


def page_up(cursor: int | None, length: int, page_size: int) -> int | None:
    if length <= 0:
        return cursor
    current = min(cursor or 0, length - 1)
    return max(current - max(page_size, 0), 0)


def home(cursor: int | None, length: int) -> int | None:
    return 0 if length > 0 else cursor


def end(cursor: int | None, length: int) -> int | None:
    return length - 1 if length > 0 else cursor


def selected_pid(view: Sequence[TreeNode], cursor: int | None) -> int | None:
    """Return the pid under the cursor, or ``None`` if nothing is selected."""
    if cursor is None or not 0 <= cursor < len(view):
        return None
    return view[cursor].record.pid


def resolve_cursor(view: Sequence[TreeNode], cursor: int | None, pid: int | None) -> int | None:
    """Find ``pid`` in a freshly rendered view.

    Falls back to clamping the old index when the pid is gone.
    """
    if pid is not None:
        for index, node in enumerate(view):
            if node.record.pid == pid:
                return index
    return clamp(cursor, len(view))
