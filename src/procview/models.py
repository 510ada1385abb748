"""Data models for procview."""

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process at sample time."""

    pid: int
    parent_pid: int  # 0 when the process has no parent
    owner: str  # '?' when the uid cannot be resolved
    status: str  # 'R', 'S', 'Z', 'D', etc.
    cpu_percent: float  # 0.0 - 100.0, normalized by core count
    memory_percent: float
    virtual_memory_bytes: int
    cpu_time_seconds: int
    command_line: str


class SortKey(Enum):
    """Columns the flat view can be sorted by."""

    PID = "pid"
    OWNER = "owner"
    CPU = "cpu"
    MEMORY = "memory"
    TIME = "time"
    COMMAND = "command"


class SortDirection(Enum):
    """Direction of the active sort."""

    ASCENDING = "ascending"
    DESCENDING = "descending"

    def flipped(self) -> "SortDirection":
        if self is SortDirection.ASCENDING:
            return SortDirection.DESCENDING
        return SortDirection.ASCENDING


class ViewMode(Enum):
    """Shape of the view sequence."""

    FLAT = "flat"
    TREE = "tree"

    def toggled(self) -> "ViewMode":
        return ViewMode.TREE if self is ViewMode.FLAT else ViewMode.FLAT


@dataclass(slots=True, frozen=True)
class TreeNode:
    """A record placed in the view sequence at a given depth."""

    depth: int
    record: ProcessRecord


@dataclass(slots=True, frozen=True)
class SignalChoice:
    """One entry of the kill menu."""

    label: str
    number: int


# Display and navigation order of the kill menu.
SIGNAL_CATALOG: tuple[SignalChoice, ...] = (
    SignalChoice(" 1 SIGHUP", 1),
    SignalChoice(" 2 SIGINT", 2),
    SignalChoice(" 9 SIGKILL", 9),
    SignalChoice("15 SIGTERM", 15),
    SignalChoice("20 SIGTSTP", 20),
    SignalChoice("24 SIGXCPU", 24),
)
