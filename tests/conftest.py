"""Shared test fixtures for procview."""

import pytest

from procview.models import ProcessRecord
from procview.monitor import SystemSnapshot


def make_record(
    pid: int = 100,
    parent_pid: int = 0,
    owner: str = "user",
    status: str = "S",
    cpu_percent: float = 0.0,
    memory_percent: float = 0.0,
    virtual_memory_bytes: int = 1024 * 1024,
    cpu_time_seconds: int = 0,
    command_line: str = "/bin/test",
) -> ProcessRecord:
    """Create a ProcessRecord for testing with sensible defaults."""
    return ProcessRecord(
        pid=pid,
        parent_pid=parent_pid,
        owner=owner,
        status=status,
        cpu_percent=cpu_percent,
        memory_percent=memory_percent,
        virtual_memory_bytes=virtual_memory_bytes,
        cpu_time_seconds=cpu_time_seconds,
        command_line=command_line,
    )


def make_snapshot(processes=()) -> SystemSnapshot:
    """Create a SystemSnapshot around the given processes."""
    return SystemSnapshot(
        cpu_percent_per_core=(10.0, 20.0),
        memory_total=16 * 1024**3,
        memory_used=8 * 1024**3,
        memory_percent=50.0,
        swap_total=4 * 1024**3,
        swap_used=0,
        swap_percent=0.0,
        load_avg=(1.0, 0.5, 0.25),
        uptime_seconds=3600.0,
        processes=tuple(processes),
    )


@pytest.fixture
def five_records() -> list[ProcessRecord]:
    """Five processes with distinct values in every sortable column."""
    return [
        make_record(
            pid=30, owner="carol", cpu_percent=5.0, memory_percent=40.0,
            cpu_time_seconds=300, command_line="postgres -D /var/lib/pg",
        ),
        make_record(
            pid=10, owner="alice", cpu_percent=50.0, memory_percent=10.0,
            cpu_time_seconds=100, command_line="bash",
        ),
        make_record(
            pid=50, owner="eve", cpu_percent=1.0, memory_percent=20.0,
            cpu_time_seconds=500, command_line="zsh -l",
        ),
        make_record(
            pid=20, owner="bob", cpu_percent=25.0, memory_percent=30.0,
            cpu_time_seconds=200, command_line="sshd: bob",
        ),
        make_record(
            pid=40, owner="dave", cpu_percent=75.0, memory_percent=5.0,
            cpu_time_seconds=400, command_line="chrome --type=renderer",
        ),
    ]


@pytest.fixture
def family_records() -> list[ProcessRecord]:
    """A root -> child -> grandchild chain, a second root and an orphan."""
    return [
        make_record(pid=300, parent_pid=200, command_line="grandchild"),
        make_record(pid=1, parent_pid=0, command_line="init"),
        make_record(pid=200, parent_pid=1, command_line="child"),
        make_record(pid=150, parent_pid=1, command_line="sibling"),
        make_record(pid=999, parent_pid=4242, command_line="orphan"),
        make_record(pid=2, parent_pid=0, command_line="kthreadd"),
    ]
