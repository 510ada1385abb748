"""Tests for the SystemMonitor sampler and SharedState."""

import subprocess
import sys
import threading
import time
from types import SimpleNamespace

import psutil
import pytest
from conftest import make_record, make_snapshot

from procview.models import ProcessRecord
from procview.monitor import (
    PROCESS_ATTRS,
    STATUS_CODES,
    SharedState,
    SystemMonitor,
    SystemSnapshot,
    status_code,
)


def wait_for_generation(shared: SharedState, generation: int, timeout: float = 5.0) -> None:
    """Block until ``shared`` has seen at least ``generation`` snapshots."""
    deadline = time.monotonic() + timeout
    while shared.generation < generation:
        if time.monotonic() > deadline:
            raise TimeoutError(f"No snapshot #{generation} within {timeout}s")
        time.sleep(0.02)


class TestSystemSnapshot:
    """Tests for SystemSnapshot dataclass."""

    def test_system_snapshot_creation(self):
        """Test SystemSnapshot can be created with all fields."""
        snapshot = make_snapshot([make_record(pid=1)])
        assert snapshot.cpu_percent_per_core == (10.0, 20.0)
        assert snapshot.memory_percent == 50.0
        assert snapshot.load_avg == (1.0, 0.5, 0.25)
        assert len(snapshot.processes) == 1

    def test_system_snapshot_uses_slots(self):
        """Test SystemSnapshot uses __slots__ for memory efficiency."""
        assert not hasattr(make_snapshot(), "__dict__")


class TestSharedState:
    """Tests for the lock-guarded snapshot holder."""

    def test_starts_empty(self):
        shared = SharedState()
        assert shared.read() is None
        assert shared.generation == 0

    def test_replace_is_wholesale(self):
        shared = SharedState()
        first = make_snapshot([make_record(pid=1)])
        second = make_snapshot([make_record(pid=2), make_record(pid=3)])
        shared.replace(first)
        shared.replace(second)
        assert shared.read() is second
        assert shared.generation == 2

    def test_readers_never_see_partial_snapshots(self):
        """Concurrent readers only ever observe snapshots that were installed."""
        shared = SharedState()
        snapshots = [
            make_snapshot([make_record(pid=p) for p in range(n)]) for n in range(1, 30)
        ]
        installed = {id(s) for s in snapshots}
        seen: list[SystemSnapshot] = []
        done = threading.Event()

        def reader():
            while not done.is_set():
                snapshot = shared.read()
                if snapshot is not None:
                    seen.append(snapshot)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for snapshot in snapshots:
                shared.replace(snapshot)
                time.sleep(0.001)
        finally:
            done.set()
            thread.join()

        assert seen
        assert all(id(s) in installed for s in seen)


class TestStatusCode:
    @pytest.mark.parametrize(
        ("status", "code"),
        [
            (psutil.STATUS_RUNNING, "R"),
            (psutil.STATUS_SLEEPING, "S"),
            (psutil.STATUS_DISK_SLEEP, "D"),
            (psutil.STATUS_ZOMBIE, "Z"),
            (psutil.STATUS_STOPPED, "T"),
            (None, "?"),
            ("", "?"),
            ("mystery", "M"),
        ],
    )
    def test_mapping(self, status, code):
        assert status_code(status) == code

    @pytest.mark.parametrize(
        "name", sorted(name for name in dir(psutil) if name.startswith("STATUS_"))
    )
    def test_every_exported_status_has_a_letter(self, name):
        code = status_code(getattr(psutil, name))
        assert len(code) == 1
        assert code != "?"

    def test_known_letters_only_use_existing_constants(self):
        exported = {getattr(psutil, n) for n in dir(psutil) if n.startswith("STATUS_")}
        assert set(STATUS_CODES) <= exported


class TestSystemMonitor:
    """Tests for SystemMonitor class."""

    def test_monitor_creation(self):
        """Test SystemMonitor can be instantiated."""
        monitor = SystemMonitor(SharedState())

        assert monitor.poll_rate == 2.0
        assert not monitor.is_running

    def test_monitor_custom_poll_rate(self):
        """Test SystemMonitor with custom poll rate."""
        monitor = SystemMonitor(SharedState(), poll_rate=1.0)

        assert monitor.poll_rate == 1.0

    def test_poll_rate_minimum(self):
        """Test poll rate has a minimum value."""
        monitor = SystemMonitor(SharedState())

        monitor.poll_rate = 0.01  # Very small value
        assert monitor.poll_rate >= 0.1  # Should be clamped to minimum

    def test_monitor_start_stop(self):
        """Test SystemMonitor can be started and stopped."""
        monitor = SystemMonitor(SharedState(), poll_rate=0.1)

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_monitor_start_idempotent(self):
        """Test starting an already running monitor is safe."""
        monitor = SystemMonitor(SharedState(), poll_rate=0.1)

        monitor.start()
        thread1 = monitor._thread

        monitor.start()  # Should not create a new thread
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_monitor_installs_snapshots(self):
        """Test SystemMonitor collects data into the shared state."""
        shared = SharedState()
        monitor = SystemMonitor(shared, poll_rate=0.1)

        monitor.start()
        try:
            wait_for_generation(shared, 1)
            snapshot = shared.read()
            assert isinstance(snapshot, SystemSnapshot)
            assert isinstance(snapshot.cpu_percent_per_core, tuple)
            assert isinstance(snapshot.processes, tuple)
            assert snapshot.memory_total > 0
            assert len(snapshot.processes) > 0
        finally:
            monitor.stop()

    def test_monitor_replaces_snapshots(self):
        """Test the sampler keeps installing fresh snapshots."""
        shared = SharedState()
        monitor = SystemMonitor(shared, poll_rate=0.1)

        monitor.start()
        try:
            wait_for_generation(shared, 1)
            first = shared.read()
            wait_for_generation(shared, 2)
            assert shared.read() is not first
        finally:
            monitor.stop()

    def test_sample_failure_keeps_previous_snapshot(self, monkeypatch):
        """A failing cycle is logged and the loop carries on."""
        previous = make_snapshot([make_record(pid=7)])
        shared = SharedState(previous)
        monitor = SystemMonitor(shared, poll_rate=0.1)
        calls = []

        def broken_sample():
            calls.append(1)
            raise RuntimeError("boom")

        monkeypatch.setattr(monitor, "sample", broken_sample)
        monitor.start()
        try:
            deadline = time.monotonic() + 5.0
            while len(calls) < 2 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert len(calls) >= 2
            assert monitor.is_running
            assert shared.read() is previous
        finally:
            monitor.stop()

    def test_stop_flag_ends_thread_promptly(self):
        monitor = SystemMonitor(SharedState(), poll_rate=60.0)
        monitor.start()
        started = time.monotonic()
        monitor.stop()
        assert time.monotonic() - started < 5.0
        assert not monitor.is_running

    def test_collect_processes_returns_records(self):
        """Test _collect_processes returns a tuple of ProcessRecord."""
        monitor = SystemMonitor(SharedState())

        processes = monitor._collect_processes(psutil.cpu_count() or 1)

        assert isinstance(processes, tuple)
        assert len(processes) > 0
        for proc in processes:
            assert isinstance(proc, ProcessRecord)

    def test_records_have_required_fields(self):
        """Test collected records have all required fields."""
        monitor = SystemMonitor(SharedState())

        processes = monitor._collect_processes()

        for proc in processes[:5]:
            assert proc.pid >= 0
            assert proc.parent_pid >= 0
            assert isinstance(proc.owner, str) and proc.owner
            assert len(proc.status) == 1
            assert isinstance(proc.cpu_percent, float)
            assert isinstance(proc.memory_percent, float)
            assert isinstance(proc.virtual_memory_bytes, int)
            assert isinstance(proc.cpu_time_seconds, int)
            assert isinstance(proc.command_line, str)

    def test_own_process_is_collected(self):
        monitor = SystemMonitor(SharedState())
        me = psutil.Process()

        records = {p.pid: p for p in monitor._collect_processes()}

        assert me.pid in records
        assert records[me.pid].parent_pid == me.ppid()

    def test_pids_are_unique(self):
        monitor = SystemMonitor(SharedState())
        pids = [p.pid for p in monitor._collect_processes()]
        assert len(pids) == len(set(pids))

    def test_collect_uses_prefetched_info(self, monkeypatch):
        """Records are built from process_iter's prefetched attributes alone."""
        times = SimpleNamespace(user=3.6, system=1.5)

        class Prefetched:
            def __init__(self, info):
                self.info = info

        infos = [
            {
                "pid": 42,
                "ppid": 1,
                "name": "worker",
                "username": None,
                "status": psutil.STATUS_RUNNING,
                "cpu_percent": 80.0,
                "memory_percent": 1.5,
                "memory_info": None,
                "cpu_times": times,
                "cmdline": None,
            }
        ]
        seen_attrs = []

        def fake_iter(attrs=None):
            seen_attrs.append(attrs)
            return iter([Prefetched(info) for info in infos])

        monkeypatch.setattr(psutil, "process_iter", fake_iter)

        (record,) = SystemMonitor(SharedState())._collect_processes(4)

        assert seen_attrs == [PROCESS_ATTRS]
        assert record == ProcessRecord(
            pid=42,
            parent_pid=1,
            owner="?",
            status="R",
            cpu_percent=20.0,
            memory_percent=1.5,
            virtual_memory_bytes=0,
            cpu_time_seconds=5,
            command_line="worker",
        )

    def test_daemon_thread(self):
        """Test monitor thread is a daemon thread."""
        monitor = SystemMonitor(SharedState(), poll_rate=0.1)

        monitor.start()

        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "SystemMonitor"
        finally:
            monitor.stop()


class TestVanishingProcesses:
    """Processes that exit mid-collection are skipped, never raised."""

    @pytest.fixture
    def children(self):
        procs = [
            subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
            for _ in range(10)
        ]
        yield procs
        for proc in procs:
            if proc.poll() is None:
                proc.kill()
            proc.wait(timeout=5)

    def test_collect_skips_terminated_children(self, children):
        monitor = SystemMonitor(SharedState())
        for proc in children:
            proc.terminate()

        records = monitor._collect_processes()

        assert isinstance(records, tuple)

    def test_sampler_survives_children_exiting(self, children):
        shared = SharedState()
        monitor = SystemMonitor(shared, poll_rate=0.1)
        monitor.start()
        try:
            wait_for_generation(shared, 1)
            for proc in children:
                proc.kill()
            generation = shared.generation
            wait_for_generation(shared, generation + 2)
            live = {p.pid for p in shared.read().processes}
            for proc in children:
                proc.wait(timeout=5)
            assert monitor.is_running
            assert live
        finally:
            monitor.stop()

    def test_unreaped_zombie_is_tolerated(self):
        proc = subprocess.Popen([sys.executable, "-c", "pass"])
        try:
            # Let it exit without being waited on.
            deadline = time.monotonic() + 5.0
            while time.monotonic() < deadline:
                try:
                    if psutil.Process(proc.pid).status() == psutil.STATUS_ZOMBIE:
                        break
                except psutil.NoSuchProcess:
                    break
                time.sleep(0.02)

            records = SystemMonitor(SharedState())._collect_processes()
            assert all(isinstance(r, ProcessRecord) for r in records)
        finally:
            proc.wait(timeout=5)
