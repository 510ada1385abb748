"""System sampling for procview.

A background thread collects process and system data with psutil and
installs each result in a ``SharedState``, replacing the previous one
wholesale. The foreground only ever sees complete snapshots.
"""

import threading
import time
from dataclasses import dataclass

import psutil
import structlog

from procview.models import ProcessRecord

log = structlog.get_logger()

# psutil status constant names and the letters ps(1) uses for them. Which
# constants exist depends on the psutil version and platform.
_STATUS_LETTERS = {
    "STATUS_RUNNING": "R",
    "STATUS_SLEEPING": "S",
    "STATUS_DISK_SLEEP": "D",
    "STATUS_STOPPED": "T",
    "STATUS_TRACING_STOP": "t",
    "STATUS_ZOMBIE": "Z",
    "STATUS_DEAD": "X",
    "STATUS_WAKE_KILL": "K",
    "STATUS_WAKING": "W",
    "STATUS_IDLE": "I",
    "STATUS_LOCKED": "L",
    "STATUS_WAITING": "W",
    "STATUS_PARKED": "P",
}

STATUS_CODES: dict[str, str] = {
    getattr(psutil, name): letter
    for name, letter in _STATUS_LETTERS.items()
    if hasattr(psutil, name)
}


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """One complete reading of the machine and its processes."""

    cpu_percent_per_core: tuple[float, ...]
    memory_total: int
    memory_used: int
    memory_percent: float
    swap_total: int
    swap_used: int
    swap_percent: float
    load_avg: tuple[float, float, float]
    uptime_seconds: float
    processes: tuple[ProcessRecord, ...]


class SharedState:
    """Lock-guarded holder of the latest ``SystemSnapshot``.

    The sampler is the only writer. Snapshots are immutable, so a reader can
    keep the reference it gets from ``read`` after the lock is released.
    """

    def __init__(self, snapshot: SystemSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot
        self._generation = 0 if snapshot is None else 1

    def replace(self, snapshot: SystemSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._generation += 1

    def read(self) -> SystemSnapshot | None:
        with self._lock:
            return self._snapshot

    @property
    def generation(self) -> int:
        """Number of snapshots installed so far."""
        with self._lock:
            return self._generation


def status_code(status: str | None) -> str:
    """Single-letter code for a psutil status string."""
    if not status:
        return "?"
    return STATUS_CODES.get(status, status[0].upper())


class SystemMonitor:
    """Background sampler feeding a ``SharedState``.

    Each cycle builds a complete ``SystemSnapshot`` and swaps it in, so the
    foreground never observes a half-collected process table. A cycle that
    raises is logged and the previous snapshot stays in place.
    """

    MIN_POLL_RATE = 0.1

    def __init__(self, shared: SharedState, poll_rate: float = 2.0) -> None:
        """
        Args:
            shared: Where finished snapshots are installed.
            poll_rate: Seconds between samples, at least ``MIN_POLL_RATE``.
        """
        self._shared = shared
        self._poll_rate = max(self.MIN_POLL_RATE, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # psutil reports 0.0 for the first cpu_percent call; prime it.
        psutil.cpu_percent(percpu=True)

    @property
    def shared(self) -> SharedState:
        return self._shared

    @property
    def poll_rate(self) -> float:
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        self._poll_rate = max(self.MIN_POLL_RATE, value)

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Launch the sampler thread; a no-op if it is already alive."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="SystemMonitor", daemon=True)
        self._thread.start()
        log.info("sampler_started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Ask the sampler to finish and wait up to ``timeout`` seconds."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is None:
            return
        thread.join(timeout=timeout)
        log.info("sampler_stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._shared.replace(self.sample())
            except Exception:
                log.exception("sample_failed")
            # Returns early when stop() sets the event.
            self._stop_event.wait(self._poll_rate)

    def sample(self) -> SystemSnapshot:
        """Take one complete reading of the machine."""
        per_core = tuple(psutil.cpu_percent(percpu=True))
        vm = psutil.virtual_memory()
        sm = psutil.swap_memory()
        return SystemSnapshot(
            cpu_percent_per_core=per_core,
            memory_total=vm.total,
            memory_used=vm.used,
            memory_percent=vm.percent,
            swap_total=sm.total,
            swap_used=sm.used,
            swap_percent=sm.percent,
            load_avg=tuple(psutil.getloadavg()),
            uptime_seconds=time.time() - psutil.boot_time(),
            processes=self._collect_processes(len(per_core)),
        )

    def _collect_processes(self, core_count: int = 1) -> tuple[ProcessRecord, ...]:
        """
        Read every visible process into a ``ProcessRecord``.

        Processes that exit while being read are left out. Attributes psutil
        is denied access to come back as ``None`` and are replaced with
        placeholders.
        """
        cores = max(core_count, 1)
        # process_iter fetches PROCESS_ATTRS in one batch per process and
        # drops processes that disappear while being read.
        return tuple(
            _to_record(proc.info, cores) for proc in psutil.process_iter(attrs=PROCESS_ATTRS)
        )


PROCESS_ATTRS = [
    "pid",
    "ppid",
    "name",
    "username",
    "status",
    "cpu_percent",
    "memory_percent",
    "memory_info",
    "cpu_times",
    "cmdline",
]


def _to_record(info: dict, cores: int) -> ProcessRecord:
    argv = info.get("cmdline")
    mem_info = info.get("memory_info")
    times = info.get("cpu_times")
    return ProcessRecord(
        pid=info["pid"],
        parent_pid=info.get("ppid") or 0,
        owner=info.get("username") or "?",
        status=status_code(info.get("status")),
        cpu_percent=(info.get("cpu_percent") or 0.0) / cores,
        memory_percent=info.get("memory_percent") or 0.0,
        virtual_memory_bytes=mem_info.vms if mem_info else 0,
        cpu_time_seconds=int(times.user + times.system) if times else 0,
        command_line=" ".join(argv) if argv else info.get("name") or "",
    )
