"""procview - Main Textual application."""

import structlog
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Static

from procview.config import Config
from procview.formatting import format_bytes, format_time, format_uptime, tree_prefix
from procview.models import SIGNAL_CATALOG, SortDirection, TreeNode, ViewMode
from procview.modes import (
    InputController,
    Key,
    KeyEvent,
    KillMenuMode,
    SearchMode,
    SignalSender,
    ViewState,
)
from procview.monitor import SharedState, SystemMonitor, SystemSnapshot
from procview.signals import deliver_signal

log = structlog.get_logger()

# Textual key names for the keys that are not plain characters.
SPECIAL_KEYS: dict[str, Key] = {
    "up": Key.UP,
    "down": Key.DOWN,
    "pageup": Key.PAGE_UP,
    "pagedown": Key.PAGE_DOWN,
    "home": Key.HOME,
    "end": Key.END,
    "escape": Key.ESCAPE,
    "enter": Key.CONFIRM,
    "backspace": Key.BACKSPACE,
    "f5": Key.TOGGLE_TREE,
    "f6": Key.CYCLE_SORT,
    "f9": Key.OPEN_KILL_MENU,
    "f10": Key.QUIT,
}

HELP_TEXT = "F5 Tree  F6 Sort  F9 Kill  F10 Quit  / Search  I Invert  P U M T C Sort by column"


def translate_key(key: str, character: str | None) -> KeyEvent | None:
    """Map a Textual key press onto the dashboard's key vocabulary."""
    if key in SPECIAL_KEYS:
        return KeyEvent(SPECIAL_KEYS[key])
    if character and character.isprintable():
        return KeyEvent.of(character)
    return None


BAR_WIDTH = 20
GIB = 1024**3


def meter(percent: float, colour: str) -> str:
    """A fixed-width bar in Rich markup, brackets escaped."""
    filled = max(0, min(int(percent / (100 / BAR_WIDTH)), BAR_WIDTH))
    return f"\\[[{colour}]{'█' * filled}[/{colour}][dim]{'░' * (BAR_WIDTH - filled)}[/dim]]"


class HeaderStats(Static):
    """Per-core CPU meters on the left, memory and load on the right."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._snapshot: SystemSnapshot | None = None

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Static(self.cpu_text(), id="cpu-info"),
            Static(self.memory_text(), id="mem-info"),
        )

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Repaint from ``snapshot`` unless it is the one already shown."""
        if snapshot is self._snapshot:
            return
        self._snapshot = snapshot
        self.query_one("#cpu-info", Static).update(self.cpu_text())
        self.query_one("#mem-info", Static).update(self.memory_text())

    def cpu_text(self) -> str:
        snapshot = self._snapshot
        if snapshot is None or not snapshot.cpu_percent_per_core:
            return "Waiting for first sample..."
        return "\n".join(
            f"CPU{index:<2} {meter(usage, 'green')} {usage:5.1f}%"
            for index, usage in enumerate(snapshot.cpu_percent_per_core, start=1)
        )

    def memory_text(self) -> str:
        snapshot = self._snapshot
        if snapshot is None or snapshot.memory_total == 0:
            return ""
        swap_percent = snapshot.swap_percent if snapshot.swap_total else 0.0
        one, five, fifteen = snapshot.load_avg
        return "\n".join(
            [
                f"Mem{meter(snapshot.memory_percent, 'cyan')} "
                f"{snapshot.memory_used / GIB:.1f}G/{snapshot.memory_total / GIB:.1f}G",
                f"Swp{meter(swap_percent, 'magenta')} "
                f"{snapshot.swap_used / GIB:.1f}G/{snapshot.swap_total / GIB:.1f}G",
                f"Tasks: {len(snapshot.processes)}, Load average: {one:.2f} {five:.2f} {fifteen:.2f}",
                f"Uptime: {format_uptime(snapshot.uptime_seconds)}",
            ]
        )


# (label, key, width); the command column takes the remaining space.
COLUMNS = [
    ("PID", "pid", 7),
    ("USER", "user", 10),
    ("VIRT", "virt", 7),
    ("S", "status", 2),
    ("CPU%", "cpu", 6),
    ("MEM%", "mem", 6),
    ("TIME+", "time", 9),
    ("COMMAND", "command", None),
]


class ProcessRows(DataTable, can_focus=False):
    """Data table that leaves all key handling to the app."""


class ProcessTable(Container):
    """Bordered process list; the border title names the active ordering."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._rows: list[tuple] = []

    @property
    def row_pids(self) -> list[int]:
        """Pids in the order they are currently displayed."""
        return [row[0] for row in self._rows]

    @property
    def page_size(self) -> int:
        """Rows visible at once, minus the header row."""
        table = self.query_one("#process-table", ProcessRows)
        return max(1, table.size.height - 1)

    def compose(self) -> ComposeResult:
        yield ProcessRows(id="process-table", cursor_type="row", zebra_stripes=False)

    def on_mount(self) -> None:
        table = self.query_one("#process-table", ProcessRows)
        for label, key, width in COLUMNS:
            table.add_column(label, key=key, width=width)

    def show(self, view: list[TreeNode], cursor: int | None, state: ViewState) -> None:
        """Paint the view sequence and move the highlight to ``cursor``.

        Rows are only rebuilt when the visible content changed.
        """
        arrow = "▼" if state.sort_direction is SortDirection.DESCENDING else "▲"
        if state.view_mode is ViewMode.TREE:
            self.border_title = "Processes \\[tree]"
        else:
            self.border_title = f"Processes \\[{state.sort_key.value} {arrow}]"

        table = self.query_one("#process-table", ProcessRows)
        if not table.columns:
            return
        rows = [self._row(node) for node in view]
        if rows != self._rows:
            table.clear()
            for row in rows:
                table.add_row(*(Text(cell) for cell in row[1:]), key=str(row[0]))
            self._rows = rows
        if cursor is not None and cursor < table.row_count:
            table.move_cursor(row=cursor)

    @staticmethod
    def _row(node: TreeNode) -> tuple:
        proc = node.record
        return (
            proc.pid,
            str(proc.pid),
            proc.owner[:10],
            format_bytes(proc.virtual_memory_bytes),
            proc.status,
            f"{proc.cpu_percent:5.1f}",
            f"{proc.memory_percent:5.1f}",
            format_time(proc.cpu_time_seconds),
            tree_prefix(node.depth) + proc.command_line,
        )


def status_line(state: ViewState) -> Text:
    """Search prompt, active filter or last status message, plus key help."""
    mode = state.mode
    if isinstance(mode, SearchMode):
        line = Text(f"/{mode.query}", style="bold yellow")
        line.append("  (Enter to apply, Esc to cancel)", style="dim")
    elif state.filter is not None:
        line = Text(f"[Filter: {state.filter}] (Esc to clear)", style="cyan")
    else:
        line = Text(state.status or "")
    line.append("\n")
    line.append(HELP_TEXT, style="dim")
    return line


class StatusBar(Static):
    """Status line and key help at the bottom of the screen."""

    DEFAULT_CSS = """
    StatusBar {
        height: 2;
        padding: 0 1;
    }
    """

    def show(self, state: ViewState) -> None:
        self.update(status_line(state))


class KillMenu(Static):
    """Signal picker shown over the process table."""

    DEFAULT_CSS = """
    KillMenu {
        display: none;
        dock: right;
        width: 24;
        height: auto;
        border: round $warning;
        border-title-align: center;
        background: $panel;
    }
    """

    def on_mount(self) -> None:
        self.border_title = "Select signal"

    def show(self, mode: KillMenuMode | None) -> None:
        self.display = mode is not None
        if mode is None:
            return
        text = Text()
        for index, choice in enumerate(SIGNAL_CATALOG):
            if index == mode.signal_index:
                text.append(f">> {choice.label}", style="reverse")
            else:
                text.append(f"   {choice.label}")
            if index < len(SIGNAL_CATALOG) - 1:
                text.append("\n")
        self.update(text)


class ProcviewApp(App):
    """Live process dashboard.

    The sampler thread writes snapshots into shared state; this app reads
    the latest one on a timer and after every key press.
    """

    TITLE = "procview"
    SUB_TITLE = "Live Process Viewer"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    def __init__(
        self,
        config: Config | None = None,
        monitor: SystemMonitor | None = None,
        send_signal: SignalSender = deliver_signal,
    ) -> None:
        super().__init__()
        self._config = config or Config()
        view_config = self._config.view
        self._monitor = monitor or SystemMonitor(
            SharedState(), poll_rate=self._config.sampler.interval
        )
        self._controller = InputController(
            ViewState(
                sort_key=view_config.initial_sort_key,
                sort_direction=view_config.initial_sort_direction,
                view_mode=ViewMode.TREE if view_config.tree_view else ViewMode.FLAT,
            ),
            send_signal=send_signal,
            track_selection=view_config.track_selection,
        )

    @property
    def controller(self) -> InputController:
        return self._controller

    @property
    def shared(self) -> SharedState:
        return self._monitor.shared

    def compose(self) -> ComposeResult:
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield KillMenu(id="kill-menu")
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        """Start the sampler and the frame timer."""
        self._monitor.start()
        log.info("app_started")
        self.set_interval(self._config.view.refresh_interval, self.refresh_frame)
        # The controller needs a view before the first key press arrives;
        # the table itself is painted once its columns exist.
        self.refresh_frame()
        self.call_after_refresh(self.refresh_frame)

    def refresh_frame(self) -> None:
        """Render one frame from the latest snapshot.

        The shared state lock is held only inside ``read``; the view is
        computed from the immutable snapshot afterwards.
        """
        snapshot = self.shared.read()
        processes = snapshot.processes if snapshot is not None else ()
        view = self._controller.render(processes)
        state = self._controller.state

        if snapshot is not None:
            self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self.query_one(ProcessTable).show(view, state.cursor, state)
        mode = state.mode
        self.query_one("#kill-menu", KillMenu).show(mode if isinstance(mode, KillMenuMode) else None)
        self.query_one("#status-bar", StatusBar).show(state)

    def on_key(self, event: events.Key) -> None:
        """Feed key presses to the input state machine."""
        key_event = translate_key(event.key, event.character)
        if key_event is None:
            return
        event.stop()
        event.prevent_default()

        page_size = self.query_one(ProcessTable).page_size
        state = self._controller.handle(key_event, page_size)
        if state.quit_requested:
            self.action_quit()
            return
        self.refresh_frame()

    def action_quit(self) -> None:
        """Stop sampling before leaving the terminal."""
        self._monitor.stop()
        log.info("app_stopped")
        self.exit()

