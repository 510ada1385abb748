"""Modal input handling: normal browsing, text search and the kill menu.

Key presses arrive as abstract ``KeyEvent`` values. ``transition`` maps the
current ``ViewState`` and one event to the next ``ViewState``; events that
do not apply to the active mode leave the state unchanged.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum, auto

from procview import selection
from procview.models import (
    SIGNAL_CATALOG,
    ProcessRecord,
    SignalChoice,
    SortDirection,
    SortKey,
    TreeNode,
    ViewMode,
)
from procview.signals import SignalOutcome, deliver_signal
from procview.views import render_view

SignalSender = Callable[[int, int], SignalOutcome]


class Key(Enum):
    """Keys the dashboard understands, independent of any terminal library."""

    QUIT = auto()
    TOGGLE_TREE = auto()
    OPEN_SEARCH = auto()
    OPEN_KILL_MENU = auto()
    UP = auto()
    DOWN = auto()
    PAGE_UP = auto()
    PAGE_DOWN = auto()
    HOME = auto()
    END = auto()
    ESCAPE = auto()
    CONFIRM = auto()
    BACKSPACE = auto()
    CHAR = auto()
    INVERT_SORT = auto()
    CYCLE_SORT = auto()
    SORT_PID = auto()
    SORT_OWNER = auto()
    SORT_MEMORY = auto()
    SORT_TIME = auto()
    SORT_COMMAND = auto()


@dataclass(slots=True, frozen=True)
class KeyEvent:
    key: Key
    char: str = ""

    @classmethod
    def of(cls, char: str) -> "KeyEvent":
        """A printable character."""
        return cls(Key.CHAR, char)


# Printable characters that act as commands in normal mode.
NORMAL_BINDINGS: dict[str, Key] = {
    "q": Key.QUIT,
    "/": Key.OPEN_SEARCH,
    "i": Key.INVERT_SORT,
    "p": Key.SORT_PID,
    "u": Key.SORT_OWNER,
    "m": Key.SORT_MEMORY,
    "t": Key.SORT_TIME,
    "c": Key.SORT_COMMAND,
}

SORT_KEYS: dict[Key, SortKey] = {
    Key.SORT_PID: SortKey.PID,
    Key.SORT_OWNER: SortKey.OWNER,
    Key.SORT_MEMORY: SortKey.MEMORY,
    Key.SORT_TIME: SortKey.TIME,
    Key.SORT_COMMAND: SortKey.COMMAND,
}


@dataclass(slots=True, frozen=True)
class NormalMode:
    """Browsing the process list."""


@dataclass(slots=True, frozen=True)
class SearchMode:
    """Typing a filter; ``query`` is the uncommitted text."""

    query: str = ""


@dataclass(slots=True, frozen=True)
class KillMenuMode:
    """Choosing a signal; ``signal_index`` points into ``SIGNAL_CATALOG``."""

    signal_index: int = 0

    @property
    def signal(self) -> SignalChoice:
        return SIGNAL_CATALOG[self.signal_index]


InputMode = NormalMode | SearchMode | KillMenuMode


@dataclass(slots=True, frozen=True)
class ViewState:
    """Everything the user controls, carried across refreshes."""

    sort_key: SortKey = SortKey.CPU
    sort_direction: SortDirection = SortDirection.DESCENDING
    view_mode: ViewMode = ViewMode.FLAT
    filter: str | None = None
    cursor: int | None = 0
    status: str | None = None
    mode: InputMode = field(default_factory=NormalMode)
    quit_requested: bool = False

    @property
    def mode_name(self) -> str:
        if isinstance(self.mode, SearchMode):
            return "search"
        if isinstance(self.mode, KillMenuMode):
            return "kill_menu"
        return "normal"


def select_sort(state: ViewState, key: SortKey) -> ViewState:
    """Make ``key`` the active sort; re-selecting it flips the direction."""
    if key is state.sort_key:
        return replace(state, sort_direction=state.sort_direction.flipped(), cursor=0)
    return replace(state, sort_key=key, sort_direction=SortDirection.DESCENDING, cursor=0)


def _next_sort_key(key: SortKey) -> SortKey:
    keys = list(SortKey)
    return keys[(keys.index(key) + 1) % len(keys)]


def _navigate(state: ViewState, key: Key, length: int, page_size: int) -> ViewState:
    cursor = state.cursor
    if key is Key.DOWN:
        cursor = selection.move_next(cursor, length)
    elif key is Key.UP:
        cursor = selection.move_previous(cursor, length)
    elif key is Key.PAGE_DOWN:
        cursor = selection.page_down(cursor, length, page_size)
    elif key is Key.PAGE_UP:
        cursor = selection.page_up(cursor, length, page_size)
    elif key is Key.HOME:
        cursor = selection.home(cursor, length)
    elif key is Key.END:
        cursor = selection.end(cursor, length)
    return replace(state, cursor=cursor)


_NAVIGATION = {Key.UP, Key.DOWN, Key.PAGE_UP, Key.PAGE_DOWN, Key.HOME, Key.END}


def _normal(
    state: ViewState, event: KeyEvent, view: Sequence[TreeNode], page_size: int
) -> ViewState:
    key = event.key
    if key is Key.CHAR:
        bound = NORMAL_BINDINGS.get(event.char.lower())
        if bound is None:
            return state
        key = bound

    if key is Key.QUIT:
        return replace(state, quit_requested=True)
    if key is Key.OPEN_SEARCH:
        return replace(state, mode=SearchMode(state.filter or ""), status=None)
    if key is Key.OPEN_KILL_MENU:
        if selection.selected_pid(view, state.cursor) is None:
            return state
        return replace(state, mode=KillMenuMode(0))
    if key in SORT_KEYS:
        return select_sort(state, SORT_KEYS[key])
    if key is Key.INVERT_SORT:
        return select_sort(state, state.sort_key)
    if key is Key.CYCLE_SORT:
        return select_sort(state, _next_sort_key(state.sort_key))
    if key is Key.TOGGLE_TREE:
        return replace(state, view_mode=state.view_mode.toggled(), cursor=0)
    if key is Key.ESCAPE:
        if state.filter is not None:
            return replace(state, filter=None, cursor=0)
        return replace(state, status=None)
    if key in _NAVIGATION:
        return _navigate(state, key, len(view), page_size)
    return state


def _search(state: ViewState, mode: SearchMode, event: KeyEvent) -> ViewState:
    key = event.key
    if key is Key.CHAR:
        return replace(state, mode=SearchMode(mode.query + event.char))
    if key is Key.BACKSPACE:
        return replace(state, mode=SearchMode(mode.query[:-1]))
    if key is Key.CONFIRM:
        return replace(state, mode=NormalMode(), filter=mode.query or None, cursor=0)
    if key is Key.ESCAPE:
        return replace(state, mode=NormalMode())
    return state


def _kill_menu(
    state: ViewState,
    mode: KillMenuMode,
    event: KeyEvent,
    view: Sequence[TreeNode],
    send_signal: SignalSender,
) -> ViewState:
    key = event.key
    count = len(SIGNAL_CATALOG)
    if key is Key.DOWN:
        return replace(state, mode=KillMenuMode((mode.signal_index + 1) % count))
    if key is Key.UP:
        return replace(state, mode=KillMenuMode((mode.signal_index - 1) % count))
    if key is Key.CONFIRM:
        pid = selection.selected_pid(view, state.cursor)
        status = state.status
        if pid is not None:
            status = send_signal(pid, mode.signal.number).message
        return replace(state, mode=NormalMode(), status=status)
    if key in (Key.ESCAPE, Key.QUIT) or (key is Key.CHAR and event.char.lower() == "q"):
        return replace(state, mode=NormalMode())
    return state


def transition(
    state: ViewState,
    event: KeyEvent,
    view: Sequence[TreeNode],
    page_size: int = 1,
    send_signal: SignalSender = deliver_signal,
) -> ViewState:
    """Apply one key press.

    ``view`` is the sequence currently on screen; it decides what is
    selected and how far navigation may move.
    """
    mode = state.mode
    if isinstance(mode, SearchMode):
        return _search(state, mode, event)
    if isinstance(mode, KillMenuMode):
        return _kill_menu(state, mode, event, view, send_signal)
    return _normal(state, event, view, page_size)


class InputController:
    """Holds the view state and the last rendered view sequence.

    The presentation layer calls ``render`` once per frame with the latest
    snapshot and ``handle`` for every key press.
    """

    def __init__(
        self,
        state: ViewState | None = None,
        send_signal: SignalSender = deliver_signal,
        track_selection: bool = False,
    ) -> None:
        self._state = state or ViewState()
        self._send_signal = send_signal
        self._track_selection = track_selection
        self._view: list[TreeNode] = []
        # Only follow the selected pid across refreshes, never across a key
        # press that itself moved the cursor or reshaped the view.
        self._follow = False

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def view(self) -> list[TreeNode]:
        """The view sequence produced by the last ``render``."""
        return self._view

    @property
    def selected_pid(self) -> int | None:
        return selection.selected_pid(self._view, self._state.cursor)

    def render(self, records: Sequence[ProcessRecord]) -> list[TreeNode]:
        """Recompute the view sequence for a new frame."""
        state = self._state
        previous_pid = self.selected_pid if self._track_selection and self._follow else None
        view = render_view(
            records, state.sort_key, state.sort_direction, state.filter, state.view_mode
        )
        cursor = selection.resolve_cursor(view, state.cursor, previous_pid)
        self._state = replace(state, cursor=cursor)
        self._view = view
        self._follow = True
        return view

    def handle(self, event: KeyEvent, page_size: int = 1) -> ViewState:
        before = _layout(self._state)
        self._state = transition(
            self._state, event, self._view, page_size, self._send_signal
        )
        if _layout(self._state) != before:
            self._follow = False
        return self._state


def _layout(state: ViewState) -> tuple:
    return (
        state.cursor,
        state.sort_key,
        state.sort_direction,
        state.view_mode,
        state.filter,
    )
