from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union

from .errors import TopologyError
from .geometry import Point, ScreenTransform, to_canvas
from .model import DeviceKind, Link, Node, NodeConfig
from .ports import normalize_port_name, suggest_port_name
from .store import TopologyStore


# ───────────────────────────── States ─────────────────────────────


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Selected:
    node_id: str


@dataclass(frozen=True)
class Connecting:
    source_id: str


@dataclass(frozen=True)
class PendingPortConfirmation:
    source_id: str
    target_id: str
    # Pre-filled values for the port dialog.
    source_port: str = ""
    target_port: str = ""


State = Union[Idle, Selected, Connecting, PendingPortConfirmation]

IDLE = Idle()


# ───────────────────────────── Pure transitions ─────────────────────────────
#
# Each function maps (state, gesture) to the next state and never touches the
# store. A gesture that does not apply in the current state returns it as-is.


def select(state: State, node_id: str) -> State:
    if isinstance(state, (Idle, Selected)):
        return Selected(node_id)
    return state


def begin_connect(state: State) -> State:
    if isinstance(state, Selected):
        return Connecting(state.node_id)
    return state


def pick_target(
    state: State,
    node_id: str,
    already_linked: bool,
    defaults: Tuple[str, str] = ("", ""),
) -> State:
    if not isinstance(state, Connecting):
        return state
    if node_id == state.source_id:
        # Clicking the source again cancels.
        return IDLE
    if already_linked:
        return state
    return PendingPortConfirmation(state.source_id, node_id, defaults[0], defaults[1])


def click_empty(state: State) -> State:
    if isinstance(state, (Selected, Connecting)):
        return IDLE
    return state


def escape(state: State) -> State:
    return IDLE


def confirm_ports(state: State) -> State:
    if isinstance(state, PendingPortConfirmation):
        return IDLE
    return state


def cancel_ports(state: State) -> State:
    if isinstance(state, PendingPortConfirmation):
        return IDLE
    return state


def references(state: State, node_id: str) -> bool:
    if isinstance(state, Selected):
        return state.node_id == node_id
    if isinstance(state, Connecting):
        return state.source_id == node_id
    if isinstance(state, PendingPortConfirmation):
        return node_id in (state.source_id, state.target_id)
    return False


def forget_node(state: State, node_id: str) -> State:
    return IDLE if references(state, node_id) else state


def focused_node_id(state: State) -> Optional[str]:
    """The node the user is working on (selection or connect source)."""
    if isinstance(state, Selected):
        return state.node_id
    if isinstance(state, (Connecting, PendingPortConfirmation)):
        return state.source_id
    return None


# ───────────────────────────── Controller ─────────────────────────────

SelectionObserver = Callable[[Optional[str]], None]


class InteractionController:
    """Turns canvas gestures into store mutations.

    Holds the connect state machine plus the two bits of transient UI state
    that sit beside it: the node being dragged and the last pointer position
    (which drives the draft line while connecting). The host forwards raw
    screen coordinates; they are mapped through ``transform``.
    """

    def __init__(self, store: TopologyStore, transform: Optional[ScreenTransform] = None):
        self.store = store
        self.transform: Optional[ScreenTransform] = transform or ScreenTransform()
        self.state: State = IDLE
        self.dragging_id: Optional[str] = None
        self.pointer: Optional[Point] = None
        self._listeners: List[Callable[..., None]] = []
        self._selection_observers: List[SelectionObserver] = []

    # ───────────── Observers ─────────────

    def subscribe(self, listener: Callable[..., None]) -> None:
        self._listeners.append(listener)

    def on_selection_change(self, observer: SelectionObserver) -> None:
        self._selection_observers.append(observer)

    def _emit(self, kind: str, **data: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, **data)
            except Exception:
                pass

    def _set_state(self, new_state: State, kind: Optional[str] = None, **data: Any) -> None:
        before = focused_node_id(self.state)
        self.state = new_state
        if kind:
            self._emit(kind, **data)
        after = focused_node_id(new_state)
        if after != before:
            for observer in list(self._selection_observers):
                try:
                    observer(after)
                except Exception:
                    pass

    # ───────────── Read-only views ─────────────

    @property
    def selected_id(self) -> Optional[str]:
        return focused_node_id(self.state)

    @property
    def is_connecting(self) -> bool:
        return isinstance(self.state, Connecting)

    @property
    def pending(self) -> Optional[PendingPortConfirmation]:
        return self.state if isinstance(self.state, PendingPortConfirmation) else None

    @property
    def draft_line(self) -> Optional[Tuple[Point, Point]]:
        """Source centre to pointer while connecting, else None."""
        if not isinstance(self.state, Connecting) or self.pointer is None:
            return None
        source = self.store.find_node(self.state.source_id)
        if source is None:
            return None
        return (source.x, source.y), self.pointer

    # ───────────── Pointer gestures ─────────────

    def press_node(self, node_id: str, sx: Optional[float] = None, sy: Optional[float] = None) -> None:
        if sx is not None and sy is not None:
            self._track_pointer(sx, sy)

        if isinstance(self.state, PendingPortConfirmation):
            return
        if self.store.find_node(node_id) is None:
            return

        if isinstance(self.state, Connecting):
            self._pick_target(node_id)
            return

        if self.selected_id != node_id:
            self._set_state(select(self.state, node_id), "select", id=node_id)
        self.dragging_id = node_id
        self._emit("drag_start", id=node_id)

    def _pick_target(self, node_id: str) -> None:
        source_id = self.state.source_id
        linked = self.store.has_link_between(source_id, node_id)
        defaults = ("", "")
        if node_id != source_id and not linked:
            defaults = (
                self._suggest_port(source_id),
                self._suggest_port(node_id),
            )
        new_state = pick_target(self.state, node_id, linked, defaults)

        if isinstance(new_state, Idle):
            self._set_state(new_state, "connect_cancel", source=source_id)
        elif isinstance(new_state, PendingPortConfirmation):
            self._set_state(new_state, "connect_pending", source=source_id, target=node_id)
        else:
            self._emit("connect_ignored", source=source_id, target=node_id, reason="already linked")

    def _suggest_port(self, node_id: str) -> str:
        node = self.store.get_node(node_id)
        return suggest_port_name(node.kind, self.store.ports_in_use(node_id))

    def pointer_move(self, sx: float, sy: float) -> None:
        p = self._track_pointer(sx, sy)
        if p is None or self.dragging_id is None:
            return
        try:
            self.store.move_node(self.dragging_id, p[0], p[1])
        except TopologyError as e:
            self.dragging_id = None
            self._emit("rejected", action="move_node", reason=str(e))

    def _track_pointer(self, sx: float, sy: float) -> Optional[Point]:
        p = to_canvas(self.transform, sx, sy)
        if p is not None:
            self.pointer = p
        return p

    def release(self) -> None:
        if self.dragging_id is None:
            return
        node = self.store.find_node(self.dragging_id)
        if node is not None:
            self._emit("drag_end", id=node.id, x=node.x, y=node.y)
        self.dragging_id = None

    def click_canvas(self) -> None:
        """Click on empty canvas space."""
        if self.dragging_id is not None:
            return
        was_connecting = isinstance(self.state, Connecting)
        new_state = click_empty(self.state)
        if new_state is self.state:
            return
        self._set_state(new_state, "connect_cancel" if was_connecting else "select", id=None)

    # ───────────── Commands / keys ─────────────

    def request_connect(self) -> bool:
        new_state = begin_connect(self.state)
        if new_state is self.state:
            return False
        self._set_state(new_state, "connect_start", source=new_state.source_id)
        return True

    def escape(self) -> None:
        if isinstance(self.state, Idle):
            return
        kind = "select" if isinstance(self.state, Selected) else "connect_cancel"
        self._set_state(escape(self.state), kind, id=None)

    def key_press(self, key: str) -> bool:
        """Keyboard shortcuts. Returns True when the key was consumed."""
        if key in ("c", "C"):
            return self.request_connect()
        if key == "Escape":
            consumed = not isinstance(self.state, Idle)
            self.escape()
            return consumed
        if key in ("Delete", "BackSpace"):
            return self.delete_selected()
        return False

    def confirm_ports(self, source_port: Optional[str] = None, target_port: Optional[str] = None) -> Optional[Link]:
        pending = self.pending
        if pending is None:
            return None
        if source_port is None:
            source_port = pending.source_port
        if target_port is None:
            target_port = pending.target_port

        try:
            link = self.store.add_link(
                pending.source_id,
                pending.target_id,
                normalize_port_name(source_port),
                normalize_port_name(target_port),
            )
        except TopologyError as e:
            self._emit("rejected", action="add_link", reason=str(e))
            self._set_state(cancel_ports(self.state), "connect_cancel", source=pending.source_id)
            return None

        self._set_state(confirm_ports(self.state), "connect_commit", id=link.id)
        return link

    def cancel_ports(self) -> None:
        pending = self.pending
        if pending is None:
            return
        self._set_state(cancel_ports(self.state), "connect_cancel", source=pending.source_id)

    # ───────────── Device actions ─────────────

    def add_device(self, kind: DeviceKind, x: Optional[float] = None, y: Optional[float] = None) -> Node:
        node = self.store.add_node(kind, x, y)
        if isinstance(self.state, (Idle, Selected)):
            self._set_state(select(self.state, node.id), "select", id=node.id)
        return node

    def update_config(self, node_id: str, config: NodeConfig) -> Optional[Node]:
        try:
            return self.store.update_node_config(node_id, config)
        except TopologyError as e:
            self._emit("rejected", action="update_node_config", reason=str(e))
            return None

    def delete_node(self, node_id: str) -> bool:
        try:
            self.store.delete_node(node_id)
        except TopologyError as e:
            self._emit("rejected", action="delete_node", reason=str(e))
            return False
        if self.dragging_id == node_id:
            self.dragging_id = None
        self._set_state(forget_node(self.state, node_id))
        return True

    def delete_link(self, link_id: str) -> bool:
        try:
            self.store.remove_link(link_id)
        except TopologyError as e:
            self._emit("rejected", action="remove_link", reason=str(e))
            return False
        return True

    def delete_selected(self) -> bool:
        if not isinstance(self.state, Selected):
            return False
        return self.delete_node(self.state.node_id)

    def reset(self) -> None:
        """Drop all transient state, e.g. after the topology was replaced."""
        self.dragging_id = None
        self._set_state(IDLE)
