"""Host view system seam.

`ViewHost` is what the evaluation core needs from an editor: side views,
viewport state, scroll binding and user-facing messages. `MemoryViewHost`
implements it in process; the command-line front end renders from it.
"""

import itertools
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from evalpane.errors import ViewError
from evalpane.models import ViewState

log = logging.getLogger(__name__)

DEFAULT_VIEW_WIDTH = 80


class ViewHost(Protocol):
    def create_result_view(self, source: Any) -> Any: ...

    def destroy_view(self, view: Any) -> None: ...

    def set_lines(self, view: Any, lines: Sequence[str]) -> None: ...

    def get_view_state(self, view: Any) -> ViewState: ...

    def set_view_state(self, view: Any, state: ViewState) -> None: ...

    def bind_views(self, source: Any, result: Any) -> None: ...

    def unbind_views(self, source: Any, result: Any) -> None: ...

    def view_width(self, view: Any) -> int: ...

    def notify(self, message: str) -> None: ...


@dataclass
class MemoryView:
    id: int
    lines: list[str] = field(default_factory=list)
    state: ViewState = field(default_factory=ViewState)
    width: int = DEFAULT_VIEW_WIDTH
    modifiable: bool = True
    modified: bool = False
    source: int | None = None
    bound_to: int | None = None


class MemoryViewHost:
    """In-process views addressed by integer handles."""

    def __init__(
        self,
        on_change: Callable[[int, list[str]], None] | None = None,
        on_message: Callable[[str], None] | None = None,
    ) -> None:
        self._views: dict[int, MemoryView] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._on_change = on_change
        self._on_message = on_message
        self.messages: list[str] = []

    def _get(self, view: int) -> MemoryView:
        try:
            return self._views[view]
        except KeyError:
            raise ViewError(f"view {view} is closed") from None

    def view(self, view: int) -> MemoryView:
        with self._lock:
            return self._get(view)

    def is_open(self, view: int) -> bool:
        return view in self._views

    def open_view(self, lines: Sequence[str] = (), width: int = DEFAULT_VIEW_WIDTH) -> int:
        """Open an editable source view."""
        with self._lock:
            handle = next(self._ids)
            self._views[handle] = MemoryView(id=handle, lines=list(lines), width=width)
            return handle

    def edit(self, view: int, lines: Sequence[str]) -> None:
        """Replace a source view's content as a user edit would."""
        with self._lock:
            target = self._get(view)
            if not target.modifiable:
                raise ViewError(f"view {view} is not modifiable")
            target.lines = list(lines)
            target.modified = True

    def create_result_view(self, source: int) -> int:
        with self._lock:
            parent = self._get(source)
            handle = next(self._ids)
            self._views[handle] = MemoryView(
                id=handle,
                width=parent.width,
                modifiable=False,
                source=source,
            )
            log.debug("result view %d created for %d", handle, source)
            return handle

    def destroy_view(self, view: int) -> None:
        with self._lock:
            target = self._views.pop(view, None)
            if target is None:
                raise ViewError(f"view {view} is closed")
            if target.bound_to is not None and target.bound_to in self._views:
                self._views[target.bound_to].bound_to = None

    def set_lines(self, view: int, lines: Sequence[str]) -> None:
        with self._lock:
            target = self._get(view)
            target.lines = list(lines)
            snapshot = list(target.lines)
        if self._on_change is not None:
            self._on_change(view, snapshot)

    def get_view_state(self, view: int) -> ViewState:
        with self._lock:
            return self._get(view).state

    def set_view_state(self, view: int, state: ViewState) -> None:
        """Move a view; a bound partner follows on scroll top and cursor line."""
        with self._lock:
            target = self._get(view)
            target.state = state
            if target.bound_to is not None and target.bound_to in self._views:
                partner = self._views[target.bound_to]
                partner.state = replace(
                    partner.state,
                    scroll_top=state.scroll_top,
                    cursor_line=state.cursor_line,
                )

    def bind_views(self, source: int, result: int) -> None:
        with self._lock:
            left, right = self._get(source), self._get(result)
            left.bound_to = result
            right.bound_to = source

    def unbind_views(self, source: int, result: int) -> None:
        with self._lock:
            for handle in (source, result):
                if handle in self._views:
                    self._views[handle].bound_to = None

    def view_width(self, view: int) -> int:
        with self._lock:
            return self._get(view).width

    def notify(self, message: str) -> None:
        log.info("%s", message)
        self.messages.append(message)
        if self._on_message is not None:
            self._on_message(message)
