"""Viewport snapshot model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ViewState:
    """Scroll position and cursor of a view, captured around each update."""

    scroll_top: int = 0
    cursor_line: int = 0
    cursor_col: int = 0
