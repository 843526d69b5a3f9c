"""Pane synchronizer: write results without disturbing the source view."""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from evalpane.errors import ViewError
from evalpane.host import ViewHost
from evalpane.models import EvaluationPane

log = logging.getLogger(__name__)


def _quietly(action: Callable[..., Any], *args: Any) -> bool:
    """Run a host operation, logging instead of raising when a view is gone."""
    try:
        action(*args)
    except ViewError as e:
        log.debug("%s%r ignored: %s", getattr(action, "__name__", action), args, e)
        return False
    return True


class PaneSynchronizer:
    def __init__(self, host: ViewHost) -> None:
        self._host = host

    def attach(self, pane: EvaluationPane) -> None:
        _quietly(self._host.bind_views, pane.source, pane.result)

    def apply(self, pane: EvaluationPane, lines: Sequence[str]) -> bool:
        """Replace the result view's content, keeping the source viewport where it was.

        Returns False when the result view is already gone.
        """
        try:
            pane.view_state = self._host.get_view_state(pane.source)
        except ViewError as e:
            log.debug("source view %s unavailable: %s", pane.source, e)
            return False

        if not _quietly(self._host.set_lines, pane.result, list(lines)):
            return False
        pane.lines = list(lines)

        _quietly(self._host.set_view_state, pane.source, pane.view_state)
        _quietly(self._host.bind_views, pane.source, pane.result)
        log.debug("pane %d shows %d line(s)", pane.id, len(pane.lines))
        return True

    def release(self, pane: EvaluationPane) -> None:
        """Unbind and destroy the result view; safe to call more than once."""
        _quietly(self._host.unbind_views, pane.source, pane.result)
        _quietly(self._host.destroy_view, pane.result)
