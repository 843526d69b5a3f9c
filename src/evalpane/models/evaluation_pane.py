"""Evaluation pane model: one source view paired with its result view."""

import enum
import itertools
import threading
from dataclasses import dataclass, field
from typing import Any

from evalpane.models.interpreter_descriptor import InterpreterDescriptor
from evalpane.models.view_state import ViewState

_pane_ids = itertools.count(1)


class PaneState(enum.Enum):
    SPAWNED = "spawned"
    UPDATING = "updating"
    IDLE = "idle"
    KILLED = "killed"


@dataclass
class EvaluationPane:
    """Live evaluation bound to one source view.

    `source` is only referenced; `result` is owned and destroyed on kill.
    """

    source: Any
    result: Any
    identity: str
    interpreter: InterpreterDescriptor
    raw: bool = False
    id: int = field(default_factory=lambda: next(_pane_ids))
    state: PaneState = PaneState.SPAWNED
    view_state: ViewState = field(default_factory=ViewState)
    lines: list[str] = field(default_factory=list)

    # Scheduler bookkeeping.
    timer: threading.Timer | None = field(default=None, repr=False, compare=False)
    pending_text: str | None = field(default=None, repr=False, compare=False)

    @property
    def alive(self) -> bool:
        return self.state is not PaneState.KILLED
