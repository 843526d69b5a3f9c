"""Model package for evalpane."""

from evalpane.models.evalpane_config import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    EvalPaneConfig,
)
from evalpane.models.evaluation_pane import EvaluationPane, PaneState
from evalpane.models.interpreter_descriptor import InterpreterDescriptor
from evalpane.models.view_state import ViewState

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "EvalPaneConfig",
    "EvaluationPane",
    "InterpreterDescriptor",
    "PaneState",
    "ViewState",
]
