"""Configuration model for evalpane."""

from pydantic import BaseModel

from evalpane.models.interpreter_descriptor import InterpreterDescriptor

DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_TIMEOUT_SECONDS = 5.0


class EvalPaneConfig(BaseModel):
    """Runtime configuration for evalpane."""

    raw: bool = False
    autoclose: bool = True
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    interpreters: dict[str, InterpreterDescriptor] = {}
    aliases: dict[str, str] = {}
