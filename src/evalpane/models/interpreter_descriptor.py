"""Interpreter descriptor model."""

import re
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

REQUIRED_FIELDS = ("binary", "prompt")


class InterpreterDescriptor(BaseModel):
    """How to launch an interpreter and recognize its prompt."""

    model_config = ConfigDict(frozen=True)

    binary: str | None = None
    args: list[str] = []
    prompt: str | None = None
    environment: dict[str, str] = {}
    preprocess: Callable[[str], str] | None = None

    def missing_fields(self) -> list[str]:
        """Return the names of required fields that are unset or empty."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def merged(self, override: "InterpreterDescriptor") -> "InterpreterDescriptor":
        """Return a copy with the explicitly set fields of `override` laid on top."""
        update = {name: getattr(override, name) for name in override.model_fields_set}
        return self.model_copy(update=update)

    def compile_prompt(self) -> re.Pattern[str]:
        """Compile the prompt pattern; raises re.error when it is malformed."""
        return re.compile(self.prompt or "", re.MULTILINE)

    def apply_preprocess(self, text: str) -> str:
        if self.preprocess is None:
            return text
        return self.preprocess(text)
