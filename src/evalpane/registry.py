"""Interpreter registry: built-in descriptors, aliases, and missing-binary detection.

The registry is built once at start-up and never mutated afterwards. Which
binaries are missing from the host is computed at construction time, so a
spawn request never has to walk PATH again.
"""

import logging
import os
import re
import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from evalpane.errors import ConfigurationError
from evalpane.models import EvalPaneConfig, InterpreterDescriptor

log = logging.getLogger(__name__)

_RUBY_RESULT_RE = re.compile(r"^=> ", re.MULTILINE)
_OCAML_RESULT_RE = re.compile(r"^- : .*? = ", re.MULTILINE)
_R_INDEX_RE = re.compile(r"^\[\d+\] ", re.MULTILINE)
_PSYSH_RESULT_RE = re.compile(r"^= ?> ?", re.MULTILINE)


def strip_ruby_result_marker(text: str) -> str:
    """irb prints `=> 2`; keep only the value."""
    return _RUBY_RESULT_RE.sub("", text)


def strip_ocaml_type(text: str) -> str:
    """The toplevel prints `- : int = 2`; keep only the value."""
    return _OCAML_RESULT_RE.sub("", text)


def strip_r_index(text: str) -> str:
    return _R_INDEX_RE.sub("", text)


def strip_psysh_result_marker(text: str) -> str:
    return _PSYSH_RESULT_RE.sub("", text)


BUILTIN_INTERPRETERS: Mapping[str, InterpreterDescriptor] = MappingProxyType(
    {
        "python": InterpreterDescriptor(
            binary="python3",
            args=["-i"],
            prompt=r"^(>>>|\.\.\.) ",
            environment={"PYTHONSTARTUP": "", "PYTHON_BASIC_REPL": "1"},
        ),
        "javascript": InterpreterDescriptor(
            binary="node",
            args=["-i"],
            prompt=r"^(>|\.\.\.+) ",
            environment={"NODE_DISABLE_COLORS": "1", "NODE_NO_READLINE": "1"},
        ),
        "ruby": InterpreterDescriptor(
            binary="irb",
            args=["-f", "--nocolorize"],
            prompt=r"^irb\(\S+\)[>*\"'] ",
            preprocess=strip_ruby_result_marker,
        ),
        "haskell": InterpreterDescriptor(
            binary="ghci",
            args=["-ignore-dot-ghci"],
            prompt=r"^(Prelude|ghci)[^>|]*[>|] ",
        ),
        "ocaml": InterpreterDescriptor(
            binary="ocaml",
            prompt=r"^# ",
            preprocess=strip_ocaml_type,
        ),
        "lua": InterpreterDescriptor(
            binary="lua",
            args=["-i"],
            prompt=r"^>>? ",
        ),
        "r": InterpreterDescriptor(
            binary="R",
            args=["--no-save", "--quiet"],
            prompt=r"^(>|\+) ",
            preprocess=strip_r_index,
        ),
        "julia": InterpreterDescriptor(
            binary="julia",
            args=["--color=no", "--banner=no"],
            prompt=r"^(julia>|      )",
        ),
        "php": InterpreterDescriptor(
            binary="psysh",
            prompt=r"^(>>>|\.\.\.) ",
            preprocess=strip_psysh_result_marker,
        ),
        "bc": InterpreterDescriptor(
            binary="bc",
            args=["-q"],
            prompt=r"^$",
            environment={"BC_LINE_LENGTH": "0"},
        ),
    }
)

# Alternate names and file extensions mapped onto canonical identities.
BUILTIN_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "py": "python",
        "python3": "python",
        "js": "javascript",
        "mjs": "javascript",
        "node": "javascript",
        "rb": "ruby",
        "irb": "ruby",
        "hs": "haskell",
        "ghci": "haskell",
        "ml": "ocaml",
        "R": "r",
        "jl": "julia",
    }
)


def resolve_executable(candidate: str) -> str | None:
    """Resolve an executable name or path to a runnable command path."""
    has_sep = os.path.sep in candidate or (
        os.path.altsep is not None and os.path.altsep in candidate
    )
    if has_sep:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        return None
    return shutil.which(candidate)


def _find_missing(binaries: Iterable[str]) -> frozenset[str]:
    missing = frozenset(b for b in set(binaries) if resolve_executable(b) is None)
    log.debug("missing interpreter binaries: %s", sorted(missing))
    return missing


@dataclass(frozen=True)
class InterpreterRegistry:
    """Immutable lookup table from language identity to interpreter descriptor."""

    interpreters: Mapping[str, InterpreterDescriptor]
    aliases: Mapping[str, str]
    missing: frozenset[str]

    def canonical(self, identity: str) -> str:
        if identity in self.interpreters:
            return identity
        if identity in self.aliases:
            return self.aliases[identity]
        lowered = identity.lower()
        return self.aliases.get(lowered, lowered)

    def resolve(self, identity: str) -> InterpreterDescriptor | None:
        """Return the descriptor registered for `identity` (or one of its aliases)."""
        return self.interpreters.get(self.canonical(identity))

    def require(self, identity: str) -> InterpreterDescriptor:
        """Return a descriptor that is safe to spawn, or raise ConfigurationError."""
        descriptor = self.resolve(identity)
        if descriptor is None:
            raise ConfigurationError(f"No interpreter registered for '{identity}'")

        missing_fields = descriptor.missing_fields()
        if missing_fields:
            raise ConfigurationError(
                f"Interpreter '{identity}' is missing required field(s): "
                + ", ".join(missing_fields)
            )

        try:
            descriptor.compile_prompt()
        except re.error as e:
            raise ConfigurationError(
                f"Invalid prompt pattern for '{identity}': {descriptor.prompt!r} ({e})"
            ) from e

        if descriptor.binary in self.missing:
            raise ConfigurationError(
                f"Command not found: {descriptor.binary} (required for '{identity}')"
            )
        return descriptor


def build_registry(config: EvalPaneConfig | None = None) -> InterpreterRegistry:
    """Merge user interpreters and aliases over the built-ins and probe the host once."""
    config = config or EvalPaneConfig()
    interpreters = dict(BUILTIN_INTERPRETERS)
    for identity, override in config.interpreters.items():
        base = interpreters.get(identity)
        interpreters[identity] = base.merged(override) if base is not None else override
        log.debug("interpreter %s configured by user", identity)

    aliases = {**BUILTIN_ALIASES, **config.aliases}
    missing = _find_missing(d.binary for d in interpreters.values() if d.binary)
    return InterpreterRegistry(
        interpreters=MappingProxyType(interpreters),
        aliases=MappingProxyType(aliases),
        missing=missing,
    )
