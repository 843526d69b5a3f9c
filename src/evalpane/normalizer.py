"""Turn a raw PTY transcript into plain line-oriented text.

Two shapes of transcript exist depending on the host's pseudo-terminal
layer. On BSD-style hosts the batched input comes back ahead of the
interpreter's own output, one line per source line, and is dropped by
count. Elsewhere prompts are printed inline in front of the next value, so a
line break is inserted after every prompt. The variant is picked once by
`detect_normalizer()`.
"""

import logging
import platform
import re

from evalpane.models import InterpreterDescriptor

log = logging.getLogger(__name__)

BSD_SYSTEMS = frozenset({"Darwin", "FreeBSD", "OpenBSD", "NetBSD", "DragonFly"})

# CSI and OSC sequences, then any other two-byte escape.
ESCAPE_RE = re.compile(r"\x1b(\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(\x07|\x1b\\)|[@-_])")
# Control characters other than backspace, tab, newline and carriage return.
CONTROL_RE = re.compile(r"[\x00-\x07\x0b\x0c\x0e-\x1f\x7f]")


def render_line(line: str) -> str:
    """Apply backspace and carriage-return erasure the way a terminal displays them."""
    cells: list[str] = []
    cursor = 0
    for char in line:
        if char == "\b":
            if cursor > 0:
                cursor -= 1
                del cells[cursor]
        elif char == "\r":
            cursor = 0
        else:
            if cursor < len(cells):
                cells[cursor] = char
            else:
                cells.append(char)
            cursor += 1
    return "".join(cells)


def clean_terminal_text(text: str) -> str:
    """Strip escape sequences and stray control bytes, then resolve erasures per line."""
    text = ESCAPE_RE.sub("", text)
    text = CONTROL_RE.sub("", text)
    return "\n".join(render_line(line) for line in text.split("\n"))


def count_input_lines(source: str) -> int:
    return len(source.splitlines())


def break_after_prompts(text: str, pattern: re.Pattern[str]) -> str:
    """Insert a newline after every prompt match not already ending its line."""

    def _break(match: re.Match[str]) -> str:
        following = match.string[match.end() : match.end() + 1]
        if following in ("", "\n"):
            return match.group(0)
        return match.group(0) + "\n"

    return pattern.sub(_break, text)


class TranscriptNormalizer:
    """Base normalizer: decode, clean, reshape, then apply the descriptor's preprocess."""

    name = "base"

    def normalize(self, raw: bytes, source: str, descriptor: InterpreterDescriptor) -> str:
        text = clean_terminal_text(raw.decode("utf-8", errors="replace"))
        text = self.reshape(text, source, descriptor)
        return descriptor.apply_preprocess(text)

    def reshape(self, text: str, source: str, descriptor: InterpreterDescriptor) -> str:
        raise NotImplementedError


class EchoStrippingNormalizer(TranscriptNormalizer):
    """Drop the echoed input: one leading line per source line sent."""

    name = "echo-stripping"

    def reshape(self, text: str, source: str, descriptor: InterpreterDescriptor) -> str:
        echoed = count_input_lines(source)
        log.debug("dropping %d echoed line(s)", echoed)
        return "\n".join(text.split("\n")[echoed:])


class PromptBreakingNormalizer(TranscriptNormalizer):
    """Put every prompt on a line of its own."""

    name = "prompt-breaking"

    def reshape(self, text: str, source: str, descriptor: InterpreterDescriptor) -> str:
        return break_after_prompts(text, descriptor.compile_prompt())


def detect_normalizer(system: str | None = None) -> TranscriptNormalizer:
    """Pick the normalizer variant for this host."""
    system = system if system is not None else platform.system()
    normalizer: TranscriptNormalizer
    if system in BSD_SYSTEMS:
        normalizer = EchoStrippingNormalizer()
    else:
        normalizer = PromptBreakingNormalizer()
    log.debug("host %s uses %s normalizer", system, normalizer.name)
    return normalizer
