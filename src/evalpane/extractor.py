"""Value extraction: keep the last value printed before each prompt."""

import logging
import re
from collections.abc import Iterable

from evalpane.models import InterpreterDescriptor
from evalpane.normalizer import TranscriptNormalizer

log = logging.getLogger(__name__)


def extract_values(lines: Iterable[str], pattern: re.Pattern[str]) -> list[str]:
    """Return one value per completed input statement.

    Every prompt line emits the last non-empty line seen since the previous
    prompt (or an empty string). The first emitted value belongs to the
    interpreter's start-up output and is discarded.
    """
    emitted: list[str] = []
    held = ""
    for line in lines:
        if pattern.search(line):
            emitted.append(held)
            held = ""
        elif line:
            held = line
    log.debug("%d prompt(s) matched", len(emitted))
    return emitted[1:]


def evaluate_transcript(
    raw: bytes,
    source: str,
    descriptor: InterpreterDescriptor,
    normalizer: TranscriptNormalizer,
    raw_mode: bool = False,
) -> list[str]:
    """Normalize a transcript and reduce it to result lines (verbatim in raw mode)."""
    lines = normalizer.normalize(raw, source, descriptor).splitlines()
    if raw_mode:
        return lines
    return extract_values(lines, descriptor.compile_prompt())
