"""Unit tests for evalpane.extractor."""

import re

from evalpane.extractor import evaluate_transcript, extract_values
from evalpane.models import InterpreterDescriptor
from evalpane.normalizer import EchoStrippingNormalizer, PromptBreakingNormalizer
from evalpane.registry import BUILTIN_INTERPRETERS

PYTHON_PROMPT = re.compile(r"^(>>>|\.\.\.) ")
PYTHON = InterpreterDescriptor(binary="python3", args=["-i"], prompt=r"^(>>>|\.\.\.) ")


class TestExtractValues:
    def test_no_prompt_yields_nothing(self):
        assert extract_values(["2", "4", ""], PYTHON_PROMPT) == []

    def test_single_prompt_is_the_startup_banner(self):
        assert extract_values(["Python 3.12.0", ">>> "], PYTHON_PROMPT) == []

    def test_value_before_each_prompt(self):
        lines = ["Python 3.12.0", ">>> ", "2", ">>> ", "4", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["2", "4"]

    def test_prompt_without_value_emits_empty_line(self):
        lines = ["banner", ">>> ", ">>> ", "x", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["", "x"]

    def test_only_last_non_empty_line_is_kept(self):
        lines = ["banner", ">>> ", "1", "2", "3", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["3"]

    def test_empty_lines_do_not_clear_held_value(self):
        lines = ["banner", ">>> ", "7", "", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["7"]

    def test_held_value_resets_after_each_prompt(self):
        lines = ["banner", ">>> ", "v", ">>> ", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["v", ""]

    def test_continuation_prompt_counts_as_prompt(self):
        lines = ["banner", ">>> ", "... ", "3", ">>> "]
        assert extract_values(lines, PYTHON_PROMPT) == ["", "3"]

    def test_empty_line_prompt(self):
        lines = ["1+1", "2+2", "", "2", "", "4", ""]
        assert extract_values(lines, re.compile(r"^$")) == ["2", "4"]

    def test_accepts_any_iterable(self):
        lines = iter(["banner", ">>> ", "ok", ">>> "])
        assert extract_values(lines, PYTHON_PROMPT) == ["ok"]


class TestEvaluateTranscript:
    def test_inline_prompts_are_split_before_extraction(self):
        raw = b"Python 3.12.0\r\n>>> 2\r\n>>> 4\r\n>>> \r\n"
        lines = evaluate_transcript(raw, "1+1\n2+2", PYTHON, PromptBreakingNormalizer())
        assert lines == ["2", "4"]

    def test_echoed_input_is_stripped_before_extraction(self):
        raw = b"1+1\r\n2+2\r\nbanner\r\n>>> \r\n2\r\n>>> \r\n4\r\n>>> "
        lines = evaluate_transcript(raw, "1+1\n2+2", PYTHON, EchoStrippingNormalizer())
        assert lines == ["2", "4"]

    def test_raw_mode_returns_normalized_lines(self):
        raw = b"Python 3.12.0\r\n>>> 2\r\n>>> "
        lines = evaluate_transcript(
            raw, "1+1", PYTHON, PromptBreakingNormalizer(), raw_mode=True
        )
        assert lines == ["Python 3.12.0", ">>> ", "2", ">>> "]

    def test_empty_transcript_yields_nothing(self):
        assert evaluate_transcript(b"", "1+1", PYTHON, PromptBreakingNormalizer()) == []

    def test_bc_calculator_scenario(self):
        bc = BUILTIN_INTERPRETERS["bc"]
        raw = b"1+1\r\n2+2\r\n\r\n2\r\n\r\n4\r\n\r\n"
        assert evaluate_transcript(raw, "1+1\n2+2", bc, PromptBreakingNormalizer()) == ["2", "4"]

    def test_same_transcript_gives_same_values(self):
        raw = b"banner\r\n>>> 2\r\n>>> 4\r\n>>> "
        normalizer = PromptBreakingNormalizer()
        first = evaluate_transcript(raw, "1+1\n2+2", PYTHON, normalizer)
        second = evaluate_transcript(raw, "1+1\n2+2", PYTHON, normalizer)
        assert first == second == ["2", "4"]
