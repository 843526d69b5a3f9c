"""Tests for evalpane.session against real processes under a pseudo-terminal."""

import os
import shutil
import signal
import sys
import time
from unittest.mock import patch

import pytest

from evalpane.errors import StalledInterpreterError
from evalpane.extractor import evaluate_transcript
from evalpane.models import InterpreterDescriptor
from evalpane.normalizer import detect_normalizer
from evalpane.registry import BUILTIN_INTERPRETERS
from evalpane.session import _kill, build_input, run_session

needs_pty = pytest.mark.skipif(
    not hasattr(os, "fork") or shutil.which("sh") is None,
    reason="pseudo-terminal sessions require a POSIX environment",
)


def _is_closed(fd: int) -> bool:
    try:
        os.fstat(fd)
    except OSError:
        return True
    return False


class TestBuildInput:
    def test_appends_newline_and_eof(self):
        assert build_input("1+1") == b"1+1\n\x04"

    def test_keeps_existing_trailing_newline(self):
        assert build_input("a\nb\n") == b"a\nb\n\x04"

    def test_empty_source_is_just_eof(self):
        assert build_input("") == b"\x04"

    def test_custom_eof_character(self):
        assert build_input("x", eof=b"\x1a") == b"x\n\x1a"


class TestKill:
    @patch("evalpane.session.os.waitpid")
    @patch("evalpane.session.os.kill")
    @patch("evalpane.session.os.killpg")
    def test_kills_whole_process_group(self, killpg, kill, waitpid):
        _kill(4242)
        killpg.assert_called_once_with(4242, signal.SIGKILL)
        kill.assert_not_called()
        waitpid.assert_called_once_with(4242, 0)

    @patch("evalpane.session.os.waitpid")
    @patch("evalpane.session.os.kill")
    @patch("evalpane.session.os.killpg", side_effect=ProcessLookupError)
    def test_falls_back_to_pid_before_group_exists(self, killpg, kill, waitpid):
        _kill(4242)
        kill.assert_called_once_with(4242, signal.SIGKILL)
        waitpid.assert_called_once_with(4242, 0)

    @patch("evalpane.session.os.waitpid", side_effect=ChildProcessError)
    @patch("evalpane.session.os.kill", side_effect=ProcessLookupError)
    @patch("evalpane.session.os.killpg", side_effect=ProcessLookupError)
    def test_already_reaped_child_is_fine(self, killpg, kill, waitpid):
        _kill(4242)


@needs_pty
class TestRunSession:
    def test_collects_interpreter_output(self):
        descriptor = InterpreterDescriptor(binary="cat", prompt="^$")
        transcript = run_session("hello", descriptor, timeout=5)
        assert b"hello" in transcript

    def test_child_sees_a_terminal(self):
        descriptor = InterpreterDescriptor(
            binary="sh", args=["-c", "test -t 0 && echo interactive"], prompt="^$"
        )
        assert b"interactive" in run_session("", descriptor, timeout=5)

    def test_environment_applies_to_child(self):
        descriptor = InterpreterDescriptor(
            binary="sh",
            args=["-c", 'echo "value=$EVALPANE_MARKER"'],
            prompt="^$",
            environment={"EVALPANE_MARKER": "42"},
        )
        assert b"value=42" in run_session("", descriptor, timeout=5)
        assert "EVALPANE_MARKER" not in os.environ

    def test_stalled_interpreter_is_killed(self):
        descriptor = InterpreterDescriptor(binary="sleep", args=["30"], prompt="^$")
        started = time.monotonic()
        with pytest.raises(StalledInterpreterError, match="sleep"):
            run_session("", descriptor, timeout=0.3)
        assert time.monotonic() - started < 5

    def test_stalled_interpreter_with_background_child_is_killed(self):
        descriptor = InterpreterDescriptor(
            binary="sh", args=["-c", "sleep 30 & wait"], prompt="^$"
        )
        started = time.monotonic()
        with pytest.raises(StalledInterpreterError, match="sh"):
            run_session("", descriptor, timeout=0.5)
        assert time.monotonic() - started < 5

    def test_unlaunchable_binary_is_not_an_error(self):
        descriptor = InterpreterDescriptor(binary="evalpane-no-such-binary", prompt="^$")
        assert isinstance(run_session("1+1", descriptor, timeout=5), bytes)

    def test_terminal_descriptors_closed_when_setup_fails(self):
        opened: list[int] = []
        real_openpty = os.openpty

        def tracking_openpty():
            fds = real_openpty()
            opened.extend(fds)
            return fds

        descriptor = InterpreterDescriptor(binary="cat", prompt="^$")
        with patch("evalpane.session.os.openpty", side_effect=tracking_openpty), patch(
            "evalpane.session._set_winsize", side_effect=OSError("no winsize")
        ):
            with pytest.raises(OSError, match="no winsize"):
                run_session("1+1", descriptor, timeout=5)

        assert len(opened) == 2
        assert all(_is_closed(fd) for fd in opened)


@needs_pty
class TestRealInterpreters:
    def test_python_repl_values(self):
        descriptor = BUILTIN_INTERPRETERS["python"].model_copy(
            update={"binary": sys.executable}
        )
        transcript = run_session("1+1\n2+2", descriptor, timeout=10)
        values = evaluate_transcript(transcript, "1+1\n2+2", descriptor, detect_normalizer())
        assert values == ["2", "4"]

    def test_python_repl_runs_are_repeatable(self):
        descriptor = BUILTIN_INTERPRETERS["python"].model_copy(
            update={"binary": sys.executable}
        )
        source = "x = 20\nx * 2\nx + 1"
        normalizer = detect_normalizer()
        first = evaluate_transcript(
            run_session(source, descriptor, timeout=10), source, descriptor, normalizer
        )
        second = evaluate_transcript(
            run_session(source, descriptor, timeout=10), source, descriptor, normalizer
        )
        assert first == second
        assert first[-2:] == ["40", "21"]

    @pytest.mark.skipif(shutil.which("bc") is None, reason="bc is not installed")
    def test_bc_prints_values_in_order(self):
        descriptor = BUILTIN_INTERPRETERS["bc"].model_copy(
            update={"binary": shutil.which("bc")}
        )
        transcript = run_session("1+1\n2+2", descriptor, timeout=10)
        lines = evaluate_transcript(
            transcript, "1+1\n2+2", descriptor, detect_normalizer(), raw_mode=True
        )
        assert "2" in lines
        assert "4" in lines
        assert lines.index("2") < lines.index("4")
