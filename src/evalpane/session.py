"""Session runner: feed a whole source buffer to an interpreter under a PTY.

The interpreter is started attached to the slave side of a fresh
pseudo-terminal, so it believes it is interactive and prints its prompts.
The parent writes the complete source followed by the terminal end-of-file
character, then collects everything the interpreter prints until the slave
side closes. Nothing is interpreted until the run is over: batch in, batch out.
"""

import errno
import fcntl
import logging
import os
import select
import signal
import struct
import termios
import time

from evalpane.errors import StalledInterpreterError
from evalpane.models import InterpreterDescriptor

log = logging.getLogger(__name__)

READ_SIZE = 4096
POLL_INTERVAL_SECONDS = 0.1
# Wide enough that interpreters never wrap a result line.
PTY_ROWS = 24
PTY_COLS = 500
EXEC_FAILURE_STATUS = 127


def _set_winsize(fd: int, rows: int, cols: int, xp: int = 0, yp: int = 0) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, xp, yp))


def _eof_char(fd: int) -> bytes:
    """Return the end-of-file character configured on the terminal (usually ^D)."""
    eof = termios.tcgetattr(fd)[6][termios.VEOF]
    return eof if isinstance(eof, bytes) else bytes([eof])


def build_input(source: str, eof: bytes = b"\x04") -> bytes:
    """Encode the source as terminal input, ending on an empty line plus EOF.

    EOF is only honoured at the start of a line in canonical mode, hence the
    trailing newline.
    """
    if source and not source.endswith("\n"):
        source += "\n"
    return source.encode() + eof


def _exec_child(master_fd: int, slave_fd: int, argv: list[str], env: dict[str, str]) -> None:
    """Attach the slave PTY as controlling terminal and exec the interpreter."""
    try:
        os.close(master_fd)
        os.setsid()
        fcntl.ioctl(slave_fd, termios.TIOCSCTTY, 0)
        os.dup2(slave_fd, 0)
        os.dup2(slave_fd, 1)
        os.dup2(slave_fd, 2)
        if slave_fd > 2:
            os.close(slave_fd)
        os.execvpe(argv[0], argv, env)
    finally:
        os._exit(EXEC_FAILURE_STATUS)


def _kill(pid: int) -> None:
    """Kill the interpreter's whole process group and reap the interpreter."""
    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        # The child has not reached setsid() yet.
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    try:
        os.waitpid(pid, 0)
    except ChildProcessError:
        pass


def _read_available(master_fd: int, chunks: list[bytes]) -> bool:
    """Read whatever is buffered; return False once the slave side has closed."""
    while True:
        try:
            data = os.read(master_fd, READ_SIZE)
        except BlockingIOError:
            return True
        except OSError as e:
            # Linux reports a closed slave as EIO rather than EOF.
            if e.errno == errno.EIO:
                return False
            raise
        if not data:
            return False
        chunks.append(data)


def _communicate(
    master_fd: int, pid: int, payload: bytes, eof: bytes, timeout: float, binary: str
) -> tuple[bytes, int | None]:
    """Write the payload and drain output; return (transcript, wait status if reaped).

    Interpreters that switch the terminal to raw mode (readline) only honour an
    EOF typed at an idle prompt, so `eof` is sent again every time a poll
    interval passes without output while the interpreter is still running.
    """
    chunks: list[bytes] = []
    pending = payload
    deadline = time.monotonic() + timeout

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            log.warning("%s stalled after %.1fs, killing pid %d", binary, timeout, pid)
            _kill(pid)
            raise StalledInterpreterError(binary, timeout)

        wfds = [master_fd] if pending else []
        try:
            rready, wready, _ = select.select(
                [master_fd], wfds, [], min(remaining, POLL_INTERVAL_SECONDS)
            )
        except InterruptedError:
            continue

        if wready:
            try:
                written = os.write(master_fd, pending)
            except BlockingIOError:
                written = 0
            except OSError as e:
                log.debug("%s stopped accepting input: %s", binary, e)
                written = len(pending)
            pending = pending[written:]

        if rready and not _read_available(master_fd, chunks):
            return b"".join(chunks), None

        if not rready and not wready:
            # The interpreter may exit while a descendant still holds the slave open.
            reaped, status = os.waitpid(pid, os.WNOHANG)
            if reaped == pid:
                _read_available(master_fd, chunks)
                return b"".join(chunks), status
            if not pending:
                log.debug("%s idle, resending end of input", binary)
                pending = eof


def run_session(source: str, descriptor: InterpreterDescriptor, timeout: float) -> bytes:
    """Run `descriptor` on the whole of `source` and return the raw transcript.

    Raises StalledInterpreterError when the interpreter is still running after
    `timeout` seconds; the child is killed first. An interpreter that exits
    abnormally is not an error: whatever it printed is returned.
    """
    argv = [descriptor.binary or "", *descriptor.args]
    env = {**os.environ, **descriptor.environment}

    master_fd, slave_fd = os.openpty()
    try:
        try:
            _set_winsize(slave_fd, PTY_ROWS, PTY_COLS)
            eof = _eof_char(slave_fd)
            payload = build_input(source, eof)
            log.debug("spawning %s with %d input bytes", argv, len(payload))

            pid = os.fork()
            if pid == 0:
                _exec_child(master_fd, slave_fd, argv, env)
        finally:
            os.close(slave_fd)

        os.set_blocking(master_fd, False)
        transcript, status = _communicate(master_fd, pid, payload, eof, timeout, argv[0])
    finally:
        try:
            os.close(master_fd)
        except OSError:
            pass

    if status is None:
        _, status = os.waitpid(pid, 0)
    exit_code = os.waitstatus_to_exitcode(status)
    log.debug("%s exited with %d, %d transcript bytes", argv[0], exit_code, len(transcript))
    return transcript
