"""Command-line interface for evalpane."""

import argparse
import logging
import os
import shutil
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from evalpane import __version__
from evalpane.config import load_config
from evalpane.errors import ConfigurationError
from evalpane.host import MemoryViewHost
from evalpane.models import EvalPaneConfig
from evalpane.registry import build_registry
from evalpane.scheduler import UpdateScheduler
from evalpane.wait_indicator import WaitIndicator

log = logging.getLogger(__name__)

CYAN = "\033[36m"
RESET = "\033[0m"
CLEAR_SCREEN = "\033[2J\033[H"

GUTTER = " | "
MIN_COLUMN_WIDTH = 10
WATCH_POLL_SECONDS = 0.2


def supports_color(stream: TextIO) -> bool:
    """Return whether ANSI color output should be used."""
    if os.getenv("NO_COLOR") is not None:
        return False
    if os.getenv("TERM", "").lower() == "dumb":
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def guess_identity(path: Path) -> str:
    """Use the file extension as the interpreter identity (`.py` -> `py`)."""
    return path.suffix.lstrip(".") or path.name


def render_side_by_side(
    source_lines: Sequence[str],
    result_lines: Sequence[str],
    width: int,
    color: bool = False,
) -> list[str]:
    """Lay source and results out as two aligned columns within `width`."""
    result_width = max(width // 3, MIN_COLUMN_WIDTH)
    source_width = max(width - result_width - len(GUTTER), MIN_COLUMN_WIDTH)
    rows = []
    for i in range(max(len(source_lines), len(result_lines))):
        left = source_lines[i] if i < len(source_lines) else ""
        right = result_lines[i] if i < len(result_lines) else ""
        left = left.expandtabs()[:source_width].ljust(source_width)
        right = right[:result_width]
        if color and right:
            right = f"{CYAN}{right}{RESET}"
        rows.append(f"{left}{GUTTER}{right}".rstrip())
    return rows


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evalpane",
        description="Run a source file through its interpreter and show each value beside its line",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-l",
        "--lang",
        help="Interpreter identity or alias (default: the file extension)",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Show the cleaned interpreter transcript instead of extracted values",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the interpreter before giving up",
    )
    parser.add_argument(
        "-w",
        "--watch",
        action="store_true",
        help="Re-evaluate whenever the file changes, until interrupted",
    )
    parser.add_argument("file", help="Source file to evaluate")
    return parser


def _apply_overrides(config: EvalPaneConfig, args: argparse.Namespace) -> EvalPaneConfig:
    update: dict = {}
    if args.raw:
        update["raw"] = True
    if args.timeout is not None:
        update["timeout_seconds"] = args.timeout
    return config.model_copy(update=update) if update else config


def _evaluate_once(
    scheduler: UpdateScheduler, host: MemoryViewHost, path: Path, text: str, identity: str
) -> int:
    width = shutil.get_terminal_size(fallback=(80, 24)).columns
    source = host.open_view(text.splitlines(), width=width)
    pane = scheduler.spawn(source, identity)
    try:
        label = f"{path.name} with {pane.interpreter.binary}"
        with WaitIndicator(label, timeout=scheduler.config.timeout_seconds):
            results = scheduler.update(source, text) or []
    finally:
        scheduler.shutdown()

    if host.messages:
        for message in host.messages:
            print(f"Error: {message}", file=sys.stderr)
        return 1

    for row in render_side_by_side(text.splitlines(), results, width, supports_color(sys.stdout)):
        print(row)
    return 0


def _watch(scheduler: UpdateScheduler, host: MemoryViewHost, path: Path, identity: str) -> int:
    source = host.open_view(width=shutil.get_terminal_size(fallback=(80, 24)).columns)
    scheduler.spawn(source, identity)
    last_mtime: int | None = None
    try:
        while True:
            try:
                mtime = path.stat().st_mtime_ns
                if mtime != last_mtime:
                    last_mtime = mtime
                    text = path.read_text(encoding="utf-8")
                    host.edit(source, text.splitlines())
                    scheduler.notify_edit(source, text)
            except OSError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            time.sleep(WATCH_POLL_SECONDS)
    except KeyboardInterrupt:
        return 0
    finally:
        scheduler.shutdown()


def _redraw(host: MemoryViewHost, view: int, result_lines: list[str]) -> None:
    """Repaint the terminal from a result view and the source it belongs to."""
    source = host.view(view).source
    if source is None:
        return
    source_lines = host.view(source).lines
    width = shutil.get_terminal_size(fallback=(80, 24)).columns
    rows = render_side_by_side(source_lines, result_lines, width, supports_color(sys.stdout))
    sys.stdout.write(CLEAR_SCREEN + "\n".join(rows) + "\n")
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )

    path = Path(args.file)
    identity = args.lang or guess_identity(path)
    try:
        config = _apply_overrides(load_config(), args)
        text = path.read_text(encoding="utf-8")
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    registry = build_registry(config)
    log.debug("file=%s identity=%s raw=%s", path, identity, config.raw)

    try:
        if args.watch:
            host = MemoryViewHost(
                on_change=lambda view, lines: _redraw(host, view, lines),
                on_message=lambda message: print(f"Error: {message}", file=sys.stderr),
            )
            return _watch(UpdateScheduler(registry, host, config), host, path, identity)
        host = MemoryViewHost()
        return _evaluate_once(UpdateScheduler(registry, host, config), host, path, text, identity)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def entrypoint() -> None:
    raise SystemExit(main())
