"""Update scheduler: pane lifecycle, debounced updates, one run per pane at a time.

Per source view the pane moves SPAWNED -> (UPDATING <-> IDLE) -> KILLED.
Updates triggered while a run is in flight are queued; only the most recent
queued text runs once the current run is done.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any

from evalpane.errors import StalledInterpreterError
from evalpane.extractor import evaluate_transcript
from evalpane.host import ViewHost
from evalpane.models import (
    EvalPaneConfig,
    EvaluationPane,
    InterpreterDescriptor,
    PaneState,
    ViewState,
)
from evalpane.normalizer import TranscriptNormalizer, detect_normalizer
from evalpane.registry import InterpreterRegistry
from evalpane.session import run_session
from evalpane.sync import PaneSynchronizer

log = logging.getLogger(__name__)

Runner = Callable[[str, InterpreterDescriptor, float], bytes]


class UpdateScheduler:
    def __init__(
        self,
        registry: InterpreterRegistry,
        host: ViewHost,
        config: EvalPaneConfig | None = None,
        runner: Runner = run_session,
        normalizer: TranscriptNormalizer | None = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._config = config or EvalPaneConfig()
        self._runner = runner
        self._normalizer = normalizer or detect_normalizer()
        self._sync = PaneSynchronizer(host)
        self._panes: dict[Any, EvaluationPane] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> EvalPaneConfig:
        return self._config

    def pane(self, source: Any) -> EvaluationPane | None:
        with self._lock:
            return self._panes.get(source)

    def spawn(self, source: Any, identity: str, raw: bool | None = None) -> EvaluationPane:
        """Create the pane for `source`, replacing any existing one.

        Raises ConfigurationError before touching any view when `identity`
        cannot be spawned.
        """
        descriptor = self._registry.require(identity)
        self.kill(source)

        result = self._host.create_result_view(source)
        pane = EvaluationPane(
            source=source,
            result=result,
            identity=self._registry.canonical(identity),
            interpreter=descriptor,
            raw=self._config.raw if raw is None else raw,
        )
        self._sync.attach(pane)
        with self._lock:
            self._panes[source] = pane
        log.debug("pane %d spawned for %s with %s", pane.id, source, descriptor.binary)
        return pane

    def kill(self, source: Any) -> bool:
        """Tear down the pane for `source`; returns False when there was none."""
        with self._lock:
            pane = self._panes.pop(source, None)
            if pane is None:
                return False
            if pane.timer is not None:
                pane.timer.cancel()
                pane.timer = None
            pane.state = PaneState.KILLED
            pane.pending_text = None
            pane.lines = []
            pane.view_state = ViewState()
        self._sync.release(pane)
        log.debug("pane %d killed", pane.id)
        return True

    def toggle(self, source: Any, identity: str, raw: bool | None = None) -> EvaluationPane | None:
        """Kill the pane when one exists, otherwise spawn one."""
        if self.pane(source) is not None:
            self.kill(source)
            return None
        return self.spawn(source, identity, raw=raw)

    def source_closed(self, source: Any) -> None:
        self.kill(source)

    def source_abandoned(self, source: Any) -> None:
        """The context holding `source` went away; kill only when autoclose is on."""
        if self._config.autoclose:
            self.kill(source)

    def shutdown(self) -> None:
        with self._lock:
            sources = list(self._panes)
        for source in sources:
            self.kill(source)

    def notify_edit(self, source: Any, text: str) -> None:
        """Schedule an update once edits have been quiet for the debounce interval."""
        timer = threading.Timer(self._config.debounce_seconds, self.update, args=(source, text))
        timer.daemon = True
        with self._lock:
            pane = self._panes.get(source)
            if pane is None:
                return
            if pane.timer is not None:
                pane.timer.cancel()
            pane.timer = timer
        timer.start()

    def update(self, source: Any, text: str) -> list[str] | None:
        """Evaluate `text` for the pane of `source` on the calling thread.

        Returns the pane's result lines, or None when there is no pane or the
        request was queued behind a run already in flight.
        """
        with self._lock:
            pane = self._panes.get(source)
            if pane is None:
                return None
            if pane.state is PaneState.UPDATING:
                pane.pending_text = text
                log.debug("pane %d busy, update queued", pane.id)
                return None
            pane.state = PaneState.UPDATING

        done = False
        try:
            while not done:
                self._run_once(pane, text)
                with self._lock:
                    queued, pane.pending_text = pane.pending_text, None
                    if queued is None or not pane.alive:
                        if pane.alive:
                            pane.state = PaneState.IDLE
                        done = True
                    else:
                        text = queued
        finally:
            if not done:
                with self._lock:
                    if pane.alive:
                        pane.state = PaneState.IDLE
        return list(pane.lines)

    def _run_once(self, pane: EvaluationPane, text: str) -> None:
        descriptor = pane.interpreter
        try:
            transcript = self._runner(text, descriptor, self._config.timeout_seconds)
        except StalledInterpreterError as e:
            log.warning("pane %d: %s", pane.id, e)
            self._host.notify(f"Interpreter stalled: {e}")
            return
        except OSError as e:
            log.warning("pane %d: could not run %s: %s", pane.id, descriptor.binary, e)
            transcript = b""

        try:
            lines = evaluate_transcript(transcript, text, descriptor, self._normalizer, pane.raw)
        except Exception as e:
            # Preprocess filters are arbitrary code.
            log.warning(
                "pane %d: could not process %s output: %s", pane.id, descriptor.binary, e
            )
            self._host.notify(f"Could not process {descriptor.binary} output: {e}")
            return
        if not pane.alive:
            log.debug("pane %d killed during run, result dropped", pane.id)
            return
        self._sync.apply(pane, lines)
