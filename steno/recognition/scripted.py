"""Speech engine that replays a scripted sequence of recognition events."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from threading import Event, Thread
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ..errors import ConfigError
from ..models.events import RecognitionResult
from .base import AbstractSpeechEngine

logger = logging.getLogger(__name__)

STEP_TYPES = ("result", "error", "end", "pause")


@dataclass
class ScriptStep:
    """One scripted engine event."""
    kind: str  # "result" | "error" | "end" | "pause"
    result_index: int = 0
    results: List[RecognitionResult] = field(default_factory=list)
    code: Optional[str] = None
    seconds: float = 0.0


def parse_step(raw: Dict[str, Any]) -> ScriptStep:
    kind = raw.get("type")
    if kind not in STEP_TYPES:
        raise ConfigError(f"Unknown script step type: {kind!r}")

    if kind == "result":
        results = [
            RecognitionResult(
                transcript=str(item.get("transcript", "")),
                is_final=bool(item.get("final", False)),
                confidence=item.get("confidence"),
            )
            for item in raw.get("results", [])
        ]
        return ScriptStep(kind, result_index=int(raw.get("result_index", 0)), results=results)
    if kind == "error":
        if not raw.get("code"):
            raise ConfigError("Script error step needs a 'code'")
        return ScriptStep(kind, code=str(raw["code"]))
    if kind == "pause":
        return ScriptStep(kind, seconds=float(raw.get("seconds", 0.0)))
    return ScriptStep(kind)


def load_script(path: str) -> List[ScriptStep]:
    """Load replay steps from a YAML file with a top-level ``steps`` list."""
    script_file = Path(path)
    if not script_file.exists():
        raise ConfigError(f"Script file not found: {script_file}")

    try:
        with open(script_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in script file: {e}") from e

    steps = data.get("steps") if isinstance(data, dict) else None
    if not isinstance(steps, list):
        raise ConfigError("Script file must contain a 'steps' list")

    parsed = [parse_step(step) for step in steps]
    logger.info(f"Loaded {len(parsed)} script steps from {script_file}")
    return parsed


class ScriptedSpeechEngine(AbstractSpeechEngine):
    """Replays scripted events, continuing where the previous run stopped.

    A run ends at an ``end`` step, after an ``error`` step, when ``stop()`` is
    called, or when the script is exhausted. Each run emits start first and
    end last.
    """

    def __init__(
        self,
        steps: Sequence[ScriptStep],
        step_delay: float = 0.0,
        background: bool = True,
        **engine_options,
    ):
        """Initialize scripted engine.

        Args:
            steps: Events to replay
            step_delay: Seconds to wait after each result or error step
            background: Replay on a worker thread; if False, ``start()``
                        replays the whole run before returning
        """
        super().__init__(**engine_options)
        self.steps = list(steps)
        self.step_delay = step_delay
        self.background = background

        self.position = 0
        self.start_count = 0
        self.is_running = False
        self.stop_event = Event()
        self.replay_thread: Optional[Thread] = None

    @property
    def finished(self) -> bool:
        return self.position >= len(self.steps)

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("Recognition has already started")

        self.is_running = True
        self.start_count += 1
        self.stop_event.clear()
        logger.debug(f"Scripted run #{self.start_count} from step {self.position} "
                     f"(device={self.device_id})")

        if self.background:
            self.replay_thread = Thread(target=self._run, daemon=True)
            self.replay_thread.name = "ScriptedEngineThread"
            self.replay_thread.start()
        else:
            self._run()

    def stop(self) -> None:
        if self.is_running:
            self.stop_event.set()

    def _run(self) -> None:
        """Internal method: replay steps until the run ends."""
        try:
            self.emit_start()
            while not self.stop_event.is_set() and not self.finished:
                step = self.steps[self.position]
                self.position += 1

                if step.kind == "end":
                    break
                if step.kind == "pause":
                    self.stop_event.wait(step.seconds)
                    continue
                if step.kind == "result":
                    self.emit_result(step.result_index, step.results)
                else:
                    self.emit_error(step.code)
                    break

                if self.step_delay:
                    self.stop_event.wait(self.step_delay)
        finally:
            self.is_running = False
            self.emit_end()
