"""Abstract base class for continuous speech recognition engines."""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence
import logging

from ..models.events import RecognitionResult

logger = logging.getLogger(__name__)


StartHandler = Callable[[], None]
EndHandler = Callable[[], None]
ResultHandler = Callable[[int, Sequence[RecognitionResult]], None]
ErrorHandler = Callable[[str], None]


class AbstractSpeechEngine(ABC):
    """A continuous recognizer with start/stop and four event channels.

    Implementations must call ``on_end`` after every run, including runs that
    stopped because of ``stop()`` or an error, and must not block in ``stop()``
    waiting for their own worker threads.
    """

    def __init__(self, language: str = "en-US", continuous: bool = True, interim_results: bool = True):
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results
        # Device the next run should capture from; None means system default
        self.device_id: Optional[str] = None

        self.on_start: Optional[StartHandler] = None
        self.on_end: Optional[EndHandler] = None
        self.on_result: Optional[ResultHandler] = None
        self.on_error: Optional[ErrorHandler] = None

    @abstractmethod
    def start(self) -> None:
        """Begin a recognition run. May raise if the engine cannot start."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Ask the current run to finish; ``on_end`` follows."""
        pass

    def emit_start(self) -> None:
        if self.on_start:
            self.on_start()

    def emit_end(self) -> None:
        if self.on_end:
            self.on_end()

    def emit_result(self, result_index: int, results: Sequence[RecognitionResult]) -> None:
        if self.on_result:
            self.on_result(result_index, results)

    def emit_error(self, code: str) -> None:
        if self.on_error:
            self.on_error(code)


# Returns a ready engine or raises EngineUnavailableError
SpeechEngineFactory = Callable[[], AbstractSpeechEngine]
