"""Append-only transcript built from final recognition results."""

import logging
from typing import List, Sequence

from ..models.events import RecognitionResult

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """Collects finalized text fragments into a single transcript.

    Engines re-emit the same interim hypothesis many times before finalizing
    it, so only results marked final are kept. Interim text never reaches the
    transcript.
    """

    def __init__(self):
        self.fragments: List[str] = []
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def on_result(self, result_index: int, results: Sequence[RecognitionResult]) -> str:
        """Merge one engine result event.

        Args:
            result_index: First result in ``results`` that changed in this event
            results: All results of the current engine run

        Returns:
            Text appended to the transcript (empty if nothing was final)
        """
        appended = []
        for result in results[max(result_index, 0):]:
            if not result.is_final:
                continue
            text = result.transcript.strip()
            if not text:
                continue
            appended.append(text + " ")

        if appended:
            self.fragments.extend(appended)
            chunk = "".join(appended)
            self._text += chunk
            logger.debug(f"Appended final text: '{chunk[:50]}'")
            return chunk
        return ""

    def reset(self) -> None:
        self.fragments.clear()
        self._text = ""
        logger.info("Transcript reset")
