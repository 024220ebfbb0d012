"""Transcript accumulation for Steno."""

from .accumulator import TranscriptAccumulator

__all__ = [
    "TranscriptAccumulator",
]
