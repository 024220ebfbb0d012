"""Speech recognition engines and lifecycle control for Steno."""

from .base import AbstractSpeechEngine, SpeechEngineFactory
from .errors import ErrorPolicy, classify_error
from .lifecycle import RecognitionController, Trigger
from .scripted import ScriptedSpeechEngine, load_script

__all__ = [
    "AbstractSpeechEngine",
    "SpeechEngineFactory",
    "ErrorPolicy",
    "classify_error",
    "RecognitionController",
    "Trigger",
    "ScriptedSpeechEngine",
    "load_script",
]
