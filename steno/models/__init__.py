"""Data models for the Steno speech session."""

from .device import AudioDevice
from .events import ErrorClass, Notification, RecognitionResult
from .state import ListenerState, PermissionState, SpeechSessionState

__all__ = [
    "AudioDevice",
    "ErrorClass",
    "Notification",
    "RecognitionResult",
    "ListenerState",
    "PermissionState",
    "SpeechSessionState",
]
