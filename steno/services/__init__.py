"""Services layer for Steno application logic."""

from .publishers import NotificationPublisher, SessionStatePublisher
from .session_manager import SessionManager
from .speech_session import SpeechSession

__all__ = [
    "NotificationPublisher",
    "SessionStatePublisher",
    "SessionManager",
    "SpeechSession",
]
