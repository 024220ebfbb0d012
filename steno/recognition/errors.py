"""Classification of recognition and device failures."""

from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import AudioAccessError, PermissionDeniedError
from ..models.events import ErrorClass, Notification


@dataclass(frozen=True)
class ErrorPolicy:
    """What to do about one engine error code."""
    error_class: ErrorClass
    message: str
    notify: bool


GENERIC_ERROR_MESSAGE = "Speech recognition error occurred."

ERROR_POLICIES: Dict[str, ErrorPolicy] = {
    "no-speech": ErrorPolicy(
        ErrorClass.TRANSIENT, "No speech detected. Please try speaking clearly.", notify=False),
    "network": ErrorPolicy(
        ErrorClass.TRANSIENT, "Network error occurred. Please check your connection.", notify=True),
    "aborted": ErrorPolicy(
        ErrorClass.USER_ABORTED, "Speech recognition was stopped.", notify=False),
    "audio-capture": ErrorPolicy(
        ErrorClass.DEVICE_UNAVAILABLE, "Microphone access denied or not available.", notify=True),
    "not-allowed": ErrorPolicy(
        ErrorClass.PERMISSION_DENIED,
        "Microphone permission denied. Please allow microphone access.", notify=True),
    "service-not-allowed": ErrorPolicy(
        ErrorClass.PERMISSION_DENIED,
        "Microphone permission denied. Please allow microphone access.", notify=True),
}


def classify_error(code: str) -> ErrorPolicy:
    """Look up the policy for an engine error code.

    Unknown codes are transient but still reported to the user.
    """
    policy = ERROR_POLICIES.get(code)
    if policy is None:
        return ErrorPolicy(ErrorClass.TRANSIENT, GENERIC_ERROR_MESSAGE, notify=True)
    return policy


def classify_access_error(error: AudioAccessError) -> ErrorPolicy:
    """Policy for a failure to open a device-bound capture stream."""
    if isinstance(error, PermissionDeniedError):
        return ERROR_POLICIES["not-allowed"]
    return ERROR_POLICIES["audio-capture"]


def notification_for(policy: ErrorPolicy, title: str = "Recognition Error") -> Optional[Notification]:
    """Build the user-facing notification for a policy, or None if suppressed."""
    if not policy.notify:
        return None
    return Notification(
        title=title,
        description=policy.message,
        variant="destructive",
        error_class=policy.error_class,
    )
