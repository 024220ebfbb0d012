"""Recognition engine event and notification models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ErrorClass(Enum):
    """How a failure affects the session."""
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_UNAVAILABLE = "device_unavailable"
    TRANSIENT = "transient"
    USER_ABORTED = "user_aborted"

    @property
    def is_fatal(self) -> bool:
        return self in (
            ErrorClass.UNSUPPORTED,
            ErrorClass.PERMISSION_DENIED,
            ErrorClass.DEVICE_UNAVAILABLE,
        )


@dataclass(frozen=True)
class RecognitionResult:
    """Best-guess hypothesis for one segment of speech."""
    transcript: str
    is_final: bool = False
    confidence: Optional[float] = None


@dataclass
class Notification:
    """User-facing message raised by the session."""
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"
    error_class: Optional[ErrorClass] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"
