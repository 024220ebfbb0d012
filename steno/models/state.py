"""Listening and permission state models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .device import AudioDevice


class ListenerState(Enum):
    """Lifecycle state of the recognition engine run."""
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING_REQUESTED = "stopping_requested"
    RESTARTING = "restarting"


class PermissionState(Enum):
    """Microphone permission as last observed."""
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class SpeechSessionState:
    """Snapshot of everything a UI needs to render a speech session."""
    transcript: str = ""
    is_listening: bool = False
    is_supported: bool = False
    has_permission: bool = False
    available_devices: List[AudioDevice] = field(default_factory=list)
    selected_device_id: Optional[str] = None
    listener_state: ListenerState = ListenerState.IDLE
    permission_state: PermissionState = PermissionState.UNKNOWN
