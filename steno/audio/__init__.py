"""Microphone access, device enumeration and permission tracking."""

from .devices import (
    AudioDeviceAccess,
    CaptureStream,
    PyAudioDeviceAccess,
    StaticDeviceAccess,
)
from .permissions import PermissionManager

__all__ = [
    'AudioDeviceAccess',
    'CaptureStream',
    'PyAudioDeviceAccess',
    'StaticDeviceAccess',
    'PermissionManager',
]
