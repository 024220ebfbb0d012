"""Microphone permission and device selection."""

import logging
import threading
from typing import Callable, List, Optional

from ..errors import AudioAccessError
from ..models.device import AudioDevice
from ..models.events import ErrorClass, Notification
from ..models.state import PermissionState
from .devices import AudioDeviceAccess

logger = logging.getLogger(__name__)


class PermissionManager:
    """Tracks microphone permission, the device catalog and the selected device.

    The capture stream opened by ``request_permissions`` is only a probe and is
    released before the call returns, whatever the outcome.
    """

    def __init__(self, device_access: AudioDeviceAccess, notify: Callable[[Notification], None]):
        """Initialize permission manager.

        Args:
            device_access: Platform microphone capability
            notify: Callback receiving user-facing notifications
        """
        self.device_access = device_access
        self.notify = notify
        self.lock = threading.Lock()

        self.permission_state = PermissionState.UNKNOWN
        self.available_devices: List[AudioDevice] = []
        self.selected_device_id: Optional[str] = None

    @property
    def has_permission(self) -> bool:
        return self.permission_state is PermissionState.GRANTED

    def request_permissions(self) -> bool:
        """Ask for microphone access and refresh the device catalog.

        Returns:
            True if access was granted
        """
        logger.info("Requesting microphone permission")
        stream = None
        try:
            stream = self.device_access.request_audio_access()
            devices = self.device_access.enumerate_input_devices()
        except AudioAccessError as e:
            logger.error(f"Error requesting microphone permission: {e}")
            with self.lock:
                self.permission_state = PermissionState.DENIED
            self.notify(Notification(
                title="Permission Denied",
                description="Microphone access is required for speech recognition.",
                variant="destructive",
                error_class=ErrorClass.PERMISSION_DENIED,
            ))
            return False
        finally:
            if stream is not None:
                stream.release()

        with self.lock:
            self.permission_state = PermissionState.GRANTED
            self.available_devices = list(devices)
            if self.selected_device_id is None and devices:
                self.selected_device_id = devices[0].device_id

        logger.info(f"Microphone permission granted, {len(devices)} input device(s), "
                    f"selected={self.selected_device_id}")
        return True

    def select_device(self, device_id: str) -> None:
        with self.lock:
            self.selected_device_id = device_id
        logger.info(f"Selected microphone: {device_id}")

    def mark_denied(self) -> None:
        """Record that permission was revoked mid-session."""
        with self.lock:
            self.permission_state = PermissionState.DENIED
        logger.warning("Microphone permission revoked")
