"""Microphone access and input device enumeration."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import pyaudio

from ..errors import AudioAccessError, DeviceUnavailableError, PermissionDeniedError
from ..models.device import AudioDevice

logger = logging.getLogger(__name__)

# PortAudio error codes that mean "this device cannot be used"
PA_INVALID_CHANNEL_COUNT = -9998
PA_INVALID_DEVICE = -9996
PA_DEVICE_UNAVAILABLE = -9985
_DEVICE_ERROR_CODES = (PA_INVALID_CHANNEL_COUNT, PA_INVALID_DEVICE, PA_DEVICE_UNAVAILABLE)


class CaptureStream(ABC):
    """An open capture stream. Holding one keeps the microphone in use."""

    device_id: Optional[str] = None

    @abstractmethod
    def release(self) -> None:
        """Stop capturing and free the device. Safe to call twice."""
        pass

    @property
    @abstractmethod
    def is_active(self) -> bool:
        pass


class AudioDeviceAccess(ABC):
    """Platform capability for opening microphones and listing them."""

    @abstractmethod
    def request_audio_access(self, device_id: Optional[str] = None) -> CaptureStream:
        """Open a capture stream.

        Args:
            device_id: Device to bind to, or None for the system default

        Returns:
            Open CaptureStream; the caller owns it and must release it

        Raises:
            PermissionDeniedError: access was refused
            DeviceUnavailableError: the device is missing or unusable
        """
        pass

    @abstractmethod
    def enumerate_input_devices(self) -> List[AudioDevice]:
        """List audio input devices in platform order."""
        pass


class PyAudioCaptureStream(CaptureStream):
    """Capture stream backed by a PyAudio input stream."""

    def __init__(self, pyaudio_instance: pyaudio.PyAudio, stream, device_id: Optional[str]):
        self.pyaudio_instance = pyaudio_instance
        self.stream = stream
        self.device_id = device_id
        self._released = False

    @property
    def is_active(self) -> bool:
        return not self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self.stream.stop_stream()
            self.stream.close()
        except OSError as e:
            logger.warning(f"Error closing capture stream for device {self.device_id}: {e}")
        finally:
            self.pyaudio_instance.terminate()
        logger.debug(f"Released capture stream (device={self.device_id})")


class PyAudioDeviceAccess(AudioDeviceAccess):
    """Device access through PortAudio."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_size: int = 1024,
        format: int = pyaudio.paInt16,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_size = chunk_size
        self.format = format

    def request_audio_access(self, device_id: Optional[str] = None) -> CaptureStream:
        instance = pyaudio.PyAudio()
        try:
            device_index = self._resolve_device_index(instance, device_id)
            stream = instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                input_device_index=device_index,
                start=True,
            )
        except AudioAccessError:
            instance.terminate()
            raise
        except OSError as e:
            instance.terminate()
            code = e.args[1] if len(e.args) > 1 else None
            if code in _DEVICE_ERROR_CODES:
                raise DeviceUnavailableError(f"Input device {device_id} unavailable: {e}") from e
            raise PermissionDeniedError(f"Microphone access failed: {e}") from e

        logger.info(f"Capture stream opened: device={device_id or 'default'}, "
                    f"{self.sample_rate}Hz, {self.channels} channel(s)")
        return PyAudioCaptureStream(instance, stream, device_id)

    def _resolve_device_index(self, instance: pyaudio.PyAudio, device_id: Optional[str]) -> Optional[int]:
        if device_id is None:
            try:
                instance.get_default_input_device_info()
            except OSError as e:
                raise DeviceUnavailableError("No default input device") from e
            return None

        try:
            index = int(device_id)
            info = instance.get_device_info_by_index(index)
        except (ValueError, OSError) as e:
            raise DeviceUnavailableError(f"Unknown input device: {device_id}") from e

        if info.get('maxInputChannels', 0) <= 0:
            raise DeviceUnavailableError(f"Device {device_id} has no input channels")
        return index

    def enumerate_input_devices(self) -> List[AudioDevice]:
        instance = pyaudio.PyAudio()
        devices = []
        try:
            for i in range(instance.get_device_count()):
                try:
                    info = instance.get_device_info_by_index(i)
                except OSError:
                    logger.debug(f"Could not get info for device {i}")
                    continue
                if info.get('maxInputChannels', 0) > 0:
                    devices.append(AudioDevice(
                        device_id=str(i),
                        label=info.get('name', f"Input {i}"),
                        channels=int(info['maxInputChannels']),
                        default_sample_rate=int(info.get('defaultSampleRate', self.sample_rate)),
                    ))
        finally:
            instance.terminate()

        logger.debug(f"Found {len(devices)} input devices")
        return devices


class StaticCaptureStream(CaptureStream):
    """Stream handle for StaticDeviceAccess; holds no real hardware."""

    def __init__(self, device_id: Optional[str]):
        self.device_id = device_id
        self._released = False

    @property
    def is_active(self) -> bool:
        return not self._released

    def release(self) -> None:
        self._released = True


class StaticDeviceAccess(AudioDeviceAccess):
    """Fixed catalog of virtual devices, for headless replay."""

    def __init__(self, devices: Sequence[AudioDevice] = (), granted: bool = True):
        self.devices = list(devices)
        self.granted = granted
        self.streams: List[StaticCaptureStream] = []

    @property
    def open_streams(self) -> int:
        return sum(1 for s in self.streams if s.is_active)

    def request_audio_access(self, device_id: Optional[str] = None) -> CaptureStream:
        if not self.granted:
            raise PermissionDeniedError("Microphone access refused")
        if device_id is not None and device_id not in {d.device_id for d in self.devices}:
            raise DeviceUnavailableError(f"Unknown input device: {device_id}")
        stream = StaticCaptureStream(device_id)
        self.streams.append(stream)
        return stream

    def enumerate_input_devices(self) -> List[AudioDevice]:
        return list(self.devices)
