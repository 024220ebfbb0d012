"""Pytest configuration and fixtures for Steno tests."""

import pytest
import logging
from typing import List, Optional
from unittest.mock import Mock, patch

from steno.audio.devices import AudioDeviceAccess, CaptureStream
from steno.audio.permissions import PermissionManager
from steno.errors import AudioAccessError, DeviceUnavailableError, PermissionDeniedError
from steno.models.device import AudioDevice
from steno.models.events import RecognitionResult
from steno.recognition.base import AbstractSpeechEngine
from steno.recognition.lifecycle import RecognitionController
from steno.scheduling import Scheduler, TimerHandle
from steno.services.speech_session import SpeechSession


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no hardware")


class FakeSpeechEngine(AbstractSpeechEngine):
    """Engine whose events are emitted by the test, one at a time."""

    def __init__(self, emit_start_on_start: bool = False):
        super().__init__()
        self.emit_start_on_start = emit_start_on_start
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_starts = 0
        self.started_devices: List[Optional[str]] = []

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_starts > 0:
            self.fail_starts -= 1
            raise RuntimeError("recognition already started")
        self.started_devices.append(self.device_id)
        if self.emit_start_on_start:
            self.emit_start()

    def stop(self) -> None:
        self.stop_calls += 1

    def final(self, *texts: str, result_index: int = 0) -> None:
        self.emit_result(result_index, [RecognitionResult(t, is_final=True) for t in texts])

    def interim(self, *texts: str, result_index: int = 0) -> None:
        self.emit_result(result_index, [RecognitionResult(t, is_final=False) for t in texts])


class FakeCaptureStream(CaptureStream):

    def __init__(self, access: "FakeDeviceAccess", device_id: Optional[str]):
        self.access = access
        self.device_id = device_id
        self.released = False

    @property
    def is_active(self) -> bool:
        return not self.released

    def release(self) -> None:
        if not self.released:
            self.released = True
            self.access.events.append(("release", self.device_id))


class FakeDeviceAccess(AudioDeviceAccess):
    """Records every acquire/release in order."""

    def __init__(self, devices: List[AudioDevice]):
        self.devices = devices
        self.granted = True
        self.unavailable = set()
        self.enumerate_error: Optional[AudioAccessError] = None
        self.events = []
        self.streams: List[FakeCaptureStream] = []

    @property
    def open_streams(self) -> int:
        return sum(1 for s in self.streams if s.is_active)

    def request_audio_access(self, device_id: Optional[str] = None) -> CaptureStream:
        if not self.granted:
            raise PermissionDeniedError("Permission denied")
        if device_id in self.unavailable:
            raise DeviceUnavailableError(f"Device {device_id} is gone")
        self.events.append(("acquire", device_id))
        stream = FakeCaptureStream(self, device_id)
        self.streams.append(stream)
        return stream

    def enumerate_input_devices(self) -> List[AudioDevice]:
        if self.enumerate_error is not None:
            raise self.enumerate_error
        return list(self.devices)

    def device_events(self):
        """Acquire/release events for real devices, ignoring permission probes."""
        return [e for e in self.events if e[1] is not None]


class ManualTimer(TimerHandle):

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Timers fire only when the test says so."""

    def __init__(self):
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback) -> TimerHandle:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self) -> None:
        timer = self.pending[0]
        timer.fired = True
        timer.callback()


@pytest.fixture
def devices():
    return [
        AudioDevice(device_id="mic-1", label="Built-in Microphone"),
        AudioDevice(device_id="mic-2", label="USB Headset"),
    ]


@pytest.fixture
def device_access(devices):
    return FakeDeviceAccess(devices)


@pytest.fixture
def engine():
    return FakeSpeechEngine()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def notifications():
    """List collecting every notification raised during a test."""
    return []


@pytest.fixture
def permissions(device_access, notifications):
    return PermissionManager(device_access, notifications.append)


@pytest.fixture
def controller(engine, device_access, permissions, scheduler, notifications):
    """Recognition controller with permission granted and mic-1 selected."""
    permissions.request_permissions()
    device_access.events.clear()

    controller = RecognitionController(
        engine=engine,
        device_access=device_access,
        permissions=permissions,
        scheduler=scheduler,
        notify=notifications.append,
        restart_delay=0.25,
        restart_backoff=2.0,
        max_restart_failures=2,
    )
    engine.on_start = controller.handle_engine_start
    engine.on_end = controller.handle_engine_end
    engine.on_error = controller.handle_engine_error
    return controller


@pytest.fixture
def states():
    """List collecting every published session snapshot."""
    return []


@pytest.fixture
def make_session(engine, device_access, scheduler, notifications, states):
    def _make(**kwargs) -> SpeechSession:
        options = dict(
            engine_factory=lambda: engine,
            device_access=device_access,
            scheduler=scheduler,
            notify=notifications.append,
            on_state_change=states.append,
        )
        options.update(kwargs)
        return SpeechSession(**options)
    return _make


@pytest.fixture
def session(make_session):
    """Opened session; permission is requested on open and granted."""
    session = make_session()
    session.open()
    yield session
    session.close()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'index': 0, 'name': 'Default', 'maxInputChannels': 1,
        }

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
