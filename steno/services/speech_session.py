"""Speech session: the public face of permission, lifecycle and transcript."""

import logging
import threading
from typing import Callable, List, Optional

from ..audio.devices import AudioDeviceAccess
from ..audio.permissions import PermissionManager
from ..config import StenoConfig
from ..errors import EngineUnavailableError
from ..models.device import AudioDevice
from ..models.events import ErrorClass, Notification, RecognitionResult
from ..models.state import ListenerState, PermissionState, SpeechSessionState
from ..recognition.base import AbstractSpeechEngine, SpeechEngineFactory
from ..recognition.lifecycle import RecognitionController
from ..scheduling import Scheduler, ThreadTimerScheduler
from ..transcription.accumulator import TranscriptAccumulator

logger = logging.getLogger(__name__)


def _log_notification(notification: Notification) -> None:
    logger.info(f"Notification: {notification.title} - {notification.description}")


class SpeechSession:
    """Continuous speech capture with permission handling and auto-restart.

    Exposes the fields a UI renders (``transcript``, ``is_listening``,
    ``is_supported``, ``has_permission``, ``available_devices``,
    ``selected_device_id``) and the commands it triggers. Engine, timer and
    command threads are serialized by one re-entrant lock. No command raises;
    failures become state plus a notification.
    """

    def __init__(
        self,
        engine_factory: SpeechEngineFactory,
        device_access: AudioDeviceAccess,
        scheduler: Optional[Scheduler] = None,
        notify: Optional[Callable[[Notification], None]] = None,
        on_state_change: Optional[Callable[[SpeechSessionState], None]] = None,
        language: str = "en-US",
        continuous: bool = True,
        interim_results: bool = True,
        restart_delay: float = 0.25,
        restart_backoff: float = 2.0,
        max_restart_failures: int = 2,
        request_permissions_on_open: bool = True,
    ):
        """Initialize speech session.

        Args:
            engine_factory: Creates the engine; raises EngineUnavailableError
                            when speech recognition is not available
            device_access: Platform microphone capability
            scheduler: Runs delayed restarts (threading timers by default)
            notify: Receives user-facing notifications
            on_state_change: Receives a snapshot after every state change
            language: Recognition language
            continuous: Keep recognizing after the first final result
            interim_results: Ask the engine for provisional hypotheses
            restart_delay: Seconds to wait before restarting an ended engine
            restart_backoff: Delay multiplier after a failed restart
            max_restart_failures: Failed restarts in a row before giving up
            request_permissions_on_open: Ask for microphone access in open()
        """
        self.engine_factory = engine_factory
        self.device_access = device_access
        self.scheduler = scheduler or ThreadTimerScheduler()
        self.notify = notify or _log_notification
        self.on_state_change = on_state_change
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results
        self.restart_delay = restart_delay
        self.restart_backoff = restart_backoff
        self.max_restart_failures = max_restart_failures
        self.request_permissions_on_open = request_permissions_on_open

        self.lock = threading.RLock()
        self.permissions = PermissionManager(device_access, self.notify)
        self.accumulator = TranscriptAccumulator()
        self.engine: Optional[AbstractSpeechEngine] = None
        self.recognition: Optional[RecognitionController] = None

        self.is_supported = False
        self.is_open = False
        self.is_closed = False

    @classmethod
    def from_config(
        cls,
        config: StenoConfig,
        engine_factory: SpeechEngineFactory,
        device_access: AudioDeviceAccess,
        **kwargs,
    ) -> "SpeechSession":
        """Build a session using engine and restart settings from config."""
        return cls(
            engine_factory=engine_factory,
            device_access=device_access,
            language=config.get('engine.language', 'en-US'),
            continuous=config.get('engine.continuous', True),
            interim_results=config.get('engine.interim_results', True),
            request_permissions_on_open=config.get('permissions.request_on_open', True),
            **config.get_restart_policy(),
            **kwargs,
        )

    # Lifecycle

    def open(self) -> None:
        """Create the engine and, if configured, ask for microphone access."""
        with self.lock:
            if self.is_open or self.is_closed:
                return
            self.is_open = True

            try:
                engine = self.engine_factory()
            except EngineUnavailableError as e:
                logger.error(f"Speech recognition unavailable: {e}")
                self.is_supported = False
                self.notify(Notification(
                    title="Not Supported",
                    description="Speech recognition is not supported on this platform.",
                    variant="destructive",
                    error_class=ErrorClass.UNSUPPORTED,
                ))
                self._publish_state()
                return

            engine.language = self.language
            engine.continuous = self.continuous
            engine.interim_results = self.interim_results
            engine.on_start = self._on_engine_start
            engine.on_end = self._on_engine_end
            engine.on_result = self._on_engine_result
            engine.on_error = self._on_engine_error
            self.engine = engine

            self.recognition = RecognitionController(
                engine=engine,
                device_access=self.device_access,
                permissions=self.permissions,
                scheduler=self.scheduler,
                notify=self.notify,
                restart_delay=self.restart_delay,
                restart_backoff=self.restart_backoff,
                max_restart_failures=self.max_restart_failures,
                on_change=self._publish_state,
                lock=self.lock,
            )
            self.is_supported = True
            logger.info(f"Speech session opened (language={self.language})")
            self._publish_state()

        if self.request_permissions_on_open:
            self.request_permissions()

    def close(self) -> None:
        """Stop the engine for good and release every capture stream."""
        with self.lock:
            if self.is_closed:
                return
            self.is_closed = True
            if self.recognition is not None:
                self.recognition.close()
            if self.engine is not None:
                self.engine.on_start = None
                self.engine.on_end = None
                self.engine.on_result = None
                self.engine.on_error = None
            logger.info("Speech session closed")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        self.close()

    # Exposed state

    @property
    def transcript(self) -> str:
        return self.accumulator.text

    @property
    def is_listening(self) -> bool:
        return self.recognition is not None and self.recognition.actual

    @property
    def wants_to_listen(self) -> bool:
        return self.recognition is not None and self.recognition.desired

    @property
    def has_permission(self) -> bool:
        return self.permissions.has_permission

    @property
    def permission_state(self) -> PermissionState:
        return self.permissions.permission_state

    @property
    def available_devices(self) -> List[AudioDevice]:
        return list(self.permissions.available_devices)

    @property
    def selected_device_id(self) -> Optional[str]:
        return self.permissions.selected_device_id

    @property
    def listener_state(self) -> ListenerState:
        if self.recognition is None:
            return ListenerState.IDLE
        return self.recognition.state

    def snapshot(self) -> SpeechSessionState:
        with self.lock:
            return SpeechSessionState(
                transcript=self.transcript,
                is_listening=self.is_listening,
                is_supported=self.is_supported,
                has_permission=self.has_permission,
                available_devices=self.available_devices,
                selected_device_id=self.selected_device_id,
                listener_state=self.listener_state,
                permission_state=self.permission_state,
            )

    # Commands

    def request_permissions(self) -> bool:
        if not self._check_usable("request_permissions"):
            return False
        granted = self.permissions.request_permissions()
        self._publish_state()
        return granted

    def start_listening(self) -> None:
        if not self._check_usable("start_listening"):
            return
        if not self.permissions.has_permission:
            logger.info("No microphone permission yet, requesting it instead of starting")
            self.request_permissions()
            return
        self.recognition.start()

    def stop_listening(self) -> None:
        if not self._check_usable("stop_listening"):
            return
        self.recognition.stop()

    def select_microphone(self, device_id: str) -> None:
        if not self._check_usable("select_microphone"):
            return
        with self.lock:
            self.permissions.select_device(device_id)
            self.recognition.device_changed()
            self._publish_state()

    def reset_transcript(self) -> None:
        with self.lock:
            self.accumulator.reset()
            self._publish_state()

    # Engine callbacks

    def _on_engine_start(self) -> None:
        self.recognition.handle_engine_start()

    def _on_engine_end(self) -> None:
        self.recognition.handle_engine_end()

    def _on_engine_error(self, code: str) -> None:
        self.recognition.handle_engine_error(code)

    def _on_engine_result(self, result_index: int, results: List[RecognitionResult]) -> None:
        with self.lock:
            if self.is_closed:
                return
            if self.accumulator.on_result(result_index, results):
                self._publish_state()

    # Helpers

    def _check_usable(self, command: str) -> bool:
        if self.is_closed:
            logger.warning(f"{command}() ignored: session closed")
            return False
        if not self.is_open:
            logger.warning(f"{command}() ignored: session not opened")
            return False
        if not self.is_supported:
            logger.warning(f"{command}() ignored: speech recognition not supported")
            return False
        return True

    def _publish_state(self) -> None:
        if self.on_state_change:
            self.on_state_change(self.snapshot())
