"""Recognition lifecycle: desired vs actual listening state and auto-restart.

Continuous engines end on their own after silence or network trouble. The
controller keeps the user's intent (``desired``) apart from what the engine
reports (``actual``) and restarts the engine whenever a run ends while the
user still wants to listen.

Every transition goes through ``TRANSITIONS``, a table from
(state, trigger) to (next state, effect). Effects may return a state that
overrides the table's next state when the outcome depends on the result of a
side effect (for example an engine that refuses to start).
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, Optional, Tuple

from ..audio.devices import AudioDeviceAccess, CaptureStream
from ..audio.permissions import PermissionManager
from ..errors import AudioAccessError
from ..models.events import ErrorClass, Notification
from ..models.state import ListenerState
from ..scheduling import Scheduler, TimerHandle
from .base import AbstractSpeechEngine
from .errors import ErrorPolicy, classify_access_error, classify_error, notification_for

logger = logging.getLogger(__name__)


class Trigger(Enum):
    """Inputs to the lifecycle state machine."""
    START = "start"
    STOP = "stop"
    ENGINE_STARTED = "engine_started"
    ENGINE_ENDED = "engine_ended"
    RESTART_DUE = "restart_due"
    FATAL_ERROR = "fatal_error"
    DEVICE_CHANGED = "device_changed"


S = ListenerState
T = Trigger

TRANSITIONS: Dict[Tuple[ListenerState, Trigger], Tuple[ListenerState, Optional[str]]] = {
    (S.IDLE, T.START): (S.STARTING, "_begin_run"),
    (S.IDLE, T.STOP): (S.IDLE, "_release_stream"),
    (S.IDLE, T.ENGINE_STARTED): (S.STOPPING_REQUESTED, "_stop_unrequested_run"),
    (S.IDLE, T.ENGINE_ENDED): (S.IDLE, "_settle_after_end"),
    (S.IDLE, T.RESTART_DUE): (S.IDLE, None),
    (S.IDLE, T.FATAL_ERROR): (S.IDLE, "_release_stream"),
    (S.IDLE, T.DEVICE_CHANGED): (S.IDLE, None),

    (S.STARTING, T.START): (S.STARTING, None),
    (S.STARTING, T.STOP): (S.STOPPING_REQUESTED, "_request_stop"),
    (S.STARTING, T.ENGINE_STARTED): (S.LISTENING, None),
    (S.STARTING, T.ENGINE_ENDED): (S.IDLE, "_settle_after_end"),
    (S.STARTING, T.RESTART_DUE): (S.STARTING, None),
    (S.STARTING, T.FATAL_ERROR): (S.STOPPING_REQUESTED, "_release_stream"),
    (S.STARTING, T.DEVICE_CHANGED): (S.STARTING, "_switch_device"),

    (S.LISTENING, T.START): (S.LISTENING, None),
    (S.LISTENING, T.STOP): (S.STOPPING_REQUESTED, "_request_stop"),
    (S.LISTENING, T.ENGINE_STARTED): (S.LISTENING, None),
    (S.LISTENING, T.ENGINE_ENDED): (S.IDLE, "_settle_after_end"),
    (S.LISTENING, T.RESTART_DUE): (S.LISTENING, None),
    (S.LISTENING, T.FATAL_ERROR): (S.STOPPING_REQUESTED, "_release_stream"),
    (S.LISTENING, T.DEVICE_CHANGED): (S.LISTENING, "_switch_device"),

    (S.STOPPING_REQUESTED, T.START): (S.STOPPING_REQUESTED, None),
    (S.STOPPING_REQUESTED, T.STOP): (S.STOPPING_REQUESTED, "_release_stream"),
    (S.STOPPING_REQUESTED, T.ENGINE_STARTED): (S.STOPPING_REQUESTED, None),
    (S.STOPPING_REQUESTED, T.ENGINE_ENDED): (S.IDLE, "_settle_after_end"),
    (S.STOPPING_REQUESTED, T.RESTART_DUE): (S.STOPPING_REQUESTED, None),
    (S.STOPPING_REQUESTED, T.FATAL_ERROR): (S.STOPPING_REQUESTED, "_release_stream"),
    (S.STOPPING_REQUESTED, T.DEVICE_CHANGED): (S.STOPPING_REQUESTED, None),

    (S.RESTARTING, T.START): (S.RESTARTING, None),
    (S.RESTARTING, T.STOP): (S.IDLE, "_abandon_restart"),
    (S.RESTARTING, T.ENGINE_STARTED): (S.LISTENING, "_cancel_restart"),
    (S.RESTARTING, T.ENGINE_ENDED): (S.RESTARTING, None),
    (S.RESTARTING, T.RESTART_DUE): (S.STARTING, "_restart"),
    (S.RESTARTING, T.FATAL_ERROR): (S.IDLE, "_abandon_restart"),
    (S.RESTARTING, T.DEVICE_CHANGED): (S.RESTARTING, None),
}


class RecognitionController:
    """Drives one speech engine through start, stop and automatic restarts."""

    def __init__(
        self,
        engine: AbstractSpeechEngine,
        device_access: AudioDeviceAccess,
        permissions: PermissionManager,
        scheduler: Scheduler,
        notify: Callable[[Notification], None],
        restart_delay: float = 0.25,
        restart_backoff: float = 2.0,
        max_restart_failures: int = 2,
        on_change: Optional[Callable[[], None]] = None,
        lock: Optional[threading.RLock] = None,
    ):
        """Initialize the lifecycle controller.

        Args:
            engine: Engine instance, owned by this controller from now on
            device_access: Used to bind a capture stream to the selected device
            permissions: Source of the selected device; updated on revocation
            scheduler: Runs the delayed restart
            notify: Callback receiving user-facing notifications
            restart_delay: Seconds between an unexpected end and the restart
            restart_backoff: Delay multiplier after each failed restart
            max_restart_failures: Consecutive failed restarts before giving up
            on_change: Called after every processed trigger
            lock: Lock shared with the owner so engine, timer and command
                  threads see one consistent state
        """
        self.engine = engine
        self.device_access = device_access
        self.permissions = permissions
        self.scheduler = scheduler
        self.notify = notify
        self.restart_delay = restart_delay
        self.restart_backoff = restart_backoff
        self.max_restart_failures = max_restart_failures
        self.on_change = on_change
        self.lock = lock or threading.RLock()

        self.state = ListenerState.IDLE
        self.desired = False
        self.actual = False
        self.restart_failures = 0
        self.closed = False

        self.stream: Optional[CaptureStream] = None
        self._restart_handle: Optional[TimerHandle] = None
        self._restart_token = 0
        self._queue: Deque[Trigger] = deque()
        self._dispatching = False

    # Commands

    def start(self) -> None:
        with self.lock:
            if self.closed:
                logger.warning("start() ignored: controller closed")
                return
            self.desired = True
            self._dispatch(Trigger.START)

    def stop(self) -> None:
        with self.lock:
            if self.closed:
                return
            self.desired = False
            self._dispatch(Trigger.STOP)

    def device_changed(self) -> None:
        with self.lock:
            self._dispatch(Trigger.DEVICE_CHANGED)

    def close(self) -> None:
        """Force-stop the engine and release everything. Terminal."""
        with self.lock:
            if self.closed:
                return
            logger.info(f"Closing recognition controller (state={self.state.value})")
            self.closed = True
            self.desired = False
            self._abandon_restart()
            if self.actual or self.state in (ListenerState.STARTING, ListenerState.LISTENING):
                try:
                    self.engine.stop()
                except Exception as e:
                    logger.error(f"Error stopping engine on close: {e}")
            self.actual = False
            self.state = ListenerState.IDLE
            self._queue.clear()
            self._changed()

    # Engine events

    def handle_engine_start(self) -> None:
        self._dispatch(Trigger.ENGINE_STARTED)

    def handle_engine_end(self) -> None:
        self._dispatch(Trigger.ENGINE_ENDED)

    def handle_engine_error(self, code: str) -> None:
        policy = classify_error(code)
        with self.lock:
            if self.closed:
                return
            if policy.error_class is ErrorClass.USER_ABORTED:
                logger.debug(f"Engine aborted on request ({code})")
                return
            if not policy.error_class.is_fatal:
                logger.warning(f"Speech recognition error: {code}")
                self._notify_policy(policy)
                return

            logger.error(f"Speech recognition error: {code}")
            self._fail(policy)
            self._dispatch(Trigger.FATAL_ERROR)

    # Dispatch

    def _dispatch(self, trigger: Trigger) -> None:
        with self.lock:
            if self.closed:
                logger.debug(f"Ignoring {trigger.value}: controller closed")
                return
            self._queue.append(trigger)
            if self._dispatching:
                # An effect emitted this; run it once the current one finishes
                return
            self._dispatching = True
            try:
                while self._queue and not self.closed:
                    self._apply(self._queue.popleft())
            finally:
                self._dispatching = False

    def _apply(self, trigger: Trigger) -> None:
        if trigger is Trigger.ENGINE_STARTED:
            self.actual = True
            self.restart_failures = 0
        elif trigger is Trigger.ENGINE_ENDED:
            self.actual = False

        previous = self.state
        next_state, effect = TRANSITIONS[(previous, trigger)]
        if effect is not None:
            override = getattr(self, effect)()
            if override is not None:
                next_state = override

        if next_state is not previous:
            logger.info(f"Recognition {previous.value} -> {next_state.value} on {trigger.value}")
            self.state = next_state
        else:
            logger.debug(f"Recognition stays {previous.value} on {trigger.value}")
        self._changed()

    # Effects

    def _begin_run(self) -> Optional[ListenerState]:
        return self._launch(initial=True)

    def _restart(self) -> Optional[ListenerState]:
        self._restart_handle = None
        if not self.desired:
            self._release_stream()
            return ListenerState.IDLE
        logger.info(f"Restarting speech recognition (failures so far: {self.restart_failures})")
        return self._launch(initial=False)

    def _launch(self, initial: bool) -> Optional[ListenerState]:
        try:
            self._bind_device()
        except AudioAccessError as e:
            logger.error(f"Could not open capture device: {e}")
            self._fail(classify_access_error(e))
            return ListenerState.IDLE

        try:
            self.engine.start()
        except Exception as e:
            logger.error(f"Error starting recognition: {e}")
            self._release_stream()
            if not initial:
                return self._restart_failed()
            self.desired = False
            self.notify(Notification(
                title="Error",
                description="Failed to start speech recognition. Please check your microphone.",
                variant="destructive",
            ))
            return ListenerState.IDLE
        return None

    def _restart_failed(self) -> ListenerState:
        self.restart_failures += 1
        if self.restart_failures >= self.max_restart_failures:
            logger.error(f"Giving up after {self.restart_failures} failed restarts")
            self.desired = False
            self.notify(Notification(
                title="Recognition Stalled",
                description="Speech recognition could not be restarted. Start listening again to retry.",
                variant="destructive",
            ))
            return ListenerState.IDLE

        delay = self.restart_delay * self.restart_backoff ** self.restart_failures
        logger.warning(f"Restart failed ({self.restart_failures}/{self.max_restart_failures}), "
                       f"retrying in {delay:.2f}s")
        self._schedule_restart(delay)
        return ListenerState.RESTARTING

    def _settle_after_end(self) -> ListenerState:
        if self.desired:
            logger.info("Engine ended while listening was wanted, scheduling restart")
            self._schedule_restart(self.restart_delay)
            return ListenerState.RESTARTING
        self._release_stream()
        return ListenerState.IDLE

    def _request_stop(self) -> Optional[ListenerState]:
        self._release_stream()
        try:
            self.engine.stop()
        except Exception as e:
            logger.error(f"Error stopping recognition: {e}")
            self.actual = False
            return ListenerState.IDLE
        return None

    def _stop_unrequested_run(self) -> Optional[ListenerState]:
        logger.warning("Engine started without a request, stopping it")
        return self._request_stop()

    def _switch_device(self) -> None:
        logger.info(f"Switching to device {self.permissions.selected_device_id}, stopping current run")
        self._release_stream()
        try:
            self.engine.stop()
        except Exception as e:
            logger.error(f"Error stopping recognition for device switch: {e}")

    def _cancel_restart(self) -> None:
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None
            logger.debug("Cancelled pending restart")
        self._restart_token += 1

    def _abandon_restart(self) -> None:
        self._cancel_restart()
        self._release_stream()

    def _release_stream(self) -> None:
        if self.stream is not None:
            self.stream.release()
            self.stream = None

    # Helpers

    def _bind_device(self) -> None:
        device_id = self.permissions.selected_device_id
        self.engine.device_id = device_id
        if device_id is None:
            return
        self._release_stream()
        self.stream = self.device_access.request_audio_access(device_id)

    def _schedule_restart(self, delay: float) -> None:
        if self._restart_handle is not None:
            logger.debug("Restart already pending")
            return
        self._restart_token += 1
        token = self._restart_token
        self._restart_handle = self.scheduler.call_later(delay, lambda: self._on_restart_timer(token))

    def _on_restart_timer(self, token: int) -> None:
        with self.lock:
            if token != self._restart_token or self._restart_handle is None:
                logger.debug("Ignoring stale restart timer")
                return
            self._dispatch(Trigger.RESTART_DUE)

    def _fail(self, policy: ErrorPolicy) -> None:
        self.desired = False
        if policy.error_class is ErrorClass.PERMISSION_DENIED:
            self.permissions.mark_denied()
        self._notify_policy(policy)

    def _notify_policy(self, policy: ErrorPolicy) -> None:
        notification = notification_for(policy)
        if notification is not None:
            self.notify(notification)

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()
