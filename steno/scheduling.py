"""Delayed callbacks for the restart timer."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """A pending delayed call."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Runs a callback once after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        pass


class _ThreadTimerHandle(TimerHandle):

    def __init__(self, timer: threading.Timer):
        self.timer = timer

    def cancel(self) -> None:
        self.timer.cancel()


class ThreadTimerScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = "RestartTimerThread"
        timer.start()
        logger.debug(f"Scheduled callback in {delay:.3f}s")
        return _ThreadTimerHandle(timer)
