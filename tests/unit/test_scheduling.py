"""Unit tests for the threading timer scheduler."""

import threading
import pytest

from steno.scheduling import ThreadTimerScheduler


@pytest.mark.unit
class TestThreadTimerScheduler:

    def test_callback_runs_after_delay(self):
        fired = threading.Event()

        ThreadTimerScheduler().call_later(0.01, fired.set)

        assert fired.wait(timeout=2.0)

    def test_cancelled_callback_never_runs(self):
        fired = threading.Event()

        handle = ThreadTimerScheduler().call_later(0.2, fired.set)
        handle.cancel()

        assert not fired.wait(timeout=0.4)
