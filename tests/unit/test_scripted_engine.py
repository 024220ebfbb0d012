"""Unit tests for ScriptedSpeechEngine and script loading."""

import pytest

from steno.audio.devices import StaticDeviceAccess
from steno.errors import ConfigError
from steno.models.device import AudioDevice
from steno.models.events import RecognitionResult
from steno.models.state import ListenerState
from steno.recognition.scripted import ScriptStep, ScriptedSpeechEngine, load_script, parse_step
from steno.services.speech_session import SpeechSession


SCRIPT = """
steps:
  - type: result
    results:
      - {transcript: "hel", final: false}
  - type: result
    results:
      - {transcript: "hello", final: true, confidence: 0.9}
  - type: error
    code: no-speech
  - type: result
    results:
      - {transcript: "again", final: true}
  - type: end
"""


class Recorder:
    """Collects engine callbacks as (kind, payload) tuples."""

    def __init__(self, engine):
        self.events = []
        engine.on_start = lambda: self.events.append(("start", None))
        engine.on_end = lambda: self.events.append(("end", None))
        engine.on_result = lambda index, results: self.events.append(
            ("result", [r.transcript for r in results if r.is_final]))
        engine.on_error = lambda code: self.events.append(("error", code))


def final(text):
    return ScriptStep("result", results=[RecognitionResult(text, is_final=True)])


@pytest.fixture
def script_file(tmp_path):
    path = tmp_path / "script.yaml"
    path.write_text(SCRIPT, encoding="utf-8")
    return str(path)


@pytest.mark.unit
class TestLoadScript:

    def test_load(self, script_file):
        steps = load_script(script_file)

        assert [s.kind for s in steps] == ["result", "result", "error", "result", "end"]
        assert steps[1].results[0] == RecognitionResult("hello", is_final=True, confidence=0.9)
        assert steps[2].code == "no-speech"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_script(str(tmp_path / "missing.yaml"))

    def test_steps_required(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("nothing: here\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="steps"):
            load_script(str(path))

    def test_unknown_step_type(self):
        with pytest.raises(ConfigError, match="Unknown script step"):
            parse_step({"type": "explode"})

    def test_error_step_needs_code(self):
        with pytest.raises(ConfigError):
            parse_step({"type": "error"})

    def test_pause_step(self):
        assert parse_step({"type": "pause", "seconds": 0.5}).seconds == 0.5


@pytest.mark.unit
class TestScriptedSpeechEngine:

    def test_run_stops_after_error(self, script_file):
        engine = ScriptedSpeechEngine(load_script(script_file), background=False)
        recorder = Recorder(engine)

        engine.start()

        assert recorder.events == [
            ("start", None),
            ("result", []),
            ("result", ["hello"]),
            ("error", "no-speech"),
            ("end", None),
        ]
        assert not engine.is_running
        assert not engine.finished

    def test_next_run_continues_where_previous_stopped(self, script_file):
        engine = ScriptedSpeechEngine(load_script(script_file), background=False)
        recorder = Recorder(engine)
        engine.start()
        recorder.events.clear()

        engine.start()

        assert recorder.events == [("start", None), ("result", ["again"]), ("end", None)]
        assert engine.finished
        assert engine.start_count == 2

    def test_exhausted_script_still_emits_start_and_end(self):
        engine = ScriptedSpeechEngine([], background=False)
        recorder = Recorder(engine)

        engine.start()

        assert recorder.events == [("start", None), ("end", None)]

    def test_stop_from_callback_ends_run(self):
        engine = ScriptedSpeechEngine([final("one"), final("two")], background=False)
        recorder = Recorder(engine)
        engine.on_result = lambda index, results: engine.stop()

        engine.start()

        assert recorder.events == [("start", None), ("end", None)]
        assert engine.position == 1

    def test_start_while_running_raises(self):
        engine = ScriptedSpeechEngine([final("one")], background=False)
        errors = []

        def start_again():
            try:
                engine.start()
            except RuntimeError as e:
                errors.append(e)

        engine.on_start = start_again
        engine.start()

        assert len(errors) == 1

    def test_background_run(self):
        engine = ScriptedSpeechEngine([final("one")], background=True)
        recorder = Recorder(engine)

        engine.start()
        engine.replay_thread.join(timeout=2.0)

        assert recorder.events == [("start", None), ("result", ["one"]), ("end", None)]


@pytest.mark.unit
class TestScriptedSession:

    def test_replay_through_session_with_restart(self, script_file, scheduler):
        engine = ScriptedSpeechEngine(load_script(script_file), background=False)
        device_access = StaticDeviceAccess([AudioDevice("virtual-0", "Virtual Microphone")])
        notifications = []
        session = SpeechSession(
            engine_factory=lambda: engine,
            device_access=device_access,
            scheduler=scheduler,
            notify=notifications.append,
        )
        session.open()

        session.start_listening()

        assert session.transcript == "hello "
        assert session.listener_state is ListenerState.RESTARTING
        assert engine.device_id == "virtual-0"

        scheduler.fire_next()

        assert session.transcript == "hello again "
        assert engine.finished
        assert engine.start_count == 2

        session.stop_listening()

        assert session.listener_state is ListenerState.IDLE
        assert scheduler.pending == []
        assert device_access.open_streams == 0
        assert notifications == []
        session.close()
