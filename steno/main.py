"""Main application entry point for Steno."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.panel import Panel

from .audio.devices import AudioDeviceAccess, PyAudioDeviceAccess, StaticDeviceAccess
from .config import StenoConfig
from .errors import EngineUnavailableError, StenoError
from .models.device import AudioDevice
from .models.events import Notification
from .models.state import SpeechSessionState
from .recognition.base import SpeechEngineFactory
from .recognition.scripted import ScriptedSpeechEngine, load_script
from .services.publishers import (
    NOTIFICATION_TOPIC,
    STATE_TOPIC,
    NotificationPublisher,
    SessionStatePublisher,
)
from .services.session_manager import SessionManager
from .services.speech_session import SpeechSession

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.config = StenoConfig(config_path)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.console = Console()
        self.engine: Optional[ScriptedSpeechEngine] = None
        self.last_state: Optional[SpeechSessionState] = None

    def init(self, script_path: Optional[str], device_access: str, step_delay: float) -> None:
        logger.info("Initializing services...")

        self.state_publisher = SessionStatePublisher(STATE_TOPIC)
        self.notification_publisher = NotificationPublisher(NOTIFICATION_TOPIC)
        pub.subscribe(self._on_state, STATE_TOPIC)
        pub.subscribe(self._on_notification, NOTIFICATION_TOPIC)

        self.session = SpeechSession.from_config(
            self.config,
            engine_factory=self._build_engine_factory(script_path, step_delay),
            device_access=self._build_device_access(device_access),
            notify=self.notification_publisher.get_callback(),
            on_state_change=self.state_publisher.get_callback(),
        )
        self.session_manager = SessionManager(self.session, self.config.get_output_directory())

    def _build_engine_factory(self, script_path: Optional[str], step_delay: float) -> SpeechEngineFactory:
        steps = load_script(script_path) if script_path else None

        def factory():
            if steps is None:
                raise EngineUnavailableError("No speech recognition engine available; use --script to replay one")
            self.engine = ScriptedSpeechEngine(steps, step_delay=step_delay)
            return self.engine

        return factory

    def _build_device_access(self, kind: str) -> AudioDeviceAccess:
        if kind == "static":
            return StaticDeviceAccess([AudioDevice(device_id="virtual-0", label="Virtual Microphone")])
        return PyAudioDeviceAccess(
            sample_rate=self.config.get('audio.sample_rate', 16000),
            channels=self.config.get('audio.channels', 1),
            chunk_size=self.config.get('audio.chunk_size', 1024),
        )

    def run(self, title: Optional[str], timeout: float, output_dir: Optional[str]) -> bool:
        """Replay the script through a full session.

        Returns:
            True if a transcript was produced
        """
        self.session.open()
        if not self.session.is_supported:
            return False
        if title and not self.session_manager.start_session(title):
            return False

        if not self.session.has_permission:
            self.session.request_permissions()
        self.session.start_listening()

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.engine is not None and self.engine.finished and not self.engine.is_running:
                break
            if not self.session.wants_to_listen:
                logger.warning("Listening stopped before the script finished")
                break
            time.sleep(POLL_INTERVAL)
        else:
            logger.warning(f"Timed out after {timeout}s")

        self.session.stop_listening()
        self.console.print(Panel(self.session.transcript or "(empty)", title="Transcript"))

        if output_dir or title:
            self.session_manager.export_transcript(output_dir)
        return bool(self.session.transcript.strip())

    def cleanup(self) -> None:
        self.session.close()
        pub.unsubscribe(self._on_state, STATE_TOPIC)
        pub.unsubscribe(self._on_notification, NOTIFICATION_TOPIC)

    def _on_state(self, state: SpeechSessionState) -> None:
        previous = self.last_state
        self.last_state = state
        if previous is None or previous.is_listening != state.is_listening:
            marker = "🔴 LISTENING" if state.is_listening else "⏹️  STOPPED"
            self.console.print(marker, style="bold red" if state.is_listening else "bold yellow")

    def _on_notification(self, notification: Notification) -> None:
        style = "bold red" if notification.is_error else "green"
        self.console.print(f"{notification.title}: {notification.description}", style=style)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path')
    console_output = config.get('logging.console_output', True)

    handlers = []

    # File handler - only when a path is configured
    if log_file_path:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("Steno starting up")
    logger.info(f"Log file: {log_file_path or '(none)'}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for Steno."""
    parser = argparse.ArgumentParser(
        description="Steno - continuous speech capture with automatic recovery",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--script",
        type=str,
        help="YAML script of recognition events to replay through the session"
    )

    parser.add_argument(
        "--device-access",
        choices=["pyaudio", "static"],
        default="pyaudio",
        help="Microphone backend: real devices via PyAudio, or one virtual device (default: pyaudio)"
    )

    parser.add_argument(
        "--step-delay",
        type=float,
        default=0.05,
        help="Seconds between replayed events (default: 0.05)"
    )

    parser.add_argument(
        "--title",
        type=str,
        help="Session title; the transcript is exported when given"
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for the exported transcript (overrides config)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Maximum seconds to replay (default: 60)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Steno v0.1.0"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
    except StenoError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    try:
        server.init(args.script, args.device_access, args.step_delay)
        ok = server.run(args.title, args.timeout, args.output_dir)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        ok = True
    except StenoError as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        ok = False
    finally:
        if hasattr(server, "session"):
            server.cleanup()

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
