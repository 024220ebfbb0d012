"""Session manager for naming capture sessions and exporting transcripts."""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from ..models.events import Notification
from .speech_session import SpeechSession

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "transcription"


def transcript_filename(title: Optional[str], day: date) -> str:
    """Build the export file name, e.g. ``Biology 101_2024-05-02.txt``.

    Path separators in the title are replaced so the file always lands in
    the export directory.
    """
    name = (title or "").strip() or DEFAULT_EXPORT_NAME
    name = re.sub(r'[\\/]', '_', name)
    return f"{name}_{day.isoformat()}.txt"


class SessionManager:
    """Gives a speech session a title and writes its transcript out."""

    def __init__(
        self,
        session: SpeechSession,
        output_directory: str,
        notify: Optional[Callable[[Notification], None]] = None,
    ):
        """Initialize session manager.

        Args:
            session: Speech session whose transcript is managed
            output_directory: Default directory for exported transcripts
            notify: Receives user-facing notifications (defaults to the
                    session's)
        """
        self.session = session
        self.output_directory = Path(output_directory)
        self.notify = notify or session.notify
        self.current_title: Optional[str] = None
        logger.info(f"SessionManager initialized with output dir: {self.output_directory}")

    def start_session(self, title: str) -> bool:
        """Start a new titled session, clearing the previous transcript.

        Returns:
            False if the title is blank
        """
        if not title or not title.strip():
            self.notify(Notification(
                title="Session title required",
                description="Please enter a title for your session.",
                variant="destructive",
            ))
            return False

        if self.session.wants_to_listen:
            self.session.stop_listening()
        self.session.reset_transcript()
        self.current_title = title.strip()

        logger.info(f"Started session: {self.current_title}")
        self.notify(Notification(
            title="Session started",
            description=f'Recording session: "{self.current_title}"',
        ))
        return True

    def save_session(self) -> bool:
        """Finish the current session, stopping capture.

        Returns:
            False if there is no transcript to keep
        """
        if not self.session.transcript.strip():
            self.notify(Notification(
                title="No content to save",
                description="Start recording to generate transcription content.",
                variant="destructive",
            ))
            return False

        if self.session.wants_to_listen:
            self.session.stop_listening()
        logger.info(f"Saved session: {self.current_title} ({len(self.session.transcript)} chars)")
        self.notify(Notification(
            title="Session saved",
            description="Transcription has been saved successfully.",
        ))
        return True

    def export_transcript(self, directory: Optional[str] = None, day: Optional[date] = None) -> Optional[Path]:
        """Write the transcript to a text file.

        Args:
            directory: Target directory (defaults to the configured one)
            day: Date used in the file name (defaults to today)

        Returns:
            Path of the written file, or None if there was nothing to write
        """
        transcript = self.session.transcript
        if not transcript.strip():
            self.notify(Notification(
                title="No content to download",
                description="Start recording to generate transcription content.",
                variant="destructive",
            ))
            return None

        target_dir = Path(directory) if directory else self.output_directory
        target_dir.mkdir(parents=True, exist_ok=True)
        file_path = target_dir / transcript_filename(self.current_title, day or date.today())

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(transcript)

        logger.info(f"Exported transcript to {file_path}")
        self.notify(Notification(
            title="Download started",
            description=f"Transcription saved to {file_path}.",
        ))
        return file_path
