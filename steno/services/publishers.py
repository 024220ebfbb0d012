"""Pub/sub publishers for speech session state and notifications."""

import logging
from typing import Callable
from pubsub import pub

from ..models.events import Notification
from ..models.state import SpeechSessionState

logger = logging.getLogger(__name__)

STATE_TOPIC = "speech_state"
NOTIFICATION_TOPIC = "speech_notification"


class SessionStatePublisher:
    """Publishes session state snapshots using pubsub.pub."""

    def __init__(self, topic: str = STATE_TOPIC):
        """Initialize state publisher.

        Args:
            topic: Pub/sub topic name for state snapshots
        """
        self.topic = topic
        logger.info(f"SessionStatePublisher initialized with topic: {topic}")

    def publish_state(self, state: SpeechSessionState) -> None:
        pub.sendMessage(self.topic, state=state)

    def get_callback(self) -> Callable[[SpeechSessionState], None]:
        return self.publish_state


class NotificationPublisher:
    """Publishes user-facing notifications using pubsub.pub."""

    def __init__(self, topic: str = NOTIFICATION_TOPIC):
        """Initialize notification publisher.

        Args:
            topic: Pub/sub topic name for notifications
        """
        self.topic = topic
        logger.info(f"NotificationPublisher initialized with topic: {topic}")

    def publish_notification(self, notification: Notification) -> None:
        pub.sendMessage(self.topic, notification=notification)
        logger.debug(f"Published notification: {notification.title}")

    def get_callback(self) -> Callable[[Notification], None]:
        return self.publish_notification
