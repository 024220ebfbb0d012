"""Exception types raised inside Steno.

None of these escape the speech session: the session converts them into
state changes plus a user-facing notification.
"""


class StenoError(Exception):
    """Base class for Steno errors."""


class ConfigError(StenoError):
    """Configuration file is missing or invalid."""


class EngineUnavailableError(StenoError):
    """No speech recognition engine is available on this platform."""


class AudioAccessError(StenoError):
    """Opening a capture stream or listing devices failed."""


class PermissionDeniedError(AudioAccessError):
    """The user or the platform refused microphone access."""


class DeviceUnavailableError(AudioAccessError):
    """The requested capture device is missing or was removed."""
