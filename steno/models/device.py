"""Audio input device models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioDevice:
    """An audio input device the user can pick."""
    device_id: str
    label: str
    channels: int = 1
    default_sample_rate: int = 16000
