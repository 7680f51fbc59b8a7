"""
Error taxonomy for voicesync.

Fatal conditions are exceptions and abort an action before anything is
written. Non-fatal conditions are warning records collected while a
pipeline runs and reported once, in the action summary.
"""
from dataclasses import dataclass
from typing import Optional


class VoiceSyncError(Exception):
    """Base class for all fatal voicesync errors."""


class ConfigurationError(VoiceSyncError, ValueError):
    """Missing or invalid option; the action is not performed."""


class SourceUnavailableError(VoiceSyncError, IOError):
    """External MIDI file is missing or unreadable."""


class ProjectFileError(VoiceSyncError, IOError):
    """Project file cannot be read or written."""


@dataclass(frozen=True)
class MatchingWarning:
    """
    A track or structure marker could not be matched/decoded.

    Attributes:
        subject: Name of the track or marker concerned
        message: Human-readable description
    """
    subject: str
    message: str

    def __str__(self) -> str:
        return f"{self.subject}: {self.message}"


@dataclass(frozen=True)
class BoundaryWarning:
    """
    A quantized note exceeds the bounds of its item.

    Attributes:
        track_name: Name of the track owning the item
        item_index: Index of the item within its track
        message: Human-readable description
        note_offset: Quantized note offset (ticks), if available
    """
    track_name: str
    item_index: int
    message: str
    note_offset: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.track_name} [item {self.item_index + 1}]: {self.message}"
