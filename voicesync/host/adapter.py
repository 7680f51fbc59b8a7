"""
Host adapter interface.

Actions never talk to a DAW directly; they read one project snapshot,
transform it in memory and hand the complete result back through this
interface. The host is expected to serialize user actions.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from voicesync.core.models import MidiDocument, Project
from voicesync.midi.converter import MIDIConverter


class HostAdapter(ABC):
    """Base class for all hosts."""

    @abstractmethod
    def read_project(self) -> Project:
        """
        Read a fresh snapshot of the current project.

        Returns:
            Project snapshot (tracks, items, events, regions)
        """
        raise NotImplementedError()

    @abstractmethod
    def write_project(self, project: Project):
        """
        Replace the current project state by project.

        Called at most once per action, after the whole transformation
        succeeded in memory.
        """
        raise NotImplementedError()

    def read_midi_file(self, path: Path, tpqn: Optional[int] = None) -> MidiDocument:
        """
        Read a Standard MIDI File.

        Raises:
            SourceUnavailableError: If the file is missing or unreadable
        """
        return MIDIConverter.import_midi(Path(path), tpqn)

    def project_directory(self) -> Optional[Path]:
        """Directory relative source paths are resolved against."""
        return None

    def show_message(self, title: str, message: str):
        """Present a message to the user (no-op by default)."""
