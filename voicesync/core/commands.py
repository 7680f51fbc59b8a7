"""
Command pattern for whole-track and whole-region replacement.

All project modifications go through commands to enable:
- Building the complete replacement in memory before anything is written
- Grouping (a transaction applies many commands or none)
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Sequence

from voicesync.core.models import Item, Project, Region, Track


class Command(ABC):
    """Base class for all commands."""

    @abstractmethod
    def execute(self, project: Project) -> Project:
        """
        Execute command and return new project snapshot.

        Args:
            project: Current project snapshot

        Returns:
            New project snapshot after command execution
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable command description for logs and reports."""
        raise NotImplementedError()


class ReplaceTrackItemsCommand(Command):
    """Command to replace all items of one track."""

    def __init__(self, track_index: int, items: Sequence[Item]):
        """
        Args:
            track_index: Index of target track
            items: Complete replacement item list
        """
        self.track_index = track_index
        self.items = tuple(items)

    def execute(self, project: Project) -> Project:
        """Replace items of the target track."""
        old_track = project.track_by_index(self.track_index)
        new_track = replace(old_track, items=self.items)
        return _with_track(project, new_track)

    @property
    def description(self) -> str:
        return f"Replace Items of Track {self.track_index + 1}"


class ReplaceRegionsCommand(Command):
    """Command to replace the complete region list of a project."""

    def __init__(self, regions: Sequence[Region]):
        """
        Args:
            regions: Complete replacement region list
        """
        self.regions = tuple(regions)

    def execute(self, project: Project) -> Project:
        """Replace all regions."""
        return replace(project, regions=self.regions)

    @property
    def description(self) -> str:
        return "Replace Regions"


class InsertTrackCommand(Command):
    """Command to insert a new empty track; later tracks are re-indexed."""

    def __init__(self, position: int, name: str):
        """
        Args:
            position: Index the new track will have
            name: Name of the new track
        """
        self.position = position
        self.name = name

    def execute(self, project: Project) -> Project:
        """Insert track at position."""
        if not 0 <= self.position <= len(project.tracks):
            raise ValueError(f"Track position {self.position} out of range")

        tracks = list(project.tracks)
        tracks.insert(self.position, Track(name=self.name, index=self.position))
        return replace(project, tracks=_reindexed(tracks))

    @property
    def description(self) -> str:
        return f"Insert Track '{self.name}'"


class Transaction:
    """
    Ordered group of commands applied all together or not at all.

    The caller's snapshot is never modified; apply() returns a new,
    validated snapshot that can then be written to the host in one step.
    """

    def __init__(self, description: str = "Transaction"):
        self.description = description
        self.commands: List[Command] = []

    def add(self, command: Command) -> "Transaction":
        """Append a command."""
        self.commands.append(command)
        return self

    def __len__(self) -> int:
        return len(self.commands)

    def apply(self, project: Project) -> Project:
        """
        Execute all commands on a snapshot and validate the result.

        Raises:
            ValueError: If a command fails or the result is invalid
        """
        result = project
        for command in self.commands:
            result = command.execute(result)

        validate_project(result)
        return result


def validate_project(project: Project):
    """
    Check invariants that must hold before a snapshot is written.

    Raises:
        ValueError: If track indices do not match positions
    """
    for position, track in enumerate(project.tracks):
        if track.index != position:
            raise ValueError(
                f"Track '{track.name}' has index {track.index}, expected {position}"
            )


def _with_track(project: Project, new_track: Track) -> Project:
    new_tracks = tuple(
        new_track if t.index == new_track.index else t for t in project.tracks
    )
    return replace(project, tracks=new_tracks)


def _reindexed(tracks) -> tuple:
    return tuple(replace(t, index=i) for i, t in enumerate(tracks))
