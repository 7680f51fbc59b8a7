"""
Canonicalization of voice track items.

For every item of every voice track:
- control changes of the stripped controller set are removed
- every note gets the default velocity
- note starts and durations are snapped to the grid

Item boundaries are never changed; notes leaving their item are reported
as BoundaryWarnings. Normalizing twice gives the same result as once.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Sequence, Tuple
import logging

import numpy as np

from voicesync.core.commands import ReplaceTrackItemsCommand, Transaction
from voicesync.core.constants import (
    AMBIENCE_CONTROLLER_KINDS,
    VELOCITY_DEFAULT,
    controller_numbers,
    midi_note_to_name,
)
from voicesync.core.errors import BoundaryWarning, ConfigurationError
from voicesync.core.models import (
    EventKind,
    Item,
    NoteEvent,
    Project,
    Track,
    event_sort_key,
)
from voicesync.sync.matching import tracks_with_prefix

logger = logging.getLogger(__name__)

ROUND_HALF_UP = "half_up"
ROUND_HALF_DOWN = "half_down"


@dataclass(frozen=True)
class NormalizationSettings:
    """
    Normalizer parameters.

    Attributes:
        grid_ticks: Grid unit for note starts
        default_velocity: Velocity given to every note (0-127)
        duration_grid_ticks: Grid unit for durations (None = grid_ticks);
            also the minimum duration
        alternative_grid_ticks: Further candidate grids (e.g. triplets);
            the candidate closest to a value wins, earlier grids win ties
        rounding_mode: "half_up" (ties toward the later grid point) or
            "half_down"
        stripped_controllers: CC numbers removed from items
    """
    grid_ticks: int
    default_velocity: int = VELOCITY_DEFAULT
    duration_grid_ticks: Optional[int] = None
    alternative_grid_ticks: Tuple[int, ...] = ()
    rounding_mode: str = ROUND_HALF_UP
    stripped_controllers: FrozenSet[int] = field(
        default_factory=lambda: controller_numbers(AMBIENCE_CONTROLLER_KINDS)
    )

    def __post_init__(self):
        """Validate settings."""
        if not 0 <= self.default_velocity <= 127:
            raise ConfigurationError(
                f"Default velocity must be 0-127, got {self.default_velocity}"
            )
        for grid in (self.grid_ticks, self.duration_grid) + tuple(self.alternative_grid_ticks):
            if int(grid) != grid or grid <= 0:
                raise ConfigurationError(f"Grid sizes must be positive integers, got {grid}")
        if self.rounding_mode not in (ROUND_HALF_UP, ROUND_HALF_DOWN):
            raise ConfigurationError(f"Unknown rounding mode: {self.rounding_mode}")

    @property
    def duration_grid(self) -> int:
        return self.duration_grid_ticks or self.grid_ticks

    @property
    def start_grids(self) -> Tuple[int, ...]:
        return (self.grid_ticks,) + tuple(self.alternative_grid_ticks)

    @property
    def duration_grids(self) -> Tuple[int, ...]:
        return (self.duration_grid,) + tuple(self.alternative_grid_ticks)


@dataclass(frozen=True)
class NormalizeSummary:
    """
    Result of a normalization run.

    Attributes:
        normalized_item_count: Items rewritten
        warnings: Notes leaving their item after quantization
        track_names: Voice tracks processed
        removed_control_count: Control events stripped
    """
    normalized_item_count: int
    warnings: Tuple[BoundaryWarning, ...] = ()
    track_names: Tuple[str, ...] = ()
    removed_control_count: int = 0

    def message(self) -> str:
        text = (f"Normalization done: {self.normalized_item_count} items in "
                f"{len(self.track_names)} tracks.")
        if self.warnings:
            text += f" {len(self.warnings)} notes exceed their item."
        return text


@dataclass(frozen=True)
class NormalizePlan:
    """Transaction to apply plus the summary to report afterwards."""
    transaction: Transaction = field(compare=False)
    summary: NormalizeSummary


def snap_to_grids(values: Sequence[int],
                  grids: Sequence[int],
                  rounding_mode: str = ROUND_HALF_UP) -> Tuple[np.ndarray, np.ndarray]:
    """
    Snap values to the nearest point of the closest candidate grid.

    Args:
        values: Tick values
        grids: Candidate grid units, in order of preference
        rounding_mode: Tie handling between two grid points

    Returns:
        (snapped values, grid unit chosen per value)

    Example:
        >>> snap_to_grids([0, 59, 60, 61], [120])[0].tolist()
        [0, 0, 120, 120]
    """
    values = np.asarray(values, dtype=np.int64)
    best_values = None
    best_grids = None
    best_distance = None

    for grid in grids:
        if rounding_mode == ROUND_HALF_UP:
            # floor(v / g + 1/2) * g
            snapped = np.floor_divide(2 * values + grid, 2 * grid) * grid
        else:
            # ceil(v / g - 1/2) * g
            snapped = -np.floor_divide(-(2 * values - grid), 2 * grid) * grid

        distance = np.abs(values - snapped)

        if best_values is None:
            best_values = snapped
            best_grids = np.full(values.shape, grid, dtype=np.int64)
            best_distance = distance
        else:
            closer = distance < best_distance
            best_values = np.where(closer, snapped, best_values)
            best_grids = np.where(closer, grid, best_grids)
            best_distance = np.where(closer, distance, best_distance)

    return best_values, best_grids


def quantize_notes(notes: Sequence[NoteEvent],
                   settings: NormalizationSettings) -> Tuple[NoteEvent, ...]:
    """
    Quantize notes and set their velocity.

    Notes are handled in their original order (offset, pitch, channel,
    position). A snapped start falling before the previous note's start is
    pushed forward in steps of its own grid unit until it no longer does.

    Returns:
        Normalized notes in processing order
    """
    if not notes:
        return ()

    order = sorted(range(len(notes)),
                   key=lambda i: (notes[i].offset, notes[i].pitch, notes[i].channel, i))
    ordered = [notes[i] for i in order]

    starts, start_grids = snap_to_grids([n.offset for n in ordered],
                                        settings.start_grids, settings.rounding_mode)
    durations, _ = snap_to_grids([n.duration for n in ordered],
                                 settings.duration_grids, settings.rounding_mode)
    durations = np.maximum(durations, settings.duration_grid)

    result = []
    previous_start = None
    for note, start, grid, duration in zip(ordered, starts.tolist(),
                                           start_grids.tolist(), durations.tolist()):
        if previous_start is not None and start < previous_start:
            steps = -(-(previous_start - start) // grid)
            logger.debug("Pushed %s from %d by %d x %d ticks",
                         midi_note_to_name(note.pitch), start, steps, grid)
            start += steps * grid

        result.append(NoteEvent(
            pitch=note.pitch,
            velocity=settings.default_velocity,
            offset=int(start),
            duration=int(duration),
            channel=note.channel,
        ))
        previous_start = start

    return tuple(result)


def normalize_item(item: Item,
                   settings: NormalizationSettings,
                   track_name: str = "",
                   item_index: int = 0) -> Tuple[Item, Tuple[BoundaryWarning, ...], int]:
    """
    Normalize the events of one item.

    Returns:
        (normalized item, boundary warnings, number of removed control events)
    """
    notes: List[NoteEvent] = []
    others = []
    removed = 0

    for event in item.events:
        if event.kind is EventKind.NOTE:
            notes.append(event)
        elif event.kind is EventKind.CONTROL:
            if event.controller in settings.stripped_controllers:
                removed += 1
            else:
                others.append(event)
        elif event.kind is EventKind.TEXT:
            others.append(event)
        else:
            raise ValueError(f"Unhandled event kind: {event.kind}")

    normalized_notes = quantize_notes(notes, settings)

    warnings = []
    for note in normalized_notes:
        if note.offset >= item.length or note.end > item.length:
            warning = BoundaryWarning(
                track_name=track_name,
                item_index=item_index,
                message=(f"note {midi_note_to_name(note.pitch)} at {note.offset} "
                         f"ending at {note.end} exceeds item length {item.length}"),
                note_offset=note.offset,
            )
            logger.warning("%s", warning)
            warnings.append(warning)

    events = sorted(others + list(normalized_notes), key=event_sort_key)
    return item.with_events(events), tuple(warnings), removed


def normalize_track(track: Track,
                    settings: NormalizationSettings) -> Tuple[Tuple[Item, ...],
                                                              Tuple[BoundaryWarning, ...],
                                                              int]:
    """Normalize all items of a track; returns (items, warnings, removed count)."""
    items = []
    warnings = []
    removed = 0

    for item_index, item in enumerate(track.items):
        new_item, item_warnings, item_removed = normalize_item(
            item, settings, track.name, item_index
        )
        items.append(new_item)
        warnings.extend(item_warnings)
        removed += item_removed

    return tuple(items), tuple(warnings), removed


def plan_normalize(project: Project,
                   prefix: str,
                   settings: NormalizationSettings) -> NormalizePlan:
    """
    Plan normalization of all voice tracks (name starts with prefix).

    Args:
        project: Current project snapshot
        prefix: Case-sensitive voice track name prefix
        settings: Normalizer parameters
    """
    transaction = Transaction("Normalize Voice Tracks")
    voice_tracks = tracks_with_prefix(project.tracks, prefix)
    item_count = 0
    removed_total = 0
    warnings: List[BoundaryWarning] = []

    for track in voice_tracks:
        items, track_warnings, removed = normalize_track(track, settings)
        transaction.add(ReplaceTrackItemsCommand(track.index, items))
        item_count += len(items)
        removed_total += removed
        warnings.extend(track_warnings)
        logger.debug("Normalized track '%s': %d items, %d controls removed",
                     track.name, len(items), removed)

    if not voice_tracks:
        logger.info("No voice tracks with prefix '%s' found", prefix)

    summary = NormalizeSummary(
        normalized_item_count=item_count,
        warnings=tuple(warnings),
        track_names=tuple(t.name for t in voice_tracks),
        removed_control_count=removed_total,
    )
    return NormalizePlan(transaction=transaction, summary=summary)
