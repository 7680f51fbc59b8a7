"""
Conversion between project regions and the structure track.

The structure track holds one item per region: the item starts at the
region start and carries the region name as a text event at offset 0.
Decoding reads the items back as StructureMarkers and rebuilds the regions
from consecutive marker positions.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging

from voicesync.core.commands import (
    InsertTrackCommand,
    ReplaceRegionsCommand,
    ReplaceTrackItemsCommand,
    Transaction,
)
from voicesync.core.constants import ticks_per_bar
from voicesync.core.errors import ConfigurationError, MatchingWarning
from voicesync.core.models import Item, Project, Region, StructureMarker, TextEvent, Track
from voicesync.sync.matching import tracks_named

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructureSummary:
    """Result of regions -> structure track."""
    created_item_count: int
    created_track: bool = False
    warnings: Tuple[MatchingWarning, ...] = ()

    def message(self) -> str:
        return f"Structure track done: {self.created_item_count} items created."


@dataclass(frozen=True)
class RegionSummary:
    """Result of structure track -> regions."""
    created_region_count: int
    skipped_marker_names: Tuple[str, ...] = ()
    warnings: Tuple[MatchingWarning, ...] = ()

    def message(self) -> str:
        text = f"Regions done: {self.created_region_count} regions created."
        if self.skipped_marker_names:
            text += f" Skipped markers: {', '.join(self.skipped_marker_names)}."
        return text


@dataclass(frozen=True)
class StructurePlan:
    """Transaction to apply plus the summary to report afterwards."""
    transaction: Transaction = field(compare=False)
    summary: object


def find_structure_track(project: Project, name: str) -> Optional[Track]:
    """First track named name (further ones are ignored with a warning)."""
    candidates = tracks_named(project.tracks, name)
    if len(candidates) > 1:
        logger.warning("Found %d tracks named '%s', using the first one",
                       len(candidates), name)
    return candidates[0] if candidates else None


def encode_regions(regions: Sequence[Region], minimal_length: int) -> Tuple[Item, ...]:
    """
    Make one structure item per region.

    Each item reaches to the start of the next region; the last one keeps
    its region's length (or minimal_length for an empty region).
    """
    ordered = sorted(regions, key=lambda r: (r.start, r.end, r.name))
    items = []

    for i, region in enumerate(ordered):
        if i + 1 < len(ordered):
            length = ordered[i + 1].start - region.start
        else:
            length = region.length if region.length > 0 else minimal_length

        items.append(Item(
            start=region.start,
            length=length,
            events=(TextEvent(text=region.name, offset=0),),
            name=region.name,
            color=region.color,
        ))
        logger.debug("Region '%s' -> item [%d, %d)", region.name,
                     region.start, region.start + length)

    return tuple(items)


def plan_regions_to_structure(project: Project,
                              structure_track_name: str,
                              minimal_length: Optional[int] = None) -> StructurePlan:
    """
    Plan replacing the structure track contents by the project regions.

    A missing structure track is created at the top of the track list.

    Args:
        project: Current project snapshot
        structure_track_name: Exact name of the structure track
        minimal_length: Length of the last item for an empty last region
            (default one 4/4 bar)
    """
    if minimal_length is None:
        minimal_length = ticks_per_bar(project.tpqn)

    transaction = Transaction("Regions to Structure Track")
    track = find_structure_track(project, structure_track_name)
    created_track = track is None

    if created_track:
        logger.info("No structure track found, creating '%s'", structure_track_name)
        transaction.add(InsertTrackCommand(0, structure_track_name))
        track_index = 0
    else:
        track_index = track.index

    warnings = []
    counts = Counter(region.name for region in project.regions)
    for name, count in sorted(counts.items()):
        if count > 1:
            warning = MatchingWarning(
                name, f"{count} regions share this name; they cannot be decoded again"
            )
            logger.warning("%s", warning)
            warnings.append(warning)

    items = encode_regions(project.regions, minimal_length)
    transaction.add(ReplaceTrackItemsCommand(track_index, items))

    summary = StructureSummary(
        created_item_count=len(items),
        created_track=created_track,
        warnings=tuple(warnings),
    )
    return StructurePlan(transaction=transaction, summary=summary)


def decode_markers(items: Sequence[Item]) -> Tuple[Tuple[StructureMarker, ...],
                                                   Tuple[str, ...],
                                                   Tuple[MatchingWarning, ...]]:
    """
    Read structure items as markers.

    An item yields a marker from its leading (lowest offset) text event and
    its start. Items without a non-empty text event, and all markers whose
    name occurs more than once, are skipped.

    Returns:
        (markers sorted by position, skipped marker names, warnings)
    """
    candidates: List[StructureMarker] = []
    skipped: List[str] = []
    warnings: List[MatchingWarning] = []

    for item in items:
        texts = item.text_events
        leading = min(texts, key=lambda e: e.offset) if texts else None

        if leading is None or not leading.text.strip():
            subject = item.name or f"item at tick {item.start}"
            warning = MatchingWarning(subject, "structure item has no name text event")
            logger.warning("%s", warning)
            warnings.append(warning)
            skipped.append(subject)
            continue

        candidates.append(StructureMarker(
            position=item.start,
            name=leading.text,
            color=item.color,
            end=item.end,
        ))

    counts = Counter(marker.name for marker in candidates)
    reported = set()
    markers = []
    for marker in candidates:
        if counts[marker.name] > 1:
            if marker.name not in reported:
                reported.add(marker.name)
                warning = MatchingWarning(
                    marker.name,
                    f"ambiguous marker name used {counts[marker.name]} times"
                )
                logger.warning("%s", warning)
                warnings.append(warning)
                skipped.append(marker.name)
            continue
        markers.append(marker)

    markers.sort(key=lambda m: m.position)
    return tuple(markers), tuple(skipped), tuple(warnings)


def markers_to_regions(markers: Sequence[StructureMarker],
                       tail_length: Optional[int] = None) -> Tuple[Region, ...]:
    """
    Build regions from markers sorted by position.

    Each region ends where the next one starts; the last one ends with its
    structure item, or tail_length after its start when given.
    """
    regions = []

    for i, marker in enumerate(markers):
        if i + 1 < len(markers):
            end = markers[i + 1].position
        elif tail_length is not None:
            end = marker.position + tail_length
        else:
            end = marker.end if marker.end is not None else marker.position

        regions.append(Region(start=marker.position, end=end,
                              name=marker.name, color=marker.color))

    return tuple(regions)


def plan_structure_to_regions(project: Project,
                              structure_track_name: str,
                              tail_length: Optional[int] = None) -> StructurePlan:
    """
    Plan replacing all project regions by the ones encoded in the structure track.

    Raises:
        ConfigurationError: If there is no structure track
    """
    track = find_structure_track(project, structure_track_name)
    if track is None:
        raise ConfigurationError(f"No structure track named '{structure_track_name}' found")

    markers, skipped, warnings = decode_markers(track.items)
    regions = markers_to_regions(markers, tail_length)

    transaction = Transaction("Structure Track to Regions")
    transaction.add(ReplaceRegionsCommand(regions))

    summary = RegionSummary(
        created_region_count=len(regions),
        skipped_marker_names=skipped,
        warnings=warnings,
    )
    return StructurePlan(transaction=transaction, summary=summary)
