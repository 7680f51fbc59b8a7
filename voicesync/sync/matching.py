"""
Track matching by name.

Tracks are addressed purely by name. The rules here are pure functions over
track tuples; the source side is turned into a lookup table once per action
instead of being scanned repeatedly.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from voicesync.core.models import Track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackMatch:
    """
    Correspondence between a project track and a source track.

    Attributes:
        project_track: Track of the current project
        source_track: Matching track of the external file (None if unmatched)
        voice_identifier: Name part used for the lookup
    """
    project_track: Track
    source_track: Optional[Track]
    voice_identifier: str

    @property
    def is_matched(self) -> bool:
        return self.source_track is not None


@dataclass(frozen=True)
class MatchResult:
    """Ordered matches (project track order) for all qualifying tracks."""
    matches: Tuple[TrackMatch, ...]

    @property
    def matched(self) -> Tuple[TrackMatch, ...]:
        return tuple(m for m in self.matches if m.is_matched)

    @property
    def unmatched(self) -> Tuple[TrackMatch, ...]:
        return tuple(m for m in self.matches if not m.is_matched)

    @property
    def unmatched_track_names(self) -> Tuple[str, ...]:
        return tuple(m.project_track.name for m in self.unmatched)


class SourceTrackTable:
    """
    Name lookup table over the tracks of an external file.

    Exact names are tried first, then case-insensitive names. When several
    source tracks share a key, the one declared first wins.
    """

    def __init__(self, source_tracks: Iterable[Track]):
        self._exact: Dict[str, Track] = {}
        self._folded: Dict[str, Track] = {}

        for track in source_tracks:
            if track.name in self._exact:
                logger.debug("Duplicate source track name '%s' ignored", track.name)
            self._exact.setdefault(track.name, track)
            self._folded.setdefault(track.name.casefold(), track)

    def __len__(self) -> int:
        return len(self._exact)

    def lookup(self, name: str) -> Optional[Track]:
        """Find source track for name (exact, then case-insensitive)."""
        track = self._exact.get(name)
        if track is None:
            track = self._folded.get(name.casefold())
        return track


def voice_identifier(track_name: str, prefix: str) -> Optional[str]:
    """
    Get the part of track_name following prefix.

    Returns:
        Remainder of the name, or None if the name does not start with
        prefix (case-sensitive)

    Example:
        >>> voice_identifier("V_Bass", "V_")
        'Bass'
        >>> voice_identifier("v_Bass", "V_") is None
        True
    """
    if not track_name.startswith(prefix):
        return None
    return track_name[len(prefix):]


def tracks_with_prefix(tracks: Sequence[Track], prefix: str) -> Tuple[Track, ...]:
    """All tracks whose name starts with prefix, in track order."""
    return tuple(t for t in tracks if voice_identifier(t.name, prefix) is not None)


def tracks_named(tracks: Sequence[Track], name: str) -> Tuple[Track, ...]:
    """All tracks with exactly this name, in track order."""
    return tuple(t for t in tracks if t.name == name)


def match_by_prefix(project_tracks: Sequence[Track],
                    source_tracks: Sequence[Track],
                    prefix: str) -> MatchResult:
    """
    Match project tracks named <prefix><voice> to source tracks named <voice>.

    Args:
        project_tracks: Tracks of the project (in project order)
        source_tracks: Tracks of the external file (in declaration order)
        prefix: Case-sensitive name prefix of the project tracks

    Returns:
        MatchResult with one entry per qualifying project track
    """
    table = SourceTrackTable(source_tracks)
    matches: List[TrackMatch] = []

    for track in project_tracks:
        identifier = voice_identifier(track.name, prefix)
        if identifier is None:
            continue

        source = table.lookup(identifier)
        logger.debug("'%s' -> %s", track.name,
                     f"'{source.name}'" if source is not None else "no partner")
        matches.append(TrackMatch(track, source, identifier))

    return MatchResult(tuple(matches))


def match_by_table(project_tracks: Sequence[Track],
                   source_tracks: Sequence[Track],
                   name_table: Mapping[str, str]) -> MatchResult:
    """
    Match project tracks through an explicit name table.

    Args:
        project_tracks: Tracks of the project (in project order)
        source_tracks: Tracks of the external file (in declaration order)
        name_table: Project track name -> source track name

    Returns:
        MatchResult with one entry per project track listed in name_table
    """
    table = SourceTrackTable(source_tracks)
    matches: List[TrackMatch] = []

    for track in project_tracks:
        if track.name not in name_table:
            continue

        source_name = name_table[track.name]
        matches.append(TrackMatch(track, table.lookup(source_name), source_name))

    return MatchResult(tuple(matches))
