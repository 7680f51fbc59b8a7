"""
Filtered whole-track import from an external MIDI file.

For every matched project track, all existing items are replaced by the
items of the partner source track that pass every exclusion rule. Nothing
is applied here: the result is a Transaction plus a summary, to be
committed by the caller in one step.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Callable, FrozenSet, List, Mapping, Optional, Sequence, Tuple
import logging
import re

from voicesync.core.commands import ReplaceTrackItemsCommand, Transaction
from voicesync.core.errors import MatchingWarning
from voicesync.core.models import EventKind, Item, MidiDocument, Project, Track
from voicesync.sync.matching import MatchResult, match_by_prefix, match_by_table

logger = logging.getLogger(__name__)


class ExclusionRule(ABC):
    """Predicate over items; excluded items are not imported."""

    @abstractmethod
    def excludes(self, item: Item) -> bool:
        """Return True if item must not be imported."""
        raise NotImplementedError()

    @property
    @abstractmethod
    def description(self) -> str:
        raise NotImplementedError()


class ItemNameExclusion(ExclusionRule):
    """Excludes items whose name fully matches one of the patterns."""

    def __init__(self, patterns: Sequence[str]):
        """
        Args:
            patterns: Regular expressions matched against the item name
        """
        self.patterns = tuple(patterns)
        self._regexps = tuple(re.compile(p) for p in self.patterns)

    def excludes(self, item: Item) -> bool:
        return any(r.fullmatch(item.name) for r in self._regexps)

    @property
    def description(self) -> str:
        return f"item name matches {list(self.patterns)}"


class WorkingRangeExclusion(ExclusionRule):
    """Excludes items lying entirely outside [start, end)."""

    def __init__(self, start: int, end: Optional[int] = None):
        """
        Args:
            start: Start tick of the working range
            end: End tick of the working range (None = unbounded)
        """
        self.start = start
        self.end = end

    def excludes(self, item: Item) -> bool:
        if self.end is not None and item.start >= self.end:
            return True
        if item.length == 0:
            return item.start < self.start
        return item.end <= self.start

    @property
    def description(self) -> str:
        end = "end" if self.end is None else self.end
        return f"item outside working range [{self.start}, {end})"


class PredicateExclusion(ExclusionRule):
    """Wraps a caller-supplied predicate."""

    def __init__(self, predicate: Callable[[Item], bool], description: str = "custom rule"):
        self.predicate = predicate
        self._description = description

    def excludes(self, item: Item) -> bool:
        return bool(self.predicate(item))

    @property
    def description(self) -> str:
        return self._description


@dataclass(frozen=True)
class TrackImportResult:
    """Outcome for one matched project track."""
    track_name: str
    source_track_name: str
    imported_count: int
    rejected_count: int


@dataclass(frozen=True)
class ImportSummary:
    """
    Aggregate result of an import.

    Attributes:
        imported_count: Items inserted over all tracks
        rejected_count: Items rejected by exclusion rules over all tracks
        unmatched_track_names: Qualifying project tracks without partner
        warnings: Collected non-fatal conditions
        track_results: Per-track counts
    """
    imported_count: int
    rejected_count: int
    unmatched_track_names: Tuple[str, ...]
    warnings: Tuple[MatchingWarning, ...] = ()
    track_results: Tuple[TrackImportResult, ...] = ()

    def message(self) -> str:
        """Single report line for the user."""
        text = (f"Import done: {self.imported_count} items imported, "
                f"{self.rejected_count} rejected.")
        if self.unmatched_track_names:
            text += f" Unmatched tracks: {', '.join(self.unmatched_track_names)}."
        return text


@dataclass(frozen=True)
class ImportPlan:
    """Transaction to apply plus the summary to report afterwards."""
    transaction: Transaction = field(compare=False)
    summary: ImportSummary


def filter_items(items: Sequence[Item],
                 rules: Sequence[ExclusionRule]) -> Tuple[Tuple[Item, ...], Tuple[Item, ...]]:
    """
    Split items into (passed, rejected); an item passes if no rule excludes it.
    """
    passed: List[Item] = []
    rejected: List[Item] = []

    for item in items:
        failing = [rule for rule in rules if rule.excludes(item)]
        if failing:
            logger.debug("Rejected item '%s' at %d: %s", item.name, item.start,
                         "; ".join(rule.description for rule in failing))
            rejected.append(item)
        else:
            passed.append(item)

    return tuple(passed), tuple(rejected)


def prepare_source_items(source_track: Track,
                         offset: int = 0,
                         stripped_controllers: FrozenSet[int] = frozenset()) -> Tuple[Item, ...]:
    """
    Turn the items of a source track into project items.

    Items are shifted by offset, locked, and lose control events whose
    controller is in stripped_controllers. Relative timing is untouched.
    """
    result = []

    for item in sorted(source_track.items, key=lambda i: i.start):
        events = item.events
        if stripped_controllers:
            events = tuple(
                e for e in events
                if not (e.kind is EventKind.CONTROL and e.controller in stripped_controllers)
            )
        result.append(replace(item, start=item.start + offset, events=events, locked=True))

    return tuple(result)


def plan_import(project: Project,
                document: MidiDocument,
                rules: Sequence[ExclusionRule] = (),
                prefix: Optional[str] = None,
                name_table: Optional[Mapping[str, str]] = None,
                offset: int = 0,
                stripped_controllers: FrozenSet[int] = frozenset()) -> ImportPlan:
    """
    Plan the replacement of all matched project tracks.

    Exactly one of prefix and name_table selects the matching rule.

    Args:
        project: Current project snapshot
        document: External MIDI file (same tpqn as project)
        rules: Exclusion rules every imported item must pass
        prefix: Voice track name prefix
        name_table: Project track name -> source track name
        offset: Ticks added to all source item positions
        stripped_controllers: CC numbers dropped from source items

    Returns:
        ImportPlan with one ReplaceTrackItemsCommand per matched track
    """
    if (prefix is None) == (name_table is None):
        raise ValueError("Exactly one of prefix and name_table must be given")
    if document.tpqn != project.tpqn:
        raise ValueError(
            f"Document resolution {document.tpqn} differs from project {project.tpqn}"
        )

    if prefix is not None:
        match_result: MatchResult = match_by_prefix(project.tracks, document.tracks, prefix)
    else:
        match_result = match_by_table(project.tracks, document.tracks, name_table)

    transaction = Transaction("Import MIDI")
    track_results: List[TrackImportResult] = []
    warnings: List[MatchingWarning] = []

    for match in match_result.matches:
        track = match.project_track

        if not match.is_matched:
            warning = MatchingWarning(
                track.name, f"no source track named '{match.voice_identifier}'"
            )
            logger.warning("%s", warning)
            warnings.append(warning)
            continue

        candidates = prepare_source_items(match.source_track, offset, stripped_controllers)
        passed, rejected = filter_items(candidates, rules)

        if not passed:
            logger.info("Track '%s' cleared: no item of '%s' passed the filter",
                        track.name, match.source_track.name)

        transaction.add(ReplaceTrackItemsCommand(track.index, passed))
        track_results.append(TrackImportResult(
            track_name=track.name,
            source_track_name=match.source_track.name,
            imported_count=len(passed),
            rejected_count=len(rejected),
        ))
        logger.debug("Track '%s' <- '%s': %d imported, %d rejected", track.name,
                     match.source_track.name, len(passed), len(rejected))

    summary = ImportSummary(
        imported_count=sum(r.imported_count for r in track_results),
        rejected_count=sum(r.rejected_count for r in track_results),
        unmatched_track_names=match_result.unmatched_track_names,
        warnings=tuple(warnings),
        track_results=tuple(track_results),
    )
    return ImportPlan(transaction=transaction, summary=summary)
