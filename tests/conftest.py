"""Shared fixtures and helpers for voicesync tests."""
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import mido
import pytest

from voicesync.core.models import (
    ControlEvent,
    Item,
    MidiDocument,
    NoteEvent,
    Project,
    Region,
    TextEvent,
    Track,
)
from voicesync.host.adapter import HostAdapter

TPQN = 480


class InMemoryHost(HostAdapter):
    """Host keeping the project in memory and recording every interaction."""

    def __init__(self, project: Project, directory: Optional[Path] = None,
                 documents=None):
        self.project = project
        self.directory = directory
        self.documents = dict(documents or {})
        self.write_count = 0
        self.read_midi_paths = []
        self.messages = []

    def read_project(self) -> Project:
        return self.project

    def write_project(self, project: Project):
        self.write_count += 1
        self.project = project

    def read_midi_file(self, path, tpqn=None) -> MidiDocument:
        self.read_midi_paths.append(Path(path))
        if Path(path).name in self.documents:
            return self.documents[Path(path).name]
        return super().read_midi_file(path, tpqn)

    def project_directory(self) -> Optional[Path]:
        return self.directory

    def show_message(self, title: str, message: str):
        self.messages.append((title, message))


def make_note(offset: int, pitch: int = 60, duration: int = 240,
              velocity: int = 100, channel: int = 0) -> NoteEvent:
    return NoteEvent(pitch=pitch, velocity=velocity, offset=offset,
                     duration=duration, channel=channel)


def make_item(start: int, length: int = 4 * TPQN, events=(), name: str = "") -> Item:
    return Item(start=start, length=length, events=tuple(events), name=name)


def make_project(track_names: Sequence[str], regions: Sequence[Region] = (),
                 items=None, **kwargs) -> Project:
    """Project with one track per name; items maps track name -> items."""
    items = items or {}
    tracks = tuple(
        Track(name=name, index=i, items=tuple(items.get(name, ())))
        for i, name in enumerate(track_names)
    )
    return Project(name="Test Song", tpqn=TPQN, tracks=tracks,
                   regions=tuple(regions), **kwargs)


def write_midi_file(path: Path, tracks: List[Tuple[str, List[Tuple[int, mido.Message]]]],
                    ticks_per_beat: int = TPQN) -> Path:
    """
    Write a type 1 MIDI file.

    Args:
        path: Destination
        tracks: (track name, [(absolute tick, message), ...]) per track
    """
    midi_file = mido.MidiFile(type=1, ticks_per_beat=ticks_per_beat)

    for name, messages in tracks:
        midi_track = mido.MidiTrack()
        midi_track.append(mido.MetaMessage("track_name", name=name, time=0))
        current = 0
        for tick, msg in sorted(messages, key=lambda m: m[0]):
            midi_track.append(msg.copy(time=tick - current))
            current = tick
        midi_track.append(mido.MetaMessage("end_of_track", time=0))
        midi_file.tracks.append(midi_track)

    midi_file.save(str(path))
    return path


def note_messages(start: int, pitch: int, duration: int, velocity: int = 90):
    return [
        (start, mido.Message("note_on", note=pitch, velocity=velocity)),
        (start + duration, mido.Message("note_off", note=pitch, velocity=0)),
    ]


def marker(tick: int, text: str):
    return (tick, mido.MetaMessage("marker", text=text))


@pytest.fixture
def voice_project() -> Project:
    """Project with the voice tracks V_Bass, V_Drums, V_Extra and a click track."""
    old_item = make_item(0, events=[make_note(0)], name="old")
    return make_project(
        ["Click", "V_Bass", "V_Drums", "V_Extra"],
        items={"V_Bass": [old_item], "V_Drums": [old_item], "V_Extra": [old_item]},
    )


@pytest.fixture
def voice_document() -> MidiDocument:
    """Source file with Bass (2 items, one of them a count-in) and Drums."""
    bass = Track(name="Bass", index=0, items=(
        Item(start=0, length=TPQN, name="COUNT IN",
             events=(make_note(0, pitch=37),)),
        Item(start=TPQN, length=8 * TPQN, name="Bass verse",
             events=(make_note(0, pitch=40), make_note(TPQN, pitch=43),
                     ControlEvent(controller=7, value=100, offset=0))),
    ))
    drums = Track(name="Drums", index=1, items=(
        Item(start=TPQN, length=8 * TPQN, name="Groove",
             events=(make_note(0, pitch=36), make_note(TPQN, pitch=38))),
    ))
    return MidiDocument(name="source", tpqn=TPQN, tracks=(bass, drums))


@pytest.fixture
def song_regions() -> Tuple[Region, ...]:
    """Intro/Verse/Chorus at bars 1, 5 and 13."""
    bar = 4 * TPQN
    return (
        Region(start=0, end=4 * bar, name="Intro", color=(200, 0, 0)),
        Region(start=4 * bar, end=12 * bar, name="Verse"),
        Region(start=12 * bar, end=20 * bar, name="Chorus"),
    )


@pytest.fixture
def structure_item():
    def _make(start: int, length: int, text: Optional[str], name: str = "") -> Item:
        events = (TextEvent(text=text, offset=0),) if text is not None else ()
        return Item(start=start, length=length, events=events, name=name)
    return _make
