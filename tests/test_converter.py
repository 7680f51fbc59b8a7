"""Tests for the mido based MIDI file codec."""
import mido
import pytest

from voicesync.core.errors import SourceUnavailableError
from voicesync.core.models import (
    ControlEvent,
    EventKind,
    Item,
    MidiDocument,
    NoteEvent,
    TextEvent,
    Track,
)
from voicesync.midi.converter import MIDIConverter

from conftest import TPQN, marker, note_messages, write_midi_file


def test_markers_split_track_into_items(tmp_path):
    path = write_midi_file(tmp_path / "song.mid", [
        ("Bass", [
            marker(0, "COUNT IN"),
            *note_messages(0, 37, 120),
            marker(TPQN, "Verse"),
            *note_messages(TPQN, 40, 240),
            (TPQN + 10, mido.Message("control_change", control=7, value=100)),
            *note_messages(2 * TPQN, 43, 240),
            (4 * TPQN, mido.MetaMessage("text", text="end")),
        ]),
    ])

    document = MIDIConverter.import_midi(path)

    assert document.name == "song"
    assert [t.name for t in document.tracks] == ["Bass"]
    count_in, verse = document.tracks[0].items
    assert (count_in.name, count_in.start, count_in.length) == ("COUNT IN", 0, TPQN)
    assert verse.name == "Verse"
    assert verse.start == TPQN
    assert verse.end == 4 * TPQN
    assert [n.pitch for n in verse.notes] == [40, 43]
    assert [n.offset for n in verse.notes] == [0, TPQN]
    assert ControlEvent(controller=7, value=100, offset=10) in verse.events
    assert TextEvent(text="end", offset=3 * TPQN) in verse.events


def test_events_before_first_marker_form_head_item(tmp_path):
    path = write_midi_file(tmp_path / "song.mid", [
        ("Drums", [*note_messages(0, 36, 120), marker(TPQN, "Fill"),
                   *note_messages(TPQN, 38, 120)]),
    ])

    items = MIDIConverter.import_midi(path).tracks[0].items

    assert [i.name for i in items] == ["Drums", "Fill"]
    assert items[0].start == 0


def test_resolution_is_rescaled(tmp_path):
    path = write_midi_file(tmp_path / "song.mid", [
        ("Keys", [*note_messages(960, 60, 480)]),
    ], ticks_per_beat=960)

    document = MIDIConverter.import_midi(path, tpqn=TPQN)
    note = document.tracks[0].items[0].notes[0]

    assert document.tpqn == TPQN
    assert (note.offset, note.duration) == (480, 240)


def test_unterminated_note_ends_with_track(tmp_path):
    path = write_midi_file(tmp_path / "song.mid", [
        ("Pad", [(0, mido.Message("note_on", note=50, velocity=70)),
                 (TPQN, mido.Message("control_change", control=64, value=0))]),
    ])

    note = MIDIConverter.import_midi(path).tracks[0].items[0].notes[0]

    assert note.duration == TPQN


def test_empty_tracks_are_skipped(tmp_path):
    path = write_midi_file(tmp_path / "song.mid", [
        ("Conductor", [(0, mido.MetaMessage("set_tempo", tempo=500000))]),
        ("Bass", [*note_messages(0, 40, 120)]),
    ])

    document = MIDIConverter.import_midi(path)

    assert [t.name for t in document.tracks] == ["Bass"]


def test_missing_or_broken_file(tmp_path):
    with pytest.raises(SourceUnavailableError):
        MIDIConverter.import_midi(tmp_path / "missing.mid")

    broken = tmp_path / "broken.mid"
    broken.write_bytes(b"not a midi file")
    with pytest.raises(SourceUnavailableError):
        MIDIConverter.import_midi(broken)


def test_export_then_import_keeps_items(tmp_path):
    track = Track(name="S Bass", index=0, items=(
        Item(start=0, length=TPQN, name="S Bass",
             events=(NoteEvent(pitch=40, velocity=90, offset=0, duration=TPQN),)),
        Item(start=2 * TPQN, length=2 * TPQN, name="Chorus", events=(
            TextEvent(text="Chorus", offset=0),
            ControlEvent(controller=91, value=30, offset=0),
            NoteEvent(pitch=43, velocity=80, offset=0, duration=0),
            NoteEvent(pitch=45, velocity=80, offset=TPQN, duration=TPQN),
        )),
    ))
    document = MidiDocument(name="export", tpqn=TPQN, tracks=(track,))

    path = MIDIConverter.export_midi(document, tmp_path / "export")
    reimported = MIDIConverter.import_midi(path)

    assert path.suffix == ".mid"
    assert reimported.tracks[0].name == "S Bass"
    head, chorus = reimported.tracks[0].items
    assert head.name == "S Bass"
    assert head.notes == track.items[0].notes
    assert (chorus.name, chorus.start, chorus.length) == ("Chorus", 2 * TPQN, 2 * TPQN)
    assert sorted(e.kind.value for e in chorus.events) == sorted(
        e.kind.value for e in track.items[1].events)
    assert {(n.pitch, n.offset, n.duration) for n in chorus.notes} == {
        (43, 0, 0), (45, TPQN, TPQN)}
    assert all(e.kind is not EventKind.NOTE or e.velocity == 80 for e in chorus.events)
