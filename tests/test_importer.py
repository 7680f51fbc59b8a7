"""Tests for filtered whole-track import."""
from dataclasses import replace

import pytest

from voicesync.core.errors import ConfigurationError, MatchingWarning, SourceUnavailableError
from voicesync.core.models import ControlEvent, EventKind, Item, MidiDocument, Track
from voicesync.sync.actions import import_and_replace
from voicesync.sync.importer import (
    ItemNameExclusion,
    PredicateExclusion,
    WorkingRangeExclusion,
    filter_items,
    plan_import,
    prepare_source_items,
)

from conftest import (
    TPQN,
    InMemoryHost,
    make_item,
    make_project,
    marker,
    note_messages,
    write_midi_file,
)


def test_voice_track_scenario(voice_project, voice_document):
    host = InMemoryHost(voice_project, documents={"source.mid": voice_document})

    summary = import_and_replace(host, "source.mid", "V_",
                                 [ItemNameExclusion(["COUNT.*"])])

    project = host.project
    by_name = {t.name: t for t in project.tracks}
    assert [i.name for i in by_name["V_Bass"].items] == ["Bass verse"]
    assert [i.name for i in by_name["V_Drums"].items] == ["Groove"]
    assert by_name["V_Extra"].items == voice_project.tracks[3].items
    assert by_name["Click"] == voice_project.tracks[0]
    assert all(i.locked for i in by_name["V_Bass"].items + by_name["V_Drums"].items)

    assert summary.imported_count == 2
    assert summary.rejected_count == 1
    assert summary.unmatched_track_names == ("V_Extra",)
    assert summary.warnings == (MatchingWarning("V_Extra", "no source track named 'Extra'"),)
    assert host.write_count == 1
    assert host.messages == [("Import MIDI", summary.message())]


def test_imported_items_keep_timing_and_events(voice_project, voice_document):
    host = InMemoryHost(voice_project, documents={"source.mid": voice_document})

    import_and_replace(host, "source.mid", "V_")

    bass_items = host.project.tracks[1].items
    source_items = voice_document.tracks[0].items
    assert [(i.start, i.length, i.events) for i in bass_items] == [
        (i.start, i.length, i.events) for i in source_items]


def test_matched_track_without_passing_items_is_cleared(voice_project, voice_document):
    host = InMemoryHost(voice_project, documents={"source.mid": voice_document})

    summary = import_and_replace(host, "source.mid", "V_",
                                 [PredicateExclusion(lambda item: True, "reject all")])

    assert host.project.tracks[1].items == ()
    assert host.project.tracks[2].items == ()
    assert summary.imported_count == 0
    assert summary.rejected_count == 3


def test_missing_source_file_leaves_project_untouched(tmp_path, voice_project):
    host = InMemoryHost(voice_project, directory=tmp_path)

    with pytest.raises(SourceUnavailableError):
        import_and_replace(host, "missing.mid", "V_")

    assert host.project is voice_project
    assert host.write_count == 0
    assert host.read_midi_paths == [tmp_path / "missing.mid"]


def test_source_path_from_project_property(tmp_path, voice_document):
    project = make_project(["V_Bass"], properties={"midiFilePath": "source.mid"})
    host = InMemoryHost(project, directory=tmp_path, documents={"source.mid": voice_document})

    import_and_replace(host, None, "V_")

    assert host.read_midi_paths == [tmp_path / "source.mid"]

    host = InMemoryHost(make_project(["V_Bass"]), directory=tmp_path)
    with pytest.raises(ConfigurationError):
        import_and_replace(host, None, "V_")


def test_import_from_midi_file(tmp_path):
    write_midi_file(tmp_path / "song.mid", [
        ("Bass", [marker(0, "COUNT IN"), *note_messages(0, 37, 120),
                  marker(TPQN, "Verse"), *note_messages(TPQN, 40, 240)]),
        ("drums", [marker(TPQN, "Groove"), *note_messages(TPQN, 36, 120)]),
    ])
    host = InMemoryHost(make_project(["S Bass", "S Drums"]), directory=tmp_path)

    summary = import_and_replace(host, "song.mid", "S ", [ItemNameExclusion(["COUNT IN"])])

    assert [i.name for i in host.project.tracks[0].items] == ["Verse"]
    assert [i.name for i in host.project.tracks[1].items] == ["Groove"]
    assert summary.imported_count == 2


def test_working_range_restriction(voice_project, voice_document):
    project = replace(voice_project, working_range_start=2 * TPQN)
    host = InMemoryHost(project, documents={"source.mid": voice_document})

    summary = import_and_replace(host, "source.mid", "V_", restrict_to_working_range=True)

    assert [i.name for i in host.project.tracks[1].items] == ["Bass verse"]
    assert summary.rejected_count == 1


def test_working_range_exclusion():
    rule = WorkingRangeExclusion(TPQN, 4 * TPQN)

    assert rule.excludes(make_item(0, length=TPQN))
    assert not rule.excludes(make_item(0, length=TPQN + 1))
    assert not rule.excludes(make_item(3 * TPQN, length=8 * TPQN))
    assert rule.excludes(make_item(4 * TPQN, length=TPQN))
    assert rule.excludes(make_item(0, length=0))
    assert not rule.excludes(make_item(TPQN, length=0))
    assert not WorkingRangeExclusion(0).excludes(make_item(100 * TPQN))


def test_every_imported_item_passes_every_rule():
    items = [make_item(i * TPQN, length=TPQN, name=name)
             for i, name in enumerate(["COUNT IN", "A", "CLICK", "B", "count in", "C"])]
    rules = [ItemNameExclusion(["COUNT IN", "CLICK"]), WorkingRangeExclusion(TPQN, 5 * TPQN)]

    passed, rejected = filter_items(items, rules)

    assert [i.name for i in passed] == ["A", "B", "count in"]
    assert len(passed) + len(rejected) == len(items)
    assert not any(rule.excludes(item) for item in passed for rule in rules)
    assert all(any(rule.excludes(item) for rule in rules) for item in rejected)


def test_prepare_source_items_strips_and_shifts():
    source = Track("Bass", items=(
        Item(start=TPQN, length=TPQN, name="b", events=(
            ControlEvent(controller=7, value=100, offset=0),
            ControlEvent(controller=1, value=20, offset=0),
        )),
        Item(start=0, length=TPQN, name="a"),
    ))

    items = prepare_source_items(source, offset=TPQN, stripped_controllers=frozenset({7}))

    assert [(i.name, i.start, i.locked) for i in items] == [("a", TPQN, True), ("b", 2 * TPQN, True)]
    assert [e.controller for e in items[1].events if e.kind is EventKind.CONTROL] == [1]


def test_plan_import_arguments(voice_project, voice_document):
    with pytest.raises(ValueError):
        plan_import(voice_project, voice_document)
    with pytest.raises(ValueError):
        plan_import(voice_project, voice_document, prefix="V_", name_table={})
    with pytest.raises(ValueError):
        plan_import(voice_project, replace(voice_document, tpqn=960), prefix="V_")


def test_name_table_matching(voice_project, voice_document):
    plan = plan_import(voice_project, voice_document, name_table={"Click": "Drums"})

    result = plan.transaction.apply(voice_project)

    assert [i.name for i in result.tracks[0].items] == ["Groove"]
    assert result.tracks[1:] == voice_project.tracks[1:]


def test_empty_source_document(voice_project):
    plan = plan_import(voice_project, MidiDocument(name="empty", tpqn=TPQN), prefix="V_")

    assert len(plan.transaction) == 0
    assert plan.summary.unmatched_track_names == ("V_Bass", "V_Drums", "V_Extra")
