"""Tests for action dispatch and the command line launcher."""
import msgpack
import pytest

import main as launcher
from voicesync.core.config import SyncConfiguration
from voicesync.core.errors import ConfigurationError
from voicesync.core.models import Region
from voicesync.host.persistence import ProjectFile
from voicesync.sync.actions import ACTIONS, run_action

from conftest import (
    TPQN,
    InMemoryHost,
    make_item,
    make_note,
    make_project,
    marker,
    note_messages,
    write_midi_file,
)


def test_unknown_action():
    with pytest.raises(ConfigurationError):
        run_action("explode", InMemoryHost(make_project([])), SyncConfiguration())


def test_all_actions_are_registered():
    assert set(ACTIONS) == {"import", "regions-to-structure", "structure-to-regions",
                            "normalize"}


def test_run_import_from_configuration(tmp_path, voice_project, voice_document):
    host = InMemoryHost(voice_project, directory=tmp_path,
                        documents={"source.mid": voice_document})
    configuration = SyncConfiguration(
        import_source_file_path="source.mid",
        track_name_prefix="V_",
        excluded_item_name_patterns="COUNT.*",
        import_stripped_controller_kinds="volume",
    )

    summary = run_action("import", host, configuration)

    bass_events = host.project.tracks[1].items[0].events
    assert summary.imported_count == 2
    assert all(getattr(e, "controller", None) != 7 for e in bass_events)


def test_run_structure_actions(song_regions):
    host = InMemoryHost(make_project(["S Bass"], regions=song_regions))
    configuration = SyncConfiguration(structure_track_name="SECTIONS")

    run_action("regions-to-structure", host, configuration)
    summary = run_action("structure-to-regions", host, configuration)

    assert host.project.tracks[0].name == "SECTIONS"
    assert host.project.regions == song_regions
    assert summary.created_region_count == 3


def test_run_normalize_with_defaults():
    project = make_project(["S Bass"], items={
        "S Bass": [make_item(0, events=[make_note(31, velocity=12)])]})
    host = InMemoryHost(project)

    run_action("normalize", host)

    note = host.project.tracks[0].items[0].notes[0]
    assert (note.offset, note.velocity) == (60, 80)


@pytest.fixture
def quiet_logging(monkeypatch, tmp_path):
    monkeypatch.setattr(launcher, "setup_logging", lambda log_name: tmp_path / f"{log_name}.log")


def test_launcher_normalize(tmp_path, quiet_logging):
    project = make_project(["S Bass"], items={
        "S Bass": [make_item(0, events=[make_note(31, velocity=12)])]})
    path = ProjectFile.save(project, tmp_path / "song.vsync")
    (tmp_path / "song.cfg").write_text("defaultVelocity = 64\n", encoding="utf-8")

    assert launcher.main(["normalize", str(path)]) == 0

    note = ProjectFile.load(path).tracks[0].items[0].notes[0]
    assert note.velocity == 64


def test_launcher_import_with_explicit_configuration(tmp_path, quiet_logging):
    write_midi_file(tmp_path / "song.mid", [
        ("Bass", [marker(0, "Verse"), *note_messages(0, 40, TPQN)]),
    ])
    path = ProjectFile.save(make_project(["S Bass"], regions=[Region(0, TPQN, "Intro")]),
                            tmp_path / "song.vsync")
    config_path = tmp_path / "import.cfg"
    config_path.write_text('importSourceFilePath = "song.mid"\n', encoding="utf-8")

    assert launcher.main(["import", str(path), str(config_path)]) == 0

    assert [i.name for i in ProjectFile.load(path).tracks[0].items] == ["Verse"]


def test_launcher_reports_fatal_errors(tmp_path, quiet_logging, capsys):
    project = make_project(["S Bass"])
    path = ProjectFile.save(project, tmp_path / "song.vsync")
    (tmp_path / "song.cfg").write_text("importSourceFilePath = missing.mid\n",
                                       encoding="utf-8")

    assert launcher.main(["import", str(path)]) == 1

    assert "[Error]" in capsys.readouterr().out
    assert ProjectFile.load(path) == project


def test_launcher_usage(capsys):
    assert launcher.main([]) == 2
    assert launcher.main(["dance", "song.vsync"]) == 2
    assert "Usage" in capsys.readouterr().out


def test_launcher_rejects_other_project_suffix(tmp_path, quiet_logging, capsys):
    project = make_project(["S Bass"], items={
        "S Bass": [make_item(0, events=[make_note(0, velocity=3)])]})
    path = tmp_path / "song.proj"
    packed = msgpack.packb(project.to_dict(), use_bin_type=True)
    path.write_bytes(packed)

    assert launcher.main(["normalize", str(path)]) == 1

    assert "[Error]" in capsys.readouterr().out
    assert path.read_bytes() == packed
    assert not (tmp_path / "song.vsync").exists()
