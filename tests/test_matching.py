"""Tests for track matching."""
from voicesync.core.models import Track
from voicesync.sync.matching import (
    SourceTrackTable,
    match_by_prefix,
    match_by_table,
    tracks_with_prefix,
    voice_identifier,
)


def tracks(*names):
    return tuple(Track(name=name, index=i) for i, name in enumerate(names))


def test_voice_identifier_is_case_sensitive():
    assert voice_identifier("V_Bass", "V_") == "Bass"
    assert voice_identifier("v_Bass", "V_") is None
    assert voice_identifier("V_", "V_") == ""


def test_prefix_matching():
    project_tracks = tracks("Click", "V_Bass", "V_Drums", "V_Extra")
    source_tracks = tracks("Drums", "Bass", "Piano")

    result = match_by_prefix(project_tracks, source_tracks, "V_")

    assert [m.project_track.name for m in result.matches] == ["V_Bass", "V_Drums", "V_Extra"]
    assert [m.source_track.name for m in result.matched] == ["Bass", "Drums"]
    assert result.unmatched_track_names == ("V_Extra",)


def test_exact_name_wins_over_case_insensitive():
    table = SourceTrackTable(tracks("bass", "Bass", "BASS"))

    assert table.lookup("Bass").index == 1
    assert table.lookup("bAsS").index == 0
    assert table.lookup("Guitar") is None


def test_first_declared_source_track_wins():
    source_tracks = (Track("Bass", index=0), Track("Bass", index=1))

    result = match_by_prefix(tracks("S Bass"), source_tracks, "S ")

    assert result.matches[0].source_track.index == 0


def test_table_matching():
    result = match_by_table(tracks("Lead", "Backing", "Click"),
                            tracks("Vox 1", "Vox 2"),
                            {"Lead": "Vox 1", "Backing": "Vox 3"})

    assert [(m.project_track.name, m.is_matched) for m in result.matches] == [
        ("Lead", True), ("Backing", False)]


def test_tracks_with_prefix():
    assert [t.name for t in tracks_with_prefix(tracks("S A", "B", "S C"), "S ")] == ["S A", "S C"]
