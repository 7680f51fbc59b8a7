"""
MIDI file import/export with item marker support.

Item convention inside a MIDI track:
- Marker meta events (FF 06) start a new item named by the marker text;
  the item reaches to the next marker or to the end of the track
- Events before the first marker form an item named after the track
"""
from collections import defaultdict, deque
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

import mido

from voicesync.core.constants import TPQN_DEFAULT
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

logger = logging.getLogger(__name__)

# Ordering of messages sharing one tick on export
_PRIORITY_MARKER = 0
_PRIORITY_TEXT = 1
_PRIORITY_NOTE_OFF = 2
_PRIORITY_CONTROL = 3
_PRIORITY_NOTE_ON = 4
_PRIORITY_ZERO_LENGTH_NOTE_OFF = 5


class MIDIConverter:
    """Handles MIDI file import/export."""

    TPQN = TPQN_DEFAULT

    @classmethod
    def import_midi(cls, path: Path, tpqn: Optional[int] = None) -> MidiDocument:
        """
        Import Standard MIDI File to MidiDocument.

        Tick values are rescaled from the file resolution to tpqn.

        Args:
            path: Path to .mid file
            tpqn: Target ticks per quarter note (default 480)

        Returns:
            MidiDocument with one source track per MIDI track

        Raises:
            SourceUnavailableError: If the file is missing or unreadable
        """
        path = Path(path)
        tpqn = tpqn or cls.TPQN

        if not path.is_file():
            raise SourceUnavailableError(f"Could not find file: {path}")

        try:
            mid = mido.MidiFile(path)
        except (OSError, EOFError, ValueError, KeyError) as e:
            raise SourceUnavailableError(f"Failed to read MIDI file {path}: {e}") from e

        if mid.type == 2:
            raise SourceUnavailableError(
                f"Asynchronous (type 2) MIDI files are not supported: {path}"
            )

        file_tpqn = mid.ticks_per_beat

        def rescale(tick: int) -> int:
            return (tick * tpqn + file_tpqn // 2) // file_tpqn

        tracks = []
        for track_idx, midi_track in enumerate(mid.tracks):
            track = cls._convert_track(midi_track, track_idx, rescale)
            if track is not None:
                tracks.append(track)

        logger.debug("Imported %d tracks from %s (file tpqn %d -> %d)",
                     len(tracks), path, file_tpqn, tpqn)
        return MidiDocument(name=path.stem, tpqn=tpqn, tracks=tuple(tracks))

    @classmethod
    def _convert_track(cls, midi_track, track_idx: int, rescale) -> Optional[Track]:
        """Convert one mido track into a source Track (None if empty)."""
        name = None
        markers: List[Tuple[int, str]] = []
        notes: List[Tuple[int, int, int, int, int]] = []  # (start, end, pitch, velocity, channel)
        controls: List[Tuple[int, int, int, int]] = []     # (tick, controller, value, channel)
        texts: List[Tuple[int, str]] = []

        # Track active notes for note-off matching (FIFO per channel/pitch)
        active_notes: Dict[Tuple[int, int], deque] = defaultdict(deque)
        current_tick = 0

        for msg in midi_track:
            current_tick += msg.time

            if msg.type == 'track_name' and name is None:
                name = msg.name
            elif msg.type == 'marker':
                markers.append((current_tick, msg.text))
            elif msg.type == 'text':
                texts.append((current_tick, msg.text))
            elif msg.type == 'control_change':
                controls.append((current_tick, msg.control, msg.value, msg.channel))
            elif msg.type == 'note_on' and msg.velocity > 0:
                active_notes[(msg.channel, msg.note)].append((current_tick, msg.velocity))
            elif msg.type == 'note_off' or (msg.type == 'note_on' and msg.velocity == 0):
                pending = active_notes.get((msg.channel, msg.note))
                if pending:
                    start_tick, velocity = pending.popleft()
                    notes.append((start_tick, current_tick, msg.note, velocity, msg.channel))

        track_end = current_tick

        # Unterminated notes end with the track
        for (channel, pitch), pending in active_notes.items():
            for start_tick, velocity in pending:
                notes.append((start_tick, track_end, pitch, velocity, channel))

        if name is None:
            name = f"Track {track_idx + 1}"

        if not (markers or notes or controls or texts):
            logger.debug("Skipped empty MIDI track %d (%s)", track_idx, name)
            return None

        # Item boundaries: optional unmarked head plus one item per marker
        markers.sort(key=lambda m: m[0])
        boundaries = [(0, name)] + markers
        segments = []
        for i, (start, item_name) in enumerate(boundaries):
            end = boundaries[i + 1][0] if i + 1 < len(boundaries) else track_end
            segments.append([start, end, item_name, []])

        def segment_for(tick: int) -> list:
            # Last segment starting at or before tick (markers win over the head)
            chosen = segments[0]
            for segment in segments[1:]:
                if segment[0] <= tick:
                    chosen = segment
                else:
                    break
            return chosen

        for start, end, pitch, velocity, channel in sorted(notes):
            segment = segment_for(start)
            segment[3].append(('note', start, end, pitch, velocity, channel))
        for tick, controller, value, channel in controls:
            segment_for(tick)[3].append(('control', tick, controller, value, channel))
        for tick, text in texts:
            segment_for(tick)[3].append(('text', tick, text))

        # The unmarked head only becomes an item when it carries events
        result_items = []
        for index, (start, end, item_name, raw_events) in enumerate(segments):
            if index == 0 and not raw_events:
                continue

            item_start = rescale(start)
            events = []
            for raw in raw_events:
                if raw[0] == 'note':
                    _, note_start, note_end, pitch, velocity, channel = raw
                    offset = rescale(note_start) - item_start
                    events.append(NoteEvent(
                        pitch=pitch,
                        velocity=velocity,
                        offset=offset,
                        duration=rescale(note_end) - rescale(note_start),
                        channel=channel,
                    ))
                elif raw[0] == 'control':
                    _, tick, controller, value, channel = raw
                    events.append(ControlEvent(
                        controller=controller,
                        value=value,
                        offset=rescale(tick) - item_start,
                        channel=channel,
                    ))
                else:
                    _, tick, text = raw
                    events.append(TextEvent(text=text, offset=rescale(tick) - item_start))

            events.sort(key=lambda e: e.offset)
            result_items.append(Item(
                start=item_start,
                length=rescale(end) - item_start,
                events=tuple(events),
                name=item_name,
            ))

        return Track(name=name, index=track_idx, items=tuple(result_items))

    @classmethod
    def export_midi(cls, document: MidiDocument, path: Path) -> Path:
        """
        Export MidiDocument to Standard MIDI File (type 1).

        Every item except an unnamed-by-marker head item (starting at 0 and
        named like its track) is introduced by a marker meta event.

        Args:
            document: Document to export
            path: Destination .mid file path

        Returns:
            Path actually written
        """
        mid = mido.MidiFile(type=1, ticks_per_beat=document.tpqn)

        for track in document.tracks:
            midi_track = mido.MidiTrack()
            mid.tracks.append(midi_track)

            midi_track.append(mido.MetaMessage('track_name', name=track.name, time=0))

            # Absolute tick, priority, sequence number, message
            events = []
            track_end = 0

            def add(tick: int, priority: int, msg):
                events.append((tick, priority, len(events), msg))

            for item_index, item in enumerate(track.items):
                track_end = max(track_end, item.end)
                is_head = item_index == 0 and item.start == 0 and item.name == track.name
                if not is_head:
                    add(item.start, _PRIORITY_MARKER,
                        mido.MetaMessage('marker', text=item.name))

                for event in item.events:
                    tick = item.start + event.offset
                    if event.kind is EventKind.NOTE:
                        end_tick = tick + event.duration
                        track_end = max(track_end, end_tick)
                        add(tick, _PRIORITY_NOTE_ON, mido.Message(
                            'note_on', note=event.pitch, velocity=event.velocity,
                            channel=event.channel))
                        off_priority = (_PRIORITY_ZERO_LENGTH_NOTE_OFF
                                        if event.duration == 0 else _PRIORITY_NOTE_OFF)
                        add(end_tick, off_priority, mido.Message(
                            'note_off', note=event.pitch, velocity=0,
                            channel=event.channel))
                    elif event.kind is EventKind.CONTROL:
                        add(tick, _PRIORITY_CONTROL, mido.Message(
                            'control_change', control=event.controller,
                            value=event.value, channel=event.channel))
                    else:
                        add(tick, _PRIORITY_TEXT, mido.MetaMessage('text', text=event.text))
                    track_end = max(track_end, tick)

            # Sort by time
            events.sort(key=lambda x: (x[0], x[1], x[2]))

            # Convert absolute time to delta time
            prev_tick = 0
            for abs_tick, _, _, msg in events:
                msg.time = abs_tick - prev_tick
                midi_track.append(msg)
                prev_tick = abs_tick

            # End of track
            midi_track.append(mido.MetaMessage('end_of_track', time=track_end - prev_tick))

        # Ensure .mid extension
        path = Path(path)
        if path.suffix != '.mid':
            path = path.with_suffix('.mid')

        path.parent.mkdir(parents=True, exist_ok=True)
        mid.save(path)
        logger.debug("Exported %d tracks to %s", len(document.tracks), path)
        return path
