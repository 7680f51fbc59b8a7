"""
Immutable data models for voicesync.

All models are immutable dataclasses to support:
- Snapshot semantics (every action works on a freshly read copy)
- Whole-track replacement via commands
- Structural equality checks (e.g. normalizer idempotence)

Time values are integer ticks; a project carries its ticks per quarter
note (tpqn). Event offsets are relative to the start of their item.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from voicesync.core.constants import TPQN_DEFAULT

Color = Tuple[int, int, int]


def _validate_color(color: Optional[Color]):
    if color is None:
        return
    if len(color) != 3 or not all(0 <= c <= 255 for c in color):
        raise ValueError(f"Color must be an RGB triple (0-255), got {color}")


def _color_from_dict(value) -> Optional[Color]:
    return tuple(value) if value is not None else None


class EventKind(Enum):
    """Tag of the event variants stored in items."""
    NOTE = "note"
    CONTROL = "control"
    TEXT = "text"


# Events at the same offset are ordered text, control, note
EVENT_KIND_ORDER = {
    EventKind.TEXT: 0,
    EventKind.CONTROL: 1,
    EventKind.NOTE: 2,
}


@dataclass(frozen=True)
class NoteEvent:
    """
    MIDI note within an item.

    Attributes:
        pitch: MIDI note number (0-127)
        velocity: Note-on velocity (0-127)
        offset: Start tick relative to item start
        duration: Duration in ticks
        channel: MIDI channel (0-15)
    """
    kind: ClassVar[EventKind] = EventKind.NOTE

    pitch: int
    velocity: int
    offset: int
    duration: int
    channel: int = 0

    def __post_init__(self):
        """Validate note values."""
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"Pitch must be 0-127, got {self.pitch}")
        if not 0 <= self.velocity <= 127:
            raise ValueError(f"Velocity must be 0-127, got {self.velocity}")
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")
        if self.duration < 0:
            raise ValueError(f"Duration must be non-negative, got {self.duration}")
        if not 0 <= self.channel <= 15:
            raise ValueError(f"Channel must be 0-15, got {self.channel}")

    @property
    def end(self) -> int:
        """End tick relative to item start."""
        return self.offset + self.duration

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "pitch": self.pitch,
            "velocity": self.velocity,
            "offset": self.offset,
            "duration": self.duration,
            "channel": self.channel,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteEvent":
        """Create NoteEvent from dictionary."""
        return cls(
            pitch=data["pitch"],
            velocity=data["velocity"],
            offset=data["offset"],
            duration=data["duration"],
            channel=data.get("channel", 0),
        )


@dataclass(frozen=True)
class ControlEvent:
    """
    MIDI control change within an item.

    Attributes:
        controller: Controller number (0-127), see constants.CONTROLLER_KINDS
        value: Controller value (0-127)
        offset: Tick relative to item start
        channel: MIDI channel (0-15)
    """
    kind: ClassVar[EventKind] = EventKind.CONTROL

    controller: int
    value: int
    offset: int
    channel: int = 0

    def __post_init__(self):
        """Validate control change values."""
        if not 0 <= self.controller <= 127:
            raise ValueError(f"Controller must be 0-127, got {self.controller}")
        if not 0 <= self.value <= 127:
            raise ValueError(f"Controller value must be 0-127, got {self.value}")
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")
        if not 0 <= self.channel <= 15:
            raise ValueError(f"Channel must be 0-15, got {self.channel}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "controller": self.controller,
            "value": self.value,
            "offset": self.offset,
            "channel": self.channel,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControlEvent":
        """Create ControlEvent from dictionary."""
        return cls(
            controller=data["controller"],
            value=data["value"],
            offset=data["offset"],
            channel=data.get("channel", 0),
        )


@dataclass(frozen=True)
class TextEvent:
    """
    Text payload within an item (used for region names in structure items).

    Attributes:
        text: Payload
        offset: Tick relative to item start
    """
    kind: ClassVar[EventKind] = EventKind.TEXT

    text: str
    offset: int = 0

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "text": self.text,
            "offset": self.offset,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextEvent":
        """Create TextEvent from dictionary."""
        return cls(text=data["text"], offset=data.get("offset", 0))


Event = Union[NoteEvent, ControlEvent, TextEvent]

EVENT_TYPES = {
    EventKind.NOTE: NoteEvent,
    EventKind.CONTROL: ControlEvent,
    EventKind.TEXT: TextEvent,
}


def event_from_dict(data: Dict[str, Any]) -> Event:
    """Create the event variant named by data["kind"]."""
    try:
        kind = EventKind(data["kind"])
    except (KeyError, ValueError) as e:
        raise ValueError(f"Invalid event kind in {data}") from e
    return EVENT_TYPES[kind].from_dict(data)


def event_sort_key(event: Event) -> Tuple[int, int, int, int]:
    """
    Canonical ordering of events inside an item.

    Orders by offset, then kind (text, control, note), then by
    pitch/controller and channel.
    """
    secondary = {
        EventKind.NOTE: lambda e: (e.pitch, e.channel),
        EventKind.CONTROL: lambda e: (e.controller, e.channel),
        EventKind.TEXT: lambda e: (0, 0),
    }[event.kind](event)
    return (event.offset, EVENT_KIND_ORDER[event.kind]) + secondary


@dataclass(frozen=True)
class Item:
    """
    Time-bounded container of events owned by one track.

    Attributes:
        start: Absolute start tick
        length: Length in ticks
        events: Tuple of events (offsets relative to start)
        name: Display name (take name)
        color: Optional RGB color
        locked: Whether the host should protect the item from edits
    """
    start: int
    length: int
    events: Tuple[Event, ...] = field(default_factory=tuple)
    name: str = ""
    color: Optional[Color] = None
    locked: bool = False

    def __post_init__(self):
        """Validate item."""
        if self.start < 0:
            raise ValueError(f"Item start must be non-negative, got {self.start}")
        if self.length < 0:
            raise ValueError(f"Item length must be non-negative, got {self.length}")
        _validate_color(self.color)

    @property
    def end(self) -> int:
        """Absolute end tick."""
        return self.start + self.length

    @property
    def notes(self) -> Tuple[NoteEvent, ...]:
        """Note events in stored order."""
        return tuple(e for e in self.events if e.kind is EventKind.NOTE)

    @property
    def text_events(self) -> Tuple[TextEvent, ...]:
        """Text events in stored order."""
        return tuple(e for e in self.events if e.kind is EventKind.TEXT)

    def with_events(self, events) -> "Item":
        """Copy of this item with a different event sequence."""
        return replace(self, events=tuple(events))

    def shifted(self, delta: int) -> "Item":
        """Copy of this item moved by delta ticks."""
        return replace(self, start=self.start + delta)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "start": self.start,
            "length": self.length,
            "events": [e.to_dict() for e in self.events],
            "name": self.name,
            "color": list(self.color) if self.color is not None else None,
            "locked": self.locked,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        """Create Item from dictionary."""
        return cls(
            start=data["start"],
            length=data["length"],
            events=tuple(event_from_dict(e) for e in data.get("events", [])),
            name=data.get("name", ""),
            color=_color_from_dict(data.get("color")),
            locked=data.get("locked", False),
        )


@dataclass(frozen=True)
class Track:
    """
    Project or source track.

    The name is the only identity used for matching across files and roles.

    Attributes:
        name: Track name
        index: Position in the project track list (0-based)
        items: Tuple of Item objects
        selected: Whether track is selected in the host
        visible: Whether track is visible in the host
    """
    name: str
    index: int = 0
    items: Tuple[Item, ...] = field(default_factory=tuple)
    selected: bool = False
    visible: bool = True

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Track index must be non-negative, got {self.index}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "index": self.index,
            "items": [i.to_dict() for i in self.items],
            "selected": self.selected,
            "visible": self.visible,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Create Track from dictionary."""
        return cls(
            name=data.get("name", "Track"),
            index=data.get("index", 0),
            items=tuple(Item.from_dict(i) for i in data.get("items", [])),
            selected=data.get("selected", False),
            visible=data.get("visible", True),
        )


@dataclass(frozen=True)
class Region:
    """
    Named timeline interval owned by the project.

    Attributes:
        start: Absolute start tick
        end: Absolute end tick
        name: Region name
        color: Optional RGB color
    """
    start: int
    end: int
    name: str
    color: Optional[Color] = None

    def __post_init__(self):
        """Validate region."""
        if self.start < 0:
            raise ValueError(f"Region start must be non-negative, got {self.start}")
        if self.end < self.start:
            raise ValueError(
                f"Region end ({self.end}) must not precede start ({self.start})"
            )
        _validate_color(self.color)

    @property
    def length(self) -> int:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "start": self.start,
            "end": self.end,
            "name": self.name,
            "color": list(self.color) if self.color is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Region":
        """Create Region from dictionary."""
        return cls(
            start=data["start"],
            end=data["end"],
            name=data["name"],
            color=_color_from_dict(data.get("color")),
        )


@dataclass(frozen=True)
class StructureMarker:
    """
    Region boundary decoded from (or encoded into) a structure item.

    Attributes:
        position: Absolute tick of the boundary
        name: Region name carried by the item's text event
        color: Item color
        end: End of the item the marker was decoded from
    """
    position: int
    name: str
    color: Optional[Color] = None
    end: Optional[int] = None


@dataclass(frozen=True)
class Project:
    """
    Snapshot of a host project.

    Attributes:
        name: Project name
        tpqn: Ticks per quarter note
        tracks: Tuple of Track objects (index == position)
        regions: Tuple of Region objects
        working_range_start: Start of the working range in ticks
        working_range_end: End of the working range (None = unbounded)
        properties: Free-form project settings (e.g. "midiFilePath")
    """
    name: str
    tpqn: int = TPQN_DEFAULT
    tracks: Tuple[Track, ...] = field(default_factory=tuple)
    regions: Tuple[Region, ...] = field(default_factory=tuple)
    working_range_start: int = 0
    working_range_end: Optional[int] = None
    properties: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate project structure."""
        if self.tpqn <= 0:
            raise ValueError(f"TPQN must be positive, got {self.tpqn}")
        indices = [t.index for t in self.tracks]
        if len(set(indices)) != len(indices):
            raise ValueError(f"Track indices must be unique, got {indices}")
        if (self.working_range_end is not None
                and self.working_range_end < self.working_range_start):
            raise ValueError("Working range end must not precede its start")

    def track_by_index(self, index: int) -> Track:
        """Get the track with the given index."""
        for track in self.tracks:
            if track.index == index:
                return track
        raise ValueError(f"Track index {index} out of range")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "version": "1.0.0",
            "name": self.name,
            "tpqn": self.tpqn,
            "tracks": [t.to_dict() for t in self.tracks],
            "regions": [r.to_dict() for r in self.regions],
            "working_range_start": self.working_range_start,
            "working_range_end": self.working_range_end,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """Create Project from dictionary."""
        return cls(
            name=data.get("name", "Untitled"),
            tpqn=data.get("tpqn", TPQN_DEFAULT),
            tracks=tuple(Track.from_dict(t) for t in data.get("tracks", [])),
            regions=tuple(Region.from_dict(r) for r in data.get("regions", [])),
            working_range_start=data.get("working_range_start", 0),
            working_range_end=data.get("working_range_end"),
            properties=dict(data.get("properties", {})),
        )


@dataclass(frozen=True)
class MidiDocument:
    """
    Contents of an external Standard MIDI File.

    Attributes:
        name: Document name (file stem)
        tpqn: Ticks per quarter note of the tick values below
        tracks: Source tracks in file declaration order
    """
    name: str
    tpqn: int = TPQN_DEFAULT
    tracks: Tuple[Track, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.tpqn <= 0:
            raise ValueError(f"TPQN must be positive, got {self.tpqn}")
