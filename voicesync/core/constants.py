"""
MIDI constants and utilities.

Tick resolution, controller numbers, controller kind names, note names.
"""
from typing import Dict, FrozenSet, Iterable

# MIDI note number to name mapping
MIDI_NOTE_NAMES = [
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"
]

# Standard TPQN (Ticks Per Quarter Note) values
TPQN_VALUES = [96, 192, 384, 480, 960]
TPQN_DEFAULT = 480

# Note defaults
VELOCITY_DEFAULT = 80

# Control change numbers
CC_BANK_SELECT_MSB = 0
CC_VOLUME = 7
CC_PAN = 10
CC_BANK_SELECT_LSB = 32
CC_SUSTAIN = 64
CC_REVERB_SEND = 91
CC_TREMOLO_DEPTH = 92
CC_CHORUS_SEND = 93
CC_DELAY_SEND = 94
CC_PHASER_DEPTH = 95

# Controller kind names (as used in configuration files) -> CC numbers
CONTROLLER_KINDS: Dict[str, FrozenSet[int]] = {
    "bank_select": frozenset({CC_BANK_SELECT_MSB, CC_BANK_SELECT_LSB}),
    "volume": frozenset({CC_VOLUME}),
    "pan": frozenset({CC_PAN}),
    "sustain": frozenset({CC_SUSTAIN}),
    "reverb": frozenset({CC_REVERB_SEND}),
    "tremolo": frozenset({CC_TREMOLO_DEPTH}),
    "chorus": frozenset({CC_CHORUS_SEND}),
    "delay": frozenset({CC_DELAY_SEND}),
    "phaser": frozenset({CC_PHASER_DEPTH}),
}

# Ambience sends removed by the normalizer unless configured otherwise
AMBIENCE_CONTROLLER_KINDS = ("reverb", "chorus", "delay")


def midi_note_to_name(note_number: int) -> str:
    """
    Convert MIDI note number to name with octave.

    Args:
        note_number: MIDI note (0-127)

    Returns:
        Note name (e.g., "C4", "A#3")

    Example:
        >>> midi_note_to_name(60)
        'C4'
        >>> midi_note_to_name(69)
        'A4'
    """
    if not 0 <= note_number <= 127:
        raise ValueError(f"MIDI note must be 0-127, got {note_number}")
    octave = (note_number // 12) - 1
    note_name = MIDI_NOTE_NAMES[note_number % 12]
    return f"{note_name}{octave}"


def controller_numbers(kind_names: Iterable[str]) -> FrozenSet[int]:
    """
    Resolve controller kind names to the set of CC numbers they cover.

    Names are case-insensitive; "-send" suffixes and dashes are accepted
    ("reverb-send" == "reverb"). Plain integers (as strings or ints) are
    taken as CC numbers directly.

    Raises:
        ValueError: If a name is unknown or a number is out of range

    Example:
        >>> sorted(controller_numbers(["reverb-send", "chorus"]))
        [91, 93]
    """
    result = set()

    for kind_name in kind_names:
        if isinstance(kind_name, int) or str(kind_name).strip().isdigit():
            number = int(kind_name)
            if not 0 <= number <= 127:
                raise ValueError(f"Controller number must be 0-127, got {number}")
            result.add(number)
            continue

        key = str(kind_name).strip().lower().replace("-", "_")
        if key.endswith("_send"):
            key = key[:-len("_send")]

        if key not in CONTROLLER_KINDS:
            raise ValueError(
                f"Unknown controller kind: {kind_name}. "
                f"Available kinds: {sorted(CONTROLLER_KINDS.keys())}"
            )
        result.update(CONTROLLER_KINDS[key])

    return frozenset(result)


def ticks_per_bar(tpqn: int, time_signature=(4, 4)) -> int:
    """Length of one bar in ticks for the given resolution and meter."""
    numerator, denominator = time_signature
    return int(numerator * tpqn * (4 / denominator))
