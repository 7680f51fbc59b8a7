"""
MIDI file layer for voicesync.

Modules:
- converter: Standard MIDI File <-> MidiDocument (via mido)
"""
