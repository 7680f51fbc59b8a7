"""
Core data structures for voicesync.

Modules:
- models: Immutable data structures (Project, Track, Item, events, Region)
- constants: MIDI constants (controller numbers, note names, resolution)
- errors: Fatal error taxonomy and collected warnings
- commands: Command pattern for whole-track/whole-region replacement
- config: Configuration file reading and validated settings
"""
