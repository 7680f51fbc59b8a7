"""
Synchronization pipelines for voicesync.

Modules:
- matching: Project track <-> source track matching
- importer: Filtered whole-track import from an external MIDI file
- structure: Regions <-> structure track conversion
- normalizer: Voice track canonicalization (controllers, velocity, grid)
- actions: User-triggered operation entry points
"""
