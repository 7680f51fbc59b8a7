"""
voicesync - MIDI track synchronization & normalization for DAW projects.

Packages:
- core: Document model, constants, errors, commands, configuration
- midi: Standard MIDI File import/export
- host: Host adapter interface and project file host
- sync: Track matching, import, structure conversion, normalization
- utils: Logging setup
"""

__version__ = "1.0.0"
