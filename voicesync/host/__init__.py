"""
Host integration for voicesync.

Modules:
- adapter: Abstract host interface used by all actions
- persistence: Project file I/O (.vsync format) and file based host
"""
