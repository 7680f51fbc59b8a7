"""
Utilities for voicesync.

Modules:
- logging: Log file and console setup for the launcher
"""
