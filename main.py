"""
voicesync - MIDI track synchronization and normalization
Main entry point

Usage: python main.py <action> <project_file.vsync> [<config_file>]

Actions: import, regions-to-structure, structure-to-regions, normalize
"""
import logging
import sys
from pathlib import Path

from voicesync.core.config import SyncConfiguration
from voicesync.core.errors import VoiceSyncError
from voicesync.host.persistence import ProjectFileHost
from voicesync.sync.actions import ACTIONS, run_action
from voicesync.utils.logging import setup_logging

logger = logging.getLogger("voicesync")


def print_usage():
    print("Usage: python main.py <action> <project_file.vsync> [<config_file>]")
    print(f"\nActions: {', '.join(ACTIONS)}")
    print("\nExample:")
    print("  python main.py normalize my_song.vsync my_song.cfg")


def load_configuration(project_path: Path, config_path=None) -> SyncConfiguration:
    """
    Read the configuration file.

    Without an explicit file, <project>.cfg beside the project is used if
    present, otherwise the defaults.
    """
    if config_path is None:
        default_path = project_path.with_suffix(".cfg")
        if not default_path.is_file():
            logger.info("No configuration file, using defaults")
            return SyncConfiguration()
        config_path = default_path

    return SyncConfiguration.load(config_path)


def main(argv=None) -> int:
    """Run one action; returns the process exit code."""
    args = sys.argv[1:] if argv is None else list(argv)

    if len(args) not in (2, 3) or args[0] not in ACTIONS:
        print_usage()
        return 2

    action, project_path = args[0], Path(args[1])
    log_path = setup_logging(f"voicesync_{action.replace('-', '_')}")
    logger.info("Logging to %s", log_path)

    try:
        host = ProjectFileHost(project_path)
        configuration = load_configuration(project_path, args[2] if len(args) == 3 else None)
        run_action(action, host, configuration)
    except (VoiceSyncError, ValueError) as e:
        logger.error("Action '%s' failed: %s", action, e)
        print(f"[Error] {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
