"""
Project file I/O for .vsync format.

File format:
- MessagePack binary format (fast, compact)
- Contains: Project model + version field
- Atomic save (temporary file, then rename)
"""
from pathlib import Path
from typing import Optional
import logging
import os
import tempfile

import msgpack

from voicesync.core.errors import ProjectFileError
from voicesync.core.models import Project
from voicesync.host.adapter import HostAdapter

logger = logging.getLogger(__name__)

PROJECT_SUFFIX = ".vsync"


class ProjectFile:
    """Handles .vsync project file I/O."""

    @staticmethod
    def save(project: Project, path: Path) -> Path:
        """
        Save project to .vsync file.

        The data is written to a temporary file beside the target and then
        renamed, so readers never see a partially written project.

        Args:
            project: Project to save
            path: Destination file path

        Returns:
            Path actually written

        Raises:
            ProjectFileError: If save fails
        """
        path = Path(path)

        # Ensure .vsync extension
        if path.suffix != PROJECT_SUFFIX:
            path = path.with_suffix(PROJECT_SUFFIX)

        temp_name = None
        try:
            # Create parent directories if they don't exist
            path.parent.mkdir(parents=True, exist_ok=True)

            # Pack to MessagePack binary format
            packed_data = msgpack.packb(project.to_dict(), use_bin_type=True)

            fd, temp_name = tempfile.mkstemp(
                prefix=path.stem, suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "wb") as f:
                f.write(packed_data)
            os.replace(temp_name, path)
            temp_name = None

        except (OSError, TypeError, ValueError) as e:
            raise ProjectFileError(f"Failed to save project to {path}: {e}") from e
        finally:
            if temp_name is not None and os.path.exists(temp_name):
                os.remove(temp_name)

        logger.debug("Saved project '%s' to %s", project.name, path)
        return path

    @staticmethod
    def load(path: Path) -> Project:
        """
        Load project from .vsync file.

        Args:
            path: Source file path

        Returns:
            Loaded project

        Raises:
            ProjectFileError: If the file is missing, has an incompatible
                version or invalid contents
        """
        path = Path(path)

        # Check if file exists
        if not path.exists():
            raise ProjectFileError(f"Project file not found: {path}")

        try:
            # Read binary data
            with open(path, "rb") as f:
                packed_data = f.read()

            # Unpack from MessagePack
            project_data = msgpack.unpackb(packed_data, raw=False)
        except (OSError, ValueError, msgpack.exceptions.UnpackException) as e:
            raise ProjectFileError(f"Invalid project file {path}: {e}") from e

        if not isinstance(project_data, dict):
            raise ProjectFileError(f"Invalid project file {path}: not a project")

        # Validate version
        version = str(project_data.get("version", "unknown"))
        if not version.startswith("1."):
            raise ProjectFileError(
                f"Incompatible project version: {version}. Expected 1.x"
            )

        # Reconstruct project from dictionary
        try:
            return Project.from_dict(project_data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProjectFileError(f"Failed to load project from {path}: {e}") from e


class ProjectFileHost(HostAdapter):
    """Host working on a .vsync project file."""

    def __init__(self, path: Path):
        """
        Args:
            path: Project file path (.vsync)

        Raises:
            ProjectFileError: If path is not a .vsync file
        """
        self.path = Path(path)
        if self.path.suffix != PROJECT_SUFFIX:
            raise ProjectFileError(
                f"Not a {PROJECT_SUFFIX} project file: {self.path}"
            )
        self.messages = []

    def read_project(self) -> Project:
        return ProjectFile.load(self.path)

    def write_project(self, project: Project):
        ProjectFile.save(project, self.path)

    def project_directory(self) -> Optional[Path]:
        return self.path.parent

    def show_message(self, title: str, message: str):
        """Print message; the launcher has no dialog surface."""
        self.messages.append((title, message))
        print(f"[{title}] {message}")
