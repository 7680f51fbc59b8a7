"""
Configuration for voicesync actions.

Configuration files contain simple assignments:

    # voice tracks start with "S "
    trackNamePrefix = "S "
    defaultVelocity = 80
    excludedItemNamePattern = COUNT.*, CLICK
    INCLUDE "common.cfg"

- '#' starts a comment line, empty lines are ignored
- values may be double quoted ('\\' escapes the next character); a
  quoted value is never split at commas, several quoted values separated
  by commas form a list
- a trailing '\\' continues the value on the next line
- true/false become booleans, integer/real literals become numbers
"""
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging
import re

from voicesync.core.constants import (
    AMBIENCE_CONTROLLER_KINDS,
    VELOCITY_DEFAULT,
    controller_numbers,
)
from voicesync.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ROUNDING_MODES = ("half_up", "half_down")


class QuotedValue(str):
    """String written in double quotes; never split into a list."""


class ConfigurationFile:
    """Reads a configuration file into a key -> value map."""

    COMMENT_MARKER = "#"
    CONTINUATION_MARKER = "\\"
    INCLUDE_COMMAND = "INCLUDE"
    _KEY_VALUE_REGEXP = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
    _INTEGER_REGEXP = re.compile(r"^[+-]?\d+$")
    _HEX_INTEGER_REGEXP = re.compile(r"^0[xX][0-9a-fA-F]+$")
    _REAL_REGEXP = re.compile(r"^[+-]?\d+\.\d*$")
    _BOOLEAN_VALUES = {"TRUE": True, "FALSE": False}

    def __init__(self, path):
        """
        Args:
            path: Path of the configuration file

        Raises:
            ConfigurationError: If the file (or an included file) is
                missing or contains a bad line
        """
        self.path = Path(path)
        self._values: Dict[str, Any] = {}
        lines = self._read_lines(self.path, set())
        self._parse(lines)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str, default: Any = None) -> Any:
        """Get value for key, or default."""
        return self._values.get(key, default)

    def keys(self) -> List[str]:
        return list(self._values.keys())

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def _read_lines(self, path: Path, visited: set) -> List[Tuple[str, int, str]]:
        """Read lines of path (and included files) as (file, number, text)."""
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")

        resolved = path.resolve()
        if resolved in visited:
            logger.debug("Skipped repeated include of %s", path)
            return []
        visited.add(resolved)

        result = []
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                stripped = line.strip()

                if stripped.startswith(self.INCLUDE_COMMAND + " "):
                    included_name = stripped[len(self.INCLUDE_COMMAND):].strip().strip('"')
                    included_path = Path(included_name)
                    if not included_path.is_absolute():
                        included_path = path.parent / included_path
                    logger.debug("Including %s from %s", included_path, path)
                    result.extend(self._read_lines(included_path, visited))
                else:
                    result.append((str(path), line_number, stripped))

        return result

    def _parse(self, lines: List[Tuple[str, int, str]]):
        """Parse logical lines into the value map."""
        pending = None

        for file_name, line_number, text in lines:
            if pending is not None:
                pending_file, pending_number, pending_text = pending
                text = pending_text + " " + text
                file_name, line_number = pending_file, pending_number
                pending = None

            if not text or text.startswith(self.COMMENT_MARKER):
                continue

            if text.endswith(self.CONTINUATION_MARKER):
                pending = (file_name, line_number, text[:-1].rstrip())
                continue

            match = self._KEY_VALUE_REGEXP.match(text)
            if match is None:
                raise ConfigurationError(
                    f"{file_name}:{line_number}: bad line without key-value-pair: {text}"
                )

            key, raw_value = match.group(1), match.group(2)
            self._values[key] = self._adapt_value(raw_value)
            logger.debug("%s = %r", key, self._values[key])

        if pending is not None:
            file_name, line_number, text = pending
            raise ConfigurationError(
                f"{file_name}:{line_number}: continuation at end of file: {text}"
            )

    @classmethod
    def _adapt_value(cls, raw_value: str) -> Any:
        """
        Turn the external representation of a value into bool/int/float/str.

        Quoted values become QuotedValue strings; several quoted values
        separated by commas become a tuple of them.
        """
        value = raw_value.strip()

        if value.startswith('"'):
            elements = [QuotedValue(cls._unquote(segment))
                        for segment in cls._split_outside_quotes(value)]
            return elements[0] if len(elements) == 1 else tuple(elements)

        upper = value.upper()
        if upper in cls._BOOLEAN_VALUES:
            return cls._BOOLEAN_VALUES[upper]
        if cls._INTEGER_REGEXP.match(value):
            return int(value)
        if cls._HEX_INTEGER_REGEXP.match(value):
            return int(value, 16)
        if cls._REAL_REGEXP.match(value):
            return float(value)
        return value

    @staticmethod
    def _split_outside_quotes(value: str) -> List[str]:
        """Split value at commas that are not inside double quotes."""
        segments = []
        current = []
        in_string = False
        escaped = False

        for ch in value:
            if escaped:
                escaped = False
            elif in_string and ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = not in_string
            elif ch == "," and not in_string:
                segments.append("".join(current))
                current = []
                continue
            current.append(ch)

        segments.append("".join(current))
        return [s for s in segments if s.strip()]

    @staticmethod
    def _unquote(value: str) -> str:
        """Remove double quotes and escape characters from value."""
        result = []
        in_string = False
        escaped = False

        for ch in value:
            if escaped:
                result.append(ch)
                escaped = False
            elif in_string and ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = not in_string
            elif in_string or not ch.isspace():
                result.append(ch)

        return "".join(result)


@dataclass
class SyncConfiguration:
    """
    Validated settings for all voicesync actions.

    Field names map to configuration keys in camelCase
    (e.g. track_name_prefix <-> trackNamePrefix).
    """
    # Import
    import_source_file_path: Optional[str] = None
    track_name_prefix: str = "S "
    excluded_item_name_patterns: Tuple[str, ...] = ()
    import_stripped_controller_kinds: Tuple[str, ...] = ("volume", "pan", "reverb")
    import_offset_ticks: int = 0
    restrict_import_to_working_range: bool = True

    # Normalization
    default_velocity: int = VELOCITY_DEFAULT
    quantize_grid_ticks: Optional[int] = None
    duration_grid_ticks: Optional[int] = None
    alternative_grid_ticks: Tuple[int, ...] = ()
    rounding_mode: str = "half_up"
    stripped_controller_kinds: Tuple[str, ...] = field(
        default_factory=lambda: tuple(AMBIENCE_CONTROLLER_KINDS)
    )

    # Structure track
    structure_track_name: str = "STRUCTURE"
    structure_tail_ticks: Optional[int] = None
    minimal_structure_item_ticks: Optional[int] = None

    # Keys whose values are comma separated lists
    _LIST_FIELDS = (
        "excluded_item_name_patterns",
        "import_stripped_controller_kinds",
        "alternative_grid_ticks",
        "stripped_controller_kinds",
    )

    # Configuration keys that differ from the camelCased field name
    _KEY_ALIASES = {
        "excludedItemNamePattern": "excluded_item_name_patterns",
        "excludedItemNamePatterns": "excluded_item_name_patterns",
    }

    def __post_init__(self):
        """Validate settings."""
        for list_field in self._LIST_FIELDS:
            setattr(self, list_field, _as_tuple(getattr(self, list_field)))
        self.alternative_grid_ticks = tuple(
            _as_int("alternativeGridTicks", v) for v in self.alternative_grid_ticks
        )

        if not isinstance(self.track_name_prefix, str) or not self.track_name_prefix:
            raise ConfigurationError("trackNamePrefix must be a non-empty string")
        if not isinstance(self.structure_track_name, str) or not self.structure_track_name:
            raise ConfigurationError("structureTrackName must be a non-empty string")

        self.default_velocity = _as_int("defaultVelocity", self.default_velocity)
        if not 0 <= self.default_velocity <= 127:
            raise ConfigurationError(
                f"defaultVelocity must be 0-127, got {self.default_velocity}"
            )

        for key, field_name in (("quantizeGridTicks", "quantize_grid_ticks"),
                                ("durationGridTicks", "duration_grid_ticks"),
                                ("structureTailTicks", "structure_tail_ticks"),
                                ("minimalStructureItemTicks", "minimal_structure_item_ticks")):
            value = getattr(self, field_name)
            if value is None:
                continue
            value = _as_int(key, value)
            if value <= 0:
                raise ConfigurationError(f"{key} must be a positive integer, got {value}")
            setattr(self, field_name, value)
        for value in self.alternative_grid_ticks:
            if value <= 0:
                raise ConfigurationError(
                    f"alternativeGridTicks must be positive integers, got {value}"
                )

        self.import_offset_ticks = _as_int("importOffsetTicks", self.import_offset_ticks)
        if self.import_offset_ticks < 0:
            raise ConfigurationError("importOffsetTicks must be non-negative")

        if self.rounding_mode not in ROUNDING_MODES:
            raise ConfigurationError(
                f"roundingMode must be one of {ROUNDING_MODES}, got {self.rounding_mode}"
            )

        for key, kinds in (("strippedControllerKinds", self.stripped_controller_kinds),
                           ("importStrippedControllerKinds",
                            self.import_stripped_controller_kinds)):
            try:
                controller_numbers(kinds)
            except ValueError as e:
                raise ConfigurationError(f"{key}: {e}") from e

        for pattern in self.excluded_item_name_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(
                    f"excludedItemNamePattern: invalid pattern '{pattern}': {e}"
                ) from e

    @property
    def stripped_controllers(self):
        """CC numbers removed by the normalizer."""
        return controller_numbers(self.stripped_controller_kinds)

    @property
    def import_stripped_controllers(self):
        """CC numbers removed from source items during import."""
        return controller_numbers(self.import_stripped_controller_kinds)

    def resolved_source_path(self, project_directory: Optional[Path],
                             project_properties: Optional[Dict[str, str]] = None
                             ) -> Path:
        """
        Get the MIDI source file path.

        Relative paths are resolved against the project directory; when no
        path is configured, the project property "midiFilePath" is used.

        Raises:
            ConfigurationError: If no source file is configured at all
        """
        return resolve_source_path(self.import_source_file_path,
                                   project_directory, project_properties)

    @classmethod
    def field_for_key(cls, key: str) -> Optional[str]:
        """Map a configuration key (camelCase) to a field name."""
        if key in cls._KEY_ALIASES:
            return cls._KEY_ALIASES[key]
        snake = re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()
        known = {f.name for f in fields(cls)}
        return snake if snake in known else None

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "SyncConfiguration":
        """
        Create settings from a key -> value map; unknown keys are ignored.

        Raises:
            ConfigurationError: If a value is invalid
        """
        kwargs = {}
        for key, value in values.items():
            field_name = cls.field_for_key(key)
            if field_name is None:
                logger.warning("Ignoring unknown configuration key '%s'", key)
                continue
            kwargs[field_name] = value

        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, config_path) -> "SyncConfiguration":
        """
        Load settings from a configuration file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        configuration_file = ConfigurationFile(config_path)
        logger.info("Read configuration from %s", config_path)
        return cls.from_mapping(configuration_file.as_dict())


def resolve_source_path(path_name: Optional[str],
                        project_directory: Optional[Path] = None,
                        project_properties: Optional[Dict[str, str]] = None) -> Path:
    """
    Resolve a MIDI source file name against the project.

    Raises:
        ConfigurationError: If neither path_name nor the "midiFilePath"
            project property is set
    """
    if not path_name and project_properties:
        path_name = project_properties.get("midiFilePath")
    if not path_name:
        raise ConfigurationError("importSourceFilePath is not configured")

    path = Path(path_name).expanduser()
    if not path.is_absolute() and project_directory is not None:
        path = Path(project_directory) / path
    return path


def _as_tuple(value) -> tuple:
    if value is None:
        return ()
    if isinstance(value, QuotedValue):
        return (str(value),) if value else ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def _as_int(key: str, value) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer, got {value}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e
