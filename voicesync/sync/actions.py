"""
User-facing actions.

Every action follows the same steps:
1. read one project snapshot from the host
2. plan the change as a Transaction (no host access)
3. apply the transaction to the snapshot in memory
4. write the resulting project back in a single call
5. report the summary (warnings are logged as they are found)

Fatal errors (VoiceSyncError) propagate before anything is written.
"""
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Union
import logging

from voicesync.core.config import SyncConfiguration, resolve_source_path
from voicesync.core.errors import ConfigurationError
from voicesync.host.adapter import HostAdapter
from voicesync.sync.importer import (
    ExclusionRule,
    ImportSummary,
    ItemNameExclusion,
    WorkingRangeExclusion,
    plan_import,
)
from voicesync.sync.normalizer import (
    NormalizationSettings,
    NormalizeSummary,
    ROUND_HALF_UP,
    plan_normalize,
)
from voicesync.sync.structure import (
    RegionSummary,
    StructureSummary,
    plan_regions_to_structure,
    plan_structure_to_regions,
)

logger = logging.getLogger(__name__)

ACTION_IMPORT = "import"
ACTION_REGIONS_TO_STRUCTURE = "regions-to-structure"
ACTION_STRUCTURE_TO_REGIONS = "structure-to-regions"
ACTION_NORMALIZE = "normalize"


def _commit(host: HostAdapter, project, plan, title: str):
    """Apply plan to project, write the result and report the summary."""
    logger.debug("Applying '%s' with %d commands",
                 plan.transaction.description, len(plan.transaction))
    new_project = plan.transaction.apply(project)
    host.write_project(new_project)

    message = plan.summary.message()
    logger.info("%s", message)
    host.show_message(title, message)


def import_and_replace(host: HostAdapter,
                       source_file_path: Union[str, Path, None],
                       track_name_prefix: str,
                       exclusion_rules: Sequence[ExclusionRule] = (),
                       restrict_to_working_range: bool = False,
                       offset: int = 0,
                       stripped_controllers: FrozenSet[int] = frozenset(),
                       name_table: Optional[Mapping[str, str]] = None) -> ImportSummary:
    """
    Replace the items of all voice tracks by the matching source track items.

    Args:
        host: Host adapter
        source_file_path: MIDI file; relative paths are resolved against the
            project directory, None falls back to the "midiFilePath"
            project property
        track_name_prefix: Voice track name prefix
        exclusion_rules: Rules every imported item must pass
        restrict_to_working_range: Also exclude items outside the project's
            working range
        offset: Ticks added to every source item position
        stripped_controllers: CC numbers dropped from source items
        name_table: Explicit project -> source name mapping (replaces
            prefix matching)

    Returns:
        ImportSummary

    Raises:
        ConfigurationError: If no source file is configured
        SourceUnavailableError: If the source file cannot be read
    """
    project = host.read_project()
    path = resolve_source_path(
        str(source_file_path) if source_file_path else None,
        host.project_directory(),
        project.properties,
    )
    logger.info("Importing %s into '%s'", path, project.name)

    document = host.read_midi_file(path, project.tpqn)

    rules = list(exclusion_rules)
    if restrict_to_working_range:
        rules.append(WorkingRangeExclusion(project.working_range_start,
                                           project.working_range_end))

    plan = plan_import(
        project,
        document,
        rules=rules,
        prefix=None if name_table is not None else track_name_prefix,
        name_table=name_table,
        offset=offset,
        stripped_controllers=stripped_controllers,
    )
    _commit(host, project, plan, "Import MIDI")
    return plan.summary


def convert_regions_to_structure_track(host: HostAdapter,
                                       structure_track_name: str,
                                       minimal_length: Optional[int] = None
                                       ) -> StructureSummary:
    """Replace the structure track contents by one item per project region."""
    project = host.read_project()
    plan = plan_regions_to_structure(project, structure_track_name, minimal_length)
    _commit(host, project, plan, "Regions to Structure Track")
    return plan.summary


def convert_structure_track_to_regions(host: HostAdapter,
                                       structure_track_name: str,
                                       tail_length: Optional[int] = None
                                       ) -> RegionSummary:
    """
    Replace all project regions by the ones encoded in the structure track.

    Raises:
        ConfigurationError: If there is no structure track
    """
    project = host.read_project()
    plan = plan_structure_to_regions(project, structure_track_name, tail_length)
    _commit(host, project, plan, "Structure Track to Regions")
    return plan.summary


def normalize_voice_tracks(host: HostAdapter,
                           track_name_prefix: str,
                           default_velocity: int,
                           quantize_grid_ticks: Optional[int] = None,
                           duration_grid_ticks: Optional[int] = None,
                           alternative_grid_ticks: Sequence[int] = (),
                           rounding_mode: str = ROUND_HALF_UP,
                           stripped_controllers: Optional[FrozenSet[int]] = None
                           ) -> NormalizeSummary:
    """
    Normalize all voice tracks.

    Args:
        host: Host adapter
        track_name_prefix: Voice track name prefix
        default_velocity: Velocity for every note
        quantize_grid_ticks: Start grid (None = a 32nd note of the project)
        duration_grid_ticks: Duration grid (None = start grid)
        alternative_grid_ticks: Further candidate grids
        rounding_mode: "half_up" or "half_down"
        stripped_controllers: CC numbers to remove (None = ambience sends)
    """
    project = host.read_project()

    grid = quantize_grid_ticks or max(1, project.tpqn // 8)
    settings_args = dict(
        grid_ticks=grid,
        default_velocity=default_velocity,
        duration_grid_ticks=duration_grid_ticks,
        alternative_grid_ticks=tuple(alternative_grid_ticks),
        rounding_mode=rounding_mode,
    )
    if stripped_controllers is not None:
        settings_args["stripped_controllers"] = frozenset(stripped_controllers)
    settings = NormalizationSettings(**settings_args)

    plan = plan_normalize(project, track_name_prefix, settings)
    _commit(host, project, plan, "Normalize Voice Tracks")
    return plan.summary


def _run_import(host: HostAdapter, configuration: SyncConfiguration):
    rules = []
    if configuration.excluded_item_name_patterns:
        rules.append(ItemNameExclusion(configuration.excluded_item_name_patterns))

    return import_and_replace(
        host,
        configuration.import_source_file_path,
        configuration.track_name_prefix,
        rules,
        restrict_to_working_range=configuration.restrict_import_to_working_range,
        offset=configuration.import_offset_ticks,
        stripped_controllers=configuration.import_stripped_controllers,
    )


def _run_regions_to_structure(host: HostAdapter, configuration: SyncConfiguration):
    return convert_regions_to_structure_track(
        host,
        configuration.structure_track_name,
        configuration.minimal_structure_item_ticks,
    )


def _run_structure_to_regions(host: HostAdapter, configuration: SyncConfiguration):
    return convert_structure_track_to_regions(
        host,
        configuration.structure_track_name,
        configuration.structure_tail_ticks,
    )


def _run_normalize(host: HostAdapter, configuration: SyncConfiguration):
    return normalize_voice_tracks(
        host,
        configuration.track_name_prefix,
        configuration.default_velocity,
        configuration.quantize_grid_ticks,
        duration_grid_ticks=configuration.duration_grid_ticks,
        alternative_grid_ticks=configuration.alternative_grid_ticks,
        rounding_mode=configuration.rounding_mode,
        stripped_controllers=configuration.stripped_controllers,
    )


ACTIONS: Dict[str, Callable[[HostAdapter, SyncConfiguration], object]] = {
    ACTION_IMPORT: _run_import,
    ACTION_REGIONS_TO_STRUCTURE: _run_regions_to_structure,
    ACTION_STRUCTURE_TO_REGIONS: _run_structure_to_regions,
    ACTION_NORMALIZE: _run_normalize,
}


def run_action(name: str, host: HostAdapter,
               configuration: Optional[SyncConfiguration] = None):
    """
    Run the action called name with parameters from configuration.

    Returns:
        The action's summary

    Raises:
        ConfigurationError: If the action is unknown
    """
    if name not in ACTIONS:
        raise ConfigurationError(
            f"Unknown action '{name}', expected one of {', '.join(ACTIONS)}"
        )

    configuration = configuration or SyncConfiguration()
    logger.info("Running action '%s'", name)
    return ACTIONS[name](host, configuration)
