"""Per-unit completion status from the filesystem, mirrored into the artifact cache."""
from enum import Enum
from os.path import exists
from os.path import isdir

from attrs import define
from pandas import DataFrame

from glmpipelinetoolbox.db.artifact_cache import ArtifactCache
from glmpipelinetoolbox.db.artifact_cache import CacheKey
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionMarker
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionState
from glmpipelinetoolbox.workflow.common.completion_markers import complete_marker_is_current
from glmpipelinetoolbox.workflow.common.completion_markers import read_completion_marker
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


class UnitStatus(Enum):
    NEEDS_ARTIFACT = 'needs artifact'
    ARTIFACT_CURRENT_NEEDS_RUN = 'artifact current, needs run'
    RUNNING_OR_UNKNOWN = 'running or unknown'
    COMPLETE = 'complete'
    FAILED = 'failed'


@define(frozen=True)
class UnitState:
    """What is on disk for one unit."""
    config_exists: bool
    output_dir_exists: bool
    completion: CompletionMarker = CompletionMarker(CompletionState.ABSENT)

    def to_frame(self) -> DataFrame:
        return DataFrame([{
            'config_exists': self.config_exists,
            'output_dir_exists': self.output_dir_exists,
            'completion': self.completion.state.value,
            'start_time': self.completion.start_time,
            'end_time': self.completion.end_time,
        }])

    @classmethod
    def from_frame(cls, frame: DataFrame) -> 'UnitState':
        row = frame.iloc[0]
        def text(value) -> str | None:
            return None if value is None or value != value else str(value)
        return cls(
            config_exists=bool(row['config_exists']),
            output_dir_exists=bool(row['output_dir_exists']),
            completion=CompletionMarker(
                CompletionState(row['completion']),
                text(row['start_time']),
                text(row['end_time']),
            ),
        )


def classify(state: UnitState) -> UnitStatus:
    if not state.output_dir_exists:
        if state.config_exists:
            return UnitStatus.ARTIFACT_CURRENT_NEEDS_RUN
        return UnitStatus.NEEDS_ARTIFACT
    if state.completion.state == CompletionState.COMPLETE:
        return UnitStatus.COMPLETE
    if state.completion.state == CompletionState.FAILED:
        return UnitStatus.FAILED
    return UnitStatus.RUNNING_OR_UNKNOWN


def is_eligible(state: UnitState, force: bool) -> bool:
    """Whether a unit should be (re)submitted."""
    return force or not state.output_dir_exists or state.completion.state != CompletionState.COMPLETE


def observe(config_path: str, output_dir: str) -> UnitState:
    output_dir_exists = isdir(output_dir)
    if output_dir_exists:
        completion = read_completion_marker(output_dir)
    else:
        completion = CompletionMarker(CompletionState.ABSENT)
    return UnitState(exists(config_path), output_dir_exists, completion)


class StateTracker:
    """Status queries for analysis units.

    Marker files on disk are authoritative. When a cache is supplied, an entry
    recording completion is trusted as long as the completion marker still
    exists and no newer failure marker is present; any other entry is checked against a full observation and
    rewritten if it disagrees.
    """
    cache: ArtifactCache | None

    def __init__(self, cache: ArtifactCache | None = None):
        self.cache = cache

    @staticmethod
    def _cache_key(unit: AnalysisUnit) -> CacheKey:
        return CacheKey(
            str(unit.subject_id) if unit.subject_id is not None else '',
            str(unit.session) if unit.session is not None else '',
            unit.run_number,
            unit.table_name(),
        )

    def _read_cached(self, unit: AnalysisUnit) -> UnitState | None:
        if self.cache is None:
            return None
        payload = self.cache.read(self._cache_key(unit))
        if payload is None or payload.shape[0] == 0:
            return None
        return UnitState.from_frame(payload)

    def state(self, unit: AnalysisUnit, config_path: str, output_dir: str) -> UnitState:
        cached = self._read_cached(unit)
        if cached is not None and cached.completion.state == CompletionState.COMPLETE:
            if complete_marker_is_current(output_dir):
                return cached
        observed = observe(config_path, output_dir)
        if self.cache is not None and observed != cached:
            if cached is not None:
                logger.debug('Refreshing stale cache entry for %s.', unit.describe())
            self.cache.write(self._cache_key(unit), observed.to_frame())
        return observed

    def status(self, unit: AnalysisUnit, config_path: str, output_dir: str) -> UnitStatus:
        return classify(self.state(unit, config_path, output_dir))

    def record(self, unit: AnalysisUnit, config_path: str, output_dir: str) -> UnitState:
        """Observe the filesystem and write the result through to the cache."""
        observed = observe(config_path, output_dir)
        if self.cache is not None:
            self.cache.write(self._cache_key(unit), observed.to_frame())
        return observed
