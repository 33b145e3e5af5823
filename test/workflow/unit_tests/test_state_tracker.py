from itertools import product
from os import makedirs
from os import remove
from os import utime
from os.path import join

from glmpipelinetoolbox.db.artifact_cache import SQLiteArtifactCache
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.completion_markers import COMPLETE_MARKER
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionMarker
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionState
from glmpipelinetoolbox.workflow.common.completion_markers import FAILED_MARKER
from glmpipelinetoolbox.workflow.common.completion_markers import read_completion_marker
from glmpipelinetoolbox.workflow.common.completion_markers import write_completion_marker
from glmpipelinetoolbox.workflow.common.state_tracker import StateTracker
from glmpipelinetoolbox.workflow.common.state_tracker import UnitState
from glmpipelinetoolbox.workflow.common.state_tracker import UnitStatus
from glmpipelinetoolbox.workflow.common.state_tracker import is_eligible

UNIT = AnalysisUnit(AnalysisLevel.RUN, 'A', '1', 2, ('pe_only',))
START = '2024-03-01T09:00:00-05:00'
END = '2024-03-01T09:20:00-05:00'


def paths(tmp_path) -> tuple[str, str]:
    return join(tmp_path, 'FEAT_LVL1_run2.fsf'), join(tmp_path, 'FEAT_LVL1_run2.feat')


def test_status_transitions(tmp_path):
    config_path, output_dir = paths(tmp_path)
    tracker = StateTracker()
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.NEEDS_ARTIFACT
    with open(config_path, 'wt', encoding='utf-8') as file:
        file.write('set fmri(level) 1\n')
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.ARTIFACT_CURRENT_NEEDS_RUN
    makedirs(output_dir)
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.RUNNING_OR_UNKNOWN
    write_completion_marker(output_dir, START, END, succeeded=True)
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.COMPLETE
    remove(join(output_dir, COMPLETE_MARKER))
    write_completion_marker(output_dir, START, END, succeeded=False)
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.FAILED


def test_marker_contents(tmp_path):
    _, output_dir = paths(tmp_path)
    write_completion_marker(output_dir, START, END, succeeded=True)
    marker = read_completion_marker(output_dir)
    assert marker == CompletionMarker(CompletionState.COMPLETE, START, END)


def test_newest_marker_wins(tmp_path):
    _, output_dir = paths(tmp_path)
    write_completion_marker(output_dir, START, END, succeeded=False)
    write_completion_marker(output_dir, START, END, succeeded=True)
    utime(join(output_dir, FAILED_MARKER), (1000, 1000))
    utime(join(output_dir, COMPLETE_MARKER), (2000, 2000))
    assert read_completion_marker(output_dir).state == CompletionState.COMPLETE
    utime(join(output_dir, FAILED_MARKER), (3000, 3000))
    assert read_completion_marker(output_dir).state == CompletionState.FAILED


def test_eligibility():
    for config_exists, output_dir_exists, state in product(
        (False, True), (False, True), list(CompletionState)
    ):
        unit_state = UnitState(config_exists, output_dir_exists, CompletionMarker(state))
        assert is_eligible(unit_state, force=True)
        expected = not (output_dir_exists and state == CompletionState.COMPLETE)
        assert is_eligible(unit_state, force=False) == expected


def test_cache_is_refreshed_from_filesystem(tmp_path):
    config_path, output_dir = paths(tmp_path)
    cache = SQLiteArtifactCache(join(tmp_path, 'cache.sqlite'))
    tracker = StateTracker(cache)
    write_completion_marker(output_dir, START, END, succeeded=True)
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.COMPLETE
    cached = UnitState.from_frame(cache.read(tracker._cache_key(UNIT)))
    assert cached.completion.state == CompletionState.COMPLETE
    assert cached.completion.end_time == END

    remove(join(output_dir, COMPLETE_MARKER))
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.RUNNING_OR_UNKNOWN
    cached = UnitState.from_frame(cache.read(tracker._cache_key(UNIT)))
    assert cached.completion.state == CompletionState.ABSENT
    assert cached.output_dir_exists


def test_stale_cache_entry_is_not_trusted(tmp_path):
    config_path, output_dir = paths(tmp_path)
    cache = SQLiteArtifactCache(join(tmp_path, 'cache.sqlite'))
    tracker = StateTracker(cache)
    stale = UnitState(True, True, CompletionMarker(CompletionState.FAILED, START, END))
    cache.write(tracker._cache_key(UNIT), stale.to_frame())
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.NEEDS_ARTIFACT
    cached = UnitState.from_frame(cache.read(tracker._cache_key(UNIT)))
    assert not cached.output_dir_exists


def test_later_failure_overrides_cached_completion(tmp_path):
    config_path, output_dir = paths(tmp_path)
    cache = SQLiteArtifactCache(join(tmp_path, 'cache.sqlite'))
    tracker = StateTracker(cache)
    write_completion_marker(output_dir, START, END, succeeded=True)
    utime(join(output_dir, COMPLETE_MARKER), (1000, 1000))
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.COMPLETE

    write_completion_marker(output_dir, START, END, succeeded=False)
    utime(join(output_dir, FAILED_MARKER), (2000, 2000))
    assert tracker.status(UNIT, config_path, output_dir) == UnitStatus.FAILED
    cached = UnitState.from_frame(cache.read(tracker._cache_key(UNIT)))
    assert cached.completion.state == CompletionState.FAILED
    state = tracker.state(UNIT, config_path, output_dir)
    assert is_eligible(state, force=False)
