"""Completion marker files written by batch scripts into each output directory.

A marker holds two lines: the start time and the end time of the estimation
tool's run. Its file name records the outcome.
"""
from enum import Enum
from os import replace
from os import makedirs
from os.path import exists
from os.path import getmtime
from os.path import join

from attrs import define

from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

COMPLETE_MARKER = '.feat_complete'
FAILED_MARKER = '.feat_fail'


class CompletionState(Enum):
    ABSENT = 'absent'
    COMPLETE = 'complete'
    FAILED = 'failed'


@define(frozen=True)
class CompletionMarker:
    state: CompletionState
    start_time: str | None = None
    end_time: str | None = None


def _read_marker_lines(filename: str) -> tuple[str | None, str | None]:
    with open(filename, 'rt', encoding='utf-8') as file:
        lines = [line.strip() for line in file.read().splitlines()]
    if len(lines) < 2:
        logger.warning('Marker file %s has %s line(s), expected 2.', filename, len(lines))
    start_time = lines[0] if len(lines) > 0 and lines[0] != '' else None
    end_time = lines[1] if len(lines) > 1 and lines[1] != '' else None
    return start_time, end_time


def read_completion_marker(output_dir: str) -> CompletionMarker:
    """The marker state of an output directory.

    If both markers are present the more recently written one wins, since a
    batch script clears only a stale failure marker before rerunning.
    """
    complete = join(output_dir, COMPLETE_MARKER)
    failed = join(output_dir, FAILED_MARKER)
    candidates = [
        (getmtime(filename), state, filename)
        for filename, state in ((complete, CompletionState.COMPLETE), (failed, CompletionState.FAILED))
        if exists(filename)
    ]
    if len(candidates) == 0:
        return CompletionMarker(CompletionState.ABSENT)
    _, state, filename = max(candidates, key=lambda candidate: candidate[0])
    start_time, end_time = _read_marker_lines(filename)
    return CompletionMarker(state, start_time, end_time)


def complete_marker_is_current(output_dir: str) -> bool:
    """Whether the complete marker exists and no newer failure marker overrides it."""
    complete = join(output_dir, COMPLETE_MARKER)
    failed = join(output_dir, FAILED_MARKER)
    if not exists(complete):
        return False
    return not exists(failed) or getmtime(complete) >= getmtime(failed)


def write_completion_marker(output_dir: str, start_time: str, end_time: str, succeeded: bool) -> str:
    """Atomically write a marker, as the batch-script runner does."""
    makedirs(output_dir, exist_ok=True)
    filename = join(output_dir, COMPLETE_MARKER if succeeded else FAILED_MARKER)
    temporary = f'{filename}.tmp'
    with open(temporary, 'wt', encoding='utf-8') as file:
        file.write(f'{start_time}\n{end_time}\n')
    replace(temporary, filename)
    return filename
