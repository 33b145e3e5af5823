"""A materialized configuration file for one analysis unit, and what is on disk for it."""
from datetime import datetime

from attrs import define
from attrs import field

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionMarker
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionState


@define(frozen=True)
class Artifact:
    """``result_count`` is the number of contrasts the configuration declares, i.e.
    the number of results a higher level can combine from this unit's output.
    ``written`` records whether ``generate`` wrote the file on this call.
    """
    unit: AnalysisUnit
    config_path: str
    output_dir: str
    rendered_text: str = field(repr=False)
    result_count: int
    config_modified: datetime | None = None
    output_dir_exists: bool = False
    completion: CompletionMarker = CompletionMarker(CompletionState.ABSENT)
    written: bool = False
