"""Inputs an artifact generator needs beyond the resolved design, one variant per level."""
from attrs import define
from attrs import field


@define(frozen=True)
class RunLevelInputs:
    """The functional image of one run and the timing file of each regressor."""
    functional_path: str
    n_volumes: int
    tr: float
    timing_files: dict[str, str] = field(factory=dict)


@define(frozen=True)
class HigherLevelInputs:
    """Lower-level output directories, in design-row order.

    ``lower_level_result_count`` is the number of results present in each lower-level
    output (the contrast count its configuration declared);
    ``declared_result_count`` is the number the lower-level model declares now.
    """
    input_dirs: tuple[str, ...]
    lower_level_result_count: int
    declared_result_count: int


GeneratorInputs = RunLevelInputs | HigherLevelInputs
