"""Model specifications, one variant per analysis level.

Design matrices are DataFrames whose index is the row position in the
pre-filter level table (the run table for subject-level models, the
subject/session table for group-level models) and whose columns are regressor
names. Contrast matrices are indexed by contrast name, one column per regressor.
"""
from attrs import define
from attrs import field
from pandas import DataFrame
from pandas import read_csv

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError


def diagonal_contrasts(regressors: list[str] | tuple[str, ...]) -> DataFrame:
    """One contrast per regressor, named after it."""
    regressors = list(regressors)
    rows = [[1.0 if i == j else 0.0 for j in range(len(regressors))] for i in range(len(regressors))]
    return DataFrame(rows, index=regressors, columns=regressors)


def read_model_matrix(filename: str) -> DataFrame:
    matrix = read_csv(filename, sep='\t')
    return matrix.astype(float)


def read_contrasts(filename: str, regressors: list[str]) -> DataFrame:
    contrasts = read_csv(filename, sep='\t', index_col=0)
    unknown = sorted(set(contrasts.columns).difference(regressors))
    if unknown:
        raise ConfigurationError(f'Contrasts file {filename} refers to unknown regressors: {unknown}')
    return contrasts.reindex(columns=regressors, fill_value=0.0).astype(float)


def _check_contrast_columns(model_name: str, regressors: list[str], contrasts: DataFrame) -> None:
    if list(contrasts.columns) != list(regressors):
        raise ConfigurationError(
            f'Contrast columns {list(contrasts.columns)} of model "{model_name}" do not match '
            f'its regressors {list(regressors)}.'
        )


@define(frozen=True, eq=False)
class SubjectOverride:
    """A subject-specific design and contrast pair."""
    subject_id: str
    session: str
    model_matrix: DataFrame
    contrasts: DataFrame


@define(frozen=True, eq=False)
class RunLevelModel:
    """Level-1 model: regressors with timing files, and their contrasts."""
    name: str
    regressors: tuple[str, ...]
    contrasts: DataFrame
    timing_file_pattern: str
    level = AnalysisLevel.RUN

    def __attrs_post_init__(self):
        _check_contrast_columns(self.name, list(self.regressors), self.contrasts)

    @property
    def result_count(self) -> int:
        return self.contrasts.shape[0]


@define(frozen=True, eq=False)
class SubjectLevelModel:
    """Level-2 model combining one subject/session's runs with fixed effects."""
    name: str
    model_matrix: DataFrame
    contrasts: DataFrame
    by_subject: bool = False
    overrides: tuple[SubjectOverride, ...] = field(factory=tuple)
    level = AnalysisLevel.SUBJECT

    def __attrs_post_init__(self):
        _check_contrast_columns(self.name, list(self.model_matrix.columns), self.contrasts)

    @property
    def result_count(self) -> int:
        return self.contrasts.shape[0]


@define(frozen=True, eq=False)
class GroupLevelModel:
    """Level-3 model combining subjects' level-2 results for one session."""
    name: str
    model_matrix: DataFrame
    contrasts: DataFrame
    level = AnalysisLevel.GROUP

    def __attrs_post_init__(self):
        _check_contrast_columns(self.name, list(self.model_matrix.columns), self.contrasts)

    @property
    def result_count(self) -> int:
        return self.contrasts.shape[0]


ModelSpec = RunLevelModel | SubjectLevelModel | GroupLevelModel
