"""The canonical table of runs, with run-level and subject-level exclusions."""
from attrs import define
from pandas import DataFrame
from pandas import Series
from pandas import read_csv

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

KEY_COLUMNS = ('id', 'session', 'run_number')
FLAG_COLUMNS = ('exclude_run', 'exclude_subject')

_TRUE_STRINGS = {'true', 't', 'yes', 'y', '1'}
_FALSE_STRINGS = {'false', 'f', 'no', 'n', '0', ''}


@define(frozen=True)
class RunRecord:
    subject_id: str
    session: str
    run_number: int
    exclude_run: bool
    exclude_subject: bool


def _as_boolean(column: Series, name: str) -> Series:
    if column.dtype == bool:
        return column
    def convert(value) -> bool:
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS or text == 'nan':
            return False
        raise ConfigurationError(f'Could not interpret "{value}" in column {name} as a boolean.')
    return column.map(convert).astype(bool)


class RunRegistry:
    """Read-only view of the run table.

    Row positions of the table (0 to n-1, in file order) are the row positions of
    every subject-level design matrix, so the order is never changed after
    construction.
    """
    run_data: DataFrame

    def __init__(self, run_data: DataFrame):
        missing = [c for c in KEY_COLUMNS + FLAG_COLUMNS if c not in run_data.columns]
        if missing:
            raise ConfigurationError(f'Run table is missing required columns: {missing}')
        table = run_data.copy().reset_index(drop=True)
        table['id'] = table['id'].astype(str)
        table['session'] = table['session'].astype(str)
        table['run_number'] = table['run_number'].astype(int)
        for flag in FLAG_COLUMNS:
            table[flag] = _as_boolean(table[flag], flag)
        duplicated = table.duplicated(subset=list(KEY_COLUMNS))
        if duplicated.any():
            rows = table[duplicated][list(KEY_COLUMNS)].to_dict('records')
            raise ConfigurationError(f'Run table has duplicate subject/session/run entries: {rows}')
        self.run_data = table

    @classmethod
    def from_file(cls, filename: str) -> 'RunRegistry':
        return cls(read_csv(filename, sep='\t', keep_default_na=False, dtype={'id': str, 'session': str}))

    @property
    def table(self) -> DataFrame:
        return self.run_data.copy()

    def __len__(self) -> int:
        return self.run_data.shape[0]

    def records(self) -> tuple[RunRecord, ...]:
        return tuple(
            RunRecord(row['id'], row['session'], int(row['run_number']),
                      bool(row['exclude_run']), bool(row['exclude_subject']))
            for _, row in self.run_data.iterrows()
        )

    def subject_excluded(self) -> Series:
        """Per run, whether any run of the same subject/session carries exclude_subject."""
        grouped = self.run_data.groupby(['id', 'session'], sort=False)['exclude_subject']
        return grouped.transform('any').astype(bool)

    def inclusion_mask(self) -> Series:
        return ~self.run_data['exclude_run'] & ~self.subject_excluded()

    def included_runs(self) -> DataFrame:
        return self.run_data[self.inclusion_mask()].copy()

    def excluded_runs(self) -> DataFrame:
        return self.run_data[~self.inclusion_mask()].copy()

    def log_exclusions(self, context: str) -> None:
        excluded = self.excluded_runs()
        if excluded.shape[0] == 0:
            return
        logger.info('In %s, the following runs will be excluded:', context)
        for _, row in excluded.iterrows():
            logger.info('  subject: %s, session: %s, run_number: %s',
                        row['id'], row['session'], row['run_number'])

    def subject_table(self) -> DataFrame:
        """One row per subject/session in order of first appearance.

        This is the pre-filter table whose row positions align with group-level
        design matrices. ``included`` is true when at least one run survives.
        """
        table = self.run_data.assign(included=self.inclusion_mask())
        subjects = table.groupby(['id', 'session'], sort=False).agg(
            included=('included', 'any'),
            n_runs=('run_number', 'size'),
        ).reset_index()
        return subjects

    def level_table(self, level: AnalysisLevel) -> DataFrame:
        if level == AnalysisLevel.SUBJECT:
            return self.table
        if level == AnalysisLevel.GROUP:
            return self.subject_table()
        raise ValueError(f'No design-matrix level table for level {int(level)}.')

    def surviving_rows(self, level: AnalysisLevel, subject_id: str | None, session: str | None) -> list[int]:
        """Row positions in the level table of a unit's surviving children, in table order."""
        if level == AnalysisLevel.SUBJECT:
            table = self.run_data
            mask = (table['id'] == subject_id) & (table['session'] == session) & self.inclusion_mask()
            return [int(i) for i in table.index[mask]]
        if level == AnalysisLevel.GROUP:
            subjects = self.subject_table()
            mask = subjects['included']
            if session is not None:
                mask = mask & (subjects['session'] == session)
            return [int(i) for i in subjects.index[mask]]
        raise ValueError(f'Level {int(level)} units have no child rows.')

    def subject_sessions(self) -> list[tuple[str, str]]:
        included = self.included_runs()
        pairs = included[['id', 'session']].drop_duplicates()
        return [(row['id'], row['session']) for _, row in pairs.iterrows()]
