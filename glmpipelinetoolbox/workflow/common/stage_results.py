"""Explicit results of the setup and submission stages of each level."""
from os import makedirs
from os.path import exists
from os.path import join

from attrs import define
from attrs import field
from pandas import DataFrame
from pandas import read_csv

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.artifact import Artifact
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionMarker
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionState
from glmpipelinetoolbox.standalone_utilities.timestamping import parse_timestamp
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

MODEL_COLUMNS = ('l1_model', 'l2_model', 'l3_model')
SETUP_COLUMNS = (
    'subject_id', 'session', 'run_number', *MODEL_COLUMNS, 'cope',
    'config_path', 'output_dir', 'result_count', 'config_modified',
    'output_dir_exists', 'completion', 'start_time', 'end_time',
)


@define(frozen=True)
class UnitError:
    """A unit that was left out of its level, and why."""
    unit: AnalysisUnit
    message: str
    error_type: str = 'IntegrityError'


def setup_filename(working_directory: str, level: AnalysisLevel) -> str:
    return join(working_directory, f'setup_l{int(level)}.tsv')


def _text(value) -> str:
    return '' if value is None else str(value)


def _optional_text(value: str) -> str | None:
    return None if value == '' else value


def _optional_int(value: str) -> int | None:
    return None if value == '' else int(value)


def _artifact_row(artifact: Artifact) -> dict[str, str]:
    unit = artifact.unit
    models = list(unit.models) + [''] * (len(MODEL_COLUMNS) - len(unit.models))
    modified = artifact.config_modified.isoformat() if artifact.config_modified else None
    row = {
        'subject_id': _text(unit.subject_id),
        'session': _text(unit.session),
        'run_number': _text(unit.run_number),
        'cope': _text(unit.cope),
        'config_path': artifact.config_path,
        'output_dir': artifact.output_dir,
        'result_count': str(artifact.result_count),
        'config_modified': _text(modified),
        'output_dir_exists': str(artifact.output_dir_exists),
        'completion': artifact.completion.state.value,
        'start_time': _text(artifact.completion.start_time),
        'end_time': _text(artifact.completion.end_time),
    }
    row.update(dict(zip(MODEL_COLUMNS, models)))
    return row


def _artifact_from_row(level: AnalysisLevel, row) -> Artifact:
    models = tuple(row[column] for column in MODEL_COLUMNS[:int(level)])
    unit = AnalysisUnit(
        level=level,
        subject_id=_optional_text(row['subject_id']),
        session=_optional_text(row['session']),
        run_number=_optional_int(row['run_number']),
        models=models,
        cope=_optional_int(row['cope']),
    )
    return Artifact(
        unit=unit,
        config_path=row['config_path'],
        output_dir=row['output_dir'],
        rendered_text='',
        result_count=int(row['result_count']),
        config_modified=parse_timestamp(row['config_modified']),
        output_dir_exists=row['output_dir'] != '' and row['output_dir_exists'] == 'True',
        completion=CompletionMarker(
            CompletionState(row['completion']),
            _optional_text(row['start_time']),
            _optional_text(row['end_time']),
        ),
    )


@define(frozen=True, eq=False)
class ModelSetupResult:
    """The artifacts generated for one level, and the units that could not be set up.

    Artifact states are as of setup time; query a ``StateTracker`` for current status.
    """
    level: AnalysisLevel
    artifacts: tuple[Artifact, ...]
    errors: tuple[UnitError, ...] = field(factory=tuple)

    def artifacts_for_models(self, model_names: list[str] | None = None) -> list[Artifact]:
        if model_names is None:
            return list(self.artifacts)
        return [a for a in self.artifacts if a.unit.model_name in model_names]

    def to_frame(self) -> DataFrame:
        rows = [_artifact_row(artifact) for artifact in self.artifacts]
        return DataFrame(rows, columns=list(SETUP_COLUMNS))

    @classmethod
    def from_frame(cls, level: AnalysisLevel, frame: DataFrame) -> 'ModelSetupResult':
        level = AnalysisLevel(level)
        artifacts = tuple(_artifact_from_row(level, row) for _, row in frame.iterrows())
        return cls(level, artifacts)

    def write(self, working_directory: str) -> str:
        makedirs(working_directory, exist_ok=True)
        filename = setup_filename(working_directory, self.level)
        self.to_frame().to_csv(filename, sep='\t', index=False)
        logger.info('Wrote level %s setup of %s units to %s', int(self.level), len(self.artifacts), filename)
        return filename

    @classmethod
    def read(cls, working_directory: str, level: AnalysisLevel) -> 'ModelSetupResult | None':
        filename = setup_filename(working_directory, level)
        if not exists(filename):
            return None
        frame = read_csv(filename, sep='\t', dtype=str, keep_default_na=False)
        return cls.from_frame(level, frame)


@define(frozen=True)
class SubmissionResult:
    """What one ``run_level`` call handed to the scheduler."""
    level: AnalysisLevel
    job_ids: tuple[str, ...]
    queued: tuple[Artifact, ...]
    failed_batches: tuple[str, ...] = ()
    manifest_path: str | None = None
