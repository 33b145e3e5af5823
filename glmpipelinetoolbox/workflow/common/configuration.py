"""The versioned pipeline configuration value and its INI-file loader."""
import re
from configparser import ConfigParser
from os.path import abspath
from os.path import dirname
from os.path import isabs
from os.path import join

from attrs import define
from attrs import evolve
from attrs import field
from pandas import DataFrame

from glmpipelinetoolbox.db.artifact_cache import ArtifactCache
from glmpipelinetoolbox.db.artifact_cache import SQLiteArtifactCache
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.model_spec_store import ModelSpecStore
from glmpipelinetoolbox.workflow.common.model_specification import GroupLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import RunLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import SubjectLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import diagonal_contrasts
from glmpipelinetoolbox.workflow.common.model_specification import read_contrasts
from glmpipelinetoolbox.workflow.common.model_specification import read_model_matrix
from glmpipelinetoolbox.workflow.common.run_registry import RunRegistry
from glmpipelinetoolbox.workflow.common.stage_results import ModelSetupResult
from glmpipelinetoolbox.workflow.scheduling.dialects import ResourceRequest
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

DEFAULT_FEAT_TIME = {
    AnalysisLevel.RUN: '1:00:00',
    AnalysisLevel.SUBJECT: '0:30:00',
    AnalysisLevel.GROUP: '4:00:00',
}
DEFAULT_FEAT_MEMGB = {
    AnalysisLevel.RUN: 12.0,
    AnalysisLevel.SUBJECT: 12.0,
    AnalysisLevel.GROUP: 32.0,
}
TIMING_PATTERN_FIELDS = {'subject': 'S', 'session': '1', 'run': 1, 'regressor': 'R'}
MODEL_SECTION = re.compile(r'^l([123]) model:\s*(\S.*)$')


@define(frozen=True, eq=False)
class ParallelSettings:
    cpus_per_job: int = 8
    jobs_per_cpu: int = 2
    compute_environment: tuple[str, ...] = ()
    scheduler_arguments: tuple[str, ...] = ()
    feat_time: dict[AnalysisLevel, str] = field(factory=lambda: dict(DEFAULT_FEAT_TIME))
    feat_memgb: dict[AnalysisLevel, float] = field(factory=lambda: dict(DEFAULT_FEAT_MEMGB))

    def resources_for(self, level: AnalysisLevel) -> ResourceRequest:
        level = AnalysisLevel(level)
        return ResourceRequest(
            cpus=self.cpus_per_job,
            wall_time=self.feat_time[level],
            memory_gb=self.feat_memgb[level],
            jobs_per_cpu=self.jobs_per_cpu,
        )


@define(frozen=True)
class CacheSettings:
    backend: str = 'none'
    sqlite_file: str | None = None
    database_config_file: str | None = None

    def create_cache(self) -> ArtifactCache | None:
        if self.backend == 'none':
            return None
        if self.backend == 'sqlite':
            if self.sqlite_file is None:
                raise ConfigurationError('The sqlite cache backend requires [cache] sqlite_file.')
            return SQLiteArtifactCache(self.sqlite_file)
        if self.backend == 'postgres':
            from glmpipelinetoolbox.db.postgres_cache import PostgresArtifactCache  # pylint: disable=import-outside-toplevel
            return PostgresArtifactCache(self.database_config_file)
        raise ConfigurationError(
            f'Cache backend "{self.backend}" is not supported. Choose from: none, sqlite, postgres')


@define(frozen=True, eq=False)
class PipelineConfiguration:
    """Everything one pipeline invocation needs, as an immutable value.

    Setup stages never modify a configuration. ``with_setup`` returns a new
    configuration carrying the stage's result and an incremented ``version``.
    """
    working_directory: str
    output_directory: str
    registry: RunRegistry
    models: ModelSpecStore
    scheduler: str = 'slurm'
    glm_software: tuple[str, ...] = ('fsl',)
    parallel: ParallelSettings = field(factory=ParallelSettings)
    cache: CacheSettings = field(factory=CacheSettings)
    log_file: str | None = None
    setups: dict[AnalysisLevel, ModelSetupResult] = field(factory=dict)
    version: int = 0

    def setup_for(self, level: AnalysisLevel) -> ModelSetupResult | None:
        return self.setups.get(AnalysisLevel(level))

    def with_setup(self, result: ModelSetupResult) -> 'PipelineConfiguration':
        setups = dict(self.setups)
        setups[result.level] = result
        return evolve(self, setups=setups, version=self.version + 1)


def _resolve_path(base_directory: str, path: str | None) -> str | None:
    if path is None or path.strip() == '':
        return None
    path = path.strip()
    if isabs(path):
        return path
    return abspath(join(base_directory, path))


def _split_lines(value: str | None) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(line.strip() for line in value.splitlines() if line.strip() != '')


def _split_names(value: str) -> tuple[str, ...]:
    return tuple(name for name in re.split(r'[,\s]+', value.strip()) if name != '')


def _check_timing_pattern(model_name: str, pattern: str) -> None:
    try:
        pattern.format(**TIMING_PATTERN_FIELDS)
    except (KeyError, IndexError, ValueError) as error:
        raise ConfigurationError(
            f'timing_file_pattern of L1 model "{model_name}" may only use the fields '
            f'{sorted(TIMING_PATTERN_FIELDS)}: {pattern}'
        ) from error


def _intercept_matrix(n_rows: int) -> DataFrame:
    return DataFrame({'intercept': [1.0] * n_rows})


def _load_run_level_model(name: str, section, base_directory: str) -> RunLevelModel:
    if 'regressors' not in section or 'timing_file_pattern' not in section:
        raise ConfigurationError(
            f'Section [l1 model: {name}] needs regressors and timing_file_pattern.')
    regressors = _split_names(section['regressors'])
    pattern = _resolve_path(base_directory, section['timing_file_pattern'])
    _check_timing_pattern(name, pattern)
    contrasts_file = _resolve_path(base_directory, section.get('contrasts_file'))
    if contrasts_file is None:
        contrasts = diagonal_contrasts(regressors)
    else:
        contrasts = read_contrasts(contrasts_file, list(regressors))
    return RunLevelModel(name, regressors, contrasts, pattern)


def _load_design(name: str, section, base_directory: str, n_rows: int) -> tuple[DataFrame, DataFrame]:
    matrix_file = _resolve_path(base_directory, section.get('model_matrix_file'))
    if matrix_file is None:
        logger.info('No model_matrix_file for model %s; using an intercept-only design.', name)
        model_matrix = _intercept_matrix(n_rows)
    else:
        model_matrix = read_model_matrix(matrix_file)
    contrasts_file = _resolve_path(base_directory, section.get('contrasts_file'))
    if contrasts_file is None:
        contrasts = diagonal_contrasts(list(model_matrix.columns))
    else:
        contrasts = read_contrasts(contrasts_file, list(model_matrix.columns))
    return model_matrix, contrasts


def _load_parallel_settings(parser: ConfigParser) -> ParallelSettings:
    if not parser.has_section('parallel'):
        return ParallelSettings()
    section = parser['parallel']
    feat_time = dict(DEFAULT_FEAT_TIME)
    feat_memgb = dict(DEFAULT_FEAT_MEMGB)
    for level in AnalysisLevel:
        key = f'l{int(level)}_feat_time'
        if key in section:
            feat_time[level] = section[key].strip()
        key = f'l{int(level)}_feat_memgb'
        if key in section:
            feat_memgb[level] = section.getfloat(key)
    return ParallelSettings(
        cpus_per_job=section.getint('cpus_per_job', fallback=8),
        jobs_per_cpu=section.getint('jobs_per_cpu', fallback=2),
        compute_environment=_split_lines(section.get('compute_environment')),
        scheduler_arguments=_split_lines(section.get('scheduler_arguments')),
        feat_time=feat_time,
        feat_memgb=feat_memgb,
    )


def _load_cache_settings(parser: ConfigParser, base_directory: str) -> CacheSettings:
    if not parser.has_section('cache'):
        return CacheSettings()
    section = parser['cache']
    return CacheSettings(
        backend=section.get('backend', fallback='none').strip().lower(),
        sqlite_file=_resolve_path(base_directory, section.get('sqlite_file')),
        database_config_file=_resolve_path(base_directory, section.get('database_config_file')),
    )


def load_configuration(config_file: str) -> PipelineConfiguration:
    """Read a pipeline configuration INI file.

    Relative paths are interpreted relative to the directory containing the file.
    """
    parser = ConfigParser(interpolation=None)
    if len(parser.read(config_file)) == 0:
        raise ConfigurationError(f'Could not read configuration file: {config_file}')
    base_directory = dirname(abspath(config_file))
    if not parser.has_section('general'):
        raise ConfigurationError(f'Configuration file {config_file} has no [general] section.')
    general = parser['general']
    missing = [
        key for key in ('working_directory', 'output_directory', 'run_data_file')
        if key not in general
    ]
    if missing:
        raise ConfigurationError(f'Missing [general] configuration values: {missing}')

    registry = RunRegistry.from_file(_resolve_path(base_directory, general['run_data_file']))
    run_level_models = {}
    subject_level_models = {}
    group_level_models = {}
    for section_name in parser.sections():
        match = MODEL_SECTION.match(section_name)
        if match is None:
            continue
        level = AnalysisLevel(int(match.group(1)))
        name = match.group(2).strip()
        section = parser[section_name]
        if level == AnalysisLevel.RUN:
            run_level_models[name] = _load_run_level_model(name, section, base_directory)
        elif level == AnalysisLevel.SUBJECT:
            model_matrix, contrasts = _load_design(name, section, base_directory, len(registry))
            subject_level_models[name] = SubjectLevelModel(
                name,
                model_matrix,
                contrasts,
                by_subject=section.getboolean('by_subject', fallback=False),
            )
        else:
            n_rows = registry.subject_table().shape[0]
            model_matrix, contrasts = _load_design(name, section, base_directory, n_rows)
            group_level_models[name] = GroupLevelModel(name, model_matrix, contrasts)

    return PipelineConfiguration(
        working_directory=_resolve_path(base_directory, general['working_directory']),
        output_directory=_resolve_path(base_directory, general['output_directory']),
        registry=registry,
        models=ModelSpecStore(registry, run_level_models, subject_level_models, group_level_models),
        scheduler=general.get('scheduler', fallback='slurm').strip().lower(),
        glm_software=_split_names(general.get('glm_software', fallback='fsl').lower()),
        parallel=_load_parallel_settings(parser),
        cache=_load_cache_settings(parser, base_directory),
        log_file=_resolve_path(base_directory, general.get('log_file')),
    )
