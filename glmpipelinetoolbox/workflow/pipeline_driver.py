"""Sequencing of setup and submission for each analysis level.

Per level, units move through: not set up, specified (design resolved),
generated (configuration file on disk), queued (submitted in a batch), then
running, complete, or failed according to their completion markers. A unit
whose design cannot be resolved or generated is recorded as a ``UnitError``
and left out; the rest of the level proceeds.
"""
from shutil import rmtree

from pandas import DataFrame

from glmpipelinetoolbox.workflow import get_software
from glmpipelinetoolbox.workflow import unsupported_software_names
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.artifact import Artifact
from glmpipelinetoolbox.workflow.common.configuration import PipelineConfiguration
from glmpipelinetoolbox.workflow.common.configuration import load_configuration
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.errors import IntegrityError
from glmpipelinetoolbox.workflow.common.generator_inputs import HigherLevelInputs
from glmpipelinetoolbox.workflow.common.generator_inputs import RunLevelInputs
from glmpipelinetoolbox.workflow.common.model_spec_store import ModelSpecStore
from glmpipelinetoolbox.workflow.common.software_modules import SoftwareModules
from glmpipelinetoolbox.workflow.common.stage_results import ModelSetupResult
from glmpipelinetoolbox.workflow.common.stage_results import SubmissionResult
from glmpipelinetoolbox.workflow.common.stage_results import UnitError
from glmpipelinetoolbox.workflow.common.state_tracker import StateTracker
from glmpipelinetoolbox.workflow.common.state_tracker import UnitStatus
from glmpipelinetoolbox.workflow.common.state_tracker import classify
from glmpipelinetoolbox.workflow.common.state_tracker import is_eligible
from glmpipelinetoolbox.workflow.component_interfaces import ArtifactGenerator
from glmpipelinetoolbox.workflow.scheduling.dialects import get_scheduler_dialect
from glmpipelinetoolbox.workflow.scheduling.job_orchestrator import JobOrchestrator
from glmpipelinetoolbox.standalone_utilities.log_formats import add_file_handler
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

RUN_LEVEL_COLUMNS = ('run_nifti', 'n_volumes', 'tr')


def select_software(names: tuple[str, ...]) -> tuple[str, SoftwareModules]:
    """The first supported estimation software among those configured."""
    for name in names:
        if name in unsupported_software_names:
            logger.warning('Estimation software %s is not supported yet; skipping it.', name)
            continue
        return name, get_software(name)
    raise ConfigurationError(f'None of the configured estimation software is supported: {list(names)}')


def _record_unit_error(errors: list[UnitError], unit: AnalysisUnit, error: Exception) -> None:
    logger.error('Could not set up %s: %s', unit.describe(), error)
    errors.append(UnitError(unit, str(error), type(error).__name__))


class PipelineDriver:
    """Runs the setup and submission stages against a ``PipelineConfiguration``.

    ``configuration`` is replaced, never modified, each time a setup stage completes.
    """
    configuration: PipelineConfiguration
    software_name: str
    software: SoftwareModules
    tracker: StateTracker
    orchestrator: JobOrchestrator

    def __init__(self,
        configuration: PipelineConfiguration,
        tracker: StateTracker | None = None,
        orchestrator: JobOrchestrator | None = None,
    ):
        self.configuration = configuration
        self.software_name, self.software = select_software(configuration.glm_software)
        if tracker is None:
            tracker = StateTracker(configuration.cache.create_cache())
        self.tracker = tracker
        if orchestrator is None:
            orchestrator = JobOrchestrator(
                working_directory=configuration.working_directory,
                dialect=get_scheduler_dialect(configuration.scheduler),
                command=self.software.command,
                compute_environment=list(configuration.parallel.compute_environment),
                scheduler_arguments=list(configuration.parallel.scheduler_arguments),
                postprocessing={
                    level: self.software.postprocessing_for(level) for level in AnalysisLevel
                    if self.software.postprocessing_for(level) is not None
                },
            )
        self.orchestrator = orchestrator

    @classmethod
    def from_config_file(cls, config_file: str) -> 'PipelineDriver':
        """Load a configuration along with any setup stages persisted by earlier invocations."""
        configuration = load_configuration(config_file)
        if configuration.log_file is not None:
            add_file_handler(configuration.log_file)
        for level in AnalysisLevel:
            result = ModelSetupResult.read(configuration.working_directory, level)
            if result is not None:
                logger.debug('Loaded level %s setup with %s units.', int(level), len(result.artifacts))
                configuration = configuration.with_setup(result)
        return cls(configuration)

    def generator(self, level: AnalysisLevel) -> ArtifactGenerator:
        return self.software.generator_for(level)(self.configuration.output_directory)

    def setup_level(self,
        level: AnalysisLevel,
        model_names: list[str] | None = None,
        force: bool = False,
    ) -> ModelSetupResult | None:
        """Resolve and generate configuration files for every unit of one level.

        Returns None, leaving the configuration unchanged, when no runs survive
        exclusion filtering. Raises ``ConfigurationError`` when the previous
        level has not been set up.
        """
        level = AnalysisLevel(level)
        registry = self.configuration.registry
        registry.log_exclusions(f'level {int(level)} setup')
        if registry.included_runs().shape[0] == 0:
            logger.warning('No runs survive exclusion filtering; level %s setup aborted.', int(level))
            return None
        store = self.configuration.models
        if model_names is None:
            model_names = store.model_names(level)
        if level == AnalysisLevel.RUN:
            result = self._setup_run_level(store, model_names, force)
        else:
            previous = self.configuration.setup_for(AnalysisLevel(int(level) - 1))
            if previous is None:
                raise ConfigurationError(
                    f'Level {int(level) - 1} setup must be run before level {int(level)} setup.')
            if level == AnalysisLevel.SUBJECT:
                respecified = store.with_respecified_models(model_names)
                result = self._setup_subject_level(respecified, previous, model_names, force)
            else:
                result = self._setup_group_level(store, previous, model_names, force)
        result.write(self.configuration.working_directory)
        self.configuration = self.configuration.with_setup(result)
        if result.errors:
            logger.warning('%s level %s units could not be set up.', len(result.errors), int(level))
        return result

    def _finish_unit(self, artifact: Artifact) -> Artifact:
        self.tracker.record(artifact.unit, artifact.config_path, artifact.output_dir)
        return artifact

    def _setup_run_level(self, store: ModelSpecStore, model_names: list[str], force: bool) -> ModelSetupResult:
        included = self.configuration.registry.included_runs()
        missing = [column for column in RUN_LEVEL_COLUMNS if column not in included.columns]
        if missing:
            raise ConfigurationError(f'Run table needs columns {missing} for level 1 setup.')
        generator = self.generator(AnalysisLevel.RUN)
        artifacts = []
        errors: list[UnitError] = []
        for model_name in model_names:
            model = store.get_model(AnalysisLevel.RUN, model_name)
            for _, row in included.iterrows():
                unit = AnalysisUnit(AnalysisLevel.RUN, row['id'], row['session'], int(row['run_number']), (model_name,))
                try:
                    timing_files = {
                        regressor: model.timing_file_pattern.format(
                            subject=row['id'], session=row['session'], run=int(row['run_number']), regressor=regressor)
                        for regressor in model.regressors
                    }
                    inputs = RunLevelInputs(
                        str(row['run_nifti']), int(row['n_volumes']), float(row['tr']), timing_files)
                    design = store.resolve(AnalysisLevel.RUN, model_name, unit)
                    artifact = generator.generate(unit, design, inputs, force=force)
                except (IntegrityError, ValueError) as error:
                    _record_unit_error(errors, unit, error)
                    continue
                artifacts.append(self._finish_unit(artifact))
        return ModelSetupResult(AnalysisLevel.RUN, tuple(artifacts), tuple(errors))

    def _setup_subject_level(self,
        store: ModelSpecStore,
        run_level: ModelSetupResult,
        model_names: list[str],
        force: bool,
    ) -> ModelSetupResult:
        registry = self.configuration.registry
        positions = {
            (row['id'], row['session'], int(row['run_number'])): i
            for i, row in registry.included_runs().iterrows()
        }
        generator = self.generator(AnalysisLevel.SUBJECT)
        run_level_models = list(dict.fromkeys(a.unit.models[0] for a in run_level.artifacts))
        artifacts = []
        errors: list[UnitError] = []
        for l1_model in run_level_models:
            declared = store.get_model(AnalysisLevel.RUN, l1_model).result_count
            for subject_id, session in registry.subject_sessions():
                children = sorted(
                    (
                        a for a in run_level.artifacts
                        if a.unit.models[0] == l1_model
                        and (a.unit.subject_id, a.unit.session, a.unit.run_number) in positions
                        and (a.unit.subject_id, a.unit.session) == (subject_id, session)
                    ),
                    key=lambda a: positions[(a.unit.subject_id, a.unit.session, a.unit.run_number)],
                )
                for model_name in model_names:
                    unit = AnalysisUnit(AnalysisLevel.SUBJECT, subject_id, session, None, (l1_model, model_name))
                    try:
                        artifact = self._generate_higher_level(generator, store, unit, children, declared, force)
                    except IntegrityError as error:
                        _record_unit_error(errors, unit, error)
                        continue
                    artifacts.append(self._finish_unit(artifact))
        return ModelSetupResult(AnalysisLevel.SUBJECT, tuple(artifacts), tuple(errors))

    def _setup_group_level(self,
        store: ModelSpecStore,
        subject_level: ModelSetupResult,
        model_names: list[str],
        force: bool,
    ) -> ModelSetupResult:
        subjects = self.configuration.registry.subject_table()
        included = subjects[subjects['included']]
        positions = {(row['id'], row['session']): i for i, row in included.iterrows()}
        generator = self.generator(AnalysisLevel.GROUP)
        combinations = list(dict.fromkeys(
            (a.unit.models[0], a.unit.models[1], a.unit.session) for a in subject_level.artifacts
        ))
        artifacts = []
        errors: list[UnitError] = []
        for l1_model, l2_model, session in combinations:
            children = sorted(
                (
                    a for a in subject_level.artifacts
                    if a.unit.models == (l1_model, l2_model)
                    and (a.unit.subject_id, a.unit.session) in positions
                    and a.unit.session == session
                ),
                key=lambda a: positions[(a.unit.subject_id, a.unit.session)],
            )
            declared = store.get_model(AnalysisLevel.SUBJECT, l2_model).result_count
            n_copes = store.get_model(AnalysisLevel.RUN, l1_model).result_count
            for model_name in model_names:
                for cope in range(1, n_copes + 1):
                    unit = AnalysisUnit(
                        AnalysisLevel.GROUP, None, session, None, (l1_model, l2_model, model_name), cope)
                    try:
                        artifact = self._generate_higher_level(
                            generator, store, unit, children, declared, force, cope=cope)
                    except IntegrityError as error:
                        _record_unit_error(errors, unit, error)
                        continue
                    artifacts.append(self._finish_unit(artifact))
        return ModelSetupResult(AnalysisLevel.GROUP, tuple(artifacts), tuple(errors))

    @staticmethod
    def _generate_higher_level(
        generator: ArtifactGenerator,
        store: ModelSpecStore,
        unit: AnalysisUnit,
        children: list[Artifact],
        declared_result_count: int,
        force: bool,
        cope: int | None = None,
    ) -> Artifact:
        if len(children) == 0:
            raise IntegrityError('No lower-level results were set up for this unit.', unit)
        result_counts = sorted({child.result_count for child in children})
        if len(result_counts) > 1:
            raise IntegrityError(f'Lower-level results declare differing cope counts {result_counts}.', unit)
        design = store.resolve(unit.level, unit.model_name, unit, child_count=len(children))
        inputs = HigherLevelInputs(
            input_dirs=tuple(generator.input_dir(child.output_dir, cope) for child in children),
            lower_level_result_count=result_counts[0],
            declared_result_count=declared_result_count,
        )
        return generator.generate(unit, design, inputs, force=force)

    def run_level(self,
        level: AnalysisLevel,
        model_names: list[str] | None = None,
        rerun: bool = False,
        wait_for: list[str] | None = None,
        after_level: AnalysisLevel | None = None,
    ) -> SubmissionResult | None:
        """Submit every eligible unit of a level that has been set up.

        ``wait_for`` lists upstream job ids; ``after_level`` adds every job id in
        that level's submission manifest. Returns None when the level has not
        been set up, when nothing is eligible, or when ``after_level`` has no
        accepted jobs in its manifest.
        """
        level = AnalysisLevel(level)
        setup = self.configuration.setup_for(level)
        if setup is None:
            logger.error('Did not find a level %s setup. Run setup for level %s before submitting.',
                         int(level), int(level))
            return None
        dependency = list(wait_for or [])
        if after_level is not None:
            after_level = AnalysisLevel(after_level)
            upstream = self.orchestrator.read_manifest(after_level)
            if len(upstream) == 0:
                logger.error(
                    'No submitted level %s jobs found in %s; not submitting level %s without its dependency.',
                    int(after_level), self.orchestrator.manifest_path(after_level), int(level))
                return None
            dependency.extend(upstream)
        queue = []
        for artifact in setup.artifacts_for_models(model_names):
            state = self.tracker.state(artifact.unit, artifact.config_path, artifact.output_dir)
            if not is_eligible(state, rerun):
                logger.info('Skipping existing directory: %s', artifact.output_dir)
                continue
            if not state.config_exists:
                logger.error('Configuration file %s is missing for %s; run setup again.',
                             artifact.config_path, artifact.unit.describe())
                continue
            if state.output_dir_exists:
                if classify(state) == UnitStatus.RUNNING_OR_UNKNOWN:
                    logger.warning('Output directory %s has no completion marker and may still be in use.',
                                   artifact.output_dir)
                logger.info('Removing old directory: %s', artifact.output_dir)
                rmtree(artifact.output_dir)
            queue.append(artifact)
        if len(queue) == 0:
            logger.warning('No level %s configuration files to execute.', int(level))
            return None
        failed_before = len(self.orchestrator.failed_batches)
        job_ids = self.orchestrator.submit(
            level,
            queue,
            self.configuration.parallel.resources_for(level),
            dependency if dependency else None,
        )
        failed = self.orchestrator.failed_batches[failed_before:]
        return SubmissionResult(
            level=level,
            job_ids=tuple(job_ids),
            queued=tuple(queue),
            failed_batches=tuple(job.script_path for job in failed),
            manifest_path=self.orchestrator.manifest_path(level),
        )

    def report_status(self, level: AnalysisLevel, model_names: list[str] | None = None) -> DataFrame | None:
        """Current status of each unit of a level that has been set up."""
        level = AnalysisLevel(level)
        setup = self.configuration.setup_for(level)
        if setup is None:
            logger.warning('Level %s has not been set up.', int(level))
            return None
        rows = []
        for artifact in setup.artifacts_for_models(model_names):
            unit = artifact.unit
            state = self.tracker.state(unit, artifact.config_path, artifact.output_dir)
            rows.append({
                'subject_id': unit.subject_id,
                'session': unit.session,
                'run_number': unit.run_number,
                'models': '/'.join(unit.models),
                'cope': unit.cope,
                'status': classify(state).value,
                'start_time': state.completion.start_time,
                'end_time': state.completion.end_time,
                'output_dir': artifact.output_dir,
            })
        columns = ['subject_id', 'session', 'run_number', 'models', 'cope', 'status',
                   'start_time', 'end_time', 'output_dir']
        return DataFrame(rows, columns=columns)
