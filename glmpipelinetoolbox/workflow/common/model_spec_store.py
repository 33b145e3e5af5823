"""Per-level model specifications and their resolution onto analysis units."""
from attrs import define
from attrs import evolve
from pandas import DataFrame

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.errors import IntegrityError
from glmpipelinetoolbox.workflow.common.model_specification import GroupLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import ModelSpec
from glmpipelinetoolbox.workflow.common.model_specification import RunLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import SubjectLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import SubjectOverride
from glmpipelinetoolbox.workflow.common.run_registry import RunRegistry
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


@define(frozen=True, eq=False)
class ResolvedDesign:
    """The design rows and contrasts to use for one unit.

    ``model_matrix`` is None for run-level units, whose design is built by the
    estimation tool from timing files.
    """
    model_matrix: DataFrame | None
    contrasts: DataFrame
    from_override: bool = False

    @property
    def regressors(self) -> list[str]:
        return list(self.contrasts.columns)


def _check_global_rows(model_name: str, model_matrix: DataFrame, level_table: DataFrame) -> None:
    if model_matrix.shape[0] != level_table.shape[0]:
        raise IntegrityError(
            f'Model "{model_name}" has {model_matrix.shape[0]} design rows but the level table '
            f'has {level_table.shape[0]} rows.'
        )


def respecify_by_subject(model: SubjectLevelModel, run_table: DataFrame) -> SubjectLevelModel:
    """Recompute per-subject design subsets from the runs that are currently included.

    ``run_table`` is the full (pre-filter) run table. Only models declared with
    ``by_subject`` receive overrides; the others are returned unchanged after the
    global row count is checked. Regressors that are identically zero for a
    subject (for example a dummy for an excluded run) are dropped from that
    subject's design and contrasts. Subsets are always computed from the global
    matrix, so repeated calls give identical results.
    """
    _check_global_rows(model.name, model.model_matrix, run_table)
    if not model.by_subject:
        return model
    registry = RunRegistry(run_table)
    overrides = []
    for subject_id, session in registry.subject_sessions():
        rows = registry.surviving_rows(AnalysisLevel.SUBJECT, subject_id, session)
        subset = model.model_matrix.loc[rows]
        nonzero = [column for column in subset.columns if (subset[column] != 0).any()]
        dropped = [column for column in subset.columns if column not in nonzero]
        if dropped:
            logger.debug('Dropping all-zero regressors %s for subject %s, session %s in model %s.',
                         dropped, subject_id, session, model.name)
        contrasts = model.contrasts[nonzero]
        empty = [str(name) for name, row in contrasts.iterrows() if not (row != 0).any()]
        if empty:
            logger.warning('Contrasts %s of model %s are empty for subject %s, session %s.',
                           empty, model.name, subject_id, session)
        overrides.append(SubjectOverride(subject_id, session, subset[nonzero].copy(), contrasts.copy()))
    return evolve(model, overrides=tuple(overrides))


class ModelSpecStore:
    """Holds the model specifications for each level, keyed by model name."""
    registry: RunRegistry
    models: dict[AnalysisLevel, dict[str, ModelSpec]]

    def __init__(self,
        registry: RunRegistry,
        run_level_models: dict[str, RunLevelModel] | None = None,
        subject_level_models: dict[str, SubjectLevelModel] | None = None,
        group_level_models: dict[str, GroupLevelModel] | None = None,
    ):
        self.registry = registry
        self.models = {
            AnalysisLevel.RUN: dict(run_level_models or {}),
            AnalysisLevel.SUBJECT: dict(subject_level_models or {}),
            AnalysisLevel.GROUP: dict(group_level_models or {}),
        }

    def model_names(self, level: AnalysisLevel) -> list[str]:
        return list(self.models[AnalysisLevel(level)].keys())

    def get_model(self, level: AnalysisLevel, model_name: str) -> ModelSpec:
        try:
            return self.models[AnalysisLevel(level)][model_name]
        except KeyError as error:
            raise ConfigurationError(f'No level {int(level)} model named "{model_name}".') from error

    def with_respecified_models(self, model_names: list[str] | None = None) -> 'ModelSpecStore':
        """A new store whose subject-level models reflect the current exclusions."""
        if model_names is None:
            model_names = self.model_names(AnalysisLevel.SUBJECT)
        subject_models = dict(self.models[AnalysisLevel.SUBJECT])
        for name in model_names:
            logger.info('Recalculating per-subject L2 models based on available runs for model: %s', name)
            model = self.get_model(AnalysisLevel.SUBJECT, name)
            subject_models[name] = respecify_by_subject(model, self.registry.table)
        return ModelSpecStore(
            self.registry,
            self.models[AnalysisLevel.RUN],
            subject_models,
            self.models[AnalysisLevel.GROUP],
        )

    def resolve(self,
        level: AnalysisLevel,
        model_name: str,
        unit: AnalysisUnit,
        child_count: int | None = None,
    ) -> ResolvedDesign:
        """Design rows and contrasts for one unit.

        ``child_count`` is the number of lower-level results actually available
        for the unit. It defaults to the registry's surviving count.
        """
        level = AnalysisLevel(level)
        model = self.get_model(level, model_name)
        if isinstance(model, RunLevelModel):
            return ResolvedDesign(None, model.contrasts)
        if isinstance(model, SubjectLevelModel) and model.by_subject:
            return self._resolve_override(model, unit, child_count)
        level_table = self.registry.level_table(level)
        _check_global_rows(model.name, model.model_matrix, level_table)
        rows = self.registry.surviving_rows(level, unit.subject_id, unit.session)
        if child_count is None:
            child_count = len(rows)
        if len(rows) != child_count:
            raise IntegrityError(
                f'Model "{model.name}" selects {len(rows)} design rows but {child_count} '
                'lower-level results are available.',
                unit,
            )
        if len(rows) == 0:
            raise IntegrityError(f'No surviving rows for model "{model.name}".', unit)
        return ResolvedDesign(model.model_matrix.loc[rows].copy(), model.contrasts)

    def _resolve_override(self,
        model: SubjectLevelModel,
        unit: AnalysisUnit,
        child_count: int | None,
    ) -> ResolvedDesign:
        matches = [
            override for override in model.overrides
            if override.subject_id == unit.subject_id and override.session == unit.session
        ]
        if len(matches) == 0:
            raise IntegrityError(
                f'Unable to locate a subject-specific entry in model "{model.name}".', unit)
        if len(matches) > 1:
            raise IntegrityError(
                f'More than one subject-specific entry in model "{model.name}".', unit)
        logger.info('Using per-subject L2 model specification for model: %s', model.name)
        override = matches[0]
        if child_count is not None and override.model_matrix.shape[0] != child_count:
            raise IntegrityError(
                f'Subject-specific design of model "{model.name}" has '
                f'{override.model_matrix.shape[0]} rows but {child_count} lower-level results '
                'are available.',
                unit,
            )
        return ResolvedDesign(override.model_matrix, override.contrasts, from_override=True)
