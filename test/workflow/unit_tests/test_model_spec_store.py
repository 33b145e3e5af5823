import pytest
from pandas import DataFrame

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.errors import IntegrityError
from glmpipelinetoolbox.workflow.common.model_spec_store import ModelSpecStore
from glmpipelinetoolbox.workflow.common.model_spec_store import respecify_by_subject
from glmpipelinetoolbox.workflow.common.model_specification import GroupLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import SubjectLevelModel
from glmpipelinetoolbox.workflow.common.model_specification import SubjectOverride
from glmpipelinetoolbox.workflow.common.model_specification import diagonal_contrasts
from glmpipelinetoolbox.workflow.common.run_registry import RunRegistry


def subject_unit(subject_id: str, session: str, model_name: str = 'fe') -> AnalysisUnit:
    return AnalysisUnit(AnalysisLevel.SUBJECT, subject_id, session, None, ('pe_only', model_name))


def intercept_model(n_rows: int, name: str = 'fe') -> SubjectLevelModel:
    matrix = DataFrame({'intercept': [1.0] * n_rows})
    return SubjectLevelModel(name, matrix, diagonal_contrasts(['intercept']))


def run_dummy_model(run_table: DataFrame) -> SubjectLevelModel:
    matrix = DataFrame({
        f'run{r}': [1.0 if n == r else 0.0 for n in run_table['run_number']] for r in (1, 2, 3)
    })
    return SubjectLevelModel('dummies', matrix, diagonal_contrasts(list(matrix.columns)), by_subject=True)


def test_resolve_selects_included_children(run_table):
    registry = RunRegistry(run_table)
    store = ModelSpecStore(registry, subject_level_models={'fe': intercept_model(12)})
    design = store.resolve(AnalysisLevel.SUBJECT, 'fe', subject_unit('A', '1'))
    assert list(design.model_matrix.index) == [0, 2]
    design = store.resolve(AnalysisLevel.SUBJECT, 'fe', subject_unit('B', '1'))
    assert design.model_matrix.shape[0] == 3
    assert not design.from_override


def test_resolve_rejects_child_count_mismatch(run_table):
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'fe': intercept_model(12)})
    with pytest.raises(IntegrityError):
        store.resolve(AnalysisLevel.SUBJECT, 'fe', subject_unit('A', '1'), child_count=3)


def test_resolve_rejects_global_row_mismatch(run_table):
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'fe': intercept_model(11)})
    with pytest.raises(IntegrityError):
        store.resolve(AnalysisLevel.SUBJECT, 'fe', subject_unit('B', '2'))


def test_resolve_group_level_rows(run_table):
    matrix = DataFrame({'intercept': [1.0] * 4})
    model = GroupLevelModel('mean', matrix, diagonal_contrasts(['intercept']))
    store = ModelSpecStore(RunRegistry(run_table), group_level_models={'mean': model})
    unit = AnalysisUnit(AnalysisLevel.GROUP, None, '1', None, ('pe_only', 'fe', 'mean'), 1)
    design = store.resolve(AnalysisLevel.GROUP, 'mean', unit)
    assert list(design.model_matrix.index) == [0, 2]


def test_respecify_is_idempotent(run_table):
    model = run_dummy_model(run_table)
    once = respecify_by_subject(model, run_table)
    twice = respecify_by_subject(once, run_table)
    assert len(once.overrides) == 4
    for first, second in zip(once.overrides, twice.overrides):
        assert first.model_matrix.to_csv() == second.model_matrix.to_csv()
        assert first.contrasts.to_csv() == second.contrasts.to_csv()


def test_respecify_drops_regressors_of_excluded_runs(run_table):
    model = run_dummy_model(run_table)
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'dummies': model})
    store = store.with_respecified_models()
    design = store.resolve(AnalysisLevel.SUBJECT, 'dummies', subject_unit('A', '1', 'dummies'), child_count=2)
    assert design.from_override
    assert list(design.model_matrix.columns) == ['run1', 'run3']
    assert list(design.contrasts.columns) == ['run1', 'run3']
    assert design.contrasts.shape[0] == 3
    design = store.resolve(AnalysisLevel.SUBJECT, 'dummies', subject_unit('B', '1', 'dummies'))
    assert design.model_matrix.shape == (3, 3)


def test_override_lookup_errors(run_table):
    model = run_dummy_model(run_table)
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'dummies': model})
    with pytest.raises(IntegrityError):
        store.resolve(AnalysisLevel.SUBJECT, 'dummies', subject_unit('A', '1', 'dummies'))

    override = SubjectOverride('A', '1', model.model_matrix.loc[[0, 2]], model.contrasts)
    doubled = SubjectLevelModel(
        'dummies', model.model_matrix, model.contrasts, by_subject=True, overrides=(override, override))
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'dummies': doubled})
    with pytest.raises(IntegrityError):
        store.resolve(AnalysisLevel.SUBJECT, 'dummies', subject_unit('A', '1', 'dummies'))

    single = SubjectLevelModel(
        'dummies', model.model_matrix, model.contrasts, by_subject=True, overrides=(override,))
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={'dummies': single})
    with pytest.raises(IntegrityError):
        store.resolve(AnalysisLevel.SUBJECT, 'dummies', subject_unit('A', '1', 'dummies'), child_count=3)


def test_unknown_model(run_table):
    store = ModelSpecStore(RunRegistry(run_table))
    with pytest.raises(ConfigurationError):
        store.get_model(AnalysisLevel.SUBJECT, 'missing')


def test_respecify_only_requested_models(run_table):
    dummies = run_dummy_model(run_table)
    store = ModelSpecStore(RunRegistry(run_table), subject_level_models={
        'dummies': dummies,
        'other_dummies': run_dummy_model(run_table),
    })
    respecified = store.with_respecified_models(['other_dummies'])
    assert respecified.get_model(AnalysisLevel.SUBJECT, 'dummies') is dummies
    assert len(respecified.get_model(AnalysisLevel.SUBJECT, 'other_dummies').overrides) == 4
