import subprocess
from glob import glob
from os import makedirs
from os.path import exists
from os.path import join

import pytest
from attrs import evolve

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.completion_markers import write_completion_marker
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.run_registry import RunRegistry
from glmpipelinetoolbox.workflow.common.stage_results import ModelSetupResult
from glmpipelinetoolbox.workflow.pipeline_driver import PipelineDriver
from glmpipelinetoolbox.workflow.scheduling import submission


class FakeScheduler:
    def __init__(self):
        self.count = 0

    def run(self, command, capture_output=False, text=False, check=False):
        self.count += 1
        return subprocess.CompletedProcess(command, 0, stdout=f'Submitted batch job {500 + self.count}\n', stderr='')


@pytest.fixture
def driver(pipeline_config_file) -> PipelineDriver:
    return PipelineDriver.from_config_file(pipeline_config_file)


@pytest.fixture
def scheduler(monkeypatch) -> FakeScheduler:
    fake = FakeScheduler()
    monkeypatch.setattr(submission.subprocess, 'run', fake.run)
    return fake


def read_text(filename: str) -> str:
    with open(filename, 'rt', encoding='utf-8') as file:
        return file.read()


def test_levels_must_be_set_up_in_order(driver):
    with pytest.raises(ConfigurationError):
        driver.setup_level(AnalysisLevel.SUBJECT)


def test_run_level_setup(driver, tmp_path):
    version = driver.configuration.version
    result = driver.setup_level(AnalysisLevel.RUN)
    assert len(result.artifacts) == 11
    assert result.errors == ()
    assert driver.configuration.version == version + 1
    assert driver.configuration.setup_for(AnalysisLevel.RUN) is result
    runs = {(a.unit.subject_id, a.unit.session, a.unit.run_number) for a in result.artifacts}
    assert ('A', '1', 2) not in runs
    first = result.artifacts[0]
    text = read_text(first.config_path)
    stem = join(tmp_path, 'output', 'sub-A', 'ses-1', 'pe_only', 'FEAT_LVL1_run1')
    assert first.config_path == stem + '.fsf'
    assert f'set fmri(outputdir) "{stem}"' in text
    assert 'set feat_files(1) "/data/sub-A/ses-1/func/run-1_bold.nii.gz"' in text
    assert 'set fmri(npts) 300' in text
    assert join(tmp_path, 'timing', 'sub-A_ses-1_run-1_cue.txt') in text
    assert exists(join(tmp_path, 'work', 'setup_l1.tsv'))


def test_subject_level_setup_uses_surviving_runs(driver):
    driver.setup_level(AnalysisLevel.RUN)
    result = driver.setup_level(AnalysisLevel.SUBJECT)
    assert len(result.artifacts) == 8
    assert result.errors == ()
    npts = {}
    for artifact in result.artifacts:
        text = read_text(artifact.config_path)
        n_inputs = int(text.split('set fmri(npts) ')[1].split('\n')[0])
        key = (artifact.unit.subject_id, artifact.unit.model_name)
        npts[key] = npts.get(key, 0) + n_inputs
        assert 'set fmri(ncopeinputs) 2' in text
    assert npts[('A', 'fixed_effects')] == 5
    assert npts[('B', 'fixed_effects')] == 6
    assert npts[('A', 'run_dummies')] == 5
    assert npts[('B', 'run_dummies')] == 6
    dummies = [
        a for a in result.artifacts
        if a.unit.subject_id == 'A' and a.unit.session == '1' and a.unit.model_name == 'run_dummies'
    ][0]
    text = read_text(dummies.config_path)
    assert 'set fmri(evs_orig) 2' in text
    assert 'FEAT_LVL1_run2.feat' not in text
    assert dummies.result_count == 3


def test_group_level_setup(driver, tmp_path):
    driver.setup_level(AnalysisLevel.RUN)
    driver.setup_level(AnalysisLevel.SUBJECT)
    result = driver.setup_level(AnalysisLevel.GROUP)
    assert len(result.artifacts) == 8
    assert result.errors == ()
    for artifact in result.artifacts:
        text = read_text(artifact.config_path)
        assert 'set fmri(npts) 2' in text
        expected_copes = 1 if artifact.unit.models[1] == 'fixed_effects' else 3
        assert f'set fmri(ncopeinputs) {expected_copes}' in text
        assert f'cope{artifact.unit.cope}.feat' in text
    first = result.artifacts[0]
    assert first.output_dir == join(
        tmp_path, 'output', 'group', 'ses-1', 'pe_only', 'fixed_effects', 'group_mean',
        'FEAT_LVL3_group_mean_cope1.gfeat')


def test_missing_lower_level_result_is_recorded(driver):
    run_level = driver.setup_level(AnalysisLevel.RUN)
    partial = ModelSetupResult(AnalysisLevel.RUN, tuple(
        a for a in run_level.artifacts
        if (a.unit.subject_id, a.unit.session, a.unit.run_number) != ('B', '2', 3)
    ))
    driver.configuration = driver.configuration.with_setup(partial)
    result = driver.setup_level(AnalysisLevel.SUBJECT)
    assert len(result.artifacts) == 6
    assert len(result.errors) == 2
    assert {(e.unit.subject_id, e.unit.session) for e in result.errors} == {('B', '2')}
    assert all(e.error_type == 'IntegrityError' for e in result.errors)


def test_setup_persists_between_invocations(driver, pipeline_config_file):
    driver.setup_level(AnalysisLevel.RUN)
    driver.setup_level(AnalysisLevel.SUBJECT)
    reloaded = PipelineDriver.from_config_file(pipeline_config_file)
    assert reloaded.configuration.version == 2
    original = driver.configuration.setup_for(AnalysisLevel.SUBJECT)
    restored = reloaded.configuration.setup_for(AnalysisLevel.SUBJECT)
    assert [a.config_path for a in restored.artifacts] == [a.config_path for a in original.artifacts]
    assert [a.unit for a in restored.artifacts] == [a.unit for a in original.artifacts]
    assert reloaded.configuration.setup_for(AnalysisLevel.GROUP) is None


def test_no_surviving_runs(driver):
    table = driver.configuration.registry.table
    table['exclude_subject'] = True
    driver.configuration = evolve(driver.configuration, registry=RunRegistry(table))
    assert driver.setup_level(AnalysisLevel.RUN) is None
    assert driver.configuration.setup_for(AnalysisLevel.RUN) is None


def test_submission_batches_and_dependencies(driver, scheduler, tmp_path):
    driver.setup_level(AnalysisLevel.RUN)
    driver.setup_level(AnalysisLevel.SUBJECT)
    first = driver.run_level(AnalysisLevel.RUN)
    assert first.job_ids == ('501', '502', '503')
    assert len(first.queued) == 11
    assert first.failed_batches == ()
    scripts = glob(join(tmp_path, 'work', 'feat_l1', 'featsep_l1_*.sbatch'))
    assert len(scripts) == 3
    text = read_text(sorted(scripts)[0])
    assert '#SBATCH --time=2:00:00' in text
    assert '#SBATCH --mem-per-cpu=16G' in text
    assert '#SBATCH --account=open' in text
    assert 'export FSLOUTPUTTYPE=NIFTI_GZ' in text

    second = driver.run_level(AnalysisLevel.SUBJECT, model_names=['fixed_effects'], after_level=AnalysisLevel.RUN)
    assert len(second.queued) == 4
    assert second.job_ids == ('504',)
    script = glob(join(tmp_path, 'work', 'feat_l2', 'featsep_l2_*.sbatch'))[0]
    assert '#SBATCH --dependency=afterok:501:502:503' in read_text(script)


def test_completed_units_are_not_resubmitted(driver, scheduler):
    result = driver.setup_level(AnalysisLevel.RUN)
    done, stale = result.artifacts[0], result.artifacts[1]
    write_completion_marker(done.output_dir, '2026-01-01T10:00:00', '2026-01-01T10:30:00', succeeded=True)
    makedirs(stale.output_dir)
    submitted = driver.run_level(AnalysisLevel.RUN, wait_for=['77'])
    assert len(submitted.queued) == 10
    assert done.config_path not in [a.config_path for a in submitted.queued]
    assert not exists(stale.output_dir)
    assert exists(done.output_dir)

    rerun = driver.run_level(AnalysisLevel.RUN, rerun=True)
    assert len(rerun.queued) == 11
    assert not exists(done.output_dir)


def test_nothing_to_submit(driver, scheduler):
    assert driver.run_level(AnalysisLevel.GROUP) is None
    result = driver.setup_level(AnalysisLevel.RUN)
    for artifact in result.artifacts:
        write_completion_marker(artifact.output_dir, 'start', 'end', succeeded=True)
    assert driver.run_level(AnalysisLevel.RUN) is None
    assert scheduler.count == 0


def test_status_report(driver):
    assert driver.report_status(AnalysisLevel.RUN) is None
    result = driver.setup_level(AnalysisLevel.RUN)
    write_completion_marker(result.artifacts[0].output_dir, '2026-01-01T10:00:00', '2026-01-01T10:30:00', True)
    write_completion_marker(result.artifacts[1].output_dir, '2026-01-01T10:00:00', '2026-01-01T10:01:00', False)
    report = driver.report_status(AnalysisLevel.RUN)
    assert report.shape[0] == 11
    assert list(report['status'][0:3]) == ['complete', 'failed', 'artifact current, needs run']
    assert report['end_time'][0] == '2026-01-01T10:30:00'
    assert report['models'][0] == 'pe_only'


def test_subject_level_setup_for_chosen_models(driver):
    driver.setup_level(AnalysisLevel.RUN)
    result = driver.setup_level(AnalysisLevel.SUBJECT, model_names=['fixed_effects'])
    assert len(result.artifacts) == 4
    assert {a.unit.model_name for a in result.artifacts} == {'fixed_effects'}


def test_unreadable_run_values_are_recorded_per_run(driver):
    table = driver.configuration.registry.table
    table['n_volumes'] = table['n_volumes'].astype(object)
    table.loc[0, 'n_volumes'] = ''
    driver.configuration = evolve(driver.configuration, registry=RunRegistry(table))
    result = driver.setup_level(AnalysisLevel.RUN)
    assert len(result.artifacts) == 10
    assert len(result.errors) == 1
    error = result.errors[0]
    assert (error.unit.subject_id, error.unit.session, error.unit.run_number) == ('A', '1', 1)
    assert error.error_type == 'ValueError'


def test_missing_upstream_manifest_blocks_submission(driver, scheduler, tmp_path):
    driver.setup_level(AnalysisLevel.RUN)
    driver.setup_level(AnalysisLevel.SUBJECT)
    assert driver.run_level(AnalysisLevel.SUBJECT, after_level=AnalysisLevel.RUN) is None
    assert scheduler.count == 0
    assert glob(join(tmp_path, 'work', 'feat_l2', 'featsep_l2_*.sbatch')) == []

    manifest = driver.orchestrator.manifest_path(AnalysisLevel.RUN)
    makedirs(join(tmp_path, 'work', 'feat_l1'), exist_ok=True)
    with open(manifest, 'wt', encoding='utf-8') as file:
        file.write('')
    assert driver.run_level(AnalysisLevel.SUBJECT, after_level=AnalysisLevel.RUN) is None
    assert scheduler.count == 0
