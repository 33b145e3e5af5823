"""Shared fixtures: a small cohort of runs and a pipeline configuration over it."""
from os.path import join

import pytest
from pandas import DataFrame


def make_run_table(excluded: tuple = (('A', '1', 2),)) -> DataFrame:
    rows = []
    for subject in ('A', 'B'):
        for session in ('1', '2'):
            for run in (1, 2, 3):
                rows.append({
                    'id': subject,
                    'session': session,
                    'run_number': run,
                    'exclude_run': (subject, session, run) in excluded,
                    'exclude_subject': False,
                    'run_nifti': f'/data/sub-{subject}/ses-{session}/func/run-{run}_bold.nii.gz',
                    'n_volumes': 300,
                    'tr': 1.0,
                })
    return DataFrame(rows)


@pytest.fixture
def run_table() -> DataFrame:
    return make_run_table()


@pytest.fixture
def pipeline_config_file(tmp_path, run_table) -> str:
    run_table.to_csv(join(tmp_path, 'runs.tsv'), sep='\t', index=False)
    run_dummies = DataFrame({
        'run1': [1.0 if r == 1 else 0.0 for r in run_table['run_number']],
        'run2': [1.0 if r == 2 else 0.0 for r in run_table['run_number']],
        'run3': [1.0 if r == 3 else 0.0 for r in run_table['run_number']],
    })
    run_dummies.to_csv(join(tmp_path, 'l2_runs.tsv'), sep='\t', index=False)
    DataFrame({'intercept': [1.0] * run_table.shape[0]}).to_csv(
        join(tmp_path, 'l2_intercept.tsv'), sep='\t', index=False)
    DataFrame({'cue': [1.0, 0.0], 'feedback': [0.0, 1.0]}, index=['cue', 'feedback']).to_csv(
        join(tmp_path, 'l1_contrasts.tsv'), sep='\t')
    contents = '\n'.join([
        '[general]',
        'working_directory = work',
        'output_directory = output',
        'run_data_file = runs.tsv',
        'scheduler = slurm',
        'glm_software = fsl',
        '',
        '[parallel]',
        'cpus_per_job = 2',
        'jobs_per_cpu = 2',
        'compute_environment = module load fsl/6.0.4',
        '    export FSLOUTPUTTYPE=NIFTI_GZ',
        'scheduler_arguments = --account=open',
        'l1_feat_time = 2:00:00',
        'l1_feat_memgb = 16',
        '',
        '[l1 model: pe_only]',
        'regressors = cue, feedback',
        'contrasts_file = l1_contrasts.tsv',
        'timing_file_pattern = timing/sub-{subject}_ses-{session}_run-{run}_{regressor}.txt',
        '',
        '[l2 model: fixed_effects]',
        'model_matrix_file = l2_intercept.tsv',
        '',
        '[l2 model: run_dummies]',
        'model_matrix_file = l2_runs.tsv',
        'by_subject = true',
        '',
        '[l3 model: group_mean]',
        '',
    ])
    filename = join(tmp_path, 'pipeline.cfg')
    with open(filename, 'wt', encoding='utf-8') as file:
        file.write(contents)
    return filename
