"""Output locations of FEAT configurations and results, derived from unit identity."""
import re
from os.path import join

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit


def subject_directory(output_directory: str, unit: AnalysisUnit) -> str:
    return join(output_directory, f'sub-{unit.subject_id}', f'ses-{unit.session}', unit.models[0])


def group_directory(output_directory: str, unit: AnalysisUnit) -> str:
    return join(output_directory, 'group', f'ses-{unit.session}', *unit.models)


def run_level_stem(output_directory: str, unit: AnalysisUnit) -> str:
    return join(subject_directory(output_directory, unit), f'FEAT_LVL1_run{unit.run_number}')


def subject_level_stem(output_directory: str, unit: AnalysisUnit) -> str:
    return join(subject_directory(output_directory, unit), f'FEAT_LVL2_{unit.model_name}')


def group_level_stem(output_directory: str, unit: AnalysisUnit) -> str:
    return join(group_directory(output_directory, unit), f'FEAT_LVL3_{unit.model_name}_cope{unit.cope}')


def strip_feat_suffix(output_dir: str) -> str:
    """FEAT appends the suffix itself, so the design file names the bare stem."""
    return re.sub(r'\.g?feat$', '', output_dir)
