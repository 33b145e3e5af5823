"""Subject-level (level 2) FEAT design files: fixed-effects combination of runs."""
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.fsl.higher_level import HigherLevelFeatGenerator
from glmpipelinetoolbox.workflow.fsl.paths import subject_level_stem


class SubjectLevelFeatGenerator(HigherLevelFeatGenerator):
    level = AnalysisLevel.SUBJECT
    template_name = 'feat_lvl2_template.fsf'

    def config_path(self, unit: AnalysisUnit) -> str:
        return subject_level_stem(self.output_directory, unit) + '.fsf'

    def output_dir(self, unit: AnalysisUnit) -> str:
        return subject_level_stem(self.output_directory, unit) + '.gfeat'
