"""Group-level (level 3) FEAT design files, one per level-1 cope."""
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.fsl.higher_level import HigherLevelFeatGenerator
from glmpipelinetoolbox.workflow.fsl.paths import group_level_stem


class GroupLevelFeatGenerator(HigherLevelFeatGenerator):
    level = AnalysisLevel.GROUP
    template_name = 'feat_lvl3_template.fsf'

    def config_path(self, unit: AnalysisUnit) -> str:
        return group_level_stem(self.output_directory, unit) + '.fsf'

    def output_dir(self, unit: AnalysisUnit) -> str:
        return group_level_stem(self.output_directory, unit) + '.gfeat'

    def input_dir(self, lower_level_output_dir: str, cope: int | None = None) -> str:
        """FEAT writes the subject-level results for level-1 cope k to ``cope{k}.feat``."""
        return f'{lower_level_output_dir}/cope{cope}.feat'
