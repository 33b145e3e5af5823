"""Run-level (level 1) FEAT design files."""
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.errors import IntegrityError
from glmpipelinetoolbox.workflow.common.generator_inputs import RunLevelInputs
from glmpipelinetoolbox.workflow.common.model_spec_store import ResolvedDesign
from glmpipelinetoolbox.workflow.component_interfaces.artifact_generator import ArtifactGenerator
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import CONTRASTS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import EVS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import FUNCTIONAL_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import NVOLS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import OUTPUT_DIR_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import TR_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import format_number
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import generate_contrast_syntax
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import generate_run_level_ev_syntax
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import substitute_block
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import substitute_values
from glmpipelinetoolbox.workflow.fsl.paths import run_level_stem
from glmpipelinetoolbox.workflow.fsl.paths import strip_feat_suffix


class RunLevelFeatGenerator(ArtifactGenerator):
    level = AnalysisLevel.RUN
    template_package = 'glmpipelinetoolbox.workflow.fsl.templates'
    template_name = 'feat_lvl1_template.fsf'
    required_placeholders = (
        OUTPUT_DIR_PLACEHOLDER,
        FUNCTIONAL_PLACEHOLDER,
        NVOLS_PLACEHOLDER,
        TR_PLACEHOLDER,
        EVS_PLACEHOLDER,
        CONTRASTS_PLACEHOLDER,
    )

    def config_path(self, unit: AnalysisUnit) -> str:
        return run_level_stem(self.output_directory, unit) + '.fsf'

    def output_dir(self, unit: AnalysisUnit) -> str:
        return run_level_stem(self.output_directory, unit) + '.feat'

    def render(self, unit: AnalysisUnit, design: ResolvedDesign, inputs: RunLevelInputs) -> str:
        missing = [r for r in design.regressors if r not in inputs.timing_files]
        if missing:
            raise IntegrityError(f'No timing file for regressors {missing}.', unit)
        text = substitute_block(
            self.template,
            EVS_PLACEHOLDER,
            generate_run_level_ev_syntax(design.regressors, inputs.timing_files),
        )
        text = substitute_block(
            text,
            CONTRASTS_PLACEHOLDER,
            generate_contrast_syntax(design.contrasts, include_original=True),
        )
        return substitute_values(text, {
            OUTPUT_DIR_PLACEHOLDER: strip_feat_suffix(self.output_dir(unit)),
            FUNCTIONAL_PLACEHOLDER: inputs.functional_path,
            NVOLS_PLACEHOLDER: str(int(inputs.n_volumes)),
            TR_PLACEHOLDER: format_number(inputs.tr),
        })
