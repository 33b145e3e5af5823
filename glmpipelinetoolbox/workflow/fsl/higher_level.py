"""Shared rendering for subject-level and group-level FEAT design files."""
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.errors import IntegrityError
from glmpipelinetoolbox.workflow.common.generator_inputs import HigherLevelInputs
from glmpipelinetoolbox.workflow.common.model_spec_store import ResolvedDesign
from glmpipelinetoolbox.workflow.component_interfaces.artifact_generator import ArtifactGenerator
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import CONTRASTS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import COPE_INPUTS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import EVS_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import OUTPUT_DIR_PLACEHOLDER
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import generate_contrast_syntax
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import generate_cope_input_syntax
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import generate_higher_level_ev_syntax
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import substitute_block
from glmpipelinetoolbox.workflow.fsl.fsf_syntax import substitute_values
from glmpipelinetoolbox.workflow.fsl.paths import strip_feat_suffix


class HigherLevelFeatGenerator(ArtifactGenerator):
    """Combines lower-level FEAT outputs, one input per design row."""
    template_package = 'glmpipelinetoolbox.workflow.fsl.templates'
    required_placeholders = (
        OUTPUT_DIR_PLACEHOLDER,
        COPE_INPUTS_PLACEHOLDER,
        EVS_PLACEHOLDER,
        CONTRASTS_PLACEHOLDER,
    )

    def render(self, unit: AnalysisUnit, design: ResolvedDesign, inputs: HigherLevelInputs) -> str:
        if design.model_matrix is None:
            raise IntegrityError('Higher-level design has no model matrix.', unit)
        if len(inputs.input_dirs) != design.model_matrix.shape[0]:
            raise IntegrityError(
                f'Design has {design.model_matrix.shape[0]} rows but {len(inputs.input_dirs)} '
                'lower-level outputs are available.',
                unit,
            )
        if inputs.lower_level_result_count != inputs.declared_result_count:
            raise IntegrityError(
                f'Lower-level outputs hold {inputs.lower_level_result_count} copes but the '
                f'lower-level model declares {inputs.declared_result_count}.',
                unit,
            )
        text = substitute_block(
            self.template,
            EVS_PLACEHOLDER,
            generate_higher_level_ev_syntax(list(inputs.input_dirs), design.model_matrix),
        )
        text = substitute_block(text, CONTRASTS_PLACEHOLDER, generate_contrast_syntax(design.contrasts))
        text = substitute_block(
            text,
            COPE_INPUTS_PLACEHOLDER,
            generate_cope_input_syntax(inputs.lower_level_result_count),
        )
        return substitute_values(text, {
            OUTPUT_DIR_PLACEHOLDER: strip_feat_suffix(self.output_dir(unit)),
        })
