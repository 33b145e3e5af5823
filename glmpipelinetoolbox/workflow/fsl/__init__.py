"""FEAT design files for the three analysis levels."""

from glmpipelinetoolbox.workflow.common.software_modules import SoftwareModules
from glmpipelinetoolbox.workflow.fsl.run_level import RunLevelFeatGenerator
from glmpipelinetoolbox.workflow.fsl.subject_level import SubjectLevelFeatGenerator
from glmpipelinetoolbox.workflow.fsl.group_level import GroupLevelFeatGenerator

components = SoftwareModules(
    run_level=RunLevelFeatGenerator,
    subject_level=SubjectLevelFeatGenerator,
    group_level=GroupLevelFeatGenerator,
    command='feat',
    run_level_postprocessing='gen_feat_reg_dir.sh',
)
