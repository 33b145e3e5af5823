"""
Orchestration of multi-level GLM analyses. The levels are:

1. **Run level**. One model per functional run, estimated from event timing files.
2. **Subject level**. Fixed-effects combination of one subject/session's surviving runs.
3. **Group level**. Mixed-effects combination of subjects, one analysis per level-1 contrast.

Each estimation software is a subpackage exporting a ``components`` object that lists the
configuration-file generator for each level.
"""

from importlib import import_module

from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.software_modules import SoftwareModules

software_names_and_subpackages = {
    'fsl': 'fsl',
}

unsupported_software_names = ('spm', 'afni')


def get_software_names() -> list[str]:
    return list(software_names_and_subpackages.keys())


def get_software(software_name: str) -> SoftwareModules:
    if software_name not in software_names_and_subpackages:
        raise ConfigurationError(
            f'Estimation software "{software_name}" is not supported. '
            f'Choose from: {get_software_names()}'
        )
    subpackage_name = software_names_and_subpackages[software_name]
    subpackage = import_module(f'.{subpackage_name}', __name__)
    return subpackage.components
