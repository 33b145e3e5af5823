"""GLM pipeline toolbox python package."""
from glmpipelinetoolbox.standalone_utilities.configuration_settings import get_version

submodule_names = ['workflow']

__version__ = get_version()
