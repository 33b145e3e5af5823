"""Interface for materializing one unit's model into a configuration file."""
from abc import ABC
from abc import abstractmethod
from datetime import datetime
from os import makedirs
from os.path import dirname
from os.path import exists
from os.path import getmtime
from os.path import isdir

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisUnit
from glmpipelinetoolbox.workflow.common.artifact import Artifact
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionMarker
from glmpipelinetoolbox.workflow.common.completion_markers import CompletionState
from glmpipelinetoolbox.workflow.common.completion_markers import read_completion_marker
from glmpipelinetoolbox.workflow.common.errors import ConfigurationError
from glmpipelinetoolbox.workflow.common.generator_inputs import GeneratorInputs
from glmpipelinetoolbox.workflow.common.model_spec_store import ResolvedDesign
from glmpipelinetoolbox.standalone_utilities.package_resources import retrieve_from_library
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


class ArtifactGenerator(ABC):
    """Renders configuration text for units of one level and writes it to disk.

    Subclasses name a packaged template and the placeholders it must contain.
    An existing configuration file is only rewritten when ``force`` is set.
    """
    level: AnalysisLevel
    template_package: str
    template_name: str
    required_placeholders: tuple[str, ...] = ()
    output_directory: str
    template: str

    def __init__(self, output_directory: str, template: str | None = None):
        self.output_directory = output_directory
        if template is None:
            template = retrieve_from_library(self.template_package, self.template_name)
        missing = [p for p in self.required_placeholders if p not in template]
        if missing:
            raise ConfigurationError(
                f'Template for level {int(self.level)} is missing placeholders: {missing}')
        self.template = template

    @abstractmethod
    def config_path(self, unit: AnalysisUnit) -> str:
        pass

    @abstractmethod
    def output_dir(self, unit: AnalysisUnit) -> str:
        pass

    def input_dir(self, lower_level_output_dir: str, cope: int | None = None) -> str:
        """Where this level reads one lower-level result from."""
        return lower_level_output_dir

    @abstractmethod
    def render(self, unit: AnalysisUnit, design: ResolvedDesign, inputs: GeneratorInputs) -> str:
        pass

    def generate(self,
        unit: AnalysisUnit,
        design: ResolvedDesign,
        inputs: GeneratorInputs,
        force: bool = False,
    ) -> Artifact:
        text = self.render(unit, design, inputs)
        config_path = self.config_path(unit)
        output_dir = self.output_dir(unit)
        logger.debug('Expected L%s output directory is: %s', int(self.level), output_dir)
        logger.debug('Expected L%s configuration file is: %s', int(self.level), config_path)

        written = False
        if not exists(config_path) or force:
            logger.info('Writing L%s configuration to: %s', int(self.level), config_path)
            makedirs(dirname(config_path), exist_ok=True)
            with open(config_path, 'wt', encoding='utf-8') as file:
                file.write(text)
            written = True
        else:
            logger.info('Skipping existing L%s configuration: %s', int(self.level), config_path)

        output_dir_exists = isdir(output_dir)
        if output_dir_exists:
            completion = read_completion_marker(output_dir)
        else:
            completion = CompletionMarker(CompletionState.ABSENT)
        return Artifact(
            unit=unit,
            config_path=config_path,
            output_dir=output_dir,
            rendered_text=text,
            result_count=design.contrasts.shape[0],
            config_modified=datetime.fromtimestamp(getmtime(config_path)),
            output_dir_exists=output_dir_exists,
            completion=completion,
            written=written,
        )
