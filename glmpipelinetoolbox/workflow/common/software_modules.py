"""Wrapper class for describing the components of a given estimation software."""

from typing import NamedTuple, Type

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.component_interfaces import ArtifactGenerator


class SoftwareModules(NamedTuple):
    """A wrapper object in which to list the implementation classes for one estimation software.

    Parameters
    ----------
    run_level: Type[ArtifactGenerator]
        Writes level-1 (single run) configuration files.
    subject_level: Type[ArtifactGenerator]
        Writes level-2 (subject/session) configuration files.
    group_level: Type[ArtifactGenerator]
        Writes level-3 (group) configuration files.
    command: str
        The executable that batch scripts run on each configuration file.
    run_level_postprocessing: str | None = None
        Packaged script run over the parent directories of level-1 outputs after a batch.
    """
    run_level: Type[ArtifactGenerator]
    subject_level: Type[ArtifactGenerator]
    group_level: Type[ArtifactGenerator]
    command: str
    run_level_postprocessing: str | None = None

    def generator_for(self, level: AnalysisLevel) -> Type[ArtifactGenerator]:
        return {
            AnalysisLevel.RUN: self.run_level,
            AnalysisLevel.SUBJECT: self.subject_level,
            AnalysisLevel.GROUP: self.group_level,
        }[AnalysisLevel(level)]

    def postprocessing_for(self, level: AnalysisLevel) -> str | None:
        if AnalysisLevel(level) == AnalysisLevel.RUN:
            return self.run_level_postprocessing
        return None
