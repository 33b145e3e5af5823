"""Interfaces for components of the pipeline."""

from glmpipelinetoolbox.workflow.component_interfaces.artifact_generator import ArtifactGenerator
