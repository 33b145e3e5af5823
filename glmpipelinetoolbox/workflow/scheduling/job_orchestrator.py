"""Batch scripts that run many estimation-tool invocations inside one scheduler allocation."""
import shlex
from os import makedirs
from os.path import dirname
from os.path import exists
from os.path import join
from uuid import uuid4

from attrs import define
from attrs import field
from jinja2 import BaseLoader
from jinja2 import Environment

from glmpipelinetoolbox.workflow.common.analysis_unit import AnalysisLevel
from glmpipelinetoolbox.workflow.common.artifact import Artifact
from glmpipelinetoolbox.workflow.common.completion_markers import COMPLETE_MARKER
from glmpipelinetoolbox.workflow.common.completion_markers import FAILED_MARKER
from glmpipelinetoolbox.workflow.common.errors import SchedulerSubmissionError
from glmpipelinetoolbox.workflow.scheduling.chunking import chunk_units
from glmpipelinetoolbox.workflow.scheduling.dialects import ResourceRequest
from glmpipelinetoolbox.workflow.scheduling.dialects import SchedulerDialect
from glmpipelinetoolbox.workflow.scheduling.submission import cluster_job_submit
from glmpipelinetoolbox.standalone_utilities.package_resources import retrieve_from_library
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

BATCH_SCRIPT_TEMPLATE = 'batch_script.sh.jinja'


@define
class BatchJob:
    """One scheduler submission. Its artifacts run concurrently as background processes."""
    batch_id: int
    level: AnalysisLevel
    dialect: SchedulerDialect
    artifacts: list[Artifact]
    resources: ResourceRequest
    dependency: list[str] | None
    script_path: str
    job_id: str | None = None


@define
class JobOrchestrator:
    """Chunks artifacts into batch jobs, writes their scripts, and submits them.

    ``failed_batches`` accumulates jobs that the scheduler rejected, across calls.
    """
    working_directory: str
    dialect: SchedulerDialect
    command: str = 'feat'
    compute_environment: list[str] = field(factory=list)
    scheduler_arguments: list[str] = field(factory=list)
    postprocessing: dict[AnalysisLevel, str] = field(factory=dict)
    failed_batches: list[BatchJob] = field(factory=list)

    def level_directory(self, level: AnalysisLevel) -> str:
        return join(self.working_directory, f'feat_l{int(level)}')

    def manifest_path(self, level: AnalysisLevel) -> str:
        return join(self.level_directory(level), f'sep_l{int(level)}_jobs.txt')

    def plan(self,
        level: AnalysisLevel,
        artifacts: list[Artifact],
        resources: ResourceRequest,
        dependency: list[str] | None = None,
    ) -> list[BatchJob]:
        level = AnalysisLevel(level)
        submission_id = f'job{uuid4().hex[:12]}'
        chunks = chunk_units(artifacts, resources.cpus, resources.jobs_per_cpu)
        jobs = []
        for batch_id, chunk in enumerate(chunks, start=1):
            filename = f'featsep_l{int(level)}_{batch_id}_{submission_id}{self.dialect.file_suffix}'
            jobs.append(BatchJob(
                batch_id=batch_id,
                level=level,
                dialect=self.dialect,
                artifacts=chunk,
                resources=resources,
                dependency=list(dependency) if dependency else None,
                script_path=join(self.level_directory(level), filename),
            ))
        return jobs

    def _postprocessing_script(self, level: AnalysisLevel) -> str | None:
        """Copies the packaged post-processing script next to the batch scripts."""
        name = self.postprocessing.get(AnalysisLevel(level))
        if name is None:
            return None
        destination = join(self.level_directory(level), name)
        if not exists(destination):
            makedirs(dirname(destination), exist_ok=True)
            contents = retrieve_from_library('glmpipelinetoolbox.workflow.scheduling.assets', name)
            with open(destination, 'wt', encoding='utf-8') as file:
                file.write(contents)
        return destination

    def render_script(self, job: BatchJob) -> str:
        postprocessing_script = self._postprocessing_script(job.level)
        parent_dirs = []
        for artifact in job.artifacts:
            parent = dirname(artifact.output_dir)
            if parent not in parent_dirs:
                parent_dirs.append(parent)
        variables = {
            'header_lines': job.dialect.header(job.resources, job.dependency, self.scheduler_arguments),
            'compute_environment': self.compute_environment,
            'working_directory_variable': job.dialect.working_directory_variable,
            'command': self.command,
            'complete_marker': COMPLETE_MARKER,
            'failed_marker': FAILED_MARKER,
            'artifacts': [
                {
                    'config_path': shlex.quote(artifact.config_path),
                    'output_dir': shlex.quote(artifact.output_dir),
                }
                for artifact in job.artifacts
            ],
            'postprocessing_script': shlex.quote(postprocessing_script) if postprocessing_script else None,
            'postprocessing_dirs': [shlex.quote(d) for d in parent_dirs],
        }
        jinja_environment = Environment(
            loader=BaseLoader(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        contents = retrieve_from_library('glmpipelinetoolbox.workflow.scheduling.templates', BATCH_SCRIPT_TEMPLATE)
        return jinja_environment.from_string(contents).render(**variables)

    def write_script(self, job: BatchJob) -> str:
        makedirs(dirname(job.script_path), exist_ok=True)
        with open(job.script_path, 'wt', encoding='utf-8') as file:
            file.write(self.render_script(job))
        return job.script_path

    def submit(self,
        level: AnalysisLevel,
        artifacts: list[Artifact],
        resources: ResourceRequest,
        dependency: list[str] | None = None,
    ) -> list[str]:
        """Submit all artifacts in batches, returning the ids of accepted jobs in batch order."""
        level = AnalysisLevel(level)
        if len(artifacts) == 0:
            logger.warning('No level %s configuration files to execute.', int(level))
            return []
        logger.info('About to run the following configuration files in parallel:')
        for artifact in artifacts:
            logger.info('  File: %s', artifact.config_path)
        jobs = self.plan(level, artifacts, resources, dependency)
        job_ids = []
        for job in jobs:
            self.write_script(job)
            try:
                job.job_id = cluster_job_submit(job.script_path, self.dialect)
            except SchedulerSubmissionError as error:
                logger.error('Batch %s of level %s was not submitted: %s', job.batch_id, int(level), error)
                self.failed_batches.append(job)
                continue
            job_ids.append(job.job_id)
        if len(job_ids) == 0:
            logger.error('No level %s batches were accepted; leaving %s unchanged.',
                         int(level), self.manifest_path(level))
            return job_ids
        self.write_manifest(level, job_ids)
        return job_ids

    def write_manifest(self, level: AnalysisLevel, job_ids: list[str]) -> str:
        filename = self.manifest_path(level)
        makedirs(dirname(filename), exist_ok=True)
        with open(filename, 'wt', encoding='utf-8') as file:
            file.write(''.join(f'{job_id}\n' for job_id in job_ids))
        return filename

    def read_manifest(self, level: AnalysisLevel) -> list[str]:
        filename = self.manifest_path(level)
        if not exists(filename):
            return []
        with open(filename, 'rt', encoding='utf-8') as file:
            return [line.strip() for line in file if line.strip() != '']
