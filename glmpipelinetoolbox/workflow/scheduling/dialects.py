"""Scheduler-specific batch script headers, submission commands, and job id parsing."""
import re
from abc import ABC
from abc import abstractmethod

from attrs import define

from glmpipelinetoolbox.workflow.common.errors import ConfigurationError


@define(frozen=True)
class ResourceRequest:
    """Resources for one batch job. ``wall_time`` is passed to the scheduler verbatim."""
    cpus: int = 8
    wall_time: str = '1:00:00'
    memory_gb: float = 8
    jobs_per_cpu: int = 2


def _format_memory(memory_gb: float) -> str:
    memory_gb = float(memory_gb)
    return str(int(memory_gb)) if memory_gb.is_integer() else str(memory_gb)


class SchedulerDialect(ABC):
    """One cluster scheduler's conventions."""
    name: str
    file_suffix: str
    submit_command: str
    directive_prefix: str
    working_directory_variable: str

    @abstractmethod
    def resource_directives(self, resources: ResourceRequest) -> list[str]:
        pass

    @abstractmethod
    def dependency_directive(self, job_ids: list[str]) -> str:
        pass

    @abstractmethod
    def parse_job_id(self, stdout: str) -> str | None:
        pass

    def scheduler_arguments_to_header(self, arguments: list[str]) -> list[str]:
        """Extra scheduler arguments as header directives, prefixed unless already so."""
        header = []
        for argument in arguments:
            argument = argument.strip()
            if argument == '':
                continue
            if argument.startswith(self.directive_prefix):
                header.append(argument)
            else:
                header.append(f'{self.directive_prefix} {argument}')
        return header

    def header(self,
        resources: ResourceRequest,
        dependency: list[str] | None = None,
        scheduler_arguments: list[str] | None = None,
    ) -> list[str]:
        lines = self.resource_directives(resources)
        if dependency:
            lines.append(self.dependency_directive(dependency))
        lines.extend(self.scheduler_arguments_to_header(scheduler_arguments or []))
        return lines


class SlurmDialect(SchedulerDialect):
    name = 'slurm'
    file_suffix = '.sbatch'
    submit_command = 'sbatch'
    directive_prefix = '#SBATCH'
    working_directory_variable = 'SLURM_SUBMIT_DIR'

    def resource_directives(self, resources: ResourceRequest) -> list[str]:
        return [
            '#SBATCH -N 1',
            f'#SBATCH -n {resources.cpus}',
            f'#SBATCH --time={resources.wall_time}',
            f'#SBATCH --mem-per-cpu={_format_memory(resources.memory_gb)}G',
        ]

    def dependency_directive(self, job_ids: list[str]) -> str:
        return '#SBATCH --dependency=afterok:' + ':'.join(job_ids)

    def parse_job_id(self, stdout: str) -> str | None:
        match = re.search(r'Submitted batch job (\S+)', stdout)
        if match is None:
            return None
        return match.group(1)


class TorqueDialect(SchedulerDialect):
    name = 'torque'
    file_suffix = '.pbs'
    submit_command = 'qsub'
    directive_prefix = '#PBS'
    working_directory_variable = 'PBS_O_WORKDIR'

    def resource_directives(self, resources: ResourceRequest) -> list[str]:
        return [
            f'#PBS -l nodes=1:ppn={resources.cpus}',
            f'#PBS -l pmem={_format_memory(resources.memory_gb)}gb',
            f'#PBS -l walltime={resources.wall_time}',
        ]

    def dependency_directive(self, job_ids: list[str]) -> str:
        return '#PBS -W depend=afterok:' + ':'.join(job_ids)

    def parse_job_id(self, stdout: str) -> str | None:
        lines = [line.strip() for line in stdout.splitlines() if line.strip() != '']
        if len(lines) == 0:
            return None
        return lines[0]


dialects_by_name = {
    'slurm': SlurmDialect,
    'torque': TorqueDialect,
}


def get_scheduler_dialect(name: str) -> SchedulerDialect:
    key = name.strip().lower()
    if key == 'pbs':
        key = 'torque'
    if key not in dialects_by_name:
        raise ConfigurationError(
            f'Scheduler "{name}" is not supported. Choose from: {list(dialects_by_name.keys())}')
    return dialects_by_name[key]()
