"""Hand a batch script to the cluster scheduler."""
import subprocess

from glmpipelinetoolbox.workflow.common.errors import SchedulerSubmissionError
from glmpipelinetoolbox.workflow.scheduling.dialects import SchedulerDialect
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


def cluster_job_submit(script_path: str, dialect: SchedulerDialect) -> str:
    """Submit one script and return the scheduler's job id."""
    command = [dialect.submit_command, script_path]
    logger.debug('Running: %s', ' '.join(command))
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as error:
        raise SchedulerSubmissionError(script_path, str(error)) from error
    if result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip()
        raise SchedulerSubmissionError(script_path, detail, result.returncode)
    job_id = dialect.parse_job_id(result.stdout)
    if job_id is None:
        raise SchedulerSubmissionError(
            script_path, f'Could not parse a job id from: {result.stdout.strip()}', result.returncode)
    logger.info('Submitted job %s: %s', job_id, script_path)
    return job_id
