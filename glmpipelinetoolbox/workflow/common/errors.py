"""Error taxonomy for pipeline setup and orchestration.

``IntegrityError`` is scoped to a single analysis unit: callers log it with the
unit's identity and continue with sibling units. ``ConfigurationError`` is fatal
to the whole invocation. ``SchedulerSubmissionError`` is scoped to one batch.
Failures of the external estimation tool are never raised; they are recorded by
the batch script as a failure marker and surface at the next status query.
"""


class PipelineError(Exception):
    """Base class for errors raised by glmpipelinetoolbox."""


class IntegrityError(PipelineError):
    """The model specification and the run registry disagree for one unit."""

    def __init__(self, message: str, unit=None):
        self.unit = unit
        if unit is not None:
            message = f'{message} ({unit.describe()})'
        super().__init__(message)


class ConfigurationError(PipelineError):
    """A prerequisite stage or configuration value is missing."""


class SchedulerSubmissionError(PipelineError):
    """The cluster scheduler rejected a batch script."""
    script_path: str
    returncode: int | None

    def __init__(self, script_path: str, detail: str, returncode: int | None = None):
        self.script_path = script_path
        self.returncode = returncode
        super().__init__(f'Submission of {script_path} failed: {detail}')
