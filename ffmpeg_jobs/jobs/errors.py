"""
Job lifecycle errors.

None of these are fatal to the service. They are raised for one job or one
request and are either captured on the job record or turned into an HTTP
error by the API layer.
"""


class JobError(Exception):
    """Base exception for job lifecycle failures."""

    pass


class InvalidTransitionError(JobError):
    """
    A status change that would break the job state machine.

    Allowed: queued -> processing -> completed | failed.
    """

    pass


class EngineLaunchError(JobError):
    """
    The engine process could not be started.

    Raised when the binary is missing, not executable, or the OS refuses
    to spawn it.
    """

    pass


class SubmissionError(JobError):
    """A submission was rejected before any job was created."""

    pass
