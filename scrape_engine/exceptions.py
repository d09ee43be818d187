"""Error taxonomy for the scrape engine.

Capacity and not-found errors are raised straight to the caller. Rule and
record errors are contained by the pipeline and reported as data; export
errors only ever surface through the export job's status.
"""


class ScrapeEngineError(Exception):
    """Base class for all engine errors."""


class CapacityError(ScrapeEngineError, RuntimeError):
    """Raised when the session ceiling has been reached."""


class NotFoundError(ScrapeEngineError, ValueError):
    """Raised for unknown or expired ids."""


class SessionNotFoundError(NotFoundError):
    """Raised when a session is absent or has expired."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class JobNotFoundError(NotFoundError):
    """Raised when a processing or export job id is unknown."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(ScrapeEngineError, ValueError):
    """Raised when a status change is not allowed by the session lifecycle."""


class RuleError(ScrapeEngineError):
    """A cleaning or validation rule references something that does not exist.

    Never escapes the rule step: it turns the step into an unsuccessful
    transformation.
    """


class PipelineError(ScrapeEngineError):
    """Raised when a processing batch fails outside the per-record loop."""


class ExportError(ScrapeEngineError):
    """Raised by export writers. Converted into a failed export job."""
