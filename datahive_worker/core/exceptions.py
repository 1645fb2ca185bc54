"""
Error taxonomy for the DataHive worker.

Tool-level errors propagate out of the step pipeline and abort the job; the
job loop reports them as PROCESSING_FAILED and carries on polling.
"""


class WorkerError(Exception):
    """Base class for all worker errors."""

    pass


class ToolValidationError(WorkerError):
    """Tool parameters were rejected before execution."""

    pass


class ConditionFailedError(WorkerError):
    """A conditional gate rejected its input and was told to throw."""

    pass


class NetworkError(WorkerError):
    """Transport-level failure of an HTTP request made by a tool.

    ``kind`` is one of ``timeout``, ``host_not_found``,
    ``connection_refused`` or ``network``.
    """

    TIMEOUT = "timeout"
    HOST_NOT_FOUND = "host_not_found"
    CONNECTION_REFUSED = "connection_refused"
    NETWORK = "network"

    def __init__(self, message: str, kind: str = NETWORK):
        super().__init__(message)
        self.kind = kind


class ToolNotFoundError(WorkerError):
    """An unregistered tool name was requested."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = list(available)
        listed = ", ".join(self.available) or "none"
        super().__init__(f"Tool '{name}' not found. Available tools: {listed}")


class ToolRegistrationError(WorkerError):
    """A tool with the same name is already registered."""

    pass


class ToolExecutionError(WorkerError):
    """A tool could not produce a result from what it received."""

    pass


class BrowserUnavailableError(WorkerError):
    """A scrape was attempted before a browser was attached."""

    pass


class RuleDocumentError(WorkerError):
    """The job's YAML rule document does not have the expected shape."""

    pass


class ProcessingFailedError(WorkerError):
    """Wraps whatever aborted a job's pipeline run."""

    def __init__(self, job_id: str, cause: BaseException):
        self.job_id = job_id
        self.cause = cause
        super().__init__(str(cause))


class APIError(WorkerError):
    """Raised when a call to the job API fails.

    Non-2xx responses embed the status code in the message
    (``HTTP 429: ...``); the job loop relies on that to detect rate limiting.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
