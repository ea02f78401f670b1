"""Exception hierarchy for the export, download and extraction pipeline."""

from typing import Optional


class ExportError(Exception):
    """Base exception for all workspace export failures."""
    pass


class ProtocolError(ExportError):
    """Remote response had an unexpected shape, or the transport failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RemoteRejected(ProtocolError):
    """The service refused the export request outright."""
    pass


class RemoteFailure(ExportError):
    """The remote export task reported failure."""

    def __init__(self, task_id: str, reason: str):
        """
        Initialize remote failure.

        Args:
            task_id: Remote task identifier
            reason: Failure reason reported by the service
        """
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Export task {task_id} failed with reason: {reason}")


class ExportTimeout(ExportError):
    """The task stayed non-terminal for the whole polling budget."""

    def __init__(self, task_id: str, attempts: int, elapsed: float):
        self.task_id = task_id
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"Export task {task_id} timed out after {attempts} attempts "
            f"({elapsed / 60:.1f} minutes)"
        )


class DownloadError(ExportError):
    """Archive download failed or terminated early."""
    pass


class ExtractionError(ExportError):
    """Archive content could not be extracted or normalized."""
    pass


__all__ = [
    'ExportError',
    'ProtocolError',
    'RemoteRejected',
    'RemoteFailure',
    'ExportTimeout',
    'DownloadError',
    'ExtractionError',
]
