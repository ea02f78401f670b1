"""Export job driver: submits a workspace export and polls it to completion."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from errors import ExportTimeout, ProtocolError, RemoteFailure, RemoteRejected
from models import ExportJob, ExportOptions, ExportResult, PollingState, TaskState
from notion_client import FILE_TOKEN_COOKIE, NotionClient

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_POLL_ATTEMPTS = 100
EXPORT_EVENT_NAME = 'exportSpace'
GENERIC_FAILURE_REASON = 'unknown error'


class ExportJobDriver:
    """
    Drives one remote export task from submission to a download reference.

    The driver never mutates remote state after submission; every transition
    is observed through getTasks polls. Rate-limited polls back off
    exponentially without consuming the attempt budget.
    """

    def __init__(
        self,
        client: NotionClient,
        space_id: str,
        options: Optional[ExportOptions] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize export job driver.

        Args:
            client: NotionClient used for enqueueTask/getTasks
            space_id: Workspace (space) id to export
            options: Default export options for submit() and run()
            poll_interval: Base seconds to wait before each poll
            max_poll_attempts: Ceiling on non-rate-limited polls
            sleep: Sleep function, the loop's only suspension point
            logger: Optional logger instance
        """
        if not space_id:
            raise ValueError("ExportJobDriver requires a space_id")
        if max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be a positive integer")

        self.client = client
        self.space_id = space_id
        self.options = options or ExportOptions()
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sleep = sleep
        self.logger = logger or logging.getLogger('notion_workspace_exporter.exporters.export_job_driver')

    def build_task(self, options: Optional[ExportOptions] = None) -> Dict[str, Any]:
        """Build the enqueueTask payload for a full space export."""
        options = options or self.options
        return {
            'eventName': EXPORT_EVENT_NAME,
            'request': {
                'spaceId': self.space_id,
                'shouldExportComments': options.include_comments,
                'exportOptions': options.to_request(),
            },
        }

    def submit(self, options: Optional[ExportOptions] = None) -> str:
        """
        Submit the export request. Never retried.

        Returns:
            Remote task id

        Raises:
            RemoteRejected: If the service refuses the request (HTTP 4xx)
            ProtocolError: On transport errors or a response without taskId
        """
        task = self.build_task(options)

        try:
            data = self.client.enqueue_task(task)
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code is not None and 400 <= status_code < 500:
                raise RemoteRejected(
                    f"Export request rejected with HTTP {status_code}", status_code=status_code
                ) from e
            raise ProtocolError(f"Export submission failed: {e}", status_code=status_code) from e
        except requests.exceptions.RequestException as e:
            raise ProtocolError(f"Export submission failed: {e}") from e
        except ValueError as e:
            raise ProtocolError(f"Export submission returned invalid JSON: {e}") from e

        task_id = data.get('taskId') if isinstance(data, dict) else None
        if not task_id:
            raise ProtocolError(f"Export submission response has no taskId: {str(data)[:200]}")

        self.logger.info(f"Started export as task [{task_id}].")
        return task_id

    def run(self, options: Optional[ExportOptions] = None) -> ExportResult:
        """
        Submit an export and poll until it produces a download reference.

        Returns:
            ExportResult with download URL and file token from the same response

        Raises:
            RemoteRejected, ProtocolError, RemoteFailure, ExportTimeout
        """
        task_id = self.submit(options)
        return self.wait_for_completion(task_id)

    def wait_for_completion(self, task_id: str, state: Optional[PollingState] = None) -> ExportResult:
        """
        Poll a submitted task until it reaches a terminal state.

        Args:
            task_id: Remote task id
            state: Optional polling state (a fresh one is created by default)

        Returns:
            ExportResult on success
        """
        state = state or PollingState()

        while state.poll_attempt < self.max_poll_attempts:
            delay = self.poll_interval + state.backoff_seconds()
            self.sleep(delay)

            result = self._poll_once(task_id, state)
            if result is not None:
                return result

        elapsed = state.elapsed()
        self.logger.error(
            f"Export task [{task_id}] still not finished after {state.poll_attempt} attempts "
            f"({elapsed:.1f}s)"
        )
        raise ExportTimeout(task_id, state.poll_attempt, elapsed)

    def _poll_once(self, task_id: str, state: PollingState) -> Optional[ExportResult]:
        """
        Issue one status query and apply it to the polling state.

        Returns:
            ExportResult when the task succeeded, None to keep polling
        """
        try:
            tasks, response_metadata = self.client.get_tasks([task_id], return_metadata=True)
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code == 429:
                state.record_rate_limit()
                self.logger.warning(
                    f"Rate limited (429), applying exponential backoff "
                    f"({state.backoff_seconds():.0f}s)..."
                )
                return None
            raise ProtocolError(f"Status query failed: {e}", status_code=status_code) from e
        except requests.exceptions.RequestException as e:
            raise ProtocolError(f"Status query failed: {e}") from e
        except ValueError as e:
            raise ProtocolError(f"Malformed status response: {e}") from e

        state.record_response()
        progress = f"[Attempt {state.poll_attempt}/{self.max_poll_attempts}]"

        job = self._find_job(tasks, task_id)
        if job.state is TaskState.NOT_FOUND:
            self.logger.info(f"{progress} Task not found, retrying...")
            return None

        self.logger.info(f"{progress} Task state: {job.display_state}")
        if job.pages_exported:
            self.logger.info(f"  Progress: {job.pages_exported} pages exported")

        if job.error:
            raise RemoteFailure(task_id, str(job.error))

        if not job.state.is_terminal:
            return None

        if job.state is TaskState.FAILURE:
            raise RemoteFailure(task_id, GENERIC_FAILURE_REASON)

        return self._build_result(job, response_metadata)

    @staticmethod
    def _find_job(tasks: List[Dict[str, Any]], task_id: str) -> ExportJob:
        for task in tasks:
            if isinstance(task, dict) and task.get('id') == task_id:
                return ExportJob.from_dict(task)
        return ExportJob.not_found(task_id)

    def _build_result(self, job: ExportJob, response_metadata: Dict[str, Any]) -> ExportResult:
        """Pair the export URL with the file token set by the same response."""
        if not job.export_url:
            self.logger.error(f"Task object: {job}")
            raise ProtocolError(f"Task {job.id} succeeded but exportURL is missing")

        cookies = response_metadata.get('cookies') or {}
        file_token = cookies.get(FILE_TOKEN_COOKIE)
        if not file_token:
            raise ProtocolError(f"Task {job.id} finished but {FILE_TOKEN_COOKIE} cookie not found")

        self.logger.info(f"Export finished! Total pages: {job.pages_exported or 'unknown'}")
        return ExportResult(
            task_id=job.id,
            download_url=job.export_url,
            file_token=file_token,
            pages_exported=job.pages_exported,
        )

    @classmethod
    def from_config(
        cls,
        client: NotionClient,
        config: Dict[str, Any],
        sleep: Callable[[float], None] = time.sleep
    ) -> 'ExportJobDriver':
        """
        Initialize driver from configuration dictionary.

        Args:
            client: NotionClient instance
            config: Configuration dictionary with notion, export and polling settings
            sleep: Sleep function

        Returns:
            ExportJobDriver instance
        """
        polling_config = config.get('polling', {})

        return cls(
            client=client,
            space_id=config.get('notion', {}).get('space_id'),
            options=ExportOptions.from_config(config),
            poll_interval=polling_config.get('interval', DEFAULT_POLL_INTERVAL),
            max_poll_attempts=polling_config.get('max_attempts', DEFAULT_MAX_POLL_ATTEMPTS),
            sleep=sleep,
        )
