"""Notion internal API (api/v3) client for enqueueing and tracking export tasks."""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urljoin

import requests
import urllib3

logger = logging.getLogger('notion_workspace_exporter.client')

DEFAULT_BASE_URL = "https://www.notion.so/api/v3"
ACTIVE_USER_HEADER = 'x-notion-active-user-header'
AUTH_COOKIE = 'token_v2'
FILE_TOKEN_COOKIE = 'file_token'


class NotionClient:
    """Notion API client with cookie authentication, request spacing and error logging."""

    def __init__(
        self,
        token: str,
        user_id: str,
        base_url: str = DEFAULT_BASE_URL,
        verify_ssl: bool = True,
        timeout: int = 30,
        rate_limit: float = 0.0
    ):
        """
        Initialize Notion client.

        Args:
            token: Value of the token_v2 browser cookie
            user_id: Acting user id sent in the active-user header
            base_url: API base URL (default: https://www.notion.so/api/v3)
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            rate_limit: Minimum seconds between requests (0.0 = no spacing)
        """
        if not token:
            raise ValueError("Notion client requires a token")
        if not user_id:
            raise ValueError("Notion client requires a user_id")

        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.rate_limit = rate_limit
        self.last_request_time = 0.0

        self.session = requests.Session()
        # An explicit Cookie header keeps the session cookie jar out of every request
        self.session.headers['Cookie'] = f'{AUTH_COOKIE}={token};'
        self.session.headers[ACTIVE_USER_HEADER] = user_id

        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        logger.debug(f"Client configured for {self.base_url} with timeout={timeout}s, "
                     f"rate_limit={rate_limit}s")

    def _enforce_rate_limit(self) -> None:
        """Enforce minimum spacing between requests if configured."""
        if self.rate_limit <= 0:
            return

        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.rate_limit:
            sleep_time = self.rate_limit - time_since_last
            logger.debug(f"Request spacing: sleeping for {sleep_time:.2f}s")
            time.sleep(sleep_time)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        full_url: Optional[str] = None,
        **kwargs
    ) -> requests.Response:
        """
        Make HTTP request and raise for non-2xx responses.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to base_url (e.g., "getTasks")
            full_url: Optional full URL (overrides base_url + endpoint)
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            requests.exceptions.HTTPError: For HTTP errors (including 429)
            requests.exceptions.RequestException: For transport errors
        """
        self._enforce_rate_limit()

        url = full_url if full_url else urljoin(self.base_url, endpoint.lstrip('/'))
        start_time = time.time()
        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            elapsed = time.time() - start_time
            logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

            response.raise_for_status()
            return response

        except requests.exceptions.Timeout:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            if status_code == 429:
                # Retrying is the caller's decision
                logger.debug(f"Rate limited (429): {method} {url}")
                raise
            logger.error(f"HTTP Error {status_code}: {method} {url}")

            if e.response is not None:
                try:
                    error_data = e.response.json()
                    logger.error(f"Error details: {json.dumps(error_data, indent=2)}")
                except ValueError:
                    logger.error(f"Error response: {e.response.text[:500]}")

            raise

        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise

        finally:
            self.last_request_time = time.time()

    def enqueue_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        """
        Enqueue an asynchronous task.

        Args:
            task: Task payload (eventName + request)

        Returns:
            Decoded response body, normally {"taskId": "..."}
        """
        response = self._make_request('POST', 'enqueueTask', json={'task': task})
        return response.json()

    def get_tasks(
        self,
        task_ids: List[str],
        return_metadata: bool = False
    ) -> Union[List[Dict[str, Any]], Tuple[List[Dict[str, Any]], Dict[str, Any]]]:
        """
        Fetch task records for the given task ids.

        Args:
            task_ids: Task identifiers to query
            return_metadata: If True, return tuple of (results, response_metadata)
                where response_metadata holds the cookies set by this response

        Returns:
            List of task dictionaries, or tuple with response metadata

        Raises:
            ValueError: If the body is not JSON or has no results list
        """
        response = self._make_request('POST', 'getTasks', json={'taskIds': list(task_ids)})
        data = response.json()

        results = data.get('results') if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ValueError(f"getTasks response has no results list: {str(data)[:200]}")

        if return_metadata:
            response_metadata = {
                'cookies': requests.utils.dict_from_cookiejar(response.cookies),
                'status_code': response.status_code,
            }
            return results, response_metadata
        return results

    def open_download(self, url: str, file_token: str) -> requests.Response:
        """
        Open a streaming download of an export archive.

        Args:
            url: Export URL reported by the finished task
            file_token: file_token cookie value bound to that URL

        Returns:
            Streaming response; the caller must close it
        """
        return self._make_request(
            'GET',
            '',
            full_url=url,
            stream=True,
            headers={'Cookie': f'{FILE_TOKEN_COOKIE}={file_token}'}
        )

    def close(self) -> None:
        self.session.close()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'NotionClient':
        """
        Initialize Notion client from configuration dictionary.

        Args:
            config: Configuration dictionary with notion and advanced settings

        Returns:
            NotionClient instance
        """
        notion_config = config.get('notion', {})
        advanced_config = config.get('advanced', {})

        return cls(
            token=notion_config.get('token'),
            user_id=notion_config.get('user_id'),
            base_url=notion_config.get('base_url', DEFAULT_BASE_URL),
            verify_ssl=notion_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', 30),
            rate_limit=advanced_config.get('rate_limit', 0.0)
        )
