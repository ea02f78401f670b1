"""Data models for the Notion workspace export pipeline."""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Optional

# Nested archives embedded in the top-level export, e.g. "Export-1f2e-Part-1.zip"
PART_ARCHIVE_PATTERN = re.compile(r'Part-\d+\.zip')
EXPORT_FOLDER_PREFIX = 'Export-'


class ExportFormat(Enum):
    """Export formats accepted by the enqueueTask endpoint."""
    MARKDOWN = "markdown"
    HTML = "html"


class CollectionViewExportType(Enum):
    """How database (collection) views are exported."""
    CURRENT_VIEW = "currentView"
    ALL = "all"


class TaskState(Enum):
    """Lifecycle states of a remote export task."""
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_FOUND = "not_found"

    @classmethod
    def from_remote(cls, value: Optional[str]) -> Optional['TaskState']:
        """Map a remote state string to a TaskState, or None if unrecognized."""
        if value == 'not_started':
            return cls.SUBMITTED
        # not_found is only ever observed by the driver, never reported
        if value == cls.NOT_FOUND.value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCESS, TaskState.FAILURE)


class ArchiveEntryKind(Enum):
    """Classification of a path found inside a downloaded export archive."""
    FILE = "file"
    PART_ARCHIVE = "part_archive"
    EXPORT_FOLDER = "export_folder"


def classify_entry(name: str, is_dir: bool = False) -> ArchiveEntryKind:
    """
    Classify an archive entry by the service's naming convention.

    Args:
        name: Entry path relative to the archive root (POSIX separators)
        is_dir: Whether the entry is a directory

    Returns:
        ArchiveEntryKind for the entry
    """
    path = PurePosixPath(name.rstrip('/'))
    if not is_dir and PART_ARCHIVE_PATTERN.search(path.name):
        return ArchiveEntryKind.PART_ARCHIVE
    if is_dir and len(path.parts) == 1 and path.name.startswith(EXPORT_FOLDER_PREFIX):
        return ArchiveEntryKind.EXPORT_FOLDER
    return ArchiveEntryKind.FILE


@dataclass
class ExportOptions:
    """Options sent with an export request."""

    export_type: str = ExportFormat.MARKDOWN.value
    locale: str = "en"
    time_zone: str = "Europe/Berlin"
    collection_view_export_type: str = CollectionViewExportType.CURRENT_VIEW.value
    include_comments: bool = False

    def to_request(self) -> Dict[str, Any]:
        """Serialize to the exportOptions payload."""
        return {
            'exportType': self.export_type,
            'collectionViewExportType': self.collection_view_export_type,
            'timeZone': self.time_zone,
            'locale': self.locale,
            'preferredViewMap': {},
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportOptions':
        """Build export options from the 'export' configuration section."""
        export_config = config.get('export', {})
        defaults = cls()
        return cls(
            export_type=export_config.get('export_type', defaults.export_type),
            locale=export_config.get('locale', defaults.locale),
            time_zone=export_config.get('time_zone', defaults.time_zone),
            collection_view_export_type=export_config.get(
                'collection_view_export_type', defaults.collection_view_export_type
            ),
            include_comments=export_config.get('include_comments', defaults.include_comments),
        )


@dataclass
class ExportJob:
    """Snapshot of one remote export task as seen by a single poll."""

    id: str
    state: TaskState
    raw_state: Optional[str] = None
    pages_exported: Optional[int] = None
    export_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def not_found(cls, task_id: str) -> 'ExportJob':
        """Job record for a task id missing from the status response."""
        return cls(id=task_id, state=TaskState.NOT_FOUND)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExportJob':
        """
        Build a job snapshot from a getTasks result record.

        Unrecognized states are kept in raw_state and reported as IN_PROGRESS.
        """
        raw_state = data.get('state')
        state = TaskState.from_remote(raw_state) or TaskState.IN_PROGRESS
        status = data.get('status') or {}
        if not isinstance(status, dict):
            status = {}

        return cls(
            id=data.get('id'),
            state=state,
            raw_state=raw_state,
            pages_exported=status.get('pagesExported'),
            export_url=status.get('exportURL'),
            error=data.get('error'),
        )

    @property
    def display_state(self) -> str:
        return self.raw_state or self.state.value


@dataclass
class ExportResult:
    """Download reference returned by a successful export; URL and token travel together."""

    task_id: str
    download_url: str
    file_token: str
    pages_exported: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize result to dictionary (token redacted)."""
        return {
            'task_id': self.task_id,
            'download_url': self.download_url,
            'file_token': '***REDACTED***',
            'pages_exported': self.pages_exported,
        }


@dataclass
class PollingState:
    """Per-run polling counters threaded through the polling loop."""

    poll_attempt: int = 0
    rate_limit_strikes: int = 0
    started_at: float = field(default_factory=time.time)

    def record_rate_limit(self) -> None:
        """Register a rate-limited poll; does not consume the attempt budget."""
        self.rate_limit_strikes += 1

    def record_response(self) -> None:
        """Register a non-rate-limited poll."""
        self.rate_limit_strikes = 0
        self.poll_attempt += 1

    def backoff_seconds(self) -> float:
        """Exponential backoff component; zero while not rate limited."""
        if self.rate_limit_strikes == 0:
            return 0.0
        return float(2 ** self.rate_limit_strikes)

    def elapsed(self) -> float:
        return time.time() - self.started_at
