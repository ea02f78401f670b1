"""
Archive normalizer for Notion workspace exports.

A Notion export archive nests its content up to two levels deep:

    workspace.zip
    ├── Export-<id>-Part-1.zip     nested part archives
    ├── Export-<id>-Part-2.zip
    └── Export-<id>/               export folder wrapping the real content
        └── ...

flatten() extracts the top-level archive, extracts and removes every part
archive, then hoists the children of every export folder into the destination
root, leaving only the workspace content.
"""

import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from errors import ExtractionError
from models import ArchiveEntryKind, classify_entry


class ArchiveNormalizer:
    """Extracts an export archive and flattens its nesting convention in place."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('notion_workspace_exporter.archive.archive_normalizer')
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            'entries_extracted': 0,
            'parts_extracted': 0,
            'export_folders_flattened': 0,
            'entries_moved': 0,
        }

    def flatten(self, archive_path: Union[str, Path], destination_dir: Union[str, Path]) -> Dict[str, int]:
        """
        Extract archive_path into destination_dir and flatten the result.

        Args:
            archive_path: Downloaded top-level export archive
            destination_dir: Directory receiving the flattened content

        Returns:
            Statistics dictionary

        Raises:
            ExtractionError: On malformed archives, unsupported nesting,
                name collisions or filesystem errors
        """
        archive_path = Path(archive_path)
        destination = Path(destination_dir)
        self.stats = self._empty_stats()

        self.logger.info(f"Extracting {archive_path.name} into {destination}")
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExtractionError(f"Cannot create destination {destination}: {e}") from e

        entry_names = self._extract_archive(archive_path, destination)
        self.stats['entries_extracted'] = len(entry_names)

        part_names = sorted(
            name for name in entry_names
            if classify_entry(name) is ArchiveEntryKind.PART_ARCHIVE
        )
        for part_name in part_names:
            self._extract_part(destination / part_name, destination)

        for folder in self.find_export_folders(destination):
            self._flatten_export_folder(folder, destination)

        self.logger.info(
            f"Flattened export: {self.stats['parts_extracted']} part archive(s), "
            f"{self.stats['export_folders_flattened']} export folder(s), "
            f"{self.stats['entries_moved']} entries moved"
        )
        return self.stats.copy()

    def _extract_archive(self, archive_path: Path, destination: Path) -> List[str]:
        """Extract every member of a zip archive, overwriting existing files."""
        try:
            with zipfile.ZipFile(archive_path) as archive:
                names = archive.namelist()
                archive.extractall(destination)
        except zipfile.BadZipFile as e:
            raise ExtractionError(f"Malformed archive {archive_path.name}: {e}") from e
        except (OSError, zipfile.LargeZipFile) as e:
            raise ExtractionError(f"Failed to extract {archive_path.name}: {e}") from e

        self.logger.debug(f"Extracted {len(names)} entries from {archive_path.name}")
        return names

    def _extract_part(self, part_path: Path, destination: Path) -> None:
        """Extract one nested part archive into destination and delete it."""
        if not part_path.is_file():
            raise ExtractionError(f"Part archive missing after extraction: {part_path.name}")

        self.logger.info(f"Extracting part archive {part_path.name}")
        nested_names = self._extract_archive(part_path, destination)

        deeper_parts = [
            name for name in nested_names
            if classify_entry(name) is ArchiveEntryKind.PART_ARCHIVE
        ]
        if deeper_parts:
            raise ExtractionError(
                f"Part archive {part_path.name} contains further part archives "
                f"({', '.join(sorted(deeper_parts))}); only one level of nesting is supported"
            )

        try:
            part_path.unlink()
        except OSError as e:
            raise ExtractionError(f"Failed to remove part archive {part_path.name}: {e}") from e

        self.stats['parts_extracted'] += 1

    @staticmethod
    def find_export_folders(destination: Path) -> List[Path]:
        """Top-level export folders in destination, in name order."""
        return sorted(
            entry for entry in destination.iterdir()
            if entry.is_dir() and classify_entry(entry.name, is_dir=True) is ArchiveEntryKind.EXPORT_FOLDER
        )

    def _flatten_export_folder(self, folder: Path, destination: Path) -> None:
        """Move every immediate child of folder into destination, then remove folder."""
        self.logger.debug(f"Flattening export folder {folder.name}")
        try:
            children = sorted(folder.iterdir())
            for child in children:
                target = destination / child.name
                if target.exists() or target.is_symlink():
                    raise ExtractionError(
                        f"Cannot move '{child.name}' out of {folder.name}: "
                        f"an entry with that name already exists in {destination}"
                    )
                child.rename(target)
                self.stats['entries_moved'] += 1
            folder.rmdir()
        except OSError as e:
            raise ExtractionError(f"Failed to flatten export folder {folder.name}: {e}") from e

        self.stats['export_folders_flattened'] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics of the last flatten() run."""
        return self.stats.copy()
