"""Archive download and normalization for Notion workspace exports.

Package Structure:
- archive_downloader: Streams the finished export archive to disk and verifies
  it against the declared Content-Length
- archive_normalizer: Extracts the archive, resolves nested "Part-N.zip"
  archives and hoists "Export-*" folder contents into the destination root
"""

from .archive_downloader import ArchiveDownloader
from .archive_normalizer import ArchiveNormalizer

__all__ = [
    'ArchiveDownloader',
    'ArchiveNormalizer'
]
