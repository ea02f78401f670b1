"""Tests for extracting and flattening nested export archives."""

import io
import zipfile
from pathlib import Path

import pytest

from archive.archive_normalizer import ArchiveNormalizer
from errors import ExtractionError


def zip_bytes(entries):
    """Build zip content in memory; a None value marks a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as archive:
        for name, content in entries.items():
            if content is None:
                archive.writestr(zipfile.ZipInfo(name.rstrip('/') + '/'), b'')
            else:
                archive.writestr(name, content)
    return buffer.getvalue()


def write_zip(path: Path, entries) -> Path:
    path.write_bytes(zip_bytes(entries))
    return path


def snapshot(root: Path):
    """Relative paths and file contents under root."""
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob('*'))
    }


class TestFlatten:
    """Test the two-level nesting convention."""

    def test_parts_and_export_folder(self, tmp_path):
        """Part archives are unpacked and removed, export folders are hoisted."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Part-1.zip': zip_bytes({'alpha.md': b'# Alpha'}),
            'Part-2.zip': zip_bytes({'beta/gamma.md': b'# Gamma'}),
            'Export-foo/notes.md': b'# Notes',
        })
        destination = tmp_path / 'workspace'

        ArchiveNormalizer().flatten(archive, destination)

        assert not (destination / 'Part-1.zip').exists()
        assert not (destination / 'Part-2.zip').exists()
        assert not (destination / 'Export-foo').exists()
        assert (destination / 'notes.md').read_bytes() == b'# Notes'
        assert (destination / 'alpha.md').read_bytes() == b'# Alpha'
        assert (destination / 'beta' / 'gamma.md').read_bytes() == b'# Gamma'

    def test_parts_wrapping_export_folder(self, tmp_path):
        """Parts named after the export id unpack into a shared export folder."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Export-1f2e-Part-1.zip': zip_bytes({
                'Export-1f2e/Home 1a2b.md': b'home',
                'Export-1f2e/Home/Child 3c4d.md': b'child',
            }),
            'Export-1f2e-Part-2.zip': zip_bytes({
                'Export-1f2e/Notes 5e6f.md': b'notes',
            }),
        })
        destination = tmp_path / 'out'

        stats = ArchiveNormalizer().flatten(archive, destination)

        assert sorted(p.name for p in destination.iterdir()) == ['Home', 'Home 1a2b.md', 'Notes 5e6f.md']
        assert (destination / 'Home' / 'Child 3c4d.md').read_bytes() == b'child'
        assert stats['parts_extracted'] == 2
        assert stats['export_folders_flattened'] == 1
        assert stats['entries_moved'] == 3

    def test_plain_archive_is_left_alone(self, tmp_path):
        """Archives without parts or export folders extract as-is."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Page.md': b'page',
            'Page/image.png': b'\x89PNG',
            'Exported notes/readme.md': b'readme',
        })
        destination = tmp_path / 'out'

        stats = ArchiveNormalizer().flatten(archive, destination)

        assert (destination / 'Page.md').exists()
        assert (destination / 'Page' / 'image.png').exists()
        assert (destination / 'Exported notes' / 'readme.md').exists()
        assert stats['parts_extracted'] == 0
        assert stats['export_folders_flattened'] == 0

    def test_overwrites_existing_files(self, tmp_path):
        """Extraction overwrites files already present in the destination."""
        archive = write_zip(tmp_path / 'workspace.zip', {'Page.md': b'new'})
        destination = tmp_path / 'out'
        destination.mkdir()
        (destination / 'Page.md').write_bytes(b'old')

        ArchiveNormalizer().flatten(archive, destination)

        assert (destination / 'Page.md').read_bytes() == b'new'

    def test_idempotent_across_fresh_destinations(self, tmp_path):
        """The same archive always produces the same tree."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Export-a-Part-1.zip': zip_bytes({'Export-a/one.md': b'1', 'Export-a/sub/two.md': b'2'}),
            'Export-a-Part-2.zip': zip_bytes({'Export-a/three.md': b'3'}),
            'Export-b/four.md': b'4',
        })
        normalizer = ArchiveNormalizer()

        normalizer.flatten(archive, tmp_path / 'first')
        normalizer.flatten(archive, tmp_path / 'second')

        assert snapshot(tmp_path / 'first') == snapshot(tmp_path / 'second')
        assert set(snapshot(tmp_path / 'first')) == {'one.md', 'sub', 'sub/two.md', 'three.md', 'four.md'}


class TestExtractionErrors:
    """Test the failure modes of flatten()."""

    def test_deeper_nesting_is_unsupported(self, tmp_path):
        """A part archive containing further parts is rejected."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Part-1.zip': zip_bytes({'Part-2.zip': zip_bytes({'deep.md': b'deep'})}),
        })

        with pytest.raises(ExtractionError, match='one level'):
            ArchiveNormalizer().flatten(archive, tmp_path / 'out')

    def test_malformed_archive(self, tmp_path):
        """A file that is not a zip archive raises ExtractionError."""
        archive = tmp_path / 'workspace.zip'
        archive.write_bytes(b'<html>Access denied</html>')

        with pytest.raises(ExtractionError, match='Malformed'):
            ArchiveNormalizer().flatten(archive, tmp_path / 'out')

    def test_malformed_part_archive(self, tmp_path):
        """A corrupt nested part raises ExtractionError."""
        archive = write_zip(tmp_path / 'workspace.zip', {'Part-1.zip': b'not a zip'})

        with pytest.raises(ExtractionError):
            ArchiveNormalizer().flatten(archive, tmp_path / 'out')

    def test_missing_archive(self, tmp_path):
        """A missing archive file raises ExtractionError."""
        with pytest.raises(ExtractionError):
            ArchiveNormalizer().flatten(tmp_path / 'missing.zip', tmp_path / 'out')

    def test_collision_between_export_folders(self, tmp_path):
        """Two export folders with a same-named child are not merged silently."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'Export-a/index.md': b'a',
            'Export-b/index.md': b'b',
        })

        with pytest.raises(ExtractionError, match='index.md'):
            ArchiveNormalizer().flatten(archive, tmp_path / 'out')

    def test_collision_with_top_level_entry(self, tmp_path):
        """A hoisted child may not replace an entry already at the root."""
        archive = write_zip(tmp_path / 'workspace.zip', {
            'index.md': b'root',
            'Export-a/index.md': b'nested',
        })
        destination = tmp_path / 'out'

        with pytest.raises(ExtractionError):
            ArchiveNormalizer().flatten(archive, destination)

        assert (destination / 'index.md').read_bytes() == b'root'


class TestFindExportFolders:
    """Test export folder discovery."""

    def test_only_top_level_directories(self, tmp_path):
        """Files and non-matching directories are ignored."""
        (tmp_path / 'Export-b').mkdir()
        (tmp_path / 'Export-a').mkdir()
        (tmp_path / 'Export-c.md').write_text('file')
        (tmp_path / 'Notes').mkdir()

        folders = ArchiveNormalizer.find_export_folders(tmp_path)

        assert [f.name for f in folders] == ['Export-a', 'Export-b']
