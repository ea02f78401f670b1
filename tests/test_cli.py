"""Tests for the command line entry point."""

import logging
from unittest import mock

import pytest

import export_workspace
from errors import ExportTimeout, RemoteFailure


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo handler and level changes made by setup_logging."""
    logger = logging.getLogger('notion_workspace_exporter')
    handlers = list(logger.handlers)
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def notion_env(monkeypatch, tmp_path):
    monkeypatch.setenv('NOTION_TOKEN', 'env-token')
    monkeypatch.setenv('NOTION_SPACE_ID', 'env-space')
    monkeypatch.setenv('NOTION_USER_ID', 'env-user')
    monkeypatch.chdir(tmp_path)


REPORT = {
    'summary': {
        'task_id': 'task-1',
        'pages_exported': 3,
        'bytes_downloaded': 1024,
        'parts_extracted': 0,
        'export_folders_flattened': 1,
        'files': 3,
        'directories': 0,
        'output_directory': './workspace',
        'duration_formatted': '2.0s',
    },
    'phases': {},
}


class TestArgumentParser:
    """Test argument parsing."""

    def test_defaults(self):
        args = export_workspace.create_argument_parser().parse_args([])

        assert args.config is None
        assert args.keep_archive is None
        assert args.verbose == 0

    def test_overrides(self):
        args = export_workspace.create_argument_parser().parse_args([
            '--format', 'html', '--no-keep-archive', '--poll-interval', '1.5', '-vv',
        ])

        assert args.export_format == 'html'
        assert args.keep_archive is False
        assert args.poll_interval == 1.5
        assert args.verbose == 2

    def test_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            export_workspace.create_argument_parser().parse_args(['--format', 'pdf'])


class TestMain:
    """Test exit codes of the CLI."""

    def test_missing_credentials(self, monkeypatch, tmp_path, capsys):
        """Unset NOTION_* variables are a configuration error."""
        for name in ('NOTION_TOKEN', 'NOTION_SPACE_ID', 'NOTION_USER_ID'):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

        assert export_workspace.main([]) == 2
        assert 'Configuration error' in capsys.readouterr().err

    def test_missing_config_file(self, notion_env, tmp_path):
        assert export_workspace.main(['--config', str(tmp_path / 'nope.yaml')]) == 2

    def test_success(self, notion_env, tmp_path, capsys):
        """A finished run prints the summary and writes the JSON report."""
        report_path = tmp_path / 'report.json'
        with mock.patch.object(export_workspace, 'ExportOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.return_value = REPORT
            exit_code = export_workspace.main(['--format', 'html', '--report', str(report_path)])

        assert exit_code == 0
        config = orchestrator_cls.call_args[0][0]
        assert config['export']['export_type'] == 'html'
        assert 'EXPORT SUMMARY' in capsys.readouterr().out
        assert report_path.exists()

    def test_progress_logged_by_default(self, notion_env):
        """Without -v the configured INFO level applies, so progress reaches the console."""
        with mock.patch.object(export_workspace, 'ExportOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.return_value = REPORT
            assert export_workspace.main([]) == 0

        assert logging.getLogger('notion_workspace_exporter').level == logging.INFO

    @pytest.mark.parametrize('error', [
        RemoteFailure('task-1', 'quota exceeded'),
        ExportTimeout('task-1', 100, 300.0),
    ])
    def test_export_failure(self, notion_env, error):
        """Pipeline errors map to exit code 1."""
        with mock.patch.object(export_workspace, 'ExportOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.side_effect = error

            assert export_workspace.main([]) == 1

    def test_keyboard_interrupt(self, notion_env):
        with mock.patch.object(export_workspace, 'ExportOrchestrator') as orchestrator_cls:
            orchestrator_cls.return_value.run.side_effect = KeyboardInterrupt

            assert export_workspace.main([]) == 130
