#!/usr/bin/env python3
"""
Notion Workspace Exporter - Main CLI Entry Point

Triggers a full export of a Notion workspace, waits for the export task to
finish, downloads the archive and unpacks it into a flat local directory.
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from config_loader import ConfigLoader, get_nested
from errors import ExportError
from logger import log_config, log_section, setup_logging
from models import ExportFormat
from orchestrator import ExportOrchestrator, ExportReport

__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Export a Notion workspace and unpack it into a local directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Credentials from NOTION_TOKEN, NOTION_SPACE_ID and NOTION_USER_ID
  python export_workspace.py

  # Use a configuration file
  python export_workspace.py --config config.yaml

  # HTML export into a custom directory, keeping the zip
  python export_workspace.py --format html --output-dir ./notion-html --keep-archive

  # Verbose logging and a JSON run report
  python export_workspace.py -vv --report export_report.json
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file (default: environment variables only)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Directory receiving the unpacked workspace (replaced on each run)'
    )

    parser.add_argument(
        '--archive-path',
        type=str,
        help='Where to store the downloaded export archive'
    )

    parser.add_argument(
        '--format',
        dest='export_format',
        choices=[f.value for f in ExportFormat],
        help='Export format (default: markdown)'
    )

    parser.add_argument(
        '--keep-archive',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Keep the downloaded archive after extraction'
    )

    parser.add_argument(
        '--poll-interval',
        type=float,
        help='Seconds to wait between status polls (default: 3)'
    )

    parser.add_argument(
        '--max-attempts',
        type=int,
        help='Maximum number of status polls before giving up (default: 100)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON run report to this path'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_export(config: dict, logger: logging.Logger) -> int:
    """Execute the export pipeline and report the outcome."""
    try:
        orchestrator = ExportOrchestrator(config)
        report = orchestrator.run()
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        return 1

    report_generator = ExportReport()
    print("\n" + report_generator.format_console_report(report))

    report_path = config.get('report_path')
    if report_path:
        try:
            report_generator.export_json_report(report, report_path)
        except OSError as e:
            logger.warning(f"Failed to export JSON report: {str(e)}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose, log_file=args.log_file)
        logger = logging.getLogger('notion_workspace_exporter.cli')

        log_section("Notion Workspace Exporter")
        logger.info(f"Version: {__version__}")

        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Config file level only applies when no -v flag was given
        configured_level = get_nested(config, 'logging.level')
        if configured_level and not args.verbose:
            setup_logging(level=configured_level, log_file=get_nested(config, 'logging.file'))

        log_config(config)

        return run_export(config, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
