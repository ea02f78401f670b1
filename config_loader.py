"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from models import CollectionViewExportType, ExportFormat

DEFAULT_CONFIG: Dict[str, Any] = {
    'notion': {
        'base_url': 'https://www.notion.so/api/v3',
        'token': '${NOTION_TOKEN}',
        'space_id': '${NOTION_SPACE_ID}',
        'user_id': '${NOTION_USER_ID}',
        'verify_ssl': True,
    },
    'export': {
        'export_type': ExportFormat.MARKDOWN.value,
        'locale': 'en',
        'time_zone': 'Europe/Berlin',
        'collection_view_export_type': CollectionViewExportType.CURRENT_VIEW.value,
        'include_comments': False,
        'output_directory': './workspace',
        'archive_path': './workspace.zip',
        'keep_archive': False,
    },
    'polling': {
        'interval': 3,
        'max_attempts': 100,
    },
    'advanced': {
        'request_timeout': 30,
        'rate_limit': 0.0,
        'download_chunk_size': 65536,
        'progress_bars': True,
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
    'report_path': None,
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file fall back to DEFAULT_CONFIG. Without a
        config path the defaults alone are used, which read credentials from
        NOTION_TOKEN, NOTION_SPACE_ID and NOTION_USER_ID.

        Args:
            config_path: Optional path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        file_data: Dict[str, Any] = {}

        if config_path:
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)

            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ValueError("Configuration file must contain a dictionary")
            file_data = loaded

        config_data = _deep_merge(DEFAULT_CONFIG, file_data)
        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'notion.token')
        cls._validate_required_field(config, 'notion.space_id')
        cls._validate_required_field(config, 'notion.user_id')

        base_url = get_nested(config, 'notion.base_url')
        if base_url:
            cls._validate_url(base_url, 'notion.base_url')

        export_type = get_nested(config, 'export.export_type', ExportFormat.MARKDOWN.value)
        try:
            ExportFormat(export_type)
        except ValueError:
            raise ValueError(
                f"export.export_type must be one of: {[f.value for f in ExportFormat]}"
            )

        view_type = get_nested(
            config, 'export.collection_view_export_type', CollectionViewExportType.CURRENT_VIEW.value
        )
        try:
            CollectionViewExportType(view_type)
        except ValueError:
            raise ValueError(
                "export.collection_view_export_type must be one of: "
                f"{[t.value for t in CollectionViewExportType]}"
            )

        include_comments = get_nested(config, 'export.include_comments', False)
        if not isinstance(include_comments, bool):
            raise ValueError("export.include_comments must be a boolean")

        cls._validate_required_field(config, 'export.output_directory')
        output_dir = get_nested(config, 'export.output_directory')
        if os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        cls._validate_required_field(config, 'export.archive_path')
        archive_path = get_nested(config, 'export.archive_path')
        if os.path.isdir(archive_path):
            raise ValueError(f"export.archive_path '{archive_path}' is a directory")

        # The output directory is replaced after download, taking anything inside it along
        resolved_output = Path(output_dir).resolve()
        resolved_archive = Path(archive_path).resolve()
        if resolved_archive == resolved_output or resolved_output in resolved_archive.parents:
            raise ValueError(
                f"export.archive_path '{archive_path}' must not be inside "
                f"export.output_directory '{output_dir}'"
            )

        interval = get_nested(config, 'polling.interval', 3)
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval < 0:
            raise ValueError("polling.interval must be a non-negative number")

        max_attempts = get_nested(config, 'polling.max_attempts', 100)
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
            raise ValueError("polling.max_attempts must be a positive integer")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        chunk_size = get_nested(config, 'advanced.download_chunk_size', 65536)
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError("advanced.download_chunk_size must be a positive integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('export', 'polling', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'archive_path', None):
            merged['export']['archive_path'] = args.archive_path

        if getattr(args, 'export_format', None):
            merged['export']['export_type'] = args.export_format

        if getattr(args, 'keep_archive', None) is not None:
            merged['export']['keep_archive'] = args.keep_archive

        if getattr(args, 'poll_interval', None) is not None:
            merged['polling']['interval'] = args.poll_interval

        if getattr(args, 'max_attempts', None) is not None:
            merged['polling']['max_attempts'] = args.max_attempts

        if getattr(args, 'report', None):
            merged['report_path'] = args.report

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override merged in, section by section."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "notion.space_id")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
