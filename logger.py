"""Structured logging infrastructure with verbosity levels and colored console output."""

import copy
import logging
import logging.handlers
from typing import Any, Dict, Optional

import colorlog

ROOT_LOGGER_NAME = 'notion_workspace_exporter'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        Configured logger instance
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 2:
            log_level = logging.DEBUG
        elif verbosity >= 1:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_file}")
            logger.info(f"Log level: {logging.getLevelName(log_level)}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
    else:
        logger.info(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    sanitized_config = sanitize_config(config)

    log_section("Configuration")

    notion = sanitized_config.get('notion', {})
    logger.info(f"Notion API URL: {notion.get('base_url', 'Not Set')}")
    logger.info(f"Space ID: {notion.get('space_id', 'Not Set')}")
    logger.info(f"User ID: {notion.get('user_id', 'Not Set')}")
    logger.info("Token: ***REDACTED***" if notion.get('token') else "Token: Not Set")
    logger.info(f"Verify SSL: {notion.get('verify_ssl', True)}")

    logger.info("")

    export_settings = sanitized_config.get('export', {})
    logger.info(f"Export Type: {export_settings.get('export_type', 'markdown')}")
    logger.info(f"Locale / Time Zone: {export_settings.get('locale')} / {export_settings.get('time_zone')}")
    logger.info(f"Collection Views: {export_settings.get('collection_view_export_type')}")
    logger.info(f"Include Comments: {export_settings.get('include_comments', False)}")
    logger.info(f"Output Directory: {export_settings.get('output_directory', './workspace')}")
    logger.info(f"Archive Path: {export_settings.get('archive_path', './workspace.zip')}")
    logger.info(f"Keep Archive: {export_settings.get('keep_archive', False)}")

    logger.info("")

    polling = sanitized_config.get('polling', {})
    logger.info(f"Poll Interval: {polling.get('interval')}s")
    logger.info(f"Max Poll Attempts: {polling.get('max_attempts')}")


def sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {'token', 'secret', 'password', 'cookie'}

    def mask_sensitive(data: Any) -> Any:
        """Recursively mask sensitive fields."""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str):
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'setup_logging',
    'log_section',
    'log_config',
    'sanitize_config'
]
