"""Shared utilities for CLI commands."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict

import click

from config import Config, load_config

# Flag name -> (environment variable, config section, config field, type, help)
CONFIG_OPTIONS = [
    ('format', 'EXPORT_FORMAT', 'dgraph', 'export_format', str,
     "Export format, rdf or json [default: json]"),
    ('aws-bucket', 'AWS_BUCKET', 'storage', 'bucket', str,
     "S3 bucket [default: dgraph-backup]"),
    ('aws-region', 'AWS_REGION', 'storage', 'region', str,
     "S3 region [default: ap-northeast-2]"),
    ('dgraph-host', 'DGRAPH_HOST', 'dgraph', 'host', str,
     "Dgraph HTTP address, e.g. http://localhost:8080"),
    ('file-prefix', 'FILE_PREFIX', 'archive', 'file_prefix', str,
     "Backup file prefix: <prefix>-<timestamp>.zip"),
    ('aws-key', 'AWS_ACCESS_KEY', 'storage', 'access_key', str,
     "S3 access key (required)"),
    ('aws-secret', 'AWS_ACCESS_SECRET', 'storage', 'secret_key', str,
     "S3 access secret (required)"),
    ('export-path', 'EXPORT_PATH', 'dgraph', 'export_path', str,
     "Directory Dgraph writes the export to [default: ./export]"),
    ('cron-every-minute', 'CRON_EVERY_MINUTE', 'schedule', 'every_minutes', int,
     "Minutes between scheduled backups [default: 1]"),
    ('max-attempts', 'MAX_ATTEMPTS', 'polling', 'max_attempts', int,
     "Readiness checks before giving up [default: 10]"),
    ('endpoint-url', 'S3_ENDPOINT_URL', 'storage', 'endpoint_url', str,
     "Custom S3-compatible endpoint"),
]


def _param_name(flag: str) -> str:
    return flag.replace('-', '_')


def config_options(func):
    """Add the shared configuration flags (with environment fallbacks) to a command."""
    for flag, envvar, _, _, opt_type, help_text in reversed(CONFIG_OPTIONS):
        func = click.option(
            f'--{flag}',
            _param_name(flag),
            envvar=envvar,
            type=opt_type,
            default=None,
            show_envvar=True,
            help=help_text
        )(func)
    return func


def options_to_overrides(options: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert flag values to the nested override dict used by load_config."""
    overrides: Dict[str, Dict[str, Any]] = {}
    for flag, _, section, field, _, _ in CONFIG_OPTIONS:
        value = options.get(_param_name(flag))
        if value is not None:
            overrides.setdefault(section, {})[field] = value
    return overrides


def load_command_config(ctx: click.Context, options: Dict[str, Any],
                        extra: Dict[str, Dict[str, Any]] = None) -> Config:
    """Resolve configuration for a command and set up logging.

    Args:
        ctx: Click context holding config_path and verbose
        options: Shared flag values from the command
        extra: Additional nested overrides from command-specific flags

    Returns:
        Frozen Config
    """
    overrides = options_to_overrides(options)
    for section, values in (extra or {}).items():
        overrides.setdefault(section, {}).update(
            {k: v for k, v in values.items() if v is not None}
        )

    config = load_config(ctx.obj.get('config_path'), overrides)
    setup_logging(config, ctx.obj.get('verbose', False))
    return config


def setup_logging(config: Config, verbose: bool = False):
    """Set up console logging, plus a log file when configured.

    Args:
        config: Application configuration
        verbose: Whether to log at DEBUG level
    """
    root_logger = logging.getLogger()
    root_logger.handlers = []

    log_level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.logging.file:
        log_file = Path(config.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(logging.DEBUG if config.logging.file else log_level)

    # Quiet all libraries
    for name in ('botocore', 'boto3', 's3transfer', 'urllib3', 'httpx', 'httpcore'):
        logging.getLogger(name).setLevel(logging.WARNING)


def handle_error(error: Exception, verbose: bool = False):
    """Handle and display errors consistently.

    Args:
        error: Exception to handle
        verbose: Whether to show full traceback
    """
    click.echo(click.style(f"Error: {error}", fg='red'), err=True)
    if verbose:
        import traceback
        click.echo(traceback.format_exc(), err=True)
    sys.exit(1)


def format_time(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "2h 30m 45s")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)
        return f"{hours}h {minutes}m {secs}s"
