"""Configuration management for dgraph-backup."""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from dgraph_backup.exceptions import ConfigError


class DgraphConfig(BaseModel):
    """Dgraph server and export location."""
    model_config = ConfigDict(frozen=True)

    host: str = "http://localhost:8080"
    export_format: str = "json"
    export_path: str = "./export"
    request_timeout: Optional[float] = None

    @field_validator('host')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @field_validator('export_format')
    @classmethod
    def check_format(cls, v):
        v = v.lower()
        if v not in ('json', 'rdf'):
            raise ValueError("export format must be 'json' or 'rdf'")
        return v

    @field_validator('export_path')
    @classmethod
    def expand_path(cls, v):
        """Expand environment variables and user home directory."""
        return os.path.expanduser(os.path.expandvars(v))


class StorageConfig(BaseModel):
    """S3 bucket and credentials."""
    model_config = ConfigDict(frozen=True)

    bucket: str = "dgraph-backup"
    region: str = "ap-northeast-2"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    key_prefix: str = ""

    @field_validator('key_prefix')
    @classmethod
    def normalize_prefix(cls, v):
        v = v.strip('/')
        return f"{v}/" if v else ""


class ArchiveConfig(BaseModel):
    """Local archive naming and working directories."""
    model_config = ConfigDict(frozen=True)

    file_prefix: str = "dgraph-backup"
    work_dir: str = "."
    restore_dir: str = "data"
    compression_level: int = 6

    @field_validator('work_dir', 'restore_dir')
    @classmethod
    def expand_paths(cls, v):
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator('compression_level')
    @classmethod
    def check_level(cls, v):
        if not 0 <= v <= 9:
            raise ValueError("compression level must be between 0 and 9")
        return v


class ScheduleConfig(BaseModel):
    """Backup schedule: every N minutes, or daily at HH:MM."""
    model_config = ConfigDict(frozen=True)

    every_minutes: int = 1
    at: Optional[str] = None

    @field_validator('every_minutes')
    @classmethod
    def check_period(cls, v):
        if v < 1:
            raise ValueError("schedule period must be at least one minute")
        return v

    @field_validator('at')
    @classmethod
    def check_time_of_day(cls, v):
        if v is None:
            return v
        match = re.fullmatch(r'(\d{1,2}):(\d{2})', v)
        if not match or int(match.group(1)) > 23 or int(match.group(2)) > 59:
            raise ValueError(f"invalid time of day '{v}', expected HH:MM")
        return f"{int(match.group(1)):02d}:{match.group(2)}"


class PollingConfig(BaseModel):
    """Backoff parameters for waiting on the export directory."""
    model_config = ConfigDict(frozen=True)

    max_attempts: int = 10
    initial_delay_seconds: float = 0.1
    max_delay_seconds: float = 300.0
    multiplier: float = 2.0

    @field_validator('max_attempts')
    @classmethod
    def check_attempts(cls, v):
        if v < 1:
            raise ValueError("max attempts must be at least 1")
        return v

    @field_validator('initial_delay_seconds', 'max_delay_seconds')
    @classmethod
    def check_delay(cls, v):
        if v <= 0:
            raise ValueError("delays must be positive")
        return v

    @field_validator('multiplier')
    @classmethod
    def check_multiplier(cls, v):
        if v < 1:
            raise ValueError("backoff multiplier must be >= 1")
        return v


class LoaderConfig(BaseModel):
    """External bulk loader invocation."""
    model_config = ConfigDict(frozen=True)

    command: List[str] = ["dgraph", "live", "-f"]
    extra_args: List[str] = []

    @field_validator('command')
    @classmethod
    def check_command(cls, v):
        if not v:
            raise ValueError("loader command cannot be empty")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    file: Optional[str] = None

    @field_validator('level')
    @classmethod
    def check_level(cls, v):
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"unknown log level '{v}'")
        return v


class Config(BaseModel):
    """Main configuration model. Built once at startup, never mutated."""
    model_config = ConfigDict(frozen=True)

    dgraph: DgraphConfig = DgraphConfig()
    storage: StorageConfig = StorageConfig()
    archive: ArchiveConfig = ArchiveConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    polling: PollingConfig = PollingConfig()
    loader: LoaderConfig = LoaderConfig()
    logging: LoggingConfig = LoggingConfig()

    def require_credentials(self) -> None:
        """Raise ConfigError unless S3 key and secret are both set."""
        missing = []
        if not self.storage.access_key:
            missing.append('--aws-key / AWS_ACCESS_KEY')
        if not self.storage.secret_key:
            missing.append('--aws-secret / AWS_ACCESS_SECRET')
        if missing:
            raise ConfigError(f"Missing required option(s): {', '.join(missing)}")


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge overrides into base; None values are ignored."""
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        elif isinstance(value, dict):
            merged[key] = _merge({}, value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load configuration from an optional JSON file plus flag/env overrides.

    Args:
        config_path: JSON file to read. None means defaults only.
        overrides: Nested dict of values from the command line or environment.

    Returns:
        Frozen Config instance

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ConfigError: If the merged values fail validation
    """
    data: Dict[str, Any] = {}
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_file, 'r') as f:
            data = json.load(f)
        # Drop comment keys
        data = {k: v for k, v in data.items() if not k.startswith('_')}

    data = _merge(data, overrides or {})

    try:
        return Config(**data)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def create_default_config(config_path: str = "dgraph-backup.json") -> None:
    """Create a default configuration file."""
    default_config = Config().model_dump()
    default_config['_comment'] = (
        "Credentials may be left null and supplied through "
        "AWS_ACCESS_KEY / AWS_ACCESS_SECRET instead."
    )

    with open(config_path, 'w') as f:
        json.dump(default_config, f, indent=2)
