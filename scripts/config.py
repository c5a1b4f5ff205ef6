#!/usr/bin/env python3
"""
Configuration for dataset sources and fetch settings.

Configuration is read from config/datasets.yaml. When the file does not
exist the built-in Taipei datasets and default settings are used.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from constants import MAX_PAGES, PAGE_SIZE, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / 'config' / 'datasets.yaml'
DEFAULT_DATA_DIR = PROJECT_ROOT / 'data'


class ConfigError(Exception):
    """Configuration file is unreadable or invalid."""


@dataclass(frozen=True)
class DatasetSource:
    """One open-data dataset to fetch."""
    id: str
    label: str
    url: str
    source_name: str = ''


@dataclass
class Settings:
    """Fetch and cache settings."""
    page_size: int = PAGE_SIZE
    max_pages: int = MAX_PAGES
    timeout: int = REQUEST_TIMEOUT
    proxy_base: str = 'https://corsproxy.io/?'
    use_proxy: bool = False
    cache_path: str = 'data/cache/snapshot.json'

    def resolve_cache_path(self, root: Optional[Path] = None) -> Path:
        """Cache path, relative paths resolved against the project root."""
        path = Path(self.cache_path)
        if path.is_absolute():
            return path
        return (root or PROJECT_ROOT) / path


@dataclass
class Config:
    settings: Settings = field(default_factory=Settings)
    datasets: List[DatasetSource] = field(default_factory=list)


DEFAULT_DATASETS = [
    DatasetSource(
        id='third-lane',
        label='開放機車行駛第3車道',
        url='https://data.taipei/api/v1/dataset/a15f2a8d-eb1a-489d-a25f-3d816af10177?scope=resourceAquire',
        source_name='臺北市開放機車行駛第3車道路段列表',
    ),
    DatasetSource(
        id='two-lanes-two-stage',
        label='二車道例外兩段式左轉管制',
        url='https://data.taipei/api/v1/dataset/86c7c859-78d4-430c-bada-277203abd881?scope=resourceAquire',
        source_name='臺北市二車道路段例外實施兩段式左轉管制清冊',
    ),
    DatasetSource(
        id='three-plus-direct-left',
        label='三(含)車道以上直接左轉例外',
        url='https://data.taipei/api/v1/dataset/e77ab72d-cffa-46be-8b5c-16d60c32fce5?scope=resourceAquire',
        source_name='臺北市三(含)車道以上例外開放機車直接左轉路口',
    ),
]


def _parse_settings(raw: Optional[Dict]) -> Settings:
    raw = raw or {}
    known = {f.name for f in fields(Settings)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
    return Settings(**raw)


def _parse_dataset(raw: Dict, index: int) -> DatasetSource:
    if not isinstance(raw, dict):
        raise ConfigError(f"Dataset {index}: expected a mapping, got {type(raw).__name__}")

    missing = [k for k in ('id', 'label', 'url') if not raw.get(k)]
    if missing:
        raise ConfigError(f"Dataset {index}: missing {', '.join(missing)}")

    return DatasetSource(
        id=str(raw['id']),
        label=str(raw['label']),
        url=str(raw['url']),
        source_name=str(raw.get('source_name') or raw.get('source') or ''),
    )


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML file (default: config/datasets.yaml)

    Returns:
        Config with settings and dataset sources
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        if config_path:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug(f"No config at {path}, using built-in datasets")
        return Config(settings=Settings(), datasets=list(DEFAULT_DATASETS))

    try:
        with open(path, encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    settings = _parse_settings(raw.get('settings'))

    raw_datasets = raw.get('datasets')
    if raw_datasets is None:
        datasets = list(DEFAULT_DATASETS)
    else:
        datasets = [_parse_dataset(d, i) for i, d in enumerate(raw_datasets)]

    logger.debug(f"Loaded {len(datasets)} datasets from {path}")
    return Config(settings=settings, datasets=datasets)
