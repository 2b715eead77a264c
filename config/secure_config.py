#!/usr/bin/env python3
"""
Secure Configuration Loader for the migrator
Reads datasource and strategy settings from JSON, with credentials and other
secrets pulled from environment variables via ${VAR} / ${VAR:default}.

Example file:
    {
        "datasources": [
            {"id": "src", "url": "mysql://db1:3306/shop", "user": "reader",
             "password": "${SRC_DB_PASSWORD}", "db_type": "mysql"},
            {"id": "dst", "url": "postgresql://db2:5432/shop", "user": "writer",
             "password": "${DST_DB_PASSWORD}", "db_type": "postgresql", "schema_name": "public"}
        ],
        "strategy": {"build_mode": "delete_and_rebuild", "max_record_count": 500000}
    }
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from core.db_config import DbConfig
from core.errors import ConfigurationError
from core.strategy import ExecuteStrategy

logger = logging.getLogger(__name__)

ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')
CONFIG_ENV_VAR = 'MIGRATOR_CONFIG'


def resolve_environment_variables(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Resolve ${VAR} and ${VAR:default} inside strings, dicts and lists"""
    environ = os.environ if environ is None else environ

    def replace_env_var(match):
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ''
        return environ.get(var_name, default_value)

    if isinstance(value, str):
        return ENV_PATTERN.sub(replace_env_var, value)
    elif isinstance(value, dict):
        return {k: resolve_environment_variables(v, environ) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_environment_variables(item, environ) for item in value]
    return value


@dataclass
class MigrationSettings:
    """Resolved configuration: datasources by id plus the run strategy"""
    datasources: Dict[str, DbConfig] = field(default_factory=dict)
    strategy: ExecuteStrategy = field(default_factory=ExecuteStrategy)

    def get_datasource(self, datasource_id: str) -> DbConfig:
        try:
            return self.datasources[datasource_id]
        except KeyError:
            raise ConfigurationError(f"Unknown datasource id: {datasource_id}",
                                     {'known': sorted(self.datasources)})


def parse_config(raw: Union[Dict[str, Any], list], environ: Optional[Mapping[str, str]] = None) -> MigrationSettings:
    """Build MigrationSettings from already-parsed JSON"""
    raw = resolve_environment_variables(raw, environ)
    if isinstance(raw, list):
        raw = {'datasources': raw}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a JSON object or a list of datasources")

    datasources: Dict[str, DbConfig] = {}
    for entry in raw.get('datasources', []):
        config = DbConfig.from_dict(entry)
        if config.id in datasources:
            raise ConfigurationError(f"Duplicate datasource id: {config.id}")
        datasources[config.id] = config

    strategy = ExecuteStrategy.from_dict(raw.get('strategy') or {})
    return MigrationSettings(datasources=datasources, strategy=strategy)


def load_config_file(path: Optional[Union[str, Path]] = None,
                     environ: Optional[Mapping[str, str]] = None) -> MigrationSettings:
    """Load settings from a JSON file (defaults to $MIGRATOR_CONFIG)"""
    environ = os.environ if environ is None else environ
    path = path or environ.get(CONFIG_ENV_VAR)
    if not path:
        raise ConfigurationError(f"No configuration file given and {CONFIG_ENV_VAR} is not set")
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}")
    settings = parse_config(raw, environ)
    logger.info(f"Loaded {len(settings.datasources)} datasource(s) from {config_path}")
    return settings
