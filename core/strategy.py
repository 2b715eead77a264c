#!/usr/bin/env python3
"""
Execution policy for a migration run.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Pattern, Tuple

from core.errors import ConfigurationError

DEFAULT_PAGE_SIZE = 5000
DEFAULT_MAX_RECORD_COUNT = 500_000


class BuildMode(Enum):
    DELETE_AND_REBUILD = "delete_and_rebuild"
    SKIP_WHEN_EXIST = "skip_when_exist"

    @classmethod
    def of(cls, value) -> 'BuildMode':
        if isinstance(value, BuildMode):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ConfigurationError(f"Unknown build mode: {value}",
                                 {'supported': [m.value for m in cls]})


@dataclass(frozen=True)
class ExecuteStrategy:
    """Immutable run policy shared by every worker"""
    build_mode: BuildMode = BuildMode.DELETE_AND_REBUILD
    max_record_count: int = -1
    include_data: bool = True
    ignored_table_patterns: Tuple[str, ...] = ()
    continue_when_error: bool = True
    page_size: int = DEFAULT_PAGE_SIZE
    debug: bool = False
    _compiled: Tuple[Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'build_mode', BuildMode.of(self.build_mode))
        object.__setattr__(self, 'ignored_table_patterns', tuple(self.ignored_table_patterns or ()))
        if self.page_size < 1:
            raise ConfigurationError(f"page_size must be at least 1, got {self.page_size}")
        if self.max_record_count < -1:
            raise ConfigurationError(f"max_record_count must be -1 or non-negative, got {self.max_record_count}")
        compiled = []
        for pattern in self.ignored_table_patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                raise ConfigurationError(f"Invalid ignored table pattern '{pattern}': {e}")
        object.__setattr__(self, '_compiled', tuple(compiled))

    @classmethod
    def default(cls, **overrides) -> 'ExecuteStrategy':
        """Out-of-the-box policy: rebuild, copy data, skip tables above 500k rows"""
        values = {'max_record_count': DEFAULT_MAX_RECORD_COUNT}
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecuteStrategy':
        """Build a strategy from a config mapping; unset keys keep defaults"""
        aliases = {
            'buildType': 'build_mode',
            'build_type': 'build_mode',
            'maxRecordCount': 'max_record_count',
            'includeData': 'include_data',
            'ignoredTableNames': 'ignored_table_patterns',
            'ignored_table_names': 'ignored_table_patterns',
            'continueWhenError': 'continue_when_error',
            'pageSize': 'page_size',
        }
        values = {}
        for key, value in (data or {}).items():
            key = aliases.get(key, key)
            if key not in cls.__dataclass_fields__ or key.startswith('_'):
                raise ConfigurationError(f"Unknown strategy key: {key}")
            values[key] = value
        for key in ('max_record_count', 'page_size'):
            if key in values:
                values[key] = int(values[key])
        for key in ('include_data', 'continue_when_error', 'debug'):
            if isinstance(values.get(key), str):
                values[key] = values[key].strip().lower() in ('1', 'true', 'yes')
        if isinstance(values.get('ignored_table_patterns'), str):
            values['ignored_table_patterns'] = [values['ignored_table_patterns']]
        return cls(**values)

    def exceeds_max(self, record_count: int) -> bool:
        """True when a known row count is above the configured cutoff"""
        return self.max_record_count != -1 and record_count != -1 and record_count > self.max_record_count

    def is_ignored_name(self, table_name: str) -> bool:
        """True when the bare table name fully matches an ignored pattern"""
        return any(p.fullmatch(table_name) for p in self._compiled)

    def should_skip(self, table_name: str, record_count: int) -> bool:
        return self.exceeds_max(record_count) or self.is_ignored_name(table_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'build_mode': self.build_mode.value,
            'max_record_count': self.max_record_count,
            'include_data': self.include_data,
            'ignored_table_patterns': list(self.ignored_table_patterns),
            'continue_when_error': self.continue_when_error,
            'page_size': self.page_size,
            'debug': self.debug,
        }
