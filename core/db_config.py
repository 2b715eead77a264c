#!/usr/bin/env python3
"""
Datasource configuration

DbType is the closed set of engines the migrator can talk to; DbConfig is
the immutable, validated description of one datasource.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from core.errors import ConfigurationError


class DbType(Enum):
    """Supported engines: (config name, default SQLAlchemy driver)"""
    MYSQL = ("mysql", "mysql+pymysql")
    ORACLE = ("oracle", "oracle+oracledb")
    SQLSERVER = ("sqlserver", "mssql+pymssql")
    POSTGRESQL = ("postgresql", "postgresql+psycopg2")
    VAST_BASE = ("vastbase", "postgresql+psycopg2")
    KING_BASE_V8 = ("kingbase8", "postgresql+psycopg2")
    SQLITE = ("sqlite", "sqlite")

    def __init__(self, type_name: str, driver: str):
        self.type_name = type_name
        self.driver = driver

    @classmethod
    def of(cls, name: str) -> 'DbType':
        """Look up a DbType by its config name or member name, ignoring case"""
        if isinstance(name, DbType):
            return name
        key = (name or '').strip().lower()
        for member in cls:
            if key in (member.type_name, member.name.lower()):
                return member
        raise ConfigurationError(f"Unsupported database type: {name}",
                                 {'supported': [m.type_name for m in cls]})


# camelCase keys accepted from older config files
_KEY_ALIASES = {
    'dbUrl': 'url',
    'db_url': 'url',
    'userName': 'user',
    'username': 'user',
    'dbType': 'db_type',
    'type': 'db_type',
    'schemaName': 'schema_name',
    'schema': 'schema_name',
    'tbSpaceDdl': 'tablespace_ddl',
    'bufferRows': 'buffer_rows',
    'extendedMode': 'extended_mode',
}


@dataclass(frozen=True)
class DbConfig:
    """Connection parameters for one datasource"""
    id: str
    url: str
    user: str
    password: str
    db_type: DbType
    schema_name: Optional[str] = None
    encoding: Optional[str] = None
    tablespace_ddl: Optional[str] = None
    buffer_rows: Optional[int] = None
    extended_mode: bool = False

    def __post_init__(self):
        for field_name in ('id', 'url', 'user', 'password'):
            value = getattr(self, field_name)
            if value is None or not str(value).strip():
                raise ConfigurationError(f"DbConfig.{field_name} must not be blank",
                                         {'datasource': self.id, 'field': field_name})
        if not isinstance(self.db_type, DbType):
            object.__setattr__(self, 'db_type', DbType.of(self.db_type))
        if self.buffer_rows is not None and int(self.buffer_rows) <= 0:
            raise ConfigurationError(f"DbConfig.buffer_rows must be positive, got {self.buffer_rows}",
                                     {'datasource': self.id})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DbConfig':
        """Build a DbConfig from a config mapping"""
        normalized = {}
        for key, value in data.items():
            normalized[_KEY_ALIASES.get(key, key)] = value

        known = set(cls.__dataclass_fields__)
        unknown = set(normalized) - known
        if unknown:
            raise ConfigurationError(f"Unknown datasource keys: {sorted(unknown)}",
                                     {'datasource': normalized.get('id')})
        missing = [k for k in ('id', 'url', 'user', 'password', 'db_type') if k not in normalized]
        if missing:
            raise ConfigurationError(f"Missing datasource keys: {missing}",
                                     {'datasource': normalized.get('id')})

        if normalized.get('buffer_rows') not in (None, ''):
            normalized['buffer_rows'] = int(normalized['buffer_rows'])
        else:
            normalized['buffer_rows'] = None
        if isinstance(normalized.get('extended_mode'), str):
            normalized['extended_mode'] = normalized['extended_mode'].strip().lower() in ('1', 'true', 'yes')
        normalized['db_type'] = DbType.of(normalized['db_type'])
        return cls(**normalized)

    def to_dict(self, mask_password: bool = True) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'url': self.url,
            'user': self.user,
            'password': '***' if mask_password else self.password,
            'db_type': self.db_type.type_name,
            'schema_name': self.schema_name,
            'encoding': self.encoding,
            'tablespace_ddl': self.tablespace_ddl,
            'buffer_rows': self.buffer_rows,
            'extended_mode': self.extended_mode,
        }

    def __repr__(self):
        return f"DbConfig(id={self.id!r}, db_type={self.db_type.type_name}, url={self.url!r})"
