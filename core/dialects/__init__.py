"""
Dialect factory: picks the DDL compiler for a target datasource.
"""

import logging
from typing import Dict, Optional, Sequence, Type

from core.db_config import DbConfig, DbType
from core.dialects.base import (AbstractDdlCompiler, ActionType, CaseType, CommentType,
                                INDEX_PREFIX)
from core.dialects.kingbase import KingBaseDdlCompiler
from core.dialects.mysql import MySqlDdlCompiler
from core.dialects.oracle import OracleDdlCompiler
from core.dialects.postgresql import PostgreSqlDdlCompiler
from core.dialects.sqlite import SqliteDdlCompiler
from core.dialects.sqlserver import SqlServerDdlCompiler
from core.dialects.vastbase import VastBaseDdlCompiler
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

COMPILERS: Dict[DbType, Type[AbstractDdlCompiler]] = {
    DbType.ORACLE: OracleDdlCompiler,
    DbType.SQLSERVER: SqlServerDdlCompiler,
    DbType.VAST_BASE: VastBaseDdlCompiler,
    DbType.KING_BASE_V8: KingBaseDdlCompiler,
    DbType.POSTGRESQL: PostgreSqlDdlCompiler,
    DbType.MYSQL: MySqlDdlCompiler,
    DbType.SQLITE: SqliteDdlCompiler,
}


def build_compiler(target_config: DbConfig,
                   server_version: Optional[Sequence[int]] = None) -> AbstractDdlCompiler:
    """Return the DDL compiler for the target's engine"""
    compiler_cls = COMPILERS.get(target_config.db_type)
    if compiler_cls is None:
        raise ConfigurationError(f"No DDL compiler for database type {target_config.db_type.type_name}",
                                 {'datasource': target_config.id})
    compiler = compiler_cls(target_config, server_version)
    logger.debug(f"Using {compiler!r} for datasource {target_config.id}")
    return compiler


__all__ = [
    'AbstractDdlCompiler', 'ActionType', 'CaseType', 'CommentType', 'INDEX_PREFIX',
    'COMPILERS', 'build_compiler',
    'OracleDdlCompiler', 'SqlServerDdlCompiler', 'PostgreSqlDdlCompiler',
    'KingBaseDdlCompiler', 'VastBaseDdlCompiler', 'MySqlDdlCompiler', 'SqliteDdlCompiler',
]
