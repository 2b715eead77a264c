"""
PostgreSQL DDL compiler, plus the SQLSTATE handling shared by the
PostgreSQL-derived engines (KingBase, VastBase).
"""

import logging
from typing import List, Optional

from psycopg2 import errorcodes

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

logger = logging.getLogger(__name__)

COLUMN_COMMENT_TEMPLATE = "COMMENT ON COLUMN {} IS {}"
TABLE_COMMENT_TEMPLATE = "COMMENT ON TABLE {} IS {}"
PRIMARY_KEY_TEMPLATE = "CONSTRAINT {} PRIMARY KEY ({})"

TOLERATED_SQLSTATES = (
    errorcodes.DUPLICATE_TABLE,     # 42P07 relation already exists
    errorcodes.UNDEFINED_COLUMN,    # 42703 column does not exist
    errorcodes.UNDEFINED_OBJECT,    # 42704 index does not exist
)


def sqlstate_of(error: BaseException) -> Optional[str]:
    native = AbstractDdlCompiler.native_error(error)
    return getattr(native, 'pgcode', None) or getattr(native, 'sqlstate', None)


class PostgresErrorMixin:
    """Tolerates 'already exists' / 'does not exist' SQLSTATEs"""

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        state = sqlstate_of(error)
        if state in TOLERATED_SQLSTATES:
            logger.debug(f"Table[{table_name}] tolerated SQLSTATE {state}: {error}")
            return True
        return False


class PostgreSqlDdlCompiler(PostgresErrorMixin, AbstractDdlCompiler):
    db_type = DbType.POSTGRESQL
    case_type = CaseType.LOWER
    wrap_symbol = '"'
    comment_type = CommentType.EXTERNAL
    max_identifier_length = 63
    transactional_ddl = True

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return '_pkey' in (index.name or '').lower()

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN):
            return "BOOLEAN"
        if category in (TypeCategory.TINYINT, TypeCategory.SMALLINT):
            return "SMALLINT"
        if category == TypeCategory.INTEGER:
            return "INTEGER"
        if category == TypeCategory.BIGINT:
            return "BIGINT"
        if category == TypeCategory.REAL:
            return "REAL"
        if category == TypeCategory.DOUBLE:
            return "DOUBLE PRECISION"
        if category in (TypeCategory.DECIMAL, TypeCategory.NUMERIC):
            return self.sized("NUMERIC", column.size, column.digits or 0)
        if category == TypeCategory.CHAR:
            return self.sized("CHAR", column.size)
        if category == TypeCategory.VARCHAR:
            return self.sized("VARCHAR", column.size)
        if category == TypeCategory.DATE:
            return "DATE"
        if category == TypeCategory.TIME:
            return "TIME"
        if category == TypeCategory.TIME_WITH_TIMEZONE:
            return "TIMETZ"
        if category == TypeCategory.DATETIMEOFFSET:
            return "TIMESTAMPTZ"
        if category == TypeCategory.TIMESTAMP:
            return "TIMESTAMP"
        if category.is_binary:
            return "BYTEA"
        if category.is_long_text:
            return "JSONB" if column.is_json else "TEXT"
        return self.sized((column.type_name or 'TEXT').upper(), column.size, column.digits)

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if not table.pk_names:
            return []
        return [PRIMARY_KEY_TEMPLATE.format(self.wrap_name(f"{self.remove_blank(table.name)}_pkey"),
                                            ', '.join(self.wrap_name(n) for n in table.pk_names))]

    def column_comment_ddl(self, table: TableDescriptor, column: ColumnDescriptor,
                           target_config: Optional[DbConfig] = None) -> str:
        target = f"{self.wrap_name_with_schema(table.name, target_config)}.{self.wrap_name(column.name)}"
        return COLUMN_COMMENT_TEMPLATE.format(target, self.quote_literal(column.comment))

    def table_comment_ddl(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> str:
        return TABLE_COMMENT_TEMPLATE.format(self.wrap_name_with_schema(table.name, target_config),
                                             self.quote_literal(table.comment))
