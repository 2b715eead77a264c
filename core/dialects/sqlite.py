"""
SQLite DDL compiler. Column types collapse onto SQLite's storage affinities.
"""

from typing import List, Optional

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

TOLERATED_MESSAGES = ("already exists", "no such index")


class SqliteDdlCompiler(AbstractDdlCompiler):
    db_type = DbType.SQLITE
    case_type = CaseType.REMAIN
    wrap_symbol = '"'
    # SQLite has no comment storage; EXTERNAL with empty statements drops them
    comment_type = CommentType.EXTERNAL
    max_identifier_length = 128
    # pysqlite does not emit BEGIN before DDL, so savepoints cannot contain it
    transactional_ddl = False

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return (index.name or '').lower().startswith('sqlite_autoindex')

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if not table.pk_names:
            return []
        return [f"PRIMARY KEY ({', '.join(self.wrap_name(n) for n in table.pk_names)})"]

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN, TypeCategory.TINYINT,
                        TypeCategory.SMALLINT, TypeCategory.INTEGER, TypeCategory.BIGINT):
            return "INTEGER"
        if category in (TypeCategory.REAL, TypeCategory.DOUBLE):
            return "REAL"
        if category in (TypeCategory.DECIMAL, TypeCategory.NUMERIC):
            return self.sized("NUMERIC", column.size, column.digits or 0)
        if category.is_character:
            return self.sized("VARCHAR", column.size)
        if category.is_binary:
            return "BLOB"
        if category.is_long_text or category in (TypeCategory.DATE, TypeCategory.TIME,
                                                  TypeCategory.TIME_WITH_TIMEZONE,
                                                  TypeCategory.DATETIMEOFFSET, TypeCategory.TIMESTAMP):
            return "TEXT"
        return (column.type_name or 'TEXT').upper()

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        message = self.error_text(error).lower()
        return any(m in message for m in TOLERATED_MESSAGES)
