"""
KingBase V8 DDL compiler.
"""

from typing import List, Optional

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType, INDEX_PREFIX
from core.dialects.postgresql import PostgresErrorMixin
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

COLUMN_PRIMARY_TEMPLATE = "constraint {} primary key"
TABLE_PRIMARY_TEMPLATE = "constraint {} primary key ({})"
TABLE_COMMENT_TEMPLATE = "comment on table {} is {}"
COLUMN_COMMENT_TEMPLATE = "comment on column {} is {}"


class KingBaseDdlCompiler(PostgresErrorMixin, AbstractDdlCompiler):
    db_type = DbType.KING_BASE_V8
    case_type = CaseType.LOWER
    wrap_symbol = '"'
    comment_type = CommentType.EXTERNAL
    index_prefix = INDEX_PREFIX.lower()
    max_identifier_length = 128
    transactional_ddl = True

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return '_pkey' in (index.name or '').lower()

    def create_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                          target_config: Optional[DbConfig] = None) -> str:
        # KingBase folds unquoted names itself
        return self.build_index_name(index.table_name or table.name, index.columns)

    def _pkey_name(self, table: TableDescriptor) -> str:
        return f"{self.remove_blank(table.name)}_pkey"

    def column_pk_modifier(self, column: ColumnDescriptor, table: TableDescriptor) -> str:
        if column.is_pk and len(table.pk_names) <= 1:
            return COLUMN_PRIMARY_TEMPLATE.format(self._pkey_name(table))
        return ''

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if len(table.pk_names) > 1:
            return [TABLE_PRIMARY_TEMPLATE.format(self._pkey_name(table),
                                                  ', '.join(self.wrap_name(n) for n in table.pk_names))]
        return []

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        type_name = (column.type_name or '').strip()
        if category == TypeCategory.DOUBLE:
            return "DOUBLE PRECISION"
        if category == TypeCategory.DECIMAL:
            return self.sized("DECIMAL", column.size, column.digits or 0)
        if category in (TypeCategory.BLOB, TypeCategory.LONGVARBINARY):
            return "BLOB"
        if category == TypeCategory.VARCHAR:
            return self.sized("VARCHAR", column.size)
        if category.is_long_text:
            return "JSON" if column.is_json else (type_name or "TEXT")
        if category == TypeCategory.DATE:
            return "DATE"
        if category == TypeCategory.TIME:
            return "TIME"
        if category == TypeCategory.TIMESTAMP:
            if type_name.upper() == "DATETIME":
                return "DATETIME"
            return type_name or "TIMESTAMP"
        if 'UNSIGNED' in type_name.upper():
            return type_name
        return self.sized(type_name or "TEXT", column.size, column.digits, positive_digits=True)

    def column_comment_ddl(self, table: TableDescriptor, column: ColumnDescriptor,
                           target_config: Optional[DbConfig] = None) -> str:
        return COLUMN_COMMENT_TEMPLATE.format(
            self.wrap_name_with_schema(f"{table.name}.{column.name}", target_config),
            self.quote_literal(column.comment, strip_separator=True))

    def table_comment_ddl(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> str:
        return TABLE_COMMENT_TEMPLATE.format(self.wrap_name_with_schema(table.name, target_config),
                                             self.quote_literal(table.comment, strip_separator=True))
