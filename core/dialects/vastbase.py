"""
VastBase G100 DDL compiler (MySQL-compatible mode).

Comments are written inline with COMMENT '...'; the primary key is a named
constraint appended to the column list.
"""

from typing import List, Optional

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType, INDEX_PREFIX
from core.dialects.postgresql import PostgresErrorMixin
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

PRIMARY_KEY_TEMPLATE = "CONSTRAINT {} PRIMARY KEY ({})"
COMMENT_TEMPLATE = "COMMENT {}"


class VastBaseDdlCompiler(PostgresErrorMixin, AbstractDdlCompiler):
    db_type = DbType.VAST_BASE
    case_type = CaseType.LOWER
    wrap_symbol = '"'
    comment_type = CommentType.INTERNAL
    index_prefix = INDEX_PREFIX.lower()
    max_identifier_length = 128
    transactional_ddl = True

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return '_pkey' in (index.name or '').lower()

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if not table.pk_names:
            return []
        return [PRIMARY_KEY_TEMPLATE.format(self.wrap_name(f"{table.name}_pkey"),
                                            ','.join(self.wrap_name(n) for n in table.pk_names))]

    def inline_column_comment(self, column: ColumnDescriptor) -> str:
        return COMMENT_TEMPLATE.format(self.quote_literal(column.comment, strip_separator=True))

    def inline_table_comment(self, table: TableDescriptor) -> str:
        return COMMENT_TEMPLATE.format(self.quote_literal(table.comment, strip_separator=True))

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN, TypeCategory.TINYINT):
            return "TINYINT"
        if category == TypeCategory.SMALLINT:
            return "SMALLINT"
        if category == TypeCategory.INTEGER:
            return "INTEGER"
        if category == TypeCategory.BIGINT:
            return "BIGINT"
        if category == TypeCategory.DOUBLE:
            return "DOUBLE"
        if category == TypeCategory.DECIMAL:
            return self.sized("DECIMAL", column.size, column.digits or 0)
        if category == TypeCategory.NUMERIC:
            return self.sized("NUMERIC", column.size, column.digits or 0)
        if category == TypeCategory.DATE:
            return "DATE"
        if category in (TypeCategory.BLOB, TypeCategory.LONGVARBINARY):
            return "BLOB"
        if category.is_character and not column.size:
            return "TEXT"
        if category.is_long_text and column.is_json:
            return "TEXT"
        type_name = (column.type_name or '').strip() or "TEXT"
        return self.sized(type_name, column.size, column.digits, positive_digits=True)
