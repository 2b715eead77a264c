"""
MySQL / MariaDB DDL compiler.
"""

from typing import List, Optional

from pymysql.constants import ER

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

COLUMN_COMMENT_TEMPLATE = "COMMENT {}"
TABLE_COMMENT_TEMPLATE = "COMMENT={}"
DROP_INDEX_TEMPLATE = "DROP INDEX {} ON {}"
UNBOUNDED_DECIMAL = "DECIMAL(65,30)"

TOLERATED_ERRORS = (
    ER.TABLE_EXISTS_ERROR,       # 1050
    ER.DUP_KEYNAME,              # 1061
    ER.CANT_DROP_FIELD_OR_KEY,   # 1091
)


class MySqlDdlCompiler(AbstractDdlCompiler):
    db_type = DbType.MYSQL
    case_type = CaseType.REMAIN
    wrap_symbol = '`'
    comment_type = CommentType.INTERNAL
    max_identifier_length = 64
    drop_index_template = DROP_INDEX_TEMPLATE

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return (index.name or '').upper() == 'PRIMARY'

    def drop_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                        target_config: Optional[DbConfig] = None) -> str:
        return self.wrap_name(index.name)

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if not table.pk_names:
            return []
        return [f"PRIMARY KEY ({', '.join(self.wrap_name(n) for n in table.pk_names)})"]

    def inline_column_comment(self, column: ColumnDescriptor) -> str:
        return COLUMN_COMMENT_TEMPLATE.format(self.quote_literal(column.comment))

    def inline_table_comment(self, table: TableDescriptor) -> str:
        return TABLE_COMMENT_TEMPLATE.format(self.quote_literal(table.comment))

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN):
            return "TINYINT(1)"
        if category == TypeCategory.TINYINT:
            return "TINYINT"
        if category == TypeCategory.SMALLINT:
            return "SMALLINT"
        if category == TypeCategory.INTEGER:
            return "INT"
        if category == TypeCategory.BIGINT:
            return "BIGINT"
        if category == TypeCategory.REAL:
            return "FLOAT"
        if category == TypeCategory.DOUBLE:
            return "DOUBLE"
        if category in (TypeCategory.DECIMAL, TypeCategory.NUMERIC):
            if not column.size:
                return UNBOUNDED_DECIMAL
            return self.sized("DECIMAL", column.size, column.digits or 0)
        if category == TypeCategory.CHAR:
            return f"CHAR({column.size or 1})"
        if category == TypeCategory.VARCHAR:
            if column.size:
                return f"VARCHAR({column.size})"
            return "TINYTEXT" if (column.type_name or '').upper() == "TINYTEXT" else "LONGTEXT"
        if category.is_long_text:
            return "JSON" if column.is_json else "LONGTEXT"
        if category == TypeCategory.BINARY:
            return f"BINARY({column.size or 1})"
        if category == TypeCategory.VARBINARY:
            return f"VARBINARY({column.size or 255})"
        if category in (TypeCategory.LONGVARBINARY, TypeCategory.BLOB):
            return "LONGBLOB"
        if category == TypeCategory.DATE:
            return "DATE"
        if category in (TypeCategory.TIME, TypeCategory.TIME_WITH_TIMEZONE):
            return "TIME"
        if category in (TypeCategory.TIMESTAMP, TypeCategory.DATETIMEOFFSET):
            return "DATETIME"
        return self.sized((column.type_name or 'TEXT').upper(), column.size, column.digits)

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        native = self.native_error(error)
        args = getattr(native, 'args', ())
        return bool(args) and args[0] in TOLERATED_ERRORS
