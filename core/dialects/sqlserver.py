"""
SQL Server DDL compiler.

Bracket-quoted identifiers with their case preserved. Comments are written
as MS_Description extended properties.
"""

import logging
import re
from typing import List, Optional

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType, has_non_ascii
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

logger = logging.getLogger(__name__)

CHECK_IS_JSON = "NVARCHAR(4000) CONSTRAINT {} CHECK (ISJSON([{}]) = 1)"
TABLE_COMMENT_TEMPLATE = "EXEC SP_ADDEXTENDEDPROPERTY 'MS_Description', {}, 'SCHEMA', '{}', 'TABLE', '{}'"
COLUMN_COMMENT_TEMPLATE = ("EXEC SP_ADDEXTENDEDPROPERTY 'MS_Description', {}, 'SCHEMA', '{}', "
                           "'TABLE', '{}', 'COLUMN', '{}'")
NVARCHAR_MAX_LENGTH = 4000
UNBOUNDED_DECIMAL = "DECIMAL(38,10)"
DEFAULT_SCHEMA = "dbo"

# 2714 object already exists, 3701 cannot drop because it does not exist
TOLERATED_ERRORS = (2714, 3701)
_ERROR_NUMBER = re.compile(r'\((\d{3,5}),')


class SqlServerDdlCompiler(AbstractDdlCompiler):
    db_type = DbType.SQLSERVER
    case_type = CaseType.REMAIN
    wrap_symbol = '[%s]'
    comment_type = CommentType.EXTERNAL
    max_identifier_length = 128
    transactional_ddl = True

    def ignored_index(self, index: IndexDescriptor) -> bool:
        name = (index.name or '').lower()
        return 'pk' in name or name.startswith('sys_')

    def drop_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                        target_config: Optional[DbConfig] = None) -> str:
        return self.wrap_name_with_schema(f"{index.table_name or table.name}.{index.name}", target_config)

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN):
            return "BIT"
        if category == TypeCategory.TINYINT:
            return "TINYINT"
        if category == TypeCategory.SMALLINT:
            return "SMALLINT"
        if category == TypeCategory.INTEGER:
            return "INT"
        if category == TypeCategory.BIGINT:
            return "BIGINT"
        if category == TypeCategory.REAL:
            return "FLOAT(24)"
        if category == TypeCategory.DOUBLE:
            return "FLOAT(53)"
        if category in (TypeCategory.DECIMAL, TypeCategory.NUMERIC):
            if not column.size:
                return UNBOUNDED_DECIMAL
            return self.sized("DECIMAL", column.size, column.digits or 0)
        if category in (TypeCategory.TIME_WITH_TIMEZONE, TypeCategory.DATETIMEOFFSET):
            return "DATETIMEOFFSET(3)"
        if category == TypeCategory.TIMESTAMP:
            return "DATETIME"
        if category == TypeCategory.DATE:
            return "DATE"
        if category == TypeCategory.TIME:
            return "TIME"
        if category.is_character:
            if not column.size:
                return "NVARCHAR(MAX)"
            length = column.size * self.char_width
            return f"NVARCHAR({'MAX' if length > NVARCHAR_MAX_LENGTH else length})"
        if category in (TypeCategory.BINARY, TypeCategory.VARBINARY):
            return "VARBINARY(MAX)"
        if category in (TypeCategory.LONGVARBINARY, TypeCategory.BLOB):
            return "IMAGE"
        if category.is_long_text:
            if column.is_json:
                column_name = self.remove_blank(column.name)
                constraint = "json_" + "_".join([self.remove_blank(column.table_name or ''), column_name])
                return CHECK_IS_JSON.format(constraint, column_name)
            return "NVARCHAR(MAX)"
        return (column.type_name or 'NVARCHAR(MAX)').upper()

    def column_pk_modifier(self, column: ColumnDescriptor, table: TableDescriptor) -> str:
        if column.is_pk and len(table.pk_names) <= 1:
            return "PRIMARY KEY"
        return ''

    def table_constraints(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> List[str]:
        if len(table.pk_names) > 1:
            return [f"PRIMARY KEY ({', '.join(self.wrap_name(n) for n in table.pk_names)})"]
        return []

    @staticmethod
    def national_literal(value: str) -> str:
        literal = AbstractDdlCompiler.quote_literal(value)
        return "N" + literal if has_non_ascii(value or '') else literal

    def _comment_schema(self, target_config: Optional[DbConfig]) -> str:
        return self.schema_name(target_config) or DEFAULT_SCHEMA

    def column_comment_ddl(self, table: TableDescriptor, column: ColumnDescriptor,
                           target_config: Optional[DbConfig] = None) -> str:
        return COLUMN_COMMENT_TEMPLATE.format(self.national_literal(column.comment),
                                              self._comment_schema(target_config), table.name, column.name)

    def table_comment_ddl(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> str:
        return TABLE_COMMENT_TEMPLATE.format(self.national_literal(table.comment),
                                             self._comment_schema(target_config), table.name)

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        native = self.native_error(error)
        numbers = [a for a in getattr(native, 'args', ()) if isinstance(a, int)]
        for arg in getattr(native, 'args', ()):
            # pymssql packs (number, message) into the first argument
            if isinstance(arg, tuple) and arg and isinstance(arg[0], int):
                numbers.append(arg[0])
        numbers.extend(int(m) for m in _ERROR_NUMBER.findall(self.error_text(error)))
        return any(n in TOLERATED_ERRORS for n in numbers)
