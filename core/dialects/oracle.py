"""
Oracle DDL compiler.

Upper-cased, double-quoted identifiers; comments and the primary key are
emitted as separate statements after CREATE TABLE. From 12.2 on, JSON
columns also get a JSON search index.
"""

import logging
from typing import List, Optional

from core.db_config import DbConfig, DbType
from core.dialects.base import AbstractDdlCompiler, CaseType, CommentType
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeCategory

logger = logging.getLogger(__name__)

COLUMN_COMMENT_TEMPLATE = "COMMENT ON COLUMN {} IS {}"
TABLE_COMMENT_TEMPLATE = "COMMENT ON TABLE {} IS {}"
CREATE_SEARCH_JSON_INDEX = "CREATE SEARCH INDEX {} ON {} ({}) FOR JSON"
ADD_PRIMARY_KEY_TEMPLATE = "ALTER TABLE {} ADD PRIMARY KEY ({})"

MAX_NAME_LENGTH = 30
MAX_NAME_LENGTH_EXTENDED = 32767
MAX_VARCHAR2_LENGTH = 4000
JSON_SEARCH_INDEX_VERSION = (12, 2)

# ORA-01400 cannot insert NULL, ORA-01418 index does not exist,
# ORA-00955 name already used, ORA-00942 table or view does not exist
TOLERATED_ERRORS = ("ORA-01400", "ORA-01418", "ORA-00955", "ORA-00942")


class OracleDdlCompiler(AbstractDdlCompiler):
    db_type = DbType.ORACLE
    case_type = CaseType.UPPER
    wrap_symbol = '"'
    comment_type = CommentType.EXTERNAL

    def __init__(self, target_config: Optional[DbConfig] = None, server_version=None,
                 extended_mode: Optional[bool] = None, rng=None):
        super().__init__(target_config, server_version, rng)
        if extended_mode is None:
            extended_mode = bool(target_config and target_config.extended_mode)
        self.extended_mode = extended_mode

    @property
    def max_identifier_length(self) -> int:
        return MAX_NAME_LENGTH_EXTENDED if self.extended_mode else MAX_NAME_LENGTH

    @property
    def supports_json_search_index(self) -> bool:
        return self.server_version[:2] >= JSON_SEARCH_INDEX_VERSION

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return 'primary' in (index.name or '').lower()

    def create_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                          target_config: Optional[DbConfig] = None) -> str:
        name = self.build_index_name((index.table_name or table.name).upper(),
                                     [c.upper() for c in index.columns])
        return self.wrap_name_with_schema(name, target_config)

    def map_type(self, column: ColumnDescriptor) -> str:
        category = column.category
        if category in (TypeCategory.BIT, TypeCategory.BOOLEAN):
            return "NUMBER(1,0)"
        if category in (TypeCategory.TINYINT, TypeCategory.SMALLINT):
            return "NUMBER(3,0)"
        if category == TypeCategory.INTEGER:
            return "INTEGER"
        if category == TypeCategory.BIGINT:
            return "NUMBER(20,0)"
        if category in (TypeCategory.REAL, TypeCategory.DOUBLE):
            return "FLOAT(24)"
        if category in (TypeCategory.DECIMAL, TypeCategory.NUMERIC):
            if not column.size:
                return "NUMBER"
            return self.sized(category.value, column.size, column.digits or 0)
        if category in (TypeCategory.DATE, TypeCategory.TIME,
                        TypeCategory.TIME_WITH_TIMEZONE, TypeCategory.DATETIMEOFFSET):
            return "DATE"
        if category == TypeCategory.TIMESTAMP:
            return "TIMESTAMP"
        if category.is_character:
            limit = MAX_NAME_LENGTH_EXTENDED if self.extended_mode else MAX_VARCHAR2_LENGTH
            if not column.size:
                return f"VARCHAR2({limit})"
            return f"VARCHAR2({min(column.size * self.char_width, limit)})"
        if category.is_binary:
            return "BLOB"
        if category.is_long_text:
            if column.is_json:
                return f"CLOB CHECK ({self.remove_blank(column.name).upper()} IS JSON)"
            return "CLOB"
        return self.sized((column.type_name or "CLOB").upper(), column.size, column.digits)

    def column_comment_ddl(self, table: TableDescriptor, column: ColumnDescriptor,
                           target_config: Optional[DbConfig] = None) -> str:
        return COLUMN_COMMENT_TEMPLATE.format(
            self.wrap_name_with_schema(f"{table.name}.{column.name}", target_config),
            self.quote_literal(column.comment, strip_separator=True))

    def table_comment_ddl(self, table: TableDescriptor, target_config: Optional[DbConfig] = None) -> str:
        return TABLE_COMMENT_TEMPLATE.format(
            self.wrap_name_with_schema(table.name, target_config),
            self.quote_literal(table.comment, strip_separator=True))

    def build_other_ddl(self, source_config: Optional[DbConfig], table: TableDescriptor,
                        target_config: Optional[DbConfig] = None) -> List[str]:
        statements = super().build_other_ddl(source_config, table, target_config)
        if self.supports_json_search_index:
            statements.extend(self._search_json_indexes(table, target_config))
        if table.pk_names:
            statements.append(ADD_PRIMARY_KEY_TEMPLATE.format(
                self.wrap_name_with_schema(table.name, target_config),
                ','.join(self.wrap_name(n) for n in table.pk_names)))
        return statements

    def _search_json_indexes(self, table: TableDescriptor, target_config: Optional[DbConfig]) -> List[str]:
        statements = []
        for column in table.columns:
            if (column.type_name or '').strip().lower() != 'json':
                continue
            name = f"{self.remove_blank(table.name).upper()}_{self.remove_blank(column.name)}"
            if len(name) > self.max_identifier_length - 3:
                name = self.truncate_identifier(name, table.name, len(self.index_prefix))
            statements.append(CREATE_SEARCH_JSON_INDEX.format(
                self.wrap_name_with_schema(self.index_prefix + name, target_config),
                self.wrap_name_with_schema(table.name, target_config),
                self.wrap_name(column.name)))
        return statements

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        message = self.error_text(error).upper()
        if "ORA-01400" in message:
            logger.error(f"Table[{table_name}] has empty strings in NOT NULL columns, please check: {error}")
            return True
        return any(code in message for code in TOLERATED_ERRORS[1:])
