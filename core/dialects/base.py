#!/usr/bin/env python3
"""
DDL Compiler Base
=================

Turns a TableDescriptor read from the source database into the ordered list
of DDL statements a target engine needs to (re)create it.

The base class owns the identifier policy (case folding, quoting, schema
prefixing, index-name synthesis and truncation), the default-value policy
and the statement ordering. Dialects supply type mapping, comment placement,
primary-key placement and their tolerated native errors.

Statement templates use `{}` placeholders filled with str.format.
"""

import logging
import random
import re
import string
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from core.db_config import DbConfig, DbType
from core.errors import MetadataError, root_cause
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor
from core.type_registry import TypeRegistry

logger = logging.getLogger(__name__)

CREATE_TABLE_TEMPLATE = "CREATE TABLE {} ({})"
DROP_TABLE_TEMPLATE = "DROP TABLE {}"
CREATE_INDEX_TEMPLATE = "CREATE {}INDEX {} ON {} ({})"
DROP_INDEX_TEMPLATE = "DROP INDEX {}"

INDEX_PREFIX = "IDX_"
SEPARATOR = ", "

# Defaults that are expressions rather than literals
DEFAULT_FUNCTIONS = ("CURRENT_TIMESTAMP",)

_BLANK = re.compile(r'\s+')
_LETTERS = re.compile(r'[a-zA-Z]')
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class ActionType(Enum):
    CREATE = "create"
    DELETE = "delete"


class CaseType(Enum):
    UPPER = "upper"
    LOWER = "lower"
    REMAIN = "remain"


class CommentType(Enum):
    """INTERNAL comments live inside CREATE TABLE, EXTERNAL ones are separate statements"""
    INTERNAL = "internal"
    EXTERNAL = "external"


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def has_non_ascii(value: str) -> bool:
    return any(ord(ch) > 127 for ch in value)


class AbstractDdlCompiler(ABC):
    """Schema-to-DDL compiler; one subclass per target engine"""

    db_type: Optional[DbType] = None
    case_type: CaseType = CaseType.REMAIN
    wrap_symbol: str = ''
    comment_type: CommentType = CommentType.EXTERNAL
    index_prefix: str = INDEX_PREFIX
    max_identifier_length: int = 128
    # Whether DDL can be rolled back to a savepoint on this engine
    transactional_ddl: bool = False
    drop_index_template: str = DROP_INDEX_TEMPLATE

    def __init__(self, target_config: Optional[DbConfig] = None,
                 server_version: Optional[Sequence[int]] = None,
                 rng: Optional[random.Random] = None):
        self.target_config = target_config
        self.server_version: Tuple[int, ...] = tuple(server_version or ())
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Identifier policy
    # ------------------------------------------------------------------

    @staticmethod
    def remove_blank(name: Optional[str]) -> str:
        return _BLANK.sub('', name) if name else ''

    def fold_case(self, name: str) -> str:
        if self.case_type == CaseType.UPPER:
            return name.upper()
        if self.case_type == CaseType.LOWER:
            return name.lower()
        return name

    def wrap_name(self, name: Optional[str]) -> str:
        """Strip whitespace, fold case and quote each dotted part"""
        name = self.remove_blank(name)
        if not name:
            return ''
        name = self.fold_case(name)
        symbol = self.wrap_symbol
        if not symbol:
            return name
        parts = []
        for part in name.split('.'):
            if '%s' in symbol:
                parts.append(symbol % part)
            else:
                parts.append(f"{symbol}{part}{symbol}")
        return '.'.join(parts)

    def schema_name(self, target_config: Optional[DbConfig] = None) -> Optional[str]:
        config = target_config or self.target_config
        if config is None or is_blank(config.schema_name):
            return None
        return config.schema_name

    def wrap_name_with_schema(self, name: str, target_config: Optional[DbConfig] = None) -> str:
        schema = self.schema_name(target_config)
        if schema:
            return self.wrap_name(f"{schema}.{name}")
        return self.wrap_name(name)

    def table_name(self, table_name: str, target_config: Optional[DbConfig] = None) -> str:
        return self.wrap_name_with_schema(table_name, target_config)

    def build_index_name(self, table_name: str, columns: Sequence[str]) -> str:
        """Synthesize <prefix><table>_<col>_... within the identifier limit"""
        parts = [self.remove_blank(table_name)] + [self.remove_blank(c) for c in columns]
        result = self.index_prefix + '_'.join(p for p in parts if p)
        if len(result) > self.max_identifier_length - len(self.index_prefix):
            result = self.truncate_identifier(result, table_name, len(self.index_prefix))
        return result

    def truncate_identifier(self, name: str, table_name: str, reserved: int) -> str:
        """Cut a name to fit and append `_` plus two random characters"""
        keep = self.max_identifier_length - (reserved + 3)
        suffix = ''.join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(2))
        new_name = f"{name[:keep]}_{suffix}"
        logger.warning(f"Table[{table_name}] index[{name}] name length was greater than "
                       f"{self.max_identifier_length}, the name was replaced with {new_name}")
        return new_name

    def create_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                          target_config: Optional[DbConfig] = None) -> str:
        name = self.build_index_name(index.table_name or table.name, index.columns)
        return self.wrap_name_with_schema(name, target_config)

    def drop_index_name(self, table: TableDescriptor, index: IndexDescriptor,
                        target_config: Optional[DbConfig] = None) -> str:
        return self.wrap_name_with_schema(index.name, target_config)

    # ------------------------------------------------------------------
    # Values and types
    # ------------------------------------------------------------------

    @property
    def char_width(self) -> int:
        encoding = self.target_config.encoding if self.target_config else None
        return TypeRegistry.char_byte_width(encoding)

    @staticmethod
    def quote_literal(value: str, strip_separator: bool = False) -> str:
        text = value or ''
        if strip_separator:
            text = text.replace(';', '')
        return "'" + text.replace("'", "''") + "'"

    def default_value(self, column: ColumnDescriptor) -> str:
        """Render the column default, quoting it when it is textual"""
        value = column.default
        if is_blank(value):
            return ''
        upper = value.upper()
        if any(func in upper for func in DEFAULT_FUNCTIONS):
            return value
        if has_non_ascii(value) or _LETTERS.search(value):
            return self.quote_literal(value)
        return value

    @staticmethod
    def sized(type_name: str, size: Optional[int], digits: Optional[int] = None,
              positive_digits: bool = False) -> str:
        """TYPE, TYPE(size) or TYPE(size,digits)"""
        if not size:
            return type_name
        if digits is not None and (digits > 0 or not positive_digits):
            return f"{type_name}({size},{digits})"
        return f"{type_name}({size})"

    @abstractmethod
    def map_type(self, column: ColumnDescriptor) -> str:
        """Concrete target type for a source column; never fails"""

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def ignored_index(self, index: IndexDescriptor) -> bool:
        return False

    def column_pk_modifier(self, column: ColumnDescriptor, table: TableDescriptor) -> str:
        return ''

    def table_constraints(self, table: TableDescriptor,
                          target_config: Optional[DbConfig] = None) -> List[str]:
        """Trailing entries of the CREATE TABLE column list"""
        return []

    def inline_column_comment(self, column: ColumnDescriptor) -> str:
        return ''

    def inline_table_comment(self, table: TableDescriptor) -> str:
        return ''

    def column_comment_ddl(self, table: TableDescriptor, column: ColumnDescriptor,
                           target_config: Optional[DbConfig] = None) -> str:
        return ''

    def table_comment_ddl(self, table: TableDescriptor,
                          target_config: Optional[DbConfig] = None) -> str:
        return ''

    def handle_error(self, error: BaseException, table_name: Optional[str] = None) -> bool:
        """True when a native error is on this dialect's tolerated list"""
        return False

    # ------------------------------------------------------------------
    # DDL assembly
    # ------------------------------------------------------------------

    def column_ddl(self, column: ColumnDescriptor, table: TableDescriptor) -> str:
        parts = [self.wrap_name(column.name), self.map_type(column)]
        default = self.default_value(column)
        if default:
            parts.append(f"DEFAULT {default}")
        parts.append("NULL" if column.nullable else "NOT NULL")
        if self.comment_type == CommentType.INTERNAL and not is_blank(column.comment):
            parts.append(self.inline_column_comment(column))
        modifier = self.column_pk_modifier(column, table)
        if modifier:
            parts.append(modifier)
        return ' '.join(p for p in parts if p)

    def build_structure_ddl(self, table: TableDescriptor,
                            target_config: Optional[DbConfig] = None) -> str:
        if not table.exists:
            raise MetadataError(f"Table {table.name} has no columns to create", table.name)
        entries = [self.column_ddl(c, table) for c in table.columns]
        entries.extend(self.table_constraints(table, target_config))
        ddl = CREATE_TABLE_TEMPLATE.format(self.table_name(table.name, target_config), SEPARATOR.join(entries))
        if self.comment_type == CommentType.INTERNAL and not is_blank(table.comment):
            ddl = f"{ddl} {self.inline_table_comment(table)}"
        config = target_config or self.target_config
        if config is not None and not is_blank(config.tablespace_ddl):
            ddl = f"{ddl} {config.tablespace_ddl.strip()}"
        return ddl

    def build_index_ddl(self, table: TableDescriptor, action: ActionType,
                        target_config: Optional[DbConfig] = None) -> List[str]:
        statements = []
        for index in table.indexes:
            if self.ignored_index(index):
                continue
            if action == ActionType.CREATE:
                columns = [self.wrap_name(c) for c in index.columns if not is_blank(c)]
                if not columns:
                    continue
                statements.append(CREATE_INDEX_TEMPLATE.format(
                    'UNIQUE ' if index.unique else '',
                    self.create_index_name(table, index, target_config),
                    self.table_name(table.name, target_config),
                    SEPARATOR.join(columns)))
            else:
                statements.append(self.drop_index_template.format(
                    self.drop_index_name(table, index, target_config),
                    self.table_name(table.name, target_config)))
        return statements

    def build_other_ddl(self, source_config: Optional[DbConfig], table: TableDescriptor,
                        target_config: Optional[DbConfig] = None) -> List[str]:
        """Statements that run after the table and its indexes exist"""
        statements = []
        if self.comment_type == CommentType.EXTERNAL:
            for column in table.columns:
                if not is_blank(column.comment):
                    statements.append(self.column_comment_ddl(table, column, target_config))
            if not is_blank(table.comment):
                statements.append(self.table_comment_ddl(table, target_config))
        return [s for s in statements if s]

    def build_ddl(self, source_config: Optional[DbConfig], target_config: Optional[DbConfig],
                  table: TableDescriptor, action: ActionType) -> List[str]:
        """Ordered DDL for creating or dropping one table"""
        if action == ActionType.CREATE:
            ddl = [self.build_structure_ddl(table, target_config)]
            ddl.extend(self.build_index_ddl(table, ActionType.CREATE, target_config))
            ddl.extend(self.build_other_ddl(source_config, table, target_config))
            return ddl
        ddl = self.build_index_ddl(table, ActionType.DELETE, target_config)
        ddl.append(DROP_TABLE_TEMPLATE.format(self.table_name(table.name, target_config)))
        return ddl

    # ------------------------------------------------------------------
    # Error inspection helpers
    # ------------------------------------------------------------------

    @staticmethod
    def native_error(error: BaseException) -> BaseException:
        return root_cause(error)

    @staticmethod
    def error_text(error: BaseException) -> str:
        native = root_cause(error)
        return f"{error} {native}" if native is not error else str(error)

    def __repr__(self):
        return f"{type(self).__name__}(case={self.case_type.value}, comments={self.comment_type.value})"
