#!/usr/bin/env python3
"""
Table metadata reader.

Builds TableDescriptor snapshots from a live database through SQLAlchemy's
Inspector. Works on an Engine or on a Connection; pass the connection that
ran the DDL when uncommitted changes must be visible.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.types import NullType, TypeEngine

from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor

logger = logging.getLogger(__name__)

Bind = Union[Engine, Connection]

_QUOTED_DEFAULT = re.compile(r"^'(.*)'(?:::[\w\s]+)?$", re.DOTALL)
_CAST_SUFFIX = re.compile(r"::[\w\s]+$")


def list_tables(bind: Bind, schema: Optional[str] = None) -> List[str]:
    """Names of all base tables visible in the schema"""
    return list(inspect(bind).get_table_names(schema=schema))


def get_table_meta(bind: Bind, table_name: str, schema: Optional[str] = None) -> Optional[TableDescriptor]:
    """Snapshot of one table, or None when it does not exist or has no columns"""
    inspector = inspect(bind)
    try:
        columns = inspector.get_columns(table_name, schema=schema)
    except NoSuchTableError:
        return None
    if not columns:
        return None

    pk_names = tuple(inspector.get_pk_constraint(table_name, schema=schema).get('constrained_columns') or ())
    descriptors = tuple(_describe_column(table_name, info, pk_names) for info in columns)

    indexes = []
    for info in inspector.get_indexes(table_name, schema=schema):
        column_names = tuple(c for c in info.get('column_names') or () if c)
        if not info.get('name') or not column_names:
            # expression indexes cannot be recreated from column names
            logger.debug(f"Table[{table_name}] skipping index {info.get('name')} without plain columns")
            continue
        indexes.append(IndexDescriptor(name=info['name'], table_name=table_name,
                                       columns=column_names, unique=bool(info.get('unique'))))

    return TableDescriptor(name=table_name, columns=descriptors, indexes=tuple(indexes),
                           pk_names=pk_names, comment=_table_comment(inspector, table_name, schema))


def _table_comment(inspector, table_name: str, schema: Optional[str]) -> Optional[str]:
    try:
        return inspector.get_table_comment(table_name, schema=schema).get('text')
    except NotImplementedError:
        return None


def _describe_column(table_name: str, info: Dict[str, Any], pk_names: Tuple[str, ...]) -> ColumnDescriptor:
    col_type = info['type']
    size, digits = type_size(col_type)
    return ColumnDescriptor(
        name=info['name'],
        type_name=type_name_of(col_type),
        size=size,
        digits=digits,
        nullable=bool(info.get('nullable', True)),
        default=normalize_default(info.get('default')),
        comment=info.get('comment'),
        is_pk=info['name'] in pk_names,
        table_name=table_name,
    )


def type_name_of(col_type: TypeEngine) -> str:
    """Declared type name as the source engine reports it (no size)"""
    if isinstance(col_type, NullType):
        return 'OTHER'
    name = getattr(col_type, '__visit_name__', None) or type(col_type).__name__
    name = name.upper()
    if getattr(col_type, 'timezone', False) and name.startswith('TIMESTAMP'):
        name = 'TIMESTAMP WITH TIME ZONE'
    if getattr(col_type, 'unsigned', False):
        name = f"{name} UNSIGNED"
    return name


def type_size(col_type: TypeEngine) -> Tuple[Optional[int], Optional[int]]:
    """(size, digits) the way JDBC metadata reports them"""
    length = getattr(col_type, 'length', None)
    if isinstance(length, int):
        return length, None
    precision = getattr(col_type, 'precision', None)
    if isinstance(precision, int):
        scale = getattr(col_type, 'scale', None)
        return precision, scale if isinstance(scale, int) else None
    display_width = getattr(col_type, 'display_width', None)
    if isinstance(display_width, int):
        return display_width, None
    return None, None


def normalize_default(default: Optional[str]) -> Optional[str]:
    """Strip engine quoting and casts from a reflected default"""
    if default is None:
        return None
    value = str(default).strip()
    if not value or value.upper() == 'NULL':
        return None
    if value.lower().startswith('nextval('):
        # sequence-backed identity, recreated by the target's own key
        return None
    while value.startswith('(') and value.endswith(')'):
        value = value[1:-1].strip()
    match = _QUOTED_DEFAULT.match(value)
    if match:
        return match.group(1).replace("''", "'")
    return _CAST_SUFFIX.sub('', value)
