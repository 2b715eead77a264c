"""
Engine-independent type categories.

Source columns are reduced to a TypeCategory (close to the JDBC type
constants drivers report) plus the raw declared type name; each target
dialect then maps the category back to concrete DDL.
"""

import re
from enum import Enum
from typing import Dict, Optional, Tuple

class TypeCategory(Enum):
    # Numeric
    BIT = "BIT"
    BOOLEAN = "BOOLEAN"
    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    REAL = "REAL"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    NUMERIC = "NUMERIC"

    # Character
    CHAR = "CHAR"
    VARCHAR = "VARCHAR"
    LONGVARCHAR = "LONGVARCHAR"
    LONGNVARCHAR = "LONGNVARCHAR"

    # Binary
    BINARY = "BINARY"
    VARBINARY = "VARBINARY"
    LONGVARBINARY = "LONGVARBINARY"
    BLOB = "BLOB"

    # Date/Time
    DATE = "DATE"
    TIME = "TIME"
    TIME_WITH_TIMEZONE = "TIME_WITH_TIMEZONE"
    DATETIMEOFFSET = "DATETIMEOFFSET"
    TIMESTAMP = "TIMESTAMP"

    # Fallback
    OTHER = "OTHER"

    @property
    def is_character(self) -> bool:
        return self in (TypeCategory.CHAR, TypeCategory.VARCHAR)

    @property
    def is_long_text(self) -> bool:
        return self in (TypeCategory.LONGVARCHAR, TypeCategory.LONGNVARCHAR)

    @property
    def is_binary(self) -> bool:
        return self in (TypeCategory.BINARY, TypeCategory.VARBINARY,
                        TypeCategory.LONGVARBINARY, TypeCategory.BLOB)


class TypeRegistry:
    # Declared type name (lower case, no size) -> category.
    # Covers the names MySQL, PostgreSQL, SQLite, Oracle and SQL Server report.
    SOURCE_TO_CATEGORY: Dict[str, TypeCategory] = {
        # MySQL / MariaDB
        'bit': TypeCategory.BIT,
        'bool': TypeCategory.BIT,
        'boolean': TypeCategory.BOOLEAN,
        'tinyint': TypeCategory.TINYINT,
        'smallint': TypeCategory.SMALLINT,
        'mediumint': TypeCategory.INTEGER,
        'int': TypeCategory.INTEGER,
        'integer': TypeCategory.INTEGER,
        'bigint': TypeCategory.BIGINT,
        'float': TypeCategory.REAL,
        'real': TypeCategory.REAL,
        'double': TypeCategory.DOUBLE,
        'double precision': TypeCategory.DOUBLE,
        'decimal': TypeCategory.DECIMAL,
        'numeric': TypeCategory.NUMERIC,
        'char': TypeCategory.CHAR,
        'enum': TypeCategory.CHAR,
        'set': TypeCategory.CHAR,
        'varchar': TypeCategory.VARCHAR,
        'tinytext': TypeCategory.VARCHAR,
        'text': TypeCategory.LONGVARCHAR,
        'mediumtext': TypeCategory.LONGVARCHAR,
        'longtext': TypeCategory.LONGVARCHAR,
        'json': TypeCategory.LONGVARCHAR,
        'binary': TypeCategory.BINARY,
        'varbinary': TypeCategory.VARBINARY,
        'tinyblob': TypeCategory.VARBINARY,
        'blob': TypeCategory.LONGVARBINARY,
        'mediumblob': TypeCategory.LONGVARBINARY,
        'longblob': TypeCategory.LONGVARBINARY,
        'date': TypeCategory.DATE,
        'year': TypeCategory.DATE,
        'time': TypeCategory.TIME,
        'datetime': TypeCategory.TIMESTAMP,
        'timestamp': TypeCategory.TIMESTAMP,

        # PostgreSQL
        'int2': TypeCategory.SMALLINT,
        'int4': TypeCategory.INTEGER,
        'int8': TypeCategory.BIGINT,
        'float4': TypeCategory.REAL,
        'float8': TypeCategory.DOUBLE,
        'double_precision': TypeCategory.DOUBLE,
        'character': TypeCategory.CHAR,
        'character varying': TypeCategory.VARCHAR,
        'jsonb': TypeCategory.LONGVARCHAR,
        'bytea': TypeCategory.LONGVARBINARY,
        'timestamp without time zone': TypeCategory.TIMESTAMP,
        'timestamp with time zone': TypeCategory.TIMESTAMP,
        'timestamptz': TypeCategory.TIMESTAMP,
        'time with time zone': TypeCategory.TIME_WITH_TIMEZONE,
        'timetz': TypeCategory.TIME_WITH_TIMEZONE,

        # SQLite affinities
        'clob': TypeCategory.LONGVARCHAR,

        # Oracle
        'number': TypeCategory.DECIMAL,
        'binary_float': TypeCategory.REAL,
        'binary_double': TypeCategory.DOUBLE,
        'varchar2': TypeCategory.VARCHAR,
        'nvarchar2': TypeCategory.VARCHAR,
        'nchar': TypeCategory.CHAR,
        'nclob': TypeCategory.LONGNVARCHAR,
        'long': TypeCategory.LONGVARCHAR,
        'raw': TypeCategory.VARBINARY,

        # SQL Server
        'nvarchar': TypeCategory.VARCHAR,
        'ntext': TypeCategory.LONGNVARCHAR,
        'image': TypeCategory.LONGVARBINARY,
        'money': TypeCategory.DECIMAL,
        'datetime2': TypeCategory.TIMESTAMP,
        'smalldatetime': TypeCategory.TIMESTAMP,
        'datetimeoffset': TypeCategory.DATETIMEOFFSET,
    }

    @staticmethod
    def categorize(type_name: str, size: Optional[int] = None) -> TypeCategory:
        """Map a declared type name to its category"""
        if not type_name:
            return TypeCategory.OTHER
        base, precision, _ = TypeRegistry._parse_type_string(type_name.lower())
        size = size if size is not None else precision

        # MySQL reports TINYINT(1) as a bit, the same way Connector/J does
        if base == 'tinyint' and size == 1:
            return TypeCategory.BIT

        category = TypeRegistry.SOURCE_TO_CATEGORY.get(base)
        if category is None:
            # 'int unsigned' -> 'int', 'varchar2 char' -> 'varchar2'
            category = TypeRegistry.SOURCE_TO_CATEGORY.get(base.split(' ')[0])
        if category is None and base.startswith('timestamp'):
            category = TypeCategory.TIMESTAMP
        return category or TypeCategory.OTHER

    @staticmethod
    def _parse_type_string(type_str: str) -> Tuple[str, Optional[int], Optional[int]]:
        """Parse 'decimal(10, 2)' -> ('decimal', 10, 2)
        Also handles 'timestamp(6) with time zone' -> ('timestamp with time zone', 6, None)
        """
        match = re.search(r'\((\d+)(?:\s*,\s*(\d+))?\)', type_str)
        precision = int(match.group(1)) if match else None
        scale = int(match.group(2)) if match and match.group(2) else None
        base = ' '.join(re.sub(r'\([^)]*\)', ' ', type_str).split())
        return (base, precision, scale)

    @staticmethod
    def char_byte_width(encoding: Optional[str] = None) -> int:
        """Bytes one CJK character occupies in the target encoding (UTF-8 -> 3)"""
        try:
            return len("我".encode(encoding or 'utf-8'))
        except (LookupError, UnicodeEncodeError):
            return 3
