from dataclasses import dataclass
from typing import Optional, Tuple

from core.errors import MetadataError
from core.type_registry import TypeCategory, TypeRegistry

@dataclass(frozen=True)
class ColumnDescriptor:
    """Column definition as read from a live database"""
    name: str
    type_name: str
    category: Optional[TypeCategory] = None
    size: Optional[int] = None
    digits: Optional[int] = None
    nullable: bool = True
    default: Optional[str] = None
    comment: Optional[str] = None
    is_pk: bool = False
    table_name: Optional[str] = None

    def __post_init__(self):
        if self.category is None:
            object.__setattr__(self, 'category', TypeRegistry.categorize(self.type_name, self.size))

    @property
    def is_json(self) -> bool:
        return (self.type_name or '').strip().lower() in ('json', 'jsonb')

    @property
    def sortable(self) -> bool:
        """LOB, binary and unknown types cannot appear in ORDER BY everywhere"""
        category = self.category
        return not (category.is_long_text or category.is_binary or category == TypeCategory.OTHER)

@dataclass(frozen=True)
class IndexDescriptor:
    """Secondary index definition"""
    name: str
    table_name: str
    columns: Tuple[str, ...] = ()
    unique: bool = False

@dataclass(frozen=True)
class TableDescriptor:
    """Table snapshot: columns, indexes and primary key"""
    name: str
    columns: Tuple[ColumnDescriptor, ...] = ()
    indexes: Tuple[IndexDescriptor, ...] = ()
    pk_names: Tuple[str, ...] = ()
    comment: Optional[str] = None

    def __post_init__(self):
        seen = set()
        for column in self.columns:
            key = column.name
            if key in seen:
                raise MetadataError(f"Duplicate column '{column.name}' in table '{self.name}'", self.name)
            seen.add(key)

    @property
    def exists(self) -> bool:
        """A table only counts as present when it has at least one column"""
        return len(self.columns) > 0

    def get_column(self, name: str) -> Optional[ColumnDescriptor]:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def pk_columns(self) -> Tuple[ColumnDescriptor, ...]:
        return tuple(c for c in self.columns if c.is_pk)

@dataclass(frozen=True)
class TableMeta:
    """Table name plus its source row count (-1 when unknown)"""
    table_name: str
    record_count: int = -1

    def __post_init__(self):
        if self.record_count < -1:
            raise ValueError(f"Invalid record count {self.record_count} for {self.table_name}")

    @property
    def count_known(self) -> bool:
        return self.record_count >= 0

    @staticmethod
    def sort_key(meta: 'TableMeta') -> int:
        return meta.record_count
