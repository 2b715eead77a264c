#!/usr/bin/env python3
"""
Migration Worker
================

Moves the tables of one bucket from the source to the target, one table at
a time, on a single target connection owned by the caller.

Per table:
    fast-skip -> check source -> check target -> (rebuild | skip) -> copy data

Usage:
    with target.connect() as conn, conn.begin():
        worker = MigrationWorker(source, target, compiler, strategy, SqlSession(conn))
        worker.transfer_tables(bucket)
"""

import logging
import math
import time
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.database_manager import DataSourceProvider, SqlSession
from core.dialects.base import AbstractDdlCompiler, ActionType
from core.errors import DataCopyError, MetadataError, MigrationError
from core.introspection import get_table_meta
from core.monitor import LoggingListener, MigrationListener, TableStage
from core.schema_ir import TableDescriptor, TableMeta
from core.strategy import BuildMode, ExecuteStrategy

logger = logging.getLogger(__name__)

SELECT_ALL = "select * from {}"
SELECT_WHERE = "select * from {} where {}"
COUNT_ALL = "select count(*) from {}"
COUNT_WHERE = "select count(*) from {} where {}"
DELETE_ALL = "delete from {}"


def page_count(record_count: int, page_size: int) -> int:
    """Number of pages needed for record_count rows"""
    if record_count <= 0:
        return 0
    return math.ceil(record_count / page_size)


class MigrationWorker:
    """Runs the table lifecycle for every table in one bucket"""

    def __init__(self, source: DataSourceProvider, target: DataSourceProvider,
                 compiler: AbstractDdlCompiler, strategy: ExecuteStrategy,
                 target_session: SqlSession, bucket: int = 0,
                 listener: Optional[MigrationListener] = None):
        self.source = source
        self.target = target
        self.compiler = compiler
        self.strategy = strategy
        self.session = target_session
        self.bucket = bucket
        self.listener = listener or LoggingListener()
        self.stage = TableStage.DISCOVER

    # ------------------------------------------------------------------
    # Bucket loop
    # ------------------------------------------------------------------

    def transfer_tables(self, tables: Sequence[TableMeta], condition: Optional[str] = None) -> int:
        """Transfer each table in order; returns the number of failed tables"""
        failures = 0
        total = len(tables)
        for position, meta in enumerate(tables, 1):
            if not self.transfer_table(meta, position, total, condition):
                failures += 1
        return failures

    def should_ignore(self, meta: TableMeta) -> Optional[str]:
        """Reason to skip a table before any DDL runs, or None"""
        if self.strategy.exceeds_max(meta.record_count):
            return f"{meta.record_count} rows exceeds the limit of {self.strategy.max_record_count}"
        if self.strategy.is_ignored_name(meta.table_name):
            return "matches an ignored table pattern"
        return None

    def transfer_table(self, meta: TableMeta, position: int = 1, total: int = 1,
                       condition: Optional[str] = None) -> bool:
        """Run one table through its lifecycle; False when it failed"""
        name = meta.table_name
        self.stage = TableStage.DISCOVER
        self.listener.table_started(self.bucket, name, position, total)

        reason = self.should_ignore(meta)
        if reason:
            self.listener.table_skipped(self.bucket, name, reason)
            return True

        started = time.time()
        try:
            with self._table_savepoint():
                rows = self.transfer_single_table(meta, condition)
        except (MigrationError, SQLAlchemyError) as e:
            if self.compiler.handle_error(e, name):
                self.listener.table_tolerated(self.bucket, name, self.stage, e)
                return True
            self.listener.table_failed(self.bucket, name, self.stage, e)
            if not self.strategy.continue_when_error:
                raise
            return False

        if rows is not None:
            self.listener.table_succeeded(self.bucket, name, position, total, rows, time.time() - started)
        return True

    def _table_savepoint(self):
        """Savepoint around one table when the engine can roll back DDL"""
        if self.compiler.transactional_ddl and self.session.connection.in_transaction():
            return self.session.connection.begin_nested()
        return nullcontext()

    # ------------------------------------------------------------------
    # Single table
    # ------------------------------------------------------------------

    def read_table(self, bind, table_name: str, schema: Optional[str]) -> Optional[TableDescriptor]:
        """Table metadata, retried once with the upper-cased name"""
        table = get_table_meta(bind, table_name, schema)
        if (table is None or not table.exists) and table_name.upper() != table_name:
            table = get_table_meta(bind, table_name.upper(), schema)
        if table is None or not table.exists:
            return None
        return table

    def transfer_single_table(self, meta: TableMeta, condition: Optional[str] = None) -> Optional[int]:
        """Rows copied, or None when the table was skipped"""
        name = meta.table_name

        self.stage = TableStage.CHECK_SOURCE
        with self.source.connect() as conn:
            source_table = self.read_table(conn, name, self.source.config.schema_name)
        if source_table is None:
            logger.error(f"Table[{name}] does not exist in source {self.source.config.id}")
            self.listener.table_skipped(self.bucket, name, "source table does not exist")
            return None

        self.stage = TableStage.CHECK_TARGET
        target_table = self.read_table(self.session.connection, name, self.target.config.schema_name)

        if target_table is not None and self.strategy.build_mode == BuildMode.SKIP_WHEN_EXIST:
            logger.info(f"Table[{name}] already existed in target {self.target.config.id}")
            self.listener.table_skipped(self.bucket, name, "already exists on target")
            return None

        self.stage = TableStage.REBUILD
        target_table = self.recreate_table(source_table, target_table)

        if not self.strategy.include_data:
            return 0
        self.stage = TableStage.COPY_DATA
        rows = self.insert_data(meta, source_table, target_table, condition)
        self.stage = TableStage.DONE
        return rows

    def recreate_table(self, source_table: TableDescriptor,
                       existing: Optional[TableDescriptor]) -> TableDescriptor:
        """Drop the target table if present, create it, and re-read it"""
        name = source_table.name
        statements: List[str] = []
        if existing is not None:
            drop = self.compiler.build_ddl(self.source.config, self.target.config, existing, ActionType.DELETE)
            self._execute_ddl(name, drop)
            statements.extend(drop)

        create = self.compiler.build_ddl(self.source.config, self.target.config, source_table, ActionType.CREATE)
        self._execute_ddl(name, create)
        statements.extend(create)

        created = self.read_table(self.session.connection, name, self.target.config.schema_name)
        if created is None:
            raise MetadataError(f"Table[{name}] was not found in target after creation", name)
        self.listener.table_created(self.bucket, name, statements)
        return created

    def _execute_ddl(self, table_name: str, statements: Sequence[str]):
        self.session.execute_batch(statements,
                                   tolerate=lambda e: self.compiler.handle_error(e, table_name),
                                   savepoint=self.compiler.transactional_ddl)

    # ------------------------------------------------------------------
    # Data copy
    # ------------------------------------------------------------------

    def build_field_mapping(self, source_table: TableDescriptor,
                            target_table: TableDescriptor) -> Dict[str, str]:
        """lower-cased source column -> quoted target column"""
        mapping = {}
        for column in source_table.columns:
            target_column = target_table.get_column(column.name)
            if target_column is None:
                logger.warning(f"Table[{source_table.name}] column {column.name} has no match "
                               f"in target, its values will not be copied")
                continue
            mapping[column.name.lower()] = self.compiler.wrap_name(target_column.name)
        return mapping

    @staticmethod
    def map_rows(rows: Sequence[Dict[str, Any]], mapping: Dict[str, str]) -> List[Dict[str, Any]]:
        result = []
        for row in rows:
            result.append({mapping[k.lower()]: v for k, v in row.items() if k.lower() in mapping})
        return result

    def insert_data(self, meta: TableMeta, source_table: TableDescriptor,
                    target_table: TableDescriptor, condition: Optional[str] = None) -> int:
        """Clear the target table and copy the source rows page by page"""
        name = source_table.name
        source_name = self.source.qualified_name(source_table.name)
        target_name = self.compiler.table_name(source_table.name, self.target.config)
        page_size = self.strategy.page_size
        query = SELECT_WHERE.format(source_name, condition) if condition else SELECT_ALL.format(source_name)
        # without a key, order by every comparable column so pages stay disjoint
        order_names = source_table.pk_names or [c.name for c in source_table.columns if c.sortable]
        order_by = [self.source.quote(c) for c in order_names]

        mapping = self.build_field_mapping(source_table, target_table)
        copied = 0
        page_index = 0
        try:
            with self.source.session() as source_session:
                if condition:
                    record_count = source_session.query_number(COUNT_WHERE.format(source_name, condition))
                elif not meta.count_known:
                    record_count = source_session.query_number(COUNT_ALL.format(source_name))
                else:
                    record_count = meta.record_count

                self.session.execute(DELETE_ALL.format(target_name))
                if not mapping:
                    logger.warning(f"Table[{name}] shares no columns with the target, no rows copied")
                    return 0

                pages = page_count(record_count, page_size)
                for page_index in range(pages):
                    rows = source_session.page(query, page_index, page_size, order_by)
                    inserted = self.session.insert_batch(target_name, self.map_rows(rows, mapping))
                    copied += inserted
                    self.listener.page_copied(self.bucket, name, page_index, pages, inserted)
        except SQLAlchemyError as e:
            raise DataCopyError(f"Table[{name}] data copy failed at page {page_index}: {e}",
                                name, page_index, cause=e) from e
        return copied
