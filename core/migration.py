"""
Migration Orchestrator
======================

Discovers source tables, sizes them, spreads them over worker buckets and
runs every bucket on its own thread and target transaction.

A bucket commits when all of its tables were handled and rolls back when
one of them aborted it. After every bucket finished, the run raises
MigrationRunError if any bucket failed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.database_manager import DataSourceProvider, SqlSession
from core.db_config import DbConfig
from core.dialects import build_compiler
from core.dialects.base import AbstractDdlCompiler, ActionType
from core.errors import ConfigurationError, MigrationRunError
from core.introspection import get_table_meta, list_tables
from core.monitor import CompositeListener, LoggingListener, MigrationListener, MigrationReport
from core.schema_ir import TableMeta
from core.strategy import ExecuteStrategy
from core.worker import COUNT_ALL, MigrationWorker

logger = logging.getLogger(__name__)

DEFAULT_ALL_TABLES_WORKERS = 15


def partition_tables(tables: Sequence[TableMeta], worker_count: int) -> List[List[TableMeta]]:
    """Sort by descending row count and deal round-robin into buckets"""
    if not tables:
        return []
    bucket_count = max(1, min(worker_count, len(tables)))
    ordered = sorted(tables, key=TableMeta.sort_key, reverse=True)
    buckets: List[List[TableMeta]] = [[] for _ in range(bucket_count)]
    for i, meta in enumerate(ordered):
        buckets[i % bucket_count].append(meta)
    return buckets


class MigrationOrchestrator:
    """Entry point for syncing one table, a list of tables or a whole schema"""

    def __init__(self, source: DataSourceProvider, target: DataSourceProvider,
                 strategy: Optional[ExecuteStrategy] = None,
                 compiler: Optional[AbstractDdlCompiler] = None,
                 listener: Optional[MigrationListener] = None):
        self.source = source
        self.target = target
        self.strategy = strategy or ExecuteStrategy()
        self.compiler = compiler or build_compiler(target.config, target.server_version())
        self.listener = listener or LoggingListener()

    @classmethod
    def from_configs(cls, source_config: DbConfig, target_config: DbConfig,
                     strategy: Optional[ExecuteStrategy] = None,
                     listener: Optional[MigrationListener] = None) -> 'MigrationOrchestrator':
        """Build pools and the target compiler from two datasource configs"""
        strategy = strategy or ExecuteStrategy()
        source = DataSourceProvider(source_config, debug=strategy.debug)
        target = DataSourceProvider(target_config, debug=strategy.debug)
        return cls(source, target, strategy, listener=listener)

    def close(self):
        """Dispose both connection pools."""
        self.source.dispose()
        self.target.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def list_source_tables(self, *name_fragments: str) -> List[str]:
        names = list_tables(self.source.engine, self.source.config.schema_name)
        if name_fragments:
            fragments = [f.lower() for f in name_fragments if f]
            names = [n for n in names if any(f in n.lower() for f in fragments)]
        return names

    def discover_tables(self, *name_fragments: str) -> List[TableMeta]:
        """Source tables (optionally filtered by name fragment) with row counts"""
        metas = []
        with self.source.session() as session:
            for name in self.list_source_tables(*name_fragments):
                meta = self.create_table_meta(session, name)
                if meta is not None:
                    metas.append(meta)
        logger.info(f"Discovered {len(metas)} table(s) in source {self.source.config.id}")
        return metas

    def create_table_meta(self, session: SqlSession, table_name: str) -> Optional[TableMeta]:
        """TableMeta for a source table, None when it exceeds the row limit"""
        try:
            count = session.query_number(COUNT_ALL.format(self.source.qualified_name(table_name)))
        except SQLAlchemyError as e:
            logger.warning(f"Table[{table_name}] row count failed, size unknown: {e}")
            session.connection.rollback()
            return TableMeta(table_name, -1)
        if self.strategy.exceeds_max(count):
            logger.warning(f"Table[{table_name}] has {count} rows, more than "
                           f"{self.strategy.max_record_count}, skipped")
            return None
        return TableMeta(table_name, count)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def sync_single_table(self, table_name: str, condition: Optional[str] = None) -> MigrationReport:
        """Sync one table, optionally copying only rows matching condition"""
        candidates = self.list_source_tables(table_name)
        exact = [n for n in candidates if n.lower() == table_name.lower()]
        if not exact:
            logger.error(f"Table[{table_name}] does not exist in source {self.source.config.id}")
            report = MigrationReport()
            CompositeListener(self.listener, report).table_skipped(0, table_name, "source table does not exist")
            report.finish()
            return report

        with self.source.session() as session:
            meta = self.create_table_meta(session, exact[0])
        if meta is None:
            report = MigrationReport()
            CompositeListener(self.listener, report).table_skipped(
                0, exact[0], f"exceeds the limit of {self.strategy.max_record_count} rows")
            report.finish()
            return report
        return self.run([meta], worker_count=1, condition=condition)

    def sync_table_list(self, *table_names: str, worker_count: int = 1) -> MigrationReport:
        """Sync every source table whose name contains one of table_names"""
        if not table_names:
            raise ConfigurationError("sync_table_list needs at least one table name")
        return self.run(self.discover_tables(*table_names), worker_count)

    def sync_all_tables(self, worker_count: int = DEFAULT_ALL_TABLES_WORKERS) -> MigrationReport:
        """Sync every table of the source schema"""
        return self.run(self.discover_tables(), worker_count)

    def preview_ddl(self, *table_names: str) -> Dict[str, List[str]]:
        """CREATE statements the target would receive, without touching it"""
        preview = {}
        with self.source.connect() as conn:
            for name in self.list_source_tables(*table_names):
                table = get_table_meta(conn, name, self.source.config.schema_name)
                if table is None:
                    continue
                preview[name] = self.compiler.build_ddl(self.source.config, self.target.config,
                                                        table, ActionType.CREATE)
        return preview

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, tables: Sequence[TableMeta], worker_count: int = 1,
            condition: Optional[str] = None) -> MigrationReport:
        """Partition tables into buckets and run each bucket on its own thread"""
        report = MigrationReport()
        listener = CompositeListener(self.listener, report)
        buckets = partition_tables(tables, worker_count)
        logger.info(f"Migrating {len(tables)} table(s) from {self.source.config.id} to "
                    f"{self.target.config.id} with {len(buckets)} worker(s)")

        failures: Dict[int, BaseException] = {}
        if buckets:
            with ThreadPoolExecutor(max_workers=len(buckets), thread_name_prefix='migrator') as executor:
                futures = {executor.submit(self._run_bucket, index, bucket, listener, condition): index
                           for index, bucket in enumerate(buckets)}
                for future in as_completed(futures):
                    index = futures[future]
                    try:
                        future.result()
                    except Exception as e:
                        failures[index] = e

        report.finish()
        logger.info(f"Migration finished: {len(report.succeeded)} succeeded, "
                    f"{len(report.skipped)} skipped, {len(report.failed)} failed")
        if failures:
            raise MigrationRunError(
                f"{len(failures)} of {len(buckets)} worker bucket(s) failed",
                {index: str(error) for index, error in sorted(failures.items())},
                report=report)
        return report

    def _run_bucket(self, index: int, bucket: Sequence[TableMeta],
                    listener: MigrationListener, condition: Optional[str] = None):
        """One target connection and transaction for the whole bucket"""
        logger.debug(f"Worker bucket {index}: {[m.table_name for m in bucket]}")
        try:
            with self.target.connect() as conn:
                with conn.begin():
                    worker = MigrationWorker(self.source, self.target, self.compiler, self.strategy,
                                             SqlSession(conn), bucket=index, listener=listener)
                    worker.transfer_tables(bucket, condition)
        except Exception as e:
            listener.bucket_finished(index, False, e)
            raise
        listener.bucket_finished(index, True)
