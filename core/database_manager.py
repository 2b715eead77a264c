#!/usr/bin/env python3
"""
Database Manager - Connection Pools and SQL Execution

One DataSourceProvider per configured datasource owns a pooled SQLAlchemy
engine. SqlSession wraps a single connection and provides the handful of
operations the migrator needs: run a statement, run a DDL batch with
tolerated errors, read a number, read a page of rows, insert a batch.

Statements are pre-formatted strings; only row inserts use bound
parameters.

Usage:
    provider = DataSourceProvider(config)
    with provider.connect() as conn:
        session = SqlSession(conn)
        total = session.query_number("select count(*) from orders")
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, literal_column, select, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from core.db_config import DbConfig, DbType
from core.errors import ConfigurationError, DdlExecutionError

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 10


@dataclass
class BatchResult:
    """Outcome of a DDL batch"""
    executed: int = 0
    tolerated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'executed': self.executed, 'tolerated': self.tolerated}


def build_url(config: DbConfig) -> URL:
    """SQLAlchemy URL for a datasource, with driver and credentials filled in"""
    try:
        url = make_url(config.url)
    except ArgumentError as e:
        raise ConfigurationError(f"Invalid URL for datasource {config.id}: {e}", {'datasource': config.id})
    if '+' not in url.drivername:
        url = url.set(drivername=config.db_type.driver)
    if config.db_type != DbType.SQLITE:
        url = url.set(username=config.user, password=config.password)
    return url


class DataSourceProvider:
    """Pooled connections for one datasource"""

    def __init__(self, config: DbConfig, debug: bool = False,
                 pool_size: int = DEFAULT_POOL_SIZE, engine: Optional[Engine] = None):
        self.config = config
        self.engine = engine or self._create_engine(config, debug, pool_size)
        self._server_version: Optional[Tuple[int, ...]] = None

    @staticmethod
    def _create_engine(config: DbConfig, debug: bool, pool_size: int) -> Engine:
        url = build_url(config)
        options: Dict[str, Any] = {'echo': debug, 'pool_pre_ping': True}
        if config.db_type != DbType.SQLITE:
            options.update(pool_size=pool_size, max_overflow=pool_size, pool_recycle=3600)
        if config.db_type == DbType.ORACLE and config.buffer_rows:
            options['arraysize'] = config.buffer_rows
        logger.info(f"Creating connection pool for datasource {config.id} ({config.db_type.type_name})")
        return create_engine(url, **options)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def connect(self) -> Connection:
        return self.engine.connect()

    @contextmanager
    def session(self) -> Iterator['SqlSession']:
        """Short-lived session on a pooled connection, rolled back on close"""
        with self.engine.connect() as conn:
            yield SqlSession(conn)

    def server_version(self) -> Tuple[int, ...]:
        """(major, minor, ...) of the server, empty when unknown"""
        if self._server_version is None:
            try:
                with self.engine.connect():
                    info = self.engine.dialect.server_version_info
                self._server_version = tuple(v for v in (info or ()) if isinstance(v, int))
            except SQLAlchemyError as e:
                logger.warning(f"Could not read server version of {self.config.id}: {e}")
                self._server_version = ()
        return self._server_version

    def quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(name)

    def qualified_name(self, table_name: str) -> str:
        """Quoted (schema.)table as the source engine expects it"""
        preparer = self.engine.dialect.identifier_preparer
        if self.config.schema_name:
            return f"{preparer.quote_schema(self.config.schema_name)}.{preparer.quote(table_name)}"
        return preparer.quote(table_name)

    def dispose(self):
        """Close all pooled connections"""
        self.engine.dispose()
        logger.debug(f"Disposed connection pool for datasource {self.config.id}")

    def __repr__(self):
        return f"DataSourceProvider({self.config.id!r}, {self.dialect_name})"


class SqlSession:
    """SQL execution capability over one connection"""

    def __init__(self, connection: Connection):
        self.connection = connection

    def execute(self, sql: str):
        logger.debug(f"Executing: {sql}")
        return self.connection.exec_driver_sql(sql)

    def execute_batch(self, statements: Sequence[str],
                      tolerate: Optional[Callable[[BaseException], bool]] = None,
                      savepoint: bool = False) -> BatchResult:
        """Run statements in order; tolerated failures are logged and skipped"""
        result = BatchResult()
        for sql in statements:
            try:
                if savepoint:
                    with self.connection.begin_nested():
                        self.execute(sql)
                else:
                    self.execute(sql)
                result.executed += 1
            except SQLAlchemyError as e:
                if tolerate is not None and tolerate(e):
                    logger.warning(f"Ignored error for statement [{sql}]: {e}")
                    result.tolerated += 1
                    continue
                raise DdlExecutionError(f"Statement failed: {sql}", statement=sql, cause=e) from e
        return result

    def query_number(self, sql: str) -> int:
        value = self.execute(sql).scalar()
        return int(value or 0)

    def page(self, sql: str, page_index: int, page_size: int,
             order_by: Sequence[str] = ()) -> List[Dict[str, Any]]:
        """Rows of the zero-based page `page_index` of a query"""
        # colons in user supplied conditions are literals, not bind markers
        source = text(sql.replace(':', '\\:')).columns().subquery('page_src')
        query = select(literal_column("*")).select_from(source)
        if order_by:
            query = query.order_by(*[literal_column(column) for column in order_by])
        elif self.connection.dialect.name == 'mssql':
            # OFFSET requires an ORDER BY on SQL Server
            query = query.order_by(text("(SELECT NULL)"))
        query = query.limit(page_size).offset(page_index * page_size)
        return [dict(row._mapping) for row in self.connection.execute(query)]

    def insert_batch(self, table_name: str, rows: Sequence[Dict[str, Any]]) -> int:
        """INSERT rows keyed by (already quoted) target column names"""
        if not rows:
            return 0
        columns = list(rows[0].keys())
        binds = [f"p{i}" for i in range(len(columns))]
        statement = text("INSERT INTO {} ({}) VALUES ({})".format(
            table_name, ', '.join(columns), ', '.join(':' + b for b in binds)))
        params = [{b: row.get(c) for b, c in zip(binds, columns)} for row in rows]
        self.connection.execute(statement, params)
        return len(params)
