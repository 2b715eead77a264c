#!/usr/bin/env python3
"""
Migration Monitor
=================

Lifecycle observer for table migrations. Workers report each table's
progress to a MigrationListener; the core never formats log lines itself.

- LoggingListener writes the table-granular log lines.
- MigrationReport records outcomes from every worker thread and exports
  a summary.
- CompositeListener fans events out to several listeners.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class TableStatus(Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    TOLERATED = "tolerated"
    FAILED = "failed"


class TableStage(Enum):
    DISCOVER = "discover"
    CHECK_SOURCE = "check_source"
    CHECK_TARGET = "check_target"
    REBUILD = "rebuild"
    COPY_DATA = "copy_data"
    DONE = "done"


@dataclass
class TableOutcome:
    """Result of one table's migration"""
    table_name: str
    status: TableStatus
    bucket: int = 0
    rows_copied: int = 0
    stage: TableStage = TableStage.DONE
    reason: Optional[str] = None
    elapsed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'table': self.table_name,
            'status': self.status.value,
            'bucket': self.bucket,
            'rows_copied': self.rows_copied,
            'stage': self.stage.value,
            'reason': self.reason,
            'elapsed': round(self.elapsed, 3),
        }


class MigrationListener:
    """Observer for table lifecycle events. Every hook is a no-op by default."""

    def table_started(self, bucket: int, table_name: str, position: int, total: int):
        pass

    def table_skipped(self, bucket: int, table_name: str, reason: str):
        pass

    def table_created(self, bucket: int, table_name: str, statements: List[str]):
        pass

    def page_copied(self, bucket: int, table_name: str, page_index: int, page_count: int, rows: int):
        pass

    def table_succeeded(self, bucket: int, table_name: str, position: int, total: int,
                        rows_copied: int, elapsed: float):
        pass

    def table_tolerated(self, bucket: int, table_name: str, stage: TableStage, error: BaseException):
        pass

    def table_failed(self, bucket: int, table_name: str, stage: TableStage, error: BaseException):
        pass

    def bucket_finished(self, bucket: int, succeeded: bool, error: Optional[BaseException] = None):
        pass


class LoggingListener(MigrationListener):
    """Default listener: one log line per table event"""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def table_skipped(self, bucket, table_name, reason):
        self.log.info(f"Table[{table_name}] skipped: {reason}")

    def table_created(self, bucket, table_name, statements):
        self.log.info(f"Table[{table_name}] created with {len(statements)} statement(s)")
        for sql in statements:
            self.log.debug(f"Table[{table_name}] DDL: {sql}")

    def page_copied(self, bucket, table_name, page_index, page_count, rows):
        self.log.debug(f"Table[{table_name}] page {page_index + 1}/{page_count} copied ({rows} rows)")

    def table_succeeded(self, bucket, table_name, position, total, rows_copied, elapsed):
        self.log.info(f"Table[{table_name}] ({position}/{total}) transfer succeed, "
                      f"{rows_copied} rows in {elapsed:.2f}s")

    def table_tolerated(self, bucket, table_name, stage, error):
        self.log.warning(f"Table[{table_name}] tolerated error during {stage.value}: {error}")

    def table_failed(self, bucket, table_name, stage, error):
        self.log.error(f"Table[{table_name}] transfer failed during {stage.value}: {error}")

    def bucket_finished(self, bucket, succeeded, error=None):
        if succeeded:
            self.log.info(f"Worker bucket {bucket} committed")
        else:
            self.log.error(f"Worker bucket {bucket} rolled back: {error}")


class CompositeListener(MigrationListener):
    """Forwards every event to each wrapped listener"""

    def __init__(self, *listeners: MigrationListener):
        self.listeners = [l for l in listeners if l is not None]

    def _emit(self, name: str, *args):
        for listener in self.listeners:
            getattr(listener, name)(*args)

    def table_started(self, *args):
        self._emit('table_started', *args)

    def table_skipped(self, *args):
        self._emit('table_skipped', *args)

    def table_created(self, *args):
        self._emit('table_created', *args)

    def page_copied(self, *args):
        self._emit('page_copied', *args)

    def table_succeeded(self, *args):
        self._emit('table_succeeded', *args)

    def table_tolerated(self, *args):
        self._emit('table_tolerated', *args)

    def table_failed(self, *args):
        self._emit('table_failed', *args)

    def bucket_finished(self, *args):
        self._emit('bucket_finished', *args)


class MigrationReport(MigrationListener):
    """Thread-safe record of every table outcome in a run"""

    def __init__(self):
        self.lock = threading.Lock()
        self.started_at = time.time()
        self.finished_at: Optional[float] = None
        self.outcomes: Dict[str, TableOutcome] = {}
        self.bucket_errors: Dict[int, str] = {}
        self._started: Dict[str, float] = {}

    def _record(self, outcome: TableOutcome):
        with self.lock:
            started = self._started.pop(outcome.table_name, None)
            if started is not None:
                outcome.elapsed = time.time() - started
            self.outcomes[outcome.table_name] = outcome

    def table_started(self, bucket, table_name, position, total):
        with self.lock:
            self._started[table_name] = time.time()

    def table_skipped(self, bucket, table_name, reason):
        self._record(TableOutcome(table_name, TableStatus.SKIPPED, bucket, reason=reason))

    def table_succeeded(self, bucket, table_name, position, total, rows_copied, elapsed):
        self._record(TableOutcome(table_name, TableStatus.SUCCEEDED, bucket, rows_copied=rows_copied))

    def table_tolerated(self, bucket, table_name, stage, error):
        self._record(TableOutcome(table_name, TableStatus.TOLERATED, bucket, stage=stage, reason=str(error)))

    def table_failed(self, bucket, table_name, stage, error):
        self._record(TableOutcome(table_name, TableStatus.FAILED, bucket, stage=stage, reason=str(error)))

    def bucket_finished(self, bucket, succeeded, error=None):
        with self.lock:
            if not succeeded:
                self.bucket_errors[bucket] = str(error)

    def finish(self):
        self.finished_at = time.time()

    def tables_with(self, status: TableStatus) -> List[str]:
        with self.lock:
            return sorted(name for name, o in self.outcomes.items() if o.status == status)

    @property
    def succeeded(self) -> List[str]:
        return self.tables_with(TableStatus.SUCCEEDED)

    @property
    def skipped(self) -> List[str]:
        return self.tables_with(TableStatus.SKIPPED)

    @property
    def failed(self) -> List[str]:
        return self.tables_with(TableStatus.FAILED)

    @property
    def rows_copied(self) -> int:
        with self.lock:
            return sum(o.rows_copied for o in self.outcomes.values())

    @property
    def ok(self) -> bool:
        return not self.bucket_errors and not self.failed

    def get_summary(self) -> Dict[str, Any]:
        with self.lock:
            outcomes = [o.to_dict() for o in self.outcomes.values()]
            bucket_errors = dict(self.bucket_errors)
        end = self.finished_at or time.time()
        return {
            'duration': round(end - self.started_at, 3),
            'tables': len(outcomes),
            'succeeded': len([o for o in outcomes if o['status'] == TableStatus.SUCCEEDED.value]),
            'skipped': len([o for o in outcomes if o['status'] == TableStatus.SKIPPED.value]),
            'tolerated': len([o for o in outcomes if o['status'] == TableStatus.TOLERATED.value]),
            'failed': len([o for o in outcomes if o['status'] == TableStatus.FAILED.value]),
            'rows_copied': sum(o['rows_copied'] for o in outcomes),
            'failed_buckets': bucket_errors,
            'outcomes': sorted(outcomes, key=lambda o: o['table']),
        }

    def export(self, format_type: str = "json") -> str:
        """Export the summary as json or as plain text lines"""
        summary = self.get_summary()
        if format_type == "json":
            return json.dumps(summary, indent=2, default=str)
        lines = [f"{o['table']}: {o['status']} ({o['rows_copied']} rows)"
                 + (f" - {o['reason']}" if o['reason'] else '')
                 for o in summary['outcomes']]
        lines.append(f"Total: {summary['succeeded']} succeeded, {summary['skipped']} skipped, "
                     f"{summary['tolerated']} tolerated, {summary['failed']} failed, "
                     f"{summary['rows_copied']} rows")
        return '\n'.join(lines)
