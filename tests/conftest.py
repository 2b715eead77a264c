#!/usr/bin/env python3
"""
Migrator Test Configuration - PyTest Configuration and Fixtures

Puts the project root on sys.path and provides throwaway SQLite databases
and datasource configs for the tests that talk to a real engine.
"""

import json
import os
import sqlite3
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.db_config import DbConfig, DbType


def sqlite_config(datasource_id: str, path, **overrides) -> DbConfig:
    """DbConfig for a SQLite file; credentials are placeholders SQLite ignores"""
    values = dict(id=datasource_id, url=f"sqlite:///{path}", user="sa", password="sa",
                  db_type=DbType.SQLITE)
    values.update(overrides)
    return DbConfig(**values)


def seed_source_database(path, big_rows: int = 250):
    """Source schema used across the SQLite tests"""
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name VARCHAR(50), "
                     "note TEXT DEFAULT 'json type')")
        conn.execute("CREATE INDEX ix_t_name ON t (name)")
        conn.executemany("INSERT INTO t (id, name) VALUES (?, ?)",
                         [(i, f"name-{i}") for i in range(1, big_rows + 1)])
        conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(120) NOT NULL)")
        conn.executemany("INSERT INTO users (id, email) VALUES (?, ?)",
                         [(1, "a@example.com"), (2, "b@example.com"), (3, "c@example.com")])
        conn.execute("CREATE TABLE tmp_cache (k VARCHAR(20), v TEXT)")
        conn.execute("INSERT INTO tmp_cache (k, v) VALUES ('a', 'b')")


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def source_db(temp_dir):
    path = temp_dir / "source.db"
    seed_source_database(path)
    return path


@pytest.fixture
def target_db(temp_dir):
    path = temp_dir / "target.db"
    sqlite3.connect(path).close()
    return path


@pytest.fixture
def config_file(temp_dir, source_db, target_db):
    """JSON config with a source and a target SQLite datasource"""
    path = temp_dir / "migration.json"
    path.write_text(json.dumps({
        "datasources": [
            {"id": "src", "url": f"sqlite:///{source_db}", "user": "sa",
             "password": "${MIGRATOR_TEST_PASSWORD:sa}", "db_type": "sqlite"},
            {"id": "dst", "url": f"sqlite:///{target_db}", "user": "sa",
             "password": "${MIGRATOR_TEST_PASSWORD:sa}", "db_type": "sqlite"},
        ],
        "strategy": {"build_mode": "delete_and_rebuild", "page_size": 100},
    }), encoding="utf-8")
    return path


@pytest.fixture
def orchestrator_factory(temp_dir, source_db, target_db):
    """Build orchestrators over the SQLite pair; all are closed after the test"""
    from core.migration import MigrationOrchestrator
    from core.strategy import ExecuteStrategy

    created = []

    def factory(source_path=None, **strategy):
        orchestrator = MigrationOrchestrator.from_configs(
            sqlite_config("src", source_path or source_db),
            sqlite_config("dst", target_db),
            ExecuteStrategy(**strategy))
        created.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in created:
        orchestrator.close()


@pytest.fixture
def big_source_db(temp_dir):
    """Source whose table t spans several pages at the default page size"""
    path = temp_dir / "big_source.db"
    seed_source_database(path, big_rows=12345)
    return path
