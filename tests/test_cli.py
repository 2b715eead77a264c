#!/usr/bin/env python3
"""
Command line entry point, run against the SQLite config fixture.
"""

import sqlite3
from types import SimpleNamespace

import pytest

from core.strategy import BuildMode, ExecuteStrategy
from tools.db_migrator import build_strategy, main, split_names


def base_args(config_file, *extra):
    return ['--config', str(config_file), '--source', 'src', '--target', 'dst', *extra]


def table_names(path):
    with sqlite3.connect(path) as conn:
        return [r[0] for r in conn.execute("select name from sqlite_master where type = 'table' order by name")]


def test_all_tables(config_file, target_db, capsys):
    assert main(base_args(config_file, '--all', '--workers', '1')) == 0

    assert table_names(target_db) == ['t', 'tmp_cache', 'users']
    output = capsys.readouterr().out
    assert 't: succeeded (250 rows)' in output
    assert output.strip().endswith('Total: 3 succeeded, 0 skipped, 0 tolerated, 0 failed, 254 rows')


def test_single_table_with_condition(config_file, target_db):
    assert main(base_args(config_file, '--table', 'users', '--condition', 'id > 1')) == 0

    with sqlite3.connect(target_db) as conn:
        assert conn.execute('select count(*) from users').fetchone()[0] == 2


def test_dry_run_prints_ddl_only(config_file, target_db, capsys):
    assert main(base_args(config_file, '--tables', 'users', '--dry-run')) == 0

    output = capsys.readouterr().out
    assert output.startswith('-- users\nCREATE TABLE "users" (')
    assert ');\n' in output
    assert table_names(target_db) == []


def test_ignored_tables(config_file, target_db):
    assert main(base_args(config_file, '--all', '--workers', '1', '--ignore', 'tmp_.*', '--no-data')) == 0

    assert table_names(target_db) == ['t', 'users']


def test_failed_table_exits_non_zero(config_file, capsys):
    assert main(base_args(config_file, '--table', 't', '--condition', 'missing_column = 1')) == 1
    assert 't: failed' in capsys.readouterr().out


def test_unknown_datasource(config_file):
    assert main(['--config', str(config_file), '--source', 'src', '--target', 'nope', '--all']) == 1


def test_condition_requires_single_table(config_file):
    with pytest.raises(SystemExit) as excinfo:
        main(base_args(config_file, '--all', '--condition', 'id > 1'))
    assert excinfo.value.code == 2


def test_selection_is_required(config_file):
    with pytest.raises(SystemExit):
        main(base_args(config_file))


def test_strategy_overrides():
    base = ExecuteStrategy(ignored_table_patterns=('audit',))
    args = SimpleNamespace(build_mode='skip_when_exist', max_records=10, no_data=True, ignore=['tmp_.*'],
                           stop_on_error=True, page_size=50, debug=False)
    strategy = build_strategy(base, args)

    assert strategy.build_mode is BuildMode.SKIP_WHEN_EXIST
    assert strategy.max_record_count == 10
    assert not strategy.include_data
    assert strategy.ignored_table_patterns == ('audit', 'tmp_.*')
    assert not strategy.continue_when_error
    assert strategy.page_size == 50


def test_split_names():
    assert split_names(' users, ,roles,') == ['users', 'roles']
