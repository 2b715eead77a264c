#!/usr/bin/env python3
"""
Connection pools, SQL sessions and table metadata, exercised against an
in-memory SQLite engine.
"""

import unittest

from sqlalchemy import create_engine

from core.database_manager import DataSourceProvider, SqlSession, build_url
from core.db_config import DbConfig, DbType
from core.errors import ConfigurationError, DdlExecutionError
from core.introspection import get_table_meta, list_tables
from core.type_registry import TypeCategory


def make_config(url, db_type=DbType.SQLITE, **overrides):
    return DbConfig(id='ds', url=url, user='scott', password='tiger', db_type=db_type, **overrides)


class TestBuildUrl(unittest.TestCase):

    def test_sqlite_keeps_url_without_credentials(self):
        url = build_url(make_config('sqlite:///data/source.db'))
        self.assertEqual(url.drivername, 'sqlite')
        self.assertIsNone(url.username)
        self.assertEqual(url.database, 'data/source.db')

    def test_default_driver_and_credentials(self):
        url = build_url(make_config('mysql://db.local:3306/shop', DbType.MYSQL))
        self.assertEqual(url.drivername, 'mysql+pymysql')
        self.assertEqual(url.username, 'scott')
        self.assertEqual(url.password, 'tiger')
        self.assertEqual(url.port, 3306)

    def test_explicit_driver_is_kept(self):
        url = build_url(make_config('postgresql+pg8000://db.local/shop', DbType.POSTGRESQL))
        self.assertEqual(url.drivername, 'postgresql+pg8000')

    def test_invalid_url(self):
        with self.assertRaises(ConfigurationError) as ctx:
            build_url(make_config('not a url'))
        self.assertEqual(ctx.exception.details['datasource'], 'ds')


class SqliteTestCase(unittest.TestCase):

    def setUp(self):
        self.provider = DataSourceProvider(make_config('sqlite://'), engine=create_engine('sqlite://'))
        self.conn = self.provider.connect()
        self.session = SqlSession(self.conn)

    def tearDown(self):
        self.conn.close()
        self.provider.dispose()


class TestSqlSession(SqliteTestCase):

    def test_batch_tolerates_listed_errors(self):
        statements = ['CREATE TABLE a (x INTEGER)', 'CREATE TABLE a (x INTEGER)']
        with self.assertLogs('core.database_manager', level='WARNING'):
            result = self.session.execute_batch(statements, tolerate=lambda e: 'already exists' in str(e))
        self.assertEqual(result.to_dict(), {'executed': 1, 'tolerated': 1})

    def test_batch_raises_on_other_errors(self):
        with self.assertRaises(DdlExecutionError) as ctx:
            self.session.execute_batch(['DROP TABLE missing'])
        self.assertEqual(ctx.exception.statement, 'DROP TABLE missing')
        self.assertIsNotNone(ctx.exception.cause)

    def test_query_number(self):
        self.session.execute('CREATE TABLE a (x INTEGER)')
        self.assertEqual(self.session.query_number('select count(*) from a'), 0)
        self.session.insert_batch('"a"', [{'"x"': i} for i in range(4)])
        self.assertEqual(self.session.query_number('select count(*) from a'), 4)
        self.assertEqual(self.session.query_number('select max(x) from a where x < 0'), 0)

    def test_insert_batch(self):
        self.session.execute('CREATE TABLE a (x INTEGER, s VARCHAR(10))')
        self.assertEqual(self.session.insert_batch('"a"', []), 0)
        inserted = self.session.insert_batch('"a"', [{'"x"': 1, '"s"': 'one'}, {'"x"': 2, '"s"': None}])
        self.assertEqual(inserted, 2)
        rows = self.conn.exec_driver_sql('select x, s from a order by x').fetchall()
        self.assertEqual([tuple(r) for r in rows], [(1, 'one'), (2, None)])

    def test_page_with_ordering(self):
        self.session.execute('CREATE TABLE a (x INTEGER)')
        self.session.insert_batch('"a"', [{'"x"': i} for i in (5, 3, 1, 7, 2, 6, 4)])
        pages = [self.session.page('select * from a', i, 3, ['"x"']) for i in range(3)]
        self.assertEqual([[r['x'] for r in page] for page in pages], [[1, 2, 3], [4, 5, 6], [7]])

    def test_page_condition_with_colon(self):
        self.session.execute('CREATE TABLE a (x INTEGER, s VARCHAR(10))')
        self.session.insert_batch('"a"', [{'"x"': 1, '"s"': '10:30'}, {'"x"': 2, '"s"': '11:00'}])
        rows = self.session.page("select * from a where s = '10:30'", 0, 10)
        self.assertEqual(rows, [{'x': 1, 's': '10:30'}])


class TestProvider(SqliteTestCase):

    def test_session_context(self):
        with self.provider.session() as session:
            self.assertIsInstance(session, SqlSession)
            self.assertEqual(session.query_number('select 1'), 1)

    def test_naming(self):
        self.assertEqual(self.provider.dialect_name, 'sqlite')
        self.assertEqual(self.provider.quote('order'), '"order"')
        self.assertEqual(self.provider.qualified_name('select'), '"select"')

    def test_server_version(self):
        version = self.provider.server_version()
        self.assertGreaterEqual(version[0], 3)


class TestIntrospection(SqliteTestCase):

    def setUp(self):
        super().setUp()
        self.session.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name VARCHAR(50) NOT NULL, "
                             "price NUMERIC(10, 2), note TEXT DEFAULT 'json type')")
        self.session.execute("CREATE UNIQUE INDEX ux_t_name ON t (name)")

    def test_list_tables(self):
        self.assertEqual(list_tables(self.conn), ['t'])

    def test_table_snapshot(self):
        table = get_table_meta(self.conn, 't')
        self.assertTrue(table.exists)
        self.assertEqual([c.name for c in table.columns], ['id', 'name', 'price', 'note'])
        self.assertEqual(table.pk_names, ('id',))
        self.assertTrue(table.get_column('ID').is_pk)

        name = table.get_column('name')
        self.assertEqual((name.type_name, name.size, name.nullable), ('VARCHAR', 50, False))
        self.assertIs(name.category, TypeCategory.VARCHAR)

        price = table.get_column('price')
        self.assertEqual((price.size, price.digits), (10, 2))
        self.assertEqual(table.get_column('note').default, 'json type')

        self.assertEqual(len(table.indexes), 1)
        index = table.indexes[0]
        self.assertEqual((index.name, index.columns, index.unique), ('ux_t_name', ('name',), True))

    def test_missing_table(self):
        self.assertIsNone(get_table_meta(self.conn, 'missing'))


if __name__ == '__main__':
    unittest.main()
