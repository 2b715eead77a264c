#!/usr/bin/env python3
"""
DDL compiler tests: identifier policy, statement ordering and the
per-dialect output for one reference table.
"""

import random
import re
import unittest
from unittest.mock import patch

from core.db_config import DbConfig, DbType
from core.dialects import COMPILERS, build_compiler
from core.dialects.base import ActionType
from core.dialects.kingbase import KingBaseDdlCompiler
from core.dialects.mysql import MySqlDdlCompiler
from core.dialects.oracle import OracleDdlCompiler
from core.dialects.postgresql import PostgreSqlDdlCompiler
from core.dialects.sqlite import SqliteDdlCompiler
from core.dialects.sqlserver import SqlServerDdlCompiler
from core.dialects.vastbase import VastBaseDdlCompiler
from core.errors import ConfigurationError, MetadataError
from core.schema_ir import ColumnDescriptor, IndexDescriptor, TableDescriptor


def make_table(name='t', comment=None, pk=('id',), indexes=None, extra_columns=()):
    columns = (
        ColumnDescriptor('id', 'INTEGER', nullable=False, is_pk='id' in pk, table_name=name),
        ColumnDescriptor('name', 'VARCHAR', size=50, comment='user name', table_name=name),
        ColumnDescriptor('note', 'LONGTEXT', default='json type', table_name=name),
    ) + tuple(extra_columns)
    if indexes is None:
        indexes = (IndexDescriptor('ix_t_name', name, ('name',)),)
    return TableDescriptor(name, columns, tuple(indexes), tuple(pk), comment)


def make_config(db_type, **overrides):
    values = dict(id='dst', url='db://host/x', user='u', password='p', db_type=db_type)
    values.update(overrides)
    return DbConfig(**values)


class TestIdentifierPolicy(unittest.TestCase):

    def test_wrap_name_per_dialect(self):
        self.assertEqual(OracleDdlCompiler().wrap_name('my table'), '"MYTABLE"')
        self.assertEqual(SqlServerDdlCompiler().wrap_name('dbo.my table'), '[dbo].[mytable]')
        self.assertEqual(PostgreSqlDdlCompiler().wrap_name('Public.Users'), '"public"."users"')
        self.assertEqual(MySqlDdlCompiler().wrap_name('Users'), '`Users`')
        self.assertEqual(SqliteDdlCompiler().wrap_name('Users'), '"Users"')
        self.assertEqual(OracleDdlCompiler().wrap_name('  '), '')

    def test_wrap_name_is_deterministic(self):
        compiler = KingBaseDdlCompiler()
        self.assertEqual(compiler.wrap_name('Orders'), compiler.wrap_name('Orders'))

    def test_schema_prefix_comes_from_target_config(self):
        compiler = OracleDdlCompiler(make_config(DbType.ORACLE, schema_name='hr'))
        self.assertEqual(compiler.table_name('emp'), '"HR"."EMP"')
        blank = OracleDdlCompiler(make_config(DbType.ORACLE, schema_name='  '))
        self.assertEqual(blank.table_name('emp'), '"EMP"')

    def test_index_name_within_limit_is_not_truncated(self):
        compiler = PostgreSqlDdlCompiler()
        self.assertEqual(compiler.build_index_name('orders', ['customer_id']), 'IDX_orders_customer_id')

    def test_long_index_name_truncated_with_random_suffix(self):
        compiler = OracleDdlCompiler(rng=random.Random(7))
        table = TableDescriptor(
            'very_long_table_name_with_many_words',
            (ColumnDescriptor('first_col', 'INTEGER'), ColumnDescriptor('second_col', 'INTEGER')),
            (IndexDescriptor('ix_long', 'very_long_table_name_with_many_words', ('first_col', 'second_col')),))

        with self.assertLogs('core.dialects.base', level='WARNING') as logs:
            ddl = compiler.build_ddl(None, None, table, ActionType.CREATE)

        self.assertEqual(len(logs.records), 1)
        index_ddl = [s for s in ddl if s.startswith('CREATE INDEX')]
        self.assertEqual(len(index_ddl), 1)
        name = re.match(r'CREATE INDEX "([^"]+)"', index_ddl[0]).group(1)
        self.assertLessEqual(len(name), 30)
        self.assertRegex(name, r'^IDX_VERY_LONG_TABLE_NAM_[A-Z0-9]{2}$')

    def test_extended_mode_raises_oracle_limit(self):
        self.assertEqual(OracleDdlCompiler().max_identifier_length, 30)
        self.assertEqual(OracleDdlCompiler(extended_mode=True).max_identifier_length, 32767)
        config = make_config(DbType.ORACLE, extended_mode=True)
        self.assertEqual(OracleDdlCompiler(config).max_identifier_length, 32767)


class TestStatementOrdering(unittest.TestCase):

    def test_create_structure_before_indexes(self):
        for db_type, compiler_cls in COMPILERS.items():
            with self.subTest(dialect=db_type.type_name):
                ddl = compiler_cls().build_ddl(None, None, make_table(), ActionType.CREATE)
                self.assertTrue(ddl[0].startswith('CREATE TABLE'))
                index_positions = [i for i, s in enumerate(ddl) if 'INDEX' in s.upper()]
                self.assertTrue(index_positions)
                self.assertTrue(all(i > 0 for i in index_positions))

    def test_delete_drops_indexes_before_table(self):
        for db_type, compiler_cls in COMPILERS.items():
            with self.subTest(dialect=db_type.type_name):
                ddl = compiler_cls().build_ddl(None, None, make_table(), ActionType.DELETE)
                self.assertTrue(ddl[-1].startswith('DROP TABLE'))
                self.assertEqual(len(ddl), 2)
                self.assertTrue(ddl[0].startswith('DROP INDEX'))

    def test_table_without_columns_is_rejected(self):
        with self.assertRaises(MetadataError):
            OracleDdlCompiler().build_ddl(None, None, TableDescriptor('empty'), ActionType.CREATE)

    def test_blank_comments_are_not_emitted(self):
        table = make_table(comment='   ')
        ddl = PostgreSqlDdlCompiler().build_ddl(None, None, table, ActionType.CREATE)
        self.assertFalse(any(s.startswith('COMMENT ON TABLE') for s in ddl))

    def test_unique_index(self):
        table = make_table(indexes=(IndexDescriptor('uq_name', 't', ('name',), unique=True),))
        ddl = MySqlDdlCompiler().build_ddl(None, None, table, ActionType.CREATE)
        self.assertIn("CREATE UNIQUE INDEX `IDX_t_name` ON `t` (`name`)", ddl)

    def test_tablespace_clause_is_appended(self):
        config = make_config(DbType.ORACLE, tablespace_ddl='TABLESPACE USERS ')
        ddl = OracleDdlCompiler(config).build_ddl(None, config, make_table(), ActionType.CREATE)
        self.assertTrue(ddl[0].endswith(') TABLESPACE USERS'))


class TestDialectOutput(unittest.TestCase):

    def test_oracle(self):
        ddl = OracleDdlCompiler().build_ddl(None, None, make_table(comment='users'), ActionType.CREATE)
        self.assertEqual(ddl, [
            'CREATE TABLE "T" ("ID" INTEGER NOT NULL, "NAME" VARCHAR2(150) NULL, '
            '"NOTE" CLOB DEFAULT \'json type\' NULL)',
            'CREATE INDEX "IDX_T_NAME" ON "T" ("NAME")',
            'COMMENT ON COLUMN "T"."NAME" IS \'user name\'',
            'COMMENT ON TABLE "T" IS \'users\'',
            'ALTER TABLE "T" ADD PRIMARY KEY ("ID")',
        ])

    def test_oracle_json_search_index_needs_12_2(self):
        table = make_table(indexes=(), extra_columns=(ColumnDescriptor('doc', 'json', table_name='t'),))
        old = OracleDdlCompiler(server_version=(11, 2)).build_ddl(None, None, table, ActionType.CREATE)
        new = OracleDdlCompiler(server_version=(19, 3, 0)).build_ddl(None, None, table, ActionType.CREATE)
        self.assertFalse(any('SEARCH INDEX' in s for s in old))
        self.assertIn('CREATE SEARCH INDEX "IDX_T_DOC" ON "T" ("DOC") FOR JSON', new)

    def test_sqlserver_single_and_composite_primary_key(self):
        compiler = SqlServerDdlCompiler()
        ddl = compiler.build_ddl(None, None, make_table(comment='users'), ActionType.CREATE)
        self.assertEqual(ddl[0], 'CREATE TABLE [t] ([id] INT NOT NULL PRIMARY KEY, [name] NVARCHAR(150) NULL, '
                                 '[note] NVARCHAR(MAX) DEFAULT \'json type\' NULL)')
        self.assertIn("EXEC SP_ADDEXTENDEDPROPERTY 'MS_Description', 'user name', 'SCHEMA', 'dbo', "
                      "'TABLE', 't', 'COLUMN', 'name'", ddl)
        self.assertIn("EXEC SP_ADDEXTENDEDPROPERTY 'MS_Description', 'users', 'SCHEMA', 'dbo', 'TABLE', 't'", ddl)

        composite = make_table(pk=('id', 'name'))
        structure = compiler.build_structure_ddl(composite)
        self.assertNotIn('NOT NULL PRIMARY KEY', structure)
        self.assertTrue(structure.endswith('PRIMARY KEY ([id], [name]))'))

    def test_sqlserver_drop_index_is_table_qualified(self):
        ddl = SqlServerDdlCompiler().build_ddl(None, None, make_table(), ActionType.DELETE)
        self.assertEqual(ddl, ['DROP INDEX [t].[ix_t_name]', 'DROP TABLE [t]'])

    def test_sqlserver_national_literal(self):
        self.assertEqual(SqlServerDdlCompiler.national_literal('用户'), "N'用户'")
        self.assertEqual(SqlServerDdlCompiler.national_literal('user'), "'user'")

    def test_postgresql(self):
        ddl = PostgreSqlDdlCompiler().build_ddl(None, None, make_table(), ActionType.CREATE)
        self.assertEqual(ddl, [
            'CREATE TABLE "t" ("id" INTEGER NOT NULL, "name" VARCHAR(50) NULL, '
            '"note" TEXT DEFAULT \'json type\' NULL, CONSTRAINT "t_pkey" PRIMARY KEY ("id"))',
            'CREATE INDEX "idx_t_name" ON "t" ("name")',
            'COMMENT ON COLUMN "t"."name" IS \'user name\'',
        ])

    def test_postgresql_skips_primary_key_index(self):
        table = make_table(indexes=(IndexDescriptor('t_pkey', 't', ('id',)),))
        ddl = PostgreSqlDdlCompiler().build_ddl(None, None, table, ActionType.DELETE)
        self.assertEqual(ddl, ['DROP TABLE "t"'])

    def test_kingbase(self):
        ddl = KingBaseDdlCompiler().build_ddl(None, None, make_table(comment='users'), ActionType.CREATE)
        self.assertEqual(ddl[0], 'CREATE TABLE "t" ("id" INTEGER NOT NULL constraint t_pkey primary key, '
                                 '"name" VARCHAR(50) NULL, "note" LONGTEXT DEFAULT \'json type\' NULL)')
        self.assertEqual(ddl[1], 'CREATE INDEX idx_t_name ON "t" ("name")')
        self.assertIn('comment on column "t"."name" is \'user name\'', ddl)
        self.assertIn('comment on table "t" is \'users\'', ddl)

    def test_vastbase_inline_comments(self):
        ddl = VastBaseDdlCompiler().build_ddl(None, None, make_table(comment='users'), ActionType.CREATE)
        self.assertEqual(ddl[0], 'CREATE TABLE "t" ("id" INTEGER NOT NULL, '
                                 '"name" VARCHAR(50) NULL COMMENT \'user name\', '
                                 '"note" LONGTEXT DEFAULT \'json type\' NULL, '
                                 'CONSTRAINT "t_pkey" PRIMARY KEY ("id")) COMMENT \'users\'')
        self.assertEqual(len(ddl), 2)

    def test_mysql_inline_comments_and_drop_index(self):
        compiler = MySqlDdlCompiler()
        ddl = compiler.build_ddl(None, None, make_table(comment="it's users"), ActionType.CREATE)
        self.assertEqual(ddl[0], "CREATE TABLE `t` (`id` INT NOT NULL, `name` VARCHAR(50) NULL COMMENT 'user name', "
                                 "`note` LONGTEXT DEFAULT 'json type' NULL, PRIMARY KEY (`id`)) "
                                 "COMMENT='it''s users'")
        drop = compiler.build_ddl(None, None, make_table(), ActionType.DELETE)
        self.assertEqual(drop, ['DROP INDEX `ix_t_name` ON `t`', 'DROP TABLE `t`'])

    def test_sqlite_has_no_comment_statements(self):
        ddl = SqliteDdlCompiler().build_ddl(None, None, make_table(comment='users'), ActionType.CREATE)
        self.assertEqual(ddl, [
            'CREATE TABLE "t" ("id" INTEGER NOT NULL, "name" VARCHAR(50) NULL, '
            '"note" TEXT DEFAULT \'json type\' NULL, PRIMARY KEY ("id"))',
            'CREATE INDEX "IDX_t_name" ON "t" ("name")',
        ])


class TestCompilerFactory(unittest.TestCase):

    def test_every_db_type_has_a_compiler(self):
        for db_type in DbType:
            compiler = build_compiler(make_config(db_type))
            self.assertIs(type(compiler), COMPILERS[db_type])
            self.assertIs(compiler.db_type, db_type)

    def test_server_version_is_passed_through(self):
        compiler = build_compiler(make_config(DbType.ORACLE), (12, 2, 0, 1))
        self.assertTrue(compiler.supports_json_search_index)

    def test_unmapped_type_is_rejected(self):
        with patch.dict(COMPILERS, {}, clear=True):
            with self.assertRaises(ConfigurationError):
                build_compiler(make_config(DbType.MYSQL))


if __name__ == '__main__':
    unittest.main()
