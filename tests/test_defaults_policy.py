
import unittest

from core.dialects.base import ActionType
from core.dialects.oracle import OracleDdlCompiler
from core.dialects.sqlite import SqliteDdlCompiler
from core.introspection import normalize_default
from core.schema_ir import ColumnDescriptor, TableDescriptor


class TestDefaultsPolicy(unittest.TestCase):

    def setUp(self):
        self.compiler = SqliteDdlCompiler()

    def render(self, default):
        return self.compiler.default_value(ColumnDescriptor('c', 'VARCHAR', default=default))

    def test_blank_default_renders_nothing(self):
        self.assertEqual(self.render(None), '')
        self.assertEqual(self.render('   '), '')

    def test_numeric_defaults_stay_raw(self):
        self.assertEqual(self.render('0'), '0')
        self.assertEqual(self.render('-1'), '-1')
        self.assertEqual(self.render('1.5'), '1.5')

    def test_textual_defaults_are_quoted(self):
        self.assertEqual(self.render('user'), "'user'")
        self.assertEqual(self.render('json type'), "'json type'")
        self.assertEqual(self.render("it's"), "'it''s'")
        self.assertEqual(self.render('中文'), "'中文'")

    def test_current_timestamp_passes_through(self):
        self.assertEqual(self.render('CURRENT_TIMESTAMP'), 'CURRENT_TIMESTAMP')
        self.assertEqual(self.render('current_timestamp(3)'), 'current_timestamp(3)')

    def test_default_lands_in_column_definition(self):
        table = TableDescriptor('users', (
            ColumnDescriptor('id', 'INTEGER', nullable=False),
            ColumnDescriptor('active', 'INTEGER', default='1'),
            ColumnDescriptor('role', 'VARCHAR', size=20, default='user'),
        ))
        create = OracleDdlCompiler().build_ddl(None, None, table, ActionType.CREATE)[0]
        self.assertIn('"ACTIVE" INTEGER DEFAULT 1 NULL', create)
        self.assertIn('"ROLE" VARCHAR2(60) DEFAULT \'user\' NULL', create)


class TestReflectedDefaults(unittest.TestCase):
    """Engine-specific default spellings reduce to the bare value"""

    def test_postgres_casts_are_removed(self):
        self.assertEqual(normalize_default("'abc'::character varying"), 'abc')
        self.assertEqual(normalize_default("0::numeric"), '0')

    def test_sqlserver_parentheses_are_removed(self):
        self.assertEqual(normalize_default("((1))"), '1')
        self.assertEqual(normalize_default("('N')"), 'N')

    def test_quoted_literals_are_unescaped(self):
        self.assertEqual(normalize_default("'it''s'"), "it's")

    def test_null_and_sequences_have_no_default(self):
        self.assertIsNone(normalize_default(None))
        self.assertIsNone(normalize_default('NULL'))
        self.assertIsNone(normalize_default("nextval('users_id_seq'::regclass)"))

    def test_expressions_are_kept(self):
        self.assertEqual(normalize_default('CURRENT_TIMESTAMP'), 'CURRENT_TIMESTAMP')


if __name__ == '__main__':
    unittest.main()
