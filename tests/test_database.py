import os
from datetime import datetime
from unittest import TestCase, mock

from paranoid_record import MySqlDatabase, Sqlite3Database, query_logging
from fixtures import MemoryDatabase, Widget, reset_database


class ScratchDatabase(Sqlite3Database):
    connection = None
    connection_string = ":memory:"


class StubMySqlDatabase(MySqlDatabase):
    connection = None


class TestSqlite3Database(TestCase):
    def setUp(self):
        ScratchDatabase.disconnect()
        ScratchDatabase().write("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT, seen_at DATETIME)")

    def tearDown(self):
        ScratchDatabase.disconnect()

    def test_placeholders_are_translated(self):
        assert ScratchDatabase().prepare("a = %s AND b = %s") == "a = ? AND b = ?"

    def test_datetimes_are_stored_as_text(self):
        db = ScratchDatabase()
        db.insert("INSERT INTO items (name, seen_at) VALUES (%s, %s)", "a", datetime(2024, 1, 2, 3, 4, 5))
        assert db.query("SELECT seen_at FROM items")[0].seen_at == "2024-01-02 03:04:05"

    def test_insert_returns_the_new_id(self):
        db = ScratchDatabase()
        assert db.insert("INSERT INTO items (name) VALUES (%s)", "a") == 1
        assert db.insert("INSERT INTO items (name) VALUES (%s)", "b") == 2

    def test_write_returns_affected_rows(self):
        db = ScratchDatabase()
        db.insert("INSERT INTO items (name) VALUES (%s)", "a")
        db.insert("INSERT INTO items (name) VALUES (%s)", "b")
        assert db.write("UPDATE items SET name = %s", ["c"]) == 2

    def test_transaction_rolls_back_on_error(self):
        db = ScratchDatabase()
        with self.assertRaises(RuntimeError):
            with db.transaction():
                db.insert("INSERT INTO items (name) VALUES (%s)", "lost")
                raise RuntimeError("boom")
        assert db.query("SELECT * FROM items") == []
        assert not db.in_transaction()

    def test_nested_transactions_commit_once(self):
        db = ScratchDatabase()
        with db.transaction():
            with db.transaction():
                db.insert("INSERT INTO items (name) VALUES (%s)", "kept")
                assert db.in_transaction()
        assert [row.name for row in db.query("SELECT name FROM items")] == ["kept"]

    def test_database_errors_pass_through(self):
        with self.assertLogs("orm.sql", level="ERROR"):
            with self.assertRaises(Exception) as raised:
                ScratchDatabase().query("SELECT * FROM missing")
        assert "missing" in str(raised.exception)


class TestQueryLogging(TestCase):
    def setUp(self):
        reset_database()

    def test_query_logging_forces_sql_logs(self):
        with self.assertLogs("orm.sql", level="DEBUG") as logs:
            with query_logging(Widget):
                Widget.count()
        assert any("sql_query" in line for line in logs.output)
        assert not MemoryDatabase.force_logging

    def test_orm_debug_enables_logging(self):
        with mock.patch.dict(os.environ, {"ORM_DEBUG": "true"}):
            db = MemoryDatabase()
        assert db.logging_enabled
        with mock.patch.dict(os.environ, {"ORM_DEBUG": "false"}):
            assert not MemoryDatabase().logging_enabled


class TestMySqlDatabase(TestCase):
    def tearDown(self):
        StubMySqlDatabase.connection = None

    def test_connects_with_environment_settings(self):
        env = {
            "MYSQL_HOST": "db.internal",
            "MYSQL_PORT": "3307",
            "MYSQL_USER": "app",
            "MYSQL_PASSWORD": "secret",
            "MYSQL_DATABASE": "inventory",
        }
        with mock.patch.dict(os.environ, env), mock.patch("mysql.connector.connect") as connect:
            cursor = connect.return_value.cursor.return_value
            cursor.fetchall.return_value = [{"id": 1, "title": "test"}]

            rows = StubMySqlDatabase().query("SELECT * FROM widgets WHERE id = %s", 1)

        connect.assert_called_once_with(
            host="db.internal", port=3307, user="app", password="secret", database="inventory"
        )
        connect.return_value.cursor.assert_called_with(dictionary=True)
        cursor.execute.assert_called_once_with("SELECT * FROM widgets WHERE id = %s", (1,))
        assert rows[0].title == "test"

    def test_reconnects_when_the_connection_dropped(self):
        with mock.patch("mysql.connector.connect") as connect:
            connect.return_value.is_connected.return_value = False
            db = StubMySqlDatabase()
            db.connect()
            db.connect()
        assert connect.call_count == 2
