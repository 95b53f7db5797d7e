from datetime import datetime
from unittest import TestCase

from paranoid_record import (
    FrozenRecordError,
    InvalidFindOptions,
    NestedScopeError,
    ReadOnlyRecord,
    RecordNotFound,
)
from fixtures import Category, MemoryDatabase, Note, Widget, reset_database, stored_row


class TestModelDefinition(TestCase):
    def test_table_names_are_inferred(self):
        assert Widget.get_table() == "widgets"
        assert Category.get_table() == "categories"

    def test_sqlite_schema(self):
        schema = Note.generate_schema()
        assert schema.startswith("CREATE TABLE IF NOT EXISTS `notes` (")
        assert "`id` INTEGER PRIMARY KEY AUTOINCREMENT" in schema
        assert "`created_at` DATETIME" in schema
        assert "PRIMARY KEY (`id`)" not in schema

    def test_associations_are_registered_per_model(self):
        assert "category" in Widget.__associations__
        assert "widgets" in Category.__associations__
        assert "category" not in Category.__associations__


class TestPersistence(TestCase):
    def setUp(self):
        reset_database()

    def test_create_assigns_primary_key(self):
        note = Note.create(body="first", widget_id=1)
        assert note.id == 1
        assert not note.is_new_record()
        assert isinstance(note.created_at, datetime)

    def test_created_listener_runs(self):
        Note.create(body="first")
        assert Note.created_log == ["first"]

    def test_update_writes_changed_columns(self):
        widget = Widget.create(title="old")
        widget.title = "new"
        assert widget.get_changed_fields() == ["title"]
        assert widget.save()
        assert stored_row(Widget, widget.id)["title"] == "new"
        assert widget.get_changed_fields() == []

    def test_plain_destroy_removes_the_row(self):
        note = Note.create(body="bye")
        assert note.destroy() is note
        assert note.is_frozen()
        assert stored_row(Note, note.id) is None

    def test_frozen_record_cannot_be_saved(self):
        note = Note.create(body="bye")
        note.destroy()
        with self.assertRaises(FrozenRecordError):
            note.save()

    def test_readonly_record_cannot_be_saved_or_destroyed(self):
        note = Note.create(body="locked").readonly()
        with self.assertRaises(ReadOnlyRecord):
            note.save()
        with self.assertRaises(ReadOnlyRecord):
            note.destroy()

    def test_reload_reads_the_stored_row(self):
        widget = Widget.create(title="a")
        MemoryDatabase().write("UPDATE widgets SET title = %s WHERE id = %s", "b", widget.id)
        assert widget.reload().title == "b"

    def test_to_dict(self):
        note = Note.create(body="x", widget_id=2)
        data = note.to_dict()
        assert data["body"] == "x"
        assert isinstance(data["created_at"], str)


class TestFind(TestCase):
    def setUp(self):
        reset_database()
        self.notes = [Note.create(body=body, widget_id=1) for body in ("a", "b", "c")]

    def test_find_by_one_id(self):
        assert Note.find(self.notes[1].id).body == "b"

    def test_find_by_many_ids(self):
        found = Note.find([self.notes[0].id, self.notes[2].id])
        assert sorted(found.pluck("body")) == ["a", "c"]
        assert len(Note.find(self.notes[0].id, self.notes[1].id)) == 2

    def test_missing_ids_raise(self):
        with self.assertRaises(RecordNotFound):
            Note.find(99)
        with self.assertRaises(RecordNotFound):
            Note.find([self.notes[0].id, 99])
        with self.assertRaises(RecordNotFound):
            Note.find([])

    def test_id_is_combined_with_conditions(self):
        with self.assertRaises(RecordNotFound):
            Note.find(self.notes[0].id, conditions={"body": "b"})

    def test_order_limit_offset(self):
        found = Note.find("all", order="notes.id DESC", limit=1, offset=1)
        assert found.pluck("body") == ["b"]
        assert Note.find("all", offset=2).pluck("body") == ["c"]

    def test_select_and_group(self):
        rows = Note.find("all", select="widget_id, COUNT(*) AS total", group="widget_id")
        assert rows[0].total == 3

    def test_joins_make_records_readonly(self):
        Widget.create(title="w")
        found = Note.find("all", joins="INNER JOIN widgets ON widgets.id = notes.widget_id")
        assert len(found) == 3
        assert all(note.is_readonly() for note in found)
        writable = Note.find("all", joins="INNER JOIN widgets ON widgets.id = notes.widget_id", readonly=False)
        assert not writable[0].is_readonly()

    def test_find_requires_a_mode(self):
        with self.assertRaises(ValueError):
            Note.find()

    def test_unknown_options_are_invalid(self):
        with self.assertRaises(InvalidFindOptions) as raised:
            Note.find("all", sort="body")
        assert isinstance(raised.exception, ValueError)

    def test_find_by_sql_and_count_by_sql(self):
        found = Note.find_by_sql("SELECT * FROM notes WHERE body = %s", "c")
        assert found[0].id == self.notes[2].id
        assert Note.count_by_sql("SELECT COUNT(*) FROM notes WHERE body <> %s", "c") == 2

    def test_count_with_conditions(self):
        assert Note.count() == 3
        assert Note.count({"body": ["a", "b"]}) == 2


class TestModelScopes(TestCase):
    def setUp(self):
        reset_database()
        for body in ("a", "b", "c"):
            Note.create(body=body, widget_id=1)

    def test_find_scope_applies_to_finders_and_counts(self):
        with Note.with_scope(find={"conditions": ("body <> %s", "a"), "limit": 1}):
            assert Note.count() == 2
            assert len(Note.find("all")) == 1
            assert Note.find("all", conditions={"body": "c"}).pluck("body") == ["c"]
        assert Note.count() == 3

    def test_create_scope_supplies_defaults(self):
        with Note.with_scope(create={"widget_id": 42}):
            note = Note.create(body="scoped")
        assert stored_row(Note, note.id)["widget_id"] == 42
        assert Note.new(body="plain").widget_id is None

    def test_nested_scope_is_an_error(self):
        with Note.with_scope(find={"limit": 1}):
            with self.assertRaises(NestedScopeError):
                with Note.with_scope(find={"limit": 2}):
                    pass
            assert Note.scope("find", "limit") == 1
