from paranoid_record import (
    ActiveRecord,
    BelongsTo,
    BooleanField,
    CharField,
    DateTimeField,
    HasAndBelongsToMany,
    HasMany,
    HasOne,
    IntegerField,
    Paranoid,
    Sqlite3Database,
    TextField,
    on,
)


class MemoryDatabase(Sqlite3Database):
    connection = None
    connection_string = ":memory:"


class Category(Paranoid, ActiveRecord):
    __database__ = MemoryDatabase

    id = IntegerField(primary_key=True, auto_increment=True)
    title = CharField(max_length=100)
    widgets_count = IntegerField()

    widgets = HasMany("Widget")
    first_widget = HasOne("Widget", order="widgets.id ASC")
    widgets_by_sql = HasMany("Widget", finder_sql="SELECT * FROM widgets WHERE widgets.category_id = %s ORDER BY widgets.id")


class Widget(Paranoid, ActiveRecord):
    __database__ = MemoryDatabase

    id = IntegerField(primary_key=True, auto_increment=True)
    title = CharField(max_length=100)
    category_id = IntegerField()

    category = BelongsTo("Category")
    notes = HasMany("Note", order="notes.id ASC")
    counted_notes = HasMany("Note", counter_sql="SELECT COUNT(*) FROM notes WHERE notes.widget_id = %s")
    tags = HasAndBelongsToMany("Tag", order="tags.id ASC")
    unique_tags = HasAndBelongsToMany("Tag", uniq=True)
    tags_by_sql = HasAndBelongsToMany(
        "Tag",
        finder_sql="SELECT tags.* FROM tags INNER JOIN tags_widgets ON tags.id = tags_widgets.tag_id "
                   "WHERE tags_widgets.widget_id = %s ORDER BY tags.id",
    )
    titled_tags = HasAndBelongsToMany(
        "Tag",
        joins="INNER JOIN widgets AS owners ON owners.id = tags_widgets.widget_id AND owners.title IS NOT NULL",
    )


class Tag(Paranoid, ActiveRecord):
    __database__ = MemoryDatabase

    id = IntegerField(primary_key=True, auto_increment=True)
    name = CharField(max_length=50)


class Note(ActiveRecord):
    __database__ = MemoryDatabase

    id = IntegerField(primary_key=True, auto_increment=True)
    body = TextField()
    widget_id = IntegerField()
    created_at = DateTimeField(auto_now_add=True)

    widget = BelongsTo("Widget")

    created_log = []

    @on("created")
    def remember(self):
        Note.created_log.append(self.body)


class Gadget(Paranoid, ActiveRecord):
    __database__ = MemoryDatabase

    id = IntegerField(primary_key=True, auto_increment=True)
    locked = BooleanField(default=0)

    def deleting(self, *args, **kwargs):
        return not self.locked


def reset_database():
    """Fresh in-memory database with every fixture table."""
    MemoryDatabase.disconnect()
    for model in (Category, Widget, Tag, Note, Gadget):
        model.create_table()
    MemoryDatabase().write("CREATE TABLE IF NOT EXISTS tags_widgets (tag_id INTEGER, widget_id INTEGER)")
    Note.created_log.clear()


def link(widget, tag):
    MemoryDatabase().insert("INSERT INTO tags_widgets (tag_id, widget_id) VALUES (%s, %s)", tag.id, widget.id)


def stored_row(model, record_id):
    rows = MemoryDatabase().query(f"SELECT * FROM {model.__table__} WHERE id = %s", record_id)
    return rows[0] if rows else None
