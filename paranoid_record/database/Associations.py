"""
Associations declared as class attributes::

    class Widget(Paranoid, ActiveRecord):
        category = BelongsTo("Category")
        notes = HasMany("Note", order="notes.id")
        tags = HasAndBelongsToMany("Tag", uniq=True)

Each variant loads with the same visibility policy: a live owner only sees
live related records, while a soft-deleted owner of a paranoid model still
sees its soft-deleted paranoid relatives.
"""
from typing import Any

from paranoid_record.database.ActiveRecord import ActiveRecordMeta
from paranoid_record.database.Exceptions import RecordNotFound
from paranoid_record.database.active_record.utils.ModelCollection import ModelCollection
from paranoid_record.database.paranoid.LiveScope import without_scope
from paranoid_record.database.paranoid.Visibility import should_include_deleted, options_with_deleted
from paranoid_record.utilities.Inflection import foreign_key as guess_foreign_key

FIND_OPTION_KEYS = ("conditions", "order", "limit", "offset", "joins", "include", "group", "select", "readonly")


class Association:
    def __init__(self, model: "str | type", foreign_key: str = None, **options: Any):
        self.model = model
        self.foreign_key = foreign_key
        self.options = options
        self.name = None
        self.owner_model = None

    def __set_name__(self, owner, name):
        self.name = name
        self.owner_model = owner
        owner.__associations__ = {**owner.__associations__, name: self}

    def __get__(self, instance, owner):
        if instance is None:
            return self
        cache = instance.__association_cache__
        if self.name not in cache:
            cache[self.name] = self.build(instance)
        return cache[self.name]

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.owner_model.__name__}.{self.name}>"

    @property
    def related(self):
        return ActiveRecordMeta.resolve(self.model)

    def build(self, owner) -> Any:
        raise NotImplementedError("Subclasses must implement build()")

    def preload(self, owner):
        getattr(owner, self.name)

    def include_deleted(self, owner) -> bool:
        return should_include_deleted(owner, self.related)

    def find_options(self, owner, **extra) -> dict:
        options = {key: self.options[key] for key in FIND_OPTION_KEYS if self.options.get(key) is not None}
        options.update(extra)
        return options_with_deleted(options, self.related, self.include_deleted(owner))

    def find_related(self, *args, **options):
        """Run a finder on the related model outside any scope the caller holds on it."""
        related = self.related
        with without_scope(related):
            return related.find(*args, **options)


class BelongsTo(Association):
    """The owner row holds the foreign key: ``widgets.category_id -> categories.id``."""

    def __init__(self, model, foreign_key: str = None, owner_key: str = None, **options):
        super().__init__(model, foreign_key, **options)
        self.owner_key = owner_key

    def build(self, owner):
        related = self.related
        fk = self.foreign_key or guess_foreign_key(related.__table__)
        fk_value = owner.__data__.get(fk)
        if fk_value is None:
            return None

        owner_key = self.owner_key or related.__primary_key__
        conditions = related.merge_conditions({owner_key: fk_value}, self.options.get("conditions"))
        return self.find_related("first", **self.find_options(owner, conditions=conditions))


class HasOne(Association):
    """The related row holds the foreign key: ``widgets.category_id`` for ``Category.widget``."""

    def __init__(self, model, foreign_key: str = None, local_key: str = None, **options):
        super().__init__(model, foreign_key, **options)
        self.local_key = local_key

    def build(self, owner):
        related = self.related
        local_value = owner.__data__.get(self.local_key or owner.get_primary_key_column())
        if local_value is None:
            return None

        fk = self.foreign_key or guess_foreign_key(self.owner_model.__table__)
        conditions = related.merge_conditions({fk: local_value}, self.options.get("conditions"))
        return self.find_related("first", **self.find_options(owner, conditions=conditions))


class AssociationCollection:
    """
    Lazily loaded to-many target. Iterating, indexing or ``len()`` loads
    the records once; ``count()`` asks the database unless a counter is
    cached on the owner.
    """

    def __init__(self, association: "HasMany", owner):
        self.association = association
        self.owner = owner
        self.target = ModelCollection([])
        self.loaded = False

    def __iter__(self):
        return iter(self.load_target())

    def __len__(self):
        return len(self.load_target())

    def __getitem__(self, index):
        return self.load_target()[index]

    def __repr__(self):
        return repr(list(self.load_target()))

    def is_loaded(self) -> bool:
        return self.loaded

    def load_target(self) -> ModelCollection:
        if not self.loaded:
            if self.owner.is_new_record():
                self.target = ModelCollection([])
            else:
                self.target = self.association.find_target(self.owner)
            self.loaded = True
        return self.target

    def reload(self) -> ModelCollection:
        self.reset()
        return self.load_target()

    def reset(self):
        self.target = ModelCollection([])
        self.loaded = False

    def count(self) -> int:
        if self.owner.is_new_record():
            count = 0
        else:
            count = self.association.count_records(self.owner)
        if count == 0:
            self.target = ModelCollection([])
            self.loaded = True
        return count

    def size(self) -> int:
        if self.loaded:
            return len(self.target)
        return self.count()

    def first(self):
        return self.load_target().first()

    def pluck(self, column: str) -> list:
        return self.load_target().pluck(column)


class HasMany(Association):
    """
    Options: conditions, order, limit, offset, joins, include, group,
    finder_sql and counter_sql. ``%s`` placeholders in the two SQL options
    are bound to the owner's primary key.
    """

    def __init__(self, model, foreign_key: str = None, local_key: str = None, **options):
        super().__init__(model, foreign_key, **options)
        self.local_key = local_key

    def build(self, owner) -> AssociationCollection:
        return AssociationCollection(self, owner)

    def preload(self, owner):
        getattr(owner, self.name).load_target()

    @staticmethod
    def _bind_owner(sql: str, owner) -> list:
        return [owner.get_id()] * sql.count("%s")

    def conditions_for(self, owner):
        fk = self.foreign_key or guess_foreign_key(self.owner_model.__table__)
        local_value = owner.__data__.get(self.local_key or owner.get_primary_key_column())
        return self.related.merge_conditions({fk: local_value}, self.options.get("conditions"))

    def find_target(self, owner) -> ModelCollection:
        finder_sql = self.options.get("finder_sql")
        if finder_sql:
            return self.related.find_by_sql(finder_sql, *self._bind_owner(finder_sql, owner))
        return self.find_related("all", **self.find_options(owner, conditions=self.conditions_for(owner)))

    def count_records(self, owner) -> int:
        cached = owner.__data__.get(f"{self.name}_count")
        if cached is not None:
            return int(cached)

        related = self.related
        counter_sql = self.options.get("counter_sql")
        if counter_sql:
            return related.count_by_sql(counter_sql, *self._bind_owner(counter_sql, owner))

        counter = related.count_including_deleted if self.include_deleted(owner) else related.count
        with without_scope(related):
            return counter(self.conditions_for(owner), self.options.get("joins"))


class HasAndBelongsToMany(HasMany):
    """
    Many-to-many through a join table, by default the two table names in
    alphabetical order (``tags_widgets``). ``uniq=True`` drops repeated rows.
    """

    def __init__(self, model, join_table: str = None, foreign_key: str = None,
                 association_foreign_key: str = None, **options):
        super().__init__(model, foreign_key, **options)
        self.join_table = join_table
        self.association_foreign_key = association_foreign_key

    def get_join_table(self) -> str:
        return self.join_table or "_".join(sorted([self.owner_model.__table__, self.related.__table__]))

    def join_sql(self) -> str:
        related = self.related
        join_table = self.get_join_table()
        afk = self.association_foreign_key or guess_foreign_key(related.__table__)
        return f"INNER JOIN {join_table} ON {related.__table__}.{related.__primary_key__} = {join_table}.{afk}"

    def joins_for(self) -> list:
        joins = self.options.get("joins") or []
        return [self.join_sql()] + ([joins] if isinstance(joins, str) else list(joins))

    def conditions_for(self, owner):
        fk = self.foreign_key or guess_foreign_key(self.owner_model.__table__)
        return self.related.merge_conditions(
            (f"{self.get_join_table()}.{fk} = %s", owner.get_id()),
            self.options.get("conditions"),
        )

    def find_target(self, owner) -> ModelCollection:
        finder_sql = self.options.get("finder_sql")
        if finder_sql:
            records = self.related.find_by_sql(finder_sql, *self._bind_owner(finder_sql, owner))
        else:
            options = self.find_options(
                owner,
                select=f"{self.related.__table__}.*",
                joins=self.joins_for(),
                conditions=self.conditions_for(owner),
                readonly=False,
            )
            records = self.find_related("all", **options)
        if self.options.get("uniq"):
            records = records.uniq()
        return records

    def count_records(self, owner) -> int:
        if self.options.get("uniq") or self.options.get("finder_sql"):
            return len(self.find_target(owner))

        related = self.related
        counter_sql = self.options.get("counter_sql")
        if counter_sql:
            return related.count_by_sql(counter_sql, *self._bind_owner(counter_sql, owner))

        counter = related.count_including_deleted if self.include_deleted(owner) else related.count
        with without_scope(related):
            return counter(self.conditions_for(owner), self.joins_for())
