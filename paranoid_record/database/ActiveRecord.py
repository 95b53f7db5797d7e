import base64
import logging
import os
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, TypeVar, Type, Optional, List

from dotenv import load_dotenv

from paranoid_record.core_services.Database import Database
from paranoid_record.core_services.Sqlite3Database import Sqlite3Database
from paranoid_record.database.Events import Events
from paranoid_record.database.Exceptions import (
    AssociationError,
    FrozenRecordError,
    ReadOnlyRecord,
    RecordNotFound,
)
from paranoid_record.database.QueryBuilder import QueryBuilder
from paranoid_record.database.Scoping import (
    assert_valid_keys,
    exclusive_scope,
    scope_for,
    with_scope,
)
from paranoid_record.database.active_record.utils.ModelCollection import ModelCollection
from paranoid_record.database.fields.Fields import Field, DateTimeField
from paranoid_record.database.paranoid.Registry import ParanoidRegistry
from paranoid_record.utilities.Inflection import tableize

load_dotenv()

logger = logging.getLogger("orm.sql")

T = TypeVar("T", bound="ActiveRecord")

VALID_FIND_OPTIONS = ("conditions", "group", "include", "joins", "limit", "offset", "order", "select", "readonly")


class ActiveRecordMeta(type):
    __models__: dict[str, type] = {}

    def __init__(cls, name, bases, attrs):
        super().__init__(name, bases, attrs)

        fields = {}
        for attr_name in dir(cls):
            attr = getattr(cls, attr_name, None)
            if isinstance(attr, Field):
                fields[attr_name] = attr
        cls.__fields__ = fields

        # Handle any @on(...) decorated functions
        for attr_name, attr_value in attrs.items():
            if hasattr(attr_value, "__event_name__"):
                event = attr_value.__event_name__
                priority = getattr(attr_value, "__event_priority__", 0)
                cls.on(event, attr_value, priority)

        if not attrs.get("__abstract__", False):
            if not getattr(cls, "__table__", None):
                cls.__table__ = tableize(name)
            cls.boot()
            ActiveRecordMeta.__models__[name] = cls

    @classmethod
    def resolve(mcs, model: "str | type") -> type:
        if isinstance(model, type):
            return model
        try:
            return mcs.__models__[model]
        except KeyError:
            raise AssociationError(f"Unknown model '{model}'") from None


class ActiveRecord(Events, metaclass=ActiveRecordMeta):
    __table__: str = None
    __primary_key__: str = "id"
    __database__: Type[Database] = Sqlite3Database
    __abstract__: bool = True
    __default_timezone__: str = os.getenv("ORM_DEFAULT_TIMEZONE", "utc").lower()
    __valid_find_options__: tuple = VALID_FIND_OPTIONS
    __associations__: dict = {}

    def __init__(self, **kwargs: Any):
        self.db: Database = self.__database__()
        self.__data__: dict[str, Any] = {}
        self.__original__: dict[str, Any] = {}
        self.__association_cache__: dict[str, Any] = {}
        self._new_record = True
        self._readonly = False
        self._frozen = False

        self.fill(**kwargs)

    def __getattribute__(self, key) -> Any:
        """
        Intercepts attribute access only for defined model fields.
        Returns values from __data__ for fields defined on the class.
        """
        value = super().__getattribute__(key)
        if isinstance(value, Field):
            data = super().__getattribute__('__data__')
            return data.get(key)
        return value

    def __getattr__(self, key):
        """
        Columns that were loaded but not declared as fields.
        """
        data = self.__dict__.get("__data__", {})
        if key in data:
            return data[key]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{key}'")

    def __setattr__(self, key, value):
        data = self.__dict__.get("__data__")
        if data is not None and (key in self.__class__.__fields__ or key in data):
            if self.__dict__.get("_frozen"):
                raise FrozenRecordError(f"Can't modify frozen {self.__class__.__name__}")
            data[key] = value
            return
        super().__setattr__(key, value)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.__data__!r})"

    def fill(self, **kwargs: Any) -> "ActiveRecord":
        if kwargs and self._frozen:
            raise FrozenRecordError(f"Can't modify frozen {self.__class__.__name__}")
        self.__data__.update(kwargs)
        return self

    def reload(self) -> "ActiveRecord":
        """
        Re-read the row by primary key, ignoring any query scope.
        """
        pk = self.get_primary_key_column()
        if self._new_record:
            raise RecordNotFound("Cannot reload a record that was never saved.")
        rows = self.db.query(self.new_query().where(pk, "=", self.get_id()))
        if not rows:
            raise RecordNotFound(f"Couldn't find {self.__class__.__name__} with ID={self.get_id()}")
        self.__data__.update(dict(rows[0]))
        self.__original__ = deepcopy(self.__data__)
        self.__association_cache__.clear()
        return self

    # --------------------------------------------------------------------------
    # Basic Model Information
    # --------------------------------------------------------------------------

    @classmethod
    def get_table(cls) -> str:
        return cls.__table__

    @classmethod
    def get_primary_key_column(cls) -> str:
        return cls.__primary_key__

    @classmethod
    def get_fields(cls) -> dict[str, Field]:
        return dict(cls.__fields__)

    @classmethod
    def is_paranoid(cls) -> bool:
        return ParanoidRegistry.is_enabled(cls)

    def get_id(self) -> Any:
        return self.__data__.get(self.get_primary_key_column())

    def is_new_record(self) -> bool:
        return self._new_record

    def freeze(self) -> "ActiveRecord":
        self._frozen = True
        return self

    def is_frozen(self) -> bool:
        return self._frozen

    def readonly(self) -> "ActiveRecord":
        self._readonly = True
        return self

    def is_readonly(self) -> bool:
        return self._readonly

    @classmethod
    def current_time(cls) -> datetime:
        if cls.__default_timezone__ == "utc":
            return datetime.now(timezone.utc).replace(tzinfo=None)
        return datetime.now()

    # --------------------------------------------------------------------------
    # Query Creation
    # --------------------------------------------------------------------------

    @classmethod
    def new_query(cls) -> QueryBuilder:
        query = QueryBuilder().table(cls.__table__)
        if cls.__database__.driver:
            query.set_driver(cls.__database__.driver)
        return query

    # --------------------------------------------------------------------------
    # Scopes
    # --------------------------------------------------------------------------

    @classmethod
    def with_scope(cls, **method_scoping):
        """
        Apply default find/create options to every query this model builds
        inside the block::

            with Widget.with_scope(find={"conditions": {"title": "test"}}):
                Widget.count()
        """
        return with_scope(cls, method_scoping)

    @classmethod
    def exclusive_scope(cls, method_scoping: dict | None = None):
        return exclusive_scope(cls, method_scoping)

    @classmethod
    def scope(cls, method: str, key: str | None = None) -> Any:
        return scope_for(cls, method, key)

    # --------------------------------------------------------------------------
    # Conditions
    # --------------------------------------------------------------------------

    @classmethod
    def sanitize_conditions(cls, conditions) -> tuple[str, list]:
        """
        Accepts a SQL string, a ``(sql, *params)`` sequence or a dict of column
        equalities, and returns ``(sql, params)``.
        """
        if conditions is None or conditions == "":
            return "", []
        if isinstance(conditions, str):
            return conditions, []
        if isinstance(conditions, dict):
            segments, params = [], []
            for column, value in conditions.items():
                if "." not in column:
                    column = f"{cls.__table__}.{column}"
                if value is None:
                    segments.append(f"{column} IS NULL")
                elif isinstance(value, (list, tuple)):
                    if not value:
                        segments.append("1 = 0")
                        continue
                    segments.append(f"{column} IN ({', '.join(['%s'] * len(value))})")
                    params.extend(value)
                else:
                    segments.append(f"{column} = %s")
                    params.append(value)
            return " AND ".join(segments), params
        if isinstance(conditions, (list, tuple)):
            sql, *params = conditions
            return sql, list(params)
        raise TypeError(f"Unsupported conditions: {conditions!r}")

    @classmethod
    def merge_conditions(cls, *conditions) -> Optional[tuple]:
        """AND together any number of conditions; None when all are empty."""
        segments, params = [], []
        for condition in conditions:
            sql, bindings = cls.sanitize_conditions(condition)
            if sql:
                segments.append(sql)
                params.extend(bindings)
        if not segments:
            return None
        if len(segments) == 1:
            return (segments[0], *params)
        return (" AND ".join(f"({segment})" for segment in segments), *params)

    @classmethod
    def _add_conditions(cls, query: QueryBuilder, conditions, scope_conditions=None) -> QueryBuilder:
        merged = cls.merge_conditions(scope_conditions, conditions)
        if merged:
            sql, *params = merged
            query.where_raw(sql, params)
        return query

    # --------------------------------------------------------------------------
    # Retrieval - Finders
    # --------------------------------------------------------------------------

    @classmethod
    def validate_find_options(cls, options: dict):
        assert_valid_keys(options, cls.__valid_find_options__)

    @classmethod
    def find(cls, *args: Any, **options: Any):
        """
        find("all", **options)   -> ModelCollection
        find("first", **options) -> record or None
        find(id, **options)      -> record, or RecordNotFound
        find(id1, id2) / find([ids]) -> ModelCollection, or RecordNotFound
        """
        cls.validate_find_options(options)
        if not args:
            raise ValueError("find() expects 'all', 'first' or one or more ids")

        match args[0]:
            case "all":
                return cls._find_every(options)
            case "first":
                return cls._find_initial(options)
            case _:
                return cls._find_from_ids(args, options)

    @classmethod
    def _find_initial(cls, options: dict):
        options = {**options, "limit": 1}
        if not options.get("order"):
            options["order"] = f"{cls.__table__}.{cls.__primary_key__} ASC"
        return cls._find_every(options).first()

    @classmethod
    def _find_every(cls, options: dict) -> ModelCollection:
        query = cls._construct_finder_query(options)
        records = ModelCollection(cls._hydrate_results(cls.__database__().query(query)))

        if cls._readonly_for(options):
            for record in records:
                record.readonly()

        if options.get("include"):
            cls._preload_associations(records, options["include"])
        return records

    @classmethod
    def _find_from_ids(cls, args: tuple, options: dict):
        expects_array = isinstance(args[0], (list, tuple))
        ids = list(args[0]) if expects_array else list(args)
        expects_array = expects_array or len(ids) > 1

        if not ids:
            raise RecordNotFound(f"Couldn't find {cls.__name__} without an ID")

        pk_column = f"{cls.__table__}.{cls.__primary_key__}"
        if len(ids) == 1:
            id_condition = (f"{pk_column} = %s", ids[0])
        else:
            id_condition = (f"{pk_column} IN ({', '.join(['%s'] * len(ids))})", *ids)

        options = {**options, "conditions": cls.merge_conditions(id_condition, options.get("conditions"))}
        records = cls._find_every(options)

        if not expects_array:
            if not records:
                raise RecordNotFound(f"Couldn't find {cls.__name__} with ID={ids[0]}")
            return records[0]

        expected = len(set(ids))
        if len(records) != expected:
            raise RecordNotFound(
                f"Couldn't find all {cls.__name__} with IDs ({', '.join(map(str, ids))}) "
                f"(found {len(records)} results, but was looking for {expected})"
            )
        return records

    @classmethod
    def _construct_finder_query(cls, options: dict) -> QueryBuilder:
        scope = cls.scope("find") or {}
        query = cls.new_query()

        joins = options.get("joins") or scope.get("joins")
        query.select(options.get("select") or (f"{cls.__table__}.*" if joins else "*"))
        if joins:
            for join in ([joins] if isinstance(joins, str) else joins):
                query.join_raw(join)

        cls._add_conditions(query, options.get("conditions"), scope.get("conditions"))

        if options.get("group"):
            query.group_by(options["group"])
        if options.get("order"):
            query.order_by_raw(options["order"])

        limit = options["limit"] if options.get("limit") is not None else scope.get("limit")
        if limit is not None:
            query.limit(limit)
        offset = options["offset"] if options.get("offset") is not None else scope.get("offset")
        if offset is not None:
            query.offset(offset)
        return query

    @classmethod
    def _readonly_for(cls, options: dict) -> bool:
        if options.get("readonly") is not None:
            return bool(options["readonly"])
        if options.get("joins"):
            return True
        return bool(cls.scope("find", "readonly"))

    @classmethod
    def _preload_associations(cls, records: List["ActiveRecord"], include):
        names = [include] if isinstance(include, str) else list(include)
        for name in names:
            association = cls.__associations__.get(name)
            if association is None:
                raise AssociationError(f"Association named '{name}' was not found on {cls.__name__}")
            for record in records:
                association.preload(record)

    @classmethod
    def find_by_sql(cls, sql: str, *params: Any) -> ModelCollection:
        rows = cls.__database__().query(sql, *params)
        return ModelCollection(cls._hydrate_results(rows))

    # --------------------------------------------------------------------------
    # Aggregates
    # --------------------------------------------------------------------------

    @classmethod
    def count(cls, conditions=None, joins=None) -> int:
        scope = cls.scope("find") or {}
        query = cls.new_query().as_count()

        joins = joins or scope.get("joins")
        if joins:
            for join in ([joins] if isinstance(joins, str) else joins):
                query.join_raw(join)

        cls._add_conditions(query, conditions, scope.get("conditions"))
        rows = cls.__database__().query(query)
        return int(rows[0]["count"]) if rows else 0

    @classmethod
    def count_by_sql(cls, sql: str, *params: Any) -> int:
        rows = cls.__database__().query(sql, *params)
        if not rows:
            return 0
        return int(list(rows[0].values())[0] or 0)

    # --------------------------------------------------------------------------
    # Hydration
    # --------------------------------------------------------------------------

    @classmethod
    def _hydrate_results(cls: Type[T], rows: list[dict]) -> list[T]:
        results = []
        for row in rows:
            instance = cls()
            instance.__data__.update(dict(row))
            instance.__original__ = deepcopy(instance.__data__)
            instance._new_record = False
            instance.fire_event("retrieved", instance)
            results.append(instance)
        return results

    # --------------------------------------------------------------------------
    # Change Tracking
    # --------------------------------------------------------------------------

    def get_changed_fields(self) -> list[str]:
        return [
            key for key in self.__data__
            if key not in self.__original__ or self.__original__[key] != self.__data__[key]
        ]

    # --------------------------------------------------------------------------
    # Persistence - Create & Save
    # --------------------------------------------------------------------------

    @classmethod
    def new(cls: Type[T], **kwargs: Any) -> T:
        """
        Build an unsaved instance, applying any active create scope.
        """
        attributes = {**(cls.scope("create") or {}), **kwargs}
        return cls(**attributes)

    @classmethod
    def create(cls: Type[T], **kwargs: Any) -> T:
        instance = cls.new(**kwargs)
        instance.save()
        return instance

    def _check_writable(self):
        if self._readonly:
            raise ReadOnlyRecord(f"{self.__class__.__name__} is marked as readonly")
        if self._frozen:
            raise FrozenRecordError(f"Can't save frozen {self.__class__.__name__}")

    def _touch_timestamps(self, now: datetime, creating: bool):
        for name, field in self.__class__.__fields__.items():
            if not isinstance(field, DateTimeField):
                continue
            if field.auto_now:
                self.__data__[name] = now
            elif creating and field.auto_now_add:
                self.__data__.setdefault(name, now)

    def save(self) -> bool:
        """
        Insert or update the current model instance in the database.
        Returns False when a "before" event aborts the operation.
        """
        self._check_writable()
        pk = self.get_primary_key_column()
        now = self.current_time()

        if self._new_record:
            if not self.fire_event("creating", self) or not self.fire_event("saving", self):
                return False

            self._touch_timestamps(now, creating=True)
            data = {k: v for k, v in self.__data__.items() if not (k == pk and v is None)}
            sql, params = self.new_query().insert(data)
            last_id = self.db.insert(sql, params)
            if self.__data__.get(pk) is None:
                self.__data__[pk] = last_id
            self._new_record = False

            self.fire_event("created", self)
            self.fire_event("saved", self)
        else:
            if not self.get_changed_fields():
                return True
            if not self.fire_event("updating", self) or not self.fire_event("saving", self):
                return False

            self._touch_timestamps(now, creating=False)
            changes = {k: self.__data__[k] for k in self.get_changed_fields() if k != pk}
            sql, params = self.new_query().where(pk, "=", self.get_id()).update(changes)
            self.db.write(sql, params)

            self.fire_event("updated", self)
            self.fire_event("saved", self)

        self.__original__ = deepcopy(self.__data__)
        return True

    # --------------------------------------------------------------------------
    # Persistence - Destroy
    # --------------------------------------------------------------------------

    def destroy(self):
        """
        Run the destroy lifecycle: "deleting" (may abort), the row removal,
        then "deleted". Returns the frozen instance, or False when aborted.
        """
        return self._run_destroy(self._destroy_without_callbacks)

    def _run_destroy(self, destroyer):
        if self._readonly:
            raise ReadOnlyRecord(f"{self.__class__.__name__} is marked as readonly")

        with self.db.transaction():
            if not self.fire_event("deleting", self):
                return False
            result = destroyer()
            self.fire_event("deleted", self)
        return result

    def _destroy_without_callbacks(self):
        if not self._new_record:
            pk = self.get_primary_key_column()
            sql, params = self.new_query().where(pk, "=", self.get_id()).delete()
            self.db.write(sql, params)
        self.freeze()
        return self

    # --------------------------------------------------------------------------
    # Associations
    # --------------------------------------------------------------------------

    def reset_association(self, name: str | None = None) -> "ActiveRecord":
        if name is None:
            self.__association_cache__.clear()
        else:
            self.__association_cache__.pop(name, None)
        return self

    # --------------------------------------------------------------------------
    # Schema Generation
    # --------------------------------------------------------------------------

    @classmethod
    def generate_schema(cls) -> str:
        fields = cls.get_fields()
        if not fields:
            raise ValueError(f"{cls.__name__} has no declared fields.")

        driver = cls.__database__.driver
        columns = []
        pk = None

        # primary key column first
        for name, field in sorted(fields.items(), key=lambda item: not item[1].primary_key):
            sql_type = field.get_sql_type(driver)
            col_def = f"`{name}` {sql_type}"

            if not field.nullable:
                col_def += " NOT NULL"
            if field.unique:
                col_def += " UNIQUE"
            if field.default is not None:
                if isinstance(field.default, (int, float)):
                    col_def += f" DEFAULT {field.default}"
                else:
                    col_def += f" DEFAULT '{field.default}'"
            if field.comment and driver == "mysql":
                col_def += f" COMMENT '{field.comment}'"

            if field.primary_key and "PRIMARY KEY" not in sql_type:
                pk = name

            columns.append(col_def)

        if pk:
            columns.append(f"PRIMARY KEY (`{pk}`)")

        return f"CREATE TABLE IF NOT EXISTS `{cls.__table__}` (\n  " + ",\n  ".join(columns) + "\n);"

    @classmethod
    def create_table(cls) -> None:
        cls.__database__().write(cls.generate_schema())
        logger.info(f"Table `{cls.__table__}` created.")

    # --------------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data = {}
        for key, value in self.__data__.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
            elif isinstance(value, bytes):
                data[key] = base64.b64encode(value).decode("utf-8")
            elif isinstance(value, ActiveRecord):
                data[key] = value.to_dict()
            else:
                data[key] = value
        return data
