import logging

from paranoid_record.database.ActiveRecord import VALID_FIND_OPTIONS, ActiveRecord
from paranoid_record.database.Exceptions import ActiveRecordError
from paranoid_record.database.fields.Fields import DateTimeField
from paranoid_record.database.paranoid.LiveScope import with_live_scope as live_scope
from paranoid_record.database.paranoid.Registry import ParanoidRegistry

logger = logging.getLogger("orm.paranoid")


class Paranoid:
    """
    Soft deletes for an ActiveRecord model. List it before ActiveRecord::

        class Widget(Paranoid, ActiveRecord):
            id = IntegerField(primary_key=True, auto_increment=True)
            title = CharField()

    ``destroy()`` stamps ``deleted_at`` instead of removing the row, and
    ``find``/``count`` skip stamped rows unless ``include_deleted=True`` is
    passed or the ``*_including_deleted`` variants are used.
    """
    deleted_at = DateTimeField(nullable=True)

    __valid_find_options__ = VALID_FIND_OPTIONS + ("include_deleted",)

    @classmethod
    def booted(cls):
        mro = cls.__mro__
        if ActiveRecord in mro and mro.index(Paranoid) > mro.index(ActiveRecord):
            # ActiveRecord.find and destroy would shadow the soft-delete versions
            raise ActiveRecordError(
                f"{cls.__name__} must list Paranoid before ActiveRecord in its bases: "
                f"class {cls.__name__}(Paranoid, ActiveRecord)"
            )
        parent = super()
        if hasattr(parent, "booted"):
            parent.booted()
        cls.acts_as_paranoid()

    @classmethod
    def acts_as_paranoid(cls):
        """Turn soft deletes on for ``cls``. Calling it again changes nothing."""
        ParanoidRegistry.enable(cls)

    @classmethod
    def with_live_scope(cls):
        return live_scope(cls)

    # --------------------------------------------------------------------------
    # Finders
    # --------------------------------------------------------------------------

    @classmethod
    def find(cls, *args, **options):
        include_deleted = options.pop("include_deleted", False)
        if include_deleted:
            return super().find(*args, **options)
        with cls.with_live_scope():
            return super().find(*args, **options)

    @classmethod
    def find_including_deleted(cls, *args, **options):
        options["include_deleted"] = True
        return cls.find(*args, **options)

    @classmethod
    def count(cls, conditions=None, joins=None) -> int:
        with cls.with_live_scope():
            return super().count(conditions, joins)

    @classmethod
    def count_including_deleted(cls, conditions=None, joins=None) -> int:
        return super().count(conditions, joins)

    # --------------------------------------------------------------------------
    # Destroy
    # --------------------------------------------------------------------------

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def _destroy_without_callbacks(self):
        if not self.is_new_record():
            now = self.current_time()
            pk = self.get_primary_key_column()
            sql, params = self.new_query().where(pk, "=", self.get_id()).update({"deleted_at": now})
            self.db.write(sql, params)
            self.__data__["deleted_at"] = now
            self.__original__["deleted_at"] = now
            logger.debug(f"Soft deleted {self.__class__.__name__} id={self.get_id()}")
        self.freeze()
        return self

    def destroy_permanently(self):
        """
        Remove the row, running the same "deleting"/"deleted" events as
        ``destroy()``. Returns False when a "deleting" listener aborts.
        """
        result = self._run_destroy(super()._destroy_without_callbacks)
        if result is not False:
            logger.debug(f"Permanently deleted {self.__class__.__name__} id={self.get_id()}")
        return result
