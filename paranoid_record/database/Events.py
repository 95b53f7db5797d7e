import logging

logger = logging.getLogger("orm.events")


class Events:
    __booted_classes__ = set()
    __event_listeners__ = {}

    @classmethod
    def boot(cls):
        if cls in cls.__booted_classes__:
            return

        if hasattr(cls, "booted") and callable(cls.booted):
            cls.booted()
        cls.__booted_classes__.add(cls)

    @classmethod
    def on(cls, event_name: str, callback, priority: int = 0):
        """
        Register a class-level event listener for a specific event.

        Args:
            event_name (str): Name of the event (e.g., "created", "deleting").
            callback (callable): Function to execute when the event is fired.
            priority (int, optional): Determines execution order. Higher runs first.
        """
        cls.__event_listeners__.setdefault(cls, {}).setdefault(event_name, [])

        # Prevent duplicate (priority, callback) pairs
        registered = cls.__event_listeners__[cls][event_name]
        if (priority, callback) not in registered:
            registered.append((priority, callback))
            registered.sort(key=lambda pair: pair[0], reverse=True)

    def _listeners_for(self, event_name: str) -> list:
        listeners = []
        for klass in self.__class__.__mro__:
            registered = self.__class__.__event_listeners__.get(klass, {})
            listeners.extend(registered.get(event_name, []))
            listeners.extend(registered.get("__all__", []))
        return listeners

    def fire_event(self, event_name: str, instance=None) -> bool:
        """
        Fire a lifecycle event, triggering both instance and class-level listeners.

        A listener returning ``False`` halts the chain and makes this method
        return ``False``; "before" events (creating, saving, updating, deleting)
        use that to abort the operation. Exceptions propagate to the caller.
        """
        target = instance or self

        # 1. Call instance method, e.g., instance.deleting()
        method = getattr(target, event_name, None)
        if callable(method):
            try:
                if method() is False:
                    return False
            except Exception:
                logger.exception(f"Error in event '{event_name}' for {target.__class__.__name__}")
                raise

        # 2. Call class-level listeners (including global "__all__")
        for _, callback in self._listeners_for(event_name):
            try:
                if callback(target) is False:
                    return False
            except Exception:
                logger.exception(f"Error in class-level event '{event_name}' for {target.__class__.__name__}")
                raise
        return True

    # ----------------------------------------------------------------------
    # Lifecycle Events
    # ----------------------------------------------------------------------

    def retrieved(self, *args, **kwargs):
        """
        Event triggered after a record is retrieved from the database.
        """
        pass

    def creating(self, *args, **kwargs):
        """
        Event triggered before a record is created.
        Return False to abort the insert.
        """
        pass

    def created(self, *args, **kwargs):
        """
        Event triggered after a record is created.
        """
        pass

    def updating(self, *args, **kwargs):
        """
        Event triggered before a record is updated.
        Return False to abort the update.
        """
        pass

    def updated(self, *args, **kwargs):
        """
        Event triggered after a record is updated.
        """
        pass

    def saving(self, *args, **kwargs):
        """
        Event triggered before a record is saved (either created or updated).
        """
        pass

    def saved(self, *args, **kwargs):
        """
        Event triggered after a record is saved (either created or updated).
        """
        pass

    def deleting(self, *args, **kwargs):
        """
        Event triggered before a record is destroyed, softly or permanently.
        Return False to abort the destroy.
        """
        pass

    def deleted(self, *args, **kwargs):
        """
        Event triggered after a record is destroyed.
        """
        pass
