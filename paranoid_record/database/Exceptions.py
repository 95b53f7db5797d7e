class ActiveRecordError(Exception):
    """Base class for errors raised by the ORM."""
    pass


class RecordNotFound(ActiveRecordError):
    # "Query returned no results" for a lookup by primary key
    def __init__(self, message="Query returned no results"):
        super().__init__(message)


class InvalidFindOptions(ActiveRecordError, ValueError):
    """Raised when a find, count or scope call receives an unknown option key."""
    pass


class NestedScopeError(ActiveRecordError, ValueError):
    """Raised when a query scope is entered while another one is active for the same model."""
    pass


class ReadOnlyRecord(ActiveRecordError):
    pass


class FrozenRecordError(ActiveRecordError):
    pass


class AssociationError(ActiveRecordError):
    pass
