from contextlib import contextmanager


@contextmanager
def query_logging(model_or_db):
    """
    Context manager that logs all queries executed inside its block to the
    "orm.sql" logger, regardless of ORM_DEBUG.
    Accepts an ActiveRecord model class or instance, a Database class or a
    Database instance.
    """
    db_class = getattr(model_or_db, "__database__", model_or_db)
    if not isinstance(db_class, type):
        db_class = db_class.__class__

    previous = db_class.force_logging
    db_class.force_logging = True
    try:
        yield
    finally:
        db_class.force_logging = previous
