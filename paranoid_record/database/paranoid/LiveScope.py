"""
The live scope: the implicit ``<table>.deleted_at IS NULL`` filter that hides
soft-deleted rows from a paranoid model's finders and counts.
"""
import logging
from contextlib import contextmanager
from contextvars import ContextVar

from paranoid_record.database.Exceptions import NestedScopeError
from paranoid_record.database.Scoping import dup_scope, exclusive_scope, scoped_methods

logger = logging.getLogger("orm.paranoid")

_live_models: ContextVar[frozenset] = ContextVar("live_models", default=frozenset())


def live_predicate(model) -> str:
    return f"{model.__table__}.deleted_at IS NULL"


def is_live_scoped(model) -> bool:
    return model in _live_models.get()


def compose_live_scope(model, current: dict | None) -> dict:
    """
    AND the live predicate onto the find conditions of ``current``.
    The prior conditions are parenthesized and keep their bound params. A
    condition that already contains the predicate is left untouched.
    """
    scope = dup_scope(current)
    find = scope.setdefault("find", {})
    predicate = live_predicate(model)

    sql, params = model.sanitize_conditions(find.get("conditions"))
    if not sql:
        find["conditions"] = predicate
    elif predicate not in sql:
        find["conditions"] = (f"({sql}) AND {predicate}", *params)
    return scope


@contextmanager
def with_live_scope(model):
    """
    Run the block with the live predicate merged into ``model``'s ambient
    scope. The previous scope comes back on exit. Entering it again for the
    same model while it is active raises NestedScopeError.
    """
    current = scoped_methods(model)
    if is_live_scoped(model):
        raise NestedScopeError(f"Nested scopes are not yet supported: {current!r}")

    scope = compose_live_scope(model, current)
    logger.debug(f"{model.__name__}: live scope {scope['find']['conditions']!r}")

    token = _live_models.set(_live_models.get() | {model})
    try:
        with exclusive_scope(model, scope):
            yield scope
    finally:
        _live_models.reset(token)


@contextmanager
def without_scope(model):
    """Clear every ambient scope on ``model``, the live one included, for the block."""
    token = _live_models.set(_live_models.get() - {model})
    try:
        with exclusive_scope(model, None):
            yield
    finally:
        _live_models.reset(token)
