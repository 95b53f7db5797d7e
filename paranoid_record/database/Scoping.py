"""
Ambient query scopes.

A scope holds default options for the queries a model builds while the scope
is active::

    with Widget.with_scope(find={"conditions": ("title = %s", "test")}):
        Widget.find("all")   # ... WHERE title = %s

Scopes are kept per model in a ContextVar, so they never leak across threads
or tasks, and the previous scope is restored when the block exits, however it
exits. Nesting is not supported: entering a scope while one is active for the
same model raises NestedScopeError.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Optional

from paranoid_record.database.Exceptions import InvalidFindOptions, NestedScopeError

VALID_SCOPE_METHODS = ("find", "create")
VALID_FIND_SCOPE_OPTIONS = ("conditions", "joins", "offset", "limit", "readonly")

_scoped_methods: ContextVar[dict] = ContextVar("scoped_methods", default={})


def assert_valid_keys(options: dict, valid_keys, label: str = "option"):
    unknown = [key for key in options if key not in valid_keys]
    if unknown:
        raise InvalidFindOptions(
            f"Unknown {label}(s): {', '.join(map(str, unknown))}. "
            f"Valid {label}s are: {', '.join(valid_keys)}"
        )


def scoped_methods(model) -> Optional[dict]:
    """The scope currently active for ``model``, or None."""
    return _scoped_methods.get().get(model)


def scope_for(model, method: str, key: str | None = None) -> Any:
    scope = scoped_methods(model)
    if scope is None:
        return None
    method_scope = scope.get(method)
    if key is None or method_scope is None:
        return method_scope
    return method_scope.get(key)


def dup_scope(method_scoping: dict | None) -> dict:
    """Copy the first and second level of a scope (method and params)."""
    return {method: dict(params) for method, params in (method_scoping or {}).items()}


@contextmanager
def exclusive_scope(model, method_scoping: dict | None = None):
    """Replace whatever scope ``model`` has for the duration of the block."""
    scopes = dict(_scoped_methods.get())
    if method_scoping is None:
        scopes.pop(model, None)
    else:
        scopes[model] = method_scoping
    token = _scoped_methods.set(scopes)
    try:
        yield method_scoping
    finally:
        _scoped_methods.reset(token)


@contextmanager
def with_scope(model, method_scoping: dict | None = None):
    method_scoping = dup_scope(method_scoping)

    assert_valid_keys(method_scoping, VALID_SCOPE_METHODS, "scope method")
    find = method_scoping.get("find")
    if find is not None:
        assert_valid_keys(find, VALID_FIND_SCOPE_OPTIONS, "find scope option")
        if find.get("joins") and "readonly" not in find:
            find["readonly"] = True

    active = scoped_methods(model)
    if active is not None:
        raise NestedScopeError(f"Nested scopes are not yet supported: {active!r}")

    with exclusive_scope(model, method_scoping) as scope:
        yield scope
