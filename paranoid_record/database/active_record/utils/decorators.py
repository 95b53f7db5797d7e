def on(event_name: str, priority: int = 0):
    """Mark a model method as a class-level listener for ``event_name``."""
    def decorator(fn):
        fn.__event_name__ = event_name
        fn.__event_priority__ = priority
        return fn
    return decorator
