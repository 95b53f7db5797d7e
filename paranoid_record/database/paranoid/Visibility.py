def should_include_deleted(owner, related: type) -> bool:
    """
    A soft-deleted owner still sees its soft-deleted related records, so the
    graph it belonged to stays intact. Live owners only see live records.
    """
    return (
        type(owner).is_paranoid()
        and owner.deleted_at is not None
        and related.is_paranoid()
    )


def options_with_deleted(options: dict, related: type, include_deleted: bool) -> dict:
    """Add ``include_deleted`` to find options when ``related`` understands it."""
    if not related.is_paranoid():
        return dict(options)
    return {**options, "include_deleted": include_deleted}
