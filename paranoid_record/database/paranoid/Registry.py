import logging

logger = logging.getLogger("orm.paranoid")


class ParanoidRegistry:
    """
    The set of model classes that opted in to soft deletion.

    Membership is per class: a subclass of a paranoid model is enabled on its
    own when it is booted.
    """
    __enabled__: set = set()

    @classmethod
    def enable(cls, model: type) -> bool:
        """Returns False when ``model`` was already enabled."""
        if model in cls.__enabled__:
            return False
        cls.__enabled__.add(model)
        logger.debug(f"Soft deletes enabled for {model.__name__} ({model.__table__})")
        return True

    @classmethod
    def is_enabled(cls, model: type) -> bool:
        return model in cls.__enabled__
