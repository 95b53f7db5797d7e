from typing import TypeVar, List, Any

T = TypeVar('T')


class ModelCollection(list):
    def __init__(self, items: List[T]):
        super().__init__(items)

    def pluck(self, column: str) -> List[Any]:
        """Get a list of values from a specific column"""
        return [model.__data__.get(column) for model in self]

    def uniq(self) -> 'ModelCollection':
        """Drop repeated records (same model and primary key), keeping the first."""
        seen = set()
        unique = []
        for item in self:
            key = (item.__class__, item.get_id())
            if key not in seen:
                seen.add(key)
                unique.append(item)
        return ModelCollection(unique)

    def first(self):
        """Get first item from collection"""
        return self[0] if len(self) > 0 else None

