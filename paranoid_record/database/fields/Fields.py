from typing import Any


class Field:
    def __init__(
        self,
        primary_key: bool = False,
        nullable: bool = True,
        unique: bool = False,
        default: Any = None,
        comment: str = None,
    ):
        self.primary_key = primary_key
        self.nullable = nullable
        self.unique = unique
        self.default = default
        self.comment = comment

    def get_sql_type(self, driver: str = "mysql") -> str:
        raise NotImplementedError("Subclasses must implement get_sql_type()")


class IntegerField(Field):
    def __init__(self, auto_increment: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.auto_increment = auto_increment

    def get_sql_type(self, driver: str = "mysql") -> str:
        if self.auto_increment and self.primary_key and driver == "sqlite":
            # only a bare INTEGER PRIMARY KEY becomes sqlite's rowid alias
            return "INTEGER PRIMARY KEY AUTOINCREMENT"
        base_type = "INTEGER"
        if self.auto_increment:
            base_type += " AUTO_INCREMENT"
        return base_type


class CharField(Field):
    def __init__(self, max_length: int = 255, **kwargs):
        super().__init__(**kwargs)
        self.max_length = max_length

    def get_sql_type(self, driver: str = "mysql") -> str:
        return f"VARCHAR({self.max_length})"


class TextField(Field):
    def get_sql_type(self, driver: str = "mysql") -> str:
        return "TEXT"


class BooleanField(Field):
    def get_sql_type(self, driver: str = "mysql") -> str:
        return "BOOLEAN"


class DateTimeField(Field):
    def __init__(self, auto_now: bool = False, auto_now_add: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.auto_now = auto_now
        self.auto_now_add = auto_now_add

    def get_sql_type(self, driver: str = "mysql") -> str:
        return "DATETIME"
