import os
import sqlite3
from datetime import date, datetime

from paranoid_record.core_services.Database import Database


class Sqlite3Database(Database):
    driver = "sqlite"
    connection = None
    connection_string: str = ""

    def open(self):
        return sqlite3.connect(
            self.connection_string or os.getenv("SQLITE_DATABASE", ":memory:")
        )

    def prepare(self, sql: str) -> str:
        return sql.replace("%s", "?")

    def adapt(self, params: tuple) -> tuple:
        # sqlite3's default datetime adapters are deprecated; store ISO text
        adapted = []
        for value in params:
            if isinstance(value, datetime):
                adapted.append(value.isoformat(sep=" "))
            elif isinstance(value, date):
                adapted.append(value.isoformat())
            else:
                adapted.append(value)
        return tuple(adapted)
