import os
from typing import Any

import mysql.connector

from paranoid_record.core_services.Database import Database


class MySqlDatabase(Database):
    driver = "mysql"
    connection = None
    connection_dict: dict = {}

    def open(self):
        settings = self.connection_dict or {
            "host": os.getenv("MYSQL_HOST", "localhost"),
            "port": int(os.getenv("MYSQL_PORT", "3306")),
            "user": os.getenv("MYSQL_USER", "root"),
            "password": os.getenv("MYSQL_PASSWORD", ""),
            "database": os.getenv("MYSQL_DATABASE", ""),
        }
        return mysql.connector.connect(**settings)

    def connect(self):
        cls = self.__class__
        if cls.connection is None or not cls.connection.is_connected():
            cls.connection = self.open()
        self.cursor = cls.connection.cursor(dictionary=True)
        return self.cursor

    def _fetch_rows(self, cursor) -> list[dict[str, Any]]:
        if cursor.description is None:
            return []
        return [self.DotDict(row) for row in cursor.fetchall()]
