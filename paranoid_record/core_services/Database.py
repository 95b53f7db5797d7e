import logging
import os
import pprint
import time
from contextlib import contextmanager
from typing import Any, Generator

from dotenv import load_dotenv

from paranoid_record.database.QueryBuilder import QueryBuilder

load_dotenv()

logger = logging.getLogger("orm.sql")
if not logger.handlers:  # prevent duplicate handlers
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s"
    ))
    logger.addHandler(_handler)
logger.setLevel(logging.DEBUG)


class Database:
    """
    Base class for database services.

    A driver subclass implements ``open()`` and, when it needs to, ``prepare()``
    and ``_fetch_rows()``. The connection is held on the driver class so every
    model sharing the driver also shares the connection and its transaction.
    """
    driver: str = ""
    connection = None
    connection_string: str = ""
    connection_dict: dict = {}
    force_logging: bool = False
    _transaction_depth: int = 0

    def __init__(self):
        self.logging_enabled = os.getenv("ORM_DEBUG", "false").lower() == "true"
        self.logger = logger
        self.cursor = None
        self.results: list[dict[str, Any]] = []

    def _log_query(self, sql: str, params: tuple, elapsed_ms: float):
        if self.logging_enabled or self.__class__.force_logging:
            log_entry = {
                "event": "sql_query",
                "sql": sql,
                "params": params,
                "elapsed_ms": round(elapsed_ms, 2),
                "database": self.__class__.__name__,
            }
            # pretty print dict instead of raw string
            self.logger.debug("\n" + pprint.pformat(log_entry, indent=2, width=80, compact=False) + "\n")

    class DotDict(dict):
        def __getattr__(self, key):
            return self.get(key)

        def __setattr__(self, key, value):
            self[key] = value

        def __delattr__(self, key):
            del self[key]

    # ----------------------------------------------------------------------
    # Connection handling
    # ----------------------------------------------------------------------

    def open(self):
        raise NotImplementedError("Subclasses must implement open()")

    def connect(self):
        cls = self.__class__
        if cls.connection is None:
            cls.connection = self.open()
        self.cursor = cls.connection.cursor()
        return self.cursor

    @classmethod
    def disconnect(cls):
        if cls.connection is not None:
            cls.connection.close()
        cls.connection = None
        cls._transaction_depth = 0

    def prepare(self, sql: str) -> str:
        """Translate the builder's ``%s`` placeholders to the driver's paramstyle."""
        return sql

    def adapt(self, params: tuple) -> tuple:
        return params

    # ----------------------------------------------------------------------
    # Execution
    # ----------------------------------------------------------------------

    def execute(self, query_str: str | QueryBuilder, *args):
        if not isinstance(query_str, str):
            query_str, args = query_str.get()

        if len(args) == 1 and isinstance(args[0], (list, tuple)):
            args = tuple(args[0])
        else:
            args = tuple(args)

        start_time = time.perf_counter()
        cursor = self.connect()
        try:
            cursor.execute(self.prepare(query_str), self.adapt(args))
        except Exception as e:
            self.logger.error(f"{e.__class__.__name__}: {e} [{query_str}]")
            raise
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._log_query(query_str, args, elapsed_ms)
        return cursor

    def _fetch_rows(self, cursor) -> list[dict[str, Any]]:
        if cursor.description is None:
            return []
        columns = [column[0] for column in cursor.description]
        return [self.DotDict(zip(columns, row)) for row in cursor.fetchall()]

    def query(self, query_str: str | QueryBuilder, *args) -> list[dict[str, Any]]:
        cursor = self.execute(query_str, *args)
        self.results = self._fetch_rows(cursor)
        return self.results

    def write(self, query_str: str | QueryBuilder, *args) -> int:
        """Run an UPDATE/DELETE and return the number of affected rows."""
        cursor = self.execute(query_str, *args)
        affected = cursor.rowcount
        self.commit()
        return affected

    def insert(self, query_str: str, *args) -> Any:
        """Run an INSERT and return the generated primary key."""
        cursor = self.execute(query_str, *args)
        last_id = cursor.lastrowid
        self.commit()
        return last_id

    # ----------------------------------------------------------------------
    # Transactions
    # ----------------------------------------------------------------------

    def in_transaction(self) -> bool:
        return self.__class__._transaction_depth > 0

    def commit(self):
        if not self.in_transaction():
            self.__class__.connection.commit()

    @contextmanager
    def transaction(self) -> Generator["Database", None, None]:
        """
        Commits on successful execution of the outermost block or rolls back
        if an exception escapes it. Inner blocks join the outer transaction.
        """
        cls = self.__class__
        self.connect()
        cls._transaction_depth += 1
        try:
            yield self
        except Exception:
            cls._transaction_depth -= 1
            if cls._transaction_depth == 0:
                cls.connection.rollback()
                self.logger.debug("Transaction rolled back.")
            raise
        else:
            cls._transaction_depth -= 1
            if cls._transaction_depth == 0:
                cls.connection.commit()
