from typing import Any, List, Tuple


class Raw:
    def __init__(self, expression: str):
        self.expression = expression

    def __str__(self):
        return self.expression


class QueryBuilder:
    __table__ = None

    def __init__(self):
        self.__driver__ = None

        self.order_by_clauses: List[Tuple[str, str]] = []
        self.conditions: List[str] = []
        self.columns = ['*']
        self.group_by_columns: List[str] = []
        self.joins: List[str] = []
        self.limit_count = None
        self.offset_count = None
        self.parameters: List[Any] = []

    def _quote_column(self, col: str) -> str:
        if self.__driver__ == "mysql":
            return f"`{col}`"
        return col

    def table(self, table_name: str):
        self.__table__ = table_name
        return self

    def set_driver(self, driver: str):
        if driver not in ["mysql", "sqlite"]:
            raise ValueError("Unsupported driver. Supported drivers are 'mysql' and 'sqlite'.")
        self.__driver__ = driver
        return self

    def select(self, *columns):
        self.columns = [str(col) for col in columns]
        return self

    def where(self, column, operator="=", value=None):
        if isinstance(value, Raw):
            self.conditions.append(f"{column} {operator} {value.expression}")
        else:
            self.conditions.append(f"{column} {operator} %s")
            self.parameters.append(value)
        return self

    def where_raw(self, raw_sql: str, bindings: List[Any] | None = None):
        self.conditions.append(raw_sql)
        self.parameters.extend(bindings or [])
        return self

    def order_by(self, column, direction="asc"):
        direction = (direction or "").upper()
        if direction not in ("ASC", "DESC", ""):
            raise ValueError("Direction must be 'ASC', 'DESC', or ''")

        key = column.expression if isinstance(column, Raw) else str(column)

        for i, (col, _) in enumerate(self.order_by_clauses):
            if col == key:
                self.order_by_clauses[i] = (col, direction)
                break
        else:
            self.order_by_clauses.append((key, direction))
        return self

    def order_by_raw(self, raw_sql: str):
        return self.order_by(Raw(raw_sql), "")

    def limit(self, count: int):
        self.limit_count = "%s"
        self.parameters.append(count)
        return self

    def offset(self, count: int):
        self.offset_count = "%s"
        self.parameters.append(count)
        return self

    def join_raw(self, join_sql: str):
        if join_sql not in self.joins:
            self.joins.append(join_sql)
        return self

    def group_by(self, *columns):
        self.group_by_columns.extend(str(col) for col in columns)
        return self

    def as_count(self, alias: str = "count"):
        """
        Transform the current query into a COUNT query, keeping WHERE and JOIN
        logic and dropping ordering and pagination.
        """
        self.limit_count = None
        self.offset_count = None
        self.order_by_clauses = []
        self.columns = [f"COUNT(*) AS {alias}"]
        return self

    def insert(self, data: dict[str, Any]):
        """
        Generates an INSERT INTO statement.

        :param data: Dict of column-value pairs.
        :return: (SQL string, parameter list)
        """
        if not data:
            raise ValueError("No data provided for insert.")

        columns = ", ".join(self._quote_column(col) for col in data.keys())

        placeholders = []
        params = []
        for value in data.values():
            if isinstance(value, Raw):
                placeholders.append(value.expression)
            else:
                placeholders.append("%s")
                params.append(value)

        sql = f"INSERT INTO {self.__table__} ({columns}) VALUES ({', '.join(placeholders)})"
        return sql, params

    def update(self, values: dict[str, Any]):
        if not values:
            raise ValueError("No update values provided.")

        set_clause = ", ".join(f"{self._quote_column(k)} = %s" for k in values)
        set_params = list(values.values())

        where_clause = self._build_conditions()
        if not where_clause:
            raise ValueError("Unsafe update: missing WHERE clause.")

        sql = f"UPDATE {self.__table__} SET {set_clause} {where_clause.strip()}"
        return sql.strip(), set_params + self.parameters

    def delete(self):
        where_clause = self._build_conditions()
        if not where_clause:
            raise ValueError("Unsafe delete: missing WHERE clause.")
        sql = f"DELETE FROM {self.__table__} {where_clause.strip()}"
        return sql.strip(), self.parameters

    def _build_joins(self):
        return " ".join(self.joins) if self.joins else ""

    def _build_conditions(self):
        if not self.conditions:
            return ""
        return " WHERE " + " AND ".join(self.conditions)

    def to_sql(self):
        sql = "SELECT "
        sql += f"{', '.join(str(c) for c in self.columns)} FROM {self.__table__}"

        joins = self._build_joins()
        if joins:
            sql += " " + joins
        sql += self._build_conditions()

        if self.group_by_columns:
            sql += f" GROUP BY {', '.join(str(g) for g in self.group_by_columns)}"

        if self.order_by_clauses:
            order_by_str = ", ".join(f"{col} {dir}".strip() for col, dir in self.order_by_clauses)
            sql += f" ORDER BY {order_by_str}"

        if self.limit_count is not None:
            sql += f" LIMIT {self.limit_count}"
        elif self.offset_count is not None and self.__driver__ == "sqlite":
            # sqlite only accepts OFFSET after a LIMIT
            sql += " LIMIT -1"

        if self.offset_count is not None:
            sql += f" OFFSET {self.offset_count}"

        return sql.strip()

    def get(self):
        return self.to_sql(), self.parameters

