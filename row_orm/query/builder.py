"""Fluent SQL query builder.

The builder accumulates clauses, renders them into ``?``-parameterized SQL
with an ordered parameter list, executes through the Engine and, when bound
to a model class, materializes entities and runs eager loads.

Rendering order is fixed::

    SELECT <cols> FROM <table> <joins> <where> <group by> <having>
    <order by> <limit> <offset>

Column and table names are written into the SQL as given and must come from
trusted code. Every value travels as a bound parameter unless it is wrapped
in an Expression.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import Boolean, Direction, JoinType, WhereKind
from row_orm.core.exceptions import InvalidQueryError, ModelNotFoundError
from row_orm.core.log import get_logger
from row_orm.query.clauses import Join, Order, Where, compile_conditions
from row_orm.query.expression import Expression
from row_orm.query.paginator import Paginator
from row_orm.relations.eager import EagerLoader, merge_relations, parse_relations

if TYPE_CHECKING:
    from row_orm.core.engine import Engine
    from row_orm.model.base import Model

logger = get_logger(__name__)

_MISSING: Any = object()

_OPERATORS = frozenset(
    {"=", "<", ">", "<=", ">=", "<>", "!=", "LIKE", "NOT LIKE", "GLOB", "IS", "IS NOT"}
)


def _normalize_operator(operator: str) -> str:
    normalized = " ".join(str(operator).upper().split())
    if normalized not in _OPERATORS:
        raise InvalidQueryError(f"unsupported operator '{operator}'")
    return normalized


def _flatten(items: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


class QueryBuilder:
    """Accumulates clauses for one table and executes them.

    Args:
        engine: Engine used for execution.
        table: Table the query reads from or writes to.
        model: Optional model class; when set, ``get`` returns entities.
    """

    def __init__(self, engine: Engine, table: str, model: type[Model] | None = None) -> None:
        self._engine = engine
        self._table = table
        self._model = model
        self._columns: list[str] = []
        self._joins: list[Join] = []
        self._wheres: list[Where] = []
        self._groups: list[str] = []
        self._havings: list[Where] = []
        self._orders: list[Order] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._eager_loads: dict[str, list[str]] = {}

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def table(self) -> str:
        return self._table

    @property
    def model(self) -> type[Model] | None:
        return self._model

    @property
    def eager_loads(self) -> dict[str, list[str]]:
        return {name: list(nested) for name, nested in self._eager_loads.items()}

    def clone(self) -> QueryBuilder:
        """Return an independent copy of this builder."""
        other = QueryBuilder(self._engine, self._table, self._model)
        other._columns = list(self._columns)
        other._joins = list(self._joins)
        other._wheres = list(self._wheres)
        other._groups = list(self._groups)
        other._havings = list(self._havings)
        other._orders = list(self._orders)
        other._limit = self._limit
        other._offset = self._offset
        other._eager_loads = self.eager_loads
        return other

    # --- Select ---

    def select(self, *columns: str | Sequence[str]) -> QueryBuilder:
        """Replace the selected columns; no columns means ``*``."""
        self._columns = _flatten(columns)
        return self

    def add_select(self, *columns: str | Sequence[str]) -> QueryBuilder:
        self._columns.extend(_flatten(columns))
        return self

    # --- Where ---

    def where(
        self,
        column: str | Mapping[str, Any],
        operator: Any = _MISSING,
        value: Any = _MISSING,
        boolean: Boolean = Boolean.AND,
    ) -> QueryBuilder:
        """Add a basic comparison.

        ``where("votes", 100)`` compares with ``=``; ``where("votes", ">", 100)``
        uses the given operator; ``where({"a": 1, "b": 2})`` adds one equality
        per item. Comparing with ``None`` renders ``IS NULL`` / ``IS NOT NULL``.
        """
        if isinstance(column, Mapping):
            for key, val in column.items():
                self.where(key, "=", val, boolean)
            return self

        if value is _MISSING:
            if operator is _MISSING:
                raise InvalidQueryError(f"where() on '{column}' needs a value")
            operator, value = "=", operator

        operator = _normalize_operator(operator)
        if value is None:
            if operator in ("=", "IS"):
                return self.where_null(column, boolean)
            if operator in ("!=", "<>", "IS NOT"):
                return self.where_not_null(column, boolean)

        self._wheres.append(Where(WhereKind.BASIC, boolean, column, operator, (value,)))
        return self

    def or_where(
        self,
        column: str | Mapping[str, Any],
        operator: Any = _MISSING,
        value: Any = _MISSING,
    ) -> QueryBuilder:
        return self.where(column, operator, value, Boolean.OR)

    def where_in(
        self,
        column: str,
        values: Iterable[Any],
        boolean: Boolean = Boolean.AND,
        negate: bool = False,
    ) -> QueryBuilder:
        """Add ``column IN (...)``.

        An empty value set renders an always-false predicate (``1 = 0``), or
        an always-true one (``1 = 1``) for NOT IN.
        """
        values = tuple(values)
        if not values:
            sql = "1 = 1" if negate else "1 = 0"
            self._wheres.append(Where(WhereKind.RAW, boolean, sql=sql))
            return self

        kind = WhereKind.NOT_IN if negate else WhereKind.IN
        self._wheres.append(Where(kind, boolean, column, values=values))
        return self

    def where_not_in(
        self, column: str, values: Iterable[Any], boolean: Boolean = Boolean.AND
    ) -> QueryBuilder:
        return self.where_in(column, values, boolean, negate=True)

    def or_where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_in(column, values, Boolean.OR)

    def or_where_not_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_in(column, values, Boolean.OR, negate=True)

    def where_null(self, column: str, boolean: Boolean = Boolean.AND) -> QueryBuilder:
        self._wheres.append(Where(WhereKind.NULL, boolean, column))
        return self

    def where_not_null(self, column: str, boolean: Boolean = Boolean.AND) -> QueryBuilder:
        self._wheres.append(Where(WhereKind.NOT_NULL, boolean, column))
        return self

    def or_where_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, Boolean.OR)

    def or_where_not_null(self, column: str) -> QueryBuilder:
        return self.where_not_null(column, Boolean.OR)

    def where_between(
        self,
        column: str,
        values: Sequence[Any],
        boolean: Boolean = Boolean.AND,
        negate: bool = False,
    ) -> QueryBuilder:
        values = tuple(values)
        if len(values) != 2:
            raise InvalidQueryError(f"between on '{column}' needs exactly two values")
        kind = WhereKind.NOT_BETWEEN if negate else WhereKind.BETWEEN
        self._wheres.append(Where(kind, boolean, column, values=values))
        return self

    def or_where_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where_between(column, values, Boolean.OR)

    def where_not_between(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where_between(column, values, negate=True)

    def where_raw(
        self, sql: str, bindings: Sequence[Any] = (), boolean: Boolean = Boolean.AND
    ) -> QueryBuilder:
        """Add a raw condition; *bindings* fill its ``?`` placeholders."""
        self._wheres.append(Where(WhereKind.RAW, boolean, sql=sql, values=tuple(bindings)))
        return self

    def or_where_raw(self, sql: str, bindings: Sequence[Any] = ()) -> QueryBuilder:
        return self.where_raw(sql, bindings, Boolean.OR)

    # --- Joins ---

    def join(
        self,
        table: str,
        first: str,
        operator: str,
        second: str = _MISSING,
        type: JoinType = JoinType.INNER,  # noqa: A002
    ) -> QueryBuilder:
        """Join *table*; ``join(t, a, b)`` is short for ``join(t, a, "=", b)``."""
        if second is _MISSING:
            operator, second = "=", operator
        self._joins.append(Join(type, table, first, _normalize_operator(operator), second))
        return self

    def left_join(
        self, table: str, first: str, operator: str, second: str = _MISSING
    ) -> QueryBuilder:
        return self.join(table, first, operator, second, JoinType.LEFT)

    def right_join(
        self, table: str, first: str, operator: str, second: str = _MISSING
    ) -> QueryBuilder:
        return self.join(table, first, operator, second, JoinType.RIGHT)

    # --- Grouping and ordering ---

    def group_by(self, *columns: str | Sequence[str]) -> QueryBuilder:
        self._groups.extend(_flatten(columns))
        return self

    def having(
        self,
        column: str,
        operator: Any = _MISSING,
        value: Any = _MISSING,
        boolean: Boolean = Boolean.AND,
    ) -> QueryBuilder:
        if value is _MISSING:
            if operator is _MISSING:
                raise InvalidQueryError(f"having() on '{column}' needs a value")
            operator, value = "=", operator
        operator = _normalize_operator(operator)
        self._havings.append(Where(WhereKind.BASIC, boolean, column, operator, (value,)))
        return self

    def or_having(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        return self.having(column, operator, value, Boolean.OR)

    def having_raw(
        self, sql: str, bindings: Sequence[Any] = (), boolean: Boolean = Boolean.AND
    ) -> QueryBuilder:
        self._havings.append(Where(WhereKind.RAW, boolean, sql=sql, values=tuple(bindings)))
        return self

    def order_by(self, column: str, direction: str | Direction = "ASC") -> QueryBuilder:
        if not isinstance(direction, Direction):
            try:
                direction = Direction(str(direction).upper())
            except ValueError:
                raise InvalidQueryError(f"order direction must be ASC or DESC, got '{direction}'") from None
        self._orders.append(Order(column, direction))
        return self

    def latest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, Direction.DESC)

    def oldest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, Direction.ASC)

    def limit(self, value: int | None) -> QueryBuilder:
        if value is not None and int(value) < 0:
            raise InvalidQueryError("limit must not be negative")
        self._limit = None if value is None else int(value)
        return self

    def offset(self, value: int | None) -> QueryBuilder:
        if value is not None and int(value) < 0:
            raise InvalidQueryError("offset must not be negative")
        self._offset = None if value is None else int(value)
        return self

    def take(self, value: int | None) -> QueryBuilder:
        return self.limit(value)

    def skip(self, value: int | None) -> QueryBuilder:
        return self.offset(value)

    # --- Eager loading ---

    def with_(self, *relations: str | Sequence[str]) -> QueryBuilder:
        """Request eager loading; ``"posts.comments"`` loads posts, then their comments."""
        self._eager_loads = merge_relations(self._eager_loads, parse_relations(_flatten(relations)))
        return self

    # --- Rendering ---

    def compile(self) -> tuple[str, list[Any]]:
        """Render the SELECT statement and its positional parameters."""
        return self._compile_select(self._columns)

    def to_sql(self) -> str:
        return self.compile()[0]

    def get_bindings(self) -> list[Any]:
        return self.compile()[1]

    def _compile_select(self, columns: list[str]) -> tuple[str, list[Any]]:
        bindings: list[Any] = []
        parts = [f"SELECT {', '.join(columns) if columns else '*'} FROM {self._table}"]

        for join in self._joins:
            parts.append(join.compile())

        where_sql, where_bindings = self._compile_wheres()
        if where_sql:
            parts.append(where_sql)
            bindings.extend(where_bindings)

        if self._groups:
            parts.append(f"GROUP BY {', '.join(self._groups)}")

        if self._havings:
            having_sql, having_bindings = compile_conditions(self._havings)
            parts.append(f"HAVING {having_sql}")
            bindings.extend(having_bindings)

        if self._orders:
            parts.append(f"ORDER BY {', '.join(order.compile() for order in self._orders)}")

        if self._limit is not None:
            parts.append(f"LIMIT {self._limit}")

        if self._offset is not None:
            # SQLite only accepts OFFSET after a LIMIT clause
            if self._limit is None:
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {self._offset}")

        return " ".join(parts), bindings

    def _compile_wheres(self) -> tuple[str, list[Any]]:
        if not self._wheres:
            return "", []
        sql, bindings = compile_conditions(self._wheres)
        return f"WHERE {sql}", bindings

    def dump(self) -> QueryBuilder:
        """Log the rendered SQL and bindings, then keep chaining."""
        sql, bindings = self.compile()
        logger.info("query.dump", sql=sql, bindings=bindings)
        return self

    # --- Reading ---

    def get(self) -> list[Any]:
        """Execute the query.

        Returns row dicts for plain table queries, or model instances (with
        requested relations eager-loaded) for model queries.
        """
        sql, bindings = self.compile()
        rows = self._engine.execute(sql, bindings)
        if self._model is None:
            return rows

        models = [self._model.new_from_row(row, self._engine) for row in rows]
        if models and self._eager_loads:
            EagerLoader().load(models, self._eager_loads)
        return models

    def first(self) -> Any:
        results = self.clone().limit(1).get()
        return results[0] if results else None

    def find(self, key: Any) -> Any:
        """Fetch one record by primary key, or None."""
        return self.clone().where(self._key_name(), "=", key).first()

    def find_or_fail(self, key: Any) -> Any:
        """Fetch one record by primary key; raise ModelNotFoundError when absent."""
        result = self.find(key)
        if result is None:
            name = self._model.__name__ if self._model is not None else self._table
            raise ModelNotFoundError(name, key)
        return result

    def pluck(self, column: str) -> list[Any]:
        """Return a single column from every matching row."""
        query = self.clone()
        sql, bindings = query._compile_select([column])
        rows = self._engine.execute(sql, bindings)
        key = column.split(".")[-1].split(" ")[-1]
        return [row[key] for row in rows]

    def raw(self, sql: str, bindings: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute arbitrary SQL and return its rows."""
        return self._engine.execute(sql, bindings)

    def _key_name(self) -> str:
        if self._model is not None:
            return self._model.get_key_name_for_class()
        return "id"

    # --- Aggregates ---

    def _aggregate(self, function: str, column: str) -> Any:
        query = self.clone()
        query._orders = []
        query._limit = None
        query._offset = None
        if query._groups:
            # One row per group: aggregate over the grouped rows, not the first group.
            inner, bindings = query._compile_select(query._columns)
            target = column if column == "*" else column.rsplit(".", 1)[-1]
            sql = f"SELECT {function}({target}) AS aggregate FROM ({inner}) AS grouped"
        else:
            sql, bindings = query._compile_select([f"{function}({column}) AS aggregate"])
        rows = self._engine.execute(sql, bindings)
        return rows[0]["aggregate"] if rows else None

    def count(self, column: str = "*") -> int:
        return int(self._aggregate("COUNT", column) or 0)

    def max(self, column: str) -> Any:
        return self._aggregate("MAX", column)

    def min(self, column: str) -> Any:
        return self._aggregate("MIN", column)

    def avg(self, column: str) -> Any:
        return self._aggregate("AVG", column)

    def sum(self, column: str) -> Any:
        result = self._aggregate("SUM", column)
        return 0 if result is None else result

    def exists(self) -> bool:
        return self.count() > 0

    def doesnt_exist(self) -> bool:
        return not self.exists()

    # --- Writing ---

    def insert(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Any:
        """Insert one row and return its id, or several rows and return True."""
        if not isinstance(data, Mapping):
            return self.insert_batch(data)

        if not data:
            self._engine.execute(f"INSERT INTO {self._table} DEFAULT VALUES")
            return self._engine.last_insert_id

        bindings: list[Any] = []
        placeholders = []
        for value in data.values():
            if isinstance(value, Expression):
                placeholders.append(value.value)
            else:
                placeholders.append("?")
                bindings.append(value)

        sql = (
            f"INSERT INTO {self._table} ({', '.join(data)}) "
            f"VALUES ({', '.join(placeholders)})"
        )
        self._engine.execute(sql, bindings)
        return self._engine.last_insert_id

    def insert_get_id(self, data: Mapping[str, Any]) -> Any:
        return self.insert(data)

    def insert_batch(self, records: Sequence[Mapping[str, Any]]) -> bool:
        """Insert several rows in one statement; columns come from the first record."""
        if not records:
            return False

        columns = list(records[0])
        row_placeholders = f"({', '.join('?' for _ in columns)})"
        values: list[Any] = []
        for record in records:
            values.extend(record.get(column) for column in columns)

        sql = (
            f"INSERT INTO {self._table} ({', '.join(columns)}) "
            f"VALUES {', '.join(row_placeholders for _ in records)}"
        )
        self._engine.execute(sql, values)
        return True

    def update(self, data: Mapping[str, Any]) -> int:
        """Update matching rows and return the affected row count."""
        if not data:
            return 0

        sets: list[str] = []
        bindings: list[Any] = []
        for column, value in data.items():
            if isinstance(value, Expression):
                sets.append(f"{column} = {value.value}")
            else:
                sets.append(f"{column} = ?")
                bindings.append(value)

        where_sql, where_bindings = self._compile_wheres()
        sql = f"UPDATE {self._table} SET {', '.join(sets)}"
        if where_sql:
            sql += f" {where_sql}"
        self._engine.execute(sql, bindings + where_bindings)
        return self._engine.affected_row_count

    def increment(self, column: str, amount: int | float = 1) -> int:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidQueryError(f"increment amount must be numeric, got {amount!r}")
        return self.update({column: Expression(f"{column} + {amount}")})

    def decrement(self, column: str, amount: int | float = 1) -> int:
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidQueryError(f"decrement amount must be numeric, got {amount!r}")
        return self.update({column: Expression(f"{column} - {amount}")})

    def delete(self) -> int:
        """Delete matching rows and return the affected row count."""
        where_sql, where_bindings = self._compile_wheres()
        sql = f"DELETE FROM {self._table}"
        if where_sql:
            sql += f" {where_sql}"
        self._engine.execute(sql, where_bindings)
        return self._engine.affected_row_count

    def truncate(self) -> bool:
        """Delete every row and reset the table's AUTOINCREMENT counter."""
        self._engine.execute(f"DELETE FROM {self._table}")
        has_sequence = self._engine.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
        )
        if has_sequence:
            self._engine.execute("DELETE FROM sqlite_sequence WHERE name = ?", (self._table,))
        return True

    # --- Paging ---

    def paginate(self, per_page: int = 15, page: int = 1) -> Paginator:
        """Return one page of results plus the total row count."""
        if per_page <= 0:
            raise InvalidQueryError("per_page must be positive")
        page = max(1, int(page))
        total = self.count()
        items = self.clone().limit(per_page).offset((page - 1) * per_page).get()
        return Paginator(items, total, per_page, page)

    def chunk(self, size: int, callback: Callable[[list[Any], int], Any]) -> bool:
        """Feed results to *callback* page by page.

        Iteration stops when the callback returns ``False`` or a page comes
        back shorter than *size*. Returns False if the callback stopped it.
        """
        if size <= 0:
            raise InvalidQueryError("chunk size must be positive")

        page = 1
        while True:
            results = self.clone().limit(size).offset((page - 1) * size).get()
            if not results:
                break
            if callback(results, page) is False:
                return False
            if len(results) < size:
                break
            page += 1
        return True
