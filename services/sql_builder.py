"""Composable SQL for the dashboard's read paths.

Identifiers placed in a statement come either from the table registry below
or from an ``information_schema`` lookup wrapped in :class:`TrustedColumns`.
Request values only ever travel as bound parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from psycopg import sql

from services.errors import ValidationError

SCHEMA = "public"
SORT_ORDERS = ("ASC", "DESC")
TIEBREAK_COLUMN = "id"

# Bound parameters must fit the column types they are compared with.
PG_INT_MAX = 2**31 - 1
PG_BIGINT_MAX = 2**63 - 1

Statement = Tuple[sql.Composed, Dict[str, Any]]


@dataclass(frozen=True)
class JoinedColumn:
    """A human-readable column resolved through a foreign key."""

    output_name: str
    table: str
    alias: str
    column: str
    foreign_key: str
    target_key: str = "id"


@dataclass(frozen=True)
class TableSpec:
    name: str
    alias: str = "t"
    joins: Tuple[JoinedColumn, ...] = ()


TABLES: Dict[str, TableSpec] = {
    "informacoes": TableSpec(
        name="informacoes",
        alias="i",
        joins=(
            JoinedColumn("sensor_descricao", "sensor", "s", "descricao", "sensor"),
            JoinedColumn("grupo_nome", "grupo", "g", "nome", "grupo"),
        ),
    ),
    "sensor": TableSpec(name="sensor"),
    "grupo": TableSpec(name="grupo"),
}

ALLOWED_TABLES: Tuple[str, ...] = tuple(TABLES)


def resolve_table(name: Optional[str]) -> TableSpec:
    spec = TABLES.get(name or "")
    if spec is None:
        raise ValidationError("Invalid or missing table name", allowed_tables=ALLOWED_TABLES)
    return spec


def normalize_sort_order(value: Optional[str]) -> str:
    candidate = (value or "").strip().upper()
    return candidate if candidate in SORT_ORDERS else "ASC"


def literal_pattern(text: str) -> str:
    """``ILIKE`` pattern matching ``text`` anywhere, wildcards escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _table_ref(name: str, alias: str) -> sql.Composed:
    return sql.SQL("{}.{} AS {}").format(
        sql.Identifier(SCHEMA), sql.Identifier(name), sql.Identifier(alias)
    )


def columns_statement(table: TableSpec) -> Statement:
    query = sql.SQL(
        "SELECT column_name FROM information_schema.columns "
        "WHERE table_schema = {schema} AND table_name = {table} "
        "ORDER BY ordinal_position"
    ).format(schema=sql.Placeholder("schema"), table=sql.Placeholder("table_name"))
    return query, {"schema": SCHEMA, "table_name": table.name}


@dataclass(frozen=True)
class TrustedColumns:
    """Column names a statement may reference, mapped to their expressions."""

    table: TableSpec
    expressions: Mapping[str, sql.Composable] = field(default_factory=dict)

    @classmethod
    def from_introspection(cls, table: TableSpec, column_names: Iterable[str]) -> "TrustedColumns":
        expressions: Dict[str, sql.Composable] = {
            name: sql.Identifier(table.alias, name) for name in column_names
        }
        if expressions:
            for join in table.joins:
                expressions[join.output_name] = sql.Identifier(join.alias, join.column)
        return cls(table=table, expressions=expressions)

    def __contains__(self, name: object) -> bool:
        return name in self.expressions

    def __len__(self) -> int:
        return len(self.expressions)

    def names(self) -> List[str]:
        return list(self.expressions)


class TableQuery:
    """Builds the data page and row count statements for one table."""

    def __init__(self, columns: TrustedColumns) -> None:
        self.columns = columns
        self.table = columns.table
        self.filter_text = ""
        self.sort_column: Optional[str] = None
        self.sort_order = "ASC"
        self.limit = 10
        self.offset = 0

    def where_text(self, text: Optional[str]) -> "TableQuery":
        self.filter_text = text or ""
        return self

    def order_by(self, column: Optional[str], order: Optional[str] = None) -> "TableQuery":
        """Sort by ``column``; returns unchanged when the column is not trusted."""
        self.sort_order = normalize_sort_order(order)
        self.sort_column = column if column and column in self.columns else None
        return self

    def paginate(self, page: int, page_size: int) -> "TableQuery":
        self.limit = page_size
        self.offset = (page - 1) * page_size
        return self

    def data_statement(self) -> Statement:
        params = self._filter_params()
        query = sql.SQL(" ").join(
            [
                sql.SQL("SELECT"),
                self._select_list(),
                self._from_clause(),
                *self._where_clause(),
                *self._order_clause(),
                sql.SQL("LIMIT {} OFFSET {}").format(
                    sql.Placeholder("limit"), sql.Placeholder("offset")
                ),
            ]
        )
        params.update(limit=self.limit, offset=self.offset)
        return query, params

    def count_statement(self) -> Statement:
        query = sql.SQL(" ").join(
            [
                sql.SQL("SELECT COUNT(*) AS total_rows"),
                self._from_clause(),
                *self._where_clause(),
            ]
        )
        return query, self._filter_params()

    def _filter_params(self) -> Dict[str, Any]:
        if not self.filter_text:
            return {}
        return {"filter": literal_pattern(self.filter_text)}

    def _select_list(self) -> sql.Composed:
        items: List[sql.Composable] = [sql.SQL("{}.*").format(sql.Identifier(self.table.alias))]
        for join in self.table.joins:
            items.append(
                sql.SQL("{} AS {}").format(
                    sql.Identifier(join.alias, join.column), sql.Identifier(join.output_name)
                )
            )
        return sql.SQL(", ").join(items)

    def _from_clause(self) -> sql.Composed:
        parts: List[sql.Composable] = [
            sql.SQL("FROM {}").format(_table_ref(self.table.name, self.table.alias))
        ]
        for join in self.table.joins:
            parts.append(
                sql.SQL("LEFT JOIN {} ON {} = {}").format(
                    _table_ref(join.table, join.alias),
                    sql.Identifier(self.table.alias, join.foreign_key),
                    sql.Identifier(join.alias, join.target_key),
                )
            )
        return sql.SQL(" ").join(parts)

    def _where_clause(self) -> List[sql.Composable]:
        if not self.filter_text or not len(self.columns):
            return []
        conditions = [
            sql.SQL("CAST({} AS TEXT) ILIKE {}").format(expression, sql.Placeholder("filter"))
            for expression in self.columns.expressions.values()
        ]
        return [sql.SQL("WHERE ({})").format(sql.SQL(" OR ").join(conditions))]

    def _order_clause(self) -> List[sql.Composable]:
        keys: List[sql.Composable] = []
        if self.sort_column is not None:
            keys.append(
                sql.SQL("{} {}").format(
                    self.columns.expressions[self.sort_column], sql.SQL(self.sort_order)
                )
            )
        if TIEBREAK_COLUMN in self.columns and self.sort_column != TIEBREAK_COLUMN:
            keys.append(sql.SQL("{} ASC").format(self.columns.expressions[TIEBREAK_COLUMN]))
        if not keys:
            return []
        return [sql.SQL("ORDER BY {}").format(sql.SQL(", ").join(keys))]


_RECENT_READINGS = sql.SQL(
    "SELECT i.id, i.sensor, i.valor, i.grupo, i.data_registro, i.dispositivo, "
    "s.descricao AS sensor_descricao, s.tipo AS sensor_tipo, "
    "g.nome AS grupo_nome, g.localizacao AS grupo_localizacao "
    "FROM {informacoes} "
    "LEFT JOIN {sensor} ON i.sensor = s.id "
    "LEFT JOIN {grupo} ON i.grupo = g.id "
    "WHERE i.data_registro >= NOW() - make_interval(hours => {window}::int)"
    "{grupo_filter} "
    "ORDER BY i.data_registro DESC, i.id DESC "
    "LIMIT {limit}"
)


def recent_readings_statement(
    window_hours: int, limit: int, grupo_id: Optional[int] = None
) -> Statement:
    """Readings of the last ``window_hours`` joined with sensor and location, newest first."""
    params: Dict[str, Any] = {"window_hours": window_hours, "limit": limit}
    grupo_filter: sql.Composable = sql.SQL("")
    if grupo_id is not None:
        grupo_filter = sql.SQL(" AND i.grupo = {}").format(sql.Placeholder("grupo_id"))
        params["grupo_id"] = grupo_id
    query = _RECENT_READINGS.format(
        informacoes=_table_ref("informacoes", "i"),
        sensor=_table_ref("sensor", "s"),
        grupo=_table_ref("grupo", "g"),
        window=sql.Placeholder("window_hours"),
        grupo_filter=grupo_filter,
        limit=sql.Placeholder("limit"),
    )
    return query, params


def grupos_statement() -> Statement:
    query = sql.SQL("SELECT id, nome, localizacao FROM {} ORDER BY nome ASC").format(
        _table_ref("grupo", "g")
    )
    return query, {}


def tables_statement() -> Statement:
    query = sql.SQL(
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = {} ORDER BY table_name"
    ).format(sql.Placeholder("schema"))
    return query, {"schema": SCHEMA}


SERVER_INFO = sql.SQL(
    'SELECT version() AS version, current_database() AS database, current_user AS "user"'
)
