"""SQLite repository.

The sqlite3 connection is shared across worker threads; every statement
runs under one lock and the async methods hand the blocking work to
asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

from memberforge.errors import StorageError
from memberforge.mapping import EntityMapper
from memberforge.persistence.query import Condition, FilterOp, ListQuery
from memberforge.persistence.sequences import SequenceService

logger = logging.getLogger(__name__)

T = TypeVar("T")

ID_COLUMN = "id"
BUSINESS_ID_COLUMN = "business_id"
TENANT_COLUMN = "tenant_id"
CREATED_COLUMN = "created_at"
UPDATED_COLUMN = "updated_at"

# Columns the repository owns; updates never overwrite them
SYSTEM_COLUMNS = frozenset({ID_COLUMN, BUSINESS_ID_COLUMN, TENANT_COLUMN, CREATED_COLUMN})


@dataclass(frozen=True)
class UniqueIndex:
    """A unique index, optionally partial (e.g., only active rows)."""

    name: str
    columns: tuple[str, ...]
    where: str | None = None


@dataclass(frozen=True)
class TableSpec:
    """Everything the repository needs to store one entity."""

    name: str
    mapper: EntityMapper
    id_prefix: str
    id_digits: int = 7
    unique_indexes: tuple[UniqueIndex, ...] = ()


class SQLiteRepository:
    """SQLite-backed repository for one entity table."""

    def __init__(self, table: TableSpec, db_path: Path | str = ":memory:"):
        self.table = table
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self._sequence_service: SequenceService | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Establish database connection and create the table."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._sequence_service = SequenceService(self.conn)
        self._initialize_table()

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _initialize_table(self) -> None:
        columns = []
        for column, storage_type in self.table.mapper.columns:
            col_def = f"{column} {storage_type}"
            if column == ID_COLUMN:
                col_def += " PRIMARY KEY"
            elif column in (BUSINESS_ID_COLUMN, TENANT_COLUMN):
                col_def += " NOT NULL"
            columns.append(col_def)

        name = self.table.name
        self.conn.execute(f"CREATE TABLE IF NOT EXISTS {name} ({', '.join(columns)})")
        self.conn.execute(
            f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{name}_business_id ON {name} ({BUSINESS_ID_COLUMN})"
        )
        for index in self.table.unique_indexes:
            sql = (
                f"CREATE UNIQUE INDEX IF NOT EXISTS {index.name} "
                f"ON {name} ({', '.join(index.columns)})"
            )
            if index.where:
                sql += f" WHERE {index.where}"
            self.conn.execute(sql)
        self.conn.commit()

    # -------------------------------------------------------------------------
    # Async API
    # -------------------------------------------------------------------------

    async def create(self, row: dict[str, Any]) -> dict[str, Any]:
        return await self._run(self._create, row)

    async def find_by_id(self, id: str) -> dict[str, Any] | None:
        return await self._run(self._find_one, ID_COLUMN, id)

    async def find_by_business_id(self, business_id: str) -> dict[str, Any] | None:
        return await self._run(self._find_one, BUSINESS_ID_COLUMN, business_id)

    async def update(self, id: str, row: dict[str, Any]) -> dict[str, Any] | None:
        return await self._run(self._update, id, row)

    async def list(self, query: ListQuery) -> tuple[list[dict[str, Any]], int]:
        return await self._run(self._list, query)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._locked, fn, *args)

    def _locked(self, fn: Callable[..., T], *args: Any) -> T:
        if not self.conn or not self._sequence_service:
            raise RuntimeError("Database not connected")
        with self._lock:
            try:
                return fn(*args)
            except sqlite3.IntegrityError as e:
                self.conn.rollback()
                raise StorageError(
                    "Record conflicts with an existing record", conflict=True, detail=str(e)
                ) from e
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StorageError(detail=str(e)) from e

    # -------------------------------------------------------------------------
    # Statements (called with the lock held)
    # -------------------------------------------------------------------------

    def _create(self, row: dict[str, Any]) -> dict[str, Any]:
        data = dict(row)
        data[ID_COLUMN] = str(uuid.uuid4())
        data[BUSINESS_ID_COLUMN] = self._sequence_service.next_id(
            self.table.name, self.table.id_prefix, self.table.id_digits
        )
        now = datetime.now(timezone.utc).isoformat()
        data[CREATED_COLUMN] = now
        data[UPDATED_COLUMN] = now

        columns = [c for c, _ in self.table.mapper.columns if c in data]
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {self.table.name} ({', '.join(columns)}) VALUES ({placeholders})"
        self.conn.execute(sql, [data[c] for c in columns])
        self.conn.commit()

        logger.debug("Inserted %s %s", self.table.name, data[BUSINESS_ID_COLUMN])
        return self._find_one(ID_COLUMN, data[ID_COLUMN])

    def _find_one(self, column: str, value: str) -> dict[str, Any] | None:
        cursor = self.conn.execute(
            f"SELECT * FROM {self.table.name} WHERE {column} = ?", [value]
        )
        row = cursor.fetchone()
        if row:
            return dict(row)
        return None

    def _update(self, id: str, row: dict[str, Any]) -> dict[str, Any] | None:
        data = dict(row)
        data[UPDATED_COLUMN] = datetime.now(timezone.utc).isoformat()

        updatable = [
            c for c, _ in self.table.mapper.columns
            if c in data and c not in SYSTEM_COLUMNS
        ]
        set_clause = ", ".join(f"{c} = ?" for c in updatable)
        values = [data[c] for c in updatable]
        values.append(id)

        cursor = self.conn.execute(
            f"UPDATE {self.table.name} SET {set_clause} WHERE {ID_COLUMN} = ?", values
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            return None
        return self._find_one(ID_COLUMN, id)

    def _list(self, query: ListQuery) -> tuple[list[dict[str, Any]], int]:
        clauses: list[str] = []
        values: list[Any] = []
        for condition in query.conditions:
            sql_cond, vals = self._build_condition(condition)
            clauses.append(sql_cond)
            values.extend(vals)

        where_clause = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        order_clause = f" ORDER BY {CREATED_COLUMN}, {BUSINESS_ID_COLUMN}"
        limit_clause = " LIMIT ? OFFSET ?"

        sql = f"SELECT * FROM {self.table.name}{where_clause}{order_clause}{limit_clause}"
        cursor = self.conn.execute(sql, values + [query.page_size, query.offset])
        rows = [dict(r) for r in cursor.fetchall()]

        count_sql = f"SELECT COUNT(*) FROM {self.table.name}{where_clause}"
        total = self.conn.execute(count_sql, values).fetchone()[0]
        return rows, total

    def _build_condition(self, condition: Condition) -> tuple[str, list[Any]]:
        """Build a SQL condition from an internal-field condition."""
        mapper = self.table.mapper
        column = mapper.column_for(condition.field)

        if condition.op == FilterOp.EQ:
            value = mapper.encode_value(condition.field, condition.value)
            if value is None:
                return f"{column} IS NULL", []
            return f"{column} = ?", [value]
        if condition.op == FilterOp.IN:
            encoded = [mapper.encode_value(condition.field, v) for v in condition.value]
            if not encoded:
                return "0 = 1", []
            placeholders = ", ".join("?" for _ in encoded)
            return f"{column} IN ({placeholders})", encoded
        if condition.op == FilterOp.CONTAINS:
            text = str(condition.value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            return f"{column} LIKE ? ESCAPE '\\'", [f"%{text}%"]

        raise ValueError(f"Unsupported filter operator: {condition.op}")
