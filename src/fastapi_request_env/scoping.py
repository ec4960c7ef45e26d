"""Data access that cannot bypass the request's department filter.

Handlers go through :class:`ScopedDatabase` and :class:`ScopedVectorIndex`
instead of the raw bindings. When the context carries a department filter
every statement is constrained by it, and anything that cannot be
constrained is rejected with :class:`DepartmentScopeViolation`. Without a
filter nothing is added.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from fastapi_request_env.bindings import Database, VectorIndex
from fastapi_request_env.context import RequestContext
from fastapi_request_env.exceptions import DepartmentScopeViolation
from fastapi_request_env.logging import get_logger

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ORDER_TERM = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(\s+(ASC|DESC))?$", re.IGNORECASE)


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _order_by(terms: Sequence[str]) -> str:
    for term in terms:
        if not _ORDER_TERM.match(term.strip()):
            raise ValueError(f"Invalid ORDER BY term: {term!r}")
    return ", ".join(term.strip() for term in terms)


class ScopedDatabase:
    """Department-aware wrapper around the DB binding for one request."""

    def __init__(
        self, db: Database, ctx: RequestContext, *, column: str = "department"
    ) -> None:
        self._db = db
        self._ctx = ctx
        self._column = _ident(column)

    @property
    def department(self) -> str | None:
        return self._ctx.dept_filter

    def _where(self, where: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for name, value in (where or {}).items():
            column = _ident(name)
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        if self.department is not None:
            clauses.append(f"{self._column} = ?")
            params.append(self.department)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        where: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Mapping[str, Any]]:
        cols = ", ".join(c if c == "*" else _ident(c) for c in columns)
        clause, params = self._where(where)
        sql = f"SELECT {cols} FROM {_ident(table)}{clause}"
        if order_by:
            sql += f" ORDER BY {_order_by(order_by)}"
        if offset is not None and limit is None:
            raise ValueError("offset requires a limit")
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
            if offset is not None:
                sql += " OFFSET ?"
                params.append(int(offset))
        return await self._db.fetch_all(sql, params)

    async def first(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        where: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> Mapping[str, Any] | None:
        rows = await self.select(
            table, columns=columns, where=where, order_by=order_by, limit=1
        )
        return rows[0] if rows else None

    async def count(
        self, table: str, *, where: Mapping[str, Any] | None = None
    ) -> int:
        clause, params = self._where(where)
        row = await self._db.fetch_one(
            f"SELECT COUNT(*) AS count FROM {_ident(table)}{clause}", params
        )
        return int(row["count"]) if row else 0

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        where: Mapping[str, Any] | None = None,
    ) -> int:
        if not values:
            raise ValueError("update requires at least one value")
        if self.department is not None and any(
            name.lower() == self._column.lower() for name in values
        ):
            raise DepartmentScopeViolation(
                f"Cannot change {self._column} from a department-scoped request"
            )
        assignments = ", ".join(f"{_ident(name)} = ?" for name in values)
        clause, params = self._where(where)
        return await self._db.execute(
            f"UPDATE {_ident(table)} SET {assignments}{clause}",
            [*values.values(), *params],
        )

    async def delete(
        self, table: str, *, where: Mapping[str, Any] | None = None
    ) -> int:
        clause, params = self._where(where)
        return await self._db.execute(f"DELETE FROM {_ident(table)}{clause}", params)

    def _require_unrestricted(self) -> None:
        if self.department is not None:
            logger.warning(
                "raw_query_rejected",
                user_id=self._ctx.user_id,
                dept_filter=self.department,
            )
            raise DepartmentScopeViolation(
                "Raw queries are not allowed in a department-scoped request"
            )

    async def raw_fetch_all(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[Mapping[str, Any]]:
        self._require_unrestricted()
        return await self._db.fetch_all(sql, params)

    async def raw_execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        self._require_unrestricted()
        return await self._db.execute(sql, params)


class ScopedVectorIndex:
    """Department-aware wrapper around the VECTORIZE binding."""

    def __init__(
        self, index: VectorIndex, ctx: RequestContext, *, field: str = "department"
    ) -> None:
        self._index = index
        self._ctx = ctx
        self._field = field

    async def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int = 5,
        filter: Mapping[str, Any] | None = None,
    ) -> list[Mapping[str, Any]]:
        merged = dict(filter or {})
        department = self._ctx.dept_filter
        if department is not None:
            requested = merged.get(self._field, department)
            if requested != department:
                raise DepartmentScopeViolation(
                    "Vector query targets a department outside the request scope"
                )
            merged[self._field] = department
        return await self._index.query(vector, top_k=top_k, filter=merged or None)
