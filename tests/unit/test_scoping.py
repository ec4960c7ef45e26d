"""Tests for department-scoped data access."""

from __future__ import annotations

from typing import Any

import pytest

from fastapi_request_env.exceptions import DepartmentScopeViolation
from fastapi_request_env.scoping import ScopedDatabase, ScopedVectorIndex
from tests.conftest import FakeDatabase, FakeVectorIndex


class TestUnrestrictedScope:
    async def test_select_sees_every_department(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin", grant="super_admin"))
        rows = await db.select("documents", order_by=["id"])
        assert [r["id"] for r in rows] == ["d1", "d2", "d3"]

    async def test_no_implicit_filter_is_applied(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        await db.select("documents")
        sql, params = fake_db.statements[-1]
        assert sql == "SELECT * FROM documents"
        assert params == ()

    async def test_raw_queries_allowed(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        rows = await db.raw_fetch_all("SELECT id FROM documents WHERE title = ?", ["Audit"])
        assert rows == [{"id": "d2"}]

    async def test_count(self, fake_db: FakeDatabase, make_ctx: Any) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        assert await db.count("documents") == 3


class TestRestrictedScope:
    async def test_select_filters_by_department(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        rows = await db.select("documents", columns=["id", "department"])
        assert {r["department"] for r in rows} == {"finance"}
        sql, params = fake_db.statements[-1]
        assert sql.endswith("WHERE department = ?")
        assert params == ("finance",)

    async def test_filter_combines_with_caller_conditions(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        assert await db.first("documents", where={"id": "d3"}) is None
        assert (await db.first("documents", where={"id": "d1"}))["title"] == "Budget"

    async def test_caller_cannot_widen_with_other_department(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        assert await db.select("documents", where={"department": "health"}) == []

    async def test_count_is_filtered(self, fake_db: FakeDatabase, make_ctx: Any) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        assert await db.count("documents") == 2

    async def test_update_is_filtered(self, fake_db: FakeDatabase, make_ctx: Any) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        changed = await db.update("documents", {"title": "Renamed"})
        assert changed == 2
        health = await fake_db.fetch_one("SELECT title FROM documents WHERE id = 'd3'")
        assert health == {"title": "Clinics"}

    async def test_update_cannot_move_rows_out_of_scope(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        with pytest.raises(DepartmentScopeViolation):
            await db.update("documents", {"department": "health"}, where={"id": "d1"})

    @pytest.mark.parametrize("column", ["Department", "DEPARTMENT"])
    async def test_update_scope_column_check_ignores_case(
        self, fake_db: FakeDatabase, make_ctx: Any, column: str
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        with pytest.raises(DepartmentScopeViolation):
            await db.update("documents", {column: "health"}, where={"id": "d1"})
        row = await fake_db.fetch_one("SELECT department FROM documents WHERE id = 'd1'")
        assert row == {"department": "finance"}

    async def test_delete_is_filtered(self, fake_db: FakeDatabase, make_ctx: Any) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        assert await db.delete("documents", where={"id": "d3"}) == 0
        assert await db.delete("documents", where={"id": "d1"}) == 1

    async def test_raw_queries_rejected(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        with pytest.raises(DepartmentScopeViolation):
            await db.raw_fetch_all("SELECT * FROM documents")
        with pytest.raises(DepartmentScopeViolation):
            await db.raw_execute("DELETE FROM documents")
        assert fake_db.statements == []

    async def test_every_statement_carries_the_filter(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-dept", department="finance"))
        await db.select("documents", where={"title": "Budget"}, limit=5, offset=0)
        await db.count("documents")
        await db.update("documents", {"title": "x"}, where={"id": "d1"})
        await db.delete("documents", where={"id": "d2"})
        for sql, params in fake_db.statements:
            assert "department = ?" in sql
            assert "finance" in params


class TestIdentifierValidation:
    async def test_rejects_injected_table(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        with pytest.raises(ValueError):
            await db.select("documents; DROP TABLE users")

    async def test_rejects_injected_order_by(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        with pytest.raises(ValueError):
            await db.select("documents", order_by=["id; DROP TABLE users"])

    async def test_offset_without_limit_is_rejected(
        self, fake_db: FakeDatabase, make_ctx: Any
    ) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        with pytest.raises(ValueError, match="offset requires a limit"):
            await db.select("documents", offset=1)
        assert fake_db.statements == []

    async def test_accepts_direction(self, fake_db: FakeDatabase, make_ctx: Any) -> None:
        db = ScopedDatabase(fake_db, make_ctx(user_id="u-admin"))
        rows = await db.select("documents", order_by=["id DESC"], limit=1)
        assert rows[0]["id"] == "d3"


class TestScopedVectorIndex:
    async def test_unrestricted_passes_filter_through(
        self, fake_vectors: FakeVectorIndex, make_ctx: Any
    ) -> None:
        index = ScopedVectorIndex(fake_vectors, make_ctx(user_id="u-admin"))
        await index.query([0.1, 0.2], top_k=3)
        assert fake_vectors.queries[-1] == {"top_k": 3, "filter": None}

    async def test_restricted_adds_department(
        self, fake_vectors: FakeVectorIndex, make_ctx: Any
    ) -> None:
        index = ScopedVectorIndex(
            fake_vectors, make_ctx(user_id="u-dept", department="finance")
        )
        await index.query([0.1], filter={"kind": "policy"})
        assert fake_vectors.queries[-1]["filter"] == {
            "kind": "policy",
            "department": "finance",
        }

    async def test_restricted_rejects_other_department(
        self, fake_vectors: FakeVectorIndex, make_ctx: Any
    ) -> None:
        index = ScopedVectorIndex(
            fake_vectors, make_ctx(user_id="u-dept", department="finance")
        )
        with pytest.raises(DepartmentScopeViolation):
            await index.query([0.1], filter={"department": "health"})
        assert fake_vectors.queries == []
