"""Generic repository: the document-store primitives the ledger is built on.

Every write commits on its own: there is no multi-row transaction spanning
two calls. Any persistence failure rolls the session back and surfaces as a
single `StoreError`.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import Base

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=Base)


class StoreError(Exception):
    """Uniform failure signal for every repository call."""


class Repository:
    """Thin async CRUD over one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, op: str, exc: Exception) -> StoreError:
        logger.warning("Store %s failed: %s", op, exc)
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed %s also failed", op)
        return StoreError(f"{op} failed: {exc}")

    # ── Reads ─────────────────────────────────────────────────────────────

    async def find_one(
        self,
        model: type[RowT],
        *criteria,
        order_by: Iterable = (),
    ) -> Optional[RowT]:
        stmt = (
            select(model).where(*criteria).order_by(*order_by).limit(1)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("find_one", exc) from exc
        return result.scalars().first()

    async def find_many(
        self,
        model: type[RowT],
        *criteria,
        order_by: Iterable = (),
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Sequence[RowT]:
        """Filtered listing. `page` is 1-based; `limit` caps `page_size`."""
        stmt = (
            select(model).where(*criteria).order_by(*order_by)
            .execution_options(populate_existing=True)
        )
        size = page_size
        if limit is not None:
            size = min(size, limit) if size is not None else limit
        if size is not None:
            stmt = stmt.limit(size)
            if page and page > 1:
                stmt = stmt.offset((page - 1) * (page_size or size))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("find_many", exc) from exc
        return result.scalars().all()

    async def count(self, model: type[RowT], *criteria) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("count", exc) from exc
        return result.scalar() or 0

    # ── Writes (each commits) ─────────────────────────────────────────────

    async def create(self, model: type[RowT], values: dict[str, Any]) -> RowT:
        row = model(**values)
        self.session.add(row)
        try:
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError as exc:
            raise await self._fail("create", exc) from exc
        return row

    async def find_one_and_update(
        self,
        model: type[RowT],
        criteria: Sequence,
        values: dict[str, Any],
    ) -> Optional[RowT]:
        """Update the first row matching `criteria`; return it post-update.

        The UPDATE repeats the criteria, so if another writer changed the row
        between locate and update nothing is touched and None is returned.
        """
        try:
            found = await self.session.execute(
                select(model.id).where(*criteria).order_by(model.created_at).limit(1)
            )
            row_id = found.scalar()
            if row_id is None:
                return None
            result = await self.session.execute(
                update(model)
                .where(model.id == row_id, *criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 0:
                return None
            return await self.session.get(model, row_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise await self._fail("find_one_and_update", exc) from exc

    async def increment(
        self,
        model: type[RowT],
        row_id: str,
        column: str,
        amount: int,
    ) -> Optional[RowT]:
        """Atomic `column = column + amount` on one row; None if it is missing."""
        col = getattr(model, column)
        try:
            result = await self.session.execute(
                update(model)
                .where(model.id == row_id)
                .values({column: col + amount})
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount == 0:
                return None
            return await self.session.get(model, row_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise await self._fail("increment", exc) from exc

    async def delete_one(self, model: type[RowT], *criteria) -> bool:
        try:
            found = await self.session.execute(select(model.id).where(*criteria).limit(1))
            row_id = found.scalar()
            if row_id is None:
                return False
            await self.session.execute(delete(model).where(model.id == row_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._fail("delete_one", exc) from exc
        return True
