"""
Persistence gateway - typed queries and mutations against the relational store.

Owns request construction and error normalisation only. Each mutation commits
on its own unless it runs inside ``unit_of_work()``, in which case all
mutations share one transaction and their change notifications are published
after the commit.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type

from sqlalchemy import func, select, inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from handoff.errors import ProviderError, ValidationError
from handoff.services.realtime import Change, RealtimeBridge, INSERT, UPDATE, DELETE

logger = logging.getLogger(__name__)

Filters = Optional[Mapping[str, Any]]


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Plain column snapshot of an ORM row"""
    return {attr.key: getattr(row, attr.key) for attr in sa_inspect(row).mapper.column_attrs}


def _table(model: Type) -> str:
    return model.__tablename__


class PersistenceGateway:
    def __init__(self, session: AsyncSession, realtime: Optional[RealtimeBridge] = None):
        self.session = session
        self.realtime = realtime
        self._pending: Optional[List[Change]] = None

    @property
    def in_unit_of_work(self) -> bool:
        return self._pending is not None

    # ─── Statement construction ───

    def _column(self, model: Type, name: str):
        columns = sa_inspect(model).columns
        if name not in columns:
            raise ValidationError(f"Unknown column '{name}' on {_table(model)}")
        return getattr(model, name)

    def _where(self, model: Type, filters: Filters) -> list:
        clauses = []
        for name, value in (filters or {}).items():
            column = self._column(model, name)
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    def _order(self, model: Type, order_by: Optional[Sequence[str]]) -> list:
        ordering = []
        for name in order_by or []:
            descending = name.startswith("-")
            column = self._column(model, name.lstrip("-"))
            ordering.append(column.desc() if descending else column.asc())
        return ordering

    def _provider_error(self, action: str, model: Optional[Type], exc: SQLAlchemyError) -> ProviderError:
        target = _table(model) if model is not None else "transaction"
        orig = getattr(exc, "orig", None)
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None) or type(exc).__name__
        logger.error(f"Store {action} on {target} failed ({code}): {exc}")
        return ProviderError(f"Could not {action} {target}", code=code)

    # ─── Reads ───

    async def query(
        self,
        model: Type,
        filters: Filters = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> list:
        stmt = select(model).where(*self._where(model, filters)).order_by(*self._order(model, order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise self._provider_error("read", model, e) from e
        return list(result.scalars().all())

    async def query_one(self, model: Type, filters: Filters = None, order_by: Optional[Sequence[str]] = None):
        """First matching row or None"""
        rows = await self.query(model, filters, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def count(self, model: Type, filters: Filters = None) -> int:
        stmt = select(func.count()).select_from(model).where(*self._where(model, filters))
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise self._provider_error("count", model, e) from e
        return int(result.scalar() or 0)

    # ─── Writes ───

    async def _finish(self, model: Type, action: str, changes: List[Change]) -> None:
        """Flush, then commit + publish now or buffer until the unit of work commits"""
        try:
            await self.session.flush()
            if not self.in_unit_of_work:
                await self.session.commit()
        except SQLAlchemyError as e:
            if not self.in_unit_of_work:
                await self.session.rollback()
            raise self._provider_error(action, model, e) from e

        if self.in_unit_of_work:
            self._pending.extend(changes)
        else:
            await self._publish(changes)

    async def _publish(self, changes: Iterable[Change]) -> None:
        if self.realtime is None:
            return
        for change in changes:
            await self.realtime.publish(change)

    def _build(self, model: Type, row: Any):
        if isinstance(row, model):
            return row
        for name in row:
            self._column(model, name)
        return model(**row)

    async def insert(self, model: Type, rows: Iterable[Any]) -> list:
        objs = [self._build(model, row) for row in rows]
        self.session.add_all(objs)
        # Snapshots are taken after the flush so defaults are populated
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            if not self.in_unit_of_work:
                await self.session.rollback()
            raise self._provider_error("insert into", model, e) from e
        changes = [Change(INSERT, _table(model), new=row_to_dict(obj)) for obj in objs]
        await self._finish(model, "insert into", changes)
        return objs

    async def upsert(self, model: Type, rows: Iterable[Mapping[str, Any]]) -> list:
        """Insert or overwrite by primary key"""
        mapper = sa_inspect(model)
        pk_names = [column.key for column in mapper.primary_key]
        objs, changes = [], []
        try:
            for row in rows:
                for name in row:
                    self._column(model, name)
                existing = None
                if all(row.get(name) is not None for name in pk_names):
                    identity = tuple(row[name] for name in pk_names)
                    existing = await self.session.get(model, identity[0] if len(identity) == 1 else identity)
                if existing is not None:
                    old = row_to_dict(existing)
                    for name, value in row.items():
                        setattr(existing, name, value)
                    objs.append(existing)
                    changes.append((UPDATE, existing, old))
                else:
                    obj = model(**row)
                    self.session.add(obj)
                    objs.append(obj)
                    changes.append((INSERT, obj, None))
            await self.session.flush()
        except SQLAlchemyError as e:
            if not self.in_unit_of_work:
                await self.session.rollback()
            raise self._provider_error("upsert into", model, e) from e

        snapshots = [Change(event, _table(model), new=row_to_dict(obj), old=old) for event, obj, old in changes]
        await self._finish(model, "upsert into", snapshots)
        return objs

    async def update(self, model: Type, filters: Filters, patch: Mapping[str, Any]) -> list:
        if not filters:
            raise ValidationError(f"Refusing to update every row of {_table(model)}")
        for name in patch:
            self._column(model, name)

        rows = await self.query(model, filters)
        changes = []
        for row in rows:
            old = row_to_dict(row)
            for name, value in patch.items():
                setattr(row, name, value)
            changes.append((row, old))
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            if not self.in_unit_of_work:
                await self.session.rollback()
            raise self._provider_error("update", model, e) from e

        snapshots = [Change(UPDATE, _table(model), new=row_to_dict(row), old=old) for row, old in changes]
        await self._finish(model, "update", snapshots)
        return rows

    async def delete(self, model: Type, filters: Filters) -> list:
        if not filters:
            raise ValidationError(f"Refusing to delete every row of {_table(model)}")
        rows = await self.query(model, filters)
        snapshots = [Change(DELETE, _table(model), old=row_to_dict(row)) for row in rows]
        try:
            for row in rows:
                await self.session.delete(row)
        except SQLAlchemyError as e:
            if not self.in_unit_of_work:
                await self.session.rollback()
            raise self._provider_error("delete from", model, e) from e
        await self._finish(model, "delete from", snapshots)
        return rows

    # ─── Transactions ───

    @asynccontextmanager
    async def unit_of_work(self):
        """Group mutations into one transaction; nested calls join the outer one"""
        if self.in_unit_of_work:
            yield self
            return

        self._pending = []
        try:
            yield self
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._provider_error("commit", None, e) from e
        except BaseException:
            await self.session.rollback()
            raise
        finally:
            pending, self._pending = self._pending, None

        await self._publish(pending)
