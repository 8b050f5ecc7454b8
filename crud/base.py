# crud/base.py: generic table access shared by the model-specific crud modules
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import asc, delete as sql_delete, desc, inspect, select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

OrderBy = Union[str, Sequence[tuple]]


class MissingColumnsError(ValueError):
    """A write was attempted without one of the table's required columns."""

    def __init__(self, table: str, columns: Iterable[str]):
        self.table = table
        self.columns = list(columns)
        super().__init__(f"{table}: missing required column(s) {', '.join(self.columns)}")


class RecordNotFound(LookupError):
    pass


def primary_key(model) -> str:
    return inspect(model).primary_key[0].name


def column_names(model) -> set:
    return {c.key for c in inspect(model).columns}


def check_required(model, data: Dict[str, Any], partial: bool = False) -> None:
    """Raise MissingColumnsError if a required column is absent or null.

    On a partial write (update) only the required columns that are present
    must be non-null.
    """
    required = getattr(model, "__required_columns__", ())
    if partial:
        missing = [c for c in required if c in data and data[c] is None]
    else:
        missing = [c for c in required if data.get(c) is None]
    if missing:
        raise MissingColumnsError(model.__tablename__, missing)


def _filtered(model, data: Dict[str, Any]) -> Dict[str, Any]:
    columns = column_names(model)
    return {k: v for k, v in data.items() if k in columns}


def _where(model, stmt, filters: Dict[str, Any]):
    for name, value in filters.items():
        column = getattr(model, name)
        if isinstance(value, (list, tuple, set, frozenset)):
            stmt = stmt.where(column.in_(list(value)))
        else:
            stmt = stmt.where(column == value)
    return stmt


def _ordered(model, stmt, order_by: Optional[OrderBy]):
    if not order_by:
        return stmt
    if isinstance(order_by, str):
        order_by = [(order_by, "asc")]
    for name, direction in order_by:
        func = desc if direction.lower() == "desc" else asc
        stmt = stmt.order_by(func(getattr(model, name)))
    return stmt


async def get(db: AsyncSession, model, key):
    return await db.get(model, key)


async def get_by(db: AsyncSession, model, **filters):
    stmt = _where(model, select(model), filters).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_many_by(
    db: AsyncSession,
    model,
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[OrderBy] = None,
    result_key: Optional[str] = None,
) -> Union[List[Any], Dict[Any, Any]]:
    """Rows matching every filter; list values match with IN.

    With result_key the rows come back as a dict keyed by that column.
    """
    filters = filters or {}
    for value in filters.values():
        if isinstance(value, (list, tuple, set, frozenset)) and not value:
            return {} if result_key else []
    stmt = _ordered(model, _where(model, select(model), filters), order_by)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    if result_key:
        return {getattr(row, result_key): row for row in rows}
    return list(rows)


async def insert(db: AsyncSession, model, data: Dict[str, Any]) -> int:
    """Insert one row and commit. Returns the new primary key."""
    values = _filtered(model, data)
    check_required(model, values)
    row = model(**values)
    db.add(row)
    try:
        await db.flush()
        key = getattr(row, primary_key(model))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return key


async def update(db: AsyncSession, model, data: Dict[str, Any]) -> int:
    """Update the row identified by the primary key in data. Returns rows changed."""
    pk = primary_key(model)
    values = _filtered(model, data)
    if values.get(pk) is None:
        raise MissingColumnsError(model.__tablename__, [pk])
    key = values.pop(pk)
    check_required(model, values, partial=True)
    stmt = sql_update(model).where(getattr(model, pk) == key).values(**values)
    try:
        result = await db.execute(stmt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result.rowcount


async def update_many(db: AsyncSession, model, rows: List[Dict[str, Any]], key: str) -> int:
    """Update several rows matched on `key` in one transaction. Returns rows changed."""
    statements = []
    for data in rows:
        values = _filtered(model, data)
        if values.get(key) is None:
            raise MissingColumnsError(model.__tablename__, [key])
        match = values.pop(key)
        check_required(model, values, partial=True)
        statements.append(sql_update(model).where(getattr(model, key) == match).values(**values))

    affected = 0
    try:
        for stmt in statements:
            result = await db.execute(stmt)
            affected += result.rowcount
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return affected


async def delete(db: AsyncSession, model, key) -> int:
    pk = primary_key(model)
    result = await db.execute(sql_delete(model).where(getattr(model, pk) == key))
    await db.commit()
    return result.rowcount
