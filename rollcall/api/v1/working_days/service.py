"""Working-day calendar. Every date is a holiday unless explicitly opened; Sundays never open."""

import logging
from datetime import date, timedelta
from typing import Iterator, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall.core.events import track_mutation
from rollcall.core.exceptions import PersistenceError, ValidationError
from rollcall.core.models import WorkingDay

from .schemas import WorkingDayResponse

logger = logging.getLogger(__name__)

SUNDAY = 6


def is_sunday(d: date) -> bool:
    return d.weekday() == SUNDAY


def effective_working_day(d: date, explicit: Optional[bool]) -> bool:
    return bool(explicit) and not is_sunday(d)


def date_range(start: date, end: date) -> Iterator[date]:
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def _to_response(d: date, row: Optional[WorkingDay]) -> WorkingDayResponse:
    return WorkingDayResponse(
        date=d,
        is_working_day=effective_working_day(d, row.is_working_day if row else None),
        is_sunday=is_sunday(d),
        explicit=row is not None,
        updated_by=row.updated_by if row else None,
        updated_at=row.updated_at if row else None,
    )


async def is_working_day(db: AsyncSession, d: date) -> bool:
    if is_sunday(d):
        return False
    row = await db.get(WorkingDay, d)
    return effective_working_day(d, row.is_working_day if row else None)


async def working_days_between(db: AsyncSession, start: date, end: date) -> Set[date]:
    """Effective working days in [start, end]."""
    result = await db.execute(
        select(WorkingDay.date).where(
            WorkingDay.date >= start,
            WorkingDay.date <= end,
            WorkingDay.is_working_day.is_(True),
        )
    )
    return {d for d in result.scalars().all() if not is_sunday(d)}


async def list_working_days(db: AsyncSession, start: date, end: date) -> List[WorkingDayResponse]:
    if end < start:
        raise ValidationError("end date must not be before start date")
    result = await db.execute(
        select(WorkingDay)
        .where(WorkingDay.date >= start, WorkingDay.date <= end)
        .order_by(WorkingDay.date)
    )
    return [_to_response(row.date, row) for row in result.scalars().all()]


async def set_working_day(db: AsyncSession, d: date, is_working: bool, actor: str) -> WorkingDayResponse:
    if is_working and is_sunday(d):
        raise ValidationError("Sundays are always holidays.")
    async with track_mutation("working_days.set", d.isoformat(), actor=actor):
        row = await db.get(WorkingDay, d)
        if row is None:
            row = WorkingDay(date=d)
            db.add(row)
        row.is_working_day = is_working
        row.updated_by = actor
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError("Failed to update working day") from e
        await db.refresh(row)
    logger.info("%s marked as %s by %s", d.isoformat(), "working day" if is_working else "holiday", actor)
    return _to_response(d, row)


async def toggle_working_day(db: AsyncSession, d: date, actor: str) -> WorkingDayResponse:
    """Flip the effective state. A date with no row is a holiday, so its first toggle opens it."""
    row = await db.get(WorkingDay, d)
    current = effective_working_day(d, row.is_working_day if row else None)
    return await set_working_day(db, d, not current, actor)
