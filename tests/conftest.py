"""
Shared fixtures: an application context on a throwaway SQLite file with a
hand-driven clock, plus a small factory for users, vehicles and capacity.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from apps.api.billing.models import BalanceGrant, PenaltyEntry
from apps.api.capacity.models import Pool, Unit
from apps.api.user.models import User, UserRoles
from apps.api.vehicle.models import Vehicle
from apps.context import build_context
from apps.settings import AppConfig
from core.db.core import DatabaseHandle

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class Factory:
    def __init__(self, context):
        self.context = context
        self._plates = 0

    async def _save(self, obj):
        async with self.context.db.session() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def user(self, role: UserRoles = UserRoles.USER, name: str = "Test User") -> User:
        return await self._save(User(fullname=name, role=role.value))

    async def operator(self) -> User:
        return await self.user(role=UserRoles.ATTENDANT, name="Gate Attendant")

    async def vehicle(self, owner: User, vehicle_type: str = "car", plate: Optional[str] = None) -> Vehicle:
        self._plates += 1
        return await self._save(
            Vehicle(
                user_id=owner.id,
                plate_number=plate or f"TEST{self._plates:04d}",
                vehicle_type=vehicle_type,
            )
        )

    async def unit(self, section: str = "A", label: str = "1", category: str = "car") -> Unit:
        return await self._save(Unit(section=section, label=label, category=category))

    async def pool(self, name: str = "MC", total: int = 5, category: str = "motorcycle") -> Pool:
        return await self._save(Pool(name=name, category=category, total_capacity=total))

    async def grant(self, user: User, hours, granted_at: Optional[datetime] = None) -> BalanceGrant:
        hours = Decimal(str(hours))
        return await self._save(
            BalanceGrant(
                user_id=user.id,
                hours_granted=hours,
                hours_remaining=hours,
                hours_used=Decimal("0"),
                granted_at=granted_at or self.context.clock(),
            )
        )

    async def penalty(self, user: User, hours, created_at: Optional[datetime] = None) -> PenaltyEntry:
        return await self._save(
            PenaltyEntry(
                user_id=user.id,
                penalty_hours=Decimal(str(hours)),
                created_at=created_at or self.context.clock(),
            )
        )

    async def driver(self, vehicle_type: str = "car", hours="10"):
        """A user with a vehicle and some balance, ready to reserve."""
        user = await self.user()
        vehicle = await self.vehicle(user, vehicle_type=vehicle_type)
        if hours:
            await self.grant(user, hours)
        return user, vehicle

    async def reload(self, model, pk):
        async with self.context.db.session() as session:
            return await session.get(model, pk)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings(tmp_path):
    return AppConfig(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'parking.db'}",
        SWEEPER_ENABLED=False,
        GRACE_PERIOD_MINUTES=15,
    )


@pytest.fixture
async def context(settings, clock):
    db = DatabaseHandle(settings.DATABASE_URL)
    context = build_context(settings, db=db, clock=clock)
    await db.create_all()
    yield context
    await context.events.stop()
    await db.dispose()


@pytest.fixture
def factory(context):
    return Factory(context)


@pytest.fixture
async def session(context):
    async with context.db.session() as session:
        yield session
