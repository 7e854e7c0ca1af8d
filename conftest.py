import os
import tempfile

os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'moveprice_app.db')}",
)
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("WEBHOOK_URL", "http://localhost:9/webhook")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_BACKEND", "cache+memory://")

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from moveprice.main import app
from moveprice.db.session import build_engine, get_db
from moveprice.models.base import Base
from moveprice.models.audit import Audit  # noqa: F401
from moveprice.models.booking import Booking
from moveprice.models.counter_offer import CounterOffer  # noqa: F401
from moveprice.models.quotation import Quotation  # noqa: F401
from moveprice.models.rate_card import CategoryRate, VehicleRateCard
from moveprice.models.status_event import StatusEvent  # noqa: F401
from moveprice.core.security import Actor, create_access_token
from moveprice.core.config import settings
from moveprice.core.enums import UserRole
from moveprice.schemas.pricing import FloorContext, TimeContext
from moveprice.services.pricing import calculate_price
from moveprice.services.rate_store import load_rate_snapshot


CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2
TRANSPORT_ID = 10
OTHER_TRANSPORT_ID = 11
MANAGER_ID = 99

# A Monday morning outside peak hours.
NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
RATES_EFFECTIVE_FROM = datetime(2020, 1, 1, tzinfo=timezone.utc)

FRAGILE_CATEGORY = 1
PLAIN_CATEGORY = 2


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def customer():
    return Actor(id=CUSTOMER_ID, role=UserRole.CUSTOMER)


@pytest.fixture
def transport():
    return Actor(id=TRANSPORT_ID, role=UserRole.TRANSPORT)


@pytest.fixture
def other_transport():
    return Actor(id=OTHER_TRANSPORT_ID, role=UserRole.TRANSPORT)


@pytest.fixture
def manager():
    return Actor(id=MANAGER_ID, role=UserRole.MANAGER)


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    return auth_headers(create_access_token(CUSTOMER_ID, UserRole.CUSTOMER))


@pytest.fixture
def other_customer_headers():
    return auth_headers(create_access_token(OTHER_CUSTOMER_ID, UserRole.CUSTOMER))


@pytest.fixture
def transport_headers():
    return auth_headers(create_access_token(TRANSPORT_ID, UserRole.TRANSPORT))


@pytest.fixture
def other_transport_headers():
    return auth_headers(create_access_token(OTHER_TRANSPORT_ID, UserRole.TRANSPORT))


@pytest.fixture
def manager_headers():
    return auth_headers(create_access_token(MANAGER_ID, UserRole.MANAGER))


@pytest.fixture
def expired_token():
    from jose import jwt
    from moveprice.core.security import JWT_ALGORITHM

    payload = {
        "sub": str(CUSTOMER_ID),
        "role": UserRole.CUSTOMER.value,
        "exp": datetime.now(timezone.utc) - timedelta(hours=1),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


@pytest.fixture
def create_booking(session_factory):
    async def _create_booking(customer_id=CUSTOMER_ID):
        async with session_factory() as session:
            booking = Booking(customer_id=customer_id)
            session.add(booking)
            await session.commit()
            return booking.id

    return _create_booking


@pytest.fixture
def create_rate_card(session_factory):
    """Rate card with three distance tiers and two item categories, overridable per test."""
    async def _create_rate_card(transport_id=TRANSPORT_ID, **overrides):
        values = {
            "base_price": 100000,
            "per_km_first_4km": 5000,
            "per_km_5_to_40km": 3000,
            "per_km_after_40km": 2000,
            "no_elevator_fee": 50000,
            "peak_hour_multiplier": Decimal("1.2"),
            "weekend_multiplier": Decimal("1.3"),
            "holiday_multiplier": Decimal("1.5"),
            "effective_from": RATES_EFFECTIVE_FROM,
        }
        values.update(overrides)
        async with session_factory() as session:
            card = VehicleRateCard(transport_id=transport_id, **values)
            session.add(card)
            session.add_all([
                CategoryRate(
                    transport_id=transport_id,
                    category_id=FRAGILE_CATEGORY,
                    price_per_unit=200000,
                    fragile_multiplier=Decimal("1.2"),
                    effective_from=values["effective_from"],
                ),
                CategoryRate(
                    transport_id=transport_id,
                    category_id=PLAIN_CATEGORY,
                    price_per_unit=50000,
                    effective_from=values["effective_from"],
                ),
            ])
            await session.commit()
            return card.id

    return _create_rate_card


@pytest.fixture
def price_for(db):
    """Breakdown and snapshot for a flat-priced move: base price only, no distance or items."""
    async def _price_for(transport_id=TRANSPORT_ID, at=NOW):
        rates = await load_rate_snapshot(db, transport_id, [], at)
        breakdown = calculate_price(0, [], rates, FloorContext(), TimeContext())
        return breakdown, rates

    return _price_for


@pytest.fixture
def app_settings():
    return settings


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to pricing"
    )
    config.addinivalue_line(
        "markers", "negotiation: marks tests related to counter-offers"
    )
    config.addinivalue_line(
        "markers", "binding: marks tests related to booking price binding"
    )
    config.addinivalue_line(
        "markers", "concurrency: marks tests that race operations against each other"
    )
    config.addinivalue_line(
        "markers", "webhooks: marks tests related to status event delivery"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
