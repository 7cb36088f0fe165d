import os

# Settings are read at import time
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DB_DSN"] = "sqlite+aiosqlite:///:memory:"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["MAINTENANCE_LOOP_SECONDS"] = "0"
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"
os.environ["CORS_ALLOW_ORIGINS"] = "*"
os.environ["SITE_URL"] = "https://trips.example.com"
os.environ["WHATSAPP_PHONE_NUMBER_ID"] = ""
os.environ["WHATSAPP_ACCESS_TOKEN"] = ""

from datetime import date, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tripdesk.core import ExternalServiceError
from tripdesk.models import Base, Batch, Booking, Trip
from tripdesk.security import create_token
from tripdesk.services import WalletService
from tripdesk.statuses import BatchStatus, BookingStatus, PaymentStatus

STAFF_ID = 900


class FakeSender:
    """In-memory stand-in for the WhatsApp client."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.sent: list[tuple[str, str]] = []
        self.fail_phones: set[str] = set()

    async def send_text(self, phone: str, body: str):
        if phone in self.fail_phones:
            raise ExternalServiceError("whatsapp", f"recipient {phone} rejected")
        self.sent.append((phone, body))
        return f"wamid.{len(self.sent)}"


class Factory:
    """Builds committed catalogue/booking rows for tests."""

    def __init__(self, session):
        self.session = session
        self._slug = 0

    async def trip(self, *, booking_live: bool = True, price_default: int = 10000, **kw) -> Trip:
        self._slug += 1
        trip = Trip(
            slug=kw.pop("slug", f"trip-{self._slug}"),
            name=kw.pop("name", f"Trip {self._slug}"),
            price_default=price_default,
            booking_live=booking_live,
            is_active=kw.pop("is_active", True),
            **kw,
        )
        self.session.add(trip)
        await self.session.commit()
        return trip

    async def batch(
        self,
        trip: Trip,
        *,
        size: int = 20,
        booked: int = 0,
        status: str = BatchStatus.active.value,
        start_in_days: int = 20,
        length_days: int = 5,
        price_override=None,
    ) -> Batch:
        start = date.today() + timedelta(days=start_in_days)
        batch = Batch(
            trip_id=trip.id,
            batch_name=f"{trip.name} {start.isoformat()}",
            start_date=start,
            end_date=start + timedelta(days=length_days),
            batch_size=size,
            seats_booked=booked,
            status=status,
            price_override=price_override,
        )
        self.session.add(batch)
        await self.session.commit()
        return batch

    async def booking(
        self,
        trip: Trip,
        batch: Batch,
        *,
        user_id: int = 1,
        travelers: int = 2,
        unit_price: int = 10000,
        advance_paid: int = 0,
        booking_status: str = BookingStatus.initiated.value,
        payment_status: str = PaymentStatus.pending.value,
        whatsapp_optin: bool = True,
        phone: str = "+919876543210",
        referral_code=None,
        created_at=None,
    ) -> Booking:
        total = unit_price * travelers
        booking = Booking(
            user_id=user_id,
            trip_id=trip.id,
            batch_id=batch.id if batch else None,
            full_name="Asha Traveller",
            email="asha@example.com",
            phone=phone,
            num_travelers=travelers,
            unit_price=unit_price,
            subtotal_amount=total,
            wallet_discount=0,
            total_amount=total,
            advance_paid=advance_paid,
            booking_status=booking_status,
            payment_status=payment_status,
            whatsapp_optin=whatsapp_optin,
            referral_code_used=referral_code,
            created_at=created_at or datetime.utcnow(),
        )
        self.session.add(booking)
        await self.session.commit()
        return booking

    async def fund_wallet(self, user_id: int, amount: int):
        tx = await WalletService(self.session).admin_credit(user_id, amount, "Test funding", STAFF_ID)
        await self.session.commit()
        return tx


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as sess:
        yield sess


@pytest.fixture
def factory(session):
    return Factory(session)


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
async def client(session_factory, sender):
    from tripdesk.main import app
    from tripdesk.infrastructure import get_session
    from tripdesk.deps import get_whatsapp_sender

    async def _get_session():
        async with session_factory() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_whatsapp_sender] = lambda: sender
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: int, *roles: str) -> dict:
    token = create_token(user_id, list(roles) or ["user"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    return auth_headers
