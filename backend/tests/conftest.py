"""Pytest configuration and fixtures."""
import hashlib
import hmac
import json
import os
import time
from decimal import Decimal

# Settings are read at import time
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dump_billing.auth.security import create_access_token
from dump_billing.config import settings
from dump_billing.database import Base, get_db
from dump_billing.models.creator import Creator
from dump_billing.models.user import User
from main import app


@pytest.fixture
async def engine():
    """In-memory database shared by every session in a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(test_db):
    """Create test client bound to the test session."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db, email: str, name: str = None, role: str = "user") -> User:
    user = User(email=email, name=name, user_role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_creator(db, owner: User, handle: str, price_usd=None, price_id=None, product_id=None, **extra) -> Creator:
    creator = Creator(
        handle=handle,
        user_id=owner.uuid,
        price_usd=Decimal(str(price_usd)) if price_usd is not None else None,
        stripe_price_id=price_id,
        stripe_product_id=product_id,
        **extra
    )
    db.add(creator)
    await db.commit()
    await db.refresh(creator)
    return creator


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.uuid, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


async def reload(db, model, **filters):
    """Fetch rows bypassing the identity map (Core writes do not refresh it)."""
    result = await db.execute(
        select(model).filter_by(**filters).execution_options(populate_existing=True)
    )
    return result.scalars().all()


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test", created: int = None) -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created if created is not None else int(time.time()),
        "data": {"object": obj},
    }


def sign_payload(payload: str, secret: str = None, timestamp: int = None) -> str:
    """Build a stripe-signature header the way Stripe signs deliveries."""
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


async def post_event(client, event: dict, secret: str = None):
    payload = json.dumps(event)
    return await client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
    )


@pytest.fixture
async def subscriber(test_db):
    return await make_user(test_db, "fan@example.com", "Fan")


@pytest.fixture
async def creator_owner(test_db):
    return await make_user(test_db, "producer@example.com", "Producer")


@pytest.fixture
async def admin_user(test_db):
    return await make_user(test_db, "admin@example.com", "Admin", role="admin")


@pytest.fixture
async def paid_creator(test_db, creator_owner):
    return await make_creator(
        test_db, creator_owner, "beatsmith",
        price_usd=10, price_id="price_123", product_id="prod_123",
        payout_email="payouts@beatsmith.example",
    )


@pytest.fixture
async def free_creator(test_db):
    owner = await make_user(test_db, "freebie@example.com", "Freebie")
    return await make_creator(test_db, owner, "freebie", price_usd=0)
