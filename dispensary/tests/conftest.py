# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["COMPLIANCE_TIMEZONE"] = "UTC"

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dispensary.database import Base, get_db
from dispensary.main import app
from dispensary.models import ComplianceRule, User, Store, Product, Order, OrderItem, OrderStatus
from dispensary.utils.clock import utcnow

# Fixed evaluation instant: 2026-10-19 18:00 UTC
NOW = datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

@pytest.fixture
def db(session_factory):
    with session_factory() as s:
        yield s

@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try: yield s
        finally: s.close()
    app.dependency_overrides[get_db] = _get_db
    # orders placed over HTTP land on the same day as NOW
    app.dependency_overrides[utcnow] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()

def add_user(db, *, dob=date(1991, 6, 15), verified=True, email=None):
    u = User(email=email or f"{uuid4().hex}@example.com",
             name="Test User", date_of_birth=dob, age_verified=verified)
    db.add(u)
    db.commit()
    return u

def add_order(db, user_id, store_id, items, *, status=OrderStatus.CONFIRMED, created_at=None):
    o = Order(user_id=user_id, store_id=store_id, status=status,
              created_at=created_at or NOW - timedelta(hours=1))
    for product_id, qty in items:
        o.items.append(OrderItem(product_id=product_id, quantity=qty, unit_price=15.0, line_total=15.0 * qty))
    db.add(o)
    db.commit()
    return o

@pytest.fixture
def seed(db):
    """CA at 1000mg/day, 21+, verification required; a verified 35 year old."""
    db.add(ComplianceRule(state_code="CA", min_age=21, max_daily_thc_mg=1000, must_verify_age=True))
    ca = Store(name="CA Test Dispensary", state_code="CA", city="Los Angeles")
    tx = Store(name="TX Test Store", state_code="TX", city="Austin")
    low = Product(name="Low THC Edible", category="Edibles", thc_mg_per_unit=10, default_price=15.0)
    high = Product(name="High THC Flower", category="Flower", thc_mg_per_unit=800, default_price=50.0)
    flower = Product(name="Plain Flower", category="Flower", thc_percent=20, default_price=12.0)
    cbd = Product(name="CBD Balm", category="Topicals", default_price=20.0)
    db.add_all([ca, tx, low, high, flower, cbd])
    db.commit()
    user = add_user(db, email="compliance-test@example.com")
    return SimpleNamespace(user=user.id, store=ca.id, tx_store=tx.id,
                           low=low.id, high=high.id, flower=flower.id, cbd=cbd.id)
