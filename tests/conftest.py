import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
for _var in ("POSTMARK_SERVER_TOKEN", "POSTMARK_FROM_EMAIL"):
    os.environ.pop(_var, None)

from decimal import Decimal
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import get_db
from app.main import app
from app.models.orders import Base
from app.schemas.checkout import CheckoutProduct
from app.services.checkout import save_pending_order
from app.services.errors import UpstreamError
from app.services.mailer import get_mailer
from app.services.mercadopago import get_mercadopago_client


def make_engine(tables=None):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=tables)
    return engine


class FakeMercadoPago:
    """Stands in for MercadoPagoClient; payments are keyed by payment id."""

    def __init__(self):
        self.preferences: List[Dict[str, Any]] = []
        self.payment_lookups: List[str] = []
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.preference_response: Dict[str, Any] | None = None
        self.fail_with: Exception | None = None

    async def create_preference(self, **kwargs):
        if self.fail_with:
            raise self.fail_with
        self.preferences.append(kwargs)
        if self.preference_response is not None:
            return self.preference_response
        n = len(self.preferences)
        return {
            "id": f"pref-{n}",
            "init_point": f"https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref-{n}",
        }

    async def get_payment(self, payment_id: str):
        self.payment_lookups.append(payment_id)
        if self.fail_with:
            raise self.fail_with
        if payment_id not in self.payments:
            raise UpstreamError(f"Mercado Pago error 404 on GET /v1/payments/{payment_id}", status_code=404)
        return self.payments[payment_id]


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send(self, **kwargs):
        if self.fail:
            raise RuntimeError("Postmark error 500: boom")
        self.sent.append(kwargs)
        return {"MessageID": f"msg-{len(self.sent)}"}


@pytest.fixture
def engine():
    eng = make_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mp():
    return FakeMercadoPago()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(engine, mp, mailer):
    SessionTest = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        session = SessionTest()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mercadopago_client] = lambda: mp
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


SAMPLE_CUSTOMER = {
    "first_name": "Ana",
    "last_name": "Gomez",
    "email": "ana@example.com",
    "document": "30111222",
    "address": "Belgrano 123",
    "province": "Cordoba",
    "city": "Cordoba",
    "postal_code": "5000",
    "country": "Argentina",
    "phone": "3515550000",
    "shipping_method": "domicilio",
    "shipping_carrier": "Andreani",
}

SAMPLE_PRODUCTS = [
    {"name": "Remera", "price": "50.00", "image": "remera.jpg", "quantity": 1, "size": "M", "color": "Negro"},
    {"name": "Buzo", "price": "25.50", "image": "buzo.jpg", "quantity": 2, "size": "L", "color": "Gris"},
]


def seed_pending(db, ref: str, products=None, preference_id: str = "pref-seed"):
    save_pending_order(
        db,
        external_reference=ref,
        preference_id=preference_id,
        customer=dict(SAMPLE_CUSTOMER),
        products=[CheckoutProduct.model_validate(p) for p in (SAMPLE_PRODUCTS if products is None else products)],
    )


def count_rows(db, table: str, where: str = "", params=None) -> int:
    sql = f"select count(*) from {table}" + (f" where {where}" if where else "")
    return int(db.execute(text(sql), params or {}).scalar())


def approved_payment(ref: str, amount=100, payment_id: str = "123", status: str = "approved") -> Dict[str, Any]:
    return {
        "id": int(payment_id) if payment_id.isdigit() else payment_id,
        "status": status,
        "status_detail": "accredited" if status == "approved" else "pending_contingency",
        "external_reference": ref,
        "transaction_amount": amount,
    }


def as_decimal(value) -> Decimal:
    return Decimal(str(value))
