from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from app.core.db import get_db
from app.main import app
from app.models.orders import PendingOrder, PendingOrderItem
from app.services.errors import UpstreamError
from app.services.mailer import get_mailer
from app.services.mercadopago import get_mercadopago_client
from conftest import approved_payment, as_decimal, count_rows, make_engine, seed_pending


WEBHOOK_BODY = {"type": "payment", "action": "payment.created", "data": {"id": "123"}}


def _snapshot(db):
    return {
        t: count_rows(db, t)
        for t in ("pending_orders", "pending_order_items", "confirmed_orders", "confirmed_order_items")
    }


def test_approved_payment_confirms_order(client, mp, mailer, db):
    seed_pending(db, "ref-777")
    mp.payments["123"] = approved_payment("ref-777", amount=100)

    r = client.post("/webhook", json=WEBHOOK_BODY)

    assert r.status_code == 200
    data = r.json()
    assert data["outcome"] == "confirmed"
    assert data["external_reference"] == "ref-777"

    total = db.execute(text("select total_amount from confirmed_orders where external_reference = 'ref-777'")).scalar()
    assert as_decimal(total) == 100
    assert count_rows(db, "confirmed_orders") == 1
    assert count_rows(db, "pending_orders", "external_reference = 'ref-777'") == 0

    # receipt goes out after the response
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to_email"] == "ana@example.com"
    assert mailer.sent[0]["tag"] == "order-confirmation"


def test_duplicate_delivery_is_a_no_op(client, mp, mailer, db):
    seed_pending(db, "ref-777")
    mp.payments["123"] = approved_payment("ref-777", amount=100)

    first = client.post("/webhook", json=WEBHOOK_BODY)
    after_first = _snapshot(db)
    second = client.post("/webhook", json=WEBHOOK_BODY)

    assert first.json()["outcome"] == "confirmed"
    assert second.status_code == 200
    assert second.json()["outcome"] == "no_match"
    assert _snapshot(db) == after_first
    assert len(mailer.sent) == 1


def test_notification_without_id_never_touches_store(mp):
    fake_db = MagicMock()

    def _get_db():
        yield fake_db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mercadopago_client] = lambda: mp
    try:
        r = TestClient(app).post("/webhook", json={"type": "payment", "data": {}})
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 200
    assert r.json()["ignored"] is True
    assert fake_db.execute.call_count == 0
    assert fake_db.commit.call_count == 0
    assert mp.payment_lookups == []


def test_empty_body_is_acknowledged(client, mp):
    r = client.post("/webhook")

    assert r.status_code == 200
    assert r.json()["ignored"] is True
    assert mp.payment_lookups == []


def test_query_param_ping(client, mp, db):
    seed_pending(db, "ref-q")
    mp.payments["555"] = approved_payment("ref-q", payment_id="555")

    r = client.post("/webhook?topic=payment&id=555")

    assert r.status_code == 200
    assert r.json()["outcome"] == "confirmed"
    assert mp.payment_lookups == ["555"]


def test_form_encoded_ping(client, mp, db):
    seed_pending(db, "ref-f")
    mp.payments["42"] = approved_payment("ref-f", payment_id="42")

    r = client.post(
        "/webhook",
        content="payment_id=42",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )

    assert r.status_code == 200
    assert r.json()["outcome"] == "confirmed"


def test_non_approved_payment_is_ignored(client, mp, mailer, db):
    seed_pending(db, "ref-p")
    mp.payments["123"] = approved_payment("ref-p", status="in_process")

    r = client.post("/webhook", json=WEBHOOK_BODY)

    assert r.status_code == 200
    assert r.json()["outcome"] == "ignored"
    assert count_rows(db, "pending_orders", "external_reference = 'ref-p'") == 1
    assert mailer.sent == []


def test_unknown_reference_is_acknowledged(client, mp, db):
    mp.payments["123"] = approved_payment("ref-nobody")

    r = client.post("/webhook", json=WEBHOOK_BODY)

    assert r.status_code == 200
    assert r.json()["outcome"] == "no_match"
    assert count_rows(db, "confirmed_orders") == 0


def test_gateway_failure_is_acknowledged_for_retry(client, mp, db):
    seed_pending(db, "ref-777")
    mp.fail_with = UpstreamError("Mercado Pago timeout on GET /v1/payments/123")

    r = client.post("/webhook", json=WEBHOOK_BODY)

    assert r.status_code == 200
    assert r.json()["retry"] is True
    assert count_rows(db, "pending_orders") == 1


def test_store_failure_returns_500(mp, mailer):
    engine = make_engine(tables=[PendingOrder.__table__, PendingOrderItem.__table__])

    SessionTest = sessionmaker(bind=engine)
    with SessionTest() as session:
        seed_pending(session, "ref-777")

    def _get_db():
        session = SessionTest()
        try:
            yield session
        finally:
            session.close()

    mp.payments["123"] = approved_payment("ref-777")
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mercadopago_client] = lambda: mp
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        r = TestClient(app).post("/webhook", json=WEBHOOK_BODY)
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert mailer.sent == []
    with SessionTest() as session:
        assert count_rows(session, "pending_orders") == 1
    engine.dispose()


def test_receipt_failure_does_not_affect_response(client, mp, mailer, db):
    mailer.fail = True
    seed_pending(db, "ref-777")
    mp.payments["123"] = approved_payment("ref-777")

    r = client.post("/webhook", json=WEBHOOK_BODY)

    assert r.status_code == 200
    assert r.json()["outcome"] == "confirmed"
    assert count_rows(db, "confirmed_orders") == 1


def test_checkout_then_webhook_end_to_end(client, mp, mailer, db):
    r = client.post(
        "/create_preference",
        json={
            "title": "Shirt",
            "price": 100,
            "formData": {"nombre": "Ana", "email": "a@x.com", "pais": {"label": "Argentina"}},
            "products": [{"name": "Shirt", "price": 100, "quantity": 1, "size": "M", "color": "Azul"}],
        },
    )
    token = r.json()["correlationToken"]
    mp.payments["900"] = approved_payment(token, amount=100, payment_id="900")

    w = client.post("/webhook", json={"type": "payment", "data": {"id": "900"}})

    assert w.json()["outcome"] == "confirmed"
    order = db.execute(
        text("select id, country, email from confirmed_orders where external_reference = :r"), {"r": token}
    ).mappings().one()
    assert order["country"] == "Argentina"
    assert count_rows(db, "confirmed_order_items", "order_id = :oid", {"oid": order["id"]}) == 1
    assert mailer.sent[0]["to_email"] == "a@x.com"


def test_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"ok": True}


def test_form_encoded_event_with_bracket_id(client, mp, db):
    seed_pending(db, "ref-b")
    mp.payments["123"] = approved_payment("ref-b")

    r = client.post(
        "/webhook",
        content="type=payment&data[id]=123",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )

    assert r.status_code == 200
    assert r.json()["outcome"] == "confirmed"
    assert mp.payment_lookups == ["123"]


def test_path_like_id_is_ignored_without_gateway_call(client, mp):
    r = client.post("/webhook?id=../../users/me")

    assert r.status_code == 200
    assert r.json()["ignored"] is True
    assert mp.payment_lookups == []
