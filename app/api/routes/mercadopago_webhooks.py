from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import json
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qsl

from app.core.db import get_db
from app.services.errors import PersistenceError, UpstreamError
from app.services.mailer import PostmarkMailer, get_mailer
from app.services.mercadopago import MercadoPagoClient, get_mercadopago_client
from app.services.notifications import normalize_notification
from app.services.order_confirmation_email import send_order_confirmation
from app.services.payments import resolve_payment
from app.services.reconciliation import ReconcileOutcome, reconcile

router = APIRouter()


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[mp_webhook] {ts}", *args)


async def _read_notification_body(request: Request) -> Any:
    """JSON webhook or form-encoded IPN; anything unparseable counts as empty."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        pass
    try:
        return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=False))
    except UnicodeDecodeError:
        return {}


# -----------------------------
# Webhook (notification_url)
# -----------------------------
@router.post("/webhook")
async def mercadopago_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mp: MercadoPagoClient = Depends(get_mercadopago_client),
    mailer: PostmarkMailer | None = Depends(get_mailer),
):
    body = await _read_notification_body(request)
    query = dict(request.query_params)
    _log("received body:", body, "query:", query)

    payment_id = normalize_notification(body, query)
    if not payment_id:
        # 200 so Mercado Pago stops retrying
        _log("no payment id; ignoring")
        return {"ok": True, "ignored": True, "message": "No payment id"}

    try:
        record = await resolve_payment(mp, payment_id)
    except UpstreamError as e:
        # acknowledged on purpose; the next delivery of this notification retries
        _log("could not fetch payment", payment_id, str(e))
        return {"ok": True, "retry": True, "payment_id": payment_id}

    _log("payment", record.payment_id, "status", record.status, "ref", record.correlation_token, "amount", str(record.amount))

    try:
        result = reconcile(db, record)
    except PersistenceError as e:
        _log("reconcile failed", record.correlation_token, str(e))
        return JSONResponse(status_code=500, content={"ok": False, "message": "Failed to confirm order"})

    if result.outcome == ReconcileOutcome.CONFIRMED:
        background_tasks.add_task(send_order_confirmation, result.order, result.items, mailer)

    return {
        "ok": True,
        "outcome": result.outcome.value,
        "payment_id": record.payment_id,
        "external_reference": result.correlation_token,
        "order_id": result.order_id,
    }
