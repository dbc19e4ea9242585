from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from sqlalchemy import bindparam, text, Numeric
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.errors import PersistenceError
from app.services.payments import PaymentRecord, to_decimal


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[reconcile] {ts}", *args)


class ReconcileOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_PROCESSED = "already_processed"
    NO_MATCH = "no_match"
    IGNORED = "ignored"


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    correlation_token: str | None = None
    order_id: int | None = None
    order: Dict[str, Any] | None = None
    items: List[Dict[str, Any]] = field(default_factory=list)


CUSTOMER_COLUMNS = (
    "first_name",
    "last_name",
    "email",
    "document",
    "address",
    "province",
    "city",
    "postal_code",
    "country",
    "phone",
    "shipping_method",
    "shipping_carrier",
)

ITEM_COLUMNS = ("product_name", "unit_price", "image", "quantity", "size", "color")


# -----------------------------
# Store helpers (no commit inside)
# -----------------------------
def get_pending_order(db: Session, external_reference: str) -> Dict[str, Any] | None:
    row = db.execute(
        text(
            f"""
            select id, external_reference, preference_id, {", ".join(CUSTOMER_COLUMNS)}
              from pending_orders
             where external_reference = :ref
             limit 1
            """
        ),
        {"ref": str(external_reference)},
    ).mappings().fetchone()

    return dict(row) if row else None


def get_pending_items(db: Session, external_reference: str) -> List[Dict[str, Any]]:
    rows = db.execute(
        text(
            f"""
            select {", ".join(ITEM_COLUMNS)}
              from pending_order_items
             where external_reference = :ref
             order by id asc
            """
        ),
        {"ref": str(external_reference)},
    ).mappings().fetchall()

    items: List[Dict[str, Any]] = []
    for r in rows or []:
        item = dict(r)
        item["unit_price"] = to_decimal(item.get("unit_price")) or to_decimal(0)
        item["quantity"] = int(item.get("quantity") or 1)
        items.append(item)
    return items


def _claim_pending_order(db: Session, external_reference: str) -> bool:
    """
    Conditional delete: exactly one concurrent caller sees rowcount == 1.
    On Postgres the second DELETE blocks on the row lock until the first
    transaction ends, then matches nothing.
    """
    res = db.execute(
        text("delete from pending_orders where external_reference = :ref"),
        {"ref": str(external_reference)},
    )
    if res.rowcount != 1:
        return False

    db.execute(
        text("delete from pending_order_items where external_reference = :ref"),
        {"ref": str(external_reference)},
    )
    return True


def _insert_confirmed_order(db: Session, pending: Dict[str, Any], record: PaymentRecord) -> int:
    cols = ", ".join(CUSTOMER_COLUMNS)
    params = ", ".join(f":{c}" for c in CUSTOMER_COLUMNS)

    row = db.execute(
        text(
            f"""
            insert into confirmed_orders
                (external_reference, payment_id, {cols}, total_amount, payment_status)
            values
                (:ref, :pid, {params}, :total, :status)
            returning id
            """
        ).bindparams(bindparam("total", type_=Numeric(12, 2))),
        {
            "ref": str(record.correlation_token),
            "pid": str(record.payment_id),
            **{c: pending.get(c) or "" for c in CUSTOMER_COLUMNS},
            "total": record.amount,
            "status": record.status,
        },
    ).fetchone()

    return int(row[0])


def _insert_confirmed_items(db: Session, order_id: int, items: List[Dict[str, Any]]) -> None:
    if not items:
        return

    db.execute(
        text(
            """
            insert into confirmed_order_items
                (order_id, product_name, unit_price, image, quantity, size, color)
            values
                (:oid, :product_name, :unit_price, :image, :quantity, :size, :color)
            """
        ).bindparams(bindparam("unit_price", type_=Numeric(12, 2))),
        [{"oid": int(order_id), **{c: it.get(c) for c in ITEM_COLUMNS}} for it in items],
    )


# -----------------------------
# State machine
# -----------------------------
def reconcile(db: Session, record: PaymentRecord) -> ReconcileResult:
    """
    Pending -> Confirmed (approved payment) or Pending -> Ignored (anything else).

    Idempotent: the pending order is the precondition, and confirming it
    deletes it in the same transaction that writes the confirmed order.
    A repeated approved notification finds nothing and returns NO_MATCH.

    Raises PersistenceError when the store fails; nothing is applied then and
    the pending order stays in place for the gateway's next delivery.
    """
    token = record.correlation_token

    if not record.approved:
        _log("payment not approved; ignoring", record.payment_id, "status", record.status, "ref", token)
        return ReconcileResult(outcome=ReconcileOutcome.IGNORED, correlation_token=token)

    if not token:
        _log("approved payment without external_reference; needs manual review", record.payment_id)
        return ReconcileResult(outcome=ReconcileOutcome.NO_MATCH)

    try:
        pending = get_pending_order(db, token)
        if not pending:
            db.rollback()
            _log("no pending order for ref (already confirmed or never stored)", token, "payment", record.payment_id)
            return ReconcileResult(outcome=ReconcileOutcome.NO_MATCH, correlation_token=token)

        items = get_pending_items(db, token)

        if not _claim_pending_order(db, token):
            db.rollback()
            _log("pending order claimed by a concurrent delivery", token)
            return ReconcileResult(outcome=ReconcileOutcome.ALREADY_PROCESSED, correlation_token=token)

        order_id = _insert_confirmed_order(db, pending, record)
        _insert_confirmed_items(db, order_id, items)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # unique external_reference on confirmed_orders
        _log("confirmed order already exists for ref", token, type(e).__name__)
        return ReconcileResult(outcome=ReconcileOutcome.ALREADY_PROCESSED, correlation_token=token)
    except SQLAlchemyError as e:
        db.rollback()
        _log("error confirming order", token, type(e).__name__, str(e))
        raise PersistenceError(f"{type(e).__name__}: {str(e)}") from e

    order = {c: pending.get(c) or "" for c in CUSTOMER_COLUMNS}
    order.update(
        {
            "id": order_id,
            "external_reference": token,
            "payment_id": record.payment_id,
            "total_amount": record.amount,
            "payment_status": record.status,
        }
    )

    _log("order confirmed", order_id, "ref", token, "total", str(record.amount), "items", len(items))

    return ReconcileResult(
        outcome=ReconcileOutcome.CONFIRMED,
        correlation_token=token,
        order_id=order_id,
        order=order,
        items=items,
    )
