from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Sequence

from app.services.errors import UpstreamError
from app.services.mercadopago import MercadoPagoClient

APPROVED = "approved"

_MISSING = object()

# Mercado Pago has reported the charged amount under each of these over time.
TOTAL_AMOUNT_PATHS: tuple[tuple[Any, ...], ...] = (
    ("transaction_amount",),
    ("total_paid_amount",),
    ("transaction_details", "total_paid_amount"),
    ("transaction_amounts", 0),
)


@dataclass(frozen=True)
class PaymentRecord:
    payment_id: str
    status: str
    amount: Decimal
    correlation_token: str | None
    status_detail: str | None = None

    @property
    def approved(self) -> bool:
        return self.status == APPROVED


def _dig(obj: Any, path: Sequence[Any]) -> Any:
    cur = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, (list, tuple)) or len(cur) <= key:
                return _MISSING
            cur = cur[key]
        else:
            if not isinstance(cur, dict) or key not in cur:
                return _MISSING
            cur = cur[key]
    return _MISSING if cur is None else cur


def first_present(obj: Any, paths: Iterable[Sequence[Any]], default: Any = None) -> Any:
    """
    Returns the value at the first path that exists and is not None.
    A path is a sequence of dict keys and/or list indexes.
    """
    for path in paths:
        value = _dig(obj, path)
        if value is not _MISSING:
            return value
    return default


def to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def extract_total_amount(payment: dict) -> Decimal:
    for path in TOTAL_AMOUNT_PATHS:
        raw = _dig(payment, path)
        if raw is _MISSING:
            continue
        if isinstance(raw, dict):
            raw = first_present(raw, (("amount",), ("transaction_amount",)))
        amount = to_decimal(raw)
        if amount is not None:
            return amount
    return Decimal("0")


def payment_record_from_response(payment_id: str, data: dict) -> PaymentRecord:
    ref = data.get("external_reference")
    return PaymentRecord(
        payment_id=str(data.get("id") or payment_id),
        status=str(data.get("status") or "").strip().lower(),
        amount=extract_total_amount(data),
        correlation_token=str(ref).strip() if ref not in (None, "") else None,
        status_detail=data.get("status_detail"),
    )


async def resolve_payment(client: MercadoPagoClient, payment_id: str) -> PaymentRecord:
    """
    Fetches the canonical payment from the gateway. Status, amount and the
    external reference only ever come from here, never from the notification.
    Raises UpstreamError on any gateway failure.
    """
    data = await client.get_payment(str(payment_id))
    if not data.get("id") and not data.get("status"):
        raise UpstreamError(f"Payment {payment_id} came back without id/status")
    return payment_record_from_response(str(payment_id), data)
