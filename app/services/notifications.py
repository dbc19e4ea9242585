from __future__ import annotations

from typing import Any, Mapping

PAYMENT_TOPICS = ("payment", "payments")

# flat keys that carry the payment id, in query strings and form bodies
FLAT_ID_KEYS = ("id", "payment_id", "data.id", "data[id]")


def _clean_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    s = str(value).strip()
    return s or None


def _clean_id(value: Any) -> str | None:
    """Mercado Pago payment ids are numeric; anything else is not a payment id."""
    s = _clean_text(value)
    if s is None or not s.isascii() or not s.isdigit():
        return None
    return s


def _flat_payment_id(params: Mapping[str, Any]) -> str | None:
    topic = _clean_text(params.get("topic") or params.get("type"))
    if topic and topic not in PAYMENT_TOPICS:
        # merchant_order and friends carry a different id space
        return None

    for key in FLAT_ID_KEYS:
        pid = _clean_id(params.get(key))
        if pid:
            return pid
    return None


def normalize_notification(body: Any, query: Mapping[str, Any] | None = None) -> str | None:
    """
    Extracts the gateway payment id from an inbound notification.

    Accepted shapes:
      - webhook body: {"type": "payment", "data": {"id": "123"}}
      - form body or IPN ping: id=123, payment_id=123, data.id=123 or
        data[id]=123, optionally with topic/type=payment

    Returns None when nothing actionable is present. Status and amount are
    never read from the notification.
    """
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict):
            if body.get("type") == "payment":
                pid = _clean_id(data.get("id"))
                if pid:
                    return pid
        else:
            # a top-level "id" next to a nested data object is the event id
            pid = _flat_payment_id(body)
            if pid:
                return pid

    return _flat_payment_id(query or {})
