from __future__ import annotations

import html
import os
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from app.services.mailer import PostmarkMailer
from app.services.payments import to_decimal
from app.email_templates.order_confirmation import ORDER_CONFIRMATION_HTML, ORDER_ITEM_ROW_HTML


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[order_email] {ts}", *args)


def _simple_render_double_curly(template: str, vars: dict[str, Any], raw: frozenset[str] = frozenset()) -> str:
    def repl(m: re.Match) -> str:
        key = (m.group(1) or "").strip()
        val = vars.get(key, "")
        if val is None:
            return ""
        return str(val) if key in raw else html.escape(str(val))

    return re.sub(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}", repl, template)


def _money(value: Any) -> str:
    d = to_decimal(value) or Decimal("0")
    return f"{d.quantize(Decimal('0.01')):,.2f}"


def _render_items(items: list[dict[str, Any]]) -> str:
    rows = []
    for it in items:
        qty = int(it.get("quantity") or 1)
        price = to_decimal(it.get("unit_price")) or Decimal("0")
        variant = " / ".join(str(v) for v in (it.get("size"), it.get("color")) if v)
        rows.append(
            _simple_render_double_curly(
                ORDER_ITEM_ROW_HTML,
                {
                    "quantity": qty,
                    "product_name": it.get("product_name") or "",
                    "variant": variant,
                    "line_total": _money(price * qty),
                },
            )
        )
    return "\n".join(rows)


def build_order_confirmation(order: dict[str, Any], items: list[dict[str, Any]]) -> tuple[str, str]:
    """Returns (subject, html_body) for the receipt."""
    store_name = (os.getenv("STORE_NAME") or "Nuestra tienda").strip()
    support_email = (os.getenv("SUPPORT_EMAIL") or os.getenv("POSTMARK_FROM_EMAIL") or "").strip()

    body = _simple_render_double_curly(
        ORDER_CONFIRMATION_HTML,
        {
            "order_id": order.get("id"),
            "first_name": order.get("first_name") or "",
            "store_name": store_name,
            "items_html": _render_items(items),
            "total_amount": _money(order.get("total_amount")),
            "shipping_method": order.get("shipping_method") or "",
            "shipping_carrier": order.get("shipping_carrier") or "",
            "address": order.get("address") or "",
            "city": order.get("city") or "",
            "province": order.get("province") or "",
            "postal_code": order.get("postal_code") or "",
            "support_email": support_email,
            "year": datetime.now(timezone.utc).year,
        },
        raw=frozenset({"items_html"}),
    )

    subject = f"{store_name}: pedido #{order.get('id')} confirmado"
    return subject, body


def build_order_confirmation_text(order: dict[str, Any], items: list[dict[str, Any]]) -> str:
    store_name = (os.getenv("STORE_NAME") or "Nuestra tienda").strip()
    lines = [
        f"Gracias por tu compra, {order.get('first_name') or 'cliente'}!",
        f"Tu pago en {store_name} fue aprobado. Pedido #{order.get('id')}.",
        "",
    ]
    for it in items:
        qty = int(it.get("quantity") or 1)
        price = to_decimal(it.get("unit_price")) or Decimal("0")
        variant = " / ".join(str(v) for v in (it.get("size"), it.get("color")) if v)
        name = f"{it.get('product_name') or ''} ({variant})" if variant else (it.get("product_name") or "")
        lines.append(f"{qty} x {name}: ${_money(price * qty)}")
    lines.append(f"Total pagado: ${_money(order.get('total_amount'))}")
    return "\n".join(lines)


async def send_order_confirmation(
    order: dict[str, Any],
    items: list[dict[str, Any]],
    mailer: PostmarkMailer | None = None,
) -> bool:
    """
    Best effort. Never raises: a failed receipt must not undo or fail the
    reconciliation that produced the order.
    """
    to_email = (order.get("email") or "").strip()
    if not to_email:
        _log("order has no email; receipt skipped", order.get("id"))
        return False

    if mailer is None:
        _log("mailer not configured; receipt skipped", order.get("id"))
        return False

    try:
        subject, body = build_order_confirmation(order, items)
        await mailer.send(
            to_email=to_email,
            subject=subject,
            html_body=body,
            text_body=build_order_confirmation_text(order, items),
            tag="order-confirmation",
            metadata={"order_id": order.get("id"), "external_reference": order.get("external_reference")},
        )
    except Exception as e:
        _log("receipt failed", order.get("id"), type(e).__name__, str(e))
        return False

    _log("receipt sent", order.get("id"), "to", to_email)
    return True
