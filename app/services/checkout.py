from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pydantic
from sqlalchemy import bindparam, text, Numeric
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.schemas.checkout import CheckoutProduct, CreatePreferenceRequest
from app.services.errors import PersistenceError, UpstreamError, ValidationError
from app.services.mercadopago import MercadoPagoClient
from app.services.payments import first_present, to_decimal


def _log(*args):
    ts = datetime.now(timezone.utc).isoformat()
    print(f"[checkout] {ts}", *args)


# form key -> pending_orders column
CUSTOMER_FIELDS: Dict[str, str] = {
    "nombre": "first_name",
    "apellido": "last_name",
    "email": "email",
    "documento": "document",
    "provincia": "province",
    "ciudad": "city",
    "codigoPostal": "postal_code",
    "pais": "country",
    "celular": "phone",
    "tipoEnvio": "shipping_method",
    "empresaEnvio": "shipping_carrier",
}

PREFERENCE_ID_PATHS = (("id",), ("response", "id"), ("body", "id"))
PAYMENT_URL_PATHS = (
    ("init_point",),
    ("sandbox_init_point",),
    ("response", "init_point"),
    ("body", "init_point"),
)


@dataclass
class CheckoutRequest:
    title: str
    quantity: int
    price: Decimal
    form: Dict[str, Any]
    products: List[CheckoutProduct] = field(default_factory=list)


@dataclass
class CheckoutResult:
    correlation_token: str
    preference_id: str
    payment_url: str | None
    persisted: bool


def new_correlation_token() -> str:
    # millisecond clock for readability, random suffix for uniqueness
    return f"ref-{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def flatten_form(form: Dict[str, Any]) -> Dict[str, Any]:
    """react-select sends pais as {"label": ..., "value": ...}; keep the label."""
    clean = dict(form)
    pais = clean.get("pais")
    if isinstance(pais, dict):
        clean["pais"] = pais.get("label")
    return clean


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def customer_columns(form: Dict[str, Any]) -> Dict[str, str]:
    cols = {col: _as_text(form.get(key)) for key, col in CUSTOMER_FIELDS.items()}
    cols["address"] = f"{_as_text(form.get('calle'))} {_as_text(form.get('numero'))}".strip()
    return cols


def parse_checkout(payload: Any) -> CheckoutRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        req = CreatePreferenceRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid checkout body: {e.errors()[0].get('msg')}") from e

    title = (req.title or "").strip()
    if not title or req.price is None or req.form_data is None:
        raise ValidationError("Incomplete data to create the preference (title, price and formData are required)")

    price = to_decimal(req.price)
    if price is None:
        raise ValidationError("price must be a valid number")

    try:
        quantity = int(req.quantity if req.quantity is not None else 1)
    except (TypeError, ValueError) as e:
        raise ValidationError("quantity must be an integer") from e
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")

    products: List[CheckoutProduct] = []
    for i, raw in enumerate(req.products or []):
        try:
            products.append(CheckoutProduct.model_validate(raw))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid product at position {i}") from e

    return CheckoutRequest(
        title=title,
        quantity=quantity,
        price=price,
        form=flatten_form(req.form_data),
        products=products,
    )


def save_pending_order(
    db: Session,
    *,
    external_reference: str,
    preference_id: str | None,
    customer: Dict[str, str],
    products: List[CheckoutProduct],
) -> None:
    """Pending order + its items in one transaction."""
    try:
        db.execute(
            text(
                """
                insert into pending_orders
                    (external_reference, preference_id, first_name, last_name, email, document,
                     address, province, city, postal_code, country, phone,
                     shipping_method, shipping_carrier)
                values
                    (:ref, :pref, :first_name, :last_name, :email, :document,
                     :address, :province, :city, :postal_code, :country, :phone,
                     :shipping_method, :shipping_carrier)
                """
            ),
            {"ref": external_reference, "pref": preference_id, **customer},
        )

        if products:
            db.execute(
                text(
                    """
                    insert into pending_order_items
                        (external_reference, product_name, unit_price, image, quantity, size, color)
                    values
                        (:ref, :name, :price, :image, :quantity, :size, :color)
                    """
                ).bindparams(bindparam("price", type_=Numeric(12, 2))),
                [
                    {
                        "ref": external_reference,
                        "name": p.name,
                        "price": p.price,
                        "image": p.image,
                        "quantity": int(p.quantity),
                        "size": p.size,
                        "color": p.color,
                    }
                    for p in products
                ],
            )

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"{type(e).__name__}: {str(e)}") from e


async def create_checkout(db: Session, mp: MercadoPagoClient, payload: Any) -> CheckoutResult:
    req = parse_checkout(payload)
    token = new_correlation_token()

    _log("creating preference", {"title": req.title, "quantity": req.quantity, "unit_price": str(req.price), "ref": token})

    pref = await mp.create_preference(
        title=req.title,
        quantity=req.quantity,
        unit_price=float(req.price),
        external_reference=token,
    )

    pref_id = first_present(pref, PREFERENCE_ID_PATHS)
    if not pref_id:
        _log("preference response without id:", pref)
        raise UpstreamError("Could not read the preference id from Mercado Pago")
    pref_id = str(pref_id)
    payment_url = first_present(pref, PAYMENT_URL_PATHS)

    _log("preference created", pref_id, "ref", token)

    persisted = True
    try:
        save_pending_order(
            db,
            external_reference=token,
            preference_id=pref_id,
            customer=customer_columns(req.form),
            products=req.products,
        )
        _log("pending order saved", token, "items", len(req.products))
    except PersistenceError as e:
        # payment already initiated; reconciliation will report NoMatch for manual review
        persisted = False
        _log("error saving pending order", token, str(e))

    return CheckoutResult(
        correlation_token=token,
        preference_id=pref_id,
        payment_url=str(payment_url) if payment_url else None,
        persisted=persisted,
    )
