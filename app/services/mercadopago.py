from __future__ import annotations

import os
import httpx
from dataclasses import dataclass, field
from typing import Any, Dict
from urllib.parse import quote

from app.services.errors import UpstreamError


@dataclass(frozen=True)
class MercadoPagoConfig:
    access_token: str
    notification_url: str
    back_urls: Dict[str, str] = field(default_factory=dict)
    currency: str = "ARS"
    api_base: str = "https://api.mercadopago.com"
    timeout: float = 15.0

    @staticmethod
    def from_env() -> "MercadoPagoConfig":
        port = os.getenv("PORT") or "3000"
        return MercadoPagoConfig(
            access_token=(os.getenv("MP_ACCESS_TOKEN") or "").strip(),
            notification_url=(os.getenv("MP_NOTIFICATION_URL") or f"http://localhost:{port}/webhook").strip(),
            back_urls={
                "success": (os.getenv("MP_SUCCESS_URL") or "http://localhost:5173/success").strip(),
                "failure": (os.getenv("MP_FAILURE_URL") or "http://localhost:5173/failure").strip(),
                "pending": (os.getenv("MP_PENDING_URL") or "http://localhost:5173/pending").strip(),
            },
            currency=(os.getenv("MP_CURRENCY") or "ARS").strip().upper(),
            api_base=(os.getenv("MP_API_BASE") or "https://api.mercadopago.com").strip().rstrip("/"),
            timeout=float(os.getenv("MP_TIMEOUT_SECONDS") or "15"),
        )


class MercadoPagoClient:
    """
    Thin async wrapper over the two Mercado Pago REST calls we need:
      - POST /checkout/preferences
      - GET  /v1/payments/{id}
    Every failure (network, timeout, non-2xx, non-JSON) becomes UpstreamError.
    """

    def __init__(self, cfg: MercadoPagoConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.cfg.access_token:
            raise UpstreamError("MP_ACCESS_TOKEN is not set")
        return {
            "Authorization": f"Bearer {self.cfg.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Dict[str, Any] | None = None) -> Dict[str, Any]:
        url = f"{self.cfg.api_base}{path}"
        headers = self._headers()

        try:
            async with httpx.AsyncClient(timeout=self.cfg.timeout, transport=self._transport) as client:
                resp = await client.request(method, url, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Mercado Pago timeout on {method} {path}: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Mercado Pago unreachable on {method} {path}: {type(e).__name__}: {e}") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise UpstreamError(
                f"Mercado Pago error {resp.status_code} on {method} {path}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Mercado Pago returned non-JSON on {method} {path}") from e

        if not isinstance(data, dict):
            raise UpstreamError(f"Mercado Pago returned unexpected payload on {method} {path}")

        return data

    async def create_preference(
        self,
        *,
        title: str,
        quantity: int,
        unit_price: float,
        external_reference: str,
    ) -> Dict[str, Any]:
        body = {
            "items": [
                {
                    "title": title,
                    "quantity": int(quantity),
                    "unit_price": float(unit_price),
                    "currency_id": self.cfg.currency,
                }
            ],
            "external_reference": external_reference,
            "auto_return": "approved",
            "back_urls": dict(self.cfg.back_urls),
            "notification_url": self.cfg.notification_url,
        }
        return await self._request("POST", "/checkout/preferences", json=body)

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/payments/{quote(str(payment_id), safe='')}")


def get_mercadopago_client() -> MercadoPagoClient:
    return MercadoPagoClient(MercadoPagoConfig.from_env())
