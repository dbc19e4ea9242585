from __future__ import annotations

import os
import httpx
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PostmarkConfig:
    server_token: str
    from_email: str
    message_stream: str = "outbound"
    timeout: float = 10.0


class PostmarkMailer:
    """
    Postmark sender for transactional mail (order receipts).
    Uses env vars:
      - POSTMARK_SERVER_TOKEN
      - POSTMARK_FROM_EMAIL
      - POSTMARK_MESSAGE_STREAM (optional)
      - POSTMARK_TIMEOUT_SECONDS (optional)
    """

    api_url = "https://api.postmarkapp.com/email"

    def __init__(self, cfg: PostmarkConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        self._transport = transport

    @staticmethod
    def from_env() -> "PostmarkMailer":
        token = (os.getenv("POSTMARK_SERVER_TOKEN") or "").strip()
        from_email = (os.getenv("POSTMARK_FROM_EMAIL") or "").strip()
        stream = (os.getenv("POSTMARK_MESSAGE_STREAM") or "outbound").strip() or "outbound"
        timeout = float(os.getenv("POSTMARK_TIMEOUT_SECONDS") or "10")

        if not token:
            raise RuntimeError("POSTMARK_SERVER_TOKEN is not set")
        if not from_email:
            raise RuntimeError("POSTMARK_FROM_EMAIL is not set")

        return PostmarkMailer(
            PostmarkConfig(server_token=token, from_email=from_email, message_stream=stream, timeout=timeout)
        )

    async def send(
        self,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
        tag: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "From": self.cfg.from_email,
            "To": to_email,
            "Subject": subject,
            "HtmlBody": html_body,
            "MessageStream": self.cfg.message_stream,
        }
        if text_body:
            payload["TextBody"] = text_body
        if tag:
            payload["Tag"] = tag
        if metadata:
            payload["Metadata"] = {str(k): str(v) for k, v in metadata.items() if v is not None}

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self.cfg.server_token,
        }

        async with httpx.AsyncClient(timeout=self.cfg.timeout, transport=self._transport) as client:
            r = await client.post(self.api_url, json=payload, headers=headers)

        if r.status_code < 200 or r.status_code >= 300:
            raise RuntimeError(f"Postmark error {r.status_code}: {r.text}")

        return r.json()


def get_mailer() -> PostmarkMailer | None:
    """None when Postmark is not configured; receipts are skipped then."""
    try:
        return PostmarkMailer.from_env()
    except RuntimeError:
        return None
