"""
Midtrans Snap bridge.

The web client injected snap.js and let the widget call back with one of four
outcomes.  In a chat the user is sent to the Snap payment page instead (link
button + QR code rendered with `segno`) and the outcome is read back from the
Snap transaction status when the user asks for it.

  ensure_loaded() — load snap.js once per process (shared by concurrent callers)
  pay(token)      — payment page link + QR for a Snap token
  check(token)    — current PaymentOutcome of that token
  dispatch()      — route an outcome to exactly one PaymentHandlers callback
"""
from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
import segno

from recup.exceptions import PaymentUnavailable

logger = logging.getLogger(__name__)


class PaymentOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED  = "failed"
    CLOSED  = "closed"


# Snap transaction_status → outcome
_STATUS_OUTCOMES = {
    "settlement": PaymentOutcome.SUCCESS,
    "capture":    PaymentOutcome.SUCCESS,
    "pending":    PaymentOutcome.PENDING,
    "authorize":  PaymentOutcome.PENDING,
    "deny":       PaymentOutcome.FAILED,
    "cancel":     PaymentOutcome.FAILED,
    "expire":     PaymentOutcome.FAILED,
    "failure":    PaymentOutcome.FAILED,
}


@dataclass
class PaymentLink:
    url: str
    qr_png: bytes


Callback = Callable[[], Awaitable[None]]


@dataclass
class PaymentHandlers:
    on_success: Callback
    on_pending: Callback
    on_error:   Callback
    on_close:   Callback


def generate_qr_png(data: str, scale: int = 8, border: int = 2) -> bytes:
    """Render `data` as a QR code PNG (for scanning the payment page on another device)."""
    qr  = segno.make_qr(data, error="M")
    buf = io.BytesIO()
    qr.save(buf, kind="png", scale=scale, border=border)
    return buf.getvalue()


class SnapBridge:
    """
    Parameters
    ----------
    snap_base  : e.g. "https://app.sandbox.midtrans.com/snap"
    client_key : Midtrans client key (public, sent as data-client-key)
    http       : optional AsyncClient (tests pass one with a mock transport)
    """

    def __init__(
        self,
        snap_base: str,
        client_key: str,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._snap_base  = snap_base.rstrip("/")
        self._client_key = client_key
        self._http       = http or httpx.AsyncClient(timeout=10.0)
        self._owns_http  = http is None
        self._loaded     = False
        self._lock       = asyncio.Lock()

    @property
    def script_url(self) -> str:
        return f"{self._snap_base}/snap.js"

    @property
    def loaded(self) -> bool:
        return self._loaded

    def payment_url(self, token: str) -> str:
        return f"{self._snap_base}/v4/redirection/{token}"

    async def ensure_loaded(self) -> bool:
        """
        Fetch snap.js once.  Later and concurrent calls return immediately
        with the result of that single load; a failed load is retried on the
        next call.
        """
        if self._loaded:
            return True
        async with self._lock:
            if self._loaded:
                return True
            try:
                response = await self._http.get(
                    self.script_url,
                    params={"data-client-key": self._client_key},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Failed to load Snap script from %s: %s", self.script_url, exc)
                return False
            self._loaded = True
            logger.info("Snap script loaded (%d bytes)", len(response.content))
            return True

    async def pay(self, token: str) -> PaymentLink:
        if not self._loaded:
            raise PaymentUnavailable()
        url = self.payment_url(token)
        return PaymentLink(url=url, qr_png=generate_qr_png(url))

    async def check(self, token: str) -> PaymentOutcome:
        """
        Ask Snap where the payment stands.  A token Snap does not know yet
        (no method chosen) counts as pending; transport errors count as a
        failed attempt so the user is offered a retry.
        """
        url = f"{self._snap_base}/v1/transactions/{token}/status"
        try:
            response = await self._http.get(url, auth=(self._client_key, ""))
        except httpx.HTTPError as exc:
            logger.error("Payment status check failed: %s", exc)
            return PaymentOutcome.FAILED

        if response.status_code == 404:
            return PaymentOutcome.PENDING
        if response.is_error:
            logger.error("Payment status check returned %d", response.status_code)
            return PaymentOutcome.FAILED

        try:
            status = str(response.json().get("transaction_status", "")).lower()
        except (ValueError, AttributeError):
            logger.error("Unreadable payment status payload: %r", response.text[:200])
            return PaymentOutcome.FAILED

        outcome = _STATUS_OUTCOMES.get(status, PaymentOutcome.PENDING)
        logger.info("Payment status %r → %s", status, outcome.value)
        return outcome

    async def dispatch(self, outcome: PaymentOutcome, handlers: PaymentHandlers) -> None:
        if outcome is PaymentOutcome.SUCCESS:
            await handlers.on_success()
        elif outcome is PaymentOutcome.PENDING:
            await handlers.on_pending()
        elif outcome is PaymentOutcome.FAILED:
            await handlers.on_error()
        else:
            await handlers.on_close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
