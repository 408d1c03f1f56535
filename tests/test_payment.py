"""
Integration tests — Midtrans Snap bridge (services/payment_service.py).

Covers:
  - the script is loaded once, even by concurrent callers
  - pay() refuses until loaded, then returns link + QR PNG
  - transaction status → PaymentOutcome mapping
  - dispatch() calls exactly one handler
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

from recup.exceptions import PaymentUnavailable
from recup.services import PaymentHandlers, PaymentOutcome, SnapBridge, generate_qr_png

SNAP_BASE = "https://app.sandbox.midtrans.com/snap"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _bridge(make_http, handler) -> SnapBridge:
    return SnapBridge(SNAP_BASE, "SB-Mid-client-test", http=make_http(handler, base_url=""))


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def handlers(self) -> PaymentHandlers:
        def make(name):
            async def _cb() -> None:
                self.calls.append(name)
            return _cb

        return PaymentHandlers(
            on_success=make("success"),
            on_pending=make("pending"),
            on_error=make("error"),
            on_close=make("close"),
        )


# ─────────────────────────── Script loading ───────────────────────────────────

class TestEnsureLoaded:
    async def test_loads_once_for_concurrent_callers(self, make_http) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="window.snap = {};")

        bridge = _bridge(make_http, handler)
        results = await asyncio.gather(*(bridge.ensure_loaded() for _ in range(5)))

        assert results == [True] * 5
        assert bridge.loaded is True
        assert len(requests) == 1
        assert requests[0].url.path == "/snap/snap.js"
        assert requests[0].url.params["data-client-key"] == "SB-Mid-client-test"

        await bridge.ensure_loaded()
        assert len(requests) == 1

    async def test_failed_load_is_retried(self, make_http) -> None:
        statuses = [503, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0), text="")

        bridge = _bridge(make_http, handler)
        assert await bridge.ensure_loaded() is False
        assert await bridge.ensure_loaded() is True


# ─────────────────────────── pay ──────────────────────────────────────────────

class TestPay:
    async def test_refused_before_load(self, make_http) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(500))
        with pytest.raises(PaymentUnavailable):
            await bridge.pay("tok-1")

    async def test_link_and_qr(self, make_http) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(200, text="ok"))
        await bridge.ensure_loaded()

        link = await bridge.pay("tok-1")
        assert link.url == f"{SNAP_BASE}/v4/redirection/tok-1"
        assert link.qr_png.startswith(PNG_MAGIC)

    def test_qr_png(self) -> None:
        assert generate_qr_png("https://example.com").startswith(PNG_MAGIC)


# ─────────────────────────── check ────────────────────────────────────────────

class TestCheck:
    @pytest.mark.parametrize(
        "status, outcome",
        [
            ("settlement", PaymentOutcome.SUCCESS),
            ("capture", PaymentOutcome.SUCCESS),
            ("pending", PaymentOutcome.PENDING),
            ("deny", PaymentOutcome.FAILED),
            ("expire", PaymentOutcome.FAILED),
            ("cancel", PaymentOutcome.FAILED),
            ("something-new", PaymentOutcome.PENDING),
        ],
    )
    async def test_status_mapping(self, make_http, status, outcome) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"transaction_status": status})

        bridge = _bridge(make_http, handler)
        assert await bridge.check("tok-9") is outcome
        assert seen[0].url.path == "/snap/v1/transactions/tok-9/status"
        assert seen[0].headers["Authorization"].startswith("Basic ")

    async def test_unknown_token_is_pending(self, make_http) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(404, json={}))
        assert await bridge.check("tok-9") is PaymentOutcome.PENDING

    async def test_server_error_is_failed(self, make_http) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(502, text="bad gateway"))
        assert await bridge.check("tok-9") is PaymentOutcome.FAILED

    async def test_garbage_body_is_failed(self, make_http) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(200, text="not json"))
        assert await bridge.check("tok-9") is PaymentOutcome.FAILED

    async def test_transport_error_is_failed(self, make_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        bridge = _bridge(make_http, handler)
        assert await bridge.check("tok-9") is PaymentOutcome.FAILED


# ─────────────────────────── dispatch ─────────────────────────────────────────

class TestDispatch:
    @pytest.mark.parametrize(
        "outcome, expected",
        [
            (PaymentOutcome.SUCCESS, ["success"]),
            (PaymentOutcome.PENDING, ["pending"]),
            (PaymentOutcome.FAILED, ["error"]),
            (PaymentOutcome.CLOSED, ["close"]),
        ],
    )
    async def test_exactly_one_handler(self, make_http, outcome, expected) -> None:
        bridge = _bridge(make_http, lambda request: httpx.Response(200))
        recorder = _Recorder()
        await bridge.dispatch(outcome, recorder.handlers())
        assert recorder.calls == expected
