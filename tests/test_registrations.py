"""
Integration tests — Registration client (services/registration_service.py).

Covers:
  - multipart encoding of a draft (fields, file slots, school rule)
  - submit: success, server rejection, no response, client-side faults
  - the draft is never touched by a failed submission
  - cache invalidation after success
  - fetch_pending: response shapes, caching, "unknown" on total failure
"""
from __future__ import annotations

import json

import httpx
import pytest

from recup.exceptions import ClientFault, NoResponse, ServerRejected
from recup.models import Competition
from recup.services import CompetitionCatalog, RegistrationClient, TimedCache, encode_registration


async def _load_file(attachment) -> bytes:
    return f"bytes-of-{attachment.file_name}".encode()


def _client(make_http, handler, clock, catalog=None) -> RegistrationClient:
    return RegistrationClient(make_http(handler), TimedCache(120, clock=clock), catalog=catalog)


# ─────────────────────────── encode_registration ──────────────────────────────

class TestEncode:
    def test_fields(self, make_draft, short_movie) -> None:
        draft = make_draft(short_movie, members=6, officials=1)
        fields, _ = encode_registration(draft)

        assert fields["competition"] == "Short Movie"
        assert fields["name"] == "Elang Muda"
        assert fields["team_leader"] == "Elang Leader"
        assert fields["competition_id"] == "9"
        assert fields["total_members"] == "7"
        assert fields["total_fee"] == str(150000 + 2 * 20000)
        assert fields["school"] == "SMA Negeri 1 Surabaya"

        members = json.loads(fields["team_members"])
        assert members[0] == {"name": "Elang Leader", "phone": "081234567890", "is_leader": True}
        assert len(members) == 7
        assert all(not m["is_leader"] for m in members[1:])

        officials = json.loads(fields["officials"])
        assert officials == [{"role": "coach", "name": "Elang Coach", "phone": "081234567890"}]

    def test_slots(self, make_draft, basket) -> None:
        _, slots = encode_registration(make_draft(basket, members=1, officials=1))
        names = [name for name, _ in slots]
        assert names == [
            "leader_photo", "leader_surat", "leader_pakta",
            "member_0_photo", "member_0_surat", "member_0_pakta",
            "official_0_photo",
        ]

    def test_school_omitted_for_exempt_competition(self, make_draft, band) -> None:
        fields, _ = encode_registration(make_draft(band))
        assert "school" not in fields

    def test_missing_id_falls_back_to_one(self, make_draft) -> None:
        fields, _ = encode_registration(make_draft(Competition(name="Catur", fee=10000)))
        assert fields["competition_id"] == "1"

    def test_missing_attachments_left_out(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.roster.update_leader("pakta", None)
        _, slots = encode_registration(draft)
        assert "leader_pakta" not in [name for name, _ in slots]

    def test_no_competition_rejected(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.competition = None
        with pytest.raises(ValueError):
            encode_registration(draft)


# ─────────────────────────── submit ───────────────────────────────────────────

class TestSubmit:
    async def test_success_returns_token_and_uploads_everything(self, make_http, make_draft, basket, clock) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"snap_token": "snap-abc", "id": 77})

        client = _client(make_http, handler, clock)
        progress: list[float] = []
        result = await client.submit(make_draft(basket, members=2), _load_file, progress=progress.append)

        assert result["snap_token"] == "snap-abc"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/registrationdata"
        assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        body = request.content
        assert int(request.headers["Content-Length"]) == len(body)
        assert b'name="team_leader"' in body
        assert b'name="member_1_pakta"; filename="Elang-m1-pakta.pdf"' in body
        assert b"bytes-of-Elang-leader.jpg" in body
        assert progress and progress[-1] == pytest.approx(1.0)
        assert progress == sorted(progress)

    async def test_server_error_message_is_surfaced(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"error": "Team name already registered"})

        client = _client(make_http, handler, clock)
        with pytest.raises(ServerRejected) as exc_info:
            await client.submit(make_draft(basket), _load_file)
        assert exc_info.value.user_message == "Team name already registered"

    async def test_server_error_without_body_uses_default(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="<html>oops</html>")

        client = _client(make_http, handler, clock)
        with pytest.raises(ServerRejected) as exc_info:
            await client.submit(make_draft(basket), _load_file)
        assert exc_info.value.user_message == "Registration failed"

    async def test_missing_snap_token_is_rejected(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "ok"})

        client = _client(make_http, handler, clock)
        with pytest.raises(ServerRejected) as exc_info:
            await client.submit(make_draft(basket), _load_file)
        assert exc_info.value.user_message == "No snap token received"

    async def test_no_response(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(make_http, handler, clock)
        with pytest.raises(NoResponse) as exc_info:
            await client.submit(make_draft(basket), _load_file)
        assert "No response from server" in exc_info.value.user_message

    async def test_file_download_failure_is_client_fault(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("request must not be sent")

        async def broken_loader(attachment) -> bytes:
            raise RuntimeError("telegram file expired")

        client = _client(make_http, handler, clock)
        with pytest.raises(ClientFault) as exc_info:
            await client.submit(make_draft(basket), broken_loader)
        assert exc_info.value.user_message == "Failed to submit registration: telegram file expired"

    async def test_failure_leaves_draft_untouched(self, make_http, make_draft, basket, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"message": "Invalid data"})

        draft = make_draft(basket, members=3, officials=1)
        before = draft.model_dump()
        client = _client(make_http, handler, clock)
        with pytest.raises(ServerRejected):
            await client.submit(draft, _load_file)
        assert draft.model_dump() == before

    async def test_success_invalidates_both_caches(self, make_http, make_draft, basket, clock) -> None:
        calls: list[tuple[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.url.path.endswith("/competitions"):
                return httpx.Response(200, json=[{"name": "Basket Putra"}])
            if request.method == "GET":
                return httpx.Response(200, json=[])
            return httpx.Response(200, json={"snap_token": "t"})

        http = make_http(handler)
        catalog = CompetitionCatalog(http, TimedCache(300, clock=clock))
        client = RegistrationClient(http, TimedCache(120, clock=clock), catalog=catalog)

        await catalog.fetch_competitions()
        await client.fetch_pending()
        await client.submit(make_draft(basket), _load_file)
        await catalog.fetch_competitions()
        await client.fetch_pending()

        gets = [c for c in calls if c[0] == "GET"]
        assert len(gets) == 4


# ─────────────────────────── fetch_pending ────────────────────────────────────

class TestFetchPending:
    async def test_list_and_data_wrapper(self, make_http, clock) -> None:
        payloads = [[{"name": "A"}], {"data": [{"name": "B"}, "junk"]}]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payloads.pop(0))

        client = _client(make_http, handler, clock)
        assert await client.fetch_pending() == [{"name": "A"}]
        client.invalidate()
        assert await client.fetch_pending() == [{"name": "B"}]

    async def test_cached_for_two_minutes(self, make_http, clock) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[{"name": "A"}])

        client = _client(make_http, handler, clock)
        await client.fetch_pending()
        clock.advance(119)
        await client.fetch_pending()
        assert len(calls) == 1
        clock.advance(2)
        await client.fetch_pending()
        assert len(calls) == 2
        assert "gzip" in calls[0].headers["Accept-Encoding"]

    async def test_total_failure_returns_empty(self, make_http, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = _client(make_http, handler, clock)
        assert await client.fetch_pending() == []

    async def test_failure_after_success_returns_stale(self, make_http, clock) -> None:
        statuses = [200, 500]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0), json=[{"name": "A"}])

        client = _client(make_http, handler, clock)
        await client.fetch_pending()
        clock.advance(600)
        assert await client.fetch_pending() == [{"name": "A"}]
