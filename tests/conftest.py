"""
Shared pytest fixtures for RECUP tests.

Sets required environment variables BEFORE any recup module is imported so
that pydantic-settings reads safe test values.  HTTP never leaves the process:
every client is built on httpx.MockTransport.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator, Callable

# ── Set env vars before any recup import ──────────────────────────────────────
os.environ.setdefault("BOT_TOKEN", "123456:test-token-for-pytest")
os.environ.setdefault("ADMIN_IDS", "123456789")
os.environ.setdefault("API_BASE_URL", "https://api.recup.test/api/")

# ── Third-party ───────────────────────────────────────────────────────────────
import httpx
import pytest

# ── Recup imports (safe after env vars are set) ───────────────────────────────
from recup.models import Attachment, Competition, OfficialRole, RegistrationDraft

API_BASE = "https://api.recup.test/api"


# ── Clock ─────────────────────────────────────────────────────────────────────

class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ── HTTP ──────────────────────────────────────────────────────────────────────

@pytest.fixture
async def make_http() -> AsyncGenerator[Callable[..., httpx.AsyncClient], None]:
    """
    Factory fixture: make_http(handler) → AsyncClient whose requests are
    answered by `handler(request) -> httpx.Response`.  Clients are closed on
    teardown.
    """
    clients: list[httpx.AsyncClient] = []

    def _make(handler, base_url: str = API_BASE) -> httpx.AsyncClient:
        client = httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    try:
        yield _make
    finally:
        for client in clients:
            await client.aclose()


# ── Draft factories ───────────────────────────────────────────────────────────

def make_attachment(name: str, mime_type: str = "image/jpeg") -> Attachment:
    return Attachment(file_id=f"tg-{name}", file_name=name, mime_type=mime_type)


def fill_person(roster, who: str, idx: int, label: str) -> None:
    """Fill every field of the leader / a member / an official."""
    phone = "081234567890"
    if who == "leader":
        roster.update_leader("name", f"{label} Leader")
        roster.update_leader("phone", phone)
        roster.update_leader("photo", make_attachment(f"{label}-leader.jpg"))
        roster.update_leader("surat", make_attachment(f"{label}-leader-surat.pdf", "application/pdf"))
        roster.update_leader("pakta", make_attachment(f"{label}-leader-pakta.pdf", "application/pdf"))
    elif who == "member":
        roster.update_member(idx, "name", f"{label} Member {idx + 1}")
        roster.update_member(idx, "phone", phone)
        roster.update_member(idx, "photo", make_attachment(f"{label}-m{idx}.jpg"))
        roster.update_member(idx, "surat", make_attachment(f"{label}-m{idx}-surat.pdf", "application/pdf"))
        roster.update_member(idx, "pakta", make_attachment(f"{label}-m{idx}-pakta.pdf", "application/pdf"))
    else:
        roster.update_official(idx, "name", f"{label} Coach")
        roster.update_official(idx, "phone", phone)
        roster.update_official(idx, "photo", make_attachment(f"{label}-o{idx}.jpg"))


@pytest.fixture
def basket() -> Competition:
    return Competition(id=3, name="Basket Putra", fee=350000)


@pytest.fixture
def short_movie() -> Competition:
    return Competition(id=9, name="Short Movie", fee=150000)


@pytest.fixture
def band() -> Competition:
    return Competition(id=12, name="Band", fee=200000)


@pytest.fixture
def make_draft() -> Callable[..., RegistrationDraft]:
    """
    Factory fixture: make_draft(competition, members=0, officials=0) returns a
    draft where every required field is filled in.
    """

    def _make(competition: Competition, members: int = 0, officials: int = 0) -> RegistrationDraft:
        draft = RegistrationDraft(
            competition=competition,
            team_name="Elang Muda",
            school="SMA Negeri 1 Surabaya",
            email="ketua@example.com",
            whatsapp="081298765432",
        )
        roster = draft.roster
        fill_person(roster, "leader", 0, "Elang")
        for _ in range(members):
            idx = roster.add_member(cap=100)
            fill_person(roster, "member", idx, "Elang")
        for _ in range(officials):
            idx = roster.add_official(OfficialRole.COACH)
            fill_person(roster, "official", idx, "Elang")
        return draft

    return _make
