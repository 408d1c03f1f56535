"""
Competition catalog client.

Reads go through a TimedCache: a fresh list is served without a request, a
failed request falls back to whatever is cached (however old), and only an
empty cache lets the failure reach the caller.  Writes invalidate the cache.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from recup.exceptions import CatalogUnavailable
from recup.models import Competition
from recup.services.cache import TimedCache

logger = logging.getLogger(__name__)


# ── Response normalisation ────────────────────────────────────────────────────

def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def _parse_competition(item: Any) -> Optional[Competition]:
    if isinstance(item, str):
        return Competition(name=item) if item.strip() else None
    if not isinstance(item, dict):
        return None

    name = item.get("name") or item.get("title")
    if not name:
        return None

    fee = _coerce_int(item.get("fee"))
    cap = _coerce_int(item.get("max_team_size", item.get("max_members")))
    return Competition(
        id=item.get("id"),
        name=str(name),
        fee=max(fee or 0, 0),
        max_team_size=cap if cap and cap > 0 else None,
    )


def normalize_competitions(payload: Any) -> list[Competition]:
    """
    Accept a bare list, {"competitions": [...]} or {"data": [...]}.
    Anything else (or unusable items) normalises to nothing.
    """
    items: list = []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get("competitions"), list):
            items = payload["competitions"]
        elif isinstance(payload.get("data"), list):
            items = payload["data"]

    competitions = []
    for item in items:
        competition = _parse_competition(item)
        if competition is None:
            logger.debug("Skipping unusable competition item: %r", item)
            continue
        competitions.append(competition)
    return competitions


# ── Client ────────────────────────────────────────────────────────────────────

class CompetitionCatalog:
    """
    Parameters
    ----------
    http    : shared AsyncClient with base_url set to the backend
    cache   : freshness-window cache owned by this client
    timeout : seconds for the read request
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TimedCache[list[Competition]],
        timeout: float = 10.0,
    ) -> None:
        self._http    = http
        self._cache   = cache
        self._timeout = timeout

    async def fetch_competitions(self) -> list[Competition]:
        cached = self._cache.fresh()
        if cached is not None:
            logger.debug("Using cached competitions data (%d items)", len(cached))
            return list(cached)

        logger.info("Fetching fresh competitions data…")
        try:
            response = await self._http.get("/competitions", timeout=self._timeout)
            response.raise_for_status()
            competitions = normalize_competitions(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            stale = self._cache.last()
            if stale is not None:
                logger.warning("Failed to fetch competitions (%s); using expired cache", exc)
                return list(stale)
            logger.error("Failed to fetch competitions: %s", exc)
            raise CatalogUnavailable() from exc

        self._cache.store(competitions)
        return list(competitions)

    def invalidate(self) -> None:
        self._cache.clear()
        logger.info("Competitions cache cleared")

    # ── Writes (organiser tooling) ────────────────────────────────────────────

    async def create_competition(self, payload: dict) -> Any:
        return await self._write("POST", "/competitions", json=payload)

    async def update_competition(self, competition_id: int | str, payload: dict) -> Any:
        return await self._write("PUT", f"/competitions/{competition_id}", json=payload)

    async def delete_competition(self, competition_id: int | str) -> Any:
        return await self._write("DELETE", f"/competitions/{competition_id}")

    async def _write(self, method: str, url: str, json: dict | None = None) -> Any:
        try:
            response = await self._http.request(method, url, json=json, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Competition %s %s failed: %s", method, url, exc)
            raise
        self.invalidate()
        return response.json() if response.content else None
