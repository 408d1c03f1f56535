"""
Registration client: reads the registration list and uploads new registrations.

Submission flow
---------------
  draft → encode_registration() → download every attachment from Telegram
        → multipart body → POST /registrationdata (streamed, with progress)
        → {"snap_token": ...}

Failures are re-raised as one of ServerRejected / NoResponse / ClientFault so
handlers can show the matching message without inspecting httpx errors.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

from recup.exceptions import ClientFault, NoResponse, ServerRejected, SubmissionError
from recup.models import Attachment, RegistrationDraft
from recup.services.cache import TimedCache
from recup.services.catalog_service import CompetitionCatalog
from recup.services.fee_service import compute_fee, requires_school

logger = logging.getLogger(__name__)

LoadFile = Callable[[Attachment], Awaitable[bytes]]
ProgressObserver = Callable[[float], None]

UPLOAD_CHUNK_SIZE = 64 * 1024


def encode_registration(
    draft: RegistrationDraft,
) -> tuple[dict[str, str], list[tuple[str, Attachment]]]:
    """
    Split a draft into multipart form fields and file slots.

    Returns (fields, slots) where each slot is (form field name, attachment).
    Slots whose attachment is missing are left out.
    """
    competition = draft.competition
    if competition is None:
        raise ValueError("no competition selected")

    roster = draft.roster
    leader = roster.leader

    team_members = [{"name": leader.name, "phone": leader.phone, "is_leader": True}]
    team_members += [
        {"name": m.name, "phone": m.phone, "is_leader": False} for m in roster.members
    ]
    officials = [{"role": o.role, "name": o.name, "phone": o.phone} for o in roster.officials]

    fields = {
        "competition":    competition.name,
        "name":           draft.team_name,
        "team_leader":    leader.name,
        "email":          draft.email,
        "whatsapp":       draft.whatsapp,
        "competition_id": str(competition.id or 1),
        "total_fee":      str(compute_fee(competition, roster.team_size)),
        "total_members":  str(roster.team_size),
        "team_members":   json.dumps(team_members),
        "officials":      json.dumps(officials),
    }
    if requires_school(competition):
        fields["school"] = draft.school

    slots: list[tuple[str, Attachment]] = []
    for kind, attachment in (("photo", leader.photo), ("surat", leader.surat), ("pakta", leader.pakta)):
        if attachment:
            slots.append((f"leader_{kind}", attachment))
    for idx, member in enumerate(roster.members):
        for kind, attachment in (("photo", member.photo), ("surat", member.surat), ("pakta", member.pakta)):
            if attachment:
                slots.append((f"member_{idx}_{kind}", attachment))
    for idx, official in enumerate(roster.officials):
        if official.photo:
            slots.append((f"official_{idx}_photo", official.photo))

    return fields, slots


async def _progress_chunks(
    body: bytes,
    progress: Optional[ProgressObserver],
) -> AsyncIterator[bytes]:
    total = len(body)
    sent = 0
    for start in range(0, total, UPLOAD_CHUNK_SIZE):
        chunk = body[start:start + UPLOAD_CHUNK_SIZE]
        yield chunk
        sent += len(chunk)
        logger.debug("Upload progress: %d%%", round(sent * 100 / total))
        if progress is not None:
            progress(sent / total)


def _server_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return ServerRejected.user_message
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    return ServerRejected.user_message


class RegistrationClient:
    """
    Parameters
    ----------
    http           : shared AsyncClient with base_url set to the backend
    cache          : freshness-window cache for the registration list
    catalog        : catalog whose cache is dropped after a new registration
    read_timeout   : seconds for the list request
    submit_timeout : seconds for the upload (files make it slow)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: TimedCache[list[dict]],
        catalog: Optional[CompetitionCatalog] = None,
        read_timeout: float = 10.0,
        submit_timeout: float = 60.0,
    ) -> None:
        self._http           = http
        self._cache          = cache
        self._catalog        = catalog
        self._read_timeout   = read_timeout
        self._submit_timeout = submit_timeout

    # ── Read ──────────────────────────────────────────────────────────────────

    async def fetch_pending(self) -> list[dict]:
        """
        Registration list, possibly stale.  An empty list means "unknown"
        when the backend could not be reached and nothing was cached.
        """
        cached = self._cache.fresh()
        if cached is not None:
            logger.debug("Using cached registration data (%d items)", len(cached))
            return list(cached)

        logger.info("Fetching fresh registration data…")
        try:
            response = await self._http.get(
                "/registrationdata",
                timeout=self._read_timeout,
                headers={"Accept-Encoding": "gzip, deflate"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            stale = self._cache.last()
            if stale is not None:
                logger.warning("Failed to fetch registration data (%s); using expired cache", exc)
                return list(stale)
            logger.error("Failed to fetch registration data: %s", exc)
            return []

        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            payload = payload["data"]
        registrations = [r for r in payload if isinstance(r, dict)] if isinstance(payload, list) else []

        self._cache.store(registrations)
        return list(registrations)

    def invalidate(self) -> None:
        self._cache.clear()
        logger.info("Registration cache cleared")

    # ── Write ─────────────────────────────────────────────────────────────────

    async def submit(
        self,
        draft: RegistrationDraft,
        load_file: LoadFile,
        progress: Optional[ProgressObserver] = None,
    ) -> dict[str, Any]:
        """
        Upload the registration and return the backend payload.

        The payload always contains "snap_token"; a response without one is
        reported as ServerRejected.
        """
        logger.info("Submitting registration for %r…", draft.team_name)
        try:
            fields, slots = encode_registration(draft)
            files = []
            for field_name, attachment in slots:
                content = await load_file(attachment)
                files.append((field_name, (attachment.file_name, content, attachment.mime_type)))

            encoded = self._http.build_request(
                "POST", "/registrationdata", data=fields, files=files
            )
            body = await encoded.aread()
            request = self._http.build_request(
                "POST",
                "/registrationdata",
                content=_progress_chunks(body, progress),
                headers={
                    "Content-Type": encoded.headers["Content-Type"],
                    "Content-Length": str(len(body)),
                },
                timeout=self._submit_timeout,
            )
            response = await self._http.send(request)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Registration rejected (%d): %s", exc.response.status_code, exc)
            raise ServerRejected(_server_error_message(exc.response)) from exc
        except httpx.TransportError as exc:
            logger.error("Registration submission got no response: %s", exc)
            raise NoResponse() from exc
        except SubmissionError:
            raise
        except Exception as exc:
            logger.exception("Registration submission failed before reaching the server")
            raise ClientFault(str(exc)) from exc

        if not isinstance(data, dict) or not data.get("snap_token"):
            logger.error("Registration response carried no snap_token: %r", data)
            raise ServerRejected("No snap token received")

        self.invalidate()
        if self._catalog is not None:
            self._catalog.invalidate()

        logger.info("Registration accepted for %r", draft.team_name)
        return data
