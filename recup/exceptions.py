"""
Domain exceptions.

Every exception that reaches a handler carries a ``user_message`` — the
Indonesian text shown to the user in an alert.  Log output stays in English.
"""
from __future__ import annotations


class RecupError(Exception):
    """Base class for all errors raised by the registration services."""

    user_message = "Terjadi kesalahan. Silakan coba lagi."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


# ── Catalog ───────────────────────────────────────────────────────────────────

class CatalogUnavailable(RecupError):
    """Competitions could not be fetched and nothing is cached."""

    user_message = "Daftar kompetisi belum bisa dimuat. Silakan coba lagi nanti."


# ── Submission ────────────────────────────────────────────────────────────────

class SubmissionError(RecupError):
    """Registration upload failed.  Subclasses say where it failed."""

    user_message = "Registrasi gagal. Silakan coba lagi."


class ServerRejected(SubmissionError):
    """The backend answered with an error status (or without a payment token)."""

    user_message = "Registration failed"


class NoResponse(SubmissionError):
    """The request never got an answer: connection error or timeout."""

    user_message = "No response from server. Please check your connection."


class ClientFault(SubmissionError):
    """Anything that went wrong on our side while building or sending the upload."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to submit registration: {detail}")


# ── Roster / workflow ─────────────────────────────────────────────────────────

class RosterFull(RecupError):
    """Adding one more member would exceed the competition's roster cap."""

    def __init__(self, competition_name: str, cap: int) -> None:
        self.cap = cap
        super().__init__(
            f"Batas Anggota Tercapai. Maksimal {cap} orang (termasuk ketua) "
            f"untuk {competition_name}."
        )


class DraftIncomplete(RecupError):
    """Required fields are missing or invalid."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Data belum lengkap:\n" + "\n".join(f"• {p}" for p in problems))


class WorkflowBusy(RecupError):
    """The action is not allowed while a submission or payment is in flight."""

    user_message = "Mohon tunggu, pendaftaran atau pembayaran sedang diproses."


class WorkflowError(RecupError):
    """An action arrived in a phase where it makes no sense (stale button etc.)."""

    user_message = "Sesi pendaftaran tidak valid. Silakan mulai lagi."


# ── Payment ───────────────────────────────────────────────────────────────────

class PaymentUnavailable(RecupError):
    """The Snap payment page could not be prepared."""

    user_message = "Sistem Pembayaran Belum Siap. Silakan refresh dan coba lagi."
