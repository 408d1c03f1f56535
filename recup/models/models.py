"""
Data model for the RECUP competition registration.

Domain overview
---------------
Competition        — one event of the cup (fee, optional roster cap)
RegistrationDraft  — what the user is filling in right now
  └─ TeamRoster    — leader + members + optional officials
PaymentSession     — Snap token returned by the backend after a submission
RegistrationSession — draft + workflow phase + payment, kept in FSM storage

Nothing here is persisted locally: sessions are dumped into aiogram's FSM
storage between updates and dropped on reset.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from recup.exceptions import RosterFull

# ─────────────────────────── Constants ────────────────────────────────────────

class OfficialRole:
    COACH    = "coach"
    TEACHER  = "guru_pendamping"
    OFFICIAL = "official"

    ALL = (COACH, TEACHER, OFFICIAL)

    LABELS = {
        COACH:    "Coach",
        TEACHER:  "Guru Pendamping",
        OFFICIAL: "Official",
    }


class PersonField(str, Enum):
    NAME  = "name"
    PHONE = "phone"
    PHOTO = "photo"
    SURAT = "surat"   # student card / statement letter
    PAKTA = "pakta"   # signed integrity pact

    @property
    def label(self) -> str:
        return _FIELD_LABELS[self]

    @property
    def is_attachment(self) -> bool:
        return self in (PersonField.PHOTO, PersonField.SURAT, PersonField.PAKTA)


_FIELD_LABELS = {
    PersonField.NAME:  "Nama lengkap",
    PersonField.PHONE: "Nomor HP",
    PersonField.PHOTO: "Pas Foto",
    PersonField.SURAT: "Kartu Pelajar/Surat Keterangan",
    PersonField.PAKTA: "Pakta Integritas",
}

MEMBER_FIELDS   = (PersonField.NAME, PersonField.PHONE, PersonField.PHOTO,
                   PersonField.SURAT, PersonField.PAKTA)
OFFICIAL_FIELDS = (PersonField.NAME, PersonField.PHONE, PersonField.PHOTO)


class Phase(str, Enum):
    IDLE             = "idle"
    EDITING          = "editing"
    SUBMITTING       = "submitting"
    AWAITING_PAYMENT = "awaiting_payment"
    SUCCESS          = "success"
    PAYMENT_PENDING  = "payment_pending"
    PAYMENT_FAILED   = "payment_failed"


# ─────────────────────────── Records ──────────────────────────────────────────

class Attachment(BaseModel):
    """A file the user uploaded to Telegram; bytes are fetched at submit time."""

    file_id: str
    file_name: str = "file"
    mime_type: str = "application/octet-stream"


class Competition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[Union[int, str]] = None
    name: str
    fee: int = 0
    max_team_size: Optional[int] = None


class TeamMember(BaseModel):
    name: str = ""
    phone: str = ""
    photo: Optional[Attachment] = None
    surat: Optional[Attachment] = None
    pakta: Optional[Attachment] = None


class TeamLeader(TeamMember):
    """Same fields as a member; exactly one per team and always required."""


class Official(BaseModel):
    role: str
    name: str = ""
    phone: str = ""
    photo: Optional[Attachment] = None

    @property
    def role_label(self) -> str:
        return OfficialRole.LABELS.get(self.role, self.role.replace("_", " "))


# ─────────────────────────── Field dispatch ───────────────────────────────────

def _as_text(value) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected text, got {type(value).__name__}")
    return value.strip()


def _as_attachment(value) -> Optional[Attachment]:
    if value is None or isinstance(value, Attachment):
        return value
    if isinstance(value, dict):
        return Attachment.model_validate(value)
    raise TypeError(f"expected Attachment, got {type(value).__name__}")


def _set_member_field(person: TeamMember, field: PersonField, value) -> None:
    if field is PersonField.NAME:
        person.name = _as_text(value)
    elif field is PersonField.PHONE:
        person.phone = _as_text(value)
    elif field is PersonField.PHOTO:
        person.photo = _as_attachment(value)
    elif field is PersonField.SURAT:
        person.surat = _as_attachment(value)
    elif field is PersonField.PAKTA:
        person.pakta = _as_attachment(value)


def _set_official_field(official: Official, field: PersonField, value) -> None:
    if field is PersonField.NAME:
        official.name = _as_text(value)
    elif field is PersonField.PHONE:
        official.phone = _as_text(value)
    elif field is PersonField.PHOTO:
        official.photo = _as_attachment(value)
    else:
        raise ValueError(f"officials have no {field.value!r} field")


def _check_index(items: list, index: int, what: str) -> None:
    if not 0 <= index < len(items):
        raise IndexError(f"{what} index {index} out of range (have {len(items)})")


# ─────────────────────────── Roster ───────────────────────────────────────────

class TeamRoster(BaseModel):
    """
    Leader, members and officials of one team.

    Members are capped per competition (the cap counts the leader);
    officials are unbounded and optional.
    """

    leader: TeamLeader = Field(default_factory=TeamLeader)
    members: list[TeamMember] = Field(default_factory=list)
    officials: list[Official] = Field(default_factory=list)

    @property
    def team_size(self) -> int:
        return len(self.members) + 1

    def clear(self) -> None:
        self.leader = TeamLeader()
        self.members = []
        self.officials = []

    # ── leader ────────────────────────────────────────────────────────────────

    def update_leader(self, field: PersonField | str, value) -> None:
        _set_member_field(self.leader, PersonField(field), value)

    # ── members ───────────────────────────────────────────────────────────────

    def add_member(self, cap: int, competition_name: str = "") -> int:
        """Append a blank member and return its index, or raise RosterFull."""
        if len(self.members) >= cap - 1:
            raise RosterFull(competition_name, cap)
        self.members.append(TeamMember())
        return len(self.members) - 1

    def update_member(self, index: int, field: PersonField | str, value) -> None:
        _check_index(self.members, index, "member")
        _set_member_field(self.members[index], PersonField(field), value)

    def remove_member(self, index: int) -> None:
        _check_index(self.members, index, "member")
        del self.members[index]

    # ── officials ─────────────────────────────────────────────────────────────

    def add_official(self, role: str) -> int:
        if role not in OfficialRole.ALL:
            raise ValueError(f"unknown official role {role!r}")
        self.officials.append(Official(role=role))
        return len(self.officials) - 1

    def update_official(self, index: int, field: PersonField | str, value) -> None:
        _check_index(self.officials, index, "official")
        _set_official_field(self.officials[index], PersonField(field), value)

    def remove_official(self, index: int) -> None:
        _check_index(self.officials, index, "official")
        del self.officials[index]


# ─────────────────────────── Draft / session ─────────────────────────────────

class RegistrationDraft(BaseModel):
    competition: Optional[Competition] = None
    team_name: str = ""
    roster: TeamRoster = Field(default_factory=TeamRoster)
    school: str = ""
    email: str = ""
    whatsapp: str = ""


class PaymentSession(BaseModel):
    token: str
    pending: bool = True


class RegistrationSession(BaseModel):
    """Everything one user's registration conversation needs between updates."""

    phase: Phase = Phase.IDLE
    draft: RegistrationDraft = Field(default_factory=RegistrationDraft)
    payment: Optional[PaymentSession] = None
