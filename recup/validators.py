"""
Input validation — Pydantic v2 models.

Two layers:
  - single-field checks used by the FSM text handlers while the user types
    (`clean_name`, `clean_phone`, `clean_email`)
  - RegistrationForm, the full required-field check run before submission.
    It mirrors what the browser form enforced: every rendered field is
    required, and "Asal Sekolah" is rendered only for non-exempt competitions.
"""
from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from recup.models import Attachment, Competition, RegistrationDraft
from recup.services.fee_service import requires_school, roster_cap

_PHONE_RE = re.compile(r"^\+?\d[\d\s\-]{7,15}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HAS_LETTER_RE = re.compile(r"[^\W\d_]")


# ── Single-field checks ───────────────────────────────────────────────────────

def clean_name(value: str) -> str:
    v = value.strip()
    if not v:
        raise ValueError("wajib diisi")
    if len(v) < 2 or len(v) > 100:
        raise ValueError("harus 2–100 karakter")
    if not _HAS_LETTER_RE.search(v):
        raise ValueError("harus berisi huruf")
    return v


def clean_phone(value: str) -> str:
    v = value.strip()
    if not v:
        raise ValueError("wajib diisi")
    if not _PHONE_RE.match(v):
        raise ValueError("nomor tidak valid (contoh: 081234567890)")
    return v


def clean_email(value: str) -> str:
    v = value.strip()
    if not v:
        raise ValueError("wajib diisi")
    if not _EMAIL_RE.match(v):
        raise ValueError("alamat email tidak valid")
    return v


# ── Full form ─────────────────────────────────────────────────────────────────

class PersonForm(BaseModel):
    name: str
    phone: str
    photo: Attachment
    surat: Attachment
    pakta: Attachment

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_name(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return clean_phone(v)


class OfficialForm(BaseModel):
    role: Literal["coach", "guru_pendamping", "official"]
    name: str
    phone: str
    photo: Attachment

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_name(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return clean_phone(v)


class RegistrationForm(BaseModel):
    """
    Complete registration payload validated before upload.

    Attributes
    ----------
    competition : selected competition
    team_name   : "Nama Tim"
    leader      : team leader, all five fields
    members     : extra members, all five fields each; team size ≤ roster cap
    officials   : optional coaches / teachers / officials, all fields each
    school      : required unless the competition is school-exempt
    email       : contact email
    whatsapp    : contact WhatsApp number
    """

    competition: Competition
    team_name: str
    leader: PersonForm
    members: list[PersonForm] = []
    officials: list[OfficialForm] = []
    school: str = ""
    email: str
    whatsapp: str

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("wajib diisi")
        if len(v) > 100:
            raise ValueError("maksimal 100 karakter")
        return v

    @field_validator("members")
    @classmethod
    def validate_roster_size(cls, v: list, info: ValidationInfo) -> list:
        competition = info.data.get("competition")
        if competition is not None:
            cap = roster_cap(competition)
            if len(v) + 1 > cap:
                raise ValueError(f"maksimal {cap} orang (termasuk ketua)")
        return v

    @field_validator("school")
    @classmethod
    def validate_school(cls, v: str, info: ValidationInfo) -> str:
        v = v.strip()
        competition = info.data.get("competition")
        if competition is not None and requires_school(competition) and not v:
            raise ValueError("wajib diisi")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return clean_email(v)

    @field_validator("whatsapp")
    @classmethod
    def validate_whatsapp(cls, v: str) -> str:
        return clean_phone(v)

    @classmethod
    def from_draft(cls, draft: RegistrationDraft) -> "RegistrationForm":
        roster = draft.roster
        return cls.model_validate({
            "competition": draft.competition,
            "team_name":   draft.team_name,
            "leader":      roster.leader.model_dump(),
            "members":     [m.model_dump() for m in roster.members],
            "officials":   [o.model_dump() for o in roster.officials],
            "school":      draft.school,
            "email":       draft.email,
            "whatsapp":    draft.whatsapp,
        })


# ── Error formatting ──────────────────────────────────────────────────────────

_TOP_LABELS = {
    "competition": "Kompetisi",
    "team_name":   "Nama Tim",
    "school":      "Asal Sekolah",
    "email":       "Email",
    "whatsapp":    "No. WhatsApp",
    "members":     "Anggota Tim",
}

_PERSON_LABELS = {
    "name":  "Nama lengkap",
    "phone": "Nomor HP",
    "photo": "Pas Foto",
    "surat": "Kartu Pelajar/Surat Keterangan",
    "pakta": "Pakta Integritas",
    "role":  "Peran",
}


def _describe_loc(loc: tuple) -> str:
    if not loc:
        return "Formulir"
    head = loc[0]
    if head == "leader" and len(loc) > 1:
        return f"Ketua Tim — {_PERSON_LABELS.get(loc[1], loc[1])}"
    if head in ("members", "officials") and len(loc) > 2:
        who = "Anggota" if head == "members" else "Pendamping"
        return f"{who} {loc[1] + 1} — {_PERSON_LABELS.get(loc[2], loc[2])}"
    return _TOP_LABELS.get(head, str(head))


def describe_errors(exc: ValidationError) -> list[str]:
    """Turn a ValidationError into short Indonesian lines, one per problem."""
    problems: list[str] = []
    for err in exc.errors():
        where = _describe_loc(tuple(err["loc"]))
        if err["type"] == "value_error":
            what = err["msg"].removeprefix("Value error, ")
        else:
            what = "belum diisi"
        line = f"{where}: {what}"
        if line not in problems:
            problems.append(line)
    return problems
