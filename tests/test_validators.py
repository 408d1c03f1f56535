"""
Unit tests — Input validation (validators.py).

Tests the single-field checks used while the user types and the full
RegistrationForm run before submission:
  - clean_name / clean_phone / clean_email
  - school required unless the competition is exempt
  - every attachment of every person required
  - Indonesian error lines from describe_errors

All tests are synchronous.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from recup.models import Competition
from recup.validators import (
    RegistrationForm,
    clean_email,
    clean_name,
    clean_phone,
    describe_errors,
)


# ─────────────────────────── Single fields ────────────────────────────────────

class TestCleanName:
    def test_strips_spaces(self) -> None:
        assert clean_name("  Siti Aminah  ") == "Siti Aminah"

    def test_two_chars_ok(self) -> None:
        assert clean_name("Al") == "Al"

    @pytest.mark.parametrize("value", ["", "   ", "A", "1234", "B" * 101])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            clean_name(value)


class TestCleanPhone:
    @pytest.mark.parametrize("value", ["081234567890", "+6281234567890", "0812-3456-7890", "0812 3456 789"])
    def test_valid(self, value) -> None:
        assert clean_phone(value) == value

    @pytest.mark.parametrize("value", ["", "12345", "phone", "08123456789012345678"])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            clean_phone(value)


class TestCleanEmail:
    def test_valid(self) -> None:
        assert clean_email(" tim@sekolah.sch.id ") == "tim@sekolah.sch.id"

    @pytest.mark.parametrize("value", ["", "no-at-sign", "a@b", "a b@c.d"])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            clean_email(value)


# ─────────────────────────── RegistrationForm ─────────────────────────────────

class TestRegistrationForm:
    def test_complete_draft_passes(self, make_draft, basket) -> None:
        form = RegistrationForm.from_draft(make_draft(basket, members=3, officials=2))
        assert len(form.members) == 3
        assert len(form.officials) == 2

    def test_school_required_for_basket(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.school = ""
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        assert describe_errors(exc_info.value) == ["Asal Sekolah: wajib diisi"]

    @pytest.mark.parametrize("name", ["Modern Dance", "Band", "English Debate"])
    def test_school_not_required_for_exempt(self, make_draft, name) -> None:
        draft = make_draft(Competition(name=name, fee=100000))
        draft.school = ""
        RegistrationForm.from_draft(draft)

    def test_missing_leader_document(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.roster.update_leader("surat", None)
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        assert describe_errors(exc_info.value) == [
            "Ketua Tim — Kartu Pelajar/Surat Keterangan: belum diisi"
        ]

    def test_official_name_checked(self, make_draft, basket) -> None:
        draft = make_draft(basket, officials=1)
        draft.roster.update_official(0, "name", "")
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        assert describe_errors(exc_info.value) == ["Pendamping 1 — Nama lengkap: wajib diisi"]

    def test_roster_over_cap_rejected(self, make_draft) -> None:
        draft = make_draft(Competition(name="KIR"), members=3)
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        assert describe_errors(exc_info.value) == ["Anggota Tim: maksimal 3 orang (termasuk ketua)"]

    def test_no_competition(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.competition = None
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        assert "Kompetisi: belum diisi" in describe_errors(exc_info.value)

    def test_several_problems_listed_once_each(self, make_draft, basket) -> None:
        draft = make_draft(basket)
        draft.email = "bukan-email"
        draft.whatsapp = ""
        draft.team_name = "   "
        with pytest.raises(ValidationError) as exc_info:
            RegistrationForm.from_draft(draft)
        problems = describe_errors(exc_info.value)
        assert "Nama Tim: wajib diisi" in problems
        assert "Email: alamat email tidak valid" in problems
        assert "No. WhatsApp: wajib diisi" in problems
