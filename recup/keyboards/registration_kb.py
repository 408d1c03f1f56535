"""
Keyboards for the registration FSM flow.
"""
from typing import List

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from recup.keyboards.callbacks import CompetitionCb, FormCb, MainMenuCb, PaymentCb, RosterCb
from recup.models import Competition, OfficialRole, TeamRoster
from recup.services.fee_service import format_rupiah


def _cancel_button() -> InlineKeyboardButton:
    return InlineKeyboardButton(text="❌ Batal", callback_data=MainMenuCb(action="main").pack())


def competition_list_kb(competitions: List[Competition]) -> InlineKeyboardMarkup:
    """One button per competition; the index refers to the list stored in FSM data."""
    builder = InlineKeyboardBuilder()
    for idx, c in enumerate(competitions):
        label = f"{c.name} — {format_rupiah(c.fee)}" if c.fee else c.name
        builder.row(
            InlineKeyboardButton(text=label, callback_data=CompetitionCb(idx=idx).pack())
        )
    builder.row(_cancel_button())
    return builder.as_markup()


def cancel_registration_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(_cancel_button())
    return builder.as_markup()


def roster_menu_kb(roster: TeamRoster) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="➕ Tambah Anggota", callback_data=RosterCb(action="add_member").pack())
    )
    builder.row(*[
        InlineKeyboardButton(
            text=f"➕ {OfficialRole.LABELS[role]}",
            callback_data=RosterCb(action="add_official", role=role).pack(),
        )
        for role in OfficialRole.ALL
    ])
    for idx, member in enumerate(roster.members):
        builder.row(
            InlineKeyboardButton(
                text=f"🗑 Anggota {idx + 1}: {member.name or '…'}",
                callback_data=RosterCb(action="rm_member", idx=idx).pack(),
            )
        )
    for idx, official in enumerate(roster.officials):
        builder.row(
            InlineKeyboardButton(
                text=f"🗑 {official.role_label}: {official.name or '…'}",
                callback_data=RosterCb(action="rm_official", idx=idx).pack(),
            )
        )
    builder.row(
        InlineKeyboardButton(text="🔁 Ganti Kompetisi", callback_data=RosterCb(action="change_comp").pack()),
        InlineKeyboardButton(text="✅ Lanjut",          callback_data=RosterCb(action="done").pack()),
    )
    builder.row(_cancel_button())
    return builder.as_markup()


def confirm_registration_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="💳 Daftar & Bayar", callback_data=FormCb(action="submit").pack()),
    )
    builder.row(
        InlineKeyboardButton(text="✏️ Ubah Tim", callback_data=FormCb(action="edit").pack()),
        _cancel_button(),
    )
    return builder.as_markup()


def payment_kb(payment_url: str) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="💳 Buka Halaman Pembayaran", url=payment_url))
    builder.row(
        InlineKeyboardButton(text="🔄 Cek Status", callback_data=PaymentCb(action="check").pack()),
        InlineKeyboardButton(text="✖️ Tutup",      callback_data=PaymentCb(action="close").pack()),
    )
    return builder.as_markup()


def retry_payment_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🔄 Bayar Sekarang", callback_data=PaymentCb(action="retry").pack())
    )
    builder.row(
        InlineKeyboardButton(text="❌ Batalkan Pendaftaran", callback_data=PaymentCb(action="cancel").pack())
    )
    return builder.as_markup()
