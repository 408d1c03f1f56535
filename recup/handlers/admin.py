"""
Organiser commands.

  /pendaftar — latest registrations from the backend (cached)
  /refresh   — drop the competition and registration caches
  /lomba_tambah, /lomba_ubah, /lomba_hapus — competition maintenance
"""
import logging

import httpx
from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from aiogram.utils.text_decorations import html_decoration as hd

from recup.middlewares import OrganizerOnly
from recup.services import CompetitionCatalog, RegistrationClient, format_rupiah

logger = logging.getLogger(__name__)
router = Router(name="admin")

MAX_LISTED = 30


def _registration_line(idx: int, item: dict) -> str:
    name = item.get("name") or item.get("team_name") or "—"
    competition = item.get("competition") or item.get("competition_name") or ""
    status = item.get("payment_status") or item.get("status") or ""
    line = f"{idx}. <b>{hd.quote(str(name))}</b>"
    if competition:
        line += f" · {hd.quote(str(competition))}"
    fee = item.get("total_fee")
    if isinstance(fee, (int, float)) or (isinstance(fee, str) and fee.isdigit()):
        line += f" · {format_rupiah(int(fee))}"
    if status:
        line += f" · <i>{hd.quote(str(status))}</i>"
    return line


@router.message(Command("pendaftar"), OrganizerOnly())
async def cmd_registrations(message: Message, registrations: RegistrationClient) -> None:
    items = await registrations.fetch_pending()
    if not items:
        # An empty list also covers "backend unreachable"
        await message.answer("Tidak ada data pendaftaran, atau server tidak dapat dihubungi.")
        return

    lines = [f"📋 <b>Pendaftar ({len(items)})</b>", ""]
    for idx, item in enumerate(items[:MAX_LISTED], start=1):
        if isinstance(item, dict):
            lines.append(_registration_line(idx, item))
    if len(items) > MAX_LISTED:
        lines.append(f"… dan {len(items) - MAX_LISTED} lainnya")
    await message.answer("\n".join(lines), parse_mode=ParseMode.HTML)


@router.message(Command("refresh"), OrganizerOnly())
async def cmd_refresh(
    message: Message,
    catalog: CompetitionCatalog,
    registrations: RegistrationClient,
) -> None:
    catalog.invalidate()
    registrations.invalidate()
    logger.info("Caches invalidated by %s", message.from_user.id)
    await message.answer("🔄 Cache kompetisi dan pendaftar dikosongkan.")


# ── Competition maintenance ───────────────────────────────────────────────────
#   /lomba_tambah Nama | biaya | maks_anggota
#   /lomba_ubah   id | Nama | biaya | maks_anggota
#   /lomba_hapus  id

def _competition_payload(parts: list[str]) -> dict:
    """Raises ValueError on a malformed command."""
    if not parts or not parts[0]:
        raise ValueError("nama kosong")
    payload: dict = {"name": parts[0]}
    if len(parts) > 1 and parts[1]:
        payload["fee"] = int(parts[1].replace(".", ""))
    if len(parts) > 2 and parts[2]:
        payload["max_team_size"] = int(parts[2])
    return payload


def _split_args(command: CommandObject) -> list[str]:
    return [p.strip() for p in (command.args or "").split("|")]


@router.message(Command("lomba_tambah"), OrganizerOnly())
async def cmd_add_competition(
    message: Message, command: CommandObject, catalog: CompetitionCatalog
) -> None:
    try:
        payload = _competition_payload(_split_args(command))
    except ValueError:
        await message.answer("Format: /lomba_tambah Nama | biaya | maks_anggota")
        return
    try:
        await catalog.create_competition(payload)
    except httpx.HTTPError:
        await message.answer("❌ Gagal menambah kompetisi.")
        return
    await message.answer(f"✅ Kompetisi <b>{hd.quote(payload['name'])}</b> ditambahkan.", parse_mode=ParseMode.HTML)


@router.message(Command("lomba_ubah"), OrganizerOnly())
async def cmd_update_competition(
    message: Message, command: CommandObject, catalog: CompetitionCatalog
) -> None:
    parts = _split_args(command)
    try:
        competition_id = parts[0]
        if not competition_id:
            raise ValueError("id kosong")
        payload = _competition_payload(parts[1:])
    except ValueError:
        await message.answer("Format: /lomba_ubah id | Nama | biaya | maks_anggota")
        return
    try:
        await catalog.update_competition(competition_id, payload)
    except httpx.HTTPError:
        await message.answer("❌ Gagal mengubah kompetisi.")
        return
    await message.answer("✅ Kompetisi diperbarui.")


@router.message(Command("lomba_hapus"), OrganizerOnly())
async def cmd_delete_competition(
    message: Message, command: CommandObject, catalog: CompetitionCatalog
) -> None:
    competition_id = (command.args or "").strip()
    if not competition_id:
        await message.answer("Format: /lomba_hapus id")
        return
    try:
        await catalog.delete_competition(competition_id)
    except httpx.HTTPError:
        await message.answer("❌ Gagal menghapus kompetisi.")
        return
    await message.answer("🗑 Kompetisi dihapus.")
