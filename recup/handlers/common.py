"""
Common handlers: /start, main menu routing, competition info.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.utils.text_decorations import html_decoration as hd

from recup.exceptions import CatalogUnavailable, WorkflowBusy
from recup.keyboards import MainMenuCb, back_to_main, main_menu
from recup.services import CompetitionCatalog, format_rupiah, requires_school, roster_cap
from recup.workflow import RETRY_PHASES, load_workflow

logger = logging.getLogger(__name__)
router = Router(name="common")

WELCOME_TEXT = (
    "🏀 <b>RECUP</b>\n\n"
    "Selamat datang di pendaftaran lomba RECUP!\n"
    "• 📝 Daftarkan tim Anda\n"
    "• 🏆 Lihat daftar kompetisi dan biaya\n"
    "• 📖 Baca guidebook lomba\n\n"
    "Pilih menu:"
)


async def _show(callback: CallbackQuery, text: str, kb: InlineKeyboardMarkup) -> None:
    """Edit the message in place; photo messages cannot be edited to text, so answer instead."""
    try:
        await callback.message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=kb)
    except TelegramBadRequest as exc:
        logger.debug("Cannot edit message, sending a new one: %s", exc)
        await callback.message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


# ── /start ────────────────────────────────────────────────────────────────────

@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    await message.answer(WELCOME_TEXT, parse_mode=ParseMode.HTML, reply_markup=main_menu())


# ── Main menu callback (also the "Batal" button of the form) ─────────────────

@router.callback_query(MainMenuCb.filter(F.action == "main"))
async def cq_main_menu(callback: CallbackQuery, state: FSMContext) -> None:
    wf = await load_workflow(state)
    if not wf.can_dismiss:
        await callback.answer(WorkflowBusy.user_message, show_alert=True)
        return

    if wf.phase in RETRY_PHASES:
        # Payment still owed; the token survives until an explicit cancel
        await state.set_state(None)
    else:
        wf.reset()
        await state.clear()

    await _show(callback, WELCOME_TEXT, main_menu())
    await callback.answer()


# ── Competition info ─────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "info"))
async def cq_competition_info(callback: CallbackQuery, catalog: CompetitionCatalog) -> None:
    try:
        competitions = await catalog.fetch_competitions()
    except CatalogUnavailable as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    lines = ["🏆 <b>Kompetisi RECUP</b>", ""]
    if not competitions:
        lines.append("<i>Belum ada kompetisi yang dibuka.</i>")
    for c in competitions:
        school = "" if requires_school(c) else " · tanpa asal sekolah"
        lines.append(
            f"• <b>{hd.quote(c.name)}</b>: {format_rupiah(c.fee)}"
            f" · maks. {roster_cap(c)} orang{school}"
        )

    await _show(callback, "\n".join(lines), back_to_main())
    await callback.answer()


@router.callback_query(MainMenuCb.filter(F.action == "guidebook"))
async def cq_guidebook(callback: CallbackQuery) -> None:
    await callback.answer("📖 Guidebook akan segera tersedia.", show_alert=True)


@router.callback_query(F.data == "noop")
async def cq_noop(callback: CallbackQuery) -> None:
    await callback.answer()
