"""
Global fallback handler — included LAST in the dispatcher.

Catches any callback query that no other router handled:
stale keyboards after a restart (MemoryStorage is wiped on redeploy)
and buttons of a form step the user already left.
"""
import logging

from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from recup.keyboards import main_menu
from recup.workflow import RETRY_PHASES, load_workflow

logger = logging.getLogger(__name__)
router = Router(name="fallback")


@router.callback_query()
async def cq_fallback(callback: CallbackQuery, state: FSMContext) -> None:
    wf = await load_workflow(state)
    if not wf.can_dismiss or wf.phase in RETRY_PHASES:
        # Never drop a session that is uploading or still owes a payment
        await callback.answer("⚠️ Tombol sudah tidak berlaku.", show_alert=True)
        return

    await callback.answer("⚠️ Tombol sudah tidak berlaku. Silakan mulai lagi.", show_alert=True)
    await state.clear()
    try:
        await callback.message.edit_text(
            "🔄 <b>Sesi direset.</b> Kembali ke menu utama:",
            parse_mode=ParseMode.HTML,
            reply_markup=main_menu(),
        )
    except TelegramBadRequest as exc:
        logger.debug("Fallback could not edit message: %s", exc)
