"""
Payment step: Snap payment page, status check, retry and cancel.

The buttons are gated by the workflow phase stored in FSM data rather than
by FSM state, so an old payment message keeps working after /start.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import BufferedInputFile, CallbackQuery, Message

from recup.exceptions import PaymentUnavailable, RecupError
from recup.keyboards import PaymentCb, main_menu, payment_kb, retry_payment_kb
from recup.models import Phase
from recup.services import PaymentHandlers, PaymentOutcome, SnapBridge, format_rupiah
from recup.states import RegistrationStates
from recup.workflow import RegistrationWorkflow, load_workflow, save_workflow

logger = logging.getLogger(__name__)
router = Router(name="payment")


async def send_payment_page(
    message: Message,
    state: FSMContext,
    wf: RegistrationWorkflow,
    payments: SnapBridge,
) -> None:
    """
    Send the Snap payment link (button + QR) for the session's token.
    If Snap could not be loaded, or Telegram refused the page, the attempt
    counts as failed and the user gets the retry keyboard.
    """
    await payments.ensure_loaded()
    try:
        link = await payments.pay(wf.payment_token)
    except PaymentUnavailable as exc:
        await _payment_failed(message, state, wf, exc.user_message)
        return

    await state.set_state(RegistrationStates.payment)
    try:
        await message.answer_photo(
            BufferedInputFile(link.qr_png, filename="pembayaran.png"),
            caption=(
                f"💳 <b>Pembayaran Pendaftaran</b>\n"
                f"Total: <b>{format_rupiah(wf.total_fee)}</b>\n\n"
                f"Buka halaman pembayaran lewat tombol di bawah atau pindai kode QR.\n"
                f"Setelah membayar, tekan <b>Cek Status</b>."
            ),
            parse_mode=ParseMode.HTML,
            reply_markup=payment_kb(link.url),
        )
    except TelegramAPIError as exc:
        logger.error("Payment page for chat %s not delivered: %s", message.chat.id, exc)
        await _payment_failed(message, state, wf, "Halaman pembayaran gagal dikirim.")


async def _payment_failed(
    message: Message, state: FSMContext, wf: RegistrationWorkflow, reason: str
) -> None:
    """Count the attempt as failed so the retry keyboard is the way forward."""
    wf.apply_outcome(PaymentOutcome.FAILED)
    await save_workflow(state, wf)
    await message.answer(f"❌ {reason}", reply_markup=retry_payment_kb())


async def _drop_keyboard(callback: CallbackQuery) -> None:
    try:
        await callback.message.edit_reply_markup(reply_markup=None)
    except TelegramBadRequest as exc:
        logger.debug("Keyboard already gone: %s", exc)


async def _settle(
    callback: CallbackQuery,
    state: FSMContext,
    wf: RegistrationWorkflow,
    payments: SnapBridge,
    outcome: PaymentOutcome,
) -> None:
    phase = wf.apply_outcome(outcome)
    if phase is Phase.IDLE:
        await state.clear()
    else:
        await save_workflow(state, wf)
    await _drop_keyboard(callback)

    async def on_success() -> None:
        await callback.message.answer(
            "✅ <b>Pembayaran Berhasil!</b>\n"
            "Terima kasih, pembayaran Anda telah dikonfirmasi 🎉\n"
            "Sampai jumpa di RECUP!",
            parse_mode=ParseMode.HTML,
            reply_markup=main_menu(),
        )

    async def on_pending() -> None:
        await callback.message.answer(
            "⏳ <b>Menunggu Pembayaran</b>\n"
            "Silakan selesaikan pembayaran Anda melalui Midtrans.",
            parse_mode=ParseMode.HTML,
            reply_markup=retry_payment_kb(),
        )

    async def on_error() -> None:
        await callback.message.answer(
            "❌ <b>Pembayaran Gagal</b>\n"
            "Silakan coba lagi atau hubungi panitia.",
            parse_mode=ParseMode.HTML,
            reply_markup=retry_payment_kb(),
        )

    async def on_close() -> None:
        await callback.message.answer(
            "Halaman pembayaran ditutup. Pendaftaran Anda tetap tersimpan.",
            reply_markup=retry_payment_kb(),
        )

    await payments.dispatch(
        outcome,
        PaymentHandlers(on_success=on_success, on_pending=on_pending, on_error=on_error, on_close=on_close),
    )


# ── Payment page buttons ──────────────────────────────────────────────────────

@router.callback_query(PaymentCb.filter(F.action == "check"))
async def cq_check_payment(callback: CallbackQuery, state: FSMContext, payments: SnapBridge) -> None:
    wf = await load_workflow(state)
    if wf.phase is not Phase.AWAITING_PAYMENT or not wf.payment_token:
        await callback.answer("Tidak ada pembayaran yang aktif.", show_alert=True)
        return

    outcome = await payments.check(wf.payment_token)
    await callback.answer()
    await _settle(callback, state, wf, payments, outcome)


@router.callback_query(PaymentCb.filter(F.action == "close"))
async def cq_close_payment(callback: CallbackQuery, state: FSMContext, payments: SnapBridge) -> None:
    wf = await load_workflow(state)
    if wf.phase is not Phase.AWAITING_PAYMENT:
        await callback.answer("Tidak ada pembayaran yang aktif.", show_alert=True)
        return
    await callback.answer()
    await _settle(callback, state, wf, payments, PaymentOutcome.CLOSED)


# ── Retry / cancel after a pending or failed attempt ──────────────────────────

@router.callback_query(PaymentCb.filter(F.action == "retry"))
async def cq_retry_payment(callback: CallbackQuery, state: FSMContext, payments: SnapBridge) -> None:
    wf = await load_workflow(state)
    try:
        wf.retry_payment()
    except RecupError as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    await callback.answer()
    await _drop_keyboard(callback)
    await save_workflow(state, wf)
    logger.info("User %s retries payment", callback.from_user.id)
    await send_payment_page(callback.message, state, wf, payments)


@router.callback_query(PaymentCb.filter(F.action == "cancel"))
async def cq_cancel_registration(callback: CallbackQuery, state: FSMContext) -> None:
    wf = await load_workflow(state)
    try:
        wf.reset()
    except RecupError as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    await state.clear()
    await callback.message.edit_text(
        "Pendaftaran dibatalkan. Anda dapat mendaftar ulang kapan saja.",
        reply_markup=main_menu(),
    )
    await callback.answer()
