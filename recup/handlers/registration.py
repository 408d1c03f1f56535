"""
Team registration FSM handler.

Flow:
  Registration → choose competition → team name
    → leader: name → phone → photo → surat → pakta
    → roster menu (add / remove members and officials, running total)
    → school* → email → WhatsApp → confirm → submit → payment page

  * only asked for competitions that are not school-exempt.

The draft itself lives in a RegistrationSession in FSM data (see
recup.workflow); the FSM state only says which input is expected next.
"""
import logging
from typing import Optional

from aiogram import Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.utils.text_decorations import html_decoration as hd

from recup.exceptions import (
    CatalogUnavailable, DraftIncomplete, RecupError, SubmissionError, WorkflowBusy,
)
from recup.handlers.payment import send_payment_page
from recup.keyboards import (
    CompetitionCb, FormCb, MainMenuCb, RosterCb,
    cancel_registration_kb, competition_list_kb, confirm_registration_kb,
    retry_payment_kb, roster_menu_kb,
)
from recup.models import (
    Attachment, Competition, MEMBER_FIELDS, OFFICIAL_FIELDS, PersonField, TeamRoster,
)
from recup.services import (
    CompetitionCatalog, RegistrationClient, SnapBridge,
    fee_breakdown, format_rupiah, requires_school, roster_cap,
)
from recup.states import RegistrationStates
from recup.validators import clean_email, clean_name, clean_phone
from recup.workflow import (
    BUSY_PHASES, RETRY_PHASES, RegistrationWorkflow, load_workflow, save_workflow,
)

logger = logging.getLogger(__name__)
router = Router(name="registration")

COMPETITIONS_KEY = "competitions"   # list shown to the user, indexed by CompetitionCb
LOADING_KEY      = "loading"        # id of the callback whose catalog fetch is in flight
TARGET_KEY       = "target"         # {"role", "idx", "field"} for RegistrationStates.fill_person

_DOCUMENT_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png", ".webp")


# ── Text builders ─────────────────────────────────────────────────────────────

def _person_complete(person) -> bool:
    return bool(person.name and person.phone and person.photo and person.surat and person.pakta)


def _official_complete(official) -> bool:
    return bool(official.name and official.phone and official.photo)


def _roster_text(wf: RegistrationWorkflow) -> str:
    competition = wf.competition
    roster = wf.roster
    draft = wf.session.draft
    cap = roster_cap(competition)

    lines = [
        f"🏆 <b>{hd.quote(competition.name if competition else '—')}</b>",
        f"👥 Tim: {hd.quote(draft.team_name or '—')}",
        "",
        f"⭐️ Ketua: {hd.quote(roster.leader.name or '—')}"
        f" {'✅' if _person_complete(roster.leader) else '⚠️'}",
        f"👤 Anggota ({len(roster.members)}/{cap - 1}):",
    ]
    if not roster.members:
        lines.append("   <i>Belum ada anggota tambahan.</i>")
    for idx, member in enumerate(roster.members):
        mark = "✅" if _person_complete(member) else "⚠️"
        lines.append(f"   {idx + 1}. {hd.quote(member.name or '…')} {mark}")
    if roster.officials:
        lines.append("🧑‍🏫 Pendamping:")
        for official in roster.officials:
            mark = "✅" if _official_complete(official) else "⚠️"
            lines.append(f"   • {official.role_label}: {hd.quote(official.name or '…')} {mark}")

    lines += [
        "",
        f"💰 <b>Total Biaya: {format_rupiah(wf.total_fee)}</b>",
        f"<i>{hd.quote(fee_breakdown(competition, roster.team_size))}</i>",
    ]
    return "\n".join(lines)


def _summary_text(wf: RegistrationWorkflow) -> str:
    draft = wf.session.draft
    lines = ["📝 <b>Periksa data pendaftaran:</b>", "", _roster_text(wf), ""]
    if requires_school(draft.competition):
        lines.append(f"🏫 Asal Sekolah: {hd.quote(draft.school or '—')}")
    lines += [
        f"✉️ Email: {hd.quote(draft.email or '—')}",
        f"📱 WhatsApp: {hd.quote(draft.whatsapp or '—')}",
        "",
        "Dengan menekan <b>Daftar & Bayar</b> Anda menyatakan bahwa data yang "
        "diberikan adalah benar.",
    ]
    return "\n".join(lines)


def _competition_intro(competition: Competition) -> str:
    cap = roster_cap(competition)
    school = "wajib" if requires_school(competition) else "tidak diperlukan"
    return (
        f"✅ <b>{hd.quote(competition.name)}</b>\n"
        f"💰 Biaya: {format_rupiah(competition.fee)}\n"
        f"👥 Maksimal {cap} orang (termasuk ketua)\n"
        f"🏫 Asal sekolah: {school}"
    )


def _field_prompt(role: str, idx: int, field: PersonField) -> str:
    if role == "leader":
        who = "Ketua Tim"
    elif role == "member":
        who = f"Anggota {idx + 1}"
    else:
        who = f"Pendamping {idx + 1}"

    if field is PersonField.NAME:
        ask = "Masukkan <b>nama lengkap</b>:"
    elif field is PersonField.PHONE:
        ask = "Masukkan <b>nomor HP/WhatsApp</b> (contoh: <code>081234567890</code>):"
    elif field is PersonField.PHOTO:
        ask = "Kirim <b>pas foto</b> (gambar):"
    else:
        ask = f"Kirim <b>{field.label}</b> (PDF/JPG/PNG/WEBP):"
    return f"👤 <b>{who}</b>\n{ask}"


# ── Small helpers ─────────────────────────────────────────────────────────────

def _attachment_from_message(message: Message, field: PersonField) -> Optional[Attachment]:
    if message.photo:
        size = message.photo[-1]
        return Attachment(
            file_id=size.file_id,
            file_name=f"{size.file_unique_id}.jpg",
            mime_type="image/jpeg",
        )
    doc = message.document
    if doc is None:
        return None
    name = doc.file_name or doc.file_unique_id
    mime = doc.mime_type or "application/octet-stream"
    if field is PersonField.PHOTO:
        if not mime.startswith("image/"):
            return None
    elif not name.lower().endswith(_DOCUMENT_EXTENSIONS):
        return None
    return Attachment(file_id=doc.file_id, file_name=name, mime_type=mime)


def _update_person(roster: TeamRoster, role: str, idx: int, field: PersonField, value) -> None:
    if role == "leader":
        roster.update_leader(field, value)
    elif role == "member":
        roster.update_member(idx, field, value)
    else:
        roster.update_official(idx, field, value)


def _person_exists(roster: TeamRoster, role: str, idx: int) -> bool:
    if role == "leader":
        return True
    people = roster.members if role == "member" else roster.officials
    return 0 <= idx < len(people)


def _next_field(role: str, field: PersonField) -> Optional[PersonField]:
    fields = OFFICIAL_FIELDS if role == "official" else MEMBER_FIELDS
    pos = fields.index(field)
    return fields[pos + 1] if pos + 1 < len(fields) else None


async def _ask_field(
    message: Message, state: FSMContext, role: str, idx: int, field: PersonField
) -> None:
    await state.update_data({TARGET_KEY: {"role": role, "idx": idx, "field": field.value}})
    await state.set_state(RegistrationStates.fill_person)
    await message.answer(
        _field_prompt(role, idx, field),
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_registration_kb(),
    )


async def _show_roster(
    message: Message, state: FSMContext, wf: RegistrationWorkflow, edit: bool = False
) -> None:
    await state.set_state(RegistrationStates.roster_menu)
    text = _roster_text(wf)
    kb: InlineKeyboardMarkup = roster_menu_kb(wf.roster)
    if edit:
        await message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=kb)
    else:
        await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


async def _edit_or_answer(
    message: Message, text: str, kb: Optional[InlineKeyboardMarkup] = None
) -> None:
    """Edit the status message in place, or send a fresh one if Telegram refuses the edit."""
    try:
        await message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=kb)
    except TelegramAPIError as exc:
        logger.warning("Status edit refused (%s), sending a new message", exc)
        await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


async def _still_loading(state: FSMContext, callback_id: str) -> bool:
    """False once the user cancelled or moved on while the catalog was loading."""
    if await state.get_state() != RegistrationStates.choose_competition.state:
        return False
    data = await state.get_data()
    return data.get(LOADING_KEY) == callback_id


# ── Entry: "Registration" button ─────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "register"))
async def cq_start_registration(
    callback: CallbackQuery,
    state: FSMContext,
    catalog: CompetitionCatalog,
) -> None:
    wf = await load_workflow(state)
    if wf.phase in BUSY_PHASES:
        await callback.answer(WorkflowBusy.user_message, show_alert=True)
        return
    if wf.phase in RETRY_PHASES:
        # Already submitted; only the payment is left
        await state.set_state(RegistrationStates.payment)
        await callback.message.edit_text(
            "💳 Pendaftaran Anda sudah terkirim dan menunggu pembayaran.",
            reply_markup=retry_payment_kb(),
        )
        await callback.answer()
        return

    wf.open()
    await save_workflow(state, wf)
    await state.set_state(RegistrationStates.choose_competition)
    await state.update_data({LOADING_KEY: callback.id})

    try:
        competitions = await catalog.fetch_competitions()
    except CatalogUnavailable as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    if not await _still_loading(state, callback.id):
        logger.debug("Dropping competitions fetched for an abandoned conversation")
        await callback.answer()
        return
    if not competitions:
        await callback.answer("Belum ada kompetisi yang dibuka.", show_alert=True)
        return

    await state.update_data({
        COMPETITIONS_KEY: [c.model_dump(mode="json") for c in competitions],
        LOADING_KEY: None,
    })
    await callback.message.edit_text(
        "📋 <b>Pilih Kompetisi:</b>",
        parse_mode=ParseMode.HTML,
        reply_markup=competition_list_kb(competitions),
    )
    await callback.answer()


# ── Step 1: competition chosen ────────────────────────────────────────────────

@router.callback_query(CompetitionCb.filter(), RegistrationStates.choose_competition)
async def cq_competition_selected(
    callback: CallbackQuery,
    callback_data: CompetitionCb,
    state: FSMContext,
) -> None:
    items = (await state.get_data()).get(COMPETITIONS_KEY) or []
    if not 0 <= callback_data.idx < len(items):
        await callback.answer("Kompetisi tidak ditemukan.", show_alert=True)
        return
    competition = Competition.model_validate(items[callback_data.idx])

    wf = await load_workflow(state)
    try:
        wf.select_competition(competition)
    except RecupError as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return
    await save_workflow(state, wf)

    await callback.message.edit_text(_competition_intro(competition), parse_mode=ParseMode.HTML)
    await callback.answer()

    if wf.session.draft.team_name:
        # Competition switched later on: team name stays, roster starts over
        await _ask_field(callback.message, state, "leader", 0, PersonField.NAME)
        return
    await state.set_state(RegistrationStates.enter_team_name)
    await callback.message.answer(
        "Masukkan <b>Nama Tim</b>:",
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_registration_kb(),
    )


# ── Step 2: team name ─────────────────────────────────────────────────────────

@router.message(RegistrationStates.enter_team_name)
async def msg_team_name(message: Message, state: FSMContext) -> None:
    name = message.text.strip() if message.text else ""
    if not name or len(name) > 100:
        await message.answer(
            "⚠️ Nama tim wajib diisi (maksimal 100 karakter):",
            reply_markup=cancel_registration_kb(),
        )
        return

    wf = await load_workflow(state)
    try:
        wf.ensure_editable()
    except RecupError as exc:
        await message.answer(exc.user_message)
        return
    wf.session.draft.team_name = name
    await save_workflow(state, wf)
    await _ask_field(message, state, "leader", 0, PersonField.NAME)


# ── Step 3: one field of the leader / a member / an official ─────────────────

@router.message(RegistrationStates.fill_person)
async def msg_fill_person(message: Message, state: FSMContext) -> None:
    target = (await state.get_data()).get(TARGET_KEY)
    wf = await load_workflow(state)
    try:
        wf.ensure_editable()
    except RecupError as exc:
        await message.answer(exc.user_message)
        return
    if not target or not _person_exists(wf.roster, target["role"], target["idx"]):
        await _show_roster(message, state, wf)
        return

    role, idx, field = target["role"], target["idx"], PersonField(target["field"])
    if field.is_attachment:
        value = _attachment_from_message(message, field)
        if value is None:
            hint = "gambar" if field is PersonField.PHOTO else "file PDF/JPG/PNG/WEBP"
            await message.answer(
                f"⚠️ Kirim {field.label} sebagai {hint}.",
                reply_markup=cancel_registration_kb(),
            )
            return
    else:
        raw = message.text or ""
        try:
            value = clean_name(raw) if field is PersonField.NAME else clean_phone(raw)
        except ValueError as exc:
            await message.answer(
                f"⚠️ {field.label} {exc}. Coba lagi:",
                reply_markup=cancel_registration_kb(),
            )
            return

    _update_person(wf.roster, role, idx, field, value)
    await save_workflow(state, wf)

    next_field = _next_field(role, field)
    if next_field is not None:
        await _ask_field(message, state, role, idx, next_field)
    else:
        await _show_roster(message, state, wf)


# ── Step 4: roster menu ───────────────────────────────────────────────────────

@router.callback_query(RosterCb.filter(), RegistrationStates.roster_menu)
async def cq_roster(
    callback: CallbackQuery,
    callback_data: RosterCb,
    state: FSMContext,
) -> None:
    wf = await load_workflow(state)
    action = callback_data.action
    idx = callback_data.idx

    try:
        wf.ensure_editable()
        if action == "add_member":
            new_idx = wf.add_member()
            await save_workflow(state, wf)
            await callback.answer()
            await _ask_field(callback.message, state, "member", new_idx, PersonField.NAME)
            return

        if action == "add_official":
            new_idx = wf.roster.add_official(callback_data.role)
            await save_workflow(state, wf)
            await callback.answer()
            await _ask_field(callback.message, state, "official", new_idx, PersonField.NAME)
            return
    except RecupError as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    if action in ("rm_member", "rm_official"):
        role = "member" if action == "rm_member" else "official"
        if not _person_exists(wf.roster, role, idx):
            await callback.answer("Data sudah berubah.", show_alert=True)
            await _show_roster(callback.message, state, wf, edit=True)
            return
        if role == "member":
            wf.roster.remove_member(idx)
        else:
            wf.roster.remove_official(idx)
        await save_workflow(state, wf)
        await _show_roster(callback.message, state, wf, edit=True)
        await callback.answer("Dihapus.")
        return

    if action == "change_comp":
        items = (await state.get_data()).get(COMPETITIONS_KEY) or []
        competitions = [Competition.model_validate(c) for c in items]
        await state.set_state(RegistrationStates.choose_competition)
        await callback.message.edit_text(
            "📋 <b>Pilih Kompetisi:</b>\n<i>Data ketua, anggota dan pendamping akan dikosongkan.</i>",
            parse_mode=ParseMode.HTML,
            reply_markup=competition_list_kb(competitions),
        )
        await callback.answer()
        return

    if action == "done":
        await callback.answer()
        if requires_school(wf.competition):
            await state.set_state(RegistrationStates.enter_school)
            await callback.message.answer(
                "🏫 Masukkan <b>Asal Sekolah</b>:",
                parse_mode=ParseMode.HTML,
                reply_markup=cancel_registration_kb(),
            )
        else:
            await state.set_state(RegistrationStates.enter_email)
            await callback.message.answer(
                "✉️ Masukkan <b>Email</b>:",
                parse_mode=ParseMode.HTML,
                reply_markup=cancel_registration_kb(),
            )
        return

    await callback.answer()


# ── Step 5: contact details ───────────────────────────────────────────────────

@router.message(RegistrationStates.enter_school)
async def msg_school(message: Message, state: FSMContext) -> None:
    school = message.text.strip() if message.text else ""
    if not school or len(school) > 150:
        await message.answer("⚠️ Asal sekolah wajib diisi:", reply_markup=cancel_registration_kb())
        return

    wf = await load_workflow(state)
    try:
        wf.ensure_editable()
    except RecupError as exc:
        await message.answer(exc.user_message)
        return
    wf.session.draft.school = school
    await save_workflow(state, wf)
    await state.set_state(RegistrationStates.enter_email)
    await message.answer(
        "✉️ Masukkan <b>Email</b>:",
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_registration_kb(),
    )


@router.message(RegistrationStates.enter_email)
async def msg_email(message: Message, state: FSMContext) -> None:
    try:
        email = clean_email(message.text or "")
    except ValueError as exc:
        await message.answer(f"⚠️ Email {exc}. Coba lagi:", reply_markup=cancel_registration_kb())
        return

    wf = await load_workflow(state)
    try:
        wf.ensure_editable()
    except RecupError as exc:
        await message.answer(exc.user_message)
        return
    wf.session.draft.email = email
    await save_workflow(state, wf)
    await state.set_state(RegistrationStates.enter_whatsapp)
    await message.answer(
        "📱 Masukkan <b>No. WhatsApp</b>:",
        parse_mode=ParseMode.HTML,
        reply_markup=cancel_registration_kb(),
    )


@router.message(RegistrationStates.enter_whatsapp)
async def msg_whatsapp(message: Message, state: FSMContext) -> None:
    try:
        whatsapp = clean_phone(message.text or "")
    except ValueError as exc:
        await message.answer(f"⚠️ No. WhatsApp {exc}. Coba lagi:", reply_markup=cancel_registration_kb())
        return

    wf = await load_workflow(state)
    try:
        wf.ensure_editable()
    except RecupError as exc:
        await message.answer(exc.user_message)
        return
    wf.session.draft.whatsapp = whatsapp
    await save_workflow(state, wf)
    await state.set_state(RegistrationStates.confirm)
    await message.answer(
        _summary_text(wf),
        parse_mode=ParseMode.HTML,
        reply_markup=confirm_registration_kb(),
    )


# ── Step 6: confirm → submit ──────────────────────────────────────────────────

@router.callback_query(FormCb.filter(F.action == "edit"), RegistrationStates.confirm)
async def cq_edit_registration(callback: CallbackQuery, state: FSMContext) -> None:
    """Go back to the roster menu."""
    wf = await load_workflow(state)
    await _show_roster(callback.message, state, wf, edit=True)
    await callback.answer()


@router.callback_query(FormCb.filter(F.action == "submit"), RegistrationStates.confirm)
async def cq_submit_registration(
    callback: CallbackQuery,
    state: FSMContext,
    bot: Bot,
    registrations: RegistrationClient,
    payments: SnapBridge,
) -> None:
    wf = await load_workflow(state)
    try:
        wf.begin_submit()
    except DraftIncomplete as exc:
        await callback.answer("Data belum lengkap.", show_alert=True)
        await callback.message.answer(f"⚠️ {hd.quote(exc.user_message)}", parse_mode=ParseMode.HTML)
        await _show_roster(callback.message, state, wf)
        return
    except RecupError as exc:
        await callback.answer(exc.user_message, show_alert=True)
        return

    # Persist SUBMITTING before the upload so repeated taps are refused
    await save_workflow(state, wf)

    async def load_file(attachment: Attachment) -> bytes:
        buffer = await bot.download(attachment.file_id)
        return buffer.read()

    def log_progress(fraction: float) -> None:
        logger.info("Upload progress for chat %s: %d%%", callback.from_user.id, round(fraction * 100))

    token: Optional[str] = None
    failure: Optional[str] = None
    try:
        await callback.answer()
        await callback.message.edit_text(
            "⏳ <b>Processing…</b> mengunggah berkas pendaftaran.", parse_mode=ParseMode.HTML
        )
        result = await registrations.submit(wf.session.draft, load_file, progress=log_progress)
        token = result["snap_token"]
    except SubmissionError as exc:
        failure = exc.user_message
    finally:
        if token is None:
            # No token, whatever the reason: the draft goes back to editing
            wf.submission_failed()
            await save_workflow(state, wf)

    if failure is not None:
        await _edit_or_answer(
            callback.message,
            f"❌ <b>Registrasi Gagal</b>\n\n{hd.quote(failure)}\n\n"
            f"Data Anda tetap tersimpan, silakan coba lagi.",
            confirm_registration_kb(),
        )
        return

    wf.submission_succeeded(token)
    await save_workflow(state, wf)
    await state.set_state(RegistrationStates.payment)
    await _edit_or_answer(callback.message, "✅ <b>Pendaftaran terkirim!</b> Silakan selesaikan pembayaran.")
    await send_payment_page(callback.message, state, wf, payments)
