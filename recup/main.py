"""
RECUP — competition registration bot.
Entry point: builds the backend clients, registers routers + middleware,
handles graceful shutdown.
"""
import asyncio
import logging
import signal
import sys

import httpx
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import ErrorEvent

from recup.config import settings
from recup.middlewares import OrganizerMiddleware, ServicesMiddleware
from recup.services import CompetitionCatalog, RegistrationClient, SnapBridge, TimedCache

# ── Handlers ──────────────────────────────────────────────────────────────────
from recup.handlers.common import router as common_router
from recup.handlers.registration import router as registration_router
from recup.handlers.payment import router as payment_router
from recup.handlers.admin import router as admin_router
from recup.handlers.fallback import router as fallback_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_dispatcher(
    catalog: CompetitionCatalog,
    registrations: RegistrationClient,
    payments: SnapBridge,
) -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())

    # ── Global error handler — ensures callbacks are always answered ──────────
    @dp.errors()
    async def handle_error(event: ErrorEvent) -> None:
        logger.exception("Unhandled error: %s", event.exception)
        update = event.update
        if update.callback_query:
            try:
                await update.callback_query.answer(
                    "⚠️ Terjadi kesalahan. Silakan coba lagi.", show_alert=True
                )
            except TelegramAPIError as exc:
                logger.debug("Could not answer callback after error: %s", exc)

    # ── Global middlewares ────────────────────────────────────────────────────
    dp.update.middleware(ServicesMiddleware(catalog, registrations, payments))
    dp.update.middleware(OrganizerMiddleware(settings.admin_ids_list))

    # ── Routers — order matters for handler priority ──────────────────────────
    dp.include_router(common_router)
    dp.include_router(registration_router)
    dp.include_router(payment_router)
    dp.include_router(admin_router)

    # !! Must be last: catches any callback not handled above !!
    dp.include_router(fallback_router)

    return dp


async def main() -> None:
    logger.info("Starting RECUP bot…")

    http = httpx.AsyncClient(base_url=settings.api_base_url)
    catalog = CompetitionCatalog(
        http,
        TimedCache(settings.CATALOG_CACHE_SECONDS),
        timeout=settings.CATALOG_TIMEOUT,
    )
    registrations = RegistrationClient(
        http,
        TimedCache(settings.REGISTRATION_CACHE_SECONDS),
        catalog=catalog,
        read_timeout=settings.CATALOG_TIMEOUT,
        submit_timeout=settings.SUBMIT_TIMEOUT,
    )
    payments = SnapBridge(settings.MIDTRANS_SNAP_BASE, settings.MIDTRANS_CLIENT_KEY)
    if not await payments.ensure_loaded():
        logger.warning("Snap not reachable at start-up; will retry on first payment")

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = build_dispatcher(catalog, registrations, payments)

    # ── Graceful shutdown on SIGTERM (Docker / systemd) ───────────────────────
    loop = asyncio.get_running_loop()

    def _handle_signal() -> None:
        logger.info("Received shutdown signal, stopping…")
        loop.create_task(dp.stop_polling())

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal)
        except NotImplementedError:
            # Windows does not support add_signal_handler
            pass

    try:
        logger.info("Bot is running. Press Ctrl+C to stop.")
        await dp.start_polling(
            bot,
            allowed_updates=dp.resolve_used_update_types(),
            handle_signals=False,
        )
    finally:
        logger.info("Shutting down…")
        await bot.session.close()
        await payments.close()
        await http.aclose()
        logger.info("Shutdown complete.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
