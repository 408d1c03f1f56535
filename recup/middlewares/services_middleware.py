"""
Service injection middleware.
Puts the long-lived clients into every handler's data dict:
"catalog", "registrations" and "payments".
"""
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from recup.services import CompetitionCatalog, RegistrationClient, SnapBridge


class ServicesMiddleware(BaseMiddleware):
    def __init__(
        self,
        catalog: CompetitionCatalog,
        registrations: RegistrationClient,
        payments: SnapBridge,
    ) -> None:
        self._catalog       = catalog
        self._registrations = registrations
        self._payments      = payments

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["catalog"]       = self._catalog
        data["registrations"] = self._registrations
        data["payments"]      = self._payments
        return await handler(event, data)
