"""
Organiser access control.

OrganizerMiddleware marks every update with `is_organizer`, looked up in the
organiser IDs it was built with (ADMIN_IDS by default).  The OrganizerOnly
filter turns everyone else away from the organiser commands.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from aiogram import BaseMiddleware
from aiogram.filters import BaseFilter
from aiogram.types import Message, TelegramObject

from recup.config import settings

logger = logging.getLogger(__name__)

REFUSED_TEXT = "⛔️ Perintah ini hanya untuk panitia RECUP."


class OrganizerMiddleware(BaseMiddleware):
    def __init__(self, organizer_ids: Optional[Iterable[int]] = None) -> None:
        ids = settings.admin_ids_list if organizer_ids is None else organizer_ids
        self._organizer_ids = frozenset(ids)

    def is_organizer(self, user_id: int) -> bool:
        return user_id in self._organizer_ids

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        data["is_organizer"] = user is not None and self.is_organizer(user.id)
        return await handler(event, data)


class OrganizerOnly(BaseFilter):
    """Organiser commands only; anyone else gets a short refusal."""

    async def __call__(self, message: Message, is_organizer: bool = False) -> bool:
        if is_organizer:
            return True
        user_id = message.from_user.id if message.from_user else None
        logger.info("Organiser command %r refused for user %s", message.text, user_id)
        await message.answer(REFUSED_TEXT)
        return False
