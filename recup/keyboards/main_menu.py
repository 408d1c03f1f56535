"""
Landing menu keyboards.
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from recup.config import settings
from recup.keyboards.callbacks import MainMenuCb


def main_menu() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="📝 Registration", callback_data=MainMenuCb(action="register").pack()),
        InlineKeyboardButton(text="🏆 Info Lomba",   callback_data=MainMenuCb(action="info").pack()),
    )
    if settings.GUIDEBOOK_URL:
        builder.row(InlineKeyboardButton(text="📖 Guidebook", url=settings.GUIDEBOOK_URL))
    else:
        builder.row(
            InlineKeyboardButton(text="📖 Guidebook", callback_data=MainMenuCb(action="guidebook").pack())
        )
    if settings.INSTAGRAM_URL:
        builder.row(InlineKeyboardButton(text="📷 Instagram", url=settings.INSTAGRAM_URL))
    return builder.as_markup()


def back_to_main() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🔙 Menu Utama", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
