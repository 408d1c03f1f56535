"""
Centralized CallbackData factories.
Telegram limits callback_data to 64 bytes — all prefixes are kept short.
"""
from aiogram.filters.callback_data import CallbackData


class MainMenuCb(CallbackData, prefix="mm"):
    action: str           # main | register | info | guidebook


class CompetitionCb(CallbackData, prefix="cmp"):
    idx: int              # position in the list shown to the user


class RosterCb(CallbackData, prefix="ros"):
    action: str           # add_member | add_official | rm_member | rm_official | change_comp | done
    idx: int = 0          # member / official index
    role: str = ""        # official role for add_official


class FormCb(CallbackData, prefix="frm"):
    action: str           # submit | edit | cancel


class PaymentCb(CallbackData, prefix="pay"):
    action: str           # check | close | retry | cancel
