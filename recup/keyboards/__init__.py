from recup.keyboards.callbacks import (
    MainMenuCb,
    CompetitionCb,
    RosterCb,
    FormCb,
    PaymentCb,
)
from recup.keyboards.main_menu import main_menu, back_to_main
from recup.keyboards.registration_kb import (
    competition_list_kb,
    cancel_registration_kb,
    roster_menu_kb,
    confirm_registration_kb,
    payment_kb,
    retry_payment_kb,
)

__all__ = [
    # callbacks
    "MainMenuCb", "CompetitionCb", "RosterCb", "FormCb", "PaymentCb",
    # main menu
    "main_menu", "back_to_main",
    # registration
    "competition_list_kb", "cancel_registration_kb", "roster_menu_kb",
    "confirm_registration_kb", "payment_kb", "retry_payment_kb",
]
