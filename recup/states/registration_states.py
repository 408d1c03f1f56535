from aiogram.fsm.state import State, StatesGroup


class RegistrationStates(StatesGroup):
    """FSM for the team registration form."""
    choose_competition = State()   # Select competition from list
    enter_team_name    = State()   # Text input: team name
    fill_person        = State()   # Leader / member / official field; target kept in FSM data
    roster_menu        = State()   # Add / remove members and officials, see running fee
    enter_school       = State()   # Text input: school (skipped for exempt competitions)
    enter_email        = State()   # Text input: contact email
    enter_whatsapp     = State()   # Text input: contact WhatsApp number
    confirm            = State()   # Show summary → submit & pay, or edit
    payment            = State()   # Payment page sent; check / close / retry
