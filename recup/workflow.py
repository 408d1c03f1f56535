"""
Registration workflow state machine.

    IDLE → EDITING → SUBMITTING → AWAITING_PAYMENT ─┬→ SUCCESS → IDLE
                ↑          │                        ├→ PAYMENT_PENDING ─┐
                └──────────┘ (submission failed)    └→ PAYMENT_FAILED ──┤
                                                                        │
                          AWAITING_PAYMENT ←── retry_payment() ─────────┘

The workflow wraps a RegistrationSession and mutates it in place; handlers
load the session from FSM storage, call one transition and save it back.
Nothing here talks to the network.
"""
from __future__ import annotations

import logging

from aiogram.fsm.context import FSMContext
from pydantic import ValidationError

from recup.exceptions import DraftIncomplete, WorkflowBusy, WorkflowError
from recup.models import Competition, Phase, RegistrationSession, PaymentSession, TeamRoster
from recup.services.fee_service import compute_fee, roster_cap
from recup.services.payment_service import PaymentOutcome
from recup.validators import RegistrationForm, describe_errors

logger = logging.getLogger(__name__)

BUSY_PHASES = frozenset({Phase.SUBMITTING, Phase.AWAITING_PAYMENT})
RETRY_PHASES = frozenset({Phase.PAYMENT_PENDING, Phase.PAYMENT_FAILED})


class RegistrationWorkflow:

    def __init__(self, session: RegistrationSession | None = None) -> None:
        self.session = session or RegistrationSession()

    # ── Read-only views ───────────────────────────────────────────────────────

    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def roster(self) -> TeamRoster:
        return self.session.draft.roster

    @property
    def competition(self) -> Competition | None:
        return self.session.draft.competition

    @property
    def total_fee(self) -> int:
        return compute_fee(self.competition, self.roster.team_size)

    @property
    def payment_token(self) -> str | None:
        return self.session.payment.token if self.session.payment else None

    @property
    def can_dismiss(self) -> bool:
        return self.phase not in BUSY_PHASES

    # ── Editing ───────────────────────────────────────────────────────────────

    def open(self) -> None:
        if self.phase in BUSY_PHASES:
            raise WorkflowBusy()
        if self.phase is Phase.IDLE:
            self.session.phase = Phase.EDITING

    def ensure_editable(self) -> None:
        if self.phase in BUSY_PHASES:
            raise WorkflowBusy()
        if self.phase is not Phase.EDITING:
            raise WorkflowError()

    def select_competition(self, competition: Competition) -> None:
        """Switching competition always starts the roster over."""
        self.ensure_editable()
        self.session.draft.competition = competition
        self.roster.clear()

    def add_member(self) -> int:
        self.ensure_editable()
        competition = self.competition
        return self.roster.add_member(
            roster_cap(competition), competition.name if competition else ""
        )

    def validate(self) -> RegistrationForm:
        try:
            return RegistrationForm.from_draft(self.session.draft)
        except ValidationError as exc:
            raise DraftIncomplete(describe_errors(exc)) from exc

    # ── Submission ────────────────────────────────────────────────────────────

    def begin_submit(self) -> None:
        self.ensure_editable()
        self.validate()
        self.session.phase = Phase.SUBMITTING

    def submission_succeeded(self, token: str) -> None:
        if self.phase is not Phase.SUBMITTING:
            raise WorkflowError()
        self.session.payment = PaymentSession(token=token)
        self.session.phase = Phase.AWAITING_PAYMENT

    def submission_failed(self) -> None:
        """Back to editing with every entered value kept for a retry."""
        if self.phase is not Phase.SUBMITTING:
            raise WorkflowError()
        self.session.phase = Phase.EDITING

    # ── Payment ───────────────────────────────────────────────────────────────

    def apply_outcome(self, outcome: PaymentOutcome) -> Phase:
        """
        Record what the payment page reported and return the resulting phase.
        SUCCESS wipes the whole session, so the returned phase is IDLE.
        """
        if self.phase is not Phase.AWAITING_PAYMENT:
            raise WorkflowError()

        logger.info("Payment outcome: %s", outcome.value)
        if outcome is PaymentOutcome.SUCCESS:
            self.session.phase = Phase.SUCCESS
            self._clear()
        elif outcome is PaymentOutcome.PENDING:
            self.session.phase = Phase.PAYMENT_PENDING
        else:
            self.session.phase = Phase.PAYMENT_FAILED
        return self.phase

    def retry_payment(self) -> str:
        if self.phase not in RETRY_PHASES or self.session.payment is None:
            raise WorkflowError()
        self.session.phase = Phase.AWAITING_PAYMENT
        return self.session.payment.token

    # ── Reset ─────────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Explicit cancel: drop draft and token.  Refused while busy."""
        if self.phase in BUSY_PHASES:
            raise WorkflowBusy()
        self._clear()

    def _clear(self) -> None:
        self.session = RegistrationSession()


# ── FSM storage glue ──────────────────────────────────────────────────────────

SESSION_KEY = "session"


async def load_workflow(state: FSMContext) -> RegistrationWorkflow:
    data = await state.get_data()
    raw = data.get(SESSION_KEY)
    session = RegistrationSession.model_validate(raw) if raw else RegistrationSession()
    return RegistrationWorkflow(session)


async def save_workflow(state: FSMContext, workflow: RegistrationWorkflow) -> None:
    await state.update_data({SESSION_KEY: workflow.session.model_dump(mode="json")})
