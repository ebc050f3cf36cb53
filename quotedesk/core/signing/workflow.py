"""Customer signing workflow.

A ``SigningSession`` holds what the customer has entered so far (chosen
option, printed name, capture mode and drawn strokes).  It is passed
explicitly to every step; nothing about the signing flow lives in module
state.  A failed commit leaves every entered value in place so the customer
can simply retry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import ValidationError

from quotedesk.common.enums import SignatureMode
from quotedesk.common.exceptions import PreconditionFailedError, QuoteDeskException, ValidationFailedError
from quotedesk.common.logging import get_logger
from quotedesk.core.contracts.schemas import DRAWN_IMAGE_PREFIX, Signature, SignedContract

if TYPE_CHECKING:
    from quotedesk.core.contracts.service import ContractService
    from quotedesk.core.notifications.service import ConfirmationDispatcher

logger = get_logger("signing.workflow")

PROMPT_SELECT_OPTION = "Select an Option to Sign"
PROMPT_ENTER_NAME = "Please enter your name"
PROMPT_PROVIDE_SIGNATURE = "Please provide a signature"


def _error_text(exc: ValidationError) -> str:
    error = exc.errors()[0]
    # Validator errors carry the raised ValueError
    cause = error.get("ctx", {}).get("error")
    return str(cause) if cause else error["msg"]


@dataclass
class SigningSession:
    contract_id: str
    selected_option_id: str | None = None
    selected_option_label: str | None = None
    signer_name: str = ""
    mode: SignatureMode = SignatureMode.DRAWN
    stroke_data: str | None = None
    committing: bool = field(default=False, init=False)
    signed: bool = field(default=False, init=False)

    # ---------- Input ----------

    def select_option(self, option_id: str, label: str | None = None) -> None:
        self.selected_option_id = option_id
        self.selected_option_label = label

    def set_signer_name(self, name: str) -> None:
        self.signer_name = name

    def set_mode(self, mode: SignatureMode | str) -> None:
        self.mode = SignatureMode(mode)

    def draw(self, stroke_data: str) -> None:
        self.stroke_data = stroke_data

    def clear(self) -> None:
        self.stroke_data = None

    # ---------- Readiness ----------

    @property
    def payload(self) -> str | None:
        if self.mode == SignatureMode.TYPED:
            return self.signer_name.strip() or None
        if self.stroke_data and self.stroke_data.startswith(DRAWN_IMAGE_PREFIX):
            return self.stroke_data
        return None

    @property
    def is_ready(self) -> bool:
        return bool(self.selected_option_id and self.signer_name.strip() and self.payload)

    @property
    def prompt(self) -> str:
        if not self.selected_option_id:
            return PROMPT_SELECT_OPTION
        if not self.signer_name.strip():
            return PROMPT_ENTER_NAME
        if not self.payload:
            return PROMPT_PROVIDE_SIGNATURE
        return f"Accept & Sign for {self.selected_option_label or 'the selected option'}"

    # ---------- Commit ----------

    def build_signature(self, now: datetime | None = None) -> Signature:
        try:
            return Signature(
                signer_name=self.signer_name,
                signed_at=now or datetime.now(timezone.utc),
                mode=self.mode,
                signature_data=self.payload or "",
            )
        except ValidationError as e:
            raise ValidationFailedError(_error_text(e)) from e

    async def commit(self, service: ContractService, now: datetime | None = None) -> SignedContract:
        if self.signed:
            raise PreconditionFailedError("This signing session has already been completed")
        if self.committing:
            raise PreconditionFailedError("A signature is already being saved")
        if not self.is_ready:
            raise ValidationFailedError(self.prompt)

        signature = self.build_signature(now)
        self.committing = True
        try:
            result = await service.sign(self.contract_id, self.selected_option_id, signature)
        except QuoteDeskException as e:
            logger.warning("Signing contract %s failed, input kept for retry: %s", self.contract_id, e.detail)
            raise
        finally:
            self.committing = False

        self.signed = True
        return result


@dataclass
class NotificationOutcome:
    success: bool
    error: str | None = None


@dataclass
class SigningResult:
    signed: SignedContract
    notification: NotificationOutcome


async def sign_and_notify(
    session: SigningSession,
    service: ContractService,
    dispatcher: ConfirmationDispatcher,
) -> SigningResult:
    """Sign, then send the confirmation email.

    The signature is already stored when the email is attempted; an email
    failure is returned in the result and does not undo it.
    """
    signed = await session.commit(service)

    try:
        await dispatcher.notify_signed(signed)
        outcome = NotificationOutcome(success=True)
    except QuoteDeskException as e:
        logger.error("Confirmation email for contract %s failed: %s", session.contract_id, e.detail)
        outcome = NotificationOutcome(success=False, error=e.detail)

    return SigningResult(signed=signed, notification=outcome)
