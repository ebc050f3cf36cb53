"""Customer-facing contract view, reached through the share link.

No authentication: the shareable id is the only credential.
"""

from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quotedesk.api.deps import get_contract_service, get_dispatcher
from quotedesk.api.v1.contracts import OptionResponse
from quotedesk.common.enums import ContractStatus, SignatureMode
from quotedesk.common.exceptions import NotFoundError
from quotedesk.core.contracts.lifecycle import expiration_date
from quotedesk.core.contracts.schemas import Contract, Option
from quotedesk.core.contracts.service import ContractService
from quotedesk.core.notifications.service import ConfirmationDispatcher
from quotedesk.core.signing.workflow import SigningSession, sign_and_notify

router = APIRouter(prefix="/public/contracts", tags=["Public"])


# ---------- Schemas ----------


class SigningState(BaseModel):
    selected_option_id: str | None = None
    signer_name: str = ""
    mode: SignatureMode = SignatureMode.DRAWN
    stroke_data: str | None = None


class ReadinessResponse(BaseModel):
    ready: bool
    prompt: str


class SignedSelection(BaseModel):
    option_id: str | None
    title: str | None
    term_months: int | None
    total_mrc: Decimal | None
    total_nrc: Decimal | None
    signer_name: str | None
    signed_at: datetime | None
    signature_mode: SignatureMode | None
    signature_data: str | None
    expires_on: date | None


class CustomerContractView(BaseModel):
    shareable_id: str
    business_name: str
    agent_business_name: str | None
    customer_email: str
    service_address: str
    billing_address: str
    multi_site_addresses: list[str]
    installation_schedule_text: str
    status: ContractStatus
    locked: bool
    options: list[OptionResponse] = []
    signed: SignedSelection | None = None


class NotificationResponse(BaseModel):
    success: bool
    error: str | None = None


class SignResponse(CustomerContractView):
    notification: NotificationResponse


# ---------- Helpers ----------


def _signed_selection(contract: Contract, option: Option | None) -> SignedSelection:
    signature = contract.signature
    signed_at = signature.signed_at if signature else None
    return SignedSelection(
        option_id=contract.selected_option_id,
        title=option.title if option else None,
        term_months=option.term_months if option else None,
        total_mrc=option.total_mrc if option else None,
        total_nrc=option.total_nrc if option else None,
        signer_name=signature.signer_name if signature else None,
        signed_at=signed_at,
        signature_mode=signature.mode if signature else None,
        signature_data=signature.signature_data if signature else None,
        expires_on=expiration_date(signed_at, option.term_months if option else None),
    )


async def _customer_view(contract: Contract, service: ContractService) -> dict:
    view = {
        "shareable_id": contract.shareable_id,
        "business_name": contract.business_name,
        "agent_business_name": contract.agent_business_name,
        "customer_email": contract.customer_email,
        "service_address": contract.service_address,
        "billing_address": contract.billing_address,
        "multi_site_addresses": contract.multi_site_addresses,
        "installation_schedule_text": contract.installation_schedule_text,
        "status": contract.status,
        "locked": contract.is_immutable,
    }

    if not contract.is_immutable:
        options = await service.list_options(contract.id)
        view["options"] = [OptionResponse.from_option(o) for o in options]
        return view

    option = None
    if contract.selected_option_id:
        try:
            option = await service.get_option(contract.id, contract.selected_option_id)
        except NotFoundError:
            option = None
    view["signed"] = _signed_selection(contract, option)
    return view


async def _session_for(contract: Contract, state: SigningState, service: ContractService) -> SigningSession:
    session = SigningSession(contract_id=contract.id)
    if state.selected_option_id:
        option = await service.get_option(contract.id, state.selected_option_id)
        session.select_option(option.id, option.label)
    session.set_signer_name(state.signer_name)
    session.set_mode(state.mode)
    if state.stroke_data:
        session.draw(state.stroke_data)
    return session


# ---------- Endpoints ----------


@router.get("/{shareable_id}", response_model=CustomerContractView)
async def view_contract(
    shareable_id: str,
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.get_by_share_id(shareable_id)
    return CustomerContractView(**await _customer_view(contract, service))


@router.post("/{shareable_id}/readiness", response_model=ReadinessResponse)
async def signing_readiness(
    shareable_id: str,
    body: SigningState,
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.get_by_share_id(shareable_id)
    session = await _session_for(contract, body, service)
    return ReadinessResponse(ready=session.is_ready, prompt=session.prompt)


@router.post("/{shareable_id}/sign", response_model=SignResponse)
async def sign_contract(
    shareable_id: str,
    body: SigningState,
    service: ContractService = Depends(get_contract_service),
    dispatcher: ConfirmationDispatcher = Depends(get_dispatcher),
):
    contract = await service.get_by_share_id(shareable_id)
    session = await _session_for(contract, body, service)
    result = await sign_and_notify(session, service, dispatcher)

    view = await _customer_view(result.signed.contract, service)
    return SignResponse(
        **view,
        notification=NotificationResponse(
            success=result.notification.success,
            error=result.notification.error,
        ),
    )
