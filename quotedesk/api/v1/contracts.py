from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from quotedesk.api.deps import get_contract_service, get_current_admin
from quotedesk.common.enums import ContractStatus
from quotedesk.common.exceptions import PreconditionFailedError
from quotedesk.common.logging import get_logger
from quotedesk.common.pagination import PaginatedResponse, PaginationParams, paginate, total_pages
from quotedesk.common.security import AdminIdentity
from quotedesk.core.contracts.schemas import (
    Contract,
    ContractDetail,
    ContractInput,
    ContractSummary,
    Option,
    OptionInput,
)
from quotedesk.core.contracts.service import ContractService, share_link
from quotedesk.core.pricing.schemas import LineItem
from quotedesk.tasks.email_tasks import resend_signed_confirmation

router = APIRouter(prefix="/contracts", tags=["Contracts"])

logger = get_logger("api.contracts")


# ---------- Schemas ----------


class ContractWriteRequest(ContractInput):
    options: list[OptionInput] = Field(default_factory=list)


class OptionResponse(BaseModel):
    id: str
    title: str
    term_months: int
    total_mrc: Decimal
    total_nrc: Decimal
    line_items: list[LineItem]

    @classmethod
    def from_option(cls, option: Option) -> "OptionResponse":
        return cls(
            id=option.id,
            title=option.title,
            term_months=option.term_months,
            total_mrc=option.total_mrc,
            total_nrc=option.total_nrc,
            line_items=option.line_items,
        )


class SignatureResponse(BaseModel):
    signer_name: str
    signed_at: datetime
    mode: str
    signature_data: str


class ContractResponse(BaseModel):
    id: str
    business_name: str
    agent_business_name: str | None
    customer_email: str
    service_address: str
    is_billing_same_as_service: bool
    billing_address: str
    multi_site_addresses: list[str]
    installation_schedule_text: str
    status: ContractStatus
    shareable_id: str
    share_link: str
    created_at: datetime
    admin_id: str | None
    selected_option_id: str | None
    signature: SignatureResponse | None

    @classmethod
    def from_contract(cls, contract: Contract) -> "ContractResponse":
        signature = None
        if contract.signature:
            signature = SignatureResponse(
                signer_name=contract.signature.signer_name,
                signed_at=contract.signature.signed_at,
                mode=contract.signature.mode.value,
                signature_data=contract.signature.signature_data,
            )
        return cls(
            id=contract.id,
            business_name=contract.business_name,
            agent_business_name=contract.agent_business_name,
            customer_email=contract.customer_email,
            service_address=contract.service_address,
            is_billing_same_as_service=contract.is_billing_same_as_service,
            billing_address=contract.billing_address,
            multi_site_addresses=contract.multi_site_addresses,
            installation_schedule_text=contract.installation_schedule_text,
            status=contract.status,
            shareable_id=contract.shareable_id,
            share_link=share_link(contract.shareable_id),
            created_at=contract.created_at,
            admin_id=contract.admin_id,
            selected_option_id=contract.selected_option_id,
            signature=signature,
        )


class ContractDetailResponse(BaseModel):
    contract: ContractResponse
    options: list[OptionResponse]

    @classmethod
    def from_detail(cls, detail: ContractDetail) -> "ContractDetailResponse":
        return cls(
            contract=ContractResponse.from_contract(detail.contract),
            options=[OptionResponse.from_option(o) for o in detail.options],
        )


class ContractSummaryResponse(BaseModel):
    id: str
    business_name: str
    service_address: str
    status: ContractStatus
    shareable_id: str
    created_at: datetime
    selected_option_title: str | None
    selected_option_term: int | None
    signed_at: datetime | None
    expires_on: date | None

    @classmethod
    def from_summary(cls, summary: ContractSummary) -> "ContractSummaryResponse":
        return cls(**summary.model_dump())


class ShareLinkResponse(BaseModel):
    shareable_id: str
    url: str


class ResendResponse(BaseModel):
    contract_id: str
    status: str = "queued"


def _split(body: ContractWriteRequest) -> tuple[ContractInput, list[OptionInput]]:
    return ContractInput.model_validate(body.model_dump(exclude={"options"})), body.options


# ---------- Endpoints ----------


@router.post("", response_model=ContractDetailResponse, status_code=201)
async def create_contract(
    body: ContractWriteRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    data, options = _split(body)
    detail = await service.create(admin, data, options)
    return ContractDetailResponse.from_detail(detail)


@router.get("", response_model=PaginatedResponse[ContractSummaryResponse])
async def list_contracts(
    pagination: PaginationParams = Depends(),
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    summaries = await service.list_summaries()
    if pagination.search:
        needle = pagination.search.lower()
        summaries = [
            s for s in summaries
            if needle in s.business_name.lower() or needle in s.service_address.lower()
        ]

    page_items, total = paginate(summaries, pagination)
    return PaginatedResponse[ContractSummaryResponse](
        items=[ContractSummaryResponse.from_summary(s) for s in page_items],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=total_pages(total, pagination.page_size),
    )


@router.get("/{contract_id}", response_model=ContractDetailResponse)
async def get_contract(
    contract_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    return ContractDetailResponse.from_detail(await service.get_detail(contract_id))


@router.put("/{contract_id}", response_model=ContractDetailResponse)
async def update_contract(
    contract_id: str,
    body: ContractWriteRequest,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    data, options = _split(body)
    detail = await service.update(contract_id, data, options)
    return ContractDetailResponse.from_detail(detail)


@router.delete("/{contract_id}", status_code=204)
async def delete_contract(
    contract_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    removed = await service.delete(contract_id)
    logger.info("Admin %s deleted contract %s (%d options)", admin.email, contract_id, removed)
    return Response(status_code=204)


@router.get("/{contract_id}/share-link", response_model=ShareLinkResponse)
async def get_share_link(
    contract_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.get(contract_id)
    return ShareLinkResponse(shareable_id=contract.shareable_id, url=share_link(contract.shareable_id))


@router.post("/{contract_id}/resend-confirmation", response_model=ResendResponse, status_code=202)
async def resend_confirmation(
    contract_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.get(contract_id)
    if not contract.is_immutable or not contract.selected_option_id:
        raise PreconditionFailedError("Only signed contracts have a confirmation to resend")

    resend_signed_confirmation.delay(contract_id)
    logger.info("Admin %s queued confirmation resend for contract %s", admin.email, contract_id)
    return ResendResponse(contract_id=contract_id)
