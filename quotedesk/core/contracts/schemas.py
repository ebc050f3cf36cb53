"""Contract, option and signature models.

Stored documents use camelCase field names; models accept either the stored
alias or the Python field name.  Parsing a stored document re-establishes the
invariants (totals recomputed from line items, primary address first in the
site list) instead of trusting what was written.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from quotedesk.common.enums import ContractStatus, LineItemType, SignatureMode
from quotedesk.core.contracts.lifecycle import is_immutable
from quotedesk.core.pricing.engine import compute_totals
from quotedesk.core.pricing.schemas import LineItem, has_priced_items

DEFAULT_TERM_MONTHS = 36

DRAWN_IMAGE_PREFIX = "data:image/"

INSTALLATION_SCHEDULE_SUFFIX = (
    "Special installations, ad hoc requests, or delays caused by the Customer's "
    "vendor may extend timelines and potentially incur additional costs."
)

_KNOWN_LINE_TYPES = {t.value for t in LineItemType}


# ---------------------------------------------------------------------------
# Field normalisation
# ---------------------------------------------------------------------------


def normalize_site_addresses(primary: str, sites: list[str] | None) -> list[str]:
    """Primary address first, then the other sites; blanks and repeats dropped."""
    result: list[str] = []
    for address in [primary, *(sites or [])]:
        address = (address or "").strip()
        if address and address not in result:
            result.append(address)
    return result


def compose_installation_schedule(text: str | None) -> str:
    text = (text or "").strip()
    if text.endswith(INSTALLATION_SCHEDULE_SUFFIX):
        text = text[: -len(INSTALLATION_SCHEDULE_SUFFIX)].strip()
    if not text:
        return INSTALLATION_SCHEDULE_SUFFIX
    return f"{text} {INSTALLATION_SCHEDULE_SUFFIX}"


def _term_months(value: Any) -> int:
    try:
        term = int(value)
    except (TypeError, ValueError):
        return DEFAULT_TERM_MONTHS
    return term if term > 0 else DEFAULT_TERM_MONTHS


def _known_line_items(value: Any) -> Any:
    if value is None:
        return []
    if not isinstance(value, list):
        return value
    return [
        item for item in value
        if not isinstance(item, dict) or item.get("type") in _KNOWN_LINE_TYPES
    ]


# ---------------------------------------------------------------------------
# Stored documents
# ---------------------------------------------------------------------------


class Signature(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signer_name: str = Field(alias="signerName")
    signed_at: datetime = Field(alias="signedAt")
    mode: SignatureMode = SignatureMode.DRAWN
    signature_data: str = Field(alias="signatureData")

    @model_validator(mode="after")
    def _payload_fits_mode(self) -> Signature:
        self.signer_name = self.signer_name.strip()
        if not self.signer_name:
            raise ValueError("Signer name is required")
        if not self.signature_data.strip():
            raise ValueError("Signature payload is required")
        if self.mode == SignatureMode.DRAWN and not self.signature_data.startswith(DRAWN_IMAGE_PREFIX):
            raise ValueError("A drawn signature must be an image data URL")
        return self


class Option(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, exclude=True)
    title: str = ""
    term_months: int = Field(DEFAULT_TERM_MONTHS, alias="termMonths")
    total_mrc: Decimal = Field(Decimal("0.00"), alias="totalMRC")
    total_nrc: Decimal = Field(Decimal("0.00"), alias="totalNRC")
    line_items: list[LineItem] = Field(default_factory=list, alias="lineItems")
    position: int = 0

    @field_validator("term_months", mode="before")
    @classmethod
    def _term(cls, v: Any) -> int:
        return _term_months(v)

    @field_validator("line_items", mode="before")
    @classmethod
    def _lines(cls, v: Any) -> Any:
        return _known_line_items(v)

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @model_validator(mode="after")
    def _recompute_totals(self) -> Option:
        totals = compute_totals(self.line_items)
        self.total_mrc = totals.total_mrc
        self.total_nrc = totals.total_nrc
        return self

    @property
    def label(self) -> str:
        return f"{self.title or 'Untitled option'} ({self.term_months} Month Term)"

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, exclude=True)
    version: int = Field(default=0, exclude=True)

    business_name: str = Field(alias="businessName")
    agent_business_name: str | None = Field(None, alias="agentBusinessName")
    customer_email: str = Field("", alias="customerEmail")
    service_address: str = Field("", alias="serviceAddress")
    is_billing_same_as_service: bool = Field(True, alias="isBillingSameAsService")
    billing_address: str = Field("", alias="billingAddress")
    multi_site_addresses: list[str] = Field(default_factory=list, alias="multiSiteAddresses")
    installation_schedule_text: str = Field("", alias="installationScheduleText")
    status: ContractStatus = ContractStatus.DRAFT
    shareable_id: str = Field(alias="shareableId")
    created_at: datetime = Field(alias="createdAt")
    admin_id: str | None = Field(None, alias="adminId")
    selected_option_id: str | None = Field(None, alias="selectedOptionId")
    signature: Signature | None = None

    @model_validator(mode="after")
    def _primary_site_first(self) -> Contract:
        self.multi_site_addresses = normalize_site_addresses(
            self.service_address, self.multi_site_addresses
        )
        return self

    @property
    def is_immutable(self) -> bool:
        return is_immutable(self.status)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class OptionInput(BaseModel):
    title: str = ""
    term_months: int = DEFAULT_TERM_MONTHS
    line_items: list[LineItem] = Field(default_factory=list)

    @field_validator("term_months", mode="before")
    @classmethod
    def _term(cls, v: Any) -> int:
        return _term_months(v)

    @property
    def is_priced(self) -> bool:
        return has_priced_items(self.line_items)


class ContractInput(BaseModel):
    business_name: str
    agent_business_name: str | None = None
    customer_email: EmailStr
    service_address: str
    billing_same_as_service: bool = True
    billing_address: str | None = None
    multi_site_addresses: list[str] = Field(default_factory=list)
    installation_schedule: str = ""

    @field_validator("business_name", "service_address")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def _billing(self) -> ContractInput:
        if self.agent_business_name is not None:
            self.agent_business_name = self.agent_business_name.strip() or None
        if not self.billing_same_as_service and not (self.billing_address or "").strip():
            raise ValueError("billing_address is required when billing differs from the service address")
        return self

    def document_fields(self) -> dict[str, Any]:
        """The editable contract fields, in stored form."""
        billing = (
            self.service_address
            if self.billing_same_as_service
            else (self.billing_address or "").strip()
        )
        return {
            "businessName": self.business_name,
            "agentBusinessName": self.agent_business_name,
            "customerEmail": str(self.customer_email),
            "serviceAddress": self.service_address,
            "isBillingSameAsService": self.billing_same_as_service,
            "billingAddress": billing,
            "multiSiteAddresses": normalize_site_addresses(
                self.service_address, self.multi_site_addresses
            ),
            "installationScheduleText": compose_installation_schedule(self.installation_schedule),
        }


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class ContractDetail(BaseModel):
    contract: Contract
    options: list[Option]


class ContractSummary(BaseModel):
    id: str
    business_name: str
    service_address: str
    status: ContractStatus
    shareable_id: str
    created_at: datetime
    selected_option_title: str | None = None
    selected_option_term: int | None = None
    signed_at: datetime | None = None
    expires_on: date | None = None


class SignedContract(BaseModel):
    contract: Contract
    option: Option
