"""Signed-contract confirmation email.

``ConfirmationDispatcher.send_signed_confirmation`` is the callable boundary
used by the public API and the background task: it takes the flat request
shape the web client sends, renders the summary and hands it to the relay.
"""

from __future__ import annotations

from collections.abc import Iterable
from html import escape
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from quotedesk.common.exceptions import QuoteDeskException, ValidationFailedError
from quotedesk.common.logging import get_logger
from quotedesk.config import settings
from quotedesk.core.contracts.schemas import SignedContract
from quotedesk.core.contracts.service import ContractService, share_link
from quotedesk.core.pricing.engine import format_money, parse_currency
from quotedesk.core.pricing.schemas import HeaderLine, ItemLine
from quotedesk.db.document_store import DocumentStore
from quotedesk.integrations.email_relay import EmailRelayClient

logger = get_logger("notifications.service")

LINE_ITEMS_UNAVAILABLE = "<p>(Line item details could not be loaded.)</p>"

REQUIRED_FIELDS = ("to_email", "contract_id", "option_title", "selected_option_id")


class ConfirmationEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_email: str | None = Field(None, alias="toEmail")
    contract_id: str | None = Field(None, alias="contractId")
    business_name: str = Field("", alias="businessName")
    signer_name: str | None = Field(None, alias="signerName")
    signed_date: str | None = Field(None, alias="signedDate")
    option_title: str | None = Field(None, alias="optionTitle")
    option_term: int | str | None = Field(None, alias="optionTerm")
    option_mrc: Any = Field(None, alias="optionMRC")
    option_nrc: Any = Field(None, alias="optionNRC")
    contract_link: str | None = Field(None, alias="contractLink")
    selected_option_id: str | None = Field(None, alias="selectedOptionId")

    def missing_fields(self) -> list[str]:
        return [
            type(self).model_fields[name].alias or name
            for name in REQUIRED_FIELDS
            if not getattr(self, name)
        ]


def recipients_for(to_email: str, admin_recipients: Iterable[str] | None = None) -> list[str]:
    """Customer first, then the admin copies; each address once."""
    admins = settings.admin_recipients if admin_recipients is None else admin_recipients
    recipients: list[str] = []
    for address in [to_email, *admins]:
        address = (address or "").strip()
        if address and address.lower() not in (r.lower() for r in recipients):
            recipients.append(address)
    return recipients


def render_line_items_table(line_items: list[HeaderLine | ItemLine]) -> str:
    if not line_items:
        return "<p>No line items available.</p>"

    cell = "padding: 5px; border-bottom: 1px solid #eee;"
    rows = []
    for item in line_items:
        if isinstance(item, HeaderLine):
            rows.append(
                '<tr><td colspan="4" style="background-color: #f3f4f6; font-weight: bold; '
                f'padding: 5px; border-top: 1px solid #ddd;">{escape(item.value)}</td></tr>'
            )
        else:
            rows.append(
                "<tr>"
                f'<td style="{cell}">{escape(item.description)}</td>'
                f'<td style="{cell} text-align: center;">{item.qty}</td>'
                f'<td style="{cell} text-align: right;">${format_money(item.mrc)}</td>'
                f'<td style="{cell} text-align: right;">${format_money(item.nrc)}</td>'
                "</tr>"
            )

    head = "text-align: {align}; padding: 8px; border-bottom: 2px solid #ccc;"
    return f"""
        <table style="width: 100%; border-collapse: collapse; font-size: 10pt; margin-top: 10px;">
            <thead style="background-color: #f9fafb;">
                <tr>
                    <th style="{head.format(align='left')}">Description</th>
                    <th style="{head.format(align='center')}">Qty</th>
                    <th style="{head.format(align='right')}">MRC</th>
                    <th style="{head.format(align='right')}">NRC</th>
                </tr>
            </thead>
            <tbody>
                {''.join(rows)}
            </tbody>
        </table>"""


def render_confirmation_email(request: ConfirmationEmailRequest, line_items_html: str) -> tuple[str, str]:
    """Return (subject, html_body)."""
    business = escape(request.business_name or "")
    title = escape(request.option_title or "")
    signer = escape(request.signer_name or "")
    subject = f"Contract Signed Confirmation: {request.business_name} - {request.option_title}"

    html_body = f"""
        <html><body>
        <p>Hello {signer or 'Customer'},</p>
        <p>Thank you for signing the Service Agreement for <strong>{business}</strong>.</p>
        <p>This email confirms your selection and signing details:</p>
        <div style="background-color: #f9f9f9; border: 1px solid #eee; padding: 15px; margin: 15px 0;">
            <h3 style="margin-top: 0;">Selected Option:</h3>
            <ul>
                <li><strong>Title:</strong> {title}</li>
                <li><strong>Term:</strong> {escape(str(request.option_term or ''))} Months</li>
                <li><strong>Total Monthly Recurring Charge (MRC):</strong> ${format_money(parse_currency(request.option_mrc))}</li>
                <li><strong>Total Non-Recurring Charge (NRC):</strong> ${format_money(parse_currency(request.option_nrc))}</li>
            </ul>
            <div style="margin-top: 15px;">
                <h4 style="margin-bottom: 5px;">Line Item Summary:</h4>
                {line_items_html}
            </div>
        </div>
        <p><strong>Signed By:</strong> {signer or 'N/A'}</p>
        <p><strong>Date Signed:</strong> {escape(request.signed_date or 'N/A')}</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        <p>You can view the full signed contract details online at any time by visiting the link below:</p>
        <p><a href="{escape(request.contract_link or '', quote=True)}" style="color: #2563EB; text-decoration: none;">View Signed Contract</a></p>
        <p style="margin-top: 20px;">If you have any questions, please contact your representative.</p>
        </body></html>
    """
    return subject, html_body


def build_confirmation_request(signed: SignedContract) -> ConfirmationEmailRequest:
    contract, option = signed.contract, signed.option
    signed_at = contract.signature.signed_at if contract.signature else None
    return ConfirmationEmailRequest(
        to_email=contract.customer_email,
        contract_id=contract.id,
        business_name=contract.business_name,
        signer_name=contract.signature.signer_name if contract.signature else None,
        signed_date=f"{signed_at:%m/%d/%Y}" if signed_at else None,
        option_title=option.title,
        option_term=option.term_months,
        option_mrc=str(option.total_mrc),
        option_nrc=str(option.total_nrc),
        contract_link=share_link(contract.shareable_id),
        selected_option_id=option.id,
    )


class ConfirmationDispatcher:
    def __init__(self, store: DocumentStore, email_client: EmailRelayClient | None = None) -> None:
        self.contracts = ContractService(store)
        self.email_client = email_client or EmailRelayClient()

    async def send_signed_confirmation(self, request: ConfirmationEmailRequest) -> dict[str, bool]:
        missing = request.missing_fields()
        if missing:
            logger.error("Confirmation email request missing: %s", ", ".join(missing))
            raise ValidationFailedError(f"Missing required data: {', '.join(missing)}")

        line_items_html = await self._line_items_html(request.contract_id, request.selected_option_id)
        subject, html_body = render_confirmation_email(request, line_items_html)
        recipients = recipients_for(request.to_email)

        await self.email_client.send_email(to=recipients, subject=subject, html_body=html_body)
        logger.info("Confirmation email for contract %s sent to %s", request.contract_id, ", ".join(recipients))
        return {"success": True}

    async def notify_signed(self, signed: SignedContract) -> dict[str, bool]:
        return await self.send_signed_confirmation(build_confirmation_request(signed))

    async def _line_items_html(self, contract_id: str, option_id: str) -> str:
        try:
            option = await self.contracts.get_option(contract_id, option_id)
        except QuoteDeskException as e:
            logger.warning("Line items for option %s unavailable: %s", option_id, e.detail)
            return LINE_ITEMS_UNAVAILABLE
        return render_line_items_table(option.line_items)
