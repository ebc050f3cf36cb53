"""
Seed script for QuoteDesk.

Creates two demo contracts: a draft with two priced options ready to share,
and one that has already been signed.

Usage:
    python -m quotedesk.scripts.seed
"""

import asyncio
from datetime import datetime, timezone

from quotedesk.common.enums import SignatureMode
from quotedesk.common.logging import get_logger, setup_logging
from quotedesk.common.security import AdminIdentity
from quotedesk.core.contracts.schemas import ContractInput, OptionInput, Signature
from quotedesk.core.contracts.service import CONTRACTS, ContractService, share_link
from quotedesk.db.document_store import SQLDocumentStore
from quotedesk.db.session import async_session_factory

logger = get_logger("scripts.seed")

DEMO_ADMIN = AdminIdentity(id="demo-admin", email="admin@quotedesk.app")

# 1x1 transparent PNG
DEMO_SIGNATURE_IMAGE = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

FIBER_OPTIONS = [
    OptionInput(
        title="Dedicated Fiber 500M",
        term_months=36,
        line_items=[
            {"type": "header", "value": "Connectivity"},
            {"type": "item", "description": "Dedicated Internet Access 500 Mbps", "qty": 1, "mrc": "899.00", "nrc": "0"},
            {"type": "item", "description": "Static IP block /29", "qty": 1, "mrc": "25.00", "nrc": "0"},
            {"type": "header", "value": "Installation"},
            {"type": "item", "description": "Site survey and fiber build", "qty": 1, "mrc": "0", "nrc": "1,500.00"},
        ],
    ),
    OptionInput(
        title="Dedicated Fiber 1G",
        term_months=60,
        line_items=[
            {"type": "header", "value": "Connectivity"},
            {"type": "item", "description": "Dedicated Internet Access 1 Gbps", "qty": 1, "mrc": "1,249.00", "nrc": "0"},
            {"type": "item", "description": "Static IP block /29", "qty": 1, "mrc": "25.00", "nrc": "0"},
        ],
    ),
]

VOICE_OPTIONS = [
    OptionInput(
        title="Hosted Voice",
        term_months=24,
        line_items=[
            {"type": "item", "description": "Hosted voice seat", "qty": 12, "mrc": "22.50", "nrc": "0"},
            {"type": "item", "description": "Desk phone", "qty": 12, "mrc": "0", "nrc": "149.00"},
        ],
    ),
]


async def main() -> None:
    setup_logging()
    store = SQLDocumentStore(async_session_factory)
    service = ContractService(store)

    # Guard: skip if already seeded
    existing = await store.query(CONTRACTS, "businessName", "Harbor Street Dental")
    if existing:
        logger.info("Demo contracts already present, nothing to do")
        return

    draft = await service.create(
        DEMO_ADMIN,
        ContractInput(
            business_name="Harbor Street Dental",
            agent_business_name="Coastal Telecom Partners",
            customer_email="harbor-dental@example.com",
            service_address="14 Harbor St, Portland, ME 04101",
            billing_same_as_service=True,
            multi_site_addresses=["220 Forest Ave, Portland, ME 04101"],
            installation_schedule="Installation within 45 business days of signature.",
        ),
        FIBER_OPTIONS,
    )
    logger.info("Draft contract: %s", share_link(draft.contract.shareable_id))

    signed = await service.create(
        DEMO_ADMIN,
        ContractInput(
            business_name="Northfield Veterinary Clinic",
            customer_email="northfield-vet@example.com",
            service_address="9 Mill Rd, Northfield, MN 55057",
            billing_same_as_service=False,
            billing_address="PO Box 311, Northfield, MN 55057",
            installation_schedule="Porting completes within 10 business days.",
        ),
        VOICE_OPTIONS,
    )
    await service.sign(
        signed.contract.id,
        signed.options[0].id,
        Signature(
            signer_name="Dana Whitfield",
            signed_at=datetime.now(timezone.utc),
            mode=SignatureMode.DRAWN,
            signature_data=DEMO_SIGNATURE_IMAGE,
        ),
    )
    logger.info("Signed contract: %s", share_link(signed.contract.shareable_id))


if __name__ == "__main__":
    asyncio.run(main())
