"""Contract lifecycle operations over the document store.

Contracts live in the ``contracts`` collection; each contract's options live in
``contracts/<id>/options``.  Writes that must not race (update, sign) are made
conditional on the contract version that was read before the status check.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from urllib.parse import urlencode

from pydantic import ValidationError

from quotedesk.common.enums import ContractStatus
from quotedesk.common.exceptions import (
    NotFoundError,
    QuoteDeskException,
    StorageError,
    ValidationFailedError,
)
from quotedesk.common.logging import get_logger
from quotedesk.common.security import AdminIdentity
from quotedesk.config import settings
from quotedesk.core.contracts.lifecycle import ensure_editable, ensure_transition, expiration_date
from quotedesk.core.contracts.schemas import (
    Contract,
    ContractDetail,
    ContractInput,
    ContractSummary,
    Option,
    OptionInput,
    Signature,
    SignedContract,
)
from quotedesk.db.document_store import DocumentStore, StoredDocument, WriteBatch

logger = get_logger("contracts.service")

CONTRACTS = "contracts"
SHAREABLE_ID_LENGTH = 8
MAX_SHAREABLE_ID_ATTEMPTS = 5

UNKNOWN_OPTION_LABEL = "Unknown option"
UNAVAILABLE_LABEL = "Unavailable"


def options_collection(contract_id: str) -> str:
    return f"{CONTRACTS}/{contract_id}/options"


def new_shareable_id() -> str:
    return str(uuid.uuid4())[:SHAREABLE_ID_LENGTH]


def share_link(shareable_id: str) -> str:
    return f"{settings.VIEW_URL}?{urlencode({'id': shareable_id})}"


def _parse_contract(doc: StoredDocument) -> Contract:
    try:
        contract = Contract.model_validate(doc.data)
    except ValidationError as e:
        logger.error("Contract document %s is malformed: %s", doc.id, e)
        raise StorageError(f"Contract '{doc.id}' is malformed") from e
    contract.id = doc.id
    contract.version = doc.version
    return contract


def _parse_option(doc: StoredDocument) -> Option:
    try:
        option = Option.model_validate(doc.data)
    except ValidationError as e:
        logger.error("Option document %s/%s is malformed: %s", doc.collection, doc.id, e)
        raise StorageError(f"Option '{doc.id}' is malformed") from e
    option.id = doc.id
    return option


def _priced_options(options: list[OptionInput]) -> list[OptionInput]:
    priced = [o for o in options if o.is_priced]
    if len(priced) < len(options):
        logger.info("Dropping %d option(s) without priced line items", len(options) - len(priced))
    if not priced:
        raise ValidationFailedError("At least one option with a priced line item is required")
    return priced


class ContractService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ---------- Reads ----------

    async def get(self, contract_id: str) -> Contract:
        doc = await self.store.get(CONTRACTS, contract_id)
        if doc is None:
            raise NotFoundError("Contract", contract_id)
        return _parse_contract(doc)

    async def get_by_share_id(self, shareable_id: str) -> Contract:
        docs = await self.store.query(CONTRACTS, "shareableId", shareable_id)
        if not docs:
            raise NotFoundError("Contract")
        if len(docs) > 1:
            logger.error("Shareable id %s matches %d contracts", shareable_id, len(docs))
        return _parse_contract(docs[0])

    async def list_options(self, contract_id: str) -> list[Option]:
        docs = await self.store.list_all(options_collection(contract_id))
        return sorted((_parse_option(d) for d in docs), key=lambda o: o.position)

    async def get_option(self, contract_id: str, option_id: str) -> Option:
        doc = await self.store.get(options_collection(contract_id), option_id)
        if doc is None:
            raise NotFoundError("Option", option_id)
        return _parse_option(doc)

    async def get_detail(self, contract_id: str) -> ContractDetail:
        contract = await self.get(contract_id)
        return ContractDetail(contract=contract, options=await self.list_options(contract_id))

    async def list_summaries(self) -> list[ContractSummary]:
        contracts: list[Contract] = []
        for doc in await self.store.list_all(CONTRACTS):
            try:
                contracts.append(_parse_contract(doc))
            except StorageError:
                logger.warning("Skipping unreadable contract %s in listing", doc.id)

        summaries = await asyncio.gather(*(self._summarize(c) for c in contracts))
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    async def _summarize(self, contract: Contract) -> ContractSummary:
        title: str | None = None
        term: int | None = None
        signed_at = contract.signature.signed_at if contract.signature else None

        if contract.is_immutable and contract.selected_option_id:
            try:
                option = await self.get_option(contract.id, contract.selected_option_id)
                title, term = option.title or UNKNOWN_OPTION_LABEL, option.term_months
            except NotFoundError:
                title = UNKNOWN_OPTION_LABEL
            except QuoteDeskException as e:
                logger.warning(
                    "Could not load option %s for contract %s: %s",
                    contract.selected_option_id, contract.id, e.detail,
                )
                title = UNAVAILABLE_LABEL

        return ContractSummary(
            id=contract.id,
            business_name=contract.business_name,
            service_address=contract.service_address,
            status=contract.status,
            shareable_id=contract.shareable_id,
            created_at=contract.created_at,
            selected_option_title=title,
            selected_option_term=term,
            signed_at=signed_at,
            expires_on=expiration_date(signed_at, term),
        )

    # ---------- Transitions ----------

    async def create(
        self, admin: AdminIdentity, data: ContractInput, options: list[OptionInput]
    ) -> ContractDetail:
        priced = _priced_options(options)
        shareable_id = await self._unique_shareable_id()

        contract = Contract.model_validate({
            **data.document_fields(),
            "status": ContractStatus.DRAFT,
            "shareableId": shareable_id,
            "createdAt": datetime.now(timezone.utc),
            "adminId": admin.id,
        })

        batch = self.store.batch()
        contract_id = batch.create(CONTRACTS, contract.to_document())
        stored_options = self._stage_options(batch, contract_id, priced)
        await batch.commit()

        contract.id = contract_id
        contract.version = 1
        logger.info(
            "Created contract %s (%s) with %d option(s) for admin %s",
            contract_id, shareable_id, len(stored_options), admin.id,
        )
        return ContractDetail(contract=contract, options=stored_options)

    async def update(
        self, contract_id: str, data: ContractInput, options: list[OptionInput]
    ) -> ContractDetail:
        """Replace the contract's editable fields and its whole option set."""
        priced = _priced_options(options)
        current = await self.get(contract_id)
        ensure_editable(contract_id, current.status)

        collection = options_collection(contract_id)
        previous = await self.store.list_all(collection)

        batch = self.store.batch()
        for doc in previous:
            batch.delete(collection, doc.id)
        stored_options = self._stage_options(batch, contract_id, priced)
        batch.set(
            CONTRACTS, contract_id, data.document_fields(),
            merge=True, expected_version=current.version,
        )
        await batch.commit()

        logger.info(
            "Updated contract %s: replaced %d option(s) with %d",
            contract_id, len(previous), len(stored_options),
        )
        return ContractDetail(contract=await self.get(contract_id), options=stored_options)

    async def sign(self, contract_id: str, option_id: str, signature: Signature) -> SignedContract:
        current = await self.get(contract_id)
        ensure_transition(contract_id, current.status, ContractStatus.SIGNED)
        option = await self.get_option(contract_id, option_id)

        await self.store.set(
            CONTRACTS,
            contract_id,
            {
                "status": ContractStatus.SIGNED.value,
                "selectedOptionId": option_id,
                "signature": signature.model_dump(mode="json", by_alias=True),
            },
            merge=True,
            expected_version=current.version,
        )

        logger.info(
            "Contract %s signed by %s (%s) for option %s",
            contract_id, signature.signer_name, signature.mode.value, option_id,
        )
        return SignedContract(contract=await self.get(contract_id), option=option)

    async def delete(self, contract_id: str) -> int:
        """Delete the options, then the contract.  Returns the number of options removed.

        The option deletes run concurrently.  If any of them fails the contract
        document is left in place and the whole delete must be retried.
        """
        if await self.store.get(CONTRACTS, contract_id) is None:
            raise NotFoundError("Contract", contract_id)

        collection = options_collection(contract_id)
        options = await self.store.list_all(collection)
        results = await asyncio.gather(
            *(self.store.delete(collection, doc.id) for doc in options),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        if failures:
            deleted = len(results) - len(failures)
            reason = getattr(failures[0], "detail", str(failures[0]))
            logger.error(
                "Deleted %d of %d options for contract %s; keeping the contract: %s",
                deleted, len(results), contract_id, reason,
            )
            raise StorageError(
                f"Deleted {deleted} of {len(results)} options for contract '{contract_id}'; "
                f"the contract was kept, retry the delete ({reason})"
            )

        await self.store.delete(CONTRACTS, contract_id)
        logger.info("Deleted contract %s and %d option(s)", contract_id, len(options))
        return len(options)

    # ---------- Helpers ----------

    @staticmethod
    def _stage_options(batch: WriteBatch, contract_id: str, options: list[OptionInput]) -> list[Option]:
        staged: list[Option] = []
        for position, option_input in enumerate(options):
            option = Option(
                title=option_input.title,
                term_months=option_input.term_months,
                line_items=option_input.line_items,
                position=position,
            )
            option.id = batch.create(options_collection(contract_id), option.to_document())
            staged.append(option)
        return staged

    async def _unique_shareable_id(self) -> str:
        for _ in range(MAX_SHAREABLE_ID_ATTEMPTS):
            candidate = new_shareable_id()
            if not await self.store.query(CONTRACTS, "shareableId", candidate):
                return candidate
            logger.warning("Shareable id collision on %s, regenerating", candidate)
        raise StorageError("Could not allocate a unique shareable id")
