from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from quotedesk.common.enums import ContractStatus, SignatureMode
from quotedesk.common.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    StorageError,
    ValidationFailedError,
)
from quotedesk.core.contracts.lifecycle import add_months, can_transition, expiration_date
from quotedesk.core.contracts.schemas import (
    INSTALLATION_SCHEDULE_SUFFIX,
    ContractInput,
    OptionInput,
    Signature,
    compose_installation_schedule,
    normalize_site_addresses,
)
from quotedesk.core.contracts.service import (
    CONTRACTS,
    UNAVAILABLE_LABEL,
    UNKNOWN_OPTION_LABEL,
    options_collection,
)

DRAWN_SIGNATURE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="


def _signature(name="Pat Customer", signed_at=None, mode=SignatureMode.DRAWN, data=DRAWN_SIGNATURE):
    return Signature(
        signer_name=name,
        signed_at=signed_at or datetime.now(timezone.utc),
        mode=mode,
        signature_data=data,
    )


# ---------- Status rules ----------


def test_transition_table():
    assert can_transition(ContractStatus.DRAFT, ContractStatus.SIGNED)
    assert not can_transition(ContractStatus.SIGNED, ContractStatus.SIGNED)
    assert not can_transition(ContractStatus.SIGNED, ContractStatus.DRAFT)
    assert not can_transition(ContractStatus.LOCKED, ContractStatus.SIGNED)


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2023, 1, 31), 1, date(2023, 2, 28)),
        (date(2024, 11, 15), 3, date(2025, 2, 15)),
        (date(2024, 3, 31), 36, date(2027, 3, 31)),
    ],
)
def test_add_months_clamps_and_rolls_over(start, months, expected):
    assert add_months(start, months) == expected


def test_expiration_needs_signature_and_term():
    assert expiration_date(None, 36) is None
    assert expiration_date(datetime(2024, 1, 1, tzinfo=timezone.utc), None) is None


def test_installation_suffix_appended_once():
    once = compose_installation_schedule("Install within 30 days.")
    assert once == f"Install within 30 days. {INSTALLATION_SCHEDULE_SUFFIX}"
    assert compose_installation_schedule(once) == once
    assert compose_installation_schedule("") == INSTALLATION_SCHEDULE_SUFFIX


def test_billing_address_required_when_different():
    with pytest.raises(ValueError):
        ContractInput(
            business_name="Acme",
            customer_email="a@example.com",
            service_address="1 Main St",
            billing_same_as_service=False,
        )


# ---------- Create ----------


@pytest.mark.asyncio
async def test_create_draft(draft, admin):
    contract = draft.contract
    assert contract.status == ContractStatus.DRAFT
    assert contract.admin_id == admin.id
    assert len(contract.shareable_id) == 8
    assert contract.billing_address == contract.service_address
    assert contract.multi_site_addresses == ["1 Main St, Springfield", "22 Oak Ave, Springfield"]
    assert contract.installation_schedule_text.endswith(INSTALLATION_SCHEDULE_SUFFIX)
    assert [o.title for o in draft.options] == ["Fiber 500", "Fiber 1G"]
    assert draft.options[0].total_mrc == Decimal("23.00")
    assert draft.options[0].total_nrc == Decimal("10.00")


@pytest.mark.asyncio
async def test_create_round_trips_through_store(service, draft):
    detail = await service.get_detail(draft.contract.id)
    assert detail.contract.multi_site_addresses == draft.contract.multi_site_addresses
    assert detail.contract.version == 1
    assert [o.title for o in detail.options] == ["Fiber 500", "Fiber 1G"]
    assert detail.options[1].total_mrc == Decimal("1249.00")
    assert detail.options[0].line_items[0].type == "header"


def test_site_addresses_drop_blanks_and_repeats():
    assert normalize_site_addresses("A", ["A", "B", "A", ""]) == ["A", "B"]
    assert normalize_site_addresses(" A ", None) == ["A"]


@pytest.mark.asyncio
async def test_site_addresses_round_trip(service, store, admin, contract_payload, option_inputs):
    fields = {k: v for k, v in contract_payload.items() if k != "options"}
    fields.update(service_address="A", multi_site_addresses=["A", "B", "A", ""])

    created = await service.create(admin, ContractInput.model_validate(fields), option_inputs)

    contract = await service.get(created.contract.id)
    assert contract.multi_site_addresses == ["A", "B"]
    stored = await store.get(CONTRACTS, created.contract.id)
    assert stored.data["multiSiteAddresses"] == ["A", "B"]


@pytest.mark.asyncio
async def test_create_drops_unpriced_options(service, admin, contract_input, option_inputs):
    header_only = OptionInput(title="Empty", line_items=[{"type": "header", "value": "TBD"}])
    detail = await service.create(admin, contract_input, [header_only, *option_inputs])
    assert [o.title for o in detail.options] == ["Fiber 500", "Fiber 1G"]


@pytest.mark.asyncio
async def test_create_requires_a_priced_option(service, admin, contract_input):
    with pytest.raises(ValidationFailedError):
        await service.create(admin, contract_input, [OptionInput(title="Nothing")])
    assert await service.store.list_all(CONTRACTS) == []


@pytest.mark.asyncio
async def test_get_by_share_id(service, draft):
    found = await service.get_by_share_id(draft.contract.shareable_id)
    assert found.id == draft.contract.id

    with pytest.raises(NotFoundError) as exc:
        await service.get_by_share_id("nope1234")
    assert exc.value.detail == "Contract not found"


# ---------- Update ----------


@pytest.mark.asyncio
async def test_update_replaces_options_and_keeps_immutable_fields(service, draft, contract_input):
    changed = contract_input.model_copy(
        update={
            "business_name": "Acme Dental Group",
            "installation_schedule": draft.contract.installation_schedule_text,
        }
    )
    new_options = [
        OptionInput(
            title="Fiber 2G",
            term_months=24,
            line_items=[{"type": "item", "description": "2 Gbps", "qty": 1, "mrc": "1999", "nrc": "0"}],
        )
    ]

    updated = await service.update(draft.contract.id, changed, new_options)

    assert updated.contract.business_name == "Acme Dental Group"
    assert updated.contract.shareable_id == draft.contract.shareable_id
    assert updated.contract.created_at == draft.contract.created_at
    assert updated.contract.admin_id == draft.contract.admin_id
    assert updated.contract.status == ContractStatus.DRAFT
    assert updated.contract.version == 2
    assert updated.contract.installation_schedule_text.count(INSTALLATION_SCHEDULE_SUFFIX) == 1

    options = await service.list_options(draft.contract.id)
    assert [o.title for o in options] == ["Fiber 2G"]


@pytest.mark.asyncio
async def test_update_signed_contract_rejected(service, draft, contract_input, option_inputs):
    await service.sign(draft.contract.id, draft.options[0].id, _signature())

    with pytest.raises(PreconditionFailedError):
        await service.update(draft.contract.id, contract_input, option_inputs)

    options = await service.list_options(draft.contract.id)
    assert [o.id for o in options] == [o.id for o in draft.options]


@pytest.mark.asyncio
async def test_stale_version_write_rejected(service, store, draft):
    await store.set(CONTRACTS, draft.contract.id, {"businessName": "Edited elsewhere"})

    with pytest.raises(PreconditionFailedError):
        await store.set(
            CONTRACTS, draft.contract.id, {"status": "signed"}, expected_version=draft.contract.version
        )

    contract = await service.get(draft.contract.id)
    assert contract.status == ContractStatus.DRAFT
    assert contract.business_name == "Edited elsewhere"


# ---------- Sign ----------


@pytest.mark.asyncio
async def test_sign_draft(service, draft):
    option = draft.options[1]
    signed = await service.sign(draft.contract.id, option.id, _signature(name="  Pat Customer "))

    assert signed.contract.status == ContractStatus.SIGNED
    assert signed.contract.selected_option_id == option.id
    assert signed.contract.signature.signer_name == "Pat Customer"
    assert signed.option.title == "Fiber 1G"


@pytest.mark.asyncio
async def test_sign_twice_keeps_first_signature(service, draft):
    await service.sign(draft.contract.id, draft.options[0].id, _signature(name="First Signer"))

    with pytest.raises(PreconditionFailedError):
        await service.sign(draft.contract.id, draft.options[1].id, _signature(name="Second Signer"))

    contract = await service.get(draft.contract.id)
    assert contract.signature.signer_name == "First Signer"
    assert contract.selected_option_id == draft.options[0].id


@pytest.mark.asyncio
async def test_sign_unknown_option(service, draft):
    with pytest.raises(NotFoundError):
        await service.sign(draft.contract.id, "missing-option", _signature())
    assert (await service.get(draft.contract.id)).status == ContractStatus.DRAFT


def test_signature_payload_must_fit_mode():
    with pytest.raises(ValueError):
        _signature(data="not-an-image")
    with pytest.raises(ValueError):
        _signature(name="   ")
    typed = _signature(mode=SignatureMode.TYPED, data="Pat Customer")
    assert typed.signature_data == "Pat Customer"


# ---------- Delete ----------


@pytest.mark.asyncio
async def test_delete_cascades(service, store, draft):
    removed = await service.delete(draft.contract.id)
    assert removed == 2
    assert await store.get(CONTRACTS, draft.contract.id) is None
    assert await store.list_all(options_collection(draft.contract.id)) == []


@pytest.mark.asyncio
async def test_delete_missing_contract(service):
    with pytest.raises(NotFoundError):
        await service.delete("does-not-exist")


@pytest.mark.asyncio
async def test_partial_delete_keeps_contract(service, store, draft):
    original_delete = store.delete
    failed: list[str] = []

    async def flaky_delete(collection, doc_id):
        if collection != CONTRACTS and not failed:
            failed.append(doc_id)
            raise StorageError("connection reset")
        await original_delete(collection, doc_id)

    with patch.object(store, "delete", new=flaky_delete):
        with pytest.raises(StorageError) as exc:
            await service.delete(draft.contract.id)

    assert "Deleted 1 of 2 options" in exc.value.detail
    assert await store.get(CONTRACTS, draft.contract.id) is not None

    # Retrying the whole delete finishes the job
    assert await service.delete(draft.contract.id) == 1
    assert await store.get(CONTRACTS, draft.contract.id) is None


# ---------- Listing ----------


@pytest.mark.asyncio
async def test_list_summaries(service, admin, contract_input, option_inputs):
    first = await service.create(admin, contract_input, option_inputs)
    second = await service.create(
        admin, contract_input.model_copy(update={"business_name": "Beta Vet"}), option_inputs
    )
    await service.sign(
        first.contract.id,
        first.options[1].id,
        _signature(signed_at=datetime(2024, 1, 31, 15, 0, tzinfo=timezone.utc)),
    )

    summaries = await service.list_summaries()
    assert [s.id for s in summaries] == [second.contract.id, first.contract.id]

    draft_row, signed_row = summaries
    assert draft_row.selected_option_title is None
    assert draft_row.expires_on is None
    assert signed_row.status == ContractStatus.SIGNED
    assert signed_row.selected_option_title == "Fiber 1G"
    assert signed_row.selected_option_term == 60
    assert signed_row.expires_on == date(2029, 1, 31)


@pytest.mark.asyncio
async def test_list_summaries_missing_option(service, store, draft):
    option_id = draft.options[0].id
    await service.sign(draft.contract.id, option_id, _signature())
    await store.delete(options_collection(draft.contract.id), option_id)

    [row] = await service.list_summaries()
    assert row.selected_option_title == UNKNOWN_OPTION_LABEL
    assert row.expires_on is None


@pytest.mark.asyncio
async def test_list_summaries_failed_lookup_degrades(service, draft):
    await service.sign(draft.contract.id, draft.options[0].id, _signature())

    with patch.object(service, "get_option", side_effect=StorageError("timed out")):
        [row] = await service.list_summaries()

    assert row.selected_option_title == UNAVAILABLE_LABEL
