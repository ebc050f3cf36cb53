from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from quotedesk.common.enums import ContractStatus, SignatureMode
from quotedesk.common.exceptions import ExternalServiceError, PreconditionFailedError, ValidationFailedError
from quotedesk.core.notifications.service import ConfirmationDispatcher
from quotedesk.core.signing.workflow import (
    PROMPT_ENTER_NAME,
    PROMPT_PROVIDE_SIGNATURE,
    PROMPT_SELECT_OPTION,
    SigningSession,
    sign_and_notify,
)

STROKES = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="


def _ready_session(draft, option_index=0):
    option = draft.options[option_index]
    session = SigningSession(contract_id=draft.contract.id)
    session.select_option(option.id, option.label)
    session.set_signer_name("Pat Customer")
    session.draw(STROKES)
    return session


def test_prompt_walks_through_missing_inputs():
    session = SigningSession(contract_id="c1")
    assert not session.is_ready
    assert session.prompt == PROMPT_SELECT_OPTION

    session.select_option("opt-1", "Fiber 500 (36 Month Term)")
    assert session.prompt == PROMPT_ENTER_NAME

    session.set_signer_name("   ")
    assert session.prompt == PROMPT_ENTER_NAME

    session.set_signer_name("Pat Customer")
    assert session.prompt == PROMPT_PROVIDE_SIGNATURE

    session.draw(STROKES)
    assert session.is_ready
    assert session.prompt == "Accept & Sign for Fiber 500 (36 Month Term)"

    session.clear()
    assert not session.is_ready
    assert session.prompt == PROMPT_PROVIDE_SIGNATURE


def test_typed_mode_uses_name_as_payload():
    session = SigningSession(contract_id="c1")
    session.select_option("opt-1", "Fiber 500 (36 Month Term)")
    session.set_mode("typed")
    session.set_signer_name("Pat Customer")
    assert session.mode == SignatureMode.TYPED
    assert session.payload == "Pat Customer"
    assert session.is_ready


@pytest.mark.asyncio
async def test_commit_not_ready(service, draft):
    session = SigningSession(contract_id=draft.contract.id)
    with pytest.raises(ValidationFailedError) as exc:
        await session.commit(service)
    assert exc.value.detail == PROMPT_SELECT_OPTION


@pytest.mark.asyncio
async def test_commit_signs_contract(service, draft):
    session = _ready_session(draft, option_index=1)
    signed_at = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)

    signed = await session.commit(service, now=signed_at)

    assert session.signed
    assert not session.committing
    assert signed.contract.status == ContractStatus.SIGNED
    assert signed.contract.signature.signed_at == signed_at
    assert signed.contract.signature.signature_data == STROKES
    assert signed.option.id == draft.options[1].id


@pytest.mark.asyncio
async def test_failed_commit_keeps_input(service, draft):
    session = _ready_session(draft)

    with patch.object(service, "sign", side_effect=PreconditionFailedError("modified since it was read")):
        with pytest.raises(PreconditionFailedError):
            await session.commit(service)

    assert not session.committing
    assert not session.signed
    assert session.signer_name == "Pat Customer"
    assert session.stroke_data == STROKES
    assert session.selected_option_id == draft.options[0].id

    # Retry succeeds with the same inputs
    signed = await session.commit(service)
    assert signed.contract.status == ContractStatus.SIGNED


@pytest.mark.asyncio
async def test_second_signature_rejected(service, draft):
    await _ready_session(draft).commit(service)

    late = _ready_session(draft, option_index=1)
    with pytest.raises(PreconditionFailedError):
        await late.commit(service)
    assert late.stroke_data == STROKES


@pytest.mark.asyncio
async def test_sign_and_notify(service, store, draft, sent_emails):
    result = await sign_and_notify(_ready_session(draft), service, ConfirmationDispatcher(store))

    assert result.notification.success
    assert result.signed.contract.status == ContractStatus.SIGNED
    sent_emails.assert_awaited_once()
    assert sent_emails.call_args.kwargs["to"][0] == "office@example.com"


@pytest.mark.asyncio
async def test_email_failure_does_not_undo_signature(service, store, draft, sent_emails):
    sent_emails.side_effect = ExternalServiceError("email relay", "HTTP 500")

    result = await sign_and_notify(_ready_session(draft), service, ConfirmationDispatcher(store))

    assert not result.notification.success
    assert "email relay" in result.notification.error
    contract = await service.get(draft.contract.id)
    assert contract.status == ContractStatus.SIGNED


def test_non_image_strokes_are_not_a_signature():
    session = SigningSession(contract_id="c1")
    session.select_option("opt-1", "Fiber 500 (36 Month Term)")
    session.set_signer_name("Pat Customer")
    session.draw("M 1 1 L 2 2")

    assert session.payload is None
    assert not session.is_ready
    assert session.prompt == PROMPT_PROVIDE_SIGNATURE


def test_build_signature_reports_validator_message():
    session = SigningSession(contract_id="c1")
    session.select_option("opt-1")
    session.set_signer_name("Pat Customer")

    with pytest.raises(ValidationFailedError) as exc:
        session.build_signature()
    assert exc.value.detail == "Signature payload is required"
