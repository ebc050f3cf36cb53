import asyncio

from quotedesk.common.logging import get_logger
from quotedesk.tasks.celery_app import app

logger = get_logger("tasks.email")


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _resend(contract_id: str) -> dict:
    from quotedesk.common.exceptions import PreconditionFailedError
    from quotedesk.core.contracts.schemas import SignedContract
    from quotedesk.core.notifications.service import ConfirmationDispatcher
    from quotedesk.db.document_store import SQLDocumentStore
    from quotedesk.db.session import async_session_factory

    dispatcher = ConfirmationDispatcher(SQLDocumentStore(async_session_factory))
    contract = await dispatcher.contracts.get(contract_id)
    if not contract.is_immutable or not contract.selected_option_id:
        raise PreconditionFailedError(f"Contract '{contract_id}' has not been signed")

    option = await dispatcher.contracts.get_option(contract_id, contract.selected_option_id)
    return await dispatcher.notify_signed(SignedContract(contract=contract, option=option))


@app.task(bind=True, name="quotedesk.tasks.email_tasks.resend_signed_confirmation", max_retries=3)
def resend_signed_confirmation(self, contract_id: str):
    from quotedesk.common.exceptions import ExternalServiceError

    logger.info("Resending signed confirmation for contract %s", contract_id)
    try:
        result = _run_async(_resend(contract_id))
    except ExternalServiceError as exc:
        # Only relay failures are retried
        logger.error("Confirmation resend failed for contract %s: %s", contract_id, exc.detail)
        raise self.retry(exc=exc, countdown=60)

    logger.info("Confirmation resent for contract %s", contract_id)
    return result
