"""Callable function endpoints, invoked directly by the web client."""

from fastapi import APIRouter, Depends

from quotedesk.api.deps import get_dispatcher
from quotedesk.core.notifications.service import ConfirmationDispatcher, ConfirmationEmailRequest

router = APIRouter(prefix="/functions", tags=["Functions"])


@router.post("/send-signed-confirmation")
async def send_signed_confirmation(
    body: ConfirmationEmailRequest,
    dispatcher: ConfirmationDispatcher = Depends(get_dispatcher),
):
    return await dispatcher.send_signed_confirmation(body)
