from fastapi import Depends, Header

from quotedesk.common.exceptions import PermissionDeniedError
from quotedesk.common.security import AdminIdentity, decode_token
from quotedesk.core.contracts.service import ContractService
from quotedesk.core.notifications.service import ConfirmationDispatcher
from quotedesk.db.document_store import DocumentStore, SQLDocumentStore
from quotedesk.db.session import async_session_factory


def get_store() -> DocumentStore:
    return SQLDocumentStore(async_session_factory)


def get_contract_service(store: DocumentStore = Depends(get_store)) -> ContractService:
    return ContractService(store)


def get_dispatcher(store: DocumentStore = Depends(get_store)) -> ConfirmationDispatcher:
    return ConfirmationDispatcher(store)


async def get_current_admin(
    authorization: str = Header(..., description="Bearer <token>"),
) -> AdminIdentity:
    if not authorization.startswith("Bearer "):
        raise PermissionDeniedError("Invalid authorization header format")

    token = authorization[len("Bearer "):]
    try:
        payload = decode_token(token)
    except ValueError:
        raise PermissionDeniedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise PermissionDeniedError("Invalid token type")

    admin_id = payload.get("sub")
    email = payload.get("email")
    if not admin_id or not email:
        raise PermissionDeniedError("Invalid token payload")

    return AdminIdentity(id=admin_id, email=email)
