from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quotedesk.api.deps import get_current_admin
from quotedesk.common.logging import get_logger
from quotedesk.common.security import AdminIdentity, create_admin_token
from quotedesk.integrations.google_identity import GoogleIdentityClient

router = APIRouter(prefix="/auth", tags=["Authentication"])

logger = get_logger("api.auth")


# ---------- Schemas ----------


class GoogleSignInRequest(BaseModel):
    access_token: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    email: str
    name: str | None = None


class AdminResponse(BaseModel):
    id: str
    email: str


# ---------- Endpoints ----------


@router.post("/google", response_model=TokenResponse)
async def google_sign_in(body: GoogleSignInRequest):
    account = await GoogleIdentityClient().fetch_account(body.access_token)
    admin = AdminIdentity(id=account.id, email=account.email)
    logger.info("Admin %s signed in", admin.email)
    return TokenResponse(
        access_token=create_admin_token(admin),
        email=account.email,
        name=account.name,
    )


@router.get("/me", response_model=AdminResponse)
async def get_me(admin: AdminIdentity = Depends(get_current_admin)):
    return AdminResponse(id=admin.id, email=admin.email)
