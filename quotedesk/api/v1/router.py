from fastapi import APIRouter

from quotedesk.api.v1.auth import router as auth_router
from quotedesk.api.v1.contracts import router as contracts_router
from quotedesk.api.v1.functions import router as functions_router
from quotedesk.api.v1.public import router as public_router

v1_router = APIRouter()

v1_router.include_router(auth_router)
v1_router.include_router(contracts_router)
v1_router.include_router(public_router)
v1_router.include_router(functions_router)
