from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quotedesk.api.middleware import RequestTimingMiddleware
from quotedesk.api.v1.router import v1_router
from quotedesk.common.logging import get_logger, setup_logging
from quotedesk.config import settings
from quotedesk.db.session import engine

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("QuoteDesk starting (%s)", settings.APP_ENV)
    yield
    await engine.dispose()


app = FastAPI(
    title="QuoteDesk API",
    description="Service contract drafting, e-signature and confirmation email",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestTimingMiddleware)

app.include_router(v1_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "quotedesk",
        "version": "1.0.0",
        "env": settings.APP_ENV,
    }
