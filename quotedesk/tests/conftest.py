from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quotedesk.common.security import AdminIdentity, create_admin_token
from quotedesk.core.contracts.schemas import ContractInput, OptionInput
from quotedesk.core.contracts.service import ContractService
from quotedesk.db.base import Base
from quotedesk.db.document_store import SQLDocumentStore
from quotedesk.db.models import *  # noqa: F401,F403 - ensure all models loaded


@pytest.fixture
async def test_engine(tmp_path):
    # One SQLite file per test; store calls open their own sessions concurrently
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return SQLDocumentStore(session_factory)


@pytest.fixture
def service(store):
    return ContractService(store)


@pytest.fixture
async def client(store):
    from quotedesk.api.deps import get_store
    from quotedesk.main import app

    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return AdminIdentity(id="google-1234567890", email="admin@quotedesk.test")


@pytest.fixture
def admin_token(admin):
    return create_admin_token(admin)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def contract_payload():
    return {
        "business_name": "Acme Dental",
        "agent_business_name": "Telco Partners",
        "customer_email": "office@example.com",
        "service_address": "1 Main St, Springfield",
        "billing_same_as_service": True,
        "multi_site_addresses": ["22 Oak Ave, Springfield"],
        "installation_schedule": "Install within 30 days.",
        "options": [
            {
                "title": "Fiber 500",
                "term_months": 36,
                "line_items": [
                    {"type": "header", "value": "Internet"},
                    {"type": "item", "description": "Fiber 500 Mbps", "qty": 2, "mrc": "$10.00", "nrc": "5"},
                    {"type": "item", "description": "Static IP", "qty": 1, "mrc": 3, "nrc": 0},
                ],
            },
            {
                "title": "Fiber 1G",
                "term_months": 60,
                "line_items": [
                    {"type": "item", "description": "Fiber 1 Gbps", "qty": 1, "mrc": "1,249.00", "nrc": "0"},
                ],
            },
        ],
    }


@pytest.fixture
def contract_input(contract_payload):
    return ContractInput.model_validate(
        {k: v for k, v in contract_payload.items() if k != "options"}
    )


@pytest.fixture
def option_inputs(contract_payload):
    return [OptionInput.model_validate(o) for o in contract_payload["options"]]


@pytest.fixture
async def draft(service, admin, contract_input, option_inputs):
    return await service.create(admin, contract_input, option_inputs)


@pytest.fixture(autouse=True)
def mock_celery_tasks():
    """Mock Celery task.delay() calls to prevent actual task execution in tests."""
    with patch("quotedesk.tasks.email_tasks.resend_signed_confirmation.delay") as delay:
        yield delay


@pytest.fixture(autouse=True)
def sent_emails():
    """Mock the email relay; tests inspect ``call_args`` for what was sent."""
    with patch(
        "quotedesk.integrations.email_relay.EmailRelayClient.send_email",
        return_value={"message_id": "mock-123", "status": "sent"},
    ) as send_email:
        yield send_email
