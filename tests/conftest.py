from datetime import datetime, timezone
import itertools

import httpx
import pytest
import pytest_asyncio

from app.config import Settings
from app.main import create_app
from expense_agents.schemas import ApprovalRules
from expense_agents.state_manager import InMemoryWorkflowStore
from expense_agents.tools import PaymentSettler
from expense_agents.workflow import ExpenseWorkflowService

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


def make_item(amount, category="meals", receipt=True, **overrides):
    item = {
        "category": category,
        "description": f"{category} expense",
        "amount": amount,
        "currency": "USD",
        "date": "2024-03-10",
        "merchant": "Acme Corp",
    }
    if receipt:
        item["receiptUrl"] = "https://receipts.example.com/r/1.pdf"
    item.update(overrides)
    return item


def make_draft(*items, **overrides):
    """Build a camelCase submission payload; defaults to one receipted 30.00 meal."""
    draft = {
        "title": "Client visit",
        "employeeId": "emp-1",
        "employeeInfo": {
            "name": "Jordan Lee",
            "email": "jordan.lee@example.com",
            "department": "Sales",
        },
        "expenses": list(items) or [make_item(30)],
        "businessPurpose": "Quarterly client review",
    }
    draft.update(overrides)
    return draft


class SequentialIds:

    def __init__(self, prefix="id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self):
        return f"{self.prefix}-{next(self._counter)}"


@pytest.fixture
def rules():
    return ApprovalRules()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store():
    return InMemoryWorkflowStore()


@pytest.fixture
def service(store, rules, clock):
    return ExpenseWorkflowService(
        store=store,
        rules=rules,
        settler=PaymentSettler(transaction_id_factory=lambda: "TXN0000000000000001"),
        id_factory=SequentialIds(),
        clock=clock,
    )


@pytest.fixture
def app(service):
    return create_app(settings=Settings(), service=service)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
