from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from openai.types.chat import ChatCompletion, ChatCompletionMessage
from openai.types.chat.chat_completion import Choice
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db import BudgetStore
from app.llm import InsightGenerator
from app.main import create_app
from app.schemas import ImportedRow


class FakeRawResponse:
    def __init__(self, completion):
        self.completion = completion
        self.http_response = SimpleNamespace(text=completion.model_dump_json())

    def parse(self):
        return self.completion


class FakeCompletions:
    """Records chat.completions.create calls and answers with a canned reply."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []
        self.with_raw_response = SimpleNamespace(create=self.create)

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return FakeRawResponse(ChatCompletion(
            id="chatcmpl-test",
            object="chat.completion",
            created=0,
            model=kwargs["model"],
            choices=[Choice(
                index=0,
                finish_reason="stop",
                message=ChatCompletionMessage(role="assistant", content=self.reply),
            )],
        ))


class FakeClient:
    def __init__(self, reply="Spending is on track."):
        self.completions = FakeCompletions(reply)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    store = BudgetStore(engine)
    store.create_schema()
    return store


@pytest.fixture
def seeded_store(store):
    store.insert_rows([
        ImportedRow(account="Parks", glcode="100", account_budget_a=1000, used_amt=500, remaining_amt=500),
        ImportedRow(account="Parks", glcode="110", account_budget_a=2000, used_amt=2500, remaining_amt=-500),
        ImportedRow(account="Parks", glcode="120", account_budget_a=300, used_amt=0, remaining_amt=300),
        ImportedRow(account="Police", glcode="200", account_budget_a=9000, used_amt=4000, remaining_amt=5000),
    ])
    return store


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def generator(fake_client):
    return InsightGenerator(fake_client, model="test-model")


@pytest.fixture
def client(seeded_store, generator):
    app = create_app(store=seeded_store, generator=generator)
    return TestClient(app)
