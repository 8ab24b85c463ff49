"""Shared fakes for orchestrator, service and CLI tests."""

import pytest

from prompt2form.errors import StoreUnavailable
from prompt2form.orchestrator import SchemaOrchestrator
from prompt2form.stores.memory_store import InMemorySessionStore
from prompt2form.utils.retry import RateLimitBackoff, ValidationRetryPolicy

CONTACT_FORM = (
    '[{"label": "Name", "type": "text", "required": true},'
    ' {"label": "Email", "type": "email", "required": true}]'
)


class FakeLLM:
    """Scripted completion client: returns strings, raises exceptions, in order."""

    model = "fake-model"

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.opened = False

    def complete(self, transcript, strict=False):
        self.calls.append({"transcript": list(transcript), "strict": strict})
        if not self.responses:
            raise AssertionError("unexpected LLM call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def open(self):
        self.opened = True

    def close(self):
        self.opened = False


class CountingStore(InMemorySessionStore):
    """In-memory store that counts every call."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.appends = 0
        self.reads = 0
        self.deletes = 0

    def append(self, session_id, turn):
        self.appends += 1
        super().append(session_id, turn)

    def read(self, session_id):
        self.reads += 1
        return super().read(session_id)

    def delete(self, session_id):
        self.deletes += 1
        super().delete(session_id)

    @property
    def calls(self) -> int:
        return self.appends + self.reads + self.deletes


class BrokenStore(InMemorySessionStore):
    """Store whose backend is down."""

    def append(self, session_id, turn):
        raise StoreUnavailable("Session store unavailable: connection refused")

    def read(self, session_id):
        raise StoreUnavailable("Session store unavailable: connection refused")


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(store, sleeps):
    """Build an orchestrator around a FakeLLM with the given scripted responses."""
    counter = iter(range(1, 1000))

    def _make(responses, **kwargs):
        llm = FakeLLM(responses)
        orchestrator = SchemaOrchestrator(
            store=kwargs.pop("session_store", store),
            llm=llm,
            validation_policy=ValidationRetryPolicy(max_attempts=3),
            backoff=RateLimitBackoff(max_attempts=3, base_delay=2.0, sleep=sleeps.append),
            id_factory=lambda: f"session-{next(counter)}",
            **kwargs,
        )
        return orchestrator, llm

    return _make
