"""
Shared fakes: a scripted upstream standing in for AsyncOpenAI, and helpers
that build real openai SDK exceptions for the dispatcher to classify.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import openai
import pytest

from question_engine.dispatcher import Dispatcher, RetryPolicy, set_dispatcher
from question_engine.key_pool import KeyPool, reset_key_pool

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def status_error(cls, status: int, message: str = ""):
    response = httpx.Response(status, request=_REQUEST)
    return cls(message or f"Error code: {status}", response=response, body=None)


def rate_limited():
    return status_error(openai.RateLimitError, 429)


def invalid_key():
    return status_error(openai.AuthenticationError, 401, "Incorrect API key provided")


def unavailable():
    return status_error(openai.InternalServerError, 503)


def bad_request():
    return status_error(openai.BadRequestError, 400, "Unsupported parameter: 'foo'")


def connection_error():
    return openai.APIConnectionError(request=_REQUEST)


def mcq(n: int, **extra) -> Dict[str, Any]:
    item = {
        "subject": "Physics",
        "chapter": "Kinematics",
        "type": "MCQ",
        "difficulty": "Hard",
        "statement": f"MCQ statement {n}",
        "options": ["1", "2", "3", "4"],
        "correctAnswer": "A",
        "solution": "s",
        "explanation": "e",
        "concept": "c",
    }
    item.update(extra)
    return item


def numerical(n: int, **extra) -> Dict[str, Any]:
    item = {
        "subject": "Physics",
        "chapter": "Kinematics",
        "type": "Numerical",
        "difficulty": "Hard",
        "statement": f"Numerical statement {n}",
        "options": [],
        "correctAnswer": "42",
        "solution": "s",
        "explanation": "e",
        "concept": "c",
    }
    item.update(extra)
    return item


class FakeUpstream:
    """
    Scripted upstream. Each create() call pops the next outcome: a string is
    returned as the message content, an exception is raised.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None, default: Any = "[]"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    def client_factory(self, key: str):
        upstream = self

        class _Completions:
            async def create(self, **kwargs):
                upstream.calls.append({"key": key, **kwargs})
                outcome = upstream.outcomes.pop(0) if upstream.outcomes else upstream.default
                if isinstance(outcome, BaseException):
                    raise outcome
                message = SimpleNamespace(content=outcome)
                return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        return SimpleNamespace(chat=SimpleNamespace(completions=_Completions()))

    @property
    def keys_used(self) -> List[str]:
        return [c["key"] for c in self.calls]

    @property
    def models_used(self) -> List[str]:
        return [c["model"] for c in self.calls]


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


TEST_POLICY = RetryPolicy(primary_model="primary-model", fallback_model="fallback-model", backoff_seconds=1.0)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_dispatcher(sleeper):
    def _make(keys, outcomes=None, default="[]", policy=TEST_POLICY):
        upstream = FakeUpstream(outcomes, default)
        dispatcher = Dispatcher(
            KeyPool(keys),
            policy=policy,
            client_factory=upstream.client_factory,
            sleep=sleeper,
        )
        return dispatcher, upstream
    return _make


@pytest.fixture(autouse=True)
def _isolated_engine(monkeypatch):
    """No ambient keys, no process-wide pool or dispatcher leaking between tests."""
    for name in ("QGEN_API_KEYS", "OPENAI_API_KEYS", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    reset_key_pool()
    set_dispatcher(None)
    yield
    reset_key_pool()
    set_dispatcher(None)


def as_json(items) -> str:
    return json.dumps(items)
