import sys
import os
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

import pytest
import requests

from app.core.errors import UpstreamError
from app.utils.completion_client import CompletionClient
from fakes import FakeHttp, FakeResponse, completion


def make_client(outcomes, sleeps=None):
    http = FakeHttp(outcomes)
    recorded = sleeps if sleeps is not None else []
    client = CompletionClient(
        api_key="key-123",
        url="https://llm.example/v1/chat/completions",
        model="test-model",
        temperature=0.3,
        timeout=60,
        max_attempts=3,
        headers={"X-Title": "Mini AI App Portal"},
        http=http,
        sleep=recorded.append,
    )
    return client, http


def test_complete_returns_trimmed_choice_text():
    client, http = make_client([completion("  hello world \n")])

    text = client.complete([{"role": "user", "content": "hi"}], max_tokens=50)

    assert text == "hello world"
    assert len(http.calls) == 1
    call = http.calls[0]
    assert call["json"] == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.3,
        "max_tokens": 50,
    }
    assert call["timeout"] == 60
    assert call["headers"]["Authorization"] == "Bearer key-123"
    assert call["headers"]["X-Title"] == "Mini AI App Portal"


def test_rate_limit_backs_off_exponentially_then_succeeds():
    sleeps = []
    client, http = make_client(
        [
            FakeResponse(429, text="Too Many Requests"),
            FakeResponse(429, text="Too Many Requests"),
            completion("third time lucky"),
        ],
        sleeps,
    )

    assert client.complete([{"role": "user", "content": "x"}]) == "third time lucky"
    assert len(http.calls) == 3
    assert sleeps == [2, 4]


def test_rate_limit_on_last_attempt_does_not_sleep():
    sleeps = []
    client, http = make_client([FakeResponse(429)] * 3, sleeps)

    with pytest.raises(UpstreamError) as exc_info:
        client.complete([{"role": "user", "content": "x"}])

    assert len(http.calls) == 3
    assert sleeps == [2, 4]
    assert exc_info.value.attempts == 3
    assert "429" in exc_info.value.last_message


def test_every_attempt_failing_raises_after_exactly_three_calls():
    sleeps = []
    client, http = make_client(
        [
            FakeResponse(500, text="first"),
            requests.ConnectionError("connection reset"),
            FakeResponse(503, text="last failure"),
        ],
        sleeps,
    )

    with pytest.raises(UpstreamError) as exc_info:
        client.complete([{"role": "user", "content": "x"}])

    assert len(http.calls) == 3
    assert sleeps == []
    assert "last failure" in exc_info.value.last_message


def test_timeout_is_retried_without_backoff():
    sleeps = []
    client, http = make_client([requests.Timeout("read timed out"), completion("ok")], sleeps)

    assert client.complete([{"role": "user", "content": "x"}]) == "ok"
    assert len(http.calls) == 2
    assert sleeps == []


def test_malformed_body_counts_as_failed_attempt():
    client, http = make_client([FakeResponse(200, {"choices": []}), completion("recovered")])

    assert client.complete([{"role": "user", "content": "x"}]) == "recovered"
    assert len(http.calls) == 2
