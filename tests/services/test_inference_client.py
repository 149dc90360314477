"""
Unit tests for InferenceClient.

Upstream HTTP is replaced by httpx.MockTransport and sleeping is recorded
instead of awaited.
"""

import asyncio
import json

import httpx
import pytest

from plant_doctor.core.config import Settings
from plant_doctor.services.inference_client import (
    InferenceClient,
    InferenceConfigurationError,
    InferenceConnectionError,
    InferenceRequestError,
    InferenceUnavailableError,
    RetryPolicy,
    strip_data_uri,
)

MODEL_ID = "google/vit-base-patch16-224"


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_client(handler, retry_policy=None, sleep=None, api_key="hf_test"):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return InferenceClient(
        api_key=api_key,
        api_url="https://inference.test",
        retry_policy=retry_policy or RetryPolicy(),
        http_client=http_client,
        sleep=sleep or RecordingSleep(),
    )


def test_classify_success_sends_stripped_payload():
    """Test request format and prediction parsing."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json=[
                {"label": "Healthy tomato", "score": 0.88},
                {"label": "pot, flowerpot", "score": 0.05},
            ],
        )

    client = make_client(handler)
    predictions = asyncio.run(client.classify("data:image/png;base64,QUJD", MODEL_ID))

    assert seen["url"] == f"https://inference.test/models/{MODEL_ID}"
    assert seen["auth"] == "Bearer hf_test"
    assert seen["body"] == {"inputs": "QUJD"}
    assert [p.label for p in predictions] == ["Healthy tomato", "pot, flowerpot"]
    assert predictions[0].score == 0.88


def test_predictions_sorted_by_score():
    def handler(request):
        return httpx.Response(
            200, json=[{"label": "a", "score": 0.1}, {"label": "b", "score": 0.7}]
        )

    predictions = asyncio.run(make_client(handler).classify("QUJD", MODEL_ID))
    assert [p.label for p in predictions] == ["b", "a"]


def test_repeated_503_retries_with_doubling_delay_then_raises():
    """Four 503s: the initial attempt plus exactly three retries."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"error": "Model is currently loading"})

    sleep = RecordingSleep()
    client = make_client(handler, sleep=sleep)

    with pytest.raises(InferenceUnavailableError):
        asyncio.run(client.classify("QUJD", MODEL_ID))

    assert len(calls) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_503_then_success():
    responses = iter(
        [
            httpx.Response(503, json={"error": "loading"}),
            httpx.Response(200, json=[{"label": "Tomato___healthy", "score": 0.9}]),
        ]
    )

    sleep = RecordingSleep()
    client = make_client(lambda request: next(responses), sleep=sleep)
    predictions = asyncio.run(client.classify("QUJD", MODEL_ID))

    assert predictions[0].label == "Tomato___healthy"
    assert sleep.delays == [1.0]


def test_custom_retry_policy():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    sleep = RecordingSleep()
    client = make_client(
        handler, retry_policy=RetryPolicy(max_retries=2, retry_delay_ms=250), sleep=sleep
    )

    with pytest.raises(InferenceUnavailableError):
        asyncio.run(client.classify("QUJD", MODEL_ID))

    assert len(calls) == 3
    assert sleep.delays == [0.25, 0.5]


@pytest.mark.parametrize("status_code", [400, 401, 404, 500, 502])
def test_other_errors_are_not_retried(status_code):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status_code, text="nope")

    sleep = RecordingSleep()
    client = make_client(handler, sleep=sleep)

    with pytest.raises(InferenceRequestError) as exc_info:
        asyncio.run(client.classify("QUJD", MODEL_ID))

    assert exc_info.value.status_code == status_code
    assert len(calls) == 1
    assert sleep.delays == []


def test_network_error_is_not_retried():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    sleep = RecordingSleep()
    client = make_client(handler, sleep=sleep)

    with pytest.raises(InferenceConnectionError):
        asyncio.run(client.classify("QUJD", MODEL_ID))
    assert sleep.delays == []


def test_network_error_carrying_503_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.RemoteProtocolError("upstream answered 503 Service Unavailable")

    sleep = RecordingSleep()
    client = make_client(handler, sleep=sleep)

    with pytest.raises(InferenceUnavailableError):
        asyncio.run(client.classify("QUJD", MODEL_ID))
    assert len(calls) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_error_payload_raises_request_error():
    client = make_client(lambda request: httpx.Response(200, json={"error": "bad image"}))

    with pytest.raises(InferenceRequestError, match="bad image"):
        asyncio.run(client.classify("QUJD", MODEL_ID))


def test_malformed_prediction_raises_request_error():
    client = make_client(lambda request: httpx.Response(200, json=[{"label": "x"}]))

    with pytest.raises(InferenceRequestError):
        asyncio.run(client.classify("QUJD", MODEL_ID))


def test_invalid_json_raises_request_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(InferenceRequestError):
        asyncio.run(client.classify("QUJD", MODEL_ID))


def test_missing_api_key_raises_configuration_error():
    client = make_client(lambda request: httpx.Response(200, json=[]), api_key="")

    with pytest.raises(InferenceConfigurationError):
        asyncio.run(client.classify("QUJD", MODEL_ID))


def test_strip_data_uri():
    assert strip_data_uri("data:image/jpeg;base64,AAAA") == "AAAA"
    assert strip_data_uri("AAAA") == "AAAA"


def test_retry_policy_delays():
    policy = RetryPolicy()
    assert policy.max_attempts == 4
    assert [policy.delay_seconds(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_retry_policy_rejects_negative_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(retry_delay_ms=-5)


def test_from_settings():
    settings = Settings(
        hugging_face_api_key="hf_abc",
        hugging_face_api_url="https://hf.example/",
        inference_max_retries=5,
        inference_retry_delay_ms=200,
    )
    client = InferenceClient.from_settings(settings)

    assert client.model_url("a/b") == "https://hf.example/models/a/b"
    assert client.retry_policy.max_retries == 5
    assert client.retry_policy.retry_delay_ms == 200
