"""
Hugging Face Inference API client for Plant Doctor.

This module posts base64-encoded images to hosted image-classification
models and returns their predictions. Hosted models answer 503 while they
are loading, so those responses are retried with exponential backoff.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, List, Optional

import httpx
from pydantic import ValidationError

from plant_doctor.core.config import Settings, get_settings
from plant_doctor.models.prediction import Prediction

logger = logging.getLogger(__name__)

_DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")
SERVICE_UNAVAILABLE = 503


class InferenceError(Exception):
    """Base exception for inference API errors."""

    pass


class InferenceConfigurationError(InferenceError):
    """Raised when the client is missing its API key."""

    pass


class InferenceUnavailableError(InferenceError):
    """
    Raised when the model stays unavailable (503) after all retries.

    The caller may retry the whole request later.
    """

    pass


class InferenceRequestError(InferenceError):
    """Raised for non-retryable responses (4xx, non-503 5xx, bad payloads)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InferenceConnectionError(InferenceError):
    """Raised when the API cannot be reached."""

    pass


class RetryPolicy:
    """
    Bounded retry schedule for transient upstream failures.

    Retry n (1-based) waits retry_delay_ms * 2**(n-1): 1s, 2s, 4s with the
    defaults.
    """

    def __init__(self, max_retries: int = 3, retry_delay_ms: int = 1000):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_seconds(self, retry_number: int) -> float:
        return self.retry_delay_ms * (2 ** (retry_number - 1)) / 1000.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.inference_max_retries,
            retry_delay_ms=settings.inference_retry_delay_ms,
        )


def strip_data_uri(image_base64: str) -> str:
    """Remove a 'data:image/...;base64,' prefix if present."""
    return _DATA_URI_PREFIX.sub("", image_base64)


def _parse_predictions(payload: Any, model_id: str) -> List[Prediction]:
    # Image classification answers [{"label": ..., "score": ...}, ...]
    if isinstance(payload, dict) and "error" in payload:
        raise InferenceRequestError(f"Model {model_id} returned an error: {payload['error']}")
    if not isinstance(payload, list):
        raise InferenceRequestError(
            f"Unexpected response from model {model_id}: expected a list of predictions"
        )
    try:
        predictions = [Prediction(label=item["label"], score=item["score"]) for item in payload]
    except (KeyError, TypeError, ValidationError) as e:
        raise InferenceRequestError(
            f"Malformed prediction in response from model {model_id}: {e}"
        ) from e
    return sorted(predictions, key=lambda p: p.score, reverse=True)


class InferenceClient:
    """
    Client for the Hugging Face Inference API.

    Each classify() call opens its own httpx.AsyncClient unless one is
    injected, so the client is safe to use from separate event loops
    (e.g. asyncio.run in Celery workers).
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api-inference.huggingface.co",
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._http_client = http_client
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "InferenceClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.hugging_face_api_key,
            api_url=settings.hugging_face_api_url,
            retry_policy=RetryPolicy.from_settings(settings),
            timeout=settings.inference_timeout,
        )

    def model_url(self, model_id: str) -> str:
        return f"{self._api_url}/models/{model_id}"

    async def classify(self, image_base64: str, model_id: str) -> List[Prediction]:
        """
        Classify an image with the given model.

        Args:
            image_base64: Base64 image, with or without a data-URI prefix
            model_id: Hugging Face model ID (e.g., 'google/vit-base-patch16-224')

        Returns:
            Predictions ordered by descending score

        Raises:
            InferenceConfigurationError: If no API key is configured
            InferenceUnavailableError: If the model is still unavailable after retries
            InferenceRequestError: For any other non-success response
            InferenceConnectionError: For network failures
        """
        if not self._api_key:
            raise InferenceConfigurationError(
                "Hugging Face API key is required. "
                "Set HUGGING_FACE_API_KEY in environment variables."
            )

        logger.info(f"Classifying image with model {model_id}")
        payload = {"inputs": strip_data_uri(image_base64)}

        if self._http_client is not None:
            return await self._classify_with_retries(self._http_client, payload, model_id)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._classify_with_retries(client, payload, model_id)

    async def _classify_with_retries(
        self, client: httpx.AsyncClient, payload: dict, model_id: str
    ) -> List[Prediction]:
        policy = self.retry_policy
        url = self.model_url(model_id)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        last_error = ""

        for attempt in range(policy.max_attempts):
            if attempt > 0:
                delay = policy.delay_seconds(attempt)
                logger.warning(
                    f"Model {model_id} unavailable ({last_error}), "
                    f"retrying ({attempt}/{policy.max_retries}) after {delay * 1000:.0f}ms"
                )
                await self._sleep(delay)

            try:
                response = await client.post(url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                if "503" in str(e):
                    last_error = f"network error: {e}"
                    continue
                raise InferenceConnectionError(
                    f"Failed to reach inference API for model {model_id}: {e}"
                ) from e

            if response.status_code == SERVICE_UNAVAILABLE:
                last_error = f"HTTP 503: {response.text[:200]}"
                continue

            if response.is_error:
                raise InferenceRequestError(
                    f"Hugging Face API error ({response.status_code}) "
                    f"for model {model_id}: {response.text[:500]}",
                    status_code=response.status_code,
                )

            try:
                body = response.json()
            except ValueError as e:
                raise InferenceRequestError(
                    f"Invalid JSON from model {model_id}: {e}",
                    status_code=response.status_code,
                ) from e

            return _parse_predictions(body, model_id)

        raise InferenceUnavailableError(
            f"Model {model_id} still unavailable after {policy.max_retries} retries "
            f"({last_error})"
        )
