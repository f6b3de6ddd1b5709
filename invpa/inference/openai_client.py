"""OpenAI-based vision client.

Sends page images and instructions to a multimodal chat model and requests a
JSON-object answer. Used for page grouping, invoice extraction and counterparty
matching alike.

Includes retry logic with exponential backoff for transient API errors. The SDK's
own retries are disabled so that tenacity is the single retry policy.
"""

import base64
import io
import logging
import threading
import time
from typing import Any

import openai
from openai import AzureOpenAI, OpenAI
from PIL import Image, UnidentifiedImageError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invpa.inference.base import ContentPart, ImagePart, TextPart, VisionClient, parse_json_object
from invpa.shared import metrics
from invpa.shared.config import Settings
from invpa.shared.errors import InferenceError, InferenceResponseError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"

# Connection errors include timeouts (APITimeoutError subclasses APIConnectionError)
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def image_data_url(data: bytes) -> str:
    """Encode image bytes as a base64 data URL with a sniffed MIME type.

    Args:
        data: Raw image bytes

    Returns:
        ``data:<mime>;base64,<payload>`` URL
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            mime = Image.MIME.get(image.format or "", DEFAULT_IMAGE_MIME)
    except UnidentifiedImageError:
        logger.debug("Could not identify image format, sending as PNG")
        mime = DEFAULT_IMAGE_MIME
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class OpenAIVisionClient(VisionClient):
    """Vision client for the OpenAI chat completions API.

    Requires an API key (Settings.openai_api_key, falling back to OPENAI_API_KEY).
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI vision client.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None
        self._client_lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        """Check if an API key is configured.

        Returns:
            True if an API key is set
        """
        return bool(self.settings.openai_api_key)

    def complete_json(
        self, parts: list[ContentPart], *, model: str, operation: str
    ) -> dict[str, Any]:
        """Send one multimodal request and decode the JSON answer.

        Args:
            parts: Ordered request parts; order is preserved on the wire
            model: Model (or deployment) name
            operation: Pipeline operation label for logs and metrics

        Returns:
            Decoded JSON object

        Raises:
            InferenceError: If the client is not configured or the call fails
            InferenceResponseError: If the answer is empty or not a JSON object
        """
        if not self.is_available():
            raise InferenceError(f"{self.provider_name} client is not configured (missing API key)")

        messages = [
            {
                "role": "user",
                "content": [self._to_message_part(part) for part in parts],
            }
        ]

        logger.debug(f"Sending {operation} request to {self.provider_name} ({len(parts)} parts)")
        start_time = time.time()
        try:
            response = self._call_with_retry(model, messages)
        except openai.OpenAIError as e:
            metrics.inference_requests_total.labels(operation=operation, status="failed").inc()
            raise InferenceError(
                f"{operation} request to {self.provider_name} failed: {e}", {"model": model}
            ) from e
        finally:
            metrics.inference_request_duration_seconds.labels(operation=operation).observe(
                time.time() - start_time
            )

        try:
            result = parse_json_object(self._first_content(response, operation))
        except InferenceResponseError:
            metrics.inference_requests_total.labels(operation=operation, status="failed").inc()
            raise

        metrics.inference_requests_total.labels(operation=operation, status="success").inc()
        return result

    def _get_client(self) -> OpenAI:
        """Create the SDK client on first use (shared by all worker threads)."""
        with self._client_lock:
            if self._client is None:
                self._client = self._build_client()
            return self._client

    def _build_client(self) -> OpenAI:
        return OpenAI(
            api_key=self.settings.openai_api_key,
            timeout=self.settings.request_timeout_seconds,
            max_retries=0,
        )

    def _call_with_retry(self, model: str, messages: list[dict[str, Any]]) -> Any:
        """Call the chat completions API with retry logic for transient errors.

        Uses exponential backoff with jitter to handle rate limits and temporary
        failures. Non-transient errors (auth, bad request) are raised immediately.

        Args:
            model: Model (or deployment) name
            messages: Chat messages

        Returns:
            Chat completion response

        Raises:
            openai.OpenAIError: After all retry attempts are exhausted
        """
        retrying = Retrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            wait=wait_exponential_jitter(
                initial=self.settings.retry_initial_wait, max=self.settings.retry_max_wait
            ),
            stop=stop_after_attempt(self.settings.retry_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        client = self._get_client()
        return retrying(
            client.chat.completions.create,
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=0,  # Deterministic output
        )

    def _first_content(self, response: Any, operation: str) -> str | None:
        if not response.choices:
            raise InferenceResponseError(
                f"{self.provider_name} returned no choices for {operation}"
            )
        content: str | None = response.choices[0].message.content
        return content

    @staticmethod
    def _to_message_part(part: ContentPart) -> dict[str, Any]:
        if isinstance(part, TextPart):
            return {"type": "text", "text": part.text}
        if isinstance(part, ImagePart):
            return {
                "type": "image_url",
                "image_url": {"url": image_data_url(part.data), "detail": part.detail},
            }
        raise TypeError(f"Unsupported content part: {type(part).__name__}")


class AzureOpenAIVisionClient(OpenAIVisionClient):
    """Vision client for Azure OpenAI deployments.

    Model names in Settings are interpreted as deployment names.
    """

    @property
    def provider_name(self) -> str:
        return "azure"

    def is_available(self) -> bool:
        """Check if both an API key and an Azure endpoint are configured."""
        return bool(self.settings.openai_api_key and self.settings.azure_endpoint)

    def _build_client(self) -> OpenAI:
        return AzureOpenAI(
            api_key=self.settings.openai_api_key,
            azure_endpoint=self.settings.azure_endpoint,
            api_version=self.settings.azure_api_version,
            timeout=self.settings.request_timeout_seconds,
            max_retries=0,
        )
