"""Abstract base class for vision inference clients.

Every external model call the pipeline makes (page grouping, invoice extraction,
counterparty matching) goes through a VisionClient. Enables switching between
providers (OpenAI, Azure OpenAI) while the pipeline components stay unchanged.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from invpa.shared.config import Settings
from invpa.shared.errors import InferenceResponseError


class TextPart(BaseModel):
    """A text segment of a multimodal request."""

    model_config = ConfigDict(frozen=True)

    text: str


class ImagePart(BaseModel):
    """An image segment of a multimodal request.

    Attributes:
        data: Raw image bytes (PNG, JPEG, ...)
        detail: Resolution hint for the model; "low" is cheaper and faster
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., repr=False)
    detail: Literal["low", "high", "auto"] = "auto"


ContentPart = TextPart | ImagePart


class VisionClient(ABC):
    """Abstract base class for multimodal inference clients.

    Implementations send an ordered list of text and image parts as one user
    message and return the model's answer decoded as a JSON object.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize client with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
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
            InferenceError: On transport failure after retries
            InferenceResponseError: If the answer is empty or not a JSON object
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this client is configured (credentials, endpoint).

        Returns:
            True if the client can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'openai', 'azure')
        """
        pass


def parse_json_object(content: str | None) -> dict[str, Any]:
    """Extract and parse a JSON object from a model answer.

    Handles common LLM quirks like markdown code blocks.

    Args:
        content: Raw answer text

    Returns:
        Parsed JSON object

    Raises:
        InferenceResponseError: If the answer is empty or holds no JSON object
    """
    if content is None or not content.strip():
        raise InferenceResponseError("Model returned an empty answer")

    # Try to extract JSON from markdown code block
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", content)
    text = fenced.group(1).strip() if fenced else content.strip()

    try:
        result = json.loads(text)
    except json.JSONDecodeError as e:
        raise InferenceResponseError(
            f"Model answer is not valid JSON: {e}", {"response": content[:500]}
        ) from e

    if not isinstance(result, dict):
        raise InferenceResponseError(
            "Model answer is not a JSON object", {"response": content[:500]}
        )
    return result
