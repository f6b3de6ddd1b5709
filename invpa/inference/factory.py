"""Vision client selection.

``Settings.inference_provider`` names the backend; this module maps that name
to a VisionClient subclass and builds it. OpenAI and Azure OpenAI are known out
of the box, and tests or deployments can add their own clients under new names.
"""

import logging

from invpa.inference.base import VisionClient
from invpa.inference.openai_client import AzureOpenAIVisionClient, OpenAIVisionClient
from invpa.shared.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Provider name -> VisionClient subclass lookup shared by the whole process."""

    _providers: dict[str, type[VisionClient]] = {
        "openai": OpenAIVisionClient,
        "azure": AzureOpenAIVisionClient,
    }

    @classmethod
    def register(cls, name: str, client_class: type[VisionClient]) -> None:
        """Make ``client_class`` selectable as ``inference_provider=name``.

        An existing name is replaced.
        """
        cls._providers[name] = client_class
        logger.info(f"Registered vision provider: {name}")

    @classmethod
    def get_client_class(cls, name: str) -> type[VisionClient]:
        """Look up the client class for a provider name.

        Raises:
            ValueError: If no client is registered under ``name``
        """
        try:
            return cls._providers[name]
        except KeyError:
            available = ", ".join(sorted(cls._providers))
            raise ValueError(
                f"Unknown vision provider: '{name}'. Available providers: {available}"
            ) from None

    @classmethod
    def list_providers(cls) -> list[str]:
        return sorted(cls._providers)


def create_vision_client(settings: Settings) -> VisionClient:
    """Build the vision client named by ``settings.inference_provider``.

    A client missing its credentials is still returned so the caller decides
    whether to abort; only a warning is logged here.

    Raises:
        ValueError: If the provider name is not registered
    """
    provider_name = settings.inference_provider
    client = ProviderRegistry.get_client_class(provider_name)(settings)

    if not client.is_available():
        logger.warning(
            f"Vision provider '{provider_name}' is not fully configured, "
            f"requests will fail until its API key and endpoint are set"
        )

    logger.info(f"Using vision provider: {provider_name} ({client.provider_name})")
    return client
