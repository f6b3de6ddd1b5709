"""Shared configuration management for the invoice pipeline.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/

Settings are resolved from (highest priority first): constructor arguments,
environment variables, a ``.env`` file and a JSON config file (``config.json``
by default, the same layout the standalone tools have always used).
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class OperatorIdentity(BaseModel):
    """The operator's own company.

    Only ever passed to the extraction model as exclusion context so that the
    operator is never reported as the counterparty of its own invoices.
    """

    name: str = ""
    vat: str = ""
    country: str = ""
    address: str = ""


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'INVPA_'.
    Example: INVPA_LOG_LEVEL=debug, INVPA_MY_COMPANY__NAME="Acme Ltd"
    """

    model_config = SettingsConfigDict(
        env_prefix="INVPA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        json_file="config.json",
        json_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    service_name: str = Field(
        default="invpa",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Inference provider configuration
    inference_provider: Literal["openai", "azure"] = Field(
        default="openai",
        description="Vision inference provider: openai (OpenAI API), azure (Azure OpenAI)",
    )
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "INVPA_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API credential for the inference provider",
    )
    grouping_model: str = Field(
        default="gpt-4o",
        description="Model (or Azure deployment) used to group pages into invoices",
    )
    extraction_model: str = Field(
        default="gpt-4o",
        description="Model (or Azure deployment) used for detailed invoice extraction",
    )
    matching_model: str = Field(
        default="gpt-4o",
        description="Model (or Azure deployment) used for counterparty matching",
    )
    azure_endpoint: str = Field(
        default="",
        description="Azure OpenAI endpoint (https://<resource>.openai.azure.com)",
    )
    azure_api_version: str = Field(
        default="2024-10-21",
        description="Azure OpenAI API version",
    )

    # Transport limits
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Per-request timeout for inference calls",
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum attempts per inference call (transient errors only)",
    )
    retry_initial_wait: float = Field(
        default=1.0,
        ge=0,
        description="Initial backoff in seconds between inference retries",
    )
    retry_max_wait: float = Field(
        default=30.0,
        ge=0,
        description="Maximum backoff in seconds between inference retries",
    )

    # Rendering
    render_dpi: int = Field(
        default=200,
        gt=0,
        description="Resolution used when rasterizing PDF pages",
    )
    render_timeout_seconds: int = Field(
        default=300,
        gt=0,
        description="Timeout for the poppler rasterizer per document",
    )
    poppler_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "poppler_path", "poppler_path_windows", "INVPA_POPPLER_PATH"
        ),
        description="Directory holding poppler binaries when they are not on PATH",
    )

    # Batch processing
    max_workers: int = Field(
        default=8,
        ge=1,
        description="Maximum number of documents processed concurrently",
    )
    batch_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Overall deadline for a batch run (None = no deadline)",
    )

    # Operator identity
    my_company: OperatorIdentity = Field(
        default_factory=OperatorIdentity,
        description="The operator's own company, excluded from counterparty extraction",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def get_settings(config_file: Path | None = None) -> Settings:
    """Factory function to get settings instance.

    Args:
        config_file: Optional JSON config file overriding the default ``config.json``

    Returns:
        Configured Settings instance

    Raises:
        FileNotFoundError: If an explicit config file does not exist
    """
    if config_file is None:
        return Settings()

    if not config_file.is_file():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    class FileSettings(Settings):
        model_config = SettingsConfigDict(json_file=config_file)

    return FileSettings()
