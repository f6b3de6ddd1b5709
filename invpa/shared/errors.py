"""Exception hierarchy for the invoice pipeline.

Components raise these; the orchestrator converts them into per-document and
per-invoice results so that no single failure aborts a batch.

Exception Hierarchy:
    InvoicePipelineError (base)
    ├── UnsupportedFormatError     fatal for the document
    ├── RenderError                fatal for the document
    ├── InferenceError             transport failure talking to the vision model
    │   └── InferenceResponseError response missing or not valid JSON
    ├── GroupingError              grouping degrades to a single invoice
    ├── ExtractionError            fatal for one invoice group
    ├── MatchInconsistencyError    fatal for one invoice
    ├── MatchingUnavailableError   counterparty is treated as new
    └── PipelineCancelledError     batch cancelled or past its deadline
"""

from typing import Any


class InvoicePipelineError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        details: Additional context (file names, counts, raw responses)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UnsupportedFormatError(InvoicePipelineError):
    """Raised when a document's extension is not one we can render."""

    def __init__(self, extension: str, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported file type: '{extension}'",
            {"extension": extension, "supported": supported},
        )


class RenderError(InvoicePipelineError):
    """Raised when a document cannot be turned into page images."""


class InferenceError(InvoicePipelineError):
    """Raised when a call to the vision model fails at transport level."""


class InferenceResponseError(InferenceError):
    """Raised when the vision model answers with nothing usable or with invalid JSON."""


class GroupingError(InvoicePipelineError):
    """Raised when a grouping answer does not describe the document's pages."""


class ExtractionError(InvoicePipelineError):
    """Raised when an invoice group cannot be extracted."""


class MatchInconsistencyError(InvoicePipelineError):
    """Raised when the matcher reports a match against an id that is not registered."""


class MatchingUnavailableError(InvoicePipelineError):
    """Raised when the matching call fails; the counterparty should be treated as new."""


class PipelineCancelledError(InvoicePipelineError):
    """Raised inside a worker once the batch has been cancelled."""
