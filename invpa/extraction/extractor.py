"""Detailed invoice extraction from a selected set of page images."""

import logging
from collections.abc import Sequence

from pydantic import ValidationError

from invpa.extraction import prompts
from invpa.extraction.schema import Invoice, PageImage
from invpa.inference.base import ContentPart, ImagePart, TextPart, VisionClient
from invpa.shared.config import OperatorIdentity, Settings
from invpa.shared.errors import ExtractionError, InferenceError

logger = logging.getLogger(__name__)


class InvoiceExtractor:
    """Extracts one Invoice from the pages of a single invoice group."""

    def __init__(self, client: VisionClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def extract(self, pages: Sequence[PageImage], operator: OperatorIdentity) -> Invoice:
        """Extract structured invoice data from page images.

        All pages are sent in one request and analysed as a single invoice.

        Args:
            pages: Selected page images in ordinal order
            operator: The operator's own company (exclusion context only)

        Returns:
            Extracted invoice; its counterparty carries no registry id

        Raises:
            ExtractionError: If the call fails or the answer is not an invoice
        """
        if not pages:
            raise ExtractionError("No pages selected for extraction")

        parts: list[ContentPart] = [TextPart(text=prompts.build_extraction_prompt(operator))]
        parts.extend(ImagePart(data=page.data, detail="high") for page in pages)

        try:
            payload = self.client.complete_json(
                parts, model=self.settings.extraction_model, operation="extraction"
            )
        except InferenceError as e:
            raise ExtractionError(f"Detailed analysis request failed: {e}") from e

        try:
            invoice = Invoice.model_validate(payload)
        except ValidationError as e:
            raise ExtractionError(
                f"Failed to parse detailed analysis response: {e.error_count()} invalid field(s)",
                {"errors": e.errors(include_url=False, include_input=False)},
            ) from e

        # Registry ids are assigned by us, never by the model
        if invoice.counterparty.id is not None:
            invoice = invoice.model_copy(
                update={"counterparty": invoice.counterparty.model_copy(update={"id": None})}
            )
        return invoice
