"""Invoice grouping: partitions a document's pages into invoices.

A single request carries every page, each preceded by its ordinal marker, so the
model can tell which pages belong together. When the answer is unusable the
whole document is treated as one invoice rather than failing it.
"""

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from invpa.extraction import prompts
from invpa.extraction.schema import PageGroup, PageImage
from invpa.inference.base import ContentPart, ImagePart, TextPart, VisionClient
from invpa.shared import metrics
from invpa.shared.config import Settings
from invpa.shared.errors import GroupingError, InvoicePipelineError

logger = logging.getLogger(__name__)

# Sentinel group token used when grouping degrades to a single invoice
SINGLE_INVOICE_GROUP = "single_invoice"

_page_group_adapter: TypeAdapter[PageGroup] = TypeAdapter(PageGroup)


class GroupingResult(BaseModel):
    """Result of a grouping operation.

    Attributes:
        groups: Group token -> page ordinals
        degraded: True if the fallback single group was used
        error: Why grouping degraded, if it did
        unassigned: Page ordinals the answer left out of every group
    """

    groups: PageGroup
    degraded: bool = False
    error: str | None = None
    unassigned: list[int] = Field(default_factory=list)


class InvoiceGrouper:
    """Groups page images into invoices using the vision model."""

    def __init__(self, client: VisionClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def group(self, pages: Sequence[PageImage]) -> GroupingResult:
        """Group the pages of one document by invoice.

        Never raises for model or transport problems: those degrade to a single
        group holding every page in ordinal order.

        Args:
            pages: Page images of one document

        Returns:
            GroupingResult with the page groups
        """
        ordered = sorted(pages, key=lambda page: page.ordinal)
        ordinals = [page.ordinal for page in ordered]

        logger.info(f"Grouping {len(ordered)} pages by invoice...")
        try:
            payload = self.client.complete_json(
                self._build_request(ordered),
                model=self.settings.grouping_model,
                operation="grouping",
            )
            groups = self._validate(payload, ordinals)
        except (InvoicePipelineError, ValidationError) as e:
            metrics.grouping_fallbacks_total.inc()
            logger.warning(f"Page grouping failed ({e}), treating all pages as a single invoice")
            return GroupingResult(
                groups={SINGLE_INVOICE_GROUP: ordinals},
                degraded=True,
                error=str(e),
            )

        assigned = {ordinal for members in groups.values() for ordinal in members}
        unassigned = [ordinal for ordinal in ordinals if ordinal not in assigned]
        if unassigned:
            logger.warning(f"Pages {unassigned} were not assigned to any invoice")

        logger.info(f"Found {len(groups)} invoice(s) in {len(ordered)} pages")
        return GroupingResult(groups=groups, unassigned=unassigned)

    def _build_request(self, pages: Sequence[PageImage]) -> list[ContentPart]:
        parts: list[ContentPart] = [TextPart(text=prompts.build_grouping_prompt())]
        for page in pages:
            parts.append(TextPart(text=prompts.page_marker(page.ordinal)))
            parts.append(ImagePart(data=page.data, detail="low"))
        return parts

    def _validate(self, payload: object, ordinals: list[int]) -> PageGroup:
        """Check that an answer is a non-empty mapping of tokens to known page ordinals.

        Raises:
            ValidationError: If the answer is not a mapping of strings to integer arrays
            GroupingError: If it is empty, has an empty group or unknown ordinals
        """
        groups = _page_group_adapter.validate_python(payload, strict=True)
        if not groups:
            raise GroupingError("Grouping answer contains no groups")

        known = set(ordinals)
        for token, members in groups.items():
            if not members:
                raise GroupingError(f"Group '{token}' has no pages")
            unknown = sorted(set(members) - known)
            if unknown:
                raise GroupingError(
                    f"Group '{token}' references unknown pages", {"pages": unknown}
                )
        return groups
