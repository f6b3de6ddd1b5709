"""Counterparty identity resolution against the registry.

The vision model is asked whether a newly extracted counterparty is the same
legal entity as one already registered; on a match the registered record is
supplemented with contact fields it was missing.
"""

import json
import logging
from collections.abc import Sequence

from pydantic import BaseModel, ValidationError

from invpa.extraction import prompts
from invpa.extraction.schema import MERGEABLE_FIELDS, Counterparty
from invpa.inference.base import ContentPart, TextPart, VisionClient
from invpa.shared.config import Settings
from invpa.shared.errors import InferenceError, MatchingUnavailableError, MatchInconsistencyError

logger = logging.getLogger(__name__)


class MatchDecision(BaseModel):
    """Answer of the matching call."""

    match_found: bool
    matched_id: str | None = None


def merge_counterparty(existing: Counterparty, new: Counterparty) -> Counterparty:
    """Fill empty contact fields of a registered counterparty from a new sighting.

    name, country, address and id of the existing record always win; every
    other field is taken from ``new`` only where the existing value is empty.

    Args:
        existing: Registered counterparty
        new: Newly extracted counterparty

    Returns:
        Merged counterparty (``existing`` is not modified)
    """
    updates = {
        field: getattr(new, field)
        for field in MERGEABLE_FIELDS
        if not getattr(existing, field)
    }
    return existing.model_copy(update=updates) if updates else existing


class CounterpartyMatcher:
    """Matches new counterparties against registered ones."""

    def __init__(self, client: VisionClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def find_match(
        self, registered: Sequence[Counterparty], candidate: Counterparty
    ) -> Counterparty | None:
        """Find the registered counterparty the candidate refers to.

        Args:
            registered: Current registry contents (every entry has an id)
            candidate: Newly extracted counterparty

        Returns:
            The matched counterparty merged with the candidate, or None

        Raises:
            MatchingUnavailableError: If the matching call fails or its answer is unusable
            MatchInconsistencyError: If the answer names an id that is not registered
        """
        if not registered:
            return None

        try:
            payload = self.client.complete_json(
                self._build_request(registered, candidate),
                model=self.settings.matching_model,
                operation="matching",
            )
            decision = MatchDecision.model_validate(payload)
        except InferenceError as e:
            raise MatchingUnavailableError(f"Counterparty matching failed: {e}") from e
        except ValidationError as e:
            raise MatchingUnavailableError(
                f"Failed to parse matching response: {e.error_count()} invalid field(s)"
            ) from e

        if not decision.match_found:
            logger.debug(f"No registered counterparty matches '{candidate.name}'")
            return None

        by_id = {counterparty.id: counterparty for counterparty in registered}
        existing = by_id.get(decision.matched_id)
        if existing is None:
            raise MatchInconsistencyError(
                "Matching answer refers to an unknown counterparty id",
                {"matched_id": decision.matched_id, "candidate": candidate.name},
            )

        logger.info(f"Counterparty '{candidate.name}' matched registered '{existing.name}'")
        return merge_counterparty(existing, candidate)

    def _build_request(
        self, registered: Sequence[Counterparty], candidate: Counterparty
    ) -> list[ContentPart]:
        existing_json = json.dumps(
            [counterparty.model_dump(exclude_none=True) for counterparty in registered],
            ensure_ascii=False,
            indent=2,
        )
        candidate_json = json.dumps(
            candidate.model_dump(exclude={"id"}, exclude_none=True), ensure_ascii=False, indent=2
        )
        return [
            TextPart(text=prompts.build_matching_prompt()),
            TextPart(text=f"EXISTING counterparties:\n{existing_json}"),
            TextPart(text=f"NEW counterparty:\n{candidate_json}"),
        ]
