"""Unit tests for counterparty merging and matching.

Tests cover:
- Merge rules (idempotence, gap filling, authoritative fields)
- Matcher request content and answer handling
- Failure modes (unavailable, inconsistent answers)
"""

import json

import pytest

from invpa.extraction.schema import MERGEABLE_FIELDS, Counterparty
from invpa.matching.matcher import CounterpartyMatcher, merge_counterparty
from invpa.shared.config import Settings
from invpa.shared.errors import (
    InferenceError,
    InferenceResponseError,
    MatchingUnavailableError,
    MatchInconsistencyError,
)
from tests.unit.fakes import FakeVisionClient, make_counterparty_payload


def make_counterparty(**overrides: object) -> Counterparty:
    return Counterparty.model_validate(make_counterparty_payload(**overrides))


@pytest.fixture
def registered() -> list[Counterparty]:
    """Two registered counterparties with ids."""
    return [
        make_counterparty(id="cp-1", iban="DE89370400440532013000"),
        make_counterparty(
            id="cp-2", name="Northwind Ltd", vat="GB111222333", country="United Kingdom"
        ),
    ]


class TestMergeCounterparty:
    def test_merge_is_idempotent(self) -> None:
        existing = make_counterparty(id="cp-1", email="billing@acme.example")

        assert merge_counterparty(existing, existing) == existing

    @pytest.mark.parametrize("field", MERGEABLE_FIELDS)
    def test_empty_fields_are_filled(self, field: str) -> None:
        existing = make_counterparty(id="cp-1", **({field: ""} if field == "vat" else {}))
        new = make_counterparty(**{field: "NEW-VALUE"})

        merged = merge_counterparty(existing, new)

        assert getattr(merged, field) == "NEW-VALUE"

    @pytest.mark.parametrize("field", MERGEABLE_FIELDS)
    def test_present_fields_are_kept(self, field: str) -> None:
        existing = make_counterparty(id="cp-1", **{field: "OLD-VALUE"})
        new = make_counterparty(**{field: "NEW-VALUE"})

        merged = merge_counterparty(existing, new)

        assert getattr(merged, field) == "OLD-VALUE"

    def test_identity_fields_never_change(self) -> None:
        existing = make_counterparty(id="cp-1")
        new = make_counterparty(
            name="ACME TRADING", country="Deutschland", address="Main St. 1", phone="+49 30 1"
        )

        merged = merge_counterparty(existing, new)

        assert merged.id == "cp-1"
        assert (merged.name, merged.country, merged.address) == (
            existing.name,
            existing.country,
            existing.address,
        )
        assert merged.phone == "+49 30 1"

    def test_existing_record_not_modified(self) -> None:
        existing = make_counterparty(id="cp-1")

        merge_counterparty(existing, make_counterparty(website="acme.example"))

        assert existing.website is None


class TestCounterpartyMatcher:
    def test_empty_registry_skips_the_call(self, settings: Settings) -> None:
        client = FakeVisionClient(settings)

        result = CounterpartyMatcher(client, settings).find_match([], make_counterparty())

        assert result is None
        assert client.calls == []

    def test_match_returns_merged_counterparty(
        self, settings: Settings, registered: list[Counterparty]
    ) -> None:
        client = FakeVisionClient(settings, matching={"match_found": True, "matched_id": "cp-2"})
        candidate = make_counterparty(
            name="Northwind Limited", vat="GB111222333", email="ap@northwind.example"
        )

        result = CounterpartyMatcher(client, settings).find_match(registered, candidate)

        assert result is not None
        assert result.id == "cp-2"
        assert result.name == "Northwind Ltd"
        assert result.email == "ap@northwind.example"

    @pytest.mark.parametrize(
        "answer",
        [{"match_found": False, "matched_id": ""}, {"match_found": False}],
    )
    def test_no_match(
        self, settings: Settings, registered: list[Counterparty], answer: dict[str, object]
    ) -> None:
        client = FakeVisionClient(settings, matching=answer)

        result = CounterpartyMatcher(client, settings).find_match(
            registered, make_counterparty(name="Globex", vat="FR000")
        )

        assert result is None

    @pytest.mark.parametrize("matched_id", ["cp-404", "Acme Trading LLC", None])
    def test_unknown_id_is_inconsistent(
        self, settings: Settings, registered: list[Counterparty], matched_id: str | None
    ) -> None:
        client = FakeVisionClient(
            settings, matching={"match_found": True, "matched_id": matched_id}
        )

        with pytest.raises(MatchInconsistencyError):
            CounterpartyMatcher(client, settings).find_match(registered, make_counterparty())

    @pytest.mark.parametrize(
        "answer",
        [
            InferenceError("connection reset"),
            InferenceResponseError("Model answer is not valid JSON"),
            {"matched_id": "cp-1"},
            {"match_found": "maybe", "matched_id": "cp-1"},
        ],
    )
    def test_unusable_answer_is_unavailable(
        self, settings: Settings, registered: list[Counterparty], answer: object
    ) -> None:
        client = FakeVisionClient(settings, matching=answer)  # type: ignore[arg-type]

        with pytest.raises(MatchingUnavailableError):
            CounterpartyMatcher(client, settings).find_match(registered, make_counterparty())

    def test_request_lists_registered_and_candidate(
        self, settings: Settings, registered: list[Counterparty]
    ) -> None:
        client = FakeVisionClient(settings, matching={"match_found": False})
        candidate = make_counterparty(name="Globex", vat="FR000", phone="+33 1")

        CounterpartyMatcher(client, settings).find_match(registered, candidate)

        (parts,) = client.calls_for("matching")
        assert client.calls[0][1] == settings.matching_model
        existing = json.loads(parts[1].text.split("\n", 1)[1])  # type: ignore[union-attr]
        new = json.loads(parts[2].text.split("\n", 1)[1])  # type: ignore[union-attr]
        assert [item["id"] for item in existing] == ["cp-1", "cp-2"]
        assert new == {
            "name": "Globex",
            "vat": "FR000",
            "country": "Germany",
            "address": "1 Main Street, Berlin",
            "phone": "+33 1",
        }
