"""Unit tests for invoice data models."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from invpa.extraction.schema import Counterparty, DocumentType, Invoice, PageImage
from tests.unit.fakes import make_counterparty_payload, make_invoice_payload


def test_invoice_from_wire_payload() -> None:
    """Test Invoice parsing with the wire field names."""
    invoice = Invoice.model_validate(
        make_invoice_payload(type=2, total_amount=1500.75, tax_amount=75.25)
    )

    assert invoice.document_type is DocumentType.RECEIPT
    assert invoice.number == "INV-1"
    assert invoice.date == date(2024, 1, 2)
    assert invoice.total_amount == Decimal("1500.75")
    assert invoice.tax_amount == Decimal("75.25")
    assert invoice.counterparty.name == "Acme Trading LLC"
    assert invoice.counterparty.id is None


def test_invoice_dump_uses_wire_names() -> None:
    """Test that serialization by alias restores the 'type' field name."""
    invoice = Invoice.model_validate(make_invoice_payload())

    dumped = invoice.model_dump(mode="json", by_alias=True)

    assert dumped["type"] == 1
    assert dumped["date"] == "2024-01-02"
    assert "document_type" not in dumped


def test_invoice_missing_tax_defaults_to_zero() -> None:
    """Test that a null or absent tax amount means no tax."""
    payload = make_invoice_payload(tax_amount=None)

    assert Invoice.model_validate(payload).tax_amount == Decimal("0")


@pytest.mark.parametrize(
    "overrides",
    [
        {"type": 3},
        {"date": "02/01/2024"},
        {"tax_amount": -5},
        {"total_amount": "a lot"},
        {"counterparty": {"name": "Acme"}},
    ],
)
def test_invoice_rejects_invalid_payloads(overrides: dict[str, object]) -> None:
    """Test that payloads not shaped like an invoice fail validation."""
    with pytest.raises(ValidationError):
        Invoice.model_validate(make_invoice_payload(**overrides))


def test_counterparty_null_vat_becomes_empty() -> None:
    """Test that receipts without a VAT number still parse."""
    counterparty = Counterparty.model_validate(make_counterparty_payload(vat=None))

    assert counterparty.vat == ""
    assert counterparty.iban is None


def test_counterparty_missing_vat_becomes_empty() -> None:
    payload = make_counterparty_payload()
    del payload["vat"]

    assert Counterparty.model_validate(payload).vat == ""


def test_page_image_is_immutable() -> None:
    """Test that page ordinals cannot be changed after rendering."""
    page = PageImage(ordinal=0, data=b"png")

    with pytest.raises(ValidationError):
        page.ordinal = 3  # type: ignore[misc]


def test_page_image_rejects_negative_ordinal() -> None:
    with pytest.raises(ValidationError):
        PageImage(ordinal=-1, data=b"png")
