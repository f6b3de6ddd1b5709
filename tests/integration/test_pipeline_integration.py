"""Integration tests for the invoice pipeline against the real vision model.

These tests require:
- OPENAI_API_KEY environment variable set
- Internet connection to OpenAI API

Tests are skipped if OPENAI_API_KEY is not available.
Use pytest -v -m integration to run only integration tests.
"""

import os
from decimal import Decimal
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from invpa.matching.registry import CounterpartyRegistry
from invpa.pipeline.orchestrator import DocumentStatus, PipelineOrchestrator
from invpa.shared.config import OperatorIdentity, Settings

# Skip all tests in this module if no API key available
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.getenv("OPENAI_API_KEY"),
        reason="OPENAI_API_KEY not set - skipping integration tests",
    ),
]

INVOICE_LINES = [
    "INVOICE",
    "",
    "Invoice Number: INV-2024-001",
    "Date: 2024-01-15",
    "",
    "From:",
    "XYZ Suppliers GmbH",
    "Hauptstrasse 12, 10115 Berlin, Germany",
    "VAT ID: DE811223344",
    "IBAN: DE89370400440532013000",
    "",
    "Bill To:",
    "Operator Trading Ltd",
    "9 Harbour Road, Dublin, Ireland",
    "VAT ID: IE6388047V",
    "",
    "Office Supplies            10 x 50.00     500.00",
    "Computer Equipment          5 x 100.00    500.00",
    "",
    "Subtotal:                                1000.00",
    "VAT (19%):                                190.00",
    "TOTAL:                                   1190.00",
]


def draw_invoice(path: Path) -> Path:
    """Render a plain one-page invoice as a PNG scan."""
    image = Image.new("RGB", (1240, 1754), color="white")
    draw = ImageDraw.Draw(image)
    for row, line in enumerate(INVOICE_LINES):
        draw.text((100, 100 + row * 60), line, fill="black", font_size=32)
    image.save(path, format="PNG")
    return path


@pytest.fixture
def settings() -> Settings:
    """Create settings for integration tests."""
    return Settings(
        _env_file=None,
        my_company=OperatorIdentity(
            name="Operator Trading Ltd",
            vat="IE6388047V",
            country="Ireland",
            address="9 Harbour Road, Dublin",
        ),
    )


def test_extract_invoice_from_scan(settings: Settings, tmp_path: Path) -> None:
    """Test the full pipeline on a generated invoice image."""
    document = draw_invoice(tmp_path / "invoice.png")

    batch = PipelineOrchestrator.from_settings(settings).run_batch([document])

    (result,) = batch.documents
    assert result.status is DocumentStatus.SUCCESS, result.errors
    (invoice,) = result.invoices
    assert "INV-2024-001" in invoice.number
    assert invoice.total_amount == Decimal("1190.00")
    # The operator is context only and must not be picked as the counterparty
    assert "Operator" not in invoice.counterparty.name
    assert invoice.counterparty.vat.replace(" ", "") == "DE811223344"


def test_same_supplier_deduplicated_across_documents(settings: Settings, tmp_path: Path) -> None:
    """Test that two scans from one supplier share one registry entry."""
    documents = [draw_invoice(tmp_path / f"invoice-{i}.png") for i in range(2)]
    registry = CounterpartyRegistry()

    batch = PipelineOrchestrator.from_settings(settings).run_batch(documents, registry=registry)

    assert batch.succeeded == 2
    assert len(registry) == 1
