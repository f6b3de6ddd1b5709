"""Invoice data models for structured extraction.

Field names on the wire follow the JSON contract agreed with the vision model:
``type``, ``number``, ``date``, ``total_amount``, ``tax_amount``, ``purpose`` and
a nested ``counterparty`` object.
"""

import datetime
from decimal import Decimal
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Contact fields that may be filled in after a counterparty has been registered.
# name, country and address are never part of this list.
MERGEABLE_FIELDS: tuple[str, ...] = (
    "vat",
    "swift",
    "iban",
    "phone",
    "fax",
    "email",
    "website",
)


class DocumentType(IntEnum):
    """Kind of financial document."""

    PAYMENT_ORDER = 1
    RECEIPT = 2


class Counterparty(BaseModel):
    """The non-operator party of an invoice.

    ``id`` is only present once the counterparty has been registered.
    """

    id: str | None = Field(None, description="Registry identifier, assigned on registration")
    name: str = Field(..., description="Company name")
    vat: str = Field("", description="VAT / tax identification number, empty if none")
    country: str = Field(..., description="Country")
    address: str = Field(..., description="Postal address")

    # Optional contact channels
    swift: str | None = Field(None, description="SWIFT/BIC code")
    iban: str | None = Field(None, description="IBAN")
    phone: str | None = Field(None, description="Phone number")
    fax: str | None = Field(None, description="Fax number")
    email: str | None = Field(None, description="Email address")
    website: str | None = Field(None, description="Website")

    @field_validator("vat", mode="before")
    @classmethod
    def _vat_none_to_empty(cls, value: object) -> object:
        # Receipts frequently carry no VAT number; null and missing both mean empty
        return "" if value is None else value


class Invoice(BaseModel):
    """Structured data extracted from one invoice (one page group)."""

    model_config = ConfigDict(populate_by_name=True)

    document_type: DocumentType = Field(
        ..., alias="type", description="1 = payment order / invoice, 2 = receipt"
    )
    number: str = Field(..., description="Invoice or receipt number")
    date: datetime.date = Field(..., description="Invoice date")
    total_amount: Decimal = Field(..., description="Grand total across all pages")
    tax_amount: Decimal = Field(Decimal("0"), ge=0, description="Total tax amount")
    purpose: str = Field("", description="Two or three word summary of the purchase")
    counterparty: Counterparty

    @field_validator("tax_amount", mode="before")
    @classmethod
    def _tax_none_to_zero(cls, value: object) -> object:
        return Decimal("0") if value is None else value


class PageImage(BaseModel):
    """A single rendered page and its zero-based position in the source document."""

    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(..., ge=0)
    data: bytes = Field(..., repr=False)


# Opaque group token -> page ordinals. The token carries no meaning beyond
# grouping and must never be parsed for invoice numbers or dates.
PageGroup = dict[str, list[int]]
