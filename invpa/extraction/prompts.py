"""Prompt builders for the vision model calls."""

from invpa.shared.config import OperatorIdentity


def page_marker(ordinal: int) -> str:
    """Text marker sent immediately before each page image in a grouping request."""
    return f"This is Page {ordinal}."


def build_grouping_prompt() -> str:
    return """You are a document sorting assistant. I will provide a series of pages, \
each preceded by a text marker like "This is Page X.".
Your task is to decide which pages belong to the same invoice. For every invoice you \
find, choose an identifier (for example built from its invoice number and date).
Group the page numbers (the 'X' from the text marker) by this identifier.
Return ONLY a valid JSON object where keys are the invoice identifiers and values are \
arrays of the corresponding page numbers (as integers). Every page must appear exactly once.

Example response for 5 pages belonging to 2 invoices:
{
  "INV-2023-01_2023-01-15": [0, 1, 2],
  "PO-5567_2023-01-16": [3, 4]
}"""


def build_extraction_prompt(operator: OperatorIdentity) -> str:
    """Build the detailed extraction instruction.

    Args:
        operator: The operator's own company, passed as exclusion context

    Returns:
        Prompt text
    """
    return f"""You are an expert accountant. The following images are pages from a SINGLE \
invoice. Analyze them together to extract information into a single JSON object.

**Important Rules:**
1.  **Find the overall total:** Look for the final, grand total amount across all pages, \
not a per-page subtotal. This is the most important value.
2.  **Summarize the purpose:** For the 'purpose' field, provide a very short, 2-3 word \
summary (e.g., "groceries", "mobile services", "office furniture").
3.  **Extract invoice details:**
    *   "type": Use 1 for a payment order (invoice/bill) or 2 for a receipt. This is an integer.
    *   "number": The invoice or receipt number.
    *   "date": The invoice date in YYYY-MM-DD format.
    *   "total_amount": The final, total amount as a number.
    *   "tax_amount": The total tax amount (e.g., VAT). If not present, use 0.
4.  **Identify the Counterparty (the *other* company, not ours):**
    *   **Required fields:** "name", "vat", "country", "address".
    *   **Optional fields:** Only if present in the document, also extract "swift", \
"iban", "phone", "fax", "email", "website".
5.  **My company's details are for context only.** Do NOT extract them as the \
counterparty. My company is:
    *   Name: {operator.name}, VAT: {operator.vat}, Country: {operator.country}, \
Address: {operator.address}
6.  **Output format:** Respond ONLY with a single, valid JSON object.

Example JSON:
{{
  "type": 1,
  "number": "INV-12345",
  "date": "2023-10-27",
  "total_amount": 1500.75,
  "tax_amount": 75.25,
  "purpose": "software license",
  "counterparty": {{
    "name": "TechnoSoft LLC",
    "vat": "7701234567",
    "country": "Germany",
    "address": "1 Programmers St, Berlin",
    "swift": "DEUTDEFF",
    "iban": "DE89370400440532013000",
    "email": "contact@technosoft.example"
  }}
}}"""


def build_matching_prompt() -> str:
    return """You are a data deduplication assistant. You will receive a JSON array of \
EXISTING counterparties (each with an "id") and one NEW counterparty extracted from an invoice.
Decide whether the NEW counterparty is the same legal entity as one of the EXISTING ones.

**Rules:**
1.  Identifier-like fields are strong signals: an equal VAT number, IBAN, website or phone \
number almost always means the same company.
2.  Differences in the name alone (abbreviations, transliteration, legal-form suffixes such \
as "LLC", "Ltd", "GmbH", "OOO") must NOT prevent a match.
3.  If there is a match, answer with the "id" of the EXISTING counterparty exactly as given. \
Never invent an id and never answer with a name.
4.  If nothing matches, set "match_found" to false and "matched_id" to an empty string.

Respond ONLY with a JSON object of the form:
{"match_found": true, "matched_id": "<id of the existing counterparty>"}"""
