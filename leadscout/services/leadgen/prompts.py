"""Message builders for the Maps-grounded lead conversation."""

from enum import Enum

_OUTPUT_CONTRACT = """\
CRITICAL OUTPUT RULES:
- Return ONLY a raw JSON array.
- Do not include markdown formatting (like ```json).
- Do not include any introductory or concluding text.
- Ensure the JSON is valid.

The JSON structure must be exactly:
[
  {
    "name": "String",
    "phone": "String",
    "website": "String",
    "address": "String",
    "rating": Number or null,
    "reviewCount": Number or null,
    "description": "String",
    "email": "String or null"
  }
]"""

_INITIAL_TEMPLATE = """\
Find {count} distinct local businesses matching the search term "{term}" in or near "{location}".
Use Google Maps to verify the details.

I act as a CRM database importer. I need you to extract precise details for each business found.

REQUIRED FIELDS FOR EACH BUSINESS:
1. Business Name (exact name from Maps)
2. Phone Number (format as (XXX) XXX-XXXX if possible)
3. Website URL (full valid URL, or empty string if none)
4. Full Street Address (including Zip Code)
5. Rating (numeric value, e.g., 4.5, or null)
6. Review Count (numeric value, e.g., 120, or null)
7. Description (a short 10-15 word summary of what they do)
8. Public contact email if one is listed (or null)

{contract}
"""

_CONTINUATION_TEMPLATE = """\
Find {count} MORE distinct businesses matching "{term}" in or near "{location}".
They must be ADDITIONAL businesses that you have NOT listed earlier in this conversation.
Do not repeat any business name or address you already returned.
Use Google Maps to verify the details and return the same fields as before.

{contract}
"""

EMAIL_DRAFT_TEMPLATE = """\
Write a short, personalised cold outreach email to "{business_name}", a {industry} business in {location}.
The sender offers services that help local businesses get more customers.
Keep it under 150 words, friendly and specific to their industry. Do not invent facts about them.

Return ONLY a raw JSON object, without markdown formatting or extra text:
{{
  "subject": "String",
  "body": "String"
}}
"""


class QueryKind(str, Enum):
    """Which of the two conversation turns to build."""

    INITIAL = "initial"
    CONTINUATION = "continuation"


def build_query(kind: QueryKind, term: str, location: str, count: int) -> str:
    """Build the message for one batch request.

    ``INITIAL`` opens the conversation with the full field list; ``CONTINUATION``
    relies on the conversation history and only asks for unseen businesses.
    Both carry the same JSON-only output contract.
    """
    if count <= 0:
        raise ValueError("count must be positive")

    if kind == QueryKind.INITIAL:
        template = _INITIAL_TEMPLATE
    else:
        template = _CONTINUATION_TEMPLATE

    return template.format(
        count=count,
        term=term,
        location=location,
        contract=_OUTPUT_CONTRACT,
    )


def build_email_draft_query(business_name: str, industry: str, location: str) -> str:
    """Build the single-shot outreach email request."""
    return EMAIL_DRAFT_TEMPLATE.format(
        business_name=business_name,
        industry=industry,
        location=location,
    )
