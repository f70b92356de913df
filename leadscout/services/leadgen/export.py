"""CSV export of search results."""

import csv
import io
from pathlib import Path
from typing import Iterable

from leadscout.services.leadgen.models import Lead

CSV_HEADERS = [
    "Business Name",
    "Email Address",
    "Phone Number",
    "Website URL",
    "Street Address",
    "Rating",
    "Reviews",
    "Description",
]


def _cell(value) -> str:
    return "" if value is None else str(value)


def leads_to_csv(leads: Iterable[Lead]) -> str:
    """Render leads as CSV text with every cell quoted."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for lead in leads:
        writer.writerow(
            [
                lead.name,
                _cell(lead.email),
                _cell(lead.phone),
                _cell(lead.website),
                _cell(lead.address),
                _cell(lead.rating),
                _cell(lead.review_count),
                _cell(lead.description),
            ]
        )
    return buf.getvalue()


def write_csv(leads: list[Lead], path: str | Path) -> Path:
    """Write leads to ``path``; returns the resolved path."""
    if not leads:
        raise ValueError("No leads to export")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(leads_to_csv(leads), encoding="utf-8")
    return target.resolve()
