"""Pydantic models for the leadgen service."""

import math
import re
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_REVIEW_COUNT = re.compile(r"(\d+(?:,\d{3})*)\s*(?:reviews?|ratings?|votes?)\b", re.IGNORECASE)
_NUMBER = re.compile(r"\d+(?:,\d{3})*(?:\.\d+)?")
_SCALED = re.compile(r"\d[\d.,]*\s*[kKmM]\b")


def _new_lead_id() -> str:
    return str(uuid.uuid4())


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _single_number(text: str) -> Optional[str]:
    """The only numeric token in ``text``, without separators.

    None when the text holds several numbers or an abbreviated one ("1.2k").
    """
    if _SCALED.search(text):
        return None
    tokens = _NUMBER.findall(text)
    if len(tokens) != 1:
        return None
    return tokens[0].replace(",", "")


def _safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        try:
            parsed = float(cleaned)
        except ValueError:
            # "Rated 4.5 (87 reviews)" -> 4.5
            token = _single_number(_REVIEW_COUNT.sub("", value))
            if token is None:
                return None
            parsed = float(token)
        return parsed if math.isfinite(parsed) else None
    return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        try:
            return int(float(cleaned))
        except (ValueError, OverflowError):
            pass
        # "4.8 (1,204 reviews)" -> 1204
        match = _REVIEW_COUNT.search(value)
        if match:
            return int(match.group(1).replace(",", ""))
        token = _single_number(value)
        if token is not None and "." not in token:
            return int(token)
    return None


class Lead(BaseModel):
    """A business discovered by the provider.

    ``id`` is generated on ingestion and never derived from content.
    Numeric fields are coerced to a number or ``None``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=_new_lead_id)
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = Field(None, alias="reviewCount")
    description: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, v: Any) -> str:
        return _strip_or_none(v) or ""

    @field_validator("address", "phone", "website", "description", "email", mode="before")
    @classmethod
    def _clean_text(cls, v: Any) -> Optional[str]:
        return _strip_or_none(v)

    @field_validator("rating", mode="before")
    @classmethod
    def _coerce_rating(cls, v: Any) -> Optional[float]:
        return _safe_float(v)

    @field_validator("review_count", mode="before")
    @classmethod
    def _coerce_review_count(cls, v: Any) -> Optional[int]:
        return _safe_int(v)

    @property
    def name_key(self) -> str:
        """Identity key used for case-insensitive name dedup."""
        return self.name.lower()


class PlanTier(str, Enum):
    """Subscription tier gating the per-search lead cap."""

    FREE = "FREE"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


class SearchParams(BaseModel):
    """Parameters for a lead search."""

    term: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    count: int = Field(10, gt=0)
    plan: PlanTier = PlanTier.FREE

    @field_validator("term", "location")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class PlanConfig(BaseModel):
    """A subscription plan."""

    id: PlanTier
    name: str
    price: int = 0
    max_leads_per_search: int = Field(..., gt=0)
    features: list[str] = []
    recommended: bool = False


class OutreachEmail(BaseModel):
    """A cold outreach email drafted for one business."""

    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)

    @field_validator("subject", "body", mode="before")
    @classmethod
    def _clean(cls, v: Any) -> str:
        return _strip_or_none(v) or ""


class AcquisitionStats(BaseModel):
    """Statistics for one completed acquisition call."""

    requested: int = 0
    returned: int = 0
    collected: int = 0
    queries: int = 0
    unproductive_batches: int = 0
    malformed_batches: int = 0
    duplicates_dropped: int = 0
    invalid_dropped: int = 0
    stopped_early: bool = False

    @property
    def shortfall(self) -> int:
        """How many leads short of the request the call ended (0 on a full result)."""
        return max(self.requested - self.returned, 0)


class AcquisitionResult(BaseModel):
    """Leads returned by an acquisition call together with its stats."""

    leads: list[Lead]
    stats: AcquisitionStats

