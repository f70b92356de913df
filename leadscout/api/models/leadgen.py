"""Pydantic models for LeadGen API."""

from typing import Optional

from pydantic import BaseModel, Field

from leadscout.services.leadgen.models import PlanTier


class CreateSearchRequest(BaseModel):
    """POST /api/leadgen/searches request body."""

    term: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    count: int = Field(10, gt=0, le=100)
    plan: Optional[PlanTier] = None

    model_config = {"populate_by_name": True}


class LeadResponse(BaseModel):
    """Response for a single lead."""

    lead_id: str = Field(..., alias="leadID")
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = Field(None, alias="reviewCount")
    description: Optional[str] = None

    model_config = {"populate_by_name": True, "by_alias": True}


class SearchStatsResponse(BaseModel):
    """Stats for a search run."""

    requested: int = 0
    returned: int = 0
    shortfall: int = 0
    queries: int = 0
    unproductive_batches: int = Field(0, alias="unproductiveBatches")
    duplicates_dropped: int = Field(0, alias="duplicatesDropped")

    model_config = {"populate_by_name": True, "by_alias": True}


class SearchResultsResponse(BaseModel):
    """POST /api/leadgen/searches response."""

    term: str
    location: str
    plan: PlanTier
    leads: list[LeadResponse]
    total: int
    complete: bool = Field(..., description="False when fewer leads than requested were found")
    stats: SearchStatsResponse

    model_config = {"populate_by_name": True, "by_alias": True}


class OutreachEmailRequest(BaseModel):
    """POST /api/leadgen/outreach-email request body."""

    business_name: str = Field(..., alias="businessName", min_length=1, max_length=200)
    industry: str = Field("local", max_length=200)
    location: str = Field("", max_length=200)

    model_config = {"populate_by_name": True}


class OutreachEmailResponse(BaseModel):
    """Drafted outreach email."""

    business_name: str = Field(..., alias="businessName")
    subject: str
    body: str

    model_config = {"populate_by_name": True, "by_alias": True}


class PlanResponse(BaseModel):
    """Response for a subscription plan."""

    id: PlanTier
    name: str
    price: int
    max_leads_per_search: int = Field(..., alias="maxLeadsPerSearch")
    features: list[str]
    recommended: bool = False

    model_config = {"populate_by_name": True, "by_alias": True}


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    message: str
