"""LeadGen API routes.

A search runs to completion inside the request; dropping the connection
cancels the waiting handler and the rest of the acquisition with it.
"""

from fastapi import APIRouter, HTTPException

from leadscout.api.models.leadgen import (
    CreateSearchRequest,
    ErrorResponse,
    LeadResponse,
    OutreachEmailRequest,
    OutreachEmailResponse,
    PlanResponse,
    SearchResultsResponse,
    SearchStatsResponse,
)
from leadscout.config import settings
from leadscout.services.leadgen.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    NoDataError,
    PlanLimitError,
    ProviderError,
    RateLimitError,
)
from leadscout.services.leadgen.models import SearchParams
from leadscout.services.leadgen.plans import PLANS
from leadscout.services.leadgen.service import Service

router = APIRouter(prefix="/api/leadgen", tags=["leadgen"])


def _get_service() -> Service:
    return Service(
        gemini_api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        batch_size=settings.leadgen_batch_size,
        backoff_seconds=settings.leadgen_backoff_seconds,
    )


def _http_error(status_code: int, error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": error, "message": message},
    )


def _to_http_error(e: Exception) -> HTTPException:
    """Map leadgen exceptions to HTTP errors."""
    if isinstance(e, ConfigurationError):
        return _http_error(503, "NOT_CONFIGURED", str(e))
    if isinstance(e, RateLimitError):
        return _http_error(429, "RATE_LIMITED", str(e))
    if isinstance(e, PlanLimitError):
        return _http_error(403, "PLAN_LIMIT", str(e))
    if isinstance(e, NoDataError):
        return _http_error(404, "NO_RESULTS", str(e))
    if isinstance(e, MalformedResponseError):
        return _http_error(502, "BAD_PROVIDER_RESPONSE", str(e))
    if isinstance(e, ProviderError):
        return _http_error(502, "PROVIDER_ERROR", str(e))
    return _http_error(400, "BAD_REQUEST", str(e))


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@router.get(
    "/plans",
    response_model=list[PlanResponse],
)
async def list_plans():
    """List subscription plans and their per-search lead caps."""
    return [
        PlanResponse(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            maxLeadsPerSearch=plan.max_leads_per_search,
            features=plan.features,
            recommended=plan.recommended,
        )
        for plan in PLANS.values()
    ]


# ---------------------------------------------------------------------------
# Searches
# ---------------------------------------------------------------------------


@router.post(
    "/searches",
    response_model=SearchResultsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid search parameters"},
        403: {"model": ErrorResponse, "description": "Count exceeds the plan cap"},
        404: {"model": ErrorResponse, "description": "No businesses found"},
        429: {"model": ErrorResponse, "description": "Provider rate limit"},
        503: {"model": ErrorResponse, "description": "Provider not configured"},
    },
)
async def create_search(request: CreateSearchRequest):
    """Find up to ``count`` unique businesses for a term and location.

    A result with fewer leads than requested is still a success
    (``complete`` is false); zero leads is a 404.
    """
    svc = _get_service()

    try:
        params = SearchParams(
            term=request.term,
            location=request.location,
            count=request.count,
            plan=request.plan or settings.default_plan,
        )
        result = await svc.search(params)
    except (
        ConfigurationError,
        RateLimitError,
        PlanLimitError,
        NoDataError,
        ValueError,
    ) as e:
        raise _to_http_error(e)

    stats = result.stats
    leads = [
        LeadResponse(
            leadID=lead.id,
            name=lead.name,
            address=lead.address,
            phone=lead.phone,
            website=lead.website,
            email=lead.email,
            rating=lead.rating,
            reviewCount=lead.review_count,
            description=lead.description,
        )
        for lead in result.leads
    ]

    return SearchResultsResponse(
        term=params.term,
        location=params.location,
        plan=params.plan,
        leads=leads,
        total=len(leads),
        complete=stats.shortfall == 0,
        stats=SearchStatsResponse(
            requested=stats.requested,
            returned=stats.returned,
            shortfall=stats.shortfall,
            queries=stats.queries,
            unproductiveBatches=stats.unproductive_batches,
            duplicatesDropped=stats.duplicates_dropped,
        ),
    )


# ---------------------------------------------------------------------------
# Outreach email
# ---------------------------------------------------------------------------


@router.post(
    "/outreach-email",
    response_model=OutreachEmailResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": ErrorResponse, "description": "Provider rate limit"},
        502: {"model": ErrorResponse, "description": "Provider failure or bad reply"},
        503: {"model": ErrorResponse, "description": "Provider not configured"},
    },
)
async def draft_outreach_email(request: OutreachEmailRequest):
    """Draft a cold outreach email for one business."""
    svc = _get_service()

    try:
        email = await svc.draft_outreach_email(
            business_name=request.business_name,
            industry=request.industry,
            location=request.location,
        )
    except (
        ConfigurationError,
        ProviderError,
        MalformedResponseError,
        ValueError,
    ) as e:
        raise _to_http_error(e)

    return OutreachEmailResponse(
        businessName=request.business_name,
        subject=email.subject,
        body=email.body,
    )
