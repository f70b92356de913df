from .leadgen import (
    CreateSearchRequest,
    SearchResultsResponse,
    OutreachEmailRequest,
    OutreachEmailResponse,
    PlanResponse,
    ErrorResponse,
)

__all__ = [
    "CreateSearchRequest",
    "SearchResultsResponse",
    "OutreachEmailRequest",
    "OutreachEmailResponse",
    "PlanResponse",
    "ErrorResponse",
]
