from leadscout.services.leadgen.engine import BatchAcquisitionEngine
from leadscout.services.leadgen.exceptions import (
    ConfigurationError,
    LeadGenError,
    MalformedResponseError,
    NoDataError,
    PlanLimitError,
    ProviderError,
    RateLimitError,
)
from leadscout.services.leadgen.models import Lead, SearchParams
from leadscout.services.leadgen.service import IService, Service

__all__ = [
    "BatchAcquisitionEngine",
    "ConfigurationError",
    "IService",
    "Lead",
    "LeadGenError",
    "MalformedResponseError",
    "NoDataError",
    "PlanLimitError",
    "ProviderError",
    "RateLimitError",
    "SearchParams",
    "Service",
]
