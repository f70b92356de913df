"""LeadGen service: plan gating, provider wiring and the outreach email draft."""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from leadscout.core.logging import StructuredLogger, log_execution_time, search_id_var
from leadscout.services.leadgen.engine import (
    BACKOFF_SECONDS,
    MAX_BATCH_SIZE,
    BatchAcquisitionEngine,
    ProgressCallback,
)
from leadscout.services.leadgen.exceptions import MalformedResponseError
from leadscout.services.leadgen.models import (
    AcquisitionResult,
    Lead,
    OutreachEmail,
    SearchParams,
)
from leadscout.services.leadgen.parsing import parse_object
from leadscout.services.leadgen.plans import check_plan_limit
from leadscout.services.leadgen.prompts import build_email_draft_query
from leadscout.services.leadgen.sources.base import LeadProvider
from leadscout.services.leadgen.sources.gemini import DEFAULT_MODEL, GeminiMapsProvider


class IService(ABC):
    """Interface for the leadgen service."""

    @abstractmethod
    async def search(
        self,
        params: SearchParams,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AcquisitionResult: ...

    @abstractmethod
    async def find_leads(
        self,
        params: SearchParams,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[Lead]: ...

    @abstractmethod
    async def draft_outreach_email(
        self, business_name: str, industry: str, location: str
    ) -> OutreachEmail: ...


class Service(IService):
    """LeadGen service: find leads through a Maps-grounded model and draft outreach."""

    def __init__(
        self,
        gemini_api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        batch_size: int = MAX_BATCH_SIZE,
        backoff_seconds: float = BACKOFF_SECONDS,
        provider: Optional[LeadProvider] = None,
    ):
        self.gemini_api_key = gemini_api_key
        self.model = model
        self.batch_size = batch_size
        self.backoff_seconds = backoff_seconds
        self._provider = provider

    def _get_provider(self) -> LeadProvider:
        """Build the Gemini provider on first use.

        Raises ConfigurationError when no API key is configured, before any
        network activity.
        """
        if self._provider is None:
            self._provider = GeminiMapsProvider(api_key=self.gemini_api_key, model=self.model)
        return self._provider

    @log_execution_time
    async def search(
        self,
        params: SearchParams,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AcquisitionResult:
        """Run one acquisition for ``params`` and return leads plus stats.

        1. Check the requested count against the plan cap
        2. Resolve the provider (fails fast on a missing key)
        3. Run the batch acquisition engine
        """
        plan = check_plan_limit(params.plan, params.count)
        provider = self._get_provider()

        search_id = uuid.uuid4().hex[:12]
        token = search_id_var.set(search_id)
        try:
            StructuredLogger.info(
                "Search started",
                term=params.term,
                location=params.location,
                count=params.count,
                plan=plan.id.value,
            )
            engine = BatchAcquisitionEngine(
                provider,
                batch_size=self.batch_size,
                backoff_seconds=self.backoff_seconds,
            )
            with logger.contextualize(search_id=search_id):
                result = await engine.run(
                    params.term, params.location, params.count, on_progress=on_progress
                )

            StructuredLogger.info(
                "Search finished",
                requested=params.count,
                returned=result.stats.returned,
                shortfall=result.stats.shortfall,
                queries=result.stats.queries,
            )
            return result
        finally:
            search_id_var.reset(token)

    async def find_leads(
        self,
        params: SearchParams,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[Lead]:
        result = await self.search(params, on_progress=on_progress)
        return result.leads

    async def draft_outreach_email(
        self, business_name: str, industry: str, location: str
    ) -> OutreachEmail:
        """Draft a cold email for one business in a single provider turn."""
        business_name = (business_name or "").strip()
        if not business_name:
            raise ValueError("business_name must not be empty")
        industry = (industry or "").strip() or "local"
        location = (location or "").strip() or "their area"

        session = self._get_provider().start_session()
        raw = await session.send_message(
            build_email_draft_query(business_name, industry, location)
        )

        parsed = parse_object(raw)
        if not parsed.ok:
            logger.warning(f"Email draft for '{business_name}' unparseable: {parsed.error}")
            raise MalformedResponseError(
                "The AI returned an email draft in an invalid format. Please try again."
            )

        try:
            email = OutreachEmail.model_validate(parsed.data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Email draft is missing a subject or body: {e.error_count()} error(s)"
            ) from e

        logger.info(f"Drafted outreach email for '{business_name}'")
        return email
