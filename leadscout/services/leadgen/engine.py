"""Batch acquisition engine.

Turns a single "give me N leads" request into a sequence of turns in one
provider conversation, merging and deduplicating the replies until the
target is met, the provider runs dry, or the loop budget is spent.

Stop policy for one call:
  - success     len(acc) >= target
  - budget      ceil(target / batch_size) + EXTRA_LOOPS turns issued
  - exhaustion  UNPRODUCTIVE_STREAK_LIMIT consecutive unproductive batches
  - transport   a non rate-limit ProviderError (partial results kept)
  - rate limit  RateLimitError propagates (partial results discarded)
"""

import asyncio
import inspect
import math
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger
from pydantic import ValidationError

from leadscout.core.logging import StructuredLogger
from leadscout.services.leadgen.exceptions import (
    NoDataError,
    ProviderError,
    RateLimitError,
)
from leadscout.services.leadgen.models import (
    AcquisitionResult,
    AcquisitionStats,
    Lead,
)
from leadscout.services.leadgen.parsing import ParseStatus, parse_batch
from leadscout.services.leadgen.prompts import QueryKind, build_query
from leadscout.services.leadgen.sources.base import LeadProvider

MAX_BATCH_SIZE = 20  # larger single-turn requests degrade completeness
EXTRA_LOOPS = 3  # absorbs dedup losses
OVERSHOOT = 5  # ask for a few more than needed, expecting duplicates
BACKOFF_SECONDS = 0.8
UNPRODUCTIVE_STREAK_LIMIT = 2

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]


def loop_budget(target_count: int, batch_size: int = MAX_BATCH_SIZE) -> int:
    """Maximum number of provider turns for one call."""
    return math.ceil(target_count / batch_size) + EXTRA_LOOPS


class _Accumulator:
    """Working state of a single acquisition call."""

    def __init__(self):
        self.leads: list[Lead] = []
        self.unproductive_streak = 0
        self.loop_index = 0
        self._seen_names: set[str] = set()
        self._seen_addresses: set[str] = set()

    def __len__(self) -> int:
        return len(self.leads)

    def is_duplicate(self, lead: Lead) -> bool:
        if lead.name_key in self._seen_names:
            return True
        return bool(lead.address) and lead.address in self._seen_addresses

    def add(self, lead: Lead) -> None:
        self.leads.append(lead)
        self._seen_names.add(lead.name_key)
        if lead.address:
            self._seen_addresses.add(lead.address)

    def merge(self, records: list[dict[str, Any]], stats: AcquisitionStats) -> int:
        """Append every new, valid record in arrival order. Returns how many were added."""
        added = 0
        for record in records:
            lead = _to_lead(record)
            if lead is None:
                stats.invalid_dropped += 1
                continue
            # compared against the accumulator as it grows, so in-batch repeats drop too
            if self.is_duplicate(lead):
                stats.duplicates_dropped += 1
                continue
            self.add(lead)
            added += 1
        return added


def _to_lead(record: dict[str, Any]) -> Optional[Lead]:
    """Build a Lead with a fresh id, or None when the record has no usable name."""
    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    review_count = record.get("reviewCount")
    if review_count is None:
        review_count = record.get("review_count")

    try:
        return Lead(
            name=name,
            address=record.get("address"),
            phone=record.get("phone"),
            website=record.get("website"),
            rating=record.get("rating"),
            reviewCount=review_count,
            description=record.get("description"),
            email=record.get("email"),
        )
    except ValidationError as e:
        logger.debug(f"Dropping invalid record {name!r}: {e.error_count()} error(s)")
        return None


class BatchAcquisitionEngine:
    """Collects up to ``target_count`` unique leads from a conversational provider.

    Usage:
        engine = BatchAcquisitionEngine(provider)
        leads = await engine.acquire("plumbers", "Austin, TX", 30, on_progress=print)

    The engine holds no per-call state; concurrent calls each get their own
    session and accumulator.
    """

    def __init__(
        self,
        provider: LeadProvider,
        batch_size: int = MAX_BATCH_SIZE,
        backoff_seconds: float = BACKOFF_SECONDS,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.provider = provider
        self.batch_size = batch_size
        self.backoff_seconds = backoff_seconds

    async def acquire(
        self,
        term: str,
        location: str,
        target_count: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[Lead]:
        """Return up to ``target_count`` deduplicated leads in discovery order.

        Raises:
            ValueError: blank term/location or non-positive target_count.
            RateLimitError: the provider rate-limited any turn.
            NoDataError: no valid lead was collected.
        """
        result = await self.run(term, location, target_count, on_progress)
        return result.leads

    async def run(
        self,
        term: str,
        location: str,
        target_count: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AcquisitionResult:
        """Same as :meth:`acquire` but also returns the call's statistics."""
        term = (term or "").strip()
        location = (location or "").strip()
        if not term or not location:
            raise ValueError("term and location must not be empty")
        if target_count <= 0:
            raise ValueError("target_count must be positive")

        session = self.provider.start_session()
        acc = _Accumulator()
        stats = AcquisitionStats(requested=target_count)
        budget = loop_budget(target_count, self.batch_size)

        logger.info(
            f"Acquiring {target_count} leads for '{term}' in '{location}' "
            f"(batch<={self.batch_size}, budget={budget} turns)"
        )

        while len(acc) < target_count and acc.loop_index < budget:
            remaining = target_count - len(acc)
            request = min(remaining + OVERSHOOT, self.batch_size)
            kind = QueryKind.INITIAL if acc.loop_index == 0 else QueryKind.CONTINUATION

            if acc.loop_index > 0 and self.backoff_seconds > 0:
                await asyncio.sleep(self.backoff_seconds)

            query = build_query(kind, term, location, request)
            stats.queries += 1
            try:
                raw = await session.send_message(query)
            except RateLimitError:
                StructuredLogger.warning(
                    "Rate limited, discarding partial leads",
                    turn=acc.loop_index + 1,
                    discarded=len(acc),
                )
                raise
            except ProviderError as e:
                StructuredLogger.warning(
                    "Provider failed, keeping partial leads",
                    turn=acc.loop_index + 1,
                    kept=len(acc),
                    error=str(e),
                )
                stats.stopped_early = True
                break
            acc.loop_index += 1

            batch = parse_batch(raw)
            if batch.status == ParseStatus.MALFORMED:
                # a formatting slip, not a sign of exhaustion: retry with a fresh turn
                acc.unproductive_streak += 1
                stats.unproductive_batches += 1
                stats.malformed_batches += 1
                StructuredLogger.warning(
                    "Malformed batch, retrying", turn=acc.loop_index, error=batch.error
                )
                continue

            added = acc.merge(batch.records, stats) if batch.ok else 0
            if added == 0:
                acc.unproductive_streak += 1
                stats.unproductive_batches += 1
                reason = batch.error or "no new leads"
                logger.info(
                    f"Turn {acc.loop_index}: unproductive ({reason}), "
                    f"streak={acc.unproductive_streak}"
                )
                if acc.unproductive_streak >= UNPRODUCTIVE_STREAK_LIMIT:
                    logger.info("Provider appears exhausted, stopping")
                    stats.stopped_early = True
                    break
                continue

            acc.unproductive_streak = 0
            logger.debug(
                f"Turn {acc.loop_index}: +{added} leads "
                f"({len(acc)}/{target_count}, asked for {request})"
            )
            if on_progress is not None:
                await _notify(on_progress, min(len(acc), target_count))

        stats.collected = len(acc)
        if not acc.leads:
            StructuredLogger.warning(
                "No leads found", term=term, location=location, queries=stats.queries
            )
            raise NoDataError(
                f"No businesses found for '{term}' in '{location}'. "
                "Try a broader term or a different location."
            )

        leads = acc.leads[:target_count]
        stats.returned = len(leads)
        logger.info(
            f"Acquired {stats.returned}/{target_count} leads in {stats.queries} turns "
            f"({stats.duplicates_dropped} duplicates, {stats.invalid_dropped} invalid dropped)"
        )
        return AcquisitionResult(leads=leads, stats=stats)


async def _notify(callback: ProgressCallback, count: int) -> None:
    result = callback(count)
    if inspect.isawaitable(result):
        await result
