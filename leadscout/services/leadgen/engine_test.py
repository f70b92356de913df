"""Unit tests for the batch acquisition engine."""

import asyncio
import json
import math

import pytest
from unittest.mock import AsyncMock, patch
from loguru import logger

from leadscout.core.logging import search_id_var
from leadscout.services.leadgen.engine import (
    BACKOFF_SECONDS,
    MAX_BATCH_SIZE,
    BatchAcquisitionEngine,
    loop_budget,
)
from leadscout.services.leadgen.exceptions import (
    NoDataError,
    ProviderError,
    RateLimitError,
)


def _engine(provider, **kwargs):
    kwargs.setdefault("backoff_seconds", 0)
    return BatchAcquisitionEngine(provider, **kwargs)


def _assert_unique(leads):
    names = [lead.name.lower() for lead in leads]
    assert len(names) == len(set(names))
    addresses = [lead.address for lead in leads if lead.address]
    assert len(addresses) == len(set(addresses))


# ---------------------------------------------------------------------------
# loop_budget
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestLoopBudget:
    def test_small_target(self):
        assert loop_budget(10) == 4

    def test_exact_multiple(self):
        assert loop_budget(40) == 5

    def test_rounds_up(self):
        assert loop_budget(41) == 6

    def test_custom_batch_size(self):
        assert loop_budget(10, batch_size=5) == 5


# ---------------------------------------------------------------------------
# Stop outcomes
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestStopOutcomes:
    @pytest.mark.asyncio
    async def test_first_batch_oversupplies(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 25))])

        leads = await _engine(provider).acquire("plumbers", "Austin, TX", 10)

        assert len(leads) == 10
        assert provider.queries == 1
        assert [lead.name for lead in leads] == [f"Business {i}" for i in range(1, 11)]

    @pytest.mark.asyncio
    async def test_repeated_batch_then_empty_halts(self, scripted_provider, records, reply):
        batch = reply(records(1, 5))
        provider = scripted_provider([batch, batch, "", reply(records(6, 5))])

        leads = await _engine(provider).acquire("plumbers", "Austin, TX", 10)

        assert len(leads) == 5
        assert provider.queries == 3
        _assert_unique(leads)

    @pytest.mark.asyncio
    async def test_never_parseable_exhausts_budget(self, scripted_provider):
        provider = scripted_provider(["Sorry, I can't help with that."] * 10)

        with pytest.raises(NoDataError):
            await _engine(provider).acquire("plumbers", "Austin, TX", 10)

        assert provider.queries == loop_budget(10)

    @pytest.mark.asyncio
    async def test_rate_limit_discards_partial_results(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 8)), RateLimitError("429 RESOURCE_EXHAUSTED")]
        )
        progress = []

        with pytest.raises(RateLimitError):
            await _engine(provider).acquire("plumbers", "Austin, TX", 20, on_progress=progress.append)

        assert progress == [8]
        assert provider.queries == 2

    @pytest.mark.asyncio
    async def test_nameless_record_dropped(self, scripted_provider, records, reply):
        batch = records(1, 3)
        batch[1]["name"] = ""
        batch.append({"phone": "(512) 555-9999", "address": "9 Elm St"})
        provider = scripted_provider([reply(batch)])
        progress = []

        result = await _engine(provider).run("plumbers", "Austin, TX", 2, on_progress=progress.append)

        assert [lead.name for lead in result.leads] == ["Business 1", "Business 3"]
        assert progress == [2]
        assert result.stats.invalid_dropped == 2
        assert result.stats.unproductive_batches == 0


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestDeduplication:
    @pytest.mark.asyncio
    async def test_case_insensitive_name_match(self, scripted_provider):
        first = [{"name": "Joe's Plumbing", "address": "1 Main St"}]
        second = [
            {"name": "JOE'S PLUMBING", "address": "2 Oak Ave"},
            {"name": "Ace Rooter", "address": "3 Pine Rd"},
        ]
        provider = scripted_provider([json.dumps(first), json.dumps(second)])

        leads = await _engine(provider).acquire("plumbers", "Austin", 2)

        assert [lead.name for lead in leads] == ["Joe's Plumbing", "Ace Rooter"]

    @pytest.mark.asyncio
    async def test_exact_address_match(self, scripted_provider):
        batch = [
            {"name": "Alpha Dental", "address": "100 Congress Ave"},
            {"name": "Beta Dental", "address": "100 Congress Ave"},
            {"name": "Gamma Dental", "address": "200 Congress Ave"},
        ]
        provider = scripted_provider([json.dumps(batch)])

        leads = await _engine(provider).acquire("dentists", "Austin", 3)

        assert [lead.name for lead in leads] == ["Alpha Dental", "Gamma Dental"]

    @pytest.mark.asyncio
    async def test_missing_addresses_do_not_collide(self, scripted_provider):
        batch = [
            {"name": "Alpha", "address": ""},
            {"name": "Beta", "address": None},
            {"name": "Gamma"},
        ]
        provider = scripted_provider([json.dumps(batch)])

        leads = await _engine(provider).acquire("cafes", "Austin", 3)

        assert len(leads) == 3

    @pytest.mark.asyncio
    async def test_duplicates_within_one_batch(self, scripted_provider):
        batch = [{"name": "Alpha"}, {"name": "alpha"}, {"name": "Beta"}]
        provider = scripted_provider([json.dumps(batch)])

        result = await _engine(provider).run("cafes", "Austin", 3)

        assert [lead.name for lead in result.leads] == ["Alpha", "Beta"]
        assert result.stats.duplicates_dropped == 1

    @pytest.mark.asyncio
    async def test_adversarial_repeats_keep_invariant(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [
                reply(records(1, 10)),
                reply(records(5, 10)),
                reply(records(1, 20)),
                reply(records(10, 15)),
            ]
        )

        leads = await _engine(provider).acquire("gyms", "Austin", 30)

        _assert_unique(leads)
        assert len(leads) == 24


# ---------------------------------------------------------------------------
# Loop control
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestLoopControl:
    @pytest.mark.asyncio
    async def test_fills_target_over_several_batches(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 20)), reply(records(21, 20)), reply(records(41, 20))]
        )

        leads = await _engine(provider).acquire("gyms", "Austin", 45)

        assert len(leads) == 45
        assert provider.queries == 3

    @pytest.mark.asyncio
    async def test_request_size_includes_overshoot(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 3)), reply(records(4, 10))])

        await _engine(provider).acquire("gyms", "Austin", 10)

        assert "Find 15 distinct" in provider.sent[0]
        assert "Find 12 MORE" in provider.sent[1]

    @pytest.mark.asyncio
    async def test_request_never_exceeds_batch_ceiling(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 20))])

        await _engine(provider).acquire("gyms", "Austin", 100)

        assert f"Find {MAX_BATCH_SIZE} distinct" in provider.sent[0]

    @pytest.mark.asyncio
    async def test_first_query_initial_then_continuation(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 2)), reply(records(3, 2))])

        await _engine(provider).acquire("gyms", "Austin", 4)

        assert "REQUIRED FIELDS" in provider.sent[0]
        assert "NOT listed earlier" in provider.sent[1]

    @pytest.mark.asyncio
    async def test_one_session_per_call(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 2)), reply(records(3, 2))])
        engine = _engine(provider)

        await engine.acquire("gyms", "Austin", 4)

        assert provider.sessions == 1

    @pytest.mark.asyncio
    async def test_query_count_bounded(self, scripted_provider, records):
        # every batch repeats one known lead plus a single new one
        replies = [json.dumps(records(1, 1) + records(100 + i, 1)) for i in range(50)]
        provider = scripted_provider(replies)

        leads = await _engine(provider).acquire("gyms", "Austin", 50)

        assert provider.queries == math.ceil(50 / 20) + 3
        assert len(leads) == provider.queries + 1

    @pytest.mark.asyncio
    async def test_two_unproductive_in_a_row_stop(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 3)), "[]", '{"name": "not an array"}', reply(records(4, 3))]
        )

        result = await _engine(provider).run("gyms", "Austin", 10)

        assert len(result.leads) == 3
        assert provider.queries == 3
        assert result.stats.stopped_early is True
        assert result.stats.shortfall == 7

    @pytest.mark.asyncio
    async def test_productive_batch_resets_streak(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 3)), "", reply(records(4, 3)), "", reply(records(7, 15))]
        )

        leads = await _engine(provider).acquire("gyms", "Austin", 21)

        assert len(leads) == 21
        assert provider.queries == 5

    @pytest.mark.asyncio
    async def test_malformed_json_retries_without_stopping(self, scripted_provider, records, reply):
        provider = scripted_provider(
            ["[{broken", "not json at all", reply(records(1, 10))]
        )

        result = await _engine(provider).run("gyms", "Austin", 10)

        assert len(result.leads) == 10
        assert result.stats.malformed_batches == 2
        assert provider.queries == 3

    @pytest.mark.asyncio
    async def test_malformed_counts_towards_streak(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 2)), "[{broken", "", reply(records(3, 5))]
        )

        leads = await _engine(provider).acquire("gyms", "Austin", 10)

        assert len(leads) == 2
        assert provider.queries == 3

    @pytest.mark.asyncio
    async def test_fenced_reply_is_parsed(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 5), fenced=True)])

        leads = await _engine(provider).acquire("gyms", "Austin", 5)

        assert len(leads) == 5

    @pytest.mark.asyncio
    async def test_provider_error_keeps_partial_results(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 4)), ProviderError("500 INTERNAL"), reply(records(5, 10))]
        )

        result = await _engine(provider).run("gyms", "Austin", 10)

        assert len(result.leads) == 4
        assert result.stats.stopped_early is True
        assert provider.queries == 2

    @pytest.mark.asyncio
    async def test_provider_error_on_first_turn_is_no_data(self, scripted_provider):
        provider = scripted_provider([ProviderError("connection reset")])

        with pytest.raises(NoDataError):
            await _engine(provider).acquire("gyms", "Austin", 10)

    @pytest.mark.asyncio
    async def test_rate_limit_on_first_turn(self, scripted_provider):
        provider = scripted_provider([RateLimitError("429")])

        with pytest.raises(RateLimitError):
            await _engine(provider).acquire("gyms", "Austin", 10)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestIngestion:
    @pytest.mark.asyncio
    async def test_fresh_ids_and_numeric_coercion(self, scripted_provider):
        batch = [
            {"id": "from-provider", "name": "Alpha", "rating": "4.7", "reviewCount": "1,204"},
            {"name": "Beta", "rating": "n/a", "reviewCount": None},
        ]
        provider = scripted_provider([json.dumps(batch)])

        leads = await _engine(provider).acquire("cafes", "Austin", 2)

        assert leads[0].id != "from-provider"
        assert leads[0].id != leads[1].id
        assert leads[0].rating == 4.7
        assert leads[0].review_count == 1204
        assert leads[1].rating is None
        assert leads[1].review_count is None

    @pytest.mark.asyncio
    async def test_non_object_items_ignored(self, scripted_provider):
        provider = scripted_provider([json.dumps(["Alpha", 3, {"name": "Beta"}])])

        leads = await _engine(provider).acquire("cafes", "Austin", 1)

        assert [lead.name for lead in leads] == ["Beta"]


# ---------------------------------------------------------------------------
# Progress, validation, timing
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_monotonic_and_capped(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 6)), reply(records(1, 6)), reply(records(7, 20))]
        )
        progress = []

        leads = await _engine(provider).acquire("gyms", "Austin", 12, on_progress=progress.append)

        assert progress == sorted(progress)
        assert max(progress) <= len(leads)
        assert progress == [6, 12]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, scripted_provider, records, reply):
        provider = scripted_provider([reply(records(1, 3))])
        callback = AsyncMock()

        await _engine(provider).acquire("gyms", "Austin", 3, on_progress=callback)

        callback.assert_awaited_once_with(3)


@pytest.mark.unit
class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "term,location,count",
        [("", "Austin", 10), ("gyms", "  ", 10), ("gyms", "Austin", 0), ("gyms", "Austin", -3)],
    )
    async def test_invalid_arguments_make_no_call(self, scripted_provider, term, location, count):
        provider = scripted_provider([])

        with pytest.raises(ValueError):
            await _engine(provider).acquire(term, location, count)

        assert provider.sessions == 0

    def test_batch_size_must_be_positive(self, scripted_provider):
        with pytest.raises(ValueError):
            BatchAcquisitionEngine(scripted_provider([]), batch_size=0)


@pytest.mark.unit
class TestBackoff:
    @pytest.mark.asyncio
    async def test_pauses_before_every_turn_after_the_first(self, scripted_provider, records, reply):
        provider = scripted_provider(
            [reply(records(1, 3)), reply(records(4, 3)), reply(records(7, 4))]
        )
        engine = BatchAcquisitionEngine(provider)

        with patch(
            "leadscout.services.leadgen.engine.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await engine.acquire("gyms", "Austin", 10)

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(BACKOFF_SECONDS)

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        from leadscout.services.leadgen.sources.base import ConversationSession, LeadProvider

        started = asyncio.Event()

        class SlowSession(ConversationSession):
            async def send_message(self, text: str) -> str:
                started.set()
                await asyncio.sleep(3600)
                return "[]"

        class SlowProvider(LeadProvider):
            def start_session(self):
                return SlowSession()

        task = asyncio.create_task(_engine(SlowProvider()).acquire("gyms", "Austin", 5))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


@pytest.mark.unit
class TestWarnings:
    @pytest.mark.asyncio
    async def test_malformed_batch_warning_carries_context(self, scripted_provider, records, reply):
        provider = scripted_provider(["[{broken", reply(records(1, 2))])
        warnings = []
        handler_id = logger.add(lambda m: warnings.append(m.record), level="WARNING")
        token = search_id_var.set("search-1")
        try:
            await _engine(provider).acquire("gyms", "Austin", 2)
        finally:
            search_id_var.reset(token)
            logger.remove(handler_id)

        assert [w["message"] for w in warnings] == ["Malformed batch, retrying"]
        assert warnings[0]["extra"]["search_id"] == "search-1"
        assert warnings[0]["extra"]["turn"] == 1
