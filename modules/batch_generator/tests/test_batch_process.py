"""
Tests for the batch generation entry point.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from shared.credentials import CredentialStore
from shared.errors import (
    ConfigError,
    DailyQuotaExhaustedError,
    ErrorKind,
    TransportError,
    ValidationError,
)
from shared.logging import get_batch_id, set_batch_id
from shared.models.generation import GenerationMode
from shared.quota import InMemoryQuotaStore, QuotaChargePolicy, QuotaLedger
from modules.batch_generator.config import DEFAULT_PROMPTS
from modules.batch_generator.lifecycle import LifecycleTracker
from modules.batch_generator.process import process
from batch_fakes import ScriptedClient


@pytest.fixture(autouse=True)
def clear_batch_id():
    yield
    set_batch_id(None)


@pytest.mark.asyncio
async def test_missing_credentials_refuses_batch(tmp_path, source_image, ledger):
    client = ScriptedClient()
    empty_store = CredentialStore(path=str(tmp_path / "none.json"))

    with pytest.raises(ConfigError, match="Missing API key"):
        await process(source_image, ["a"], credentials=empty_store, client=client, ledger=ledger)

    assert client.calls == []


@pytest.mark.asyncio
async def test_missing_credentials_leaves_quota_untouched(tmp_path, source_image, ledger):
    empty_store = CredentialStore(path=str(tmp_path / "none.json"))

    with pytest.raises(ConfigError):
        await process(source_image, ["a"], GenerationMode.VIDEO, credentials=empty_store,
                      client=ScriptedClient(), ledger=ledger)

    assert ledger.peek().count == 0


@pytest.mark.asyncio
async def test_default_prompts(credential_store, source_image):
    client = ScriptedClient()

    outcomes = await process(source_image, credentials=credential_store, client=client)

    assert [outcome.prompt for outcome in outcomes] == list(DEFAULT_PROMPTS)
    assert all(outcome.succeeded for outcome in outcomes)


@pytest.mark.asyncio
async def test_empty_prompts_rejected(credential_store, source_image):
    with pytest.raises(ValidationError):
        await process(source_image, [], credentials=credential_store, client=ScriptedClient())


@pytest.mark.asyncio
async def test_image_mode_skips_quota(credential_store, source_image, ledger):
    await process(source_image, ["a", "b"], credentials=credential_store,
                  client=ScriptedClient(), ledger=ledger)

    assert ledger.peek().count == 0


@pytest.mark.asyncio
async def test_video_quota_exhausted_submits_nothing(credential_store, source_image, ledger):
    for _ in range(9):
        await ledger.increment()
    client = ScriptedClient()

    with pytest.raises(DailyQuotaExhaustedError, match="Daily video limit reached"):
        await process(source_image, ["a", "b"], GenerationMode.VIDEO,
                      credentials=credential_store, client=client, ledger=ledger)

    assert client.calls == []
    assert ledger.peek().count == 9


@pytest.mark.asyncio
async def test_on_attempt_charges_every_prompt(credential_store, source_image, ledger):
    client = ScriptedClient(script={"b": [TransportError("upstream down", status_code=500)]})

    outcomes = await process(
        source_image, ["a", "b"], GenerationMode.VIDEO,
        credentials=credential_store, client=client, ledger=ledger,
        charge_policy=QuotaChargePolicy.ON_ATTEMPT,
    )

    assert outcomes[1].error_kind == ErrorKind.TRANSPORT
    assert ledger.peek().count == 2


@pytest.mark.asyncio
async def test_on_accepted_charges_submitted_items_only(credential_store, source_image, ledger):
    class PartiallyAcceptingClient(ScriptedClient):
        async def generate(self, request, on_submitted=None):
            if request.prompt == "rejected":
                raise TransportError("submission refused", status_code=400)
            await on_submitted()
            return "data:video/mp4;base64,AAAA"

    outcomes = await process(
        source_image, ["accepted", "rejected", "also accepted"], GenerationMode.VIDEO,
        credentials=credential_store, client=PartiallyAcceptingClient(), ledger=ledger,
        charge_policy=QuotaChargePolicy.ON_ACCEPTED,
    )

    assert [outcome.succeeded for outcome in outcomes] == [True, False, True]
    assert ledger.peek().count == 2


@pytest.mark.asyncio
async def test_concurrent_on_accepted_batches_stay_within_limit(credential_store, source_image):
    ledger = QuotaLedger(store=InMemoryQuotaStore(), limit=3)
    client = ScriptedClient(submit=True, delays={"a": 0.01, "b": 0.01, "c": 0.01, "d": 0.01})

    results = await asyncio.gather(
        process(source_image, ["a", "b"], GenerationMode.VIDEO, credentials=credential_store,
                client=client, ledger=ledger, charge_policy=QuotaChargePolicy.ON_ACCEPTED),
        process(source_image, ["c", "d"], GenerationMode.VIDEO, credentials=credential_store,
                client=client, ledger=ledger, charge_policy=QuotaChargePolicy.ON_ACCEPTED),
        return_exceptions=True,
    )

    refused = [result for result in results if isinstance(result, DailyQuotaExhaustedError)]
    assert len(refused) == 1
    assert len(client.calls) == 2
    assert ledger.peek().count == 2


@pytest.mark.asyncio
async def test_on_accepted_refunds_when_batch_aborts(credential_store, ledger):
    with pytest.raises(ValidationError):
        await process(b"not an image", ["a", "b"], GenerationMode.VIDEO,
                      credentials=credential_store, client=ScriptedClient(), ledger=ledger,
                      charge_policy=QuotaChargePolicy.ON_ACCEPTED)

    assert ledger.peek().count == 0


@pytest.mark.asyncio
async def test_on_accepted_still_gates_before_submitting(credential_store, source_image, ledger):
    for _ in range(10):
        await ledger.increment()
    client = ScriptedClient()

    with pytest.raises(DailyQuotaExhaustedError):
        await process(source_image, ["a"], GenerationMode.VIDEO,
                      credentials=credential_store, client=client, ledger=ledger,
                      charge_policy="on_accepted")

    assert client.calls == []


@pytest.mark.asyncio
async def test_tracker_and_batch_id(credential_store, source_image):
    tracker = LifecycleTracker()

    await process(source_image, ["a"], credentials=credential_store,
                  client=ScriptedClient(), tracker=tracker, batch_id="batch-123")

    assert get_batch_id() == "batch-123"
    [entry] = tracker.entries()
    assert entry.artifact == "data:image/png;base64,a"


@pytest.mark.asyncio
async def test_failure_does_not_raise(credential_store, source_image):
    client = ScriptedClient(script={"a": [TransportError("boom", status_code=502)]})

    [outcome] = await process(source_image, ["a"], credentials=credential_store, client=client)

    assert outcome.error_kind == ErrorKind.TRANSPORT
    assert outcome.error_message == "boom"


@pytest.mark.asyncio
async def test_owned_client_closed_after_batch(credential_store, source_image):
    with patch("modules.batch_generator.process.GenerationClient") as client_cls:
        client = client_cls.return_value
        client.generate = AsyncMock(return_value="data:image/png;base64,AAAA")
        client.close = AsyncMock()

        outcomes = await process(source_image, ["a", "b"], credentials=credential_store)

    client_cls.assert_called_once_with(credentials=credential_store)
    assert client.generate.await_count == 2
    client.close.assert_awaited_once()
    assert all(outcome.succeeded for outcome in outcomes)


@pytest.mark.asyncio
async def test_injected_client_not_closed(credential_store, source_image):
    client = ScriptedClient()
    client.close = AsyncMock()

    await process(source_image, ["a"], credentials=credential_store, client=client)

    client.close.assert_not_awaited()
