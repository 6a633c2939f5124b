"""
Main entry point for batch generation.

Checks configuration, applies the daily video quota gate, then runs the
batch orchestrator.
"""
from typing import List, Optional
from uuid import uuid4

from shared.config import settings
from shared.credentials import CredentialStore
from shared.errors import ConfigError, DailyQuotaExhaustedError, ValidationError
from shared.logging import get_logger, set_batch_id
from shared.models.generation import GenerationMode, GenerationOutcome, summarize_outcomes
from shared.quota import QuotaChargePolicy, QuotaLedger
from modules.batch_generator.config import DEFAULT_PROMPTS, BatchOptions
from modules.batch_generator.lifecycle import LifecycleTracker
from modules.batch_generator.orchestrator import BatchOrchestrator
from modules.media_generator.generator import GenerationClient

logger = get_logger("batch_generator.process")


async def process(
    image: bytes,
    prompts: Optional[List[str]] = None,
    mode: GenerationMode = GenerationMode.IMAGE,
    options: Optional[BatchOptions] = None,
    credentials: Optional[CredentialStore] = None,
    ledger: Optional[QuotaLedger] = None,
    client: Optional[GenerationClient] = None,
    tracker: Optional[LifecycleTracker] = None,
    charge_policy: Optional[QuotaChargePolicy] = None,
    batch_id: Optional[str] = None,
) -> List[GenerationOutcome]:
    """
    Generate one artifact per prompt from a single source image.

    Args:
        image: Source image bytes
        prompts: Prompts to run (default: DEFAULT_PROMPTS)
        mode: Image or video generation
        options: Batch options (aspect ratio, concurrency bound)
        credentials: Credential collaborator (default: CredentialStore())
        ledger: Daily video quota ledger (default: file-backed QuotaLedger)
        client: Generation client (default: new GenerationClient, closed afterwards)
        tracker: Lifecycle tracker observed by the presentation layer
        charge_policy: on_attempt keeps every reserved unit, on_accepted refunds units
                of items the backend never accepted (default: settings.quota_charge_policy)
        batch_id: Correlation id injected into logs (default: random)

    Returns:
        Outcomes index-aligned to prompts

    Raises:
        ConfigError: No API key configured; nothing is submitted
        DailyQuotaExhaustedError: Video quota would be exceeded; nothing is submitted
        ValidationError: Empty prompt list or invalid source image
    """
    batch_id = batch_id or uuid4().hex[:12]
    set_batch_id(batch_id)

    prompts = list(DEFAULT_PROMPTS) if prompts is None else list(prompts)
    if not prompts:
        raise ValidationError("At least one prompt is required", batch_id=batch_id)

    credentials = credentials or CredentialStore()
    if not credentials.is_configured():
        logger.error("Batch refused: credentials not configured")
        raise ConfigError(
            "Missing API key. Please configure your credentials before generating.",
            batch_id=batch_id
        )

    on_submitted = None
    accepted = 0
    if mode == GenerationMode.VIDEO:
        ledger = ledger or QuotaLedger()
        policy = QuotaChargePolicy(charge_policy or settings.quota_charge_policy)
        # Both policies reserve every unit at the gate; on_accepted refunds the unused ones
        check = await ledger.check_and_increment(units=len(prompts))
        if not check.allowed:
            raise DailyQuotaExhaustedError(
                f"Daily video limit reached ({check.new_count}/{ledger.limit} used, "
                f"{len(prompts)} requested). Try again tomorrow.",
                batch_id=batch_id
            )
        logger.info(
            "Video quota gate passed",
            extra={"policy": policy.value, "count": check.new_count, "limit": ledger.limit}
        )

        if policy == QuotaChargePolicy.ON_ACCEPTED:
            async def on_submitted() -> None:
                nonlocal accepted
                accepted += 1

    owns_client = client is None
    client = client or GenerationClient(credentials=credentials)
    try:
        orchestrator = BatchOrchestrator(client=client, tracker=tracker)
        outcomes = await orchestrator.run(image, prompts, mode, options, on_submitted=on_submitted)
    finally:
        if owns_client:
            await client.close()
        if on_submitted is not None and accepted < len(prompts):
            await ledger.release(len(prompts) - accepted)

    logger.info("Batch complete", extra=summarize_outcomes(outcomes))
    return outcomes
