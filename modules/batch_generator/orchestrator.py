"""
Parallel batch orchestration.

Fans a prompt list out to concurrent generation tasks, each wrapped in the
retry policy, and collects one settled outcome per prompt in input order.
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from shared.config import settings
from shared.errors import ErrorKind, ValidationError
from shared.image_processing import detect_mime_type
from shared.logging import get_logger
from shared.models.generation import (
    GenerationMode,
    GenerationOutcome,
    GenerationRequest,
    summarize_outcomes,
)
from shared.retry import RetryPolicy, classify_error
from modules.batch_generator.config import BatchOptions
from modules.batch_generator.lifecycle import LifecycleTracker, make_item_id
from modules.media_generator.generator import GenerationClient

logger = get_logger("batch_generator.orchestrator")

OnSubmitted = Callable[[], Awaitable[Any]]


class BatchOrchestrator:
    """
    Runs one generation task per prompt and never lets one failure abort the rest.

    Usage:
        orchestrator = BatchOrchestrator(client=GenerationClient())
        outcomes = await orchestrator.run(image_bytes, prompts, GenerationMode.IMAGE)
    """

    def __init__(
        self,
        client: Optional[GenerationClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        tracker: Optional[LifecycleTracker] = None,
    ):
        self.client = client or GenerationClient()
        self.retry_policy = retry_policy or RetryPolicy()
        self.tracker = tracker or LifecycleTracker()

    def _once(self, hook: Optional[OnSubmitted]) -> Optional[OnSubmitted]:
        """Wrap a submission hook so retries of one item invoke it only once."""
        if hook is None:
            return None
        fired = False

        async def wrapper() -> None:
            nonlocal fired
            if fired:
                return
            fired = True
            await hook()

        return wrapper

    async def _run_item(
        self,
        index: int,
        request: GenerationRequest,
        semaphore: Optional[asyncio.Semaphore],
        on_submitted: Optional[OnSubmitted],
    ) -> GenerationOutcome:
        """Generate one item and convert any failure into an outcome."""
        item_id = make_item_id(index)
        hook = self._once(on_submitted)

        async def attempt() -> str:
            return await self.client.generate(request, on_submitted=hook)

        try:
            if semaphore is not None:
                async with semaphore:
                    artifact = await self.retry_policy.execute(attempt, label=item_id)
            else:
                artifact = await self.retry_policy.execute(attempt, label=item_id)
        except Exception as e:
            error_kind = classify_error(e)
            error_message = str(e) or type(e).__name__
            logger.warning(
                f"Item {item_id} failed: {error_message}",
                extra={"item_id": item_id, "error_kind": error_kind.value}
            )
            self.tracker.fail(item_id, error_message)
            return GenerationOutcome(
                index=index,
                prompt=request.prompt,
                error_kind=error_kind,
                error_message=error_message,
            )

        self.tracker.complete(item_id, artifact)
        logger.info(f"Item {item_id} succeeded", extra={"item_id": item_id})
        return GenerationOutcome(index=index, prompt=request.prompt, artifact=artifact)

    async def run(
        self,
        image: bytes,
        prompts: List[str],
        mode: GenerationMode = GenerationMode.IMAGE,
        options: Optional[BatchOptions] = None,
        on_submitted: Optional[OnSubmitted] = None,
    ) -> List[GenerationOutcome]:
        """
        Generate one artifact per prompt concurrently.

        For video mode the caller must already have passed the quota gate.

        Args:
            image: Source image bytes
            prompts: Ordered prompt list
            mode: Image or video
            options: Aspect ratio, concurrency bound (default: MAX_CONCURRENCY), source MIME type
            on_submitted: Awaited once per item when the backend accepts a video operation

        Returns:
            Outcomes index-aligned to prompts, whatever the completion order

        Raises:
            ValidationError: Empty prompt list or empty image
        """
        options = options or BatchOptions()
        if not prompts:
            raise ValidationError("At least one prompt is required")
        if not image:
            raise ValidationError("Source image is empty")

        mime_type = options.source_mime_type or detect_mime_type(image)
        requests = [
            GenerationRequest(
                source_image=image,
                source_mime_type=mime_type,
                prompt=prompt,
                mode=mode,
                aspect_ratio=options.aspect_ratio,
            )
            for prompt in prompts
        ]

        self.tracker.begin_batch(list(prompts))
        max_concurrency = options.max_concurrency or settings.concurrency_limit
        semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

        logger.info(
            f"Starting batch of {len(prompts)} {mode.value} item(s)",
            extra={"mode": mode.value, "max_concurrency": max_concurrency}
        )

        results = await asyncio.gather(
            *(self._run_item(index, request, semaphore, on_submitted) for index, request in enumerate(requests)),
            return_exceptions=True,
        )

        outcomes: List[GenerationOutcome] = []
        for index, result in enumerate(results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                # _run_item converts every Exception, so this is an escaped BaseException
                logger.error(
                    f"Item {make_item_id(index)} settled with unexpected exception",
                    exc_info=result
                )
                self.tracker.fail(make_item_id(index), "Processing failed")
                outcomes.append(GenerationOutcome(
                    index=index,
                    prompt=prompts[index],
                    error_kind=ErrorKind.OTHER,
                    error_message="Processing failed",
                ))
                continue
            if result.index != index:
                raise RuntimeError(f"Outcome order violated: expected {index}, got {result.index}")
            outcomes.append(result)

        logger.info("Batch settled", extra=summarize_outcomes(outcomes))
        return outcomes
