"""
Gemini / Veo API integration for single artifact generation.

Handles one request/response cycle per prompt: a single-shot
generateContent call for images, and the long-running
submit → poll → validate → fetch protocol for videos.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from shared.config import settings
from shared.credentials import CredentialStore
from shared.errors import (
    ContentFilteredError,
    DailyQuotaExhaustedError,
    EmptyResultError,
    ErrorKind,
    GenerationTimeoutError,
    PipelineError,
    RateLimitError,
    RetryableEmptyResultError,
    TransportError,
)
from shared.image_processing import prepare_video_frame
from shared.logging import get_logger
from shared.models.credentials import Credentials
from shared.models.generation import GenerationMode, GenerationRequest
from shared.retry import classify_message
from modules.media_generator.config import (
    DEFAULT_VIDEO_MIME_TYPE,
    build_image_payload,
    build_video_payload,
    get_generate_content_url,
    get_operation_url,
    get_predict_long_running_url,
    to_data_uri,
)

logger = get_logger("media_generator.generator")

OnSubmitted = Callable[[], Awaitable[Any]]


def raise_for_backend_error(response: httpx.Response, context: str) -> None:
    """
    Map a non-2xx backend response onto the error taxonomy.

    Args:
        response: HTTP response
        context: Short description of the call for the error message

    Raises:
        DailyQuotaExhaustedError: Per-day limit marker in the body
        RateLimitError: HTTP 429 or RESOURCE_EXHAUSTED / quota in the body
        TransportError: Any other non-2xx status
    """
    if response.is_success:
        return

    body = response.text[:500]
    message = f"{context} HTTP {response.status_code}: {body}"
    kind = classify_message(body, response.status_code)
    if kind == ErrorKind.DAILY_QUOTA_EXHAUSTED:
        raise DailyQuotaExhaustedError(message)
    if kind == ErrorKind.RATE_LIMITED:
        raise RateLimitError(message)
    raise TransportError(message, status_code=response.status_code)


def extract_inline_artifact(body: Dict[str, Any]) -> Optional[str]:
    """
    Return the first inline artifact of a generateContent response as a data URI.

    Args:
        body: Parsed JSON response

    Returns:
        Data URI, or None when no candidate carries inline data
    """
    for candidate in body.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        for part in parts:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return f"data:{mime_type};base64,{inline['data']}"
    return None


def extract_video_uri(operation: Dict[str, Any]) -> Optional[str]:
    """
    Validate a completed operation and return its video URI.

    Args:
        operation: Parsed operation status with done == true

    Returns:
        Video URI, or None when the response carries no sample

    Raises:
        ContentFilteredError: raiMediaFilteredCount > 0
    """
    response = operation.get("response") or {}
    result = response.get("generateVideoResponse") or response

    filtered_count = result.get("raiMediaFilteredCount") or 0
    if filtered_count > 0:
        reasons = [str(reason) for reason in result.get("raiMediaFilteredReasons") or []]
        joined = "; ".join(reasons) if reasons else "no reason given"
        raise ContentFilteredError(f"Video blocked by safety filter: {joined}", reasons=reasons)

    samples = result.get("generatedSamples") or result.get("generatedVideos") or []
    if not samples:
        return None
    return (samples[0].get("video") or {}).get("uri") or None


def append_api_key(uri: str, api_key: str) -> str:
    """Authenticate an artifact URI with a key query parameter."""
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={api_key}"


class GenerationClient:
    """
    Client for a single image or video generation.

    Credentials are read from the CredentialStore at the start of every
    request, so a credential change mid-batch only affects later requests.

    Usage:
        client = GenerationClient()
        artifact = await client.generate(request)  # data URI
        await client.close()
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        api_base: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_polls: Optional[int] = None,
        retry_empty_results: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.credentials = credentials or CredentialStore()
        self.api_base = (api_base or settings.gemini_api_base).rstrip("/")
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.max_polls = max_polls or settings.video_max_polls
        self.retry_empty_results = (
            settings.retry_empty_results if retry_empty_results is None else retry_empty_results
        )
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.http_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "GenerationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _auth_headers(credentials: Credentials) -> Dict[str, str]:
        return {"x-goog-api-key": credentials.api_key, "Content-Type": "application/json"}

    async def _send(self, method: str, url: str, context: str, **kwargs: Any) -> httpx.Response:
        """Issue a request, translating any httpx.RequestError into TransportError."""
        client = await self._get_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"{context} failed: {type(e).__name__}: {str(e)}") from e

    @staticmethod
    def _parse_json(response: httpx.Response, context: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{context} returned invalid JSON", status_code=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise TransportError(f"{context} returned unexpected payload type {type(body).__name__}")
        return body

    def _empty_result(self, message: str) -> PipelineError:
        if self.retry_empty_results:
            return RetryableEmptyResultError(message)
        return EmptyResultError(message)

    async def generate(self, request: GenerationRequest, on_submitted: Optional[OnSubmitted] = None) -> str:
        """
        Generate one artifact for request.

        Args:
            request: Generation request
            on_submitted: Awaited once the backend accepts a video operation

        Returns:
            Artifact as a data URI
        """
        if request.mode == GenerationMode.VIDEO:
            return await self.generate_video(request, on_submitted=on_submitted)
        return await self.generate_image(request)

    async def generate_image(self, request: GenerationRequest) -> str:
        """
        Single-shot image generation.

        Raises:
            ConfigError: No API key configured
            RateLimitError / DailyQuotaExhaustedError / TransportError: Backend rejected the call
            EmptyResultError: Response carried no inline artifact
        """
        credentials = self.credentials.require()
        model = credentials.model_override or settings.image_model
        url = get_generate_content_url(model, self.api_base)

        logger.info("Submitting image generation", extra={"model": model, "prompt": request.prompt[:80]})
        response = await self._send(
            "POST", url, "Image generation",
            json=build_image_payload(request),
            headers=self._auth_headers(credentials),
        )
        raise_for_backend_error(response, "Image generation")
        body = self._parse_json(response, "Image generation")

        artifact = extract_inline_artifact(body)
        if artifact is None:
            block_reason = (body.get("promptFeedback") or {}).get("blockReason")
            detail = f" (blockReason: {block_reason})" if block_reason else ""
            raise self._empty_result(f"Image generation produced no artifact{detail}")
        return artifact

    async def generate_video(self, request: GenerationRequest, on_submitted: Optional[OnSubmitted] = None) -> str:
        """
        Long-running video generation.

        Crops the source image, submits the operation, polls until done,
        validates the result and fetches the video bytes.

        Raises:
            ContentFilteredError: Safety filter removed the output
            GenerationTimeoutError: Operation not done within the poll ceiling
            EmptyResultError: Completed operation has no video URI
            TransportError: Artifact fetch returned non-2xx
        """
        credentials = self.credentials.require()
        frame = await asyncio.to_thread(prepare_video_frame, request.source_image, request.aspect_ratio)

        operation_name = await self.submit_video_operation(request, frame, credentials)
        if on_submitted is not None:
            await on_submitted()

        operation = await self.poll_operation(operation_name, credentials)
        video_uri = extract_video_uri(operation)
        if not video_uri:
            raise self._empty_result(f"Video operation {operation_name} completed without a video")

        video_bytes, mime_type = await self.fetch_artifact(video_uri, credentials)
        logger.info(
            "Video generation complete",
            extra={"operation": operation_name, "size_bytes": len(video_bytes)}
        )
        return to_data_uri(video_bytes, mime_type)

    async def submit_video_operation(
        self,
        request: GenerationRequest,
        frame: bytes,
        credentials: Credentials,
    ) -> str:
        """Create the long-running operation and return its name."""
        url = get_predict_long_running_url(settings.video_model, self.api_base)
        response = await self._send(
            "POST", url, "Video submission",
            json=build_video_payload(request, frame),
            headers=self._auth_headers(credentials),
        )
        raise_for_backend_error(response, "Video submission")
        body = self._parse_json(response, "Video submission")

        operation_name = body.get("name")
        if not operation_name:
            raise TransportError("Video submission returned no operation name")
        logger.info(
            "Video operation submitted",
            extra={"operation": operation_name, "aspect_ratio": request.aspect_ratio.value}
        )
        return operation_name

    async def poll_operation(self, operation_name: str, credentials: Credentials) -> Dict[str, Any]:
        """
        Poll an operation until done.

        Waits poll_interval before every poll. A failed poll is logged and
        the next one attempted; only running out of polls is fatal.

        Raises:
            GenerationTimeoutError: max_polls exhausted
        """
        url = get_operation_url(operation_name, self.api_base)
        headers = {"x-goog-api-key": credentials.api_key}

        for poll in range(1, self.max_polls + 1):
            await self._sleep(self.poll_interval)
            try:
                response = await self._send("GET", url, "Operation poll", headers=headers)
                raise_for_backend_error(response, "Operation poll")
                status = self._parse_json(response, "Operation poll")
            except PipelineError as e:
                logger.warning(
                    f"Poll {poll}/{self.max_polls} failed, continuing: {str(e)}",
                    extra={"operation": operation_name, "poll": poll}
                )
                continue

            if status.get("done"):
                error = status.get("error")
                if error:
                    self._raise_operation_error(operation_name, error)
                logger.info("Video operation done", extra={"operation": operation_name, "polls": poll})
                return status

            logger.debug("Video operation pending", extra={"operation": operation_name, "poll": poll})

        raise GenerationTimeoutError(
            f"Video operation {operation_name} not done after {self.max_polls} polls "
            f"({self.max_polls * self.poll_interval:.0f}s)"
        )

    @staticmethod
    def _raise_operation_error(operation_name: str, error: Dict[str, Any]) -> None:
        message = error.get("message") or str(error)
        full_message = f"Video operation {operation_name} failed: {message}"
        kind = classify_message(message)
        if kind == ErrorKind.DAILY_QUOTA_EXHAUSTED:
            raise DailyQuotaExhaustedError(full_message)
        if kind == ErrorKind.RATE_LIMITED:
            raise RateLimitError(full_message)
        raise TransportError(full_message, status_code=error.get("code"))

    async def fetch_artifact(self, uri: str, credentials: Credentials) -> Tuple[bytes, str]:
        """
        Download the generated video.

        Returns:
            (bytes, mime type)

        Raises:
            TransportError: Non-2xx response, carrying the status code
        """
        response = await self._send(
            "GET", append_api_key(uri, credentials.api_key), "Video download",
            follow_redirects=True,
        )
        if not response.is_success:
            raise TransportError(
                f"Video download failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        mime_type = content_type if content_type.startswith("video/") else DEFAULT_VIDEO_MIME_TYPE
        return response.content, mime_type
