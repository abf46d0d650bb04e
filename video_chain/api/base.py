"""
Base Job Client
===============

Abstract base class for remote video generation job APIs, with shared
request validation, error translation, status polling and content download.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Tuple
import httpx

from ..core.exceptions import (
    ValidationError,
    TransportError,
    RemoteError,
    RateLimitError,
    JobFailedError,
)
from ..core.scheduling import Clock, SystemClock, CancelToken, Deadline, PollSchedule
from ..core.security import sanitize_prompt, redact_api_key

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================


DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_RETRY_MULTIPLIER = 2.0
DEFAULT_TIMEOUT = 300


# =============================================================================
# Data Classes
# =============================================================================


class JobStatus(Enum):
    """Status of a remote generation job."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_provider_status(cls, status: Optional[str]) -> "JobStatus":
        """Normalize provider-specific status strings to JobStatus."""
        status_lower = (status or "").lower().strip()

        if status_lower in ("completed", "succeeded", "done", "success", "finished"):
            return cls.COMPLETED

        if status_lower in ("failed", "error", "failure", "errored", "cancelled", "canceled", "expired"):
            return cls.FAILED

        if status_lower in ("queued", "pending", "in_queue", "waiting", "scheduled"):
            return cls.QUEUED

        if status_lower in ("in_progress", "processing", "running", "started", "generating"):
            return cls.IN_PROGRESS

        # Unrecognised or missing statuses are terminal
        return cls.FAILED

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def label(self) -> str:
        return "Queued" if self is JobStatus.QUEUED else "Processing"


@dataclass(frozen=True)
class FrameSize:
    """Frame dimensions in pixels, written ``WIDTHxHEIGHT`` on the wire."""

    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValidationError(
                f"Frame size must be positive, got {self.width}x{self.height}",
                field="frame_size",
                value=f"{self.width}x{self.height}",
            )

    @classmethod
    def parse(cls, size: str) -> "FrameSize":
        """Parse a size string such as ``"1280x720"``."""
        parts = (size or "").lower().strip().split("x")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValidationError(
                f"Invalid frame size: {size!r}",
                field="frame_size",
                value=size,
                constraint="WIDTHxHEIGHT",
            )
        return cls(int(parts[0]), int(parts[1]))

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass
class GenerationRequest:
    """Request parameters for one segment generation."""

    prompt_text: str
    frame_size: FrameSize
    duration_seconds: int
    model: str
    # Continuity frame (JPEG bytes) taken from the previous segment
    reference_image: Optional[bytes] = None

    def __post_init__(self):
        self.prompt_text = sanitize_prompt(self.prompt_text)
        if isinstance(self.frame_size, str):
            self.frame_size = FrameSize.parse(self.frame_size)


@dataclass
class RemoteJob:
    """Snapshot of a provider-owned generation job."""

    id: str
    status: JobStatus = JobStatus.QUEUED
    progress_percent: float = 0.0
    error_detail: Optional[str] = None
    # Status string as the provider sent it
    provider_status: Optional[str] = None

    def __post_init__(self):
        self.progress_percent = min(max(float(self.progress_percent or 0.0), 0.0), 100.0)

    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class ModelConstraints:
    """What a model accepts: allowed frame sizes and durations."""

    sizes: Tuple[str, ...]
    durations: Tuple[int, ...] = (4, 8, 12)


ProgressCallback = Callable[[JobStatus, float], None]


# =============================================================================
# Base Client Class
# =============================================================================


class BaseJobClient(ABC):
    """
    Abstract base class for remote generation job clients.

    Features:
    - Static per-model constraint validation before any network call
    - httpx error translation into TransportError / RemoteError
    - Cooperative polling with an injectable clock
    - Optional bounded retry of transient polling failures
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        poll_retries: int = 0,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key (or read from environment)
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            poll_retries: Transient poll failures tolerated per poll (0 = none)
            retry_delay: Initial delay before a poll retry, doubled each time
            clock: Clock used for poll waits and retry delays
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or self._get_api_key_from_env()
        self.base_url = (base_url or self._get_default_base_url()).rstrip("/")
        self.timeout = timeout
        self.poll_retries = poll_retries
        self.retry_delay = retry_delay
        self.clock = clock or SystemClock()
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

        self._validate_config()

    # -------------------------------------------------------------------------
    # Abstract Methods (must be implemented by subclasses)
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""

    @property
    @abstractmethod
    def env_key_name(self) -> str:
        """Return the environment variable name for the API key."""

    @property
    @abstractmethod
    def model_constraints(self) -> Dict[str, ModelConstraints]:
        """Return the constraint table keyed by model identifier."""

    @abstractmethod
    def _get_default_base_url(self) -> str:
        """Return the default base URL for this provider."""

    @abstractmethod
    async def _create_job(self, request: GenerationRequest) -> Dict[str, Any]:
        """Send the job-submission request and return the raw job payload."""

    @abstractmethod
    async def _retrieve_job(self, job_id: str) -> Dict[str, Any]:
        """Fetch the raw job payload."""

    @abstractmethod
    async def _download_content(self, job_id: str) -> bytes:
        """Fetch the raw video bytes of a completed job."""

    # -------------------------------------------------------------------------
    # Public Operations
    # -------------------------------------------------------------------------

    @property
    def supported_models(self) -> List[str]:
        return list(self.model_constraints.keys())

    def validate_request(self, request: GenerationRequest) -> None:
        """Reject requests the model would refuse, without touching the network."""
        constraints = self.model_constraints.get(request.model)
        if constraints is None:
            raise ValidationError(
                f"Unknown model: {request.model}",
                field="model",
                value=request.model,
                constraint=f"one of {self.supported_models}",
            )
        if request.duration_seconds not in constraints.durations:
            raise ValidationError(
                f"Duration {request.duration_seconds}s is not allowed for model {request.model}",
                field="duration_seconds",
                value=request.duration_seconds,
                constraint=f"one of {list(constraints.durations)}",
            )
        if str(request.frame_size) not in constraints.sizes:
            raise ValidationError(
                f"Size {request.frame_size} is not allowed for model {request.model}",
                field="frame_size",
                value=str(request.frame_size),
                constraint=f"one of {list(constraints.sizes)}",
            )
        if not request.prompt_text:
            raise ValidationError("Prompt is empty", field="prompt_text")

    async def submit(self, request: GenerationRequest) -> RemoteJob:
        """
        Submit a generation request.

        Raises:
            ValidationError: request violates the model's constraints
            TransportError: provider unreachable
            RemoteError: provider rejected the request
        """
        self.validate_request(request)

        logger.info(
            f"Submitting {request.duration_seconds}s {request.frame_size} job to {self.provider_name} "
            f"({request.model}, reference={'yes' if request.reference_image else 'no'})"
        )
        data = await self._create_job(request)
        job = self._parse_job(data)
        if not job.id:
            raise RemoteError(
                "Provider response carried no job id",
                provider=self.provider_name,
                response_body=str(data),
            )
        logger.info(f"Created job {job.id} ({job.status.value})")
        return job

    async def poll(self, job_id: str) -> RemoteJob:
        """Read the current state of a job. Idempotent."""
        attempt = 0
        while True:
            try:
                return self._parse_job(await self._retrieve_job(job_id))
            except (TransportError, RemoteError) as e:
                if not e.recoverable or attempt >= self.poll_retries:
                    raise
                attempt += 1
                delay = self.retry_delay * (DEFAULT_RETRY_MULTIPLIER ** (attempt - 1))
                logger.warning(f"Poll of job {job_id} failed ({e}); retry {attempt}/{self.poll_retries} in {delay:.1f}s")
                await self.clock.sleep(delay)

    async def await_completion(
        self,
        job: RemoteJob,
        on_progress: Optional[ProgressCallback] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancelToken] = None,
        deadline: Optional[Deadline] = None,
    ) -> RemoteJob:
        """
        Poll a job until it reaches a terminal state.

        Args:
            job: Job returned by ``submit``
            on_progress: Called with (status, percent) before every wait
            poll_interval: Seconds between status checks
            timeout: Optional bound on this wait in seconds
            cancel_token: Checked before every poll
            deadline: Optional enclosing deadline (e.g. the whole run)

        Returns:
            The completed job

        Raises:
            JobFailedError: the job reached its failed state
            DeadlineExceededError: ``timeout`` or ``deadline`` elapsed
            RunCancelledError: ``cancel_token`` was cancelled
        """
        deadlines = [deadline]
        if timeout is not None:
            deadlines.append(Deadline(self.clock, timeout, operation=f"await job {job.id}"))
        schedule = PollSchedule(
            interval=poll_interval,
            clock=self.clock,
            cancel_token=cancel_token,
            deadlines=deadlines,
        )

        reported = 0.0
        current = job
        while current.status in (JobStatus.QUEUED, JobStatus.IN_PROGRESS):
            reported = max(reported, current.progress_percent)
            if on_progress is not None:
                on_progress(current.status, reported)
            logger.debug(f"Job {current.id} status: {current.status.value} {reported:.1f}%, waiting...")

            await schedule.wait()
            current = await self.poll(job.id)

        if current.status is not JobStatus.COMPLETED:
            reported_status = current.provider_status or current.status.value
            message = current.error_detail or f"Job {job.id} failed with status: {reported_status}"
            raise JobFailedError(message, job_id=job.id, error_detail=current.error_detail)

        logger.info(f"Job {job.id} completed after {schedule.attempts} polls")
        return current

    async def fetch_content(self, job_id: str) -> bytes:
        """Download the video bytes of a completed job."""
        data = await self._download_content(job_id)
        if not data:
            raise RemoteError(
                f"Empty content for job {job_id}",
                provider=self.provider_name,
            )
        logger.info(f"Downloaded {len(data)} bytes for job {job_id}")
        return data

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def _parse_job(self, data: Dict[str, Any]) -> RemoteJob:
        """Parse a provider job payload into a RemoteJob."""
        raw_status = data.get("status") or data.get("state")
        status = JobStatus.from_provider_status(raw_status)
        error_detail = None
        if status is JobStatus.FAILED:
            error_detail = self._extract_error(data)
        try:
            progress = float(data.get("progress") or 0.0)
        except (TypeError, ValueError):
            progress = 0.0
        return RemoteJob(
            id=str(data.get("id") or data.get("job_id") or ""),
            status=status,
            progress_percent=progress,
            error_detail=error_detail,
            provider_status=str(raw_status) if raw_status is not None else None,
        )

    def _extract_error(self, data: Dict[str, Any]) -> Optional[str]:
        """Extract error message from a job payload."""
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("code")
        return error or data.get("error_message") or None

    async def _send(self, method: str, url: str, operation: str, **kwargs) -> httpx.Response:
        """Issue an HTTP request, translating failures into the error taxonomy."""
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(
                f"Network error during {operation}: cannot connect to {self.provider_name}",
                operation=operation,
            ) from e

        if response.is_success:
            return response

        message = self._error_message_from_response(response, operation)
        logger.error(f"{self.provider_name} {operation} failed: {redact_api_key(message)}")
        if response.status_code == 429:
            raise RateLimitError(
                message,
                provider=self.provider_name,
                response_body=response.text,
            )
        raise RemoteError(
            message,
            provider=self.provider_name,
            status_code=response.status_code,
            response_body=response.text,
        )

    def _json_body(self, response: httpx.Response, operation: str) -> Dict[str, Any]:
        """Decode a successful JSON response; anything else is a provider error."""
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(
                f"Invalid JSON in {operation} response from {self.provider_name}",
                provider=self.provider_name,
                status_code=response.status_code,
                response_body=response.text,
            ) from e
        if not isinstance(payload, dict):
            raise RemoteError(
                f"Unexpected {operation} response from {self.provider_name}: {type(payload).__name__}",
                provider=self.provider_name,
                status_code=response.status_code,
                response_body=response.text,
            )
        return payload

    @staticmethod
    def _error_message_from_response(response: httpx.Response, operation: str) -> str:
        """Prefer the provider's message, then the raw body, then the status."""
        fallback = f"Failed to {operation}: {response.status_code}"
        try:
            payload = response.json()
        except ValueError:
            return response.text.strip() or fallback
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str) and error:
                return error
        return fallback

    def _get_api_key_from_env(self) -> Optional[str]:
        """Get API key from environment variable."""
        return os.getenv(self.env_key_name)

    def _validate_config(self) -> None:
        """Validate the client configuration."""
        if not self.api_key:
            logger.warning(
                f"No API key found for {self.provider_name}. "
                f"Set {self.env_key_name} environment variable or pass api_key parameter."
            )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout),
                    headers=self._get_headers(),
                    transport=self._transport,
                )
            return self._client

    def _get_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        return {
            "Authorization": f"Bearer {self.api_key}",
        }

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client."""
        async with self._client_lock:
            if self._client:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
