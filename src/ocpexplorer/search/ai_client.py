"""Client for the AI proxy endpoint.

Sends the question, a context payload and an optional location as JSON
and validates the single JSON answer. Every failure mode (network error,
timeout, non-200 status, malformed body, open circuit) surfaces as
AIServiceFailure so the orchestrator can fall back to local search.
"""

import logging
import time
from dataclasses import dataclass, field

import httpx
import mlflow
from mlflow.entities import SpanType
from pydantic import ValidationError

from ocpexplorer.core.errors import AIServiceFailure
from ocpexplorer.core.types import GeoPoint
from ocpexplorer.search.contract import AIProxyResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Circuit Breaker: skip the proxy while it is failing
# States: CLOSED (normal) → OPEN (failing) → HALF_OPEN (testing recovery)
# ---------------------------------------------------------------------------

@dataclass
class CircuitBreaker:
    """Circuit breaker for AI proxy calls."""

    failure_threshold: int = 5
    reset_seconds: int = 60
    _failure_count: int = field(default=0, repr=False)
    _last_failure_time: float = field(default=0.0, repr=False)
    _state: str = field(default="closed", repr=False)  # closed, open, half_open

    @property
    def state(self) -> str:
        if self._state == "open":
            if time.monotonic() - self._last_failure_time >= self.reset_seconds:
                self._state = "half_open"
        return self._state

    def allow_request(self) -> bool:
        # half_open lets a single probe through
        return self.state != "open"

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = "closed"

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._failure_count >= self.failure_threshold or self._state == "half_open":
            self._state = "open"
            logger.warning(
                "AI proxy circuit breaker OPEN after %d failures (reset in %ds)",
                self._failure_count, self.reset_seconds,
            )


class AIProxyClient:
    def __init__(
        self,
        url: str,
        origin: str = "",
        timeout_seconds: float = 30.0,
        breaker: CircuitBreaker | None = None,
    ):
        self.url = url
        self.origin = origin
        # Fail fast on connect, generous on read (LLM generation)
        self.timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self.breaker = breaker or CircuitBreaker()

    @mlflow.trace(name="ai_proxy_search", span_type=SpanType.TOOL)
    async def ask(
        self,
        question: str,
        context: dict,
        location: GeoPoint | None = None,
        max_results: int | None = None,
    ) -> AIProxyResponse:
        """POST a question to the proxy and return the validated answer.

        Raises:
            AIServiceFailure: on any unsuccessful call.
        """
        if not self.breaker.allow_request():
            raise AIServiceFailure("AI proxy circuit open — skipping AI search")

        payload: dict = {"question": question, "context": context, "maxResults": max_results}
        if location is not None:
            payload["location"] = {"lat": location.lat, "lng": location.lng}

        headers = {"Content-Type": "application/json"}
        if self.origin:
            headers["Origin"] = self.origin

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            self.breaker.record_failure()
            raise AIServiceFailure(f"AI proxy unreachable: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            # Rejected input says nothing about proxy health
            if resp.status_code == 429 or resp.status_code >= 500:
                self.breaker.record_failure()
            raise AIServiceFailure(
                f"AI search failed: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            answer = AIProxyResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            self.breaker.record_failure()
            raise AIServiceFailure(f"Malformed AI proxy response: {e}") from e

        self.breaker.record_success()
        logger.info(
            "AI proxy answered (confidence=%s, %d areas mentioned)",
            answer.confidence, len(answer.mentioned_areas),
        )
        return answer
