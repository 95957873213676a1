"""AI proxy endpoint — POST /api/v1/ai/search.

Checks the caller's origin, applies a per-IP fixed-window rate limit,
validates the question, asks Gemini and returns the answer together with
the OCP area codes and policy numbers it mentions.

Clients only ever see a short error string. Upstream details stay in the logs.
"""

import asyncio
import json
import logging
import re
import time
from urllib.parse import urlparse

import httpx
import mlflow
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from mlflow.entities import SpanType
from pydantic import ValidationError

from ocpexplorer.api.ratelimit import FixedWindowRateLimiter
from ocpexplorer.api.schemas import ProxyErrorResponse
from ocpexplorer.config import settings
from ocpexplorer.core.errors import AIServiceFailure
from ocpexplorer.observability.prompts import get_active_prompt, get_prompt_version
from ocpexplorer.search.contract import AIProxyRequest, AIProxyResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["ai-proxy"])

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions"
GEMINI_MODEL = "gemini-2.5-flash"
LLM_TIMEOUT = httpx.Timeout(connect=10.0, read=60.0, write=10.0, pool=5.0)
MAX_RETRIES = 2
BASE_DELAY = 1.0
TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 1000

ANSWER_CONFIDENCE = 0.85
MIN_QUESTION_LENGTH = 3
MAX_QUESTION_LENGTH = 500
RETRY_SUGGESTION = "Please try again in a few moments or simplify your search."

SUSPICIOUS_PATTERNS = [
    re.compile(r"inject|script|eval|exec", re.IGNORECASE),
    re.compile(r"<script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
]

AREA_CODE_RE = re.compile(r"\b(RD|RM|RH|RHC|ML|MH|BDMU|SGTMC|C|CHC|ME|IN|U)\b")
POLICY_NUMBER_RE = re.compile(r"\b\d+\.\d+[a-z]?\b")

_LOCALHOST_RE = re.compile(r"^https?://localhost:\d+$")

_limiter = FixedWindowRateLimiter(
    max_requests=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds,
)


def reset_rate_limits() -> None:
    """Forget every rate-limit window (used by tests)."""
    _limiter.reset()


# ---------------------------------------------------------------------------
# Request gatekeeping
# ---------------------------------------------------------------------------

def is_allowed_origin(origin: str | None, allowed: list[str] | None = None) -> bool:
    if not origin:
        return False
    allowed = settings.allowed_origins if allowed is None else allowed
    if origin in allowed:
        return True
    # Netlify deploy previews: https://<id>--<site>.netlify.app
    if "--" in origin and ".netlify.app" in origin:
        return True
    return bool(_LOCALHOST_RE.match(origin))


def request_origin(request: Request) -> str | None:
    """Origin header, or the origin part of the Referer when Origin is absent."""
    origin = request.headers.get("origin")
    if origin:
        return origin
    referer = request.headers.get("referer")
    if not referer:
        return None
    parsed = urlparse(referer)
    if not parsed.scheme or not parsed.netloc:
        return referer
    return f"{parsed.scheme}://{parsed.netloc}"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def validate_question(data: object) -> str | None:
    """Return a client-facing error message, or None when the body is acceptable."""
    if not isinstance(data, dict):
        return "Request data must be an object"
    question = data.get("question")
    if not question or not isinstance(question, str):
        return "Question is required and must be a string"
    if len(question) > MAX_QUESTION_LENGTH:
        return f"Question too long (max {MAX_QUESTION_LENGTH} characters)"
    if len(question) < MIN_QUESTION_LENGTH:
        return f"Question too short (min {MIN_QUESTION_LENGTH} characters)"
    if any(p.search(question) for p in SUSPICIOUS_PATTERNS):
        return "Invalid characters in question"
    return None


def _error(status_code: int, error: str, headers: dict | None = None, **extra) -> JSONResponse:
    body = ProxyErrorResponse(error=error, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


# ---------------------------------------------------------------------------
# Prompt + upstream call
# ---------------------------------------------------------------------------

def build_prompt(request: AIProxyRequest) -> list[dict]:
    """Chat messages for one question: system guidelines, then context and question."""
    parts = [f"AVAILABLE DATA CONTEXT:\n{json.dumps(request.context, indent=2)}"]
    if request.location is not None:
        parts.append(
            f"LOCATION CONTEXT: The user is asking about coordinates "
            f"{request.location.lat}, {request.location.lng}"
        )
    parts.append(f"USER QUESTION: {request.question}")
    parts.append("Please provide a helpful, accurate response:")
    return [
        {"role": "system", "content": get_active_prompt("ocp_assistant")},
        {"role": "user", "content": "\n\n".join(parts)},
    ]


def _extract_content(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise AIServiceFailure(f"Unexpected Gemini response structure: {e}") from e
    if not content:
        raise AIServiceFailure("No response from Gemini")
    return content


@mlflow.trace(name="call_gemini", span_type=SpanType.CHAT_MODEL)
async def call_gemini(api_key: str, messages: list[dict]) -> str:
    """Send the messages to Gemini and return the answer text.

    Retries 429/5xx responses and timeouts with exponential backoff.

    Raises:
        AIServiceFailure: when no usable answer arrives.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": GEMINI_MODEL,
        "messages": messages,
        "temperature": TEMPERATURE,
        "max_tokens": MAX_OUTPUT_TOKENS,
    }

    async with httpx.AsyncClient(timeout=LLM_TIMEOUT) as client:
        for attempt in range(MAX_RETRIES + 1):
            last = attempt == MAX_RETRIES
            try:
                resp = await client.post(GEMINI_URL, json=payload, headers=headers)
                resp.raise_for_status()
                content = _extract_content(resp.json())
                logger.info(
                    "Gemini response (model=%s, prompt=%s, attempt %d)",
                    GEMINI_MODEL, get_prompt_version("ocp_assistant"), attempt + 1,
                )
                return content
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if (status == 429 or status >= 500) and not last:
                    delay = BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Gemini %d (attempt %d/%d), retrying in %.1fs",
                        status, attempt + 1, MAX_RETRIES + 1, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error("Gemini API error %d: %s", status, e.response.text[:200])
                raise AIServiceFailure(f"Gemini API error: {status}", status_code=status) from e
            except httpx.TimeoutException as e:
                if last:
                    logger.error("Gemini timed out after %d attempts", MAX_RETRIES + 1)
                    raise AIServiceFailure("Gemini API timeout") from e
                delay = BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Gemini timeout (attempt %d/%d), retrying in %.1fs",
                    attempt + 1, MAX_RETRIES + 1, delay,
                )
                await asyncio.sleep(delay)
            except httpx.HTTPError as e:
                logger.error("Gemini request failed: %s", e)
                raise AIServiceFailure(f"Gemini API fetch failed: {e}") from e
            except ValueError as e:
                raise AIServiceFailure(f"Gemini returned invalid JSON: {e}") from e

    raise AIServiceFailure("Gemini API retries exhausted")


# ---------------------------------------------------------------------------
# Answer post-processing
# ---------------------------------------------------------------------------

def _unique(matches: list[str]) -> list[str]:
    return list(dict.fromkeys(matches))


def extract_mentioned_areas(text: str) -> list[str]:
    return _unique(AREA_CODE_RE.findall(text))


def extract_mentioned_policies(text: str) -> list[str]:
    return _unique(POLICY_NUMBER_RE.findall(text))


def process_answer(answer: str, question: str) -> AIProxyResponse:
    areas = extract_mentioned_areas(answer)
    policies = extract_mentioned_policies(answer)
    return AIProxyResponse(
        answer=answer,
        confidence=ANSWER_CONFIDENCE,
        mentioned_areas=areas,
        mentioned_policies=policies,
        citations=areas + policies,
        timestamp=int(time.time() * 1000),
        query=question,
    )


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@router.post(
    "/ai/search",
    response_model=AIProxyResponse,
    response_model_by_alias=True,
    responses={
        400: {"model": ProxyErrorResponse, "description": "Invalid JSON or question"},
        403: {"model": ProxyErrorResponse, "description": "Origin not allowed"},
        429: {"model": ProxyErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ProxyErrorResponse, "description": "Configuration or upstream failure"},
    },
)
async def ai_search(request: Request):
    """Answer a natural-language OCP question with Gemini."""
    origin = request_origin(request)
    if not is_allowed_origin(origin):
        logger.warning("Rejected AI search from origin %r", origin)
        return _error(403, "Forbidden origin")

    decision = _limiter.check(client_ip(request))
    if not decision.allowed:
        return _error(
            429, "Rate limit exceeded",
            headers={"Retry-After": str(decision.retry_after)},
            message=f"Too many requests. Try again in {decision.retry_after} seconds.",
        )

    try:
        data = json.loads(await request.body())
    except ValueError:
        return _error(400, "Invalid JSON in request body")

    problem = validate_question(data)
    if problem is not None:
        return _error(400, problem)
    try:
        body = AIProxyRequest.model_validate(data)
    except ValidationError as e:
        return _error(400, "Invalid request", message=str(e.errors()[0]["msg"]))

    if not settings.gemini_api_key:
        logger.error("GEMINI_API_KEY not configured")
        return _error(500, "Service configuration error")

    try:
        answer = await call_gemini(settings.gemini_api_key, build_prompt(body))
    except AIServiceFailure as e:
        logger.error("AI proxy upstream failure: %s", e)
        return _error(500, "AI service temporarily unavailable", suggestion=RETRY_SUGGESTION)
    except Exception:
        logger.exception("AI proxy error")
        return _error(500, "Internal server error", suggestion=RETRY_SUGGESTION)

    return process_answer(answer, body.question)
