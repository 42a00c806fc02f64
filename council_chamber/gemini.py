"""Gemini API client for council model calls."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from . import config
from .deliberation import Citation
from .telemetry import is_telemetry_enabled, mark_span_error, trace_span

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0

# Transport retry for transient HTTP failures (distinct from model fallback)
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0
RETRYABLE_STATUS_CODES = frozenset({408, 429, 502, 503, 504})

_shared_client: httpx.AsyncClient | None = None


@dataclass(frozen=True)
class ModelError:
    """A failed model call, returned instead of raised."""

    model: str
    status_code: int | None
    category: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "model": self.model,
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
        }


@dataclass
class ModelReply:
    """A successful model call."""

    model: str
    text: str
    citations: list[Citation] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)


def is_model_error(result: Any) -> bool:
    """Check whether a gateway result is a failure."""
    return isinstance(result, ModelError)


def _classify_error(status_code: int | None) -> str:
    """Map an HTTP status (or its absence) to an error category."""
    if status_code is None:
        return "timeout"
    if status_code == 402:
        return "billing"
    if status_code in (401, 403):
        return "auth"
    if status_code == 429:
        return "rate_limit"
    if status_code in (408, 502, 503, 504):
        return "transient"
    return "unknown"


def get_shared_client() -> httpx.AsyncClient:
    """Return the process-wide HTTP client, creating it on first use."""
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
    return _shared_client


async def close_shared_client() -> None:
    """Close the shared HTTP client. Safe to call repeatedly."""
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None


async def _extract_error_message(response: httpx.Response) -> str:
    """Pull the error message out of a Gemini error body."""
    try:
        await response.aread()
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError, httpx.HTTPError):
        return f"HTTP {response.status_code}"


def build_request_body(
    prompt: str,
    *,
    system_instruction: str | None = None,
    temperature: float | None = None,
    enable_search_tool: bool = False,
    max_output_tokens: int | None = None,
    response_mime_type: str | None = None,
) -> dict[str, Any]:
    """
    Build a generateContent request body.

    Args:
        prompt: User prompt text
        system_instruction: Optional system instruction
        temperature: Optional sampling temperature
        enable_search_tool: Attach the Google Search grounding tool
        max_output_tokens: Optional output token limit
        response_mime_type: Optional response MIME type (e.g. application/json)

    Returns:
        JSON-serializable request body
    """
    body: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
    }
    if system_instruction:
        body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

    generation_config: dict[str, Any] = {}
    if temperature is not None:
        generation_config["temperature"] = temperature
    if max_output_tokens is not None:
        generation_config["maxOutputTokens"] = max_output_tokens
    if response_mime_type:
        generation_config["responseMimeType"] = response_mime_type
    if generation_config:
        body["generationConfig"] = generation_config

    if enable_search_tool:
        body["tools"] = [{"google_search": {}}]
    return body


def parse_reply(model: str, data: dict[str, Any], latency_ms: int = 0) -> ModelReply:
    """
    Turn a generateContent response body into a ModelReply.

    Raises:
        ValueError: If the body carries no candidates
    """
    candidates = data.get("candidates") or []
    if not candidates:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        raise ValueError(f"No candidates in response (blockReason: {block_reason})")

    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(
        part.get("text", "") for part in parts if not part.get("thought")
    )

    citations = []
    grounding = candidate.get("groundingMetadata") or {}
    for chunk in grounding.get("groundingChunks") or []:
        web = chunk.get("web")
        if web and web.get("uri"):
            citations.append(Citation(uri=web["uri"], title=web.get("title", "")))

    usage = data.get("usageMetadata", {})
    metrics = {
        "prompt_tokens": usage.get("promptTokenCount", 0),
        "completion_tokens": usage.get("candidatesTokenCount", 0),
        "total_tokens": usage.get("totalTokenCount", 0),
        "latency_ms": latency_ms,
        "model_version": data.get("modelVersion"),
        "finish_reason": candidate.get("finishReason"),
    }
    return ModelReply(model=model, text=text, citations=citations, metrics=metrics)


async def invoke_model(
    model: str,
    prompt: str,
    *,
    system_instruction: str | None = None,
    temperature: float | None = None,
    enable_search_tool: bool = False,
    max_output_tokens: int | None = None,
    response_mime_type: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ModelReply | ModelError:
    """
    Invoke a single Gemini model.

    Transient HTTP failures are retried with exponential backoff; every
    other failure is returned as a ModelError.

    Args:
        model: Gemini model identifier (e.g., "gemini-flash-lite-latest")
        prompt: User prompt text
        system_instruction: Optional system instruction
        temperature: Optional sampling temperature
        enable_search_tool: Attach the Google Search grounding tool
        max_output_tokens: Optional output token limit
        response_mime_type: Optional response MIME type
        timeout: Request timeout in seconds

    Returns:
        ModelReply on success, ModelError on failure
    """
    if not config.GEMINI_API_KEY:
        return ModelError(model=model, status_code=None, category="auth", message="GEMINI_API_KEY not set")

    span_attributes = {
        "llm.model": model,
        "llm.prompt_chars": len(prompt),
        "llm.search_tool": enable_search_tool,
    }

    with trace_span("llm.invoke_model", span_attributes) as span:
        url = f"{config.GEMINI_API_URL.rstrip('/')}/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": config.GEMINI_API_KEY,
            "Content-Type": "application/json",
        }
        body = build_request_body(
            prompt,
            system_instruction=system_instruction,
            temperature=temperature,
            enable_search_tool=enable_search_tool,
            max_output_tokens=max_output_tokens,
            response_mime_type=response_mime_type,
        )
        client = get_shared_client()

        error: ModelError | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            start_time = time.monotonic()
            try:
                response = await client.post(url, headers=headers, json=body, timeout=timeout)
                response.raise_for_status()
                latency_ms = int((time.monotonic() - start_time) * 1000)
                reply = parse_reply(model, response.json(), latency_ms)

                if is_telemetry_enabled():
                    span.set_attributes({
                        "llm.prompt_tokens": reply.metrics["prompt_tokens"],
                        "llm.completion_tokens": reply.metrics["completion_tokens"],
                        "llm.total_tokens": reply.metrics["total_tokens"],
                        "llm.latency_ms": latency_ms,
                        "llm.citation_count": len(reply.citations),
                    })
                return reply

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status in RETRYABLE_STATUS_CODES and attempt < MAX_RETRIES:
                    delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                    logger.warning(
                        "Retrying model call. Model: %s, Status: %d, Attempt: %d/%d, Delay: %.1fs",
                        model, status, attempt, MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                message = await _extract_error_message(e.response)
                error = ModelError(model=model, status_code=status, category=_classify_error(status), message=message)
                break

            except httpx.TimeoutException as e:
                error = ModelError(model=model, status_code=None, category="timeout", message=str(e) or "Request timed out")
                break

            except ValueError as e:
                # Undecodable JSON or a body without candidates
                error = ModelError(model=model, status_code=None, category="malformed", message=str(e))
                break

            except Exception as e:
                error = ModelError(model=model, status_code=None, category="unknown", message=str(e))
                break

        logger.warning(
            "Model call failed. Model: %s, Category: %s, Status: %s, Error: %s",
            model, error.category, error.status_code, error.message,
        )
        mark_span_error(span, error.message)
        return error
