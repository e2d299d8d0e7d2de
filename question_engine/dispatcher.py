"""
Step 2 — Request Dispatcher

Issues one chat-completion call per attempt and makes an unreliable,
rate-limited upstream behave like a dependable one:

  - every attempt draws the next key from the KeyPool (failed ones too)
  - InvalidCredential              → rotate, retry immediately
  - RateLimited / ServiceUnavailable → back off (unit × attempt number), rotate, retry
  - Unknown                        → raise at once, remaining attempts are not spent
  - after the first RateLimited attempt the chain switches to the fallback model

Attempt limit: max(pool size, MIN_ATTEMPTS). Running out raises
AllAttemptsExhaustedError carrying the last classified error.

The retry chain is an explicit state machine (AttemptContext):
    ATTEMPTING_PRIMARY → ATTEMPTING_FALLBACK → EXHAUSTED

Model: gpt-4o, falling back to gpt-4o-mini (override with QGEN_PRIMARY_MODEL /
QGEN_FALLBACK_MODEL).
"""

import asyncio
import enum
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import openai
from openai import AsyncOpenAI

from question_engine import config
from question_engine.errors import (
    UPSTREAM_ERRORS,
    AllAttemptsExhaustedError,
    ErrorKind,
    UpstreamError,
)
from question_engine.key_pool import KeyPool, get_key_pool, mask_key

log = logging.getLogger("generation.pipeline")

# A plain prompt, or a list of chat content parts (text / image_url / file)
PromptContent = Union[str, List[Dict[str, Any]]]
ClientFactory = Callable[[str], Any]
Sleeper = Callable[[float], Awaitable[None]]


# ─── Error classification ──────────────────────────────────────────────────────

def classify_error(exc: BaseException) -> ErrorKind:
    """Map an SDK / transport exception onto the engine's error kinds."""
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.INVALID_CREDENTIAL
    if isinstance(exc, openai.BadRequestError) and "api key" in str(exc).lower():
        return ErrorKind.INVALID_CREDENTIAL
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (openai.InternalServerError, openai.APIConnectionError)):
        return ErrorKind.SERVICE_UNAVAILABLE
    if isinstance(exc, openai.APIError):
        return ErrorKind.UNKNOWN

    # Non-SDK clients: fall back to an HTTP status attribute if there is one
    status = getattr(exc, "status_code", None)
    if status in (401, 403):
        return ErrorKind.INVALID_CREDENTIAL
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if isinstance(status, int) and status >= 500:
        return ErrorKind.SERVICE_UNAVAILABLE
    return ErrorKind.UNKNOWN


def translate_error(exc: BaseException, model: str, key: str) -> UpstreamError:
    kind = classify_error(exc)
    return UPSTREAM_ERRORS[kind](
        f"{type(exc).__name__}: {exc}",
        model=model,
        key_hint=mask_key(key),
    )


# ─── Retry state machine ───────────────────────────────────────────────────────

class AttemptState(str, enum.Enum):
    ATTEMPTING_PRIMARY = "attempting_primary"
    ATTEMPTING_FALLBACK = "attempting_fallback"
    EXHAUSTED = "exhausted"


@dataclass
class AttemptContext:
    """Mutable state of one dispatch chain."""
    max_attempts: int
    model: str
    fallback_model: str
    state: AttemptState = AttemptState.ATTEMPTING_PRIMARY
    attempt_index: int = 0
    last_error: Optional[UpstreamError] = None

    @property
    def remaining(self) -> int:
        return self.max_attempts - self.attempt_index

    @property
    def exhausted(self) -> bool:
        return self.state is AttemptState.EXHAUSTED

    def record_failure(self, error: UpstreamError) -> None:
        self.last_error = error
        self.attempt_index += 1
        if self.remaining <= 0:
            self.state = AttemptState.EXHAUSTED
        elif error.kind is ErrorKind.RATE_LIMITED and self.state is AttemptState.ATTEMPTING_PRIMARY:
            self.state = AttemptState.ATTEMPTING_FALLBACK
            self.model = self.fallback_model


@dataclass(frozen=True)
class RetryPolicy:
    primary_model: str = config.PRIMARY_MODEL
    fallback_model: str = config.FALLBACK_MODEL
    backoff_seconds: float = config.BACKOFF_SECONDS
    min_attempts: int = config.MIN_ATTEMPTS

    def start(self, pool_size: int, model: Optional[str] = None) -> AttemptContext:
        return AttemptContext(
            max_attempts=max(pool_size, self.min_attempts),
            model=model or self.primary_model,
            fallback_model=self.fallback_model,
        )

    def backoff(self, attempt_index: int) -> float:
        """Delay after the failed attempt with 0-based index attempt_index."""
        return self.backoff_seconds * (attempt_index + 1)


# ─── Dispatcher ────────────────────────────────────────────────────────────────

def _default_client(api_key: str) -> AsyncOpenAI:
    # The SDK's own retries are disabled: rotation + backoff happen here.
    return AsyncOpenAI(api_key=api_key, max_retries=0)


class Dispatcher:
    def __init__(
        self,
        pool: KeyPool,
        policy: Optional[RetryPolicy] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.pool = pool
        self.policy = policy or RetryPolicy()
        self._client_factory = client_factory or _default_client
        self._clients: Dict[str, Any] = {}
        self._sleep = sleep

    def _client_for(self, key: str) -> Any:
        client = self._clients.get(key)
        if client is None:
            client = self._client_factory(key)
            self._clients[key] = client
        return client

    async def _complete(
        self,
        client: Any,
        model: str,
        prompt: PromptContent,
        system: str,
        json_mode: bool,
        temperature: float,
        top_p: float,
        max_tokens: int,
    ) -> str:
        kwargs: Dict[str, Any] = dict(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            seed=random.randint(0, 9_999_999),
        )
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**kwargs)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def dispatch(
        self,
        prompt: PromptContent,
        model: Optional[str] = None,
        *,
        system: str = config.SYSTEM_PROMPT,
        json_mode: bool = False,
        temperature: float = config.TEMPERATURE,
        top_p: float = config.TOP_P,
        max_tokens: int = config.MAX_TOKENS,
    ) -> str:
        """
        Run one dispatch chain and return the response text.

        Args:
            prompt:    Prompt text, or a list of chat content parts
            model:     Model hint; defaults to the policy's primary model
            json_mode: Ask the upstream for a JSON object response

        Raises:
            UnknownUpstreamError:      non-retryable failure (no further attempts)
            AllAttemptsExhaustedError: every attempt failed with a retryable error
        """
        ctx = self.policy.start(self.pool.size, model)

        while not ctx.exhausted:
            key = self.pool.next()
            attempt_no = ctx.attempt_index + 1
            log.info(
                f"[DISPATCH] Attempt {attempt_no}/{ctx.max_attempts} "
                f"model={ctx.model} key={mask_key(key)}"
            )
            try:
                return await self._complete(
                    self._client_for(key), ctx.model, prompt,
                    system, json_mode, temperature, top_p, max_tokens,
                )
            except Exception as exc:
                error = translate_error(exc, ctx.model, key)
                if not error.retryable:
                    log.error(f"[DISPATCH] Non-retryable failure on attempt {attempt_no}: {error}")
                    raise error from exc

            failed_index = ctx.attempt_index
            ctx.record_failure(error)

            if error.kind is ErrorKind.INVALID_CREDENTIAL:
                log.warning(f"[DISPATCH] Invalid key {mask_key(key)} — rotating")
                continue
            log.warning(f"[DISPATCH] {error.kind.value} on key {mask_key(key)} — {error}")
            if ctx.exhausted:
                break
            if ctx.state is AttemptState.ATTEMPTING_FALLBACK and ctx.model != error.model:
                log.info(f"[DISPATCH] Switching to fallback model: {ctx.model}")
            await self._sleep(self.policy.backoff(failed_index))

        log.error(f"[DISPATCH] All {ctx.max_attempts} attempts exhausted")
        raise AllAttemptsExhaustedError(ctx.last_error, ctx.max_attempts)


# ─── Process-wide helper ───────────────────────────────────────────────────────

# Lazy singleton
_dispatcher: Optional[Dispatcher] = None


def get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher(get_key_pool())
    return _dispatcher


def set_dispatcher(dispatcher: Optional[Dispatcher]) -> None:
    """Replace (or with None, reset) the process-wide dispatcher."""
    global _dispatcher
    _dispatcher = dispatcher


async def call_llm(prompt: PromptContent, model: Optional[str] = None, **kwargs: Any) -> str:
    """Dispatch through the process-wide Dispatcher and return the response text."""
    return await get_dispatcher().dispatch(prompt, model, **kwargs)
