"""
Step 1 — Key Pool

Holds the ordered list of upstream API keys and hands them out
round-robin. The pool is explicit state owned by whoever dispatches
requests, so rotation is deterministic and can be injected in tests.

Keys are resolved once per process (get_key_pool); every source is a
delimited list: commas, semicolons, spaces and newlines all separate keys.
"""

import logging
import os
import re
import threading
from typing import Iterable, List, Optional, Sequence

from question_engine import config
from question_engine.errors import ConfigurationError

log = logging.getLogger("generation.pipeline")

_KEY_SEPARATORS = re.compile(r"[,;\s]+")


def mask_key(key: str) -> str:
    """First 8 characters only; full keys never reach the logs."""
    return f"{key[:8]}..."


def parse_key_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [k for k in _KEY_SEPARATORS.split(raw.strip()) if k]


def resolve_keys(
    explicit: Optional[Iterable[str]] = None,
    env_vars: Sequence[str] = config.API_KEY_ENV_VARS,
) -> List[str]:
    """
    Merge every configured key source in priority order.

    Explicit keys come first, then each environment variable in
    env_vars order. Duplicates keep their first (highest-priority) position.
    """
    merged: List[str] = []
    sources: List[str] = []
    for raw in explicit or []:
        sources.extend(parse_key_list(raw))
    for name in env_vars:
        sources.extend(parse_key_list(os.getenv(name)))
    for key in sources:
        if key not in merged:
            merged.append(key)
    return merged


class KeyPool:
    """Ordered keys + rotation cursor."""

    def __init__(self, keys: Sequence[str]):
        keys = [k for k in keys if k]
        if not keys:
            raise ConfigurationError(
                "No API keys configured. Set QGEN_API_KEYS (comma-separated) "
                "or OPENAI_API_KEY in your environment or .env file."
            )
        self._keys = tuple(keys)
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        explicit: Optional[Iterable[str]] = None,
        env_vars: Sequence[str] = config.API_KEY_ENV_VARS,
    ) -> "KeyPool":
        pool = cls(resolve_keys(explicit, env_vars))
        log.info(f"[KEYS] Key pool ready with {pool.size} key(s)")
        return pool

    @property
    def size(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        return self._cursor

    def next(self) -> str:
        """Return the key at the cursor and advance the cursor modulo pool size."""
        with self._lock:
            key = self._keys[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._keys)
        return key


# Process-wide pool, built on first use
_pool: Optional[KeyPool] = None


def get_key_pool() -> KeyPool:
    global _pool
    if _pool is None:
        _pool = KeyPool.from_config()
    return _pool


def reset_key_pool() -> None:
    """Drop the cached pool so the next get_key_pool() re-reads configuration."""
    global _pool
    _pool = None
