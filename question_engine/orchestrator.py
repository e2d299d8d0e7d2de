"""
Step 6 — Orchestrator

Runs Prompt Composer → Dispatcher → Sanitizer → Quota Enforcer once per
subject.

  generate_subject_questions  one subject; raises on subject-level failure
  generate_paper              several subjects in sequence, a fixed pause in
                              between; a failed subject yields an empty list
                              and the others carry on. Only when every subject
                              sent upstream fails is GenerationFailedError raised.

ConfigurationError is never downgraded: with no keys nothing can succeed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from question_engine import config, sanitizer
from question_engine.dispatcher import Dispatcher, get_dispatcher
from question_engine.errors import (
    AllAttemptsExhaustedError,
    GenerationFailedError,
    UnparseableResponseError,
    UpstreamError,
)
from question_engine.prompt_composer import compose_generation_prompt
from question_engine.quota import QuestionItem, reconcile
from question_engine.schemas import GenerationRequest

log = logging.getLogger("generation.pipeline")

ProgressCallback = Callable[[str, str], None]

# Failures confined to one subject's batch
SUBJECT_ERRORS = (UnparseableResponseError, AllAttemptsExhaustedError, UpstreamError)


async def generate_subject_questions(
    request: GenerationRequest,
    dispatcher: Optional[Dispatcher] = None,
) -> List[QuestionItem]:
    """
    Generate one subject's batch: exactly request.distribution items.

    Raises:
        ConfigurationError:        no API keys
        UnparseableResponseError:  the reply held no parseable JSON array
        AllAttemptsExhaustedError / UnknownUpstreamError: dispatch failed
    """
    dispatcher = dispatcher or get_dispatcher()
    dist = request.distribution

    if dist.total == 0:
        return []

    log.info(
        f"[PAPER] {request.subject}: requesting {dist.mcq} MCQ + {dist.numerical} Numerical "
        f"({'full syllabus' if not request.chapters else ', '.join(request.chapters)})"
    )
    prompt = compose_generation_prompt(request)
    raw_text = await dispatcher.dispatch(prompt, json_mode=True)

    raw_items = sanitizer.parse(raw_text)
    if raw_items is None:
        raise UnparseableResponseError(
            f"Could not parse a question array for {request.subject}", raw_text
        )

    questions = reconcile(raw_items, dist, request.subject, request.difficulty)
    log.info(f"[PAPER] {request.subject}: {len(questions)} questions ready")
    return questions


async def generate_paper(
    requests: Sequence[GenerationRequest],
    dispatcher: Optional[Dispatcher] = None,
    subject_delay: float = config.SUBJECT_DELAY_SECONDS,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict[str, List[QuestionItem]]:
    """
    Generate every subject of a paper, isolating failures per subject.

    Args:
        requests:      One GenerationRequest per subject (run in this order)
        subject_delay: Pause between subjects, to spread load on the shared key pool
        on_progress:   Optional callback(subject, "started" | "completed" | "failed")

    Returns:
        subject → questions (empty list for a subject that failed)

    Raises:
        GenerationFailedError: every subject with a non-empty quota failed
        ConfigurationError:    no API keys
    """
    dispatcher = dispatcher or get_dispatcher()
    results: Dict[str, List[QuestionItem]] = {}
    errors: Dict[str, Exception] = {}
    failed = 0

    def _notify(subject: str, status: str) -> None:
        if on_progress is not None:
            on_progress(subject, status)

    for index, request in enumerate(requests):
        if index > 0 and subject_delay > 0:
            await sleep(subject_delay)

        _notify(request.subject, "started")
        try:
            results[request.subject] = await generate_subject_questions(request, dispatcher)
        except SUBJECT_ERRORS as e:
            log.error(f"[PAPER] {request.subject} failed: {e}")
            results[request.subject] = []
            errors[request.subject] = e
            failed += 1
            _notify(request.subject, "failed")
        else:
            _notify(request.subject, "completed")

    attempted = sum(1 for r in requests if r.distribution.total > 0)
    if attempted and failed == attempted:
        raise GenerationFailedError(errors)
    return results
