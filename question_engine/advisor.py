"""
Single-shot helpers built on the Dispatcher: quick hints and performance
analysis. Both are non-blocking extras: any generation failure degrades to
a fixed message instead of an error.
"""

import logging
from typing import Any, Dict, Optional

from question_engine.dispatcher import Dispatcher, get_dispatcher
from question_engine.errors import AllAttemptsExhaustedError, UpstreamError
from question_engine.prompt_composer import compose_analysis_prompt, compose_hint_prompt

log = logging.getLogger(__name__)

HINT_UNAVAILABLE = "Hint unavailable."
ANALYSIS_UNAVAILABLE = "Cognitive analysis is temporarily unavailable due to a network disruption."

ADVISOR_SYSTEM_PROMPT = "You are an experienced exam mentor. Be brief, concrete and encouraging."


async def get_quick_hint(statement: str, subject: str, dispatcher: Optional[Dispatcher] = None) -> str:
    dispatcher = dispatcher or get_dispatcher()
    try:
        text = await dispatcher.dispatch(
            compose_hint_prompt(statement, subject),
            system=ADVISOR_SYSTEM_PROMPT,
            temperature=0.4,
            max_tokens=200,
        )
    except (UpstreamError, AllAttemptsExhaustedError) as e:
        log.warning(f"Hint generation failed: {e}")
        return HINT_UNAVAILABLE
    return text.strip() or "Focus on fundamental principles."


async def get_deep_analysis(result: Dict[str, Any], dispatcher: Optional[Dispatcher] = None) -> str:
    dispatcher = dispatcher or get_dispatcher()
    try:
        text = await dispatcher.dispatch(
            compose_analysis_prompt(result),
            system=ADVISOR_SYSTEM_PROMPT,
            temperature=0.5,
            max_tokens=1024,
        )
    except (UpstreamError, AllAttemptsExhaustedError) as e:
        log.warning(f"Performance analysis failed: {e}")
        return ANALYSIS_UNAVAILABLE
    return text.strip() or "Analysis complete. Keep practicing consistent drills."
