"""
Step 5 — Quota Enforcer

Turns the sanitizer's untrusted records into exactly
distribution.mcq + distribution.numerical Question objects:

  1. coerce each record into an MCQQuestion / NumericalQuestion (or drop it)
  2. bucket: Numerical if the declared type says so or there are no options
  3. truncate each bucket to its quota, keeping model order
  4. pad any shortfall with clearly-labelled placeholder questions
  5. MCQ bucket first, then Numerical

Callers therefore always get a complete, predictably shaped batch; an
under-delivering model shows up only as placeholder text.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from question_engine.schemas import (
    MCQ_MARKING,
    NUMERICAL_MARKING,
    Distribution,
    MarkingScheme,
    MCQQuestion,
    NumericalQuestion,
)

log = logging.getLogger("generation.pipeline")

QuestionItem = Union[MCQQuestion, NumericalQuestion]

NUMERICAL_TYPE_NAMES = {"numerical", "numeric", "integer", "nvq", "numerical value"}

PLACEHOLDER_MCQ_STATEMENT = (
    "Placeholder Question: The AI failed to generate enough questions for this section. "
    "Please skip or mark for review."
)
PLACEHOLDER_NUMERICAL_STATEMENT = (
    "Placeholder Question: The AI failed to generate enough numerical questions for this section. "
    "Please skip or mark for review."
)


# ─── Field coercion ────────────────────────────────────────────────────────────

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _options(value: Any) -> List[str]:
    if isinstance(value, dict):
        value = list(value.values())
    if not isinstance(value, (list, tuple)):
        return []
    return [_text(opt) for opt in value if _text(opt)]


def classify_item(raw: Dict[str, Any]) -> str:
    """'Numerical' if declared so or option-less, otherwise 'MCQ'."""
    declared = _text(raw.get("type")).lower()
    if declared in NUMERICAL_TYPE_NAMES or not _options(raw.get("options")):
        return "Numerical"
    return "MCQ"


def _marking_scheme(value: Any, default: MarkingScheme) -> MarkingScheme:
    if not isinstance(value, dict):
        return default.model_copy()
    positive = value.get("positive")
    if isinstance(positive, bool) or not isinstance(positive, int):
        return default.model_copy()
    negative = value.get("negative")
    if isinstance(negative, bool) or not isinstance(negative, int):
        negative = default.negative
    return MarkingScheme(positive=positive, negative=negative)


def coerce_item(raw: Any, subject: str, difficulty: str = "Hard") -> Optional[QuestionItem]:
    """
    Validate one untrusted record into a tagged question.

    Returns None for records that cannot be a question (not an object,
    blank statement); those count as shortfall and get padded.
    """
    if not isinstance(raw, dict):
        return None
    statement = _text(raw.get("statement"))
    if not statement:
        return None

    kind = classify_item(raw)
    fields = dict(
        id=_text(raw.get("id")) or f"gen-{uuid.uuid4().hex}",
        subject=_text(raw.get("subject")) or subject,
        chapter=_text(raw.get("chapter")) or "General",
        difficulty=_text(raw.get("difficulty")) or difficulty,
        statement=statement,
        correct_answer=_text(raw.get("correctAnswer", raw.get("correct_answer"))),
        solution=_text(raw.get("solution")),
        explanation=_text(raw.get("explanation")),
        concept=_text(raw.get("concept")),
    )
    scheme = raw.get("markingScheme", raw.get("marking_scheme"))
    try:
        if kind == "MCQ":
            return MCQQuestion(
                options=_options(raw.get("options")),
                marking_scheme=_marking_scheme(scheme, MCQ_MARKING),
                **fields,
            )
        return NumericalQuestion(
            options=[],
            marking_scheme=_marking_scheme(scheme, NUMERICAL_MARKING),
            **fields,
        )
    except ValidationError as e:
        log.warning(f"[QUOTA] Dropping malformed item: {e.error_count()} validation error(s)")
        return None


# ─── Placeholders ──────────────────────────────────────────────────────────────

def make_placeholder(kind: str, subject: str) -> QuestionItem:
    if kind == "MCQ":
        return MCQQuestion(
            id=f"placeholder-mcq-{uuid.uuid4().hex}",
            subject=subject,
            chapter="General",
            difficulty="Medium",
            statement=PLACEHOLDER_MCQ_STATEMENT,
            options=["A", "B", "C", "D"],
            correct_answer="A",
            solution="Placeholder",
            explanation="Placeholder",
            concept="Placeholder",
            marking_scheme=MCQ_MARKING.model_copy(),
        )
    return NumericalQuestion(
        id=f"placeholder-num-{uuid.uuid4().hex}",
        subject=subject,
        chapter="General",
        difficulty="Medium",
        statement=PLACEHOLDER_NUMERICAL_STATEMENT,
        options=[],
        correct_answer="0",
        solution="Placeholder",
        explanation="Placeholder",
        concept="Placeholder",
        marking_scheme=NUMERICAL_MARKING.model_copy(),
    )


# ─── Main entry ────────────────────────────────────────────────────────────────

def coerce_items(raw_items: Sequence[Any], subject: str, difficulty: str = "Hard") -> List[QuestionItem]:
    items = []
    for raw in raw_items:
        item = coerce_item(raw, subject, difficulty)
        if item is not None:
            items.append(item)
    return items


def reconcile(
    raw_items: Sequence[Any],
    target: Distribution,
    subject: str,
    difficulty: str = "Hard",
) -> List[QuestionItem]:
    """
    Return exactly target.mcq MCQs followed by exactly target.numerical Numericals.

    Args:
        raw_items:  Records from the sanitizer (untrusted)
        target:     Required split
        subject:    Fallback subject for items and placeholders
        difficulty: Fallback difficulty for items missing one
    """
    items = coerce_items(raw_items, subject, difficulty)
    mcqs = [q for q in items if q.type == "MCQ"][: target.mcq]
    numericals = [q for q in items if q.type == "Numerical"][: target.numerical]

    mcq_short = target.mcq - len(mcqs)
    num_short = target.numerical - len(numericals)
    if mcq_short or num_short:
        log.warning(
            f"[QUOTA] {subject}: short by {mcq_short} MCQ / {num_short} Numerical "
            f"({len(items)} usable of {len(raw_items)} returned) — padding with placeholders"
        )
    mcqs.extend(make_placeholder("MCQ", subject) for _ in range(mcq_short))
    numericals.extend(make_placeholder("Numerical", subject) for _ in range(num_short))

    return mcqs + numericals
