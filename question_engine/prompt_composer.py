"""
Step 3 — Prompt Composer

Renders the instruction text for one subject batch:
  - exact total count and its MCQ / Numerical split
  - scope: full syllabus, or listed chapters (balanced mix or restricted to topics)
  - difficulty profile
  - formatting rules (math delimiters, backslash escaping, marking scheme, JSON only)
  - a per-call batch token so identical requests don't get near-identical replies

Also holds the prompt variants for document ingestion, hints and analysis.
"""

import json
import secrets
import time
from typing import Any, Dict, Optional

from question_engine.schemas import GenerationRequest


# ─── Difficulty profiles ───────────────────────────────────────────────────────

DIFFICULTY_PROFILES: Dict[str, str] = {
    "easy": "EASY — direct application of a single concept or formula; one or two steps.",
    "medium": "MEDIUM — combine two concepts; multi-step reasoning with moderate calculation.",
    "hard": (
        "HARD — advanced level: multi-concept synthesis, non-obvious relationships, "
        "careful multi-step calculation. Avoid any problem solvable by formula recall alone."
    ),
    "mixed": "MIXED — roughly 30% easy, 40% medium, 30% hard, spread across the batch.",
}


def describe_difficulty(difficulty: str) -> str:
    return DIFFICULTY_PROFILES.get(
        (difficulty or "").strip().lower(),
        f"{difficulty} — calibrate every question to this level.",
    )


# ─── Main generation prompt ────────────────────────────────────────────────────

GENERATION_PROMPT = """BatchID: {batch_token}

Generate EXACTLY {total} COMPLETELY UNIQUE, never-before-seen {subject} questions for {exam_type}.

DISTRIBUTION (mandatory):
- exactly {mcq} Multiple Choice Questions (type: "MCQ") with exactly 4 options each
- exactly {numerical} Numerical Value Questions (type: "Numerical") with an empty "options" list

SCOPE:
{scope}

DIFFICULTY:
{difficulty}

ORIGINALITY:
- Do NOT repeat problems from standard mock tests, textbooks or previous batches.
- Vary numerical values, parameters and combinations of concepts.

FORMATTING RULES:
1. Use LaTeX for all math: inline math in $...$, display math in $$...$$.
2. Every backslash inside a JSON string MUST be escaped: write \\\\frac{{1}}{{2}}, never \\frac{{1}}{{2}}.
3. MCQ: "correctAnswer" is the letter of the correct option (A, B, C or D);
   "markingScheme" is {{"positive": 4, "negative": 1}}.
4. Numerical: "correctAnswer" is the numeric value as a string; "options" is [];
   "markingScheme" is {{"positive": 4, "negative": 0}}.
5. JSON keys per question: subject, chapter, type, difficulty, statement, options,
   correctAnswer, solution, explanation, concept, markingScheme.
6. Return ONLY JSON: the array of question objects wrapped as {{"questions": [ ... ]}}.
   No markdown fences, no text before or after it.
"""


def make_batch_token() -> str:
    """Timestamp + random suffix, unique per call."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def describe_scope(request: GenerationRequest) -> str:
    if not request.chapters:
        return "- Full syllabus, weighted towards high-weightage chapters."

    lines = []
    for chapter in request.chapters:
        topics = [t for t in request.topics.get(chapter, []) if t.strip()]
        if topics:
            lines.append(f"- {chapter}: ONLY these topics — {', '.join(topics)}")
        else:
            lines.append(f"- {chapter}: balanced mix of the chapter's topics")
    return "Only the following chapters:\n" + "\n".join(lines)


def compose_generation_prompt(request: GenerationRequest, batch_token: Optional[str] = None) -> str:
    dist = request.distribution
    return GENERATION_PROMPT.format(
        batch_token=batch_token or make_batch_token(),
        total=dist.total,
        subject=request.subject,
        exam_type=request.exam_type,
        mcq=dist.mcq,
        numerical=dist.numerical,
        scope=describe_scope(request),
        difficulty=describe_difficulty(request.difficulty),
    )


# ─── Document ingestion ────────────────────────────────────────────────────────

DOCUMENT_PROMPT = """Analyze the provided document(s) and extract EVERY question from ALL subjects.
If a solution document is included, use it to fill in correctAnswer and solution.

STRICT FORMATTING RULES:
1. Return ONLY a JSON object of the form {"questions": [ ... ]}.
2. Escape all LaTeX backslashes inside JSON strings (\\\\frac, not \\frac).
3. Wrap math in $ delimiters.
4. Detect the subject of each question from the document headers.
5. MCQ questions keep their options; numerical-answer questions use "options": [].

Question keys: subject, chapter, type ("MCQ" | "Numerical"), statement, options,
correctAnswer, solution, explanation, concept.
"""


# ─── Hints / analysis ──────────────────────────────────────────────────────────

HINT_PROMPT = (
    "Provide a single-sentence strategic hint for this {subject} question. "
    "Do not reveal the final answer.\n\nQuestion: {statement}"
)

ANALYSIS_PROMPT = (
    "Review this exam performance data and write a short mentorship summary: "
    "strong areas, critical improvements, and a concrete next step.\n\n{payload}"
)


def compose_hint_prompt(statement: str, subject: str) -> str:
    return HINT_PROMPT.format(subject=subject, statement=statement[:500])


def compose_analysis_prompt(result: Dict[str, Any]) -> str:
    payload = json.dumps(result, default=str, ensure_ascii=False)[:5000]
    return ANALYSIS_PROMPT.format(payload=payload)
