import json

import pytest
from pydantic import ValidationError

from question_engine.prompt_composer import (
    compose_analysis_prompt,
    compose_generation_prompt,
    compose_hint_prompt,
    describe_difficulty,
    describe_scope,
    make_batch_token,
)
from question_engine.schemas import GenerationRequest, PaperRequest


def _request(**overrides):
    data = {"subject": "Physics", "totalCount": 10}
    data.update(overrides)
    return GenerationRequest(**data)


# ─── Request validation ────────────────────────────────────────────────────────

def test_default_split_is_eighty_percent_mcq():
    assert _request(totalCount=10).distribution.model_dump() == {"mcq": 8, "numerical": 2}
    assert _request(totalCount=7).distribution.model_dump() == {"mcq": 6, "numerical": 1}
    assert _request(totalCount=0).distribution.total == 0


def test_distribution_fills_total_count():
    request = GenerationRequest(subject="Physics", distribution={"mcq": 3, "numerical": 1})
    assert request.total_count == 4


def test_mismatched_distribution_is_rejected():
    with pytest.raises(ValidationError):
        _request(totalCount=5, distribution={"mcq": 3, "numerical": 1})


def test_counts_are_required():
    with pytest.raises(ValidationError):
        GenerationRequest(subject="Physics")


def test_topics_must_belong_to_listed_chapters():
    with pytest.raises(ValidationError):
        _request(chapters=["Optics"], topics={"Kinematics": ["Projectile"]})


def test_chapters_are_stripped_and_deduplicated():
    assert _request(chapters=[" Optics", "Optics", "", "Waves "]).chapters == ["Optics", "Waves"]


def test_paper_request_defaults_to_three_subjects():
    requests = PaperRequest().to_requests()
    assert [r.subject for r in requests] == ["Physics", "Chemistry", "Mathematics"]
    assert all(r.distribution.model_dump() == {"mcq": 8, "numerical": 2} for r in requests)


# ─── Prompt text ───────────────────────────────────────────────────────────────

def test_prompt_states_exact_counts():
    request = _request(totalCount=5, distribution={"mcq": 3, "numerical": 2}, examType="JEE Main")
    prompt = compose_generation_prompt(request, batch_token="tok-1")

    assert "BatchID: tok-1" in prompt
    assert "EXACTLY 5" in prompt
    assert "exactly 3 Multiple Choice" in prompt
    assert "exactly 2 Numerical" in prompt
    assert "Physics questions for JEE Main" in prompt
    assert "Return ONLY JSON" in prompt
    assert '{"questions": [ ... ]}' in prompt


def test_prompt_shows_escaped_latex():
    prompt = compose_generation_prompt(_request(), batch_token="t")
    assert "\\\\frac{1}{2}, never \\frac{1}{2}" in prompt
    assert '{"positive": 4, "negative": 1}' in prompt


def test_full_syllabus_scope():
    assert "Full syllabus" in describe_scope(_request())


def test_chapter_scope_with_and_without_topics():
    request = _request(
        chapters=["Optics", "Waves"],
        topics={"Optics": ["Lenses", "Prisms"]},
    )
    scope = describe_scope(request)

    assert "- Optics: ONLY these topics — Lenses, Prisms" in scope
    assert "- Waves: balanced mix of the chapter's topics" in scope
    assert "Full syllabus" not in scope


def test_difficulty_profiles():
    assert describe_difficulty("hard").startswith("HARD")
    assert describe_difficulty(" Mixed ").startswith("MIXED")
    assert describe_difficulty("Olympiad").startswith("Olympiad")


def test_batch_tokens_differ_between_calls():
    assert make_batch_token() != make_batch_token()
    first = compose_generation_prompt(_request())
    second = compose_generation_prompt(_request())
    assert first != second


def test_hint_prompt_truncates_statement():
    prompt = compose_hint_prompt("x" * 800, "Chemistry")
    assert "Chemistry question" in prompt
    assert "x" * 500 in prompt
    assert "x" * 501 not in prompt


def test_analysis_prompt_serialises_result():
    prompt = compose_analysis_prompt({"score": 180, "weak": ["Optics"]})
    assert json.dumps({"score": 180, "weak": ["Optics"]}) in prompt

    long_prompt = compose_analysis_prompt({"notes": "y" * 9000})
    assert long_prompt.count("y") <= 5000
