import pytest

from conftest import mcq, numerical
from question_engine.quota import (
    PLACEHOLDER_MCQ_STATEMENT,
    PLACEHOLDER_NUMERICAL_STATEMENT,
    classify_item,
    coerce_item,
    make_placeholder,
    reconcile,
)
from question_engine.schemas import Distribution


def _shape(questions):
    return [q.type for q in questions]


@pytest.mark.parametrize("returned", [0, 2, 5, 9])
def test_output_size_always_matches_distribution(returned):
    target = Distribution(mcq=4, numerical=1)
    raw = [mcq(i) for i in range(returned)] + [numerical(i) for i in range(returned)]

    questions = reconcile(raw, target, "Physics")

    assert len(questions) == 5
    assert _shape(questions) == ["MCQ"] * 4 + ["Numerical"]


def test_shortfall_is_padded_per_bucket():
    target = Distribution(mcq=3, numerical=1)
    questions = reconcile([mcq(1), mcq(2)], target, "Chemistry")

    assert _shape(questions) == ["MCQ", "MCQ", "MCQ", "Numerical"]
    assert [q.statement for q in questions[:2]] == ["MCQ statement 1", "MCQ statement 2"]

    mcq_pad, num_pad = questions[2], questions[3]
    assert mcq_pad.statement == PLACEHOLDER_MCQ_STATEMENT
    assert mcq_pad.options == ["A", "B", "C", "D"]
    assert mcq_pad.correct_answer == "A"
    assert (mcq_pad.marking_scheme.positive, mcq_pad.marking_scheme.negative) == (4, 1)
    assert mcq_pad.subject == "Chemistry"

    assert num_pad.statement == PLACEHOLDER_NUMERICAL_STATEMENT
    assert num_pad.options == []
    assert num_pad.correct_answer == "0"
    assert (num_pad.marking_scheme.positive, num_pad.marking_scheme.negative) == (4, 0)


def test_surplus_is_truncated_in_model_order():
    target = Distribution(mcq=2, numerical=1)
    raw = [numerical(1), mcq(1), mcq(2), numerical(2), mcq(3)]

    questions = reconcile(raw, target, "Physics")

    assert [q.statement for q in questions] == [
        "MCQ statement 1",
        "MCQ statement 2",
        "Numerical statement 1",
    ]


def test_classification_by_declared_type_or_missing_options():
    assert classify_item(mcq(1)) == "MCQ"
    assert classify_item(mcq(1, type="Integer")) == "Numerical"
    assert classify_item(mcq(1, options=[])) == "Numerical"
    assert classify_item({"statement": "x"}) == "Numerical"
    assert classify_item(numerical(1, type="", options=["1", "2"])) == "MCQ"


def test_declared_numerical_with_options_loses_its_options():
    question = coerce_item(numerical(1, options=["1", "2"]), "Physics")
    assert question.type == "Numerical"
    assert question.options == []


def test_unusable_records_count_as_shortfall():
    target = Distribution(mcq=2, numerical=0)
    raw = ["just text", 42, None, mcq(1, statement="   "), mcq(2)]

    questions = reconcile(raw, target, "Physics")

    assert questions[0].statement == "MCQ statement 2"
    assert questions[1].statement == PLACEHOLDER_MCQ_STATEMENT


def test_coercion_fills_defaults():
    question = coerce_item({"statement": " What is g? ", "options": {"A": "9.8", "B": " ", "C": "10"}}, "Physics", "Medium")

    assert question.type == "MCQ"
    assert question.statement == "What is g?"
    assert question.options == ["9.8", "10"]
    assert question.subject == "Physics"
    assert question.chapter == "General"
    assert question.difficulty == "Medium"
    assert question.id.startswith("gen-")
    assert (question.marking_scheme.positive, question.marking_scheme.negative) == (4, 1)


def test_coercion_accepts_both_spellings_and_keeps_valid_scheme():
    question = coerce_item(
        numerical(1, correctAnswer=None, correct_answer=3.5, markingScheme={"positive": 3, "negative": "x"}),
        "Physics",
    )
    # correctAnswer is present (None), so it wins over correct_answer
    assert question.correct_answer == ""
    assert (question.marking_scheme.positive, question.marking_scheme.negative) == (3, 0)

    question = coerce_item(mcq(1, marking_scheme={"positive": True}), "Physics")
    assert (question.marking_scheme.positive, question.marking_scheme.negative) == (4, 1)


def test_placeholder_ids_are_unique():
    first = make_placeholder("MCQ", "Physics")
    second = make_placeholder("MCQ", "Physics")
    assert first.id != second.id
    assert first.id.startswith("placeholder-mcq-")
    assert make_placeholder("Numerical", "Physics").id.startswith("placeholder-num-")


def test_serialises_with_wire_names():
    question = reconcile([mcq(1)], Distribution(mcq=1, numerical=0), "Physics")[0]
    data = question.model_dump(by_alias=True)

    assert data["correctAnswer"] == "A"
    assert data["markingScheme"] == {"positive": 4, "negative": 1}
    assert data["type"] == "MCQ"
