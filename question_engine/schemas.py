"""
Pydantic schemas for the question generation engine.

Question items use the camelCase wire names the presentation and storage
layers expect (correctAnswer, markingScheme); Python code uses the
snake_case attribute names. Serialise with model_dump(by_alias=True).

MCQ and Numerical items are separate models joined into a tagged union
on the "type" field, so the options/type rule is checked once, at
construction, instead of by truthiness checks further down the pipeline.
"""

import math
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ─── Question items ────────────────────────────────────────────────────────────

class MarkingScheme(BaseModel):
    positive: int
    negative: int


MCQ_MARKING = MarkingScheme(positive=4, negative=1)
NUMERICAL_MARKING = MarkingScheme(positive=4, negative=0)


class _QuestionBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    subject: str
    chapter: str = "General"
    difficulty: str = "Hard"
    statement: str
    correct_answer: str = Field("", alias="correctAnswer")
    solution: str = ""
    explanation: str = ""
    concept: str = ""


class MCQQuestion(_QuestionBase):
    type: Literal["MCQ"] = "MCQ"
    options: List[str] = Field(..., min_length=1)
    marking_scheme: MarkingScheme = Field(
        default_factory=lambda: MCQ_MARKING.model_copy(), alias="markingScheme"
    )


class NumericalQuestion(_QuestionBase):
    type: Literal["Numerical"] = "Numerical"
    options: List[str] = Field(default_factory=list, max_length=0)
    marking_scheme: MarkingScheme = Field(
        default_factory=lambda: NUMERICAL_MARKING.model_copy(), alias="markingScheme"
    )


Question = Annotated[Union[MCQQuestion, NumericalQuestion], Field(discriminator="type")]


# ─── Generation request ────────────────────────────────────────────────────────

class Distribution(BaseModel):
    """Required MCQ / Numerical split of a batch."""
    mcq: int = Field(..., ge=0)
    numerical: int = Field(..., ge=0)

    @property
    def total(self) -> int:
        return self.mcq + self.numerical


class GenerationRequest(BaseModel):
    """One subject's batch request."""
    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(..., min_length=1)
    total_count: Optional[int] = Field(None, alias="totalCount", ge=0)
    exam_type: str = Field("JEE Advanced", alias="examType")
    chapters: List[str] = Field(default_factory=list, description="Empty = full syllabus")
    difficulty: str = "Hard"
    topics: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="chapter → topics the chapter is restricted to (absent = balanced mix)",
    )
    distribution: Optional[Distribution] = None

    @field_validator("chapters")
    @classmethod
    def _dedupe_chapters(cls, chapters: List[str]) -> List[str]:
        seen: List[str] = []
        for chapter in chapters:
            chapter = chapter.strip()
            if chapter and chapter not in seen:
                seen.append(chapter)
        return seen

    @model_validator(mode="after")
    def _reconcile_counts(self) -> "GenerationRequest":
        if self.distribution is None:
            if self.total_count is None:
                raise ValueError("either totalCount or distribution is required")
            mcq = math.ceil(self.total_count * 0.8)
            self.distribution = Distribution(mcq=mcq, numerical=self.total_count - mcq)
        elif self.total_count is None:
            self.total_count = self.distribution.total
        elif self.distribution.total != self.total_count:
            raise ValueError(
                f"distribution.mcq + distribution.numerical ({self.distribution.total}) "
                f"must equal totalCount ({self.total_count})"
            )

        unknown = [c for c in self.topics if c not in self.chapters]
        if unknown:
            raise ValueError(f"topics given for chapters not in scope: {unknown}")
        return self


# ─── Full paper request ────────────────────────────────────────────────────────

class SubjectQuota(BaseModel):
    """Per-subject block of a full-paper request."""
    mcq: int = Field(8, ge=0)
    numerical: int = Field(2, ge=0)
    chapters: List[str] = Field(default_factory=list)
    topics: Dict[str, List[str]] = Field(default_factory=dict)


def _default_subjects() -> Dict[str, SubjectQuota]:
    return {name: SubjectQuota() for name in ("Physics", "Chemistry", "Mathematics")}


class PaperRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exam_type: str = Field("JEE Advanced", alias="examType")
    difficulty: str = "Hard"
    subjects: Dict[str, SubjectQuota] = Field(default_factory=_default_subjects, min_length=1)

    def to_requests(self) -> List[GenerationRequest]:
        return [
            GenerationRequest(
                subject=subject,
                exam_type=self.exam_type,
                difficulty=self.difficulty,
                chapters=quota.chapters,
                topics=quota.topics,
                distribution=Distribution(mcq=quota.mcq, numerical=quota.numerical),
            )
            for subject, quota in self.subjects.items()
        ]


# ─── API responses ─────────────────────────────────────────────────────────────

class SubjectQuestionsResponse(BaseModel):
    subject: str
    count: int
    questions: List[Question]


class PaperResponse(BaseModel):
    exam_type: str
    papers: Dict[str, List[Question]]
    failed_subjects: List[str] = Field(default_factory=list)


class DocumentParseResponse(BaseModel):
    count: int
    questions: List[Question]


class HintRequest(BaseModel):
    statement: str = Field(..., min_length=1)
    subject: str


class HintResponse(BaseModel):
    hint: str


class AnalysisRequest(BaseModel):
    result: Dict[str, Any]


class AnalysisResponse(BaseModel):
    analysis: str
