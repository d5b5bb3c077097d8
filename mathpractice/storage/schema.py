from __future__ import annotations

"""Pydantic models for the persisted records (progress, history, active test)."""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator

from ..questions.model import QuestionType, Semester, Topic
from .tagged import TaggedDatetime, TaggedIndexMap, utcnow

# --- Constants ---

SECONDS_PER_QUESTION = 60
WEAK_SCORE_THRESHOLD = 5.0


# --- Records ---

class AnswerRecord(BaseModel):
    question_id: str
    student_answer: Union[int, float, str]
    is_correct: bool
    time_spent: int = Field(default=0, ge=0)


class TestResult(BaseModel):
    id: str
    date: TaggedDatetime
    semester: Semester
    topics: List[Topic]
    score: float = Field(ge=0, le=10)
    total_questions: int = Field(ge=1)
    correct_answers: int = Field(ge=0)
    time_spent: int = Field(ge=0)
    answers: List[AnswerRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _correct_le_total(self) -> "TestResult":
        if self.correct_answers > self.total_questions:
            raise ValueError("correct_answers must be <= total_questions")
        return self


class PracticeSession(BaseModel):
    id: str
    date: TaggedDatetime
    mode: QuestionType
    questions_attempted: int = Field(ge=0)
    correct_answers: int = Field(ge=0)
    time_spent: int = Field(ge=0)

    @model_validator(mode="after")
    def _correct_le_attempted(self) -> "PracticeSession":
        if self.correct_answers > self.questions_attempted:
            raise ValueError("correct_answers must be <= questions_attempted")
        return self


class TestSession(BaseModel):
    """The single resumable in-progress test."""

    id: str
    semester: Semester
    topics: List[Topic]
    question_count: int = Field(ge=1)
    questions: List[str]
    current_index: int = 0
    answers: TaggedIndexMap = Field(default_factory=dict)
    start_time: float  # epoch seconds
    time_remaining: int
    is_active: bool = True
    created_at: TaggedDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _bounds(self) -> "TestSession":
        if not (0 <= self.current_index < self.question_count):
            raise ValueError("current_index must be in [0, question_count)")
        if not (0 <= self.time_remaining <= self.question_count * SECONDS_PER_QUESTION):
            raise ValueError("time_remaining must be in [0, question_count * 60]")
        return self

    @property
    def answered_count(self) -> int:
        return sum(1 for v in self.answers.values() if v)


class StudentProgress(BaseModel):
    total_exercises: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    test_scores: List[TestResult] = Field(default_factory=list)
    practice_history: List[PracticeSession] = Field(default_factory=list)
    weak_topics: List[Topic] = Field(default_factory=list)
    last_active: TaggedDatetime = Field(default_factory=utcnow)


class ExportSnapshot(BaseModel):
    progress: Optional[StudentProgress] = None
    test_history: List[TestResult] = Field(default_factory=list)
    practice_history: List[PracticeSession] = Field(default_factory=list)
    export_date: TaggedDatetime = Field(default_factory=utcnow)


class StudentInfo(BaseModel):
    name: str = Field(min_length=1)
    class_name: Optional[str] = None
    saved_at: TaggedDatetime = Field(default_factory=utcnow)
