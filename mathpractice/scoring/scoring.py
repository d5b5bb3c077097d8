from __future__ import annotations

"""Scoring: answer normalization, checking, 10-point scores and feedback."""

import math
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from ..questions.model import Question

Answer = Union[str, int, float]

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?")


def calculate_score(correct: int, total: int) -> float:
    """Score on a 10-point scale rounded to one decimal.

    Raises ValueError when total is 0, a value is negative, or correct > total.
    """
    if total == 0:
        raise ValueError("Total questions cannot be zero")
    if correct < 0 or total < 0:
        raise ValueError("Values cannot be negative")
    if correct > total:
        raise ValueError("Correct answers cannot exceed total questions")
    # half-up on the first decimal; round() would bank 6.25 -> 6.2
    return math.floor(correct / total * 100 + 0.5) / 10


def calculate_grade(score: float) -> str:
    if score >= 9:
        return "Xuất sắc"
    if score >= 8:
        return "Giỏi"
    if score >= 6.5:
        return "Khá"
    if score >= 5:
        return "Trung bình"
    return "Cần cố gắng"


def _format_number(num: float) -> str:
    if num.is_integer():
        return str(int(num))
    return repr(num)


def normalize_answer(answer: Answer) -> str:
    """Canonical text form used for equality checks.

    "7", "7.0", "7,0" and " 7 " all normalize to "7"; "Hanoi" and "hanoi "
    both become "hanoi".
    """
    if isinstance(answer, bool):
        return str(answer).lower()
    if isinstance(answer, (int, float)):
        return _format_number(float(answer))
    normalized = str(answer).strip().lower().replace(",", ".", 1)
    compact = re.sub(r"\s+", "", normalized)
    if _NUMBER.fullmatch(compact):
        return _format_number(float(compact))
    return normalized


def check_answer(question: Question, student_answer: Answer) -> bool:
    return normalize_answer(student_answer) == normalize_answer(question.correct_answer)


@dataclass(frozen=True)
class AnswerFeedback:
    question_id: str
    is_correct: bool
    correct_answer: Answer
    explanation: str
    student_answer: Answer


@dataclass
class SessionFeedback:
    total_questions: int
    correct_answers: int
    score: float
    grade: str
    answer_feedback: List[AnswerFeedback] = field(default_factory=list)


def generate_answer_feedback(question: Question, student_answer: Answer) -> AnswerFeedback:
    return AnswerFeedback(
        question_id=question.id,
        is_correct=check_answer(question, student_answer),
        correct_answer=question.correct_answer,
        explanation=question.explanation,
        student_answer=student_answer,
    )


def generate_batch_feedback(questions: Sequence[Question], answers: Sequence[Answer]) -> List[AnswerFeedback]:
    """Feedback per question; missing trailing answers count as empty."""
    out: List[AnswerFeedback] = []
    for i, q in enumerate(questions):
        ans = answers[i] if i < len(answers) else ""
        out.append(generate_answer_feedback(q, ans))
    return out


def generate_session_feedback(questions: Sequence[Question], answers: Sequence[Answer]) -> SessionFeedback:
    feedback = generate_batch_feedback(questions, answers)
    correct = sum(1 for f in feedback if f.is_correct)
    total = len(questions)
    score = calculate_score(correct, total) if total > 0 else 0.0
    return SessionFeedback(
        total_questions=total,
        correct_answers=correct,
        score=score,
        grade=calculate_grade(score),
        answer_feedback=feedback,
    )
