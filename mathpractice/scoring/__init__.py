from .scoring import (
    AnswerFeedback,
    SessionFeedback,
    calculate_grade,
    calculate_score,
    check_answer,
    generate_answer_feedback,
    generate_batch_feedback,
    generate_session_feedback,
    normalize_answer,
)

__all__ = [
    "AnswerFeedback",
    "SessionFeedback",
    "calculate_grade",
    "calculate_score",
    "check_answer",
    "generate_answer_feedback",
    "generate_batch_feedback",
    "generate_session_feedback",
    "normalize_answer",
]
