from .model import (
    DIFFICULTIES,
    QUESTION_TYPES,
    SEMESTER_TOPICS,
    TOPICS,
    Question,
    get_topic_display_name,
    get_topic_semester,
)
from .bank import QuestionBank
from .service import QuestionService, QuestionStats

__all__ = [
    "DIFFICULTIES",
    "QUESTION_TYPES",
    "SEMESTER_TOPICS",
    "TOPICS",
    "Question",
    "get_topic_display_name",
    "get_topic_semester",
    "QuestionBank",
    "QuestionService",
    "QuestionStats",
]
