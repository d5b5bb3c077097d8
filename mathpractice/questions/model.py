from __future__ import annotations

"""Question catalog constants and the immutable Question model."""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- Constants ---

Semester = Literal[1, 2]
Topic = Literal[
    "so-tu-nhien",
    "phan-so",
    "so-thap-phan-1",
    "hinh-hoc-co-ban",
    "so-thap-phan-2",
    "ti-so-phan-tram",
    "hinh-hoc-nang-cao",
    "on-tap-cuoi-nam",
]
QuestionType = Literal["tu-duy", "tinh-nhanh", "toan-giai", "toan-co-ban"]
Difficulty = Literal["easy", "medium", "hard"]

SEMESTERS = (1, 2)
SEMESTER_TOPICS = {
    1: ["so-tu-nhien", "phan-so", "so-thap-phan-1", "hinh-hoc-co-ban"],
    2: ["so-thap-phan-2", "ti-so-phan-tram", "hinh-hoc-nang-cao", "on-tap-cuoi-nam"],
}
TOPICS = SEMESTER_TOPICS[1] + SEMESTER_TOPICS[2]
QUESTION_TYPES = ["tu-duy", "tinh-nhanh", "toan-giai", "toan-co-ban"]
DIFFICULTIES = ["easy", "medium", "hard"]

TOPIC_NAMES = {
    "so-tu-nhien": "Số tự nhiên",
    "phan-so": "Phân số",
    "so-thap-phan-1": "Số thập phân (phần 1)",
    "hinh-hoc-co-ban": "Hình học cơ bản",
    "so-thap-phan-2": "Số thập phân (phần 2)",
    "ti-so-phan-tram": "Tỉ số phần trăm",
    "hinh-hoc-nang-cao": "Hình học nâng cao",
    "on-tap-cuoi-nam": "Ôn tập cuối năm",
}
QUESTION_TYPE_NAMES = {
    "tu-duy": "Tư duy",
    "tinh-nhanh": "Tính nhanh",
    "toan-giai": "Toán giải",
    "toan-co-ban": "Toán cơ bản",
}
DIFFICULTY_NAMES = {"easy": "Dễ", "medium": "Trung bình", "hard": "Khó"}


def get_topic_semester(topic: str) -> int:
    for sem, topics in SEMESTER_TOPICS.items():
        if topic in topics:
            return sem
    raise ValueError(f"Unknown topic: {topic}")


def get_topic_display_name(topic: str) -> str:
    return TOPIC_NAMES.get(topic, topic)


# --- Model ---


class Question(BaseModel):
    """Static catalog entry; never mutated at runtime."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    semester: Semester
    topic: Topic
    type: QuestionType
    difficulty: Difficulty
    content: str
    options: Optional[List[str]] = None
    correct_answer: Union[int, float, str]
    explanation: str = ""
    hints: Optional[List[str]] = None

    @model_validator(mode="after")
    def _topic_in_semester(self) -> "Question":
        if self.topic not in SEMESTER_TOPICS[self.semester]:
            raise ValueError(f"topic {self.topic} does not belong to semester {self.semester}")
        return self
