from __future__ import annotations

"""Query helpers over a QuestionBank: filtering, random draws, stats."""

import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..util.randomness import shuffled
from .bank import QuestionBank
from .model import DIFFICULTIES, QUESTION_TYPES, SEMESTER_TOPICS, TOPICS, Question, get_topic_semester


@dataclass
class QuestionStats:
    total: int
    by_semester: Dict[int, int]
    by_mode: Dict[str, int] = field(default_factory=dict)
    by_topic: Dict[str, int] = field(default_factory=dict)
    by_difficulty: Dict[str, int] = field(default_factory=dict)


class QuestionService:
    def __init__(self, bank: QuestionBank, rng: Optional[random.Random] = None) -> None:
        self.bank = bank
        self.rng = rng

    def get_questions_by_semester(self, semester: int) -> List[Question]:
        return self.bank.semester(semester)

    def get_questions_by_mode(self, mode: str, semester: Optional[int] = None) -> List[Question]:
        pool = self.bank.semester(semester) if semester else self.bank.all()
        return [q for q in pool if q.type == mode]

    def get_questions_by_topic(self, topic: str) -> List[Question]:
        return self.bank.topic(topic)

    def get_random_questions(
        self,
        count: int,
        *,
        mode: Optional[str] = None,
        semester: Optional[int] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[Question]:
        """Filter the catalog, shuffle it and take at most ``count`` questions.

        Topic wins over semester as the starting pool; mode, difficulty and
        exclusions narrow it down afterwards.
        """
        if topic:
            pool = self.bank.topic(topic)
        elif semester:
            pool = self.bank.semester(semester)
        else:
            pool = self.bank.all()
        if mode:
            pool = [q for q in pool if q.type == mode]
        if difficulty:
            pool = [q for q in pool if q.difficulty == difficulty]
        excluded = set(exclude_ids)
        if excluded:
            pool = [q for q in pool if q.id not in excluded]
        return shuffled(pool, self.rng)[: max(0, min(int(count), len(pool)))]

    def get_question_by_id(self, question_id: str) -> Optional[Question]:
        return self.bank.get(question_id)

    def get_all_questions(self) -> List[Question]:
        return self.bank.all()

    @staticmethod
    def get_topics_for_semester(semester: int) -> List[str]:
        return list(SEMESTER_TOPICS.get(int(semester), []))

    @staticmethod
    def get_topic_semester(topic: str) -> int:
        return get_topic_semester(topic)

    def get_question_stats(self) -> QuestionStats:
        stats = QuestionStats(
            total=len(self.bank),
            by_semester={1: len(self.bank.semester(1)), 2: len(self.bank.semester(2))},
            by_mode={m: 0 for m in QUESTION_TYPES},
            by_topic={t: 0 for t in TOPICS},
            by_difficulty={d: 0 for d in DIFFICULTIES},
        )
        for q in self.bank.all():
            stats.by_mode[q.type] += 1
            stats.by_topic[q.topic] += 1
            stats.by_difficulty[q.difficulty] += 1
        return stats
