from __future__ import annotations

"""Practice rounds: one mode, immediate feedback, progressive hints.

Unlike a test there is nothing to resume. The round ends when every drawn
question is answered, when the host calls finish(), or, for a timed round,
when the countdown runs out. The finished round is saved as a
PracticeSession and handed to the publisher.
"""

import random
import threading
import time
from typing import Callable, List, Optional

from ..logging_config import get_logger, log_with_context
from ..questions import QUESTION_TYPES, Question, QuestionService
from ..scoring import AnswerFeedback, generate_answer_feedback
from ..storage import PracticeSession, SessionStore
from ..storage.tagged import utcnow
from ..util.randomness import make_id
from .explain import trace as xtrace
from .timer import Countdown

logger = get_logger("practice")

Publisher = Callable[[PracticeSession], None]


class PracticeRunner:
    def __init__(
        self,
        store: SessionStore,
        questions: QuestionService,
        *,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        publisher: Optional[Publisher] = None,
        autostart_timer: bool = False,
    ) -> None:
        self.store = store
        self.questions = questions
        self.clock = clock
        self.rng = rng
        self.publisher = publisher
        self.autostart_timer = autostart_timer

        self.mode: Optional[str] = None
        self.round: List[Question] = []
        self.feedback: List[AnswerFeedback] = []
        self.index = 0
        self.hints_shown = 0
        self.start_time = 0.0
        self.countdown: Optional[Countdown] = None
        self.session: Optional[PracticeSession] = None
        self._lock = threading.RLock()

    def start(
        self,
        mode: str,
        *,
        count: int = 10,
        semester: Optional[int] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        time_limit: Optional[int] = None,
    ) -> List[Question]:
        """Draw a round; returns the questions (possibly fewer than ``count``)."""
        if mode not in QUESTION_TYPES:
            raise ValueError(f"Unknown practice mode: {mode}")
        with self._lock:
            if self.countdown is not None:
                self.countdown.cancel()
            self.mode = mode
            self.round = self.questions.get_random_questions(
                count, mode=mode, semester=semester, topic=topic, difficulty=difficulty
            )
            self.feedback = []
            self.index = 0
            self.hints_shown = 0
            self.session = None
            self.start_time = float(self.clock())
            self.countdown = None
            if not self.round:
                log_with_context(logger, "WARNING", "No practice questions match the filters", {"mode": mode, "semester": semester, "topic": topic, "difficulty": difficulty})
            elif time_limit:
                self.countdown = Countdown(int(time_limit), on_time_up=self.handle_time_up)
                if self.autostart_timer:
                    self.countdown.start()
            xtrace("practice_started", {"mode": mode, "n": len(self.round), "time_limit": time_limit})
            return list(self.round)

    @property
    def current_question(self) -> Optional[Question]:
        if self.finished:
            return None
        return self.round[self.index]

    @property
    def finished(self) -> bool:
        return self.session is not None or self.index >= len(self.round)

    @property
    def correct_count(self) -> int:
        return sum(1 for f in self.feedback if f.is_correct)

    def next_hint(self) -> Optional[str]:
        """Reveal one more hint for the current question; None when out of hints."""
        q = self.current_question
        hints = (q.hints or []) if q is not None else []
        if self.hints_shown >= len(hints):
            return None
        hint = hints[self.hints_shown]
        self.hints_shown += 1
        return hint

    def answer(self, student_answer: str) -> AnswerFeedback:
        with self._lock:
            q = self.current_question
            if q is None:
                raise RuntimeError("Practice round is finished")
            if not str(student_answer).strip():
                raise ValueError("Answer is empty")
            fb = generate_answer_feedback(q, student_answer)
            self.feedback.append(fb)
            self.index += 1
            self.hints_shown = 0
            return fb

    def skip(self) -> None:
        with self._lock:
            if self.current_question is not None:
                self.index += 1
                self.hints_shown = 0

    def handle_time_up(self) -> Optional[PracticeSession]:
        xtrace("practice_time_up", {"mode": self.mode, "answered": len(self.feedback)})
        return self.finish()

    def finish(self) -> Optional[PracticeSession]:
        """Save the round (if anything was answered) and return it."""
        with self._lock:
            if self.session is not None:
                return self.session
            if self.countdown is not None:
                self.countdown.cancel()
            if self.mode is None or not self.feedback:
                self.index = len(self.round)
                return None
            session = PracticeSession(
                id=make_id("practice"),
                date=utcnow(),
                mode=self.mode,
                questions_attempted=len(self.feedback),
                correct_answers=self.correct_count,
                time_spent=max(0, int(self.clock() - self.start_time)),
            )
            self.store.save_practice_session(session)
            self.session = session
            if self.publisher is not None:
                try:
                    self.publisher(session)
                except Exception as e:
                    log_with_context(logger, "WARNING", "Practice publisher failed", {"session_id": session.id, "error": str(e)})
            xtrace("practice_finished", {"id": session.id, "attempted": session.questions_attempted, "correct": session.correct_answers})
            return session
