from __future__ import annotations

"""Timed test flow: configure, resume or start, answer, submit, score.

TestSessionManager is front-end agnostic. A host (the CLI, a GUI, a test)
drives it through its public methods and reads ``phase`` to decide what to
show. Every navigation or answer change is written to the active session
slot of the SessionStore, and the remaining time is saved on each
``autosave_every``-th second, so an interrupted test can be picked up again.

Phases::

    AWAITING_CONFIG  -> no usable configuration, host should ask for one
    RESUME_CHECK     -> a matching unfinished test exists, host asks
                        resume() or start_fresh()
    LOADING          -> questions are being assembled
    IN_PROGRESS      -> answering
    CONFIRMING_SUBMIT-> submit requested with unanswered questions
    COMPLETE         -> scored, saved, published; ``result`` is set

Time-up while confirming submits directly.
"""

import math
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..logging_config import get_logger, log_with_context
from ..questions import Question, QuestionService, SEMESTER_TOPICS
from ..scoring import calculate_score, check_answer
from ..storage import SECONDS_PER_QUESTION, AnswerRecord, SessionStore, TestResult, TestSession
from ..storage.tagged import utcnow
from ..util.formatting import format_clock, percent
from ..util.randomness import make_id, shuffled
from .explain import trace as xtrace
from .timer import Countdown

logger = get_logger("session")

Publisher = Callable[[TestResult], None]


class Phase(str, Enum):
    AWAITING_CONFIG = "awaiting-config"
    RESUME_CHECK = "resume-check"
    LOADING = "loading"
    IN_PROGRESS = "in-progress"
    CONFIRMING_SUBMIT = "confirming-submit"
    COMPLETE = "complete"


_ACTIVE = (Phase.IN_PROGRESS, Phase.CONFIRMING_SUBMIT)


@dataclass(frozen=True)
class TestConfig:
    """What the student asked for: semester, topic set, number of questions."""

    __test__ = False

    semester: int
    topics: Tuple[str, ...]
    question_count: int

    def __post_init__(self) -> None:
        if self.semester not in SEMESTER_TOPICS:
            raise ValueError(f"Unknown semester: {self.semester}")
        if not self.topics:
            raise ValueError("At least one topic is required")
        if len(set(self.topics)) != len(self.topics):
            raise ValueError("Topics must not repeat")
        allowed = SEMESTER_TOPICS[self.semester]
        for t in self.topics:
            if t not in allowed:
                raise ValueError(f"Topic {t!r} is not part of semester {self.semester}")
        if self.question_count < 1:
            raise ValueError("question_count must be >= 1")

    @classmethod
    def from_params(
        cls,
        semester: Union[str, int, None],
        topics: Union[str, Iterable[str], None],
        question_count: Union[str, int, None],
    ) -> Optional["TestConfig"]:
        """Build from loose parameters (CLI flags, query strings).

        Returns None when something is missing or unusable, which the
        manager treats as "ask for a configuration".
        """
        if semester in (None, "") or topics in (None, "") or question_count in (None, ""):
            return None
        if isinstance(topics, str):
            topic_list = [t.strip() for t in topics.split(",") if t.strip()]
        else:
            topic_list = [str(t) for t in topics]
        topic_list = list(dict.fromkeys(topic_list))
        try:
            return cls(int(semester), tuple(topic_list), int(question_count))
        except ValueError:
            return None

    @classmethod
    def from_session(cls, session: TestSession) -> "TestConfig":
        return cls(int(session.semester), tuple(session.topics), int(session.question_count))

    def matches(self, session: TestSession) -> bool:
        """Same semester, same count and the same topics in any order."""
        return (
            int(session.semester) == self.semester
            and int(session.question_count) == self.question_count
            and len(session.topics) == len(self.topics)
            and set(session.topics) == set(self.topics)
        )


@dataclass(frozen=True)
class ResumeSummary:
    answered: int
    question_count: int
    progress_pct: int
    current_question: int  # 1-based
    time_remaining: int

    @property
    def time_remaining_text(self) -> str:
        return format_clock(self.time_remaining)


class TestSessionManager:
    __test__ = False

    def __init__(
        self,
        store: SessionStore,
        questions: QuestionService,
        *,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        publisher: Optional[Publisher] = None,
        autosave_every: int = 10,
        overfetch: int = 5,
        autostart_timer: bool = False,
        countdown_factory: Callable[..., Countdown] = Countdown,
    ) -> None:
        self.store = store
        self.questions = questions
        self.clock = clock
        self.rng = rng
        self.publisher = publisher
        self.autosave_every = max(1, int(autosave_every))
        self.overfetch = max(0, int(overfetch))
        self.autostart_timer = autostart_timer
        self._countdown_factory = countdown_factory

        self.phase = Phase.AWAITING_CONFIG
        self.config: Optional[TestConfig] = None
        self.session_id: Optional[str] = None
        self.test_questions: List[Question] = []
        self.answers: Dict[int, str] = {}
        self.current_index = 0
        self.start_time = 0.0
        self.time_remaining = 0
        self.created_at = utcnow()
        self.result: Optional[TestResult] = None
        self.countdown: Optional[Countdown] = None
        self._pending: Optional[TestSession] = None
        self._lock = threading.RLock()

    # --- entry ---

    def open(self, config: Optional[TestConfig]) -> Phase:
        """Decide between resume check, fresh start and asking for a config."""
        with self._lock:
            active = self.store.load_active_test_session()
            if config is not None:
                if active is not None:
                    if config.matches(active):
                        self._enter_resume_check(config, active)
                        return self.phase
                    log_with_context(logger, "INFO", "Discarding unfinished test with a different configuration", {"session_id": active.id})
                    self.store.clear_active_test_session()
                    xtrace("session_discarded", {"id": active.id, "reason": "config-mismatch"})
                self._start_new(config)
            elif active is not None:
                self._enter_resume_check(TestConfig.from_session(active), active)
            else:
                self.phase = Phase.AWAITING_CONFIG
            return self.phase

    def _enter_resume_check(self, config: TestConfig, session: TestSession) -> None:
        self.config = config
        self._pending = session
        self.phase = Phase.RESUME_CHECK
        xtrace("resume_offered", {"id": session.id, "answered": session.answered_count, "time_remaining": session.time_remaining})

    def resume_summary(self) -> Optional[ResumeSummary]:
        s = self._pending
        if s is None:
            return None
        return ResumeSummary(
            answered=s.answered_count,
            question_count=s.question_count,
            progress_pct=percent(s.answered_count, s.question_count),
            current_question=s.current_index + 1,
            time_remaining=s.time_remaining,
        )

    def resume(self) -> Phase:
        with self._lock:
            self._require(Phase.RESUME_CHECK)
            assert self.config is not None and self._pending is not None
            session, self._pending = self._pending, None
            self.phase = Phase.LOADING
            loaded = [self.questions.get_question_by_id(qid) for qid in session.questions]
            resolved = [q for q in loaded if q is not None]
            if not resolved or len(resolved) != len(session.questions):
                log_with_context(
                    logger,
                    "WARNING",
                    "Stored questions no longer resolve, starting a new test",
                    {"session_id": session.id, "missing": len(session.questions) - len(resolved)},
                )
                self.store.clear_active_test_session()
                self._start_new(self.config)
                return self.phase
            self.session_id = session.id
            self.test_questions = resolved
            self.answers = dict(session.answers)
            self.current_index = min(session.current_index, len(resolved) - 1)
            self.start_time = session.start_time
            self.time_remaining = session.time_remaining
            self.created_at = session.created_at
            self.phase = Phase.IN_PROGRESS
            self._start_countdown(self.time_remaining)
            xtrace("session_resumed", {"id": session.id, "index": self.current_index, "time_remaining": self.time_remaining})
            return self.phase

    def start_fresh(self) -> Phase:
        """Drop the unfinished test and start a new one with the same config."""
        with self._lock:
            self._require(Phase.RESUME_CHECK)
            assert self.config is not None
            self._pending = None
            self.store.clear_active_test_session()
            self._start_new(self.config)
            return self.phase

    def _assemble(self, config: TestConfig) -> List[Question]:
        per_topic = math.ceil(config.question_count / len(config.topics)) + self.overfetch
        pool: List[Question] = []
        for topic in config.topics:
            pool.extend(self.questions.get_random_questions(per_topic, semester=config.semester, topic=topic))
        return shuffled(pool, self.rng)[: config.question_count]

    def _start_new(self, config: TestConfig) -> None:
        self.config = config
        self.phase = Phase.LOADING
        selected = self._assemble(config)
        if not selected:
            log_with_context(logger, "WARNING", "No questions available for configuration", {"semester": config.semester, "topics": list(config.topics)})
            self.phase = Phase.AWAITING_CONFIG
            return
        if len(selected) < config.question_count:
            log_with_context(
                logger,
                "WARNING",
                "Catalog has fewer questions than requested",
                {"requested": config.question_count, "available": len(selected)},
            )
        self.session_id = make_id("test-session")
        self.test_questions = selected
        self.answers = {}
        self.current_index = 0
        self.start_time = float(self.clock())
        self.time_remaining = config.question_count * SECONDS_PER_QUESTION
        self.created_at = utcnow()
        self.result = None
        self.phase = Phase.IN_PROGRESS
        self._save()
        self._start_countdown(self.time_remaining)
        xtrace(
            "session_started",
            {"id": self.session_id, "semester": config.semester, "topics": list(config.topics), "n": len(selected), "time": self.time_remaining},
        )

    # --- countdown ---

    def _start_countdown(self, seconds: int) -> None:
        if self.countdown is not None:
            self.countdown.cancel()
        self.countdown = self._countdown_factory(seconds, on_update=self.handle_timer_update, on_time_up=self.handle_time_up)
        if self.autostart_timer:
            self.countdown.start()

    def handle_timer_update(self, remaining: int) -> None:
        with self._lock:
            if self.phase not in _ACTIVE:
                return
            self.time_remaining = max(0, int(remaining))
            if self.time_remaining % self.autosave_every == 0:
                self._save()

    def handle_time_up(self) -> Optional[TestResult]:
        with self._lock:
            if self.phase not in _ACTIVE:
                return self.result
            self.time_remaining = 0
            xtrace("time_up", {"id": self.session_id})
            return self._complete()

    # --- answering and navigation ---

    @property
    def current_question(self) -> Optional[Question]:
        if not self.test_questions:
            return None
        return self.test_questions[self.current_index]

    @property
    def current_answer(self) -> str:
        return self.answers.get(self.current_index, "")

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers.values() if a.strip())

    @property
    def unanswered_count(self) -> int:
        return len(self.test_questions) - self.answered_count

    def question_status(self, index: int) -> str:
        if index == self.current_index:
            return "current"
        return "answered" if self.answers.get(index, "").strip() else "unanswered"

    def set_answer(self, answer: str) -> None:
        with self._lock:
            self._require(Phase.IN_PROGRESS)
            text = str(answer)
            if text.strip():
                self.answers[self.current_index] = text
            else:
                self.answers.pop(self.current_index, None)
            self._save()

    def go_to(self, index: int) -> bool:
        with self._lock:
            self._require(Phase.IN_PROGRESS)
            if not (0 <= index < len(self.test_questions)) or index == self.current_index:
                return False
            self.current_index = index
            self._save()
            return True

    def next_question(self) -> bool:
        return self.go_to(self.current_index + 1)

    def previous_question(self) -> bool:
        return self.go_to(self.current_index - 1)

    # --- submission ---

    def request_submit(self) -> Phase:
        with self._lock:
            self._require(Phase.IN_PROGRESS)
            if self.unanswered_count > 0:
                self.phase = Phase.CONFIRMING_SUBMIT
                xtrace("submit_confirm", {"unanswered": self.unanswered_count})
            else:
                self._complete()
            return self.phase

    def cancel_submit(self) -> Phase:
        with self._lock:
            self._require(Phase.CONFIRMING_SUBMIT)
            self.phase = Phase.IN_PROGRESS
            return self.phase

    def confirm_submit(self) -> Optional[TestResult]:
        with self._lock:
            if self.phase == Phase.COMPLETE:
                return self.result
            self._require(Phase.CONFIRMING_SUBMIT, Phase.IN_PROGRESS)
            return self._complete()

    def _complete(self) -> TestResult:
        if self.phase == Phase.COMPLETE and self.result is not None:
            return self.result
        if self.countdown is not None:
            self.countdown.cancel()
        assert self.config is not None
        total_elapsed = max(0, int(math.floor(self.clock() - self.start_time)))
        n = len(self.test_questions)
        per_question = total_elapsed // n
        records: List[AnswerRecord] = []
        for i, q in enumerate(self.test_questions):
            ans = self.answers.get(i, "")
            records.append(
                AnswerRecord(
                    question_id=q.id,
                    student_answer=ans,
                    is_correct=bool(ans.strip()) and check_answer(q, ans),
                    time_spent=per_question,
                )
            )
        correct = sum(1 for r in records if r.is_correct)
        result = TestResult(
            id=make_id("test"),
            date=utcnow(),
            semester=self.config.semester,
            topics=list(self.config.topics),
            score=calculate_score(correct, n),
            total_questions=n,
            correct_answers=correct,
            time_spent=total_elapsed,
            answers=records,
        )
        self.store.save_test_result(result)
        self._publish(result)
        self.store.clear_active_test_session()
        self.result = result
        self.phase = Phase.COMPLETE
        xtrace("session_completed", {"id": result.id, "score": result.score, "correct": correct, "n": n, "time": total_elapsed})
        return result

    def _publish(self, result: TestResult) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher(result)
        except Exception as e:
            log_with_context(logger, "WARNING", "Result publisher failed", {"result_id": result.id, "error": str(e)})

    # --- lifecycle ---

    def before_unload(self) -> None:
        """Flush the current state; call when the host is about to go away."""
        with self._lock:
            self._save()

    def close(self) -> None:
        with self._lock:
            if self.countdown is not None:
                self.countdown.cancel()

    # --- helpers ---

    def snapshot(self) -> TestSession:
        assert self.config is not None and self.session_id is not None
        return TestSession(
            id=self.session_id,
            semester=self.config.semester,
            topics=list(self.config.topics),
            question_count=self.config.question_count,
            questions=[q.id for q in self.test_questions],
            current_index=self.current_index,
            answers=dict(self.answers),
            start_time=self.start_time,
            time_remaining=self.time_remaining,
            is_active=True,
            created_at=self.created_at,
        )

    def _save(self) -> None:
        if self.phase not in _ACTIVE or self.session_id is None:
            return
        self.store.save_active_test_session(self.snapshot())

    def _require(self, *phases: Phase) -> None:
        if self.phase not in phases:
            raise RuntimeError(f"Not allowed in phase {self.phase.value}")


def review_rows(questions: Sequence[Question], result: TestResult) -> List[Dict[str, object]]:
    """Per-question rows for the results view (question, answer, verdict)."""
    by_id = {q.id: q for q in questions}
    rows: List[Dict[str, object]] = []
    for i, rec in enumerate(result.answers, start=1):
        q = by_id.get(rec.question_id)
        rows.append(
            {
                "number": i,
                "content": q.content if q else rec.question_id,
                "student_answer": rec.student_answer,
                "correct_answer": q.correct_answer if q else None,
                "is_correct": rec.is_correct,
                "explanation": q.explanation if q else "",
            }
        )
    return rows
