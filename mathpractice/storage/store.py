from __future__ import annotations

"""Session store: best-effort persistence of progress, history and the active test.

Records live under fixed namespaced keys of a key-value medium (FileStorage
by default). Before touching the medium the store probes it by writing and
removing a throwaway key; when that fails, or a single read/write fails,
the store falls back to an in-memory mirror owned by the instance. Public
operations never raise on storage trouble, they log a warning on the
``storage`` channel and carry on.

The history append and the progress fold in save_test_result /
save_practice_session are two separate writes. A failure between them
leaves history and aggregate progress out of step; that window is accepted.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from pydantic import ValidationError

from ..logging_config import get_logger, log_with_context
from . import codec
from .backends import KeyValueStorage, MemoryStorage
from .schema import (
    WEAK_SCORE_THRESHOLD,
    ExportSnapshot,
    PracticeSession,
    StudentInfo,
    StudentProgress,
    TestResult,
    TestSession,
)
from .tagged import utcnow

logger = get_logger("storage")

T = TypeVar("T")

DEFAULT_NAMESPACE = "math-grade5"
PROBE_KEY = "__storage_test__"


def storage_keys(namespace: str = DEFAULT_NAMESPACE) -> Dict[str, str]:
    return {
        "progress": f"{namespace}-progress",
        "test_history": f"{namespace}-test-history",
        "practice_history": f"{namespace}-practice-history",
        "active_test_session": f"{namespace}-active-test-session",
        "student_info": f"{namespace}-student-info",
    }


@dataclass
class _MemoryMirror:
    """Values the medium could not take (or everything, when it is unavailable)."""

    progress: Optional[StudentProgress] = None
    test_history: List[TestResult] = field(default_factory=list)
    practice_history: List[PracticeSession] = field(default_factory=list)
    active_test_session: Optional[TestSession] = None
    student_info: Optional[StudentInfo] = None


@dataclass(frozen=True)
class StorageStats:
    test_count: int
    practice_count: int
    has_progress: bool


class SessionStore:
    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        weak_threshold: float = WEAK_SCORE_THRESHOLD,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.keys = storage_keys(namespace)
        self.weak_threshold = float(weak_threshold)
        self._mirror = _MemoryMirror()
        self._warned_unavailable = False

    # --- medium plumbing ---

    def is_available(self) -> bool:
        try:
            self.storage.set_item(PROBE_KEY, PROBE_KEY)
            self.storage.remove_item(PROBE_KEY)
        except Exception as e:
            if not self._warned_unavailable:
                log_with_context(logger, "WARNING", "Storage unavailable, using in-memory fallback", {"error": str(e)})
                self._warned_unavailable = True
            return False
        if self._warned_unavailable:
            log_with_context(logger, "INFO", "Storage available again")
            self._warned_unavailable = False
        return True

    def _write(self, kind: str, value: Any, encode: Callable[[Any], str], empty: Any = None) -> None:
        if self.is_available():
            try:
                self.storage.set_item(self.keys[kind], encode(value))
                setattr(self._mirror, kind, empty)
                return
            except Exception as e:
                log_with_context(logger, "WARNING", f"Failed to save {kind}, keeping it in memory", {"key": self.keys[kind], "error": str(e)})
        setattr(self._mirror, kind, value)

    def _read(self, kind: str, decode: Callable[[str], T]) -> Optional[T]:
        if not self.is_available():
            return getattr(self._mirror, kind)
        try:
            raw = self.storage.get_item(self.keys[kind])
            if raw:
                return decode(raw)
        except Exception as e:
            log_with_context(logger, "WARNING", f"Failed to load {kind}", {"key": self.keys[kind], "error": str(e)})
        return getattr(self._mirror, kind)

    def _remove(self, kind: str, empty: Any = None) -> None:
        if self.is_available():
            try:
                self.storage.remove_item(self.keys[kind])
            except Exception as e:
                log_with_context(logger, "WARNING", f"Failed to clear {kind}", {"key": self.keys[kind], "error": str(e)})
        setattr(self._mirror, kind, empty)

    # --- progress ---

    def save_progress(self, progress: StudentProgress) -> None:
        to_save = progress.model_copy(update={"last_active": utcnow()})
        self._write("progress", to_save, codec.encode_progress)

    def load_progress(self) -> Optional[StudentProgress]:
        return self._read("progress", codec.decode_progress)

    def get_or_create_progress(self) -> StudentProgress:
        existing = self.load_progress()
        if existing is not None:
            return existing
        progress = StudentProgress()
        self.save_progress(progress)
        return progress

    # --- test history ---

    def save_test_result(self, result: TestResult) -> None:
        history = self.get_test_history()
        history.append(result)
        self._write("test_history", history, codec.encode_test_history, empty=[])
        self._fold_test_result(result)

    def get_test_history(self) -> List[TestResult]:
        return list(self._read("test_history", codec.decode_test_history) or [])

    def _fold_test_result(self, result: TestResult) -> None:
        progress = self.get_or_create_progress()
        progress.total_exercises += result.total_questions
        progress.correct_answers += result.correct_answers
        progress.test_scores.append(result)
        if result.score < self.weak_threshold:
            for topic in result.topics:
                if topic not in progress.weak_topics:
                    progress.weak_topics.append(topic)
        self.save_progress(progress)

    # --- practice history ---

    def save_practice_session(self, session: PracticeSession) -> None:
        history = self.get_practice_history()
        history.append(session)
        self._write("practice_history", history, codec.encode_practice_history, empty=[])
        self._fold_practice_session(session)

    def get_practice_history(self) -> List[PracticeSession]:
        return list(self._read("practice_history", codec.decode_practice_history) or [])

    def _fold_practice_session(self, session: PracticeSession) -> None:
        progress = self.get_or_create_progress()
        progress.total_exercises += session.questions_attempted
        progress.correct_answers += session.correct_answers
        progress.practice_history.append(session)
        self.save_progress(progress)

    # --- active test session slot ---

    def save_active_test_session(self, session: TestSession) -> None:
        self._write("active_test_session", session, codec.encode_test_session)

    def load_active_test_session(self) -> Optional[TestSession]:
        """Return the resumable session, or None.

        A stored session that is inactive or out of time is cleared here
        rather than handed back.
        """
        session = self._read("active_test_session", codec.decode_test_session)
        if session is None:
            return None
        if session.is_active and session.time_remaining > 0:
            return session
        log_with_context(logger, "INFO", "Discarding expired test session", {"session_id": session.id})
        self.clear_active_test_session()
        return None

    def clear_active_test_session(self) -> None:
        self._remove("active_test_session")

    def update_active_test_session(self, **updates: Any) -> Optional[TestSession]:
        current = self.load_active_test_session()
        if current is None:
            return None
        try:
            updated = TestSession.model_validate({**current.model_dump(), **updates})
        except ValidationError as e:
            log_with_context(logger, "WARNING", "Rejected active test session update", {"session_id": current.id, "fields": sorted(updates), "error": str(e)})
            return None
        self.save_active_test_session(updated)
        return updated

    def has_active_test_session(self) -> bool:
        return self.load_active_test_session() is not None

    # --- student identity (spreadsheet sync) ---

    def save_student_info(self, info: StudentInfo) -> None:
        self._write("student_info", info.model_copy(update={"saved_at": utcnow()}), codec.encode_student_info)

    def get_student_info(self) -> Optional[StudentInfo]:
        return self._read("student_info", codec.decode_student_info)

    def clear_student_info(self) -> None:
        self._remove("student_info")

    # --- bulk ---

    def clear_all_data(self) -> None:
        """Wipe progress, both histories and the active session slot."""
        self._remove("progress")
        self._remove("test_history", empty=[])
        self._remove("practice_history", empty=[])
        self._remove("active_test_session")

    def get_storage_stats(self) -> StorageStats:
        return StorageStats(
            test_count=len(self.get_test_history()),
            practice_count=len(self.get_practice_history()),
            has_progress=self.load_progress() is not None,
        )

    def export_all_data(self) -> ExportSnapshot:
        return ExportSnapshot(
            progress=self.load_progress(),
            test_history=self.get_test_history(),
            practice_history=self.get_practice_history(),
            export_date=utcnow(),
        )

    def import_data(self, data: Union[ExportSnapshot, Dict[str, Any]], overwrite: bool = False) -> Dict[str, int]:
        """Merge (or, with overwrite, replace) a snapshot.

        History items whose id already exists are skipped. Returns how many
        test results and practice sessions were added.
        """
        snapshot = data if isinstance(data, ExportSnapshot) else ExportSnapshot.model_validate(data)
        if overwrite:
            self.clear_all_data()
        if snapshot.progress is not None:
            self.save_progress(snapshot.progress)

        added_tests = self._merge("test_history", self.get_test_history(), snapshot.test_history, codec.encode_test_history)
        added_practice = self._merge(
            "practice_history", self.get_practice_history(), snapshot.practice_history, codec.encode_practice_history
        )
        return {"tests": added_tests, "practice": added_practice}

    def _merge(self, kind: str, history: List[Any], incoming: Iterable[Any], encode: Callable[[Any], str]) -> int:
        seen = {item.id for item in history}
        added = 0
        for item in incoming:
            if item.id in seen:
                continue
            history.append(item)
            seen.add(item.id)
            added += 1
        if added:
            self._write(kind, history, encode, empty=[])
        return added

    # --- weak topics ---

    def get_weak_topics(self) -> List[str]:
        progress = self.load_progress()
        return list(progress.weak_topics) if progress is not None else []

    def update_weak_topics(self, topics: Iterable[str]) -> None:
        progress = self.get_or_create_progress()
        progress.weak_topics = list(topics)
        self.save_progress(progress)
