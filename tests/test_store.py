import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from mathpractice.storage import FileStorage, MemoryStorage, SessionStore, schema, storage_keys

T0 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def _result(rid: str, correct: int, total: int = 10, topics=("phan-so",), days: int = 0) -> schema.TestResult:
    return schema.TestResult(
        id=rid,
        date=T0 + timedelta(days=days),
        semester=1,
        topics=list(topics),
        score=round(correct / total * 10, 1),
        total_questions=total,
        correct_answers=correct,
        time_spent=300,
        answers=[],
    )


def _practice(pid: str, attempted: int = 5, correct: int = 3) -> schema.PracticeSession:
    return schema.PracticeSession(
        id=pid,
        date=T0,
        mode="tinh-nhanh",
        questions_attempted=attempted,
        correct_answers=correct,
        time_spent=120,
    )


def _session(**kw) -> schema.TestSession:
    base = dict(
        id="test-session-1",
        semester=1,
        topics=["phan-so"],
        question_count=10,
        questions=[f"s1-ps-00{i}" for i in range(1, 9)],
        answers={0: "3/4"},
        start_time=1700000000.0,
        time_remaining=300,
    )
    base.update(kw)
    return schema.TestSession(**base)


class BrokenStorage:
    """Medium that refuses everything."""

    def get_item(self, key):
        raise OSError("disk gone")

    def set_item(self, key, value):
        raise OSError("disk gone")

    def remove_item(self, key):
        raise OSError("disk gone")


class RejectingStorage(MemoryStorage):
    """Medium that refuses writes to one key only."""

    def __init__(self, bad_key: str) -> None:
        super().__init__()
        self.bad_key = bad_key

    def set_item(self, key, value):
        if key == self.bad_key:
            raise OSError("quota exceeded")
        super().set_item(key, value)


class ProgressTests(unittest.TestCase):
    def setUp(self) -> None:
        self.medium = MemoryStorage()
        self.store = SessionStore(self.medium)

    def test_fresh_store_has_no_progress(self) -> None:
        self.assertIsNone(self.store.load_progress())
        self.assertEqual(self.store.get_test_history(), [])
        self.assertEqual(self.store.get_weak_topics(), [])

    def test_get_or_create_is_idempotent(self) -> None:
        first = self.store.get_or_create_progress()
        second = self.store.get_or_create_progress()
        self.assertEqual(first.total_exercises, 0)
        self.assertEqual(second.model_dump(exclude={"last_active"}), first.model_dump(exclude={"last_active"}))
        self.assertIsNotNone(self.medium.get_item(storage_keys()["progress"]))

    def test_save_progress_stamps_last_active(self) -> None:
        p = schema.StudentProgress(last_active=T0)
        self.store.save_progress(p)
        self.assertGreater(self.store.load_progress().last_active, T0)

    def test_test_result_folds_into_progress(self) -> None:
        self.store.save_test_result(_result("test-a", 7))
        self.store.save_test_result(_result("test-b", 3, topics=("phan-so", "so-tu-nhien")))
        p = self.store.load_progress()
        self.assertEqual(p.total_exercises, 20)
        self.assertEqual(p.correct_answers, 10)
        self.assertEqual([r.id for r in p.test_scores], ["test-a", "test-b"])
        self.assertEqual(p.weak_topics, ["phan-so", "so-tu-nhien"])
        self.assertEqual(len(self.store.get_test_history()), 2)

    def test_passing_score_adds_no_weak_topic(self) -> None:
        self.store.save_test_result(_result("test-a", 5))
        self.assertEqual(self.store.get_weak_topics(), [])

    def test_practice_session_folds_into_progress(self) -> None:
        self.store.save_practice_session(_practice("practice-a", 5, 3))
        p = self.store.load_progress()
        self.assertEqual((p.total_exercises, p.correct_answers), (5, 3))
        self.assertEqual(len(p.practice_history), 1)
        self.assertEqual([s.id for s in self.store.get_practice_history()], ["practice-a"])

    def test_update_weak_topics(self) -> None:
        self.store.update_weak_topics(["hinh-hoc-co-ban"])
        self.assertEqual(self.store.get_weak_topics(), ["hinh-hoc-co-ban"])

    def test_corrupt_payload_reads_as_missing(self) -> None:
        self.medium.set_item(storage_keys()["progress"], "{not json")
        self.assertIsNone(self.store.load_progress())

    def test_namespace_separates_keys(self) -> None:
        other = SessionStore(self.medium, namespace="other")
        other.save_test_result(_result("test-a", 7))
        self.assertEqual(self.store.get_test_history(), [])
        self.assertIn("other-test-history", self.medium.keys())


class ActiveSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.medium = MemoryStorage()
        self.store = SessionStore(self.medium)
        self.key = storage_keys()["active_test_session"]

    def test_round_trip(self) -> None:
        self.store.save_active_test_session(_session())
        loaded = self.store.load_active_test_session()
        self.assertEqual(loaded, _session(created_at=loaded.created_at))
        self.assertTrue(self.store.has_active_test_session())

    def test_expired_session_is_cleared_on_load(self) -> None:
        self.store.save_active_test_session(_session(time_remaining=0))
        self.assertIsNone(self.store.load_active_test_session())
        self.assertIsNone(self.medium.get_item(self.key))

    def test_inactive_session_is_cleared_on_load(self) -> None:
        self.store.save_active_test_session(_session(is_active=False))
        self.assertFalse(self.store.has_active_test_session())
        self.assertIsNone(self.medium.get_item(self.key))

    def test_update_merges_fields(self) -> None:
        self.assertIsNone(self.store.update_active_test_session(current_index=1))
        self.store.save_active_test_session(_session())
        updated = self.store.update_active_test_session(current_index=4, answers={0: "3/4", 4: "14"})
        self.assertEqual(updated.current_index, 4)
        self.assertEqual(self.store.load_active_test_session().answers, {0: "3/4", 4: "14"})

    def test_invalid_update_is_logged_and_ignored(self) -> None:
        self.store.save_active_test_session(_session(question_count=2, questions=["s1-ps-001", "s1-ps-002"], time_remaining=100))
        with self.assertLogs("mathpractice.storage", level="WARNING"):
            self.assertIsNone(self.store.update_active_test_session(current_index=5))
        self.assertEqual(self.store.load_active_test_session().current_index, 0)

    def test_clear(self) -> None:
        self.store.save_active_test_session(_session())
        self.store.clear_active_test_session()
        self.assertIsNone(self.store.load_active_test_session())


class RoundTripTests(unittest.TestCase):
    """Everything written through the store reads back equal."""

    def setUp(self) -> None:
        self.store = SessionStore(MemoryStorage())
        answers = [
            schema.AnswerRecord(question_id="s1-tn-001", student_answer="7.0", is_correct=True, time_spent=40),
            schema.AnswerRecord(question_id="s1-tn-002", student_answer=7, is_correct=False, time_spent=40),
            schema.AnswerRecord(question_id="s1-ps-001", student_answer="", is_correct=False, time_spent=40),
        ]
        self.result = schema.TestResult(
            id="test-rt",
            date=T0 + timedelta(minutes=12, seconds=5),
            semester=1,
            topics=["so-tu-nhien", "phan-so"],
            score=3.3,
            total_questions=3,
            correct_answers=1,
            time_spent=120,
            answers=answers,
        )
        self.practice = _practice("practice-rt", 4, 2)

    def test_progress(self) -> None:
        progress = schema.StudentProgress(
            total_exercises=7,
            correct_answers=3,
            test_scores=[self.result],
            practice_history=[self.practice],
            weak_topics=["phan-so"],
            last_active=T0,
        )
        self.store.save_progress(progress)
        loaded = self.store.load_progress()
        self.assertEqual(loaded, progress.model_copy(update={"last_active": loaded.last_active}))
        self.assertEqual(loaded.test_scores[0].answers[0].student_answer, "7.0")
        self.assertEqual(loaded.test_scores[0].answers[1].student_answer, 7)
        self.assertEqual(loaded.test_scores[0].date, T0 + timedelta(minutes=12, seconds=5))

    def test_test_history(self) -> None:
        self.store.save_test_result(self.result)
        self.assertEqual(self.store.get_test_history(), [self.result])

    def test_practice_history(self) -> None:
        self.store.save_practice_session(self.practice)
        self.assertEqual(self.store.get_practice_history(), [self.practice])

    def test_active_session(self) -> None:
        session = _session(answers={0: "3/4", 3: "12,5"}, current_index=3, created_at=T0)
        self.store.save_active_test_session(session)
        self.assertEqual(self.store.load_active_test_session(), session)


class BulkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SessionStore(MemoryStorage())
        self.store.save_test_result(_result("test-a", 7))
        self.store.save_practice_session(_practice("practice-a"))
        self.store.save_student_info(schema.StudentInfo(name="An", class_name="5A"))

    def test_clear_all_keeps_student_info(self) -> None:
        self.store.save_active_test_session(_session())
        self.store.clear_all_data()
        self.assertIsNone(self.store.load_progress())
        self.assertEqual(self.store.get_test_history(), [])
        self.assertEqual(self.store.get_practice_history(), [])
        self.assertIsNone(self.store.load_active_test_session())
        self.assertEqual(self.store.get_student_info().name, "An")

    def test_stats(self) -> None:
        st = self.store.get_storage_stats()
        self.assertEqual((st.test_count, st.practice_count, st.has_progress), (1, 1, True))

    def test_import_merges_by_id(self) -> None:
        snapshot = self.store.export_all_data()
        target = SessionStore(MemoryStorage())
        target.save_test_result(_result("test-local", 9))
        self.assertEqual(target.import_data(snapshot), {"tests": 1, "practice": 1})
        self.assertEqual(target.import_data(snapshot), {"tests": 0, "practice": 0})
        self.assertEqual({r.id for r in target.get_test_history()}, {"test-local", "test-a"})

    def test_import_with_overwrite_replaces(self) -> None:
        snapshot = self.store.export_all_data()
        target = SessionStore(MemoryStorage())
        target.save_test_result(_result("test-local", 9))
        self.assertEqual(target.import_data(snapshot, overwrite=True), {"tests": 1, "practice": 1})
        self.assertEqual([r.id for r in target.get_test_history()], ["test-a"])
        self.assertEqual(target.load_progress().total_exercises, 15)

    def test_import_accepts_plain_dict(self) -> None:
        doc = self.store.export_all_data().model_dump(mode="json")
        target = SessionStore(MemoryStorage())
        self.assertEqual(target.import_data(doc), {"tests": 1, "practice": 1})

    def test_import_rejects_malformed_input(self) -> None:
        with self.assertRaises(ValueError):
            SessionStore(MemoryStorage()).import_data({"test_history": [{"id": "x"}]})


class FallbackTests(unittest.TestCase):
    def test_unavailable_medium_uses_memory(self) -> None:
        store = SessionStore(BrokenStorage())
        self.assertFalse(store.is_available())
        store.save_test_result(_result("test-a", 2))
        self.assertEqual(len(store.get_test_history()), 1)
        self.assertEqual(store.load_progress().total_exercises, 10)
        store.save_active_test_session(_session())
        self.assertIsNotNone(store.load_active_test_session())
        store.clear_all_data()
        self.assertEqual(store.get_test_history(), [])

    def test_unavailable_medium_warns_once(self) -> None:
        store = SessionStore(BrokenStorage())
        with self.assertLogs("mathpractice.storage", level="WARNING") as logs:
            store.load_progress()
            store.get_test_history()
            store.get_practice_history()
        unavailable = [line for line in logs.output if "unavailable" in line]
        self.assertEqual(len(unavailable), 1)

    def test_failed_progress_write_leaves_history_ahead(self) -> None:
        medium = RejectingStorage(storage_keys()["progress"])
        store = SessionStore(medium)
        store.save_test_result(_result("test-a", 7))
        # the writing instance still sees the folded progress from memory
        self.assertEqual(store.load_progress().total_exercises, 10)
        fresh = SessionStore(medium)
        self.assertEqual(len(fresh.get_test_history()), 1)
        self.assertIsNone(fresh.load_progress())


class FileStorageTests(unittest.TestCase):
    def test_persists_across_instances(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            root = Path(d) / "data"
            SessionStore(FileStorage(root)).save_test_result(_result("test-a", 7))
            self.assertTrue((root / "math-grade5-test-history.json").exists())
            again = SessionStore(FileStorage(root))
            self.assertEqual([r.id for r in again.get_test_history()], ["test-a"])
            self.assertFalse((root / "__storage_test__.json").exists())

    def test_rejects_path_like_keys(self) -> None:
        fs = FileStorage(Path(tempfile.gettempdir()))
        for key in ("../x", "a/b", ".hidden", ""):
            with self.assertRaises(ValueError):
                fs.set_item(key, "v")

    def test_missing_key_reads_none(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            fs = FileStorage(Path(d))
            self.assertIsNone(fs.get_item("nothing"))
            fs.remove_item("nothing")


if __name__ == "__main__":
    unittest.main()
