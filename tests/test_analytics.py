import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
import pydantic

from mathpractice.analytics import (
    AnalyticsConfig,
    analyze_topic_performance,
    export_history_parquet,
    get_recommendations,
    get_test_recommendations,
    history_frame,
    identify_weak_topics,
    progress_overview,
    study_plan,
)
from mathpractice.questions import QuestionBank
from mathpractice.scoring import calculate_score
from mathpractice.storage import schema

BANK = QuestionBank.from_directory()
T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _result(rid: str, answers, days: int = 0) -> schema.TestResult:
    """answers: list of (question_id, is_correct)."""
    correct = sum(1 for _, ok in answers if ok)
    topics = sorted({BANK.get(qid).topic for qid, _ in answers if BANK.get(qid)}) or ["phan-so"]
    return schema.TestResult(
        id=rid,
        date=T0 + timedelta(days=days),
        semester=1,
        topics=topics,
        score=calculate_score(correct, len(answers)),
        total_questions=len(answers),
        correct_answers=correct,
        time_spent=60 * len(answers),
        answers=[
            schema.AnswerRecord(question_id=qid, student_answer="x", is_correct=ok, time_spent=60)
            for qid, ok in answers
        ],
    )


MIXED = _result(
    "test-mixed",
    [("s1-ps-001", True), ("s1-ps-002", True)]
    + [("s1-stn-001", True), ("s1-stn-002", False), ("s1-stn-003", False), ("s1-stn-004", False)],
)


class HistoryFrameTests(unittest.TestCase):
    def test_one_row_per_resolvable_answer(self) -> None:
        extra = _result("test-x", [("gone-1", True), ("s1-hh-001", False)], days=1)
        df = history_frame([extra, MIXED], BANK.get)
        self.assertEqual(len(df), 7)
        self.assertEqual(list(df["test_id"].unique()), ["test-mixed", "test-x"])
        self.assertIsInstance(df["date"].dtype, pd.DatetimeTZDtype)

    def test_empty_history(self) -> None:
        df = history_frame([], BANK.get)
        self.assertTrue(df.empty)
        self.assertIn("topic", df.columns)


class TopicPerformanceTests(unittest.TestCase):
    def test_aggregates_per_topic(self) -> None:
        perf = analyze_topic_performance([MIXED], BANK.get)
        self.assertEqual(perf.loc["phan-so", "total_questions"], 2)
        self.assertEqual(perf.loc["phan-so", "average_score"], 10.0)
        self.assertEqual(perf.loc["so-tu-nhien", "average_score"], 2.5)
        self.assertEqual(perf.loc["phan-so", "trend"], "unknown")
        self.assertEqual(perf.loc["so-tu-nhien", "trend"], "stable")
        self.assertEqual(perf.loc["so-tu-nhien", "semester"], 1)

    def test_declining_trend_uses_last_three_tests(self) -> None:
        history = [_result("t1", [(f"s1-ps-00{i}", True) for i in range(1, 5)], days=0)]
        history += [_result(f"t{d + 1}", [(f"s1-ps-00{d + 4}", False)], days=d) for d in (1, 2, 3)]
        perf = analyze_topic_performance(history, BANK.get)
        self.assertEqual(perf.loc["phan-so", "recent_total"], 3)
        self.assertEqual(perf.loc["phan-so", "recent_score"], 0.0)
        self.assertEqual(perf.loc["phan-so", "average_score"], 5.7)
        self.assertEqual(perf.loc["phan-so", "trend"], "declining")
        self.assertEqual(perf.loc["phan-so", "last_practiced"], pd.Timestamp(T0 + timedelta(days=3)))

    def test_empty_history_gives_empty_frame(self) -> None:
        perf = analyze_topic_performance([], BANK.get)
        self.assertTrue(perf.empty)
        self.assertEqual(identify_weak_topics([], BANK.get), [])
        self.assertEqual(get_recommendations([], BANK.get), [])


class RecommendationTests(unittest.TestCase):
    def setUp(self) -> None:
        answers = [("s1-stn-001", True)] + [(f"s1-stn-00{i}", False) for i in (2, 3, 4)]
        answers += [("s1-ps-001", True), ("s1-ps-002", True)] + [(f"s1-ps-00{i}", False) for i in (3, 4, 5)]
        answers += [(f"s1-stp-00{i}", True) for i in (1, 2, 3)] + [(f"s1-stp-00{i}", False) for i in (4, 5)]
        answers += [("s1-hh-001", True), ("s1-hh-002", True)]
        self.result = _result("test-rec", answers)

    def test_weak_topics_weakest_first(self) -> None:
        self.assertEqual(identify_weak_topics([self.result], BANK.get), ["so-tu-nhien", "phan-so"])

    def test_weak_threshold_is_configurable(self) -> None:
        cfg = AnalyticsConfig(weak_threshold=7.0)
        self.assertEqual(identify_weak_topics([self.result], BANK.get, cfg), ["so-tu-nhien", "phan-so", "so-thap-phan-1"])

    def test_config_bounds(self) -> None:
        for bad in ({"recent_tests": 0}, {"weak_threshold": 11}, {"high_below": 6.0}):
            with self.assertRaises(pydantic.ValidationError):
                AnalyticsConfig(**bad)
        with self.assertRaises(pydantic.ValidationError):
            AnalyticsConfig().weak_threshold = 4.0

    def test_priorities_and_order(self) -> None:
        recs = get_recommendations([self.result], BANK.get)
        self.assertEqual([(r.topic, r.priority) for r in recs], [
            ("so-tu-nhien", "high"),
            ("phan-so", "medium"),
            ("so-thap-phan-1", "low"),
        ])
        self.assertEqual(recs[0].reason, "Điểm trung bình 2.5/10 - Cần ôn tập lại kiến thức cơ bản")
        self.assertEqual(recs[2].reason, "Điểm trung bình 6/10 - Có thể cải thiện thêm")

    def test_test_recommendations_only_below_five(self) -> None:
        self.assertEqual(get_test_recommendations(MIXED, BANK.get), [])
        weak = _result("test-weak", [("s1-ps-001", False), ("s1-ps-002", False), ("s1-ps-003", True)])
        recs = get_test_recommendations(weak, BANK.get)
        self.assertEqual([r.topic for r in recs], ["phan-so"])

    def test_study_plan_covers_untested_topics(self) -> None:
        plan = study_plan([self.result], BANK.get)
        by_topic = {p.topic: p for p in plan}
        self.assertEqual(by_topic["so-tu-nhien"].priority, "high")
        self.assertEqual(by_topic["so-tu-nhien"].difficulty, "easy")
        self.assertEqual(by_topic["phan-so"].practice_mode, "toan-giai")
        self.assertEqual(by_topic["ti-so-phan-tram"].priority, "medium")
        self.assertEqual(by_topic["ti-so-phan-tram"].score, 0.0)
        self.assertNotIn("hinh-hoc-co-ban", by_topic)
        self.assertEqual(plan[0].topic, "so-tu-nhien")


class OverviewAndExportTests(unittest.TestCase):
    def test_progress_overview(self) -> None:
        r1 = _result("a", [("s1-ps-001", True), ("s1-ps-002", False)], days=0)
        r2 = _result("b", [("s1-ps-001", True), ("s1-ps-002", True), ("s1-ps-003", True), ("s1-ps-004", False)], days=1)
        progress = schema.StudentProgress(total_exercises=6, correct_answers=4, weak_topics=["phan-so"])
        ov = progress_overview(progress, [r1, r2])
        self.assertEqual(ov["tests_taken"], 2)
        self.assertEqual(ov["average_test_score"], 6.3)
        self.assertEqual(ov["accuracy"], 67)
        self.assertEqual(ov["grade"], "Trung bình")
        self.assertEqual([t["id"] for t in ov["recent_tests"]], ["b", "a"])
        self.assertEqual(ov["weak_topics"], ["phan-so"])

    def test_progress_overview_empty(self) -> None:
        ov = progress_overview(None, [])
        self.assertEqual(ov["average_test_score"], 0.0)
        self.assertIsNone(ov["grade"])
        self.assertEqual(ov["accuracy"], 0)

    def test_export_history_parquet(self) -> None:
        practice = schema.PracticeSession(
            id="p1", date=T0, mode="tinh-nhanh", questions_attempted=4, correct_answers=3, time_spent=90
        )
        with tempfile.TemporaryDirectory() as d:
            paths = export_history_parquet(Path(d), [MIXED], [practice])
            self.assertEqual([p.name for p in paths], ["tests.parquet", "practice.parquet"])
            tests = pd.read_parquet(paths[0], engine="pyarrow")
            self.assertEqual(list(tests["id"]), ["test-mixed"])
            self.assertEqual(tests.loc[0, "topics"], "phan-so,so-tu-nhien")
            practice_df = pd.read_parquet(paths[1], engine="pyarrow")
            self.assertEqual(int(practice_df.loc[0, "correct_answers"]), 3)


if __name__ == "__main__":
    unittest.main()
