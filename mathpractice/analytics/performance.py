from __future__ import annotations

"""Per-topic performance, weak topics and study recommendations."""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..questions import TOPICS, get_topic_display_name
from ..scoring import calculate_grade
from ..storage import PracticeSession, StudentProgress, TestResult
from ..util.formatting import percent
from .config import AnalyticsConfig
from .frame import QuestionLookup, history_frame

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

PERFORMANCE_COLUMNS = [
    "semester",
    "total_questions",
    "correct_answers",
    "average_score",
    "recent_total",
    "recent_score",
    "trend",
    "last_practiced",
]


@dataclass(frozen=True)
class TopicRecommendation:
    topic: str
    reason: str
    priority: str
    average_score: float


@dataclass(frozen=True)
class StudyPlanItem:
    topic: str
    priority: str
    score: float
    message: str
    practice_mode: str
    difficulty: Optional[str] = None


def _scores(correct: pd.Series, total: pd.Series) -> pd.Series:
    # Half-up rounding to one decimal, matching calculate_score.
    c = correct.astype("float64").to_numpy()
    t = total.astype("float64").to_numpy()
    with np.errstate(divide="ignore", invalid="ignore"):
        raw = np.where(t > 0, np.floor(c / np.where(t > 0, t, 1) * 100 + 0.5) / 10, 0.0)
    return pd.Series(raw, index=correct.index, dtype="float64")


def _fmt(score: float) -> str:
    return f"{score:g}"


def analyze_topic_performance(
    results: Iterable[TestResult],
    lookup: QuestionLookup,
    cfg: Optional[AnalyticsConfig] = None,
) -> pd.DataFrame:
    """Aggregate answers per topic.

    Columns: semester, total_questions, correct_answers, average_score,
    recent_total, recent_score (last ``recent_tests`` tests by date, falling
    back to average_score when the topic was not in them), trend
    (improving/declining/stable, or unknown with fewer than
    ``trend_min_answers`` recent answers) and last_practiced. Index: topic.
    """
    cfg = cfg or AnalyticsConfig()
    df = history_frame(results, lookup)
    if df.empty:
        return pd.DataFrame(columns=PERFORMANCE_COLUMNS, index=pd.Index([], name="topic"))

    tests = df.drop_duplicates("test_id")[["test_id", "date"]]
    recent_ids = set(tests["test_id"].tail(cfg.recent_tests))
    df["recent"] = df["test_id"].isin(recent_ids)
    df["recent_correct"] = df["recent"] & df["is_correct"]

    g = df.groupby("topic", observed=True)
    out = pd.DataFrame(
        {
            "semester": g["semester"].first().astype("int64"),
            "total_questions": g.size().astype("int64"),
            "correct_answers": g["is_correct"].sum().astype("int64"),
            "recent_total": g["recent"].sum().astype("int64"),
            "recent_correct": g["recent_correct"].sum().astype("int64"),
            "last_practiced": g["date"].max(),
        }
    )
    out.index = out.index.astype(str)
    out.index.name = "topic"
    out["average_score"] = _scores(out["correct_answers"], out["total_questions"])
    recent = _scores(out["recent_correct"], out["recent_total"])
    out["recent_score"] = recent.where(out["recent_total"] > 0, out["average_score"])
    diff = out["recent_score"] - out["average_score"]
    out["trend"] = np.select(
        [out["recent_total"] < cfg.trend_min_answers, diff > cfg.trend_delta, diff < -cfg.trend_delta],
        ["unknown", "improving", "declining"],
        default="stable",
    )
    return out[PERFORMANCE_COLUMNS]


def identify_weak_topics(
    results: Iterable[TestResult],
    lookup: QuestionLookup,
    cfg: Optional[AnalyticsConfig] = None,
) -> List[str]:
    """Topics averaging below the weak threshold, weakest first."""
    cfg = cfg or AnalyticsConfig()
    perf = analyze_topic_performance(results, lookup, cfg)
    weak = perf[perf["average_score"] < cfg.weak_threshold]
    return list(weak.sort_values("average_score", kind="stable").index)


def get_recommendations(
    results: Iterable[TestResult],
    lookup: QuestionLookup,
    cfg: Optional[AnalyticsConfig] = None,
) -> List[TopicRecommendation]:
    cfg = cfg or AnalyticsConfig()
    perf = analyze_topic_performance(results, lookup, cfg)
    recs: List[TopicRecommendation] = []
    for topic, row in perf.iterrows():
        score = float(row["average_score"])
        if score < cfg.medium_below:
            recs.append(
                TopicRecommendation(
                    topic=str(topic),
                    reason=f"Điểm trung bình {_fmt(score)}/10 - Cần ôn tập lại kiến thức cơ bản",
                    priority="high" if score < cfg.high_below else "medium",
                    average_score=score,
                )
            )
        elif score < cfg.low_below:
            recs.append(
                TopicRecommendation(
                    topic=str(topic),
                    reason=f"Điểm trung bình {_fmt(score)}/10 - Có thể cải thiện thêm",
                    priority="low",
                    average_score=score,
                )
            )
    recs.sort(key=lambda r: (PRIORITY_ORDER[r.priority], r.average_score))
    return recs


def get_test_recommendations(
    result: TestResult,
    lookup: QuestionLookup,
    cfg: Optional[AnalyticsConfig] = None,
) -> List[TopicRecommendation]:
    """Review suggestions for one test; empty unless it scored below the weak threshold."""
    cfg = cfg or AnalyticsConfig()
    if result.score >= cfg.weak_threshold:
        return []
    return get_recommendations([result], lookup, cfg)


def study_plan(
    results: Iterable[TestResult],
    lookup: QuestionLookup,
    cfg: Optional[AnalyticsConfig] = None,
    topics: Sequence[str] = TOPICS,
) -> List[StudyPlanItem]:
    """Per-topic next steps, including topics never tested.

    Very weak topics go back to easy basics, weak ones to word problems
    (or basics when declining), and middling topics only when their trend
    is declining.
    """
    cfg = cfg or AnalyticsConfig()
    perf = analyze_topic_performance(results, lookup, cfg)
    plan: List[StudyPlanItem] = []
    for topic in topics:
        if topic not in perf.index:
            plan.append(
                StudyPlanItem(
                    topic=topic,
                    priority="medium",
                    score=0.0,
                    message="Chưa luyện tập chủ đề này. Hãy bắt đầu để nắm vững kiến thức!",
                    practice_mode="toan-co-ban",
                )
            )
            continue
        row = perf.loc[topic]
        score = float(row["average_score"])
        trend = str(row["trend"])
        if score < cfg.high_below:
            plan.append(
                StudyPlanItem(
                    topic=topic,
                    priority="high",
                    score=score,
                    message=f"Điểm {score:.1f}/10 - Cần ôn tập lại từ cơ bản. Hãy làm nhiều bài tập đơn giản trước.",
                    practice_mode="toan-co-ban",
                    difficulty="easy",
                )
            )
        elif score < cfg.medium_below:
            plan.append(
                StudyPlanItem(
                    topic=topic,
                    priority="medium",
                    score=score,
                    message=f"Điểm {score:.1f}/10 - Cần luyện tập thêm để đạt mức trung bình.",
                    practice_mode="toan-co-ban" if trend == "declining" else "toan-giai",
                )
            )
        elif score < cfg.low_below and trend == "declining":
            plan.append(
                StudyPlanItem(
                    topic=topic,
                    priority="low",
                    score=score,
                    message=f"Điểm {score:.1f}/10 - Kết quả đang giảm. Hãy ôn tập để duy trì kiến thức.",
                    practice_mode="toan-co-ban",
                )
            )
    plan.sort(key=lambda p: (PRIORITY_ORDER[p.priority], p.score))
    return plan


def progress_overview(
    progress: Optional[StudentProgress],
    test_history: Sequence[TestResult],
    practice_history: Sequence[PracticeSession] = (),
    *,
    recent: int = 5,
) -> Dict[str, Any]:
    """Headline numbers for the progress dashboard."""
    total = progress.total_exercises if progress else 0
    correct = progress.correct_answers if progress else 0
    scores = pd.Series([t.score for t in test_history], dtype="float64")
    average = float(math.floor(scores.mean() * 10 + 0.5) / 10) if not scores.empty else 0.0
    ordered = sorted(test_history, key=lambda t: t.date)
    return {
        "total_exercises": total,
        "correct_answers": correct,
        "accuracy": percent(correct, total),
        "tests_taken": len(test_history),
        "practice_sessions": len(practice_history),
        "average_test_score": average,
        "best_test_score": float(scores.max()) if not scores.empty else 0.0,
        "grade": calculate_grade(average) if not scores.empty else None,
        "recent_tests": [
            {"id": t.id, "date": t.date.isoformat(), "score": t.score, "topics": [get_topic_display_name(x) for x in t.topics]}
            for t in reversed(ordered[-recent:])
        ],
        "weak_topics": list(progress.weak_topics) if progress else [],
    }
