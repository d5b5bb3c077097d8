from .config import AnalyticsConfig
from .frame import history_frame
from .performance import (
    StudyPlanItem,
    TopicRecommendation,
    analyze_topic_performance,
    get_recommendations,
    get_test_recommendations,
    identify_weak_topics,
    progress_overview,
    study_plan,
)
from .export import export_history_parquet, practice_frame, tests_frame

__all__ = [
    "AnalyticsConfig",
    "history_frame",
    "StudyPlanItem",
    "TopicRecommendation",
    "analyze_topic_performance",
    "get_recommendations",
    "get_test_recommendations",
    "identify_weak_topics",
    "progress_overview",
    "study_plan",
    "export_history_parquet",
    "practice_frame",
    "tests_frame",
]
