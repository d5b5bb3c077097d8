from __future__ import annotations

"""Flatten test history into per-answer rows with pandas dtypes."""

from typing import Callable, Iterable, Optional

import pandas as pd
from pandas.api.types import CategoricalDtype

from ..questions import TOPICS, Question
from ..storage import TestResult

QuestionLookup = Callable[[str], Optional[Question]]

DTYPES = {
    "test_id": "string",
    "date": pd.DatetimeTZDtype(tz="UTC"),
    "semester": "UInt8",
    "topic": CategoricalDtype(categories=list(TOPICS), ordered=False),
    "question_id": "string",
    "is_correct": "bool",
    "time_spent": "UInt32",
}


def _empty_df() -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in DTYPES.items()})


def history_frame(results: Iterable[TestResult], lookup: QuestionLookup) -> pd.DataFrame:
    """One row per recorded answer whose question still resolves.

    The topic comes from the question catalog, not from the test's topic
    list, so a mixed-topic test splits across its topics. Rows are sorted
    by (date, test_id).
    """
    rows = []
    for result in results:
        for ans in result.answers:
            q = lookup(ans.question_id)
            if q is None:
                continue
            rows.append(
                {
                    "test_id": result.id,
                    "date": result.date,
                    "semester": q.semester,
                    "topic": q.topic,
                    "question_id": ans.question_id,
                    "is_correct": bool(ans.is_correct),
                    "time_spent": int(ans.time_spent),
                }
            )
    if not rows:
        return _empty_df()
    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], utc=True)
    for col, dt in DTYPES.items():
        df[col] = df[col].astype(dt)
    return df.sort_values(["date", "test_id"], kind="stable").reset_index(drop=True)
