from __future__ import annotations

"""Parquet export of test and practice history (pandas + pyarrow, zstd)."""

from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from ..storage import PracticeSession, TestResult

TEST_DTYPES = {
    "id": "string",
    "date": pd.DatetimeTZDtype(tz="UTC"),
    "semester": "UInt8",
    "topics": "string",
    "score": "float32",
    "total_questions": "UInt16",
    "correct_answers": "UInt16",
    "time_spent": "UInt32",
}

PRACTICE_DTYPES = {
    "id": "string",
    "date": pd.DatetimeTZDtype(tz="UTC"),
    "mode": "category",
    "questions_attempted": "UInt16",
    "correct_answers": "UInt16",
    "time_spent": "UInt32",
}


def _frame(rows: list, dtypes: dict) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame({k: pd.Series(dtype=v) for k, v in dtypes.items()})
    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], utc=True)
    for col, dt in dtypes.items():
        df[col] = df[col].astype(dt)
    return df[list(dtypes.keys())]


def tests_frame(results: Iterable[TestResult]) -> pd.DataFrame:
    rows = [
        {
            "id": r.id,
            "date": r.date,
            "semester": r.semester,
            "topics": ",".join(r.topics),
            "score": r.score,
            "total_questions": r.total_questions,
            "correct_answers": r.correct_answers,
            "time_spent": r.time_spent,
        }
        for r in results
    ]
    return _frame(rows, TEST_DTYPES)


def practice_frame(sessions: Iterable[PracticeSession]) -> pd.DataFrame:
    rows = [s.model_dump(include=set(PRACTICE_DTYPES)) for s in sessions]
    return _frame(rows, PRACTICE_DTYPES)


def export_history_parquet(
    out_dir: Path,
    results: Iterable[TestResult],
    sessions: Optional[Iterable[PracticeSession]] = None,
) -> list[Path]:
    """Write tests.parquet (and practice.parquet when sessions are given)."""
    out_dir = Path(out_dir).expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    path = out_dir / "tests.parquet"
    tests_frame(results).to_parquet(path, engine="pyarrow", compression="zstd", index=False)
    written.append(path)
    if sessions is not None:
        path = out_dir / "practice.parquet"
        practice_frame(sessions).to_parquet(path, engine="pyarrow", compression="zstd", index=False)
        written.append(path)
    return written
