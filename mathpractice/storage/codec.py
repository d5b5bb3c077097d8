from __future__ import annotations

"""Per-record-kind JSON codecs.

Each persisted kind gets an explicit encode/decode pair returning typed
records. Decode failures raise CodecError; the store decides what to do
with them.
"""

import json
from typing import Any, Iterable, List, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .schema import ExportSnapshot, PracticeSession, StudentInfo, StudentProgress, TestResult, TestSession

M = TypeVar("M", bound=BaseModel)


class CodecError(ValueError):
    """Stored payload could not be decoded into the expected record kind."""


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def _decode_one(model: Type[M], raw: str) -> M:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise CodecError(f"invalid {model.__name__} payload ({e.error_count()} error(s))") from e


def _decode_many(model: Type[M], raw: str) -> List[M]:
    try:
        return TypeAdapter(List[model]).validate_json(raw)  # type: ignore[valid-type]
    except ValidationError as e:
        raise CodecError(f"invalid {model.__name__} list payload ({e.error_count()} error(s))") from e


def encode_progress(progress: StudentProgress) -> str:
    return _dumps(progress.model_dump(mode="json"))


def decode_progress(raw: str) -> StudentProgress:
    return _decode_one(StudentProgress, raw)


def encode_test_history(results: Iterable[TestResult]) -> str:
    return _dumps([r.model_dump(mode="json") for r in results])


def decode_test_history(raw: str) -> List[TestResult]:
    return _decode_many(TestResult, raw)


def encode_practice_history(sessions: Iterable[PracticeSession]) -> str:
    return _dumps([s.model_dump(mode="json") for s in sessions])


def decode_practice_history(raw: str) -> List[PracticeSession]:
    return _decode_many(PracticeSession, raw)


def encode_test_session(session: TestSession) -> str:
    return _dumps(session.model_dump(mode="json"))


def decode_test_session(raw: str) -> TestSession:
    return _decode_one(TestSession, raw)


def encode_student_info(info: StudentInfo) -> str:
    return _dumps(info.model_dump(mode="json"))


def decode_student_info(raw: str) -> StudentInfo:
    return _decode_one(StudentInfo, raw)


def encode_snapshot(snapshot: ExportSnapshot) -> str:
    return json.dumps(snapshot.model_dump(mode="json"), ensure_ascii=False, indent=2)


def decode_snapshot(raw: str) -> ExportSnapshot:
    return _decode_one(ExportSnapshot, raw)
