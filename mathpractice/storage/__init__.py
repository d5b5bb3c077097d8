from .backends import FileStorage, KeyValueStorage, MemoryStorage
from .codec import CodecError
from .schema import (
    SECONDS_PER_QUESTION,
    WEAK_SCORE_THRESHOLD,
    AnswerRecord,
    ExportSnapshot,
    PracticeSession,
    StudentInfo,
    StudentProgress,
    TestResult,
    TestSession,
)
from .store import DEFAULT_NAMESPACE, SessionStore, StorageStats, storage_keys

__all__ = [
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "CodecError",
    "SECONDS_PER_QUESTION",
    "WEAK_SCORE_THRESHOLD",
    "AnswerRecord",
    "ExportSnapshot",
    "PracticeSession",
    "StudentInfo",
    "StudentProgress",
    "TestResult",
    "TestSession",
    "DEFAULT_NAMESPACE",
    "SessionStore",
    "StorageStats",
    "storage_keys",
]
