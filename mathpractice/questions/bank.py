from __future__ import annotations

"""Question bank: loads the bundled YAML catalog (or a caller-supplied one)."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from .model import SEMESTER_TOPICS, Question

DATA_DIR = Path(__file__).with_name("data")


def _load_yaml(path: Path) -> List[Dict]:
    with path.open("r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    # A catalog file is {semester: N, topics: {topic: [question, ...]}}
    semester = int(doc.get("semester", 0))
    rows: List[Dict] = []
    for topic, items in (doc.get("topics") or {}).items():
        for item in items or []:
            row = dict(item)
            row.setdefault("semester", semester)
            row.setdefault("topic", topic)
            rows.append(row)
    return rows


class QuestionBank:
    """Questions grouped by semester and topic, indexed by id."""

    def __init__(self, questions: Iterable[Question]) -> None:
        self._by_id: Dict[str, Question] = {}
        self._by_topic: Dict[str, List[Question]] = {t: [] for ts in SEMESTER_TOPICS.values() for t in ts}
        for q in questions:
            if q.id in self._by_id:
                raise ValueError(f"Duplicate question id: {q.id}")
            self._by_id[q.id] = q
            self._by_topic[q.topic].append(q)

    @classmethod
    def from_directory(cls, data_dir: Optional[Path] = None) -> "QuestionBank":
        """Load every ``*.yml`` catalog file under data_dir (bundled catalog by default)."""
        root = Path(data_dir) if data_dir is not None else DATA_DIR
        rows: List[Dict] = []
        for path in sorted(root.glob("*.yml")):
            rows.extend(_load_yaml(path))
        return cls(Question.model_validate(r) for r in rows)

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def topic(self, topic: str) -> List[Question]:
        return list(self._by_topic.get(topic, []))

    def semester(self, semester: int) -> List[Question]:
        out: List[Question] = []
        for t in SEMESTER_TOPICS.get(int(semester), []):
            out.extend(self._by_topic[t])
        return out

    def all(self) -> List[Question]:
        return self.semester(1) + self.semester(2)
