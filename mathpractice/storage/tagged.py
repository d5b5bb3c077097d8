from __future__ import annotations

"""Tagged JSON field types for persisted records.

Datetimes are written as ``{"__type": "Date", "value": "<iso>"}`` and the
sparse answer map as ``{"__type": "Map", "value": [[index, answer], ...]}``
so a decoder restores ``datetime`` / ``dict[int, str]`` rather than plain
strings and string-keyed objects.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict

from pydantic import AfterValidator, BeforeValidator, PlainSerializer

DATE_TAG = "Date"
MAP_TAG = "Map"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_tagged(value: Any, tag: str) -> bool:
    return isinstance(value, dict) and value.get("__type") == tag and "value" in value


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_date(value: datetime) -> Dict[str, Any]:
    return {"__type": DATE_TAG, "value": ensure_utc(value).isoformat()}


def decode_date(value: Any) -> Any:
    if _is_tagged(value, DATE_TAG):
        return datetime.fromisoformat(str(value["value"]).replace("Z", "+00:00"))
    return value


def encode_index_map(value: Dict[int, str]) -> Dict[str, Any]:
    return {"__type": MAP_TAG, "value": [[int(k), v] for k, v in sorted(value.items())]}


def decode_index_map(value: Any) -> Any:
    if _is_tagged(value, MAP_TAG):
        return {int(k): v for k, v in (value["value"] or [])}
    return value


# Serializers only apply to JSON dumps; python-mode dumps keep native values.
TaggedDatetime = Annotated[
    datetime,
    BeforeValidator(decode_date),
    AfterValidator(ensure_utc),
    PlainSerializer(encode_date, return_type=dict, when_used="json"),
]
TaggedIndexMap = Annotated[
    Dict[int, str],
    BeforeValidator(decode_index_map),
    PlainSerializer(encode_index_map, return_type=dict, when_used="json"),
]
