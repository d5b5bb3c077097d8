from __future__ import annotations

"""Key-value storage media with a localStorage-shaped interface."""

from pathlib import Path
from typing import Dict, Optional, Protocol


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed medium; lives as long as the object does."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class FileStorage:
    """One JSON document per key under a data directory.

    The directory is created lazily on first write, so a read-only or
    missing location only surfaces when the store probes it.
    """

    SUFFIX = ".json"

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir).expanduser()

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}{self.SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        p = self._path(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        p = self._path(key)
        tmp = p.with_name(p.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(p)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
