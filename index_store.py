"""On-disk cache for serialized move indexes and the list of recent players."""

import io
import json
import re
from pathlib import Path
from typing import Optional

import zstandard as zstd

from move_index import MoveIndex

# a cached index without these bucket fields predates the role/color split
REQUIRED_FIELDS = ("ut", "om", "uwt", "obm")
HISTORY_SIZE = 20


def cache_path(cache_dir: Path, identity: str) -> Path:
    name = re.sub(r"[^A-Za-z0-9_.-]", "_", identity.strip().lower()) or "_"
    return Path(cache_dir) / f"{name}.index.json.zst"


def save_index(path: Path, index: MoveIndex) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(index.serialize(), separators=(",", ":")).encode("utf-8")
    with open(path, "wb") as f:
        f.write(zstd.ZstdCompressor().compress(data))


def is_compatible(data: dict) -> bool:
    """True when the first bucket carries the role and color split fields."""
    first = next(iter(data.values()), None)
    return isinstance(first, dict) and all(field in first for field in REQUIRED_FIELDS)


def load_index(path: Path, strict: bool = True) -> Optional[MoveIndex]:
    """Load a cached index, or None if it is missing, unreadable or outdated."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, "rb") as f:
            reader = zstd.ZstdDecompressor().stream_reader(f)
            data = json.load(io.TextIOWrapper(reader, encoding="utf-8"))
    except (OSError, ValueError, zstd.ZstdError):
        return None
    if not isinstance(data, dict):
        return None
    if strict and not is_compatible(data):
        return None
    try:
        return MoveIndex.from_serialized(data)
    except (TypeError, ValueError):
        return None


class UserHistory:
    """Most recently used player names, newest first."""

    def __init__(self, path: Path, size: int = HISTORY_SIZE) -> None:
        self.path = Path(path)
        self.size = size

    def entries(self) -> list[str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                names = json.load(f)
        except (OSError, ValueError):
            return []
        if not isinstance(names, list):
            return []
        return [name for name in names if isinstance(name, str)]

    def _write(self, names: list[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(names[: self.size], f)
        except OSError:
            pass

    def add(self, name: str) -> None:
        name = name.strip()
        if not name:
            return
        names = [n for n in self.entries() if n.lower() != name.lower()]
        self._write([name] + names)

    def remove(self, name: str) -> None:
        name = name.strip()
        self._write([n for n in self.entries() if n.lower() != name.lower()])
