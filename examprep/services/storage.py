from __future__ import annotations

import json
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import List, Protocol

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from ..errors import StorageError
from ..schemas import QuestionSet

# Persisted layout: one JSON array of QuestionSet records (camelCase keys)
# stored under a single well-known key, i.e. one file per key.

_SETS = TypeAdapter(List[QuestionSet])

def new_id() -> str:
    return uuid.uuid4().hex

def _decode(raw: str) -> list[QuestionSet]:
    try:
        return _SETS.validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"stored sets do not match schema: {e.error_count()} error(s)") from e

def _encode(sets: list[QuestionSet]) -> str:
    return json.dumps(
        [s.model_dump(mode="json", by_alias=True) for s in sets],
        ensure_ascii=False,
        indent=2,
    )

class SetStore(Protocol):
    def list_sets(self) -> list[QuestionSet]: ...
    def save_set(self, question_set: QuestionSet) -> None: ...
    def delete_set(self, set_id: str) -> None: ...

class _BlobStore(ABC):
    """Shared list/save/delete over a single serialized blob."""

    @abstractmethod
    def _read_blob(self) -> str | None:
        ...

    @abstractmethod
    def _write_blob(self, blob: str) -> None:
        ...

    def list_sets(self) -> list[QuestionSet]:
        try:
            raw = self._read_blob()
            if raw is None or not raw.strip():
                return []
            return _decode(raw)
        except (OSError, StorageError) as e:
            logger.warning(f"[storage] could not load question sets, starting empty: {e}")
            return []

    def save_set(self, question_set: QuestionSet) -> None:
        sets = self.list_sets()
        for idx, existing in enumerate(sets):
            if existing.id == question_set.id:
                sets[idx] = question_set
                break
        else:
            sets.append(question_set)
        self._write_blob(_encode(sets))

    def delete_set(self, set_id: str) -> None:
        sets = self.list_sets()
        kept = [s for s in sets if s.id != set_id]
        if len(kept) == len(sets):
            return
        self._write_blob(_encode(kept))

class JsonFileStore(_BlobStore):
    def __init__(self, path: str | Path):
        self.path = Path(path)

    @classmethod
    def for_key(cls, data_dir: str | Path, key: str) -> "JsonFileStore":
        return cls(Path(data_dir) / f"{key}.json")

    def _read_blob(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            return self.path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise StorageError(f"stored sets are not valid UTF-8: {e.reason}") from e

    def _write_blob(self, blob: str) -> None:
        # atomic write
        dirpath = self.path.parent
        dirpath.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile("w", dir=dirpath, delete=False, encoding="utf-8") as tf:
            tf.write(blob)
            tmpname = tf.name
        os.replace(tmpname, self.path)

class MemoryStore(_BlobStore):
    """Keeps the blob in memory; same encoding as the file store."""

    def __init__(self, blob: str | None = None):
        self.blob = blob
        self.writes = 0

    def _read_blob(self) -> str | None:
        return self.blob

    def _write_blob(self, blob: str) -> None:
        self.blob = blob
        self.writes += 1
