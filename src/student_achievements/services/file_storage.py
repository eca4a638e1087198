"""Local disk storage for attachment uploads."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path, PurePath

from ..errors import StorageError


@dataclass(frozen=True)
class StoredFile:
    path: Path
    url: str


def _safe_name(file_name: str) -> str:
    name = PurePath(file_name.replace("\\", "/")).name.strip()
    return name.replace(" ", "_") or "attachment"


class LocalFileStorage:
    """Writes uploads under ``<base_dir>/achievements/<achievement id>/``."""

    def __init__(self, base_dir: str | Path, url_prefix: str = "/uploads") -> None:
        self._base_dir = Path(base_dir)
        self._url_prefix = url_prefix.rstrip("/")

    def save(self, achievement_id: str, file_name: str, data: bytes) -> StoredFile:
        stored_name = f"{time.time_ns()}_{_safe_name(file_name)}"
        destination = self._base_dir / "achievements" / achievement_id / stored_name
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise StorageError("Could not store attachment file.") from exc
        url = f"{self._url_prefix}/achievements/{achievement_id}/{stored_name}"
        return StoredFile(path=destination, url=url)

    def delete(self, stored: StoredFile) -> None:
        try:
            stored.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError("Could not remove attachment file.") from exc
