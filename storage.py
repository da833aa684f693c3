from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Union

from pydantic import AliasChoices, BaseModel, Field

from errors import DuplicateShortCode, NotFoundError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class UploadRecord(BaseModel):
    """Metadata kept for every hosted image."""

    id: Optional[Union[int, str]] = None
    original_name: str
    # Older index files and migration dumps name this field after the host
    remote_url: str = Field(
        validation_alias=AliasChoices("remote_url", "quax_url", "download_url", "url")
    )
    short_code: str
    uploaded_at: str = Field(default_factory=utc_now_iso)
    size: int = Field(default=0, ge=0)


def _uploaded_at_key(record: UploadRecord) -> datetime:
    try:
        parsed = datetime.fromisoformat(record.uploaded_at.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def newest_first(records: Iterable[UploadRecord]) -> List[UploadRecord]:
    return sorted(records, key=_uploaded_at_key, reverse=True)


class ImageIndex:
    """Interface shared by every metadata index backend."""

    name = "abstract"

    def append(self, record: UploadRecord) -> UploadRecord:
        return self.extend([record])[0]

    def extend(self, records: List[UploadRecord]) -> List[UploadRecord]:
        raise NotImplementedError

    def list(self) -> List[UploadRecord]:
        raise NotImplementedError

    def get_by_code(self, short_code: str) -> UploadRecord:
        for record in self.list():
            if record.short_code == short_code:
                return record
        raise NotFoundError(f"No image with short code {short_code}")

    def delete_by_id(self, image_id: str) -> UploadRecord:
        raise NotImplementedError

    def codes(self) -> Set[str]:
        return {record.short_code for record in self.list()}

    def count(self) -> int:
        return len(self.list())


class InMemoryImageIndex(ImageIndex):
    """Process-local index; everything is lost on restart."""

    name = "memory"

    def __init__(self) -> None:
        self._items: Dict[int, UploadRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def extend(self, records: List[UploadRecord]) -> List[UploadRecord]:
        with self._lock:
            taken = {item.short_code for item in self._items.values()}
            batch = set()
            for record in records:
                if record.short_code in taken or record.short_code in batch:
                    raise DuplicateShortCode(f"Short code {record.short_code} is already in use")
                batch.add(record.short_code)

            stored = []
            for record in records:
                saved = record.model_copy(update={"id": self._next_id})
                self._items[self._next_id] = saved
                self._next_id += 1
                stored.append(saved)
            return stored

    def list(self) -> List[UploadRecord]:
        with self._lock:
            items = list(self._items.values())
        return newest_first(items)

    def codes(self) -> Set[str]:
        with self._lock:
            return {item.short_code for item in self._items.values()}

    def count(self) -> int:
        return len(self._items)

    def delete_by_id(self, image_id: str) -> UploadRecord:
        try:
            key = int(image_id)
        except (TypeError, ValueError):
            raise NotFoundError(f"No image with id {image_id}") from None

        with self._lock:
            deleted = self._items.pop(key, None)
        if deleted is None:
            raise NotFoundError(f"No image with id {image_id}")
        return deleted
