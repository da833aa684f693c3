from __future__ import annotations

import json
import time
from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import ValidationError as SchemaError

from config import config
from errors import (
    ConfigurationError,
    DuplicateShortCode,
    RevisionConflict,
    UnsupportedOperation,
    UpstreamError,
)
from hosting.github import GitHubContentsClient, GitHubUploader
from hosting.quax import QuaxUploader
from storage import ImageIndex, InMemoryImageIndex, UploadRecord, newest_first
from utils.logger import logger


class GitHubImageIndex(ImageIndex):
    """
    Index persisted as a JSON array committed to the content-store repository.

    Every write is a read-modify-write of the whole file guarded by the file's
    sha; a stale sha triggers a re-read and another attempt.
    """

    name = "github"

    def __init__(
        self,
        client: Optional[GitHubContentsClient] = None,
        path: str = config.INDEX_FILE_PATH,
        max_attempts: int = config.INDEX_MAX_ATTEMPTS,
    ) -> None:
        self.client = client or GitHubContentsClient()
        self.path = path
        self.max_attempts = max_attempts
        self._last_id = 0

    def _load(self) -> Tuple[List[dict], Optional[str]]:
        current = self.client.get_file(self.path)
        if current is None:
            return [], None

        content, sha = current
        try:
            entries = json.loads(content.decode("utf-8").strip() or "[]")
        except ValueError as e:
            logger.warning(f"Error parsing existing {self.path}. Starting with empty array. {e}")
            return [], sha

        if not isinstance(entries, list):
            logger.warning(f"{self.path} does not hold a JSON array. Starting with empty array.")
            return [], sha
        return entries, sha

    def _records(self, entries: List[dict]) -> List[UploadRecord]:
        records = []
        for entry in entries:
            try:
                records.append(UploadRecord.model_validate(entry))
            except SchemaError as e:
                logger.warning(f"Skipping malformed entry in {self.path}: {e.errors()[:1]}")
        return records

    def _mint_id(self) -> str:
        # Millisecond timestamps, bumped so ids minted in one batch stay distinct
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def extend(self, records: List[UploadRecord]) -> List[UploadRecord]:
        label = records[0].original_name if len(records) == 1 else f"{len(records)} images"

        for attempt in range(1, self.max_attempts + 1):
            entries, sha = self._load()
            taken = {entry.get("short_code") for entry in entries if isinstance(entry, dict)}
            for record in records:
                if record.short_code in taken:
                    raise DuplicateShortCode(f"Short code {record.short_code} is already in use")

            stored = [record.model_copy(update={"id": self._mint_id()}) for record in records]
            updated = [record.model_dump() for record in reversed(stored)] + entries
            content = json.dumps(updated, indent=2).encode("utf-8")

            try:
                self.client.put_file(self.path, content, f"Index: Add metadata for {label}", sha=sha)
                return stored
            except RevisionConflict as e:
                logger.warning(
                    f"Index update conflict on attempt {attempt}/{self.max_attempts}: {e.message}"
                )

        raise UpstreamError(
            f"Failed to update {self.path} after {self.max_attempts} attempts; "
            "the index kept changing upstream"
        )

    def list(self) -> List[UploadRecord]:
        entries, _ = self._load()
        return newest_first(self._records(entries))

    def delete_by_id(self, image_id: str) -> UploadRecord:
        raise UnsupportedOperation("The repository-backed index does not support deleting images")


@lru_cache(maxsize=1)
def get_image_index() -> ImageIndex:
    """
    Returns the shared metadata index selected by INDEX_BACKEND.
    """
    backend = config.INDEX_BACKEND.lower()
    if backend == "memory":
        return InMemoryImageIndex()
    if backend == "github":
        return GitHubImageIndex()
    raise ConfigurationError(f"Unknown INDEX_BACKEND: {config.INDEX_BACKEND}")


@lru_cache(maxsize=1)
def get_storage_backend():
    """
    Returns the upstream that stores image bytes, selected by STORAGE_BACKEND.
    """
    backend = config.STORAGE_BACKEND.lower()
    if backend == "quax":
        return QuaxUploader()
    if backend == "github":
        return GitHubUploader()
    raise ConfigurationError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")
