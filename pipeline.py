from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError as SchemaError

from config import config
from errors import GalleryError
from intake import ImagePayload, sanitize_filename
from shortcode import generate_unique_code
from storage import ImageIndex, UploadRecord
from utils.logger import logger


def share_url(short_code: str) -> str:
    return f"{config.WEBSITE_BASE_URL}/preview/{short_code}"


def upload_image(payload: ImagePayload, storage, index: ImageIndex) -> UploadRecord:
    """Store the bytes upstream, mint a short code and record the upload."""
    remote_url = storage.store(payload)
    logger.info(f"Stored {payload.original_name} at {remote_url}")

    def claim(code: str) -> UploadRecord:
        # the index rejects a code another request claimed since codes() was read
        return index.append(
            UploadRecord(
                original_name=payload.original_name,
                remote_url=remote_url,
                short_code=code,
                size=payload.size,
            )
        )

    saved = generate_unique_code(index.codes(), claim)
    logger.info(f"Upload success: {saved.short_code} (id {saved.id})")
    return saved


def _record_from_item(item: Any) -> UploadRecord:
    if not isinstance(item, dict):
        raise ValueError("Each image must be an object")
    data = dict(item)
    data.pop("id", None)
    if data.get("size") is None:
        data["size"] = 0
    if data.get("uploaded_at") is None:
        data.pop("uploaded_at", None)
    if isinstance(data.get("original_name"), str):
        data["original_name"] = sanitize_filename(data["original_name"])
    return UploadRecord.model_validate(data)


def migrate_images(items: List[Any], index: ImageIndex) -> List[Dict[str, Any]]:
    """
    Append externally supplied records, reporting success per record.

    A bad record is reported as failed and the rest of the batch continues.
    """
    results: List[Dict[str, Any]] = []
    for item in items:
        name = item.get("original_name") if isinstance(item, dict) else None
        try:
            saved = index.append(_record_from_item(item))
        except SchemaError as e:
            error = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            results.append({"original_name": name, "status": "failed", "error": error})
        except (ValueError, GalleryError) as e:
            results.append({"original_name": name, "status": "failed", "error": str(e)})
        else:
            results.append({**saved.model_dump(), "status": "migrated"})

    migrated = sum(1 for r in results if r["status"] == "migrated")
    logger.info(f"Migration finished: {migrated}/{len(items)} records imported")
    return results
