from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import config
from db import get_image_index, get_storage_backend
from errors import GalleryError, ValidationError
from intake import from_data_uri, from_multipart
from pipeline import migrate_images, share_url, upload_image
from storage import ImageIndex
from utils.logger import LoggingMiddleware, logger


app = FastAPI(title="Image Gallery Relay")

app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter(prefix="/api")


# ------------------------------
# Error rendering
# ------------------------------

@app.exception_handler(GalleryError)
async def gallery_error_handler(request: Request, exc: GalleryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "message": str(exc.detail)})


# ------------------------------
# Routes
# ------------------------------

@router.get("/images")
def list_images(index: ImageIndex = Depends(get_image_index)):
    """All records, newest first."""
    return index.list()


@router.post("/images/upload")
async def upload(
    request: Request,
    storage=Depends(get_storage_backend),
    index: ImageIndex = Depends(get_image_index),
):
    """
    Accepts either a multipart form with a ``file`` field or a JSON body
    ``{"file": "data:<mime>;base64,<data>", "custom_name": ...}``.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        file = form.get("file")
        if not isinstance(file, UploadFile):
            raise ValidationError("No file uploaded")
        data = await file.read()
        payload = from_multipart(file.filename, file.content_type, data)
    else:
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Expected multipart/form-data or a JSON body") from None
        if not isinstance(body, dict):
            raise ValidationError("Expected a JSON object")
        payload = from_data_uri(body.get("file"), body.get("custom_name"))

    logger.info(f"Upload: processing {payload.original_name} ({payload.size} bytes)")
    record = await run_in_threadpool(upload_image, payload, storage, index)

    return {
        "success": True,
        "image": record,
        "shareUrl": share_url(record.short_code),
    }


@router.post("/images/migrate")
async def migrate(request: Request, index: ImageIndex = Depends(get_image_index)):
    """Bulk import of records exported from an older gallery."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid format") from None

    images = body.get("images") if isinstance(body, dict) else None
    if not isinstance(images, list):
        raise ValidationError("Invalid format: 'images' must be an array")

    results = await run_in_threadpool(migrate_images, images, index)
    migrated = sum(1 for r in results if r["status"] == "migrated")

    return {
        "success": True,
        "migrated": migrated,
        "failed": len(results) - migrated,
        "results": results,
    }


@router.get("/images/{short_code}")
def get_image(short_code: str, index: ImageIndex = Depends(get_image_index)):
    return index.get_by_code(short_code)


@router.delete("/images/{image_id}")
def delete_image(image_id: str, index: ImageIndex = Depends(get_image_index)):
    deleted = index.delete_by_id(image_id)
    logger.info(f"Deleted image {deleted.id} ({deleted.short_code})")
    return {"success": True, "deleted": deleted}


@router.get("/health")
def health(
    storage=Depends(get_storage_backend),
    index: ImageIndex = Depends(get_image_index),
):
    return {
        "status": "ok",
        "images": index.count(),
        "storage": storage.name,
        "index": index.name,
    }


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Server running on http://localhost:{config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
