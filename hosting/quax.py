import json
from typing import Optional

import requests

from config import config
from errors import UpstreamError
from intake import ImagePayload
from utils.logger import logger


def parse_upload_response(text: str) -> str:
    """
    Extract the hosted URL from a qu.ax response.

    Depending on the deployment the service answers with either a bare URL or
    a JSON envelope of the form ``{"files": [{"url": ...}]}``.

    Raises:
        UpstreamError: when neither shape is present
    """
    body = (text or "").strip()
    if body.startswith("http"):
        return body

    try:
        data = json.loads(body)
    except ValueError:
        data = None

    if isinstance(data, dict):
        files = data.get("files")
        if isinstance(files, list) and files and isinstance(files[0], dict) and files[0].get("url"):
            return files[0]["url"]

    raise UpstreamError(
        f'Qu.ax upload failed: Response was not a valid URL. Response body: "{body[:100]}..."'
    )


class QuaxUploader:
    """Anonymous host backend: posts the image as ``files[]`` to qu.ax."""

    name = "quax"

    def __init__(
        self,
        upload_url: str = config.QUAX_UPLOAD_URL,
        referer: str = config.QUAX_REFERER,
        session: Optional[requests.Session] = None,
        timeout: float = config.UPSTREAM_TIMEOUT,
    ) -> None:
        self.upload_url = upload_url
        self.referer = referer
        self.session = session or requests.Session()
        self.timeout = timeout

    def store(self, payload: ImagePayload) -> str:
        file_name = f"upload.{payload.extension}"
        logger.info(f"Uploading {payload.original_name} ({payload.size} bytes) to qu.ax")

        try:
            resp = self.session.post(
                self.upload_url,
                files={"files[]": (file_name, payload.data, payload.content_type)},
                headers={"Referer": self.referer},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Qu.ax upload error: {e}")
            raise UpstreamError(f"Qu.ax upload failed: {e}") from e

        text = (resp.text or "").strip()
        if not resp.ok:
            raise UpstreamError(
                f"Qu.ax upload failed (Status {resp.status_code}): {text[:100] or 'No response body'}"
            )
        return parse_upload_response(text)
