"""
Client for the GitHub contents API, used as a content store for image bytes
and for the gallery index file.

"""

from __future__ import annotations

import base64
import time
from typing import Any, Dict, Optional, Tuple

import requests

from config import config
from errors import ConfigurationError, RevisionConflict, UpstreamError
from intake import ImagePayload
from utils.logger import logger


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason or "No response body"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason or "No response body"


class GitHubContentsClient:
    """Reads and commits single files in one repository branch."""

    def __init__(
        self,
        token: Optional[str] = None,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = config.UPSTREAM_TIMEOUT,
    ) -> None:
        self.token = token if token is not None else config.GITHUB_TOKEN
        if not self.token:
            raise ConfigurationError("GITHUB_TOKEN is missing.")
        self.owner = owner or config.GITHUB_OWNER
        self.repo = repo or config.GITHUB_REPO
        self.branch = branch or config.GITHUB_BRANCH
        self.api_url = (api_url or config.GITHUB_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "User-Agent": self.owner,
            "Accept": "application/vnd.github.v3+json",
        }

    def contents_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{path}"

    def raw_url(self, path: str) -> str:
        return f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.branch}/{path}"

    def get_file(self, path: str) -> Optional[Tuple[bytes, str]]:
        """Return ``(content, sha)`` for ``path``, or ``None`` if it does not exist."""
        try:
            resp = self.session.get(
                self.contents_url(path),
                headers=self._headers(),
                params={"ref": self.branch},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"GitHub request for {path} failed: {exc}") from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise UpstreamError(
                f"Failed to fetch {path}. Status: {resp.status_code} - {_error_message(resp)}"
            )

        body = resp.json()
        if not isinstance(body, dict) or "sha" not in body:
            raise UpstreamError(f"{path} is not a file in {self.owner}/{self.repo}")

        # files over 1MB come back without inline content
        if body.get("encoding") == "none" or (not body.get("content") and body.get("size")):
            return self._get_raw(path), body["sha"]

        try:
            content = base64.b64decode(body.get("content") or "")
        except ValueError as exc:
            raise UpstreamError(f"GitHub returned undecodable content for {path}") from exc
        return content, body["sha"]

    def _get_raw(self, path: str) -> bytes:
        try:
            resp = self.session.get(
                self.contents_url(path),
                headers={**self._headers(), "Accept": "application/vnd.github.raw"},
                params={"ref": self.branch},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"GitHub request for {path} failed: {exc}") from exc

        if not resp.ok:
            raise UpstreamError(
                f"Failed to fetch raw {path}. Status: {resp.status_code} - {_error_message(resp)}"
            )
        return resp.content

    def put_file(
        self,
        path: str,
        content: bytes,
        message: str,
        sha: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            payload["sha"] = sha

        try:
            resp = self.session.put(
                self.contents_url(path),
                headers={**self._headers(), "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"GitHub commit of {path} failed: {exc}") from exc

        if resp.ok:
            return resp.json()

        detail = _error_message(resp)
        # 409 is a stale sha; 422 mentioning sha means the file appeared after we read it
        if resp.status_code == 409 or (resp.status_code == 422 and "sha" in detail.lower()):
            raise RevisionConflict(f"{path} changed upstream ({resp.status_code}): {detail}")
        raise UpstreamError(f"GitHub Commit Failed ({resp.status_code}): {detail}")


class GitHubUploader:
    """Stores image bytes under ``uploads/`` and links to the raw file."""

    name = "github"

    def __init__(self, client: Optional[GitHubContentsClient] = None, upload_dir: str = config.GITHUB_UPLOAD_DIR) -> None:
        self.client = client or GitHubContentsClient()
        self.upload_dir = upload_dir.strip("/")

    def store(self, payload: ImagePayload) -> str:
        path = f"{self.upload_dir}/{int(time.time() * 1000)}.{payload.extension}"
        logger.info(f"Committing {payload.original_name} to GitHub at {path}")
        self.client.put_file(path, payload.data, f"Upload: {payload.original_name}")
        return self.client.raw_url(path)
