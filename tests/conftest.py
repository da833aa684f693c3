"""
Pytest configuration and shared fixtures for all tests
"""
import base64
import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Keep log files out of the working tree and make the flat modules importable
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="gallery-logs-"))
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient  # noqa: E402

from db import get_image_index, get_storage_backend  # noqa: E402
from errors import RevisionConflict  # noqa: E402
from main import app  # noqa: E402
from storage import InMemoryImageIndex  # noqa: E402

# Smallest valid PNG header, padded to 10 bytes
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00"


class FakeResponse:
    def __init__(self, status_code=200, json_body=None, text=None, reason="OK", content=None):
        self.status_code = status_code
        self._json = json_body
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeSession:
    """Stands in for requests.Session; replays queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


class FakeStorage:
    name = "fake"

    def __init__(self, url="https://qu.ax/abc.png", error=None):
        self.url = url
        self.error = error
        self.stored = []

    def store(self, payload):
        self.stored.append(payload)
        if self.error is not None:
            raise self.error
        return self.url


class FakeContentsClient:
    """In-memory GitHub repository holding one file per path."""

    def __init__(self, files=None, conflicts=0):
        self.files = {}
        self.revision = 0
        for path, content in (files or {}).items():
            self._write(path, content)
        self.conflicts = conflicts
        self.puts = []

    def _write(self, path, content):
        self.revision += 1
        self.files[path] = (content, f"sha{self.revision}")

    def get_file(self, path):
        return self.files.get(path)

    def put_file(self, path, content, message, sha=None):
        self.puts.append({"path": path, "message": message, "sha": sha})
        if self.conflicts:
            self.conflicts -= 1
            # someone else committed in between
            self._write(path, self.files.get(path, (b"[]", None))[0])
            raise RevisionConflict(f"{path} changed upstream (409): sha mismatch")
        current = self.files.get(path)
        if current is not None and current[1] != sha:
            raise RevisionConflict(f"{path} changed upstream (409): sha mismatch")
        self._write(path, content)
        return {"content": {"path": path}}

    def read_json(self, path):
        return json.loads(self.files[path][0].decode("utf-8"))

    def raw_url(self, path):
        return f"https://raw.githubusercontent.com/owner/repo/main/{path}"


def data_uri(data, mime="image/png"):
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def index():
    return InMemoryImageIndex()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(index, storage):
    app.dependency_overrides[get_image_index] = lambda: index
    app.dependency_overrides[get_storage_backend] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
