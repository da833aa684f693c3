import re

import pytest

import shortcode
from conftest import PNG_BYTES, FakeContentsClient, FakeStorage
from db import GitHubImageIndex
from errors import CodeGenerationExhausted, DuplicateShortCode
from intake import ImagePayload
from pipeline import upload_image
from storage import InMemoryImageIndex, UploadRecord


@pytest.fixture
def payload():
    return ImagePayload(data=PNG_BYTES, content_type="image/png", extension="png", original_name="cat.png")


class StaleCodesIndex(InMemoryImageIndex):
    """Reports no codes in use, as if another request claimed them after the read."""

    def codes(self):
        return set()


class RejectingIndex(InMemoryImageIndex):
    def append(self, record):
        raise DuplicateShortCode(f"Short code {record.short_code} is already in use")


def scripted_draws(monkeypatch, codes):
    draws = []
    script = iter(codes)

    def draw():
        code = next(script)
        draws.append(code)
        return code

    monkeypatch.setattr(shortcode, "generate_short_code", draw)
    return draws


def test_duplicate_at_append_time_draws_a_new_code(monkeypatch, payload):
    index = StaleCodesIndex()
    index.append(UploadRecord(original_name="a.png", remote_url="https://qu.ax/a.png", short_code="AAAAAA"))
    draws = scripted_draws(monkeypatch, ["AAAAAA", "BBBBBB"])

    saved = upload_image(payload, FakeStorage(), index)

    assert saved.short_code == "BBBBBB"
    assert draws == ["AAAAAA", "BBBBBB"]
    assert index.count() == 2


def test_collisions_share_one_budget_of_ten_draws(monkeypatch, payload):
    index = RejectingIndex()
    storage = FakeStorage()
    # every draw collides, either with a known code or at append time
    draws = scripted_draws(monkeypatch, ["TAKEN1", "FRESH1"] * 50)
    monkeypatch.setattr(index, "codes", lambda: {"TAKEN1"})

    with pytest.raises(CodeGenerationExhausted):
        upload_image(payload, storage, index)

    assert len(draws) == 10
    assert len(storage.stored) == 1


def test_upload_into_repository_index(payload):
    contents = FakeContentsClient()
    index = GitHubImageIndex(client=contents, path="gallery-index.json")

    saved = upload_image(payload, FakeStorage(url="https://qu.ax/cat.png"), index)

    assert re.fullmatch(r"[A-Za-z0-9]{6}", saved.short_code)
    assert isinstance(saved.id, str)
    entries = contents.read_json("gallery-index.json")
    assert entries[0]["short_code"] == saved.short_code
    assert entries[0]["remote_url"] == "https://qu.ax/cat.png"
    assert entries[0]["size"] == 10
    assert index.get_by_code(saved.short_code).original_name == "cat.png"
