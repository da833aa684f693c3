import pytest

from errors import DuplicateShortCode, NotFoundError
from storage import InMemoryImageIndex, UploadRecord


def make_record(code, uploaded_at="2024-01-01T00:00:00Z", **extra):
    return UploadRecord(
        original_name=f"{code}.png",
        remote_url=f"https://qu.ax/{code}.png",
        short_code=code,
        uploaded_at=uploaded_at,
        **extra,
    )


def test_ids_are_sequential_and_not_reused():
    index = InMemoryImageIndex()
    first = index.append(make_record("aaaaaa"))
    second = index.append(make_record("bbbbbb"))
    assert (first.id, second.id) == (1, 2)

    index.delete_by_id("2")
    third = index.append(make_record("cccccc"))
    assert third.id == 3


def test_list_is_newest_first_regardless_of_insert_order():
    index = InMemoryImageIndex()
    index.append(make_record("middle", "2024-02-01T00:00:00Z"))
    index.append(make_record("oldest", "2023-12-31T23:59:59Z"))
    index.append(make_record("newest", "2024-03-01T10:00:00+00:00"))
    assert [r.short_code for r in index.list()] == ["newest", "middle", "oldest"]


def test_duplicate_short_code_is_rejected():
    index = InMemoryImageIndex()
    index.append(make_record("aaaaaa"))
    with pytest.raises(DuplicateShortCode):
        index.append(make_record("aaaaaa"))
    assert index.count() == 1


def test_get_by_code():
    index = InMemoryImageIndex()
    index.append(make_record("aaaaaa"))
    assert index.get_by_code("aaaaaa").original_name == "aaaaaa.png"
    with pytest.raises(NotFoundError):
        index.get_by_code("zzzzzz")


@pytest.mark.parametrize("image_id", ["99", "abc"])
def test_delete_unknown_id(image_id):
    index = InMemoryImageIndex()
    with pytest.raises(NotFoundError):
        index.delete_by_id(image_id)


def test_legacy_field_names_are_accepted():
    record = UploadRecord.model_validate(
        {"original_name": "a.png", "quax_url": "https://qu.ax/a.png", "short_code": "aaaaaa"}
    )
    assert record.remote_url == "https://qu.ax/a.png"
    assert record.size == 0
