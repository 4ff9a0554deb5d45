import uuid

import pytest

from pmdump.utils import (
    is_readable_file,
    uuid_to_str,
    without_home_prefix,
    without_inbox_prefix,
)


def test_regular_file_is_readable(tmp_path):
    path = tmp_path / "db.sqlite3"
    path.write_bytes(b"data")
    assert is_readable_file(str(path)) is True


def test_directory_is_not_readable_file(tmp_path):
    assert is_readable_file(str(tmp_path)) is False


def test_missing_file_is_not_readable(tmp_path):
    assert is_readable_file(str(tmp_path / "missing")) is False


def test_without_inbox_prefix():
    assert without_inbox_prefix("inbox/a/b") == "/a/b"
    assert without_inbox_prefix("inbox") == ""


def test_without_home_prefix():
    assert without_home_prefix("home/docs/x.pdf") == "/docs/x.pdf"
    assert without_home_prefix("home") == ""


def test_uuid_to_str_drops_hyphens():
    value = uuid.uuid4()
    text = uuid_to_str(value)
    assert "-" not in text
    assert text == value.hex
    assert uuid.UUID(text) == value


def test_uuid_to_str_rejects_non_uuid():
    with pytest.raises(TypeError):
        uuid_to_str("not-a-uuid")