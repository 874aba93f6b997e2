"""Unit tests for file helpers"""

import re

import pytest

from filedrive.utils.file_utils import (
    build_storage_path,
    detect_file_type,
    format_file_size,
    get_extension,
    safe_file_name,
    total_size,
)


@pytest.mark.parametrize("num_bytes,expected", [
    (0, "0 Bytes"),
    (500, "500 Bytes"),
    (1024, "1 KB"),
    (1536, "1.5 KB"),
    (5 * 1024 * 1024 + 512 * 1024, "5.5 MB"),
])
def test_format_file_size(num_bytes, expected):
    assert format_file_size(num_bytes) == expected


def test_total_size():
    assert total_size([]) == "0 Bytes"
    assert total_size([1024, 512]) == "1.5 KB"


@pytest.mark.parametrize("name,expected", [
    ("photo.JPG", "image"),
    ("diagram.svg", "image"),
    ("report.pdf", "document"),
    ("README.md", "document"),
    ("archive.tar.gz", "other"),
    ("Makefile", "other"),
])
def test_detect_file_type(name, expected):
    assert detect_file_type(name) == expected


def test_get_extension():
    assert get_extension("a.b.C") == "c"
    assert get_extension("noext") == ""


def test_build_storage_path():
    path = build_storage_path("user-1", "images", "cat.png", now_ms=1700000000000)
    assert re.fullmatch(r"user-files/user-1/images/[a-z0-9]{13}_1700000000000\.png", path)


def test_build_storage_path_is_unique():
    paths = {build_storage_path("u", "documents", "a.pdf", now_ms=1) for _ in range(20)}
    assert len(paths) == 20


def test_safe_file_name():
    assert safe_file_name("../../etc/passwd") == "passwd"
    assert safe_file_name("C:\\temp\\report.pdf") == "report.pdf"
    assert safe_file_name("..") == "download"
    assert safe_file_name("notes.txt") == "notes.txt"
