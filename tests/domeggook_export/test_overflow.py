"""Tests for oversized cell spilling."""

from pathlib import Path

import pytest

from src.domeggook_export.overflow import MAX_FILENAME_BYTES, guard, sanitize_filename


def test_text_within_limit_is_returned(tmp_path):
    assert guard("짧은 글", 10, tmp_path, "x.txt") == "짧은 글"
    assert guard("a" * 10, 10, tmp_path, "x.txt") == "a" * 10
    assert not list(tmp_path.iterdir())


def test_none_becomes_empty(tmp_path):
    assert guard(None, 10, tmp_path, "x.txt") == ""


def test_oversized_text_round_trips(tmp_path):
    text = "첫 줄\r\n둘째 줄\n셋째 줄\r" + "가" * 50

    result = guard(text, 20, tmp_path / "details", "001_상품_설명.txt")

    path = Path(result)
    assert path.parent == tmp_path / "details"
    assert path.name == "001_상품_설명.txt"
    with open(path, encoding="utf-8", newline="") as handle:
        assert handle.read() == text


def test_spill_file_name_is_sanitized(tmp_path):
    result = guard("x" * 5, 1, tmp_path, 'a/b:c*?"<>|.html')
    assert Path(result).name == "a_b_c______.html"
    assert Path(result).parent == tmp_path


@pytest.mark.parametrize(
    "name, expected",
    [
        ("상품: 텀블러/500ml", "상품_ 텀블러_500ml"),
        ("  spaced  ", "spaced"),
        ("...", "untitled"),
        ("", "untitled"),
        ("tab\tname", "tab_name"),
    ],
)
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_sanitize_filename_truncates_by_bytes():
    name = sanitize_filename("가" * 500)
    assert len(name.encode("utf-8")) <= MAX_FILENAME_BYTES
    assert name == "가" * (MAX_FILENAME_BYTES // 3)


@pytest.mark.parametrize("suffix", [".html", ".txt", ".png"])
def test_long_hangul_name_keeps_suffix(suffix):
    name = sanitize_filename(f"001_{'가' * 300}_상세{suffix}")

    assert name.startswith("001_가")
    assert name.endswith(suffix)
    assert len(name.encode("utf-8")) <= MAX_FILENAME_BYTES


def test_long_name_with_unusual_suffix_is_cut_whole():
    name = sanitize_filename("a" * 300 + "." + "b" * 40)
    assert name == "a" * MAX_FILENAME_BYTES


def test_spill_with_long_hangul_name(tmp_path):
    text = "본문" * 20

    result = guard(text, 5, tmp_path, f"001_{'가' * 120}_설명.txt")

    path = Path(result)
    assert path.suffix == ".txt"
    assert len(path.name.encode("utf-8")) <= 255
    assert path.read_text(encoding="utf-8") == text
