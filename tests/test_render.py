import io
from pathlib import Path

import pytest

from markcat.core import FileReadError, render_file


def _render(path: Path, trim: bool = False) -> str:
    out = io.StringIO()
    render_file(str(path), trim, out)
    return out.getvalue()


def test_record_layout_with_extension(tmp_path: Path):
    f = tmp_path / "main.rs"
    f.write_text("fn main() {}\n", encoding="utf-8")

    assert _render(f) == f"`{f}`\n```rs\nfn main() {{}}\n\n```\n"


def test_record_layout_without_extension(tmp_path: Path):
    f = tmp_path / "LICENSE"
    f.write_text("MIT", encoding="utf-8")

    assert _render(f) == f"`{f}`\n```\nMIT\n```\n"


def test_extension_tag_is_kept_as_given(tmp_path: Path):
    f = tmp_path / "Notes.MD"
    f.write_text("x", encoding="utf-8")

    assert "\n```MD\n" in _render(f)


def test_trim(tmp_path: Path):
    f = tmp_path / "X.txt"
    f.write_text("  hi  \n", encoding="utf-8")

    assert "```txt\n  hi  \n\n```" in _render(f)
    assert _render(f, trim=True).endswith("```txt\nhi\n```\n")


def test_trim_is_idempotent(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("\t\n body \n\n", encoding="utf-8")
    once = _render(f, trim=True)

    f.write_text("body", encoding="utf-8")
    assert _render(f, trim=True) == once


def test_line_endings_are_preserved(tmp_path: Path):
    f = tmp_path / "win.txt"
    f.write_bytes(b"a\r\nb\r\n")

    assert "a\r\nb\r\n" in _render(f)


def test_binary_content_is_a_read_error(tmp_path: Path):
    f = tmp_path / "blob.bin"
    f.write_bytes(b"\xff\xfe\x00\x81")

    with pytest.raises(FileReadError, match="blob.bin"):
        _render(f)


def test_missing_file_is_a_read_error(tmp_path: Path):
    with pytest.raises(FileReadError):
        _render(tmp_path / "gone.txt")
