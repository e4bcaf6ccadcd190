from __future__ import annotations

from pathlib import Path

from genbuild.writer import write_atomic


def test_write_atomic_creates_parents_and_skips_unchanged(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "BUILD.bazel"

    assert write_atomic(target, "one\n") is True
    assert target.read_text(encoding="utf-8") == "one\n"
    assert write_atomic(target, "one\n") is False
    assert write_atomic(target, "two\n") is True
    assert target.read_text(encoding="utf-8") == "two\n"
    assert [p.name for p in target.parent.iterdir()] == ["BUILD.bazel"]
