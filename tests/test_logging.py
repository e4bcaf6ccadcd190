"""Tests for genbuild.logging."""

from __future__ import annotations

import io
from pathlib import Path

from genbuild.logging import configure_logging, get_logger


def test_records_are_tagged_with_their_area() -> None:
    stream = io.StringIO()
    configure_logging(stream=stream)

    get_logger("resolver").info("Resolved %d libraries", 3)
    get_logger().warning("top level")

    assert stream.getvalue().splitlines() == [
        "[genbuild:resolver] INFO Resolved 3 libraries",
        "[genbuild:main] WARNING top level",
    ]


def test_quiet_keeps_only_warnings_and_verbose_wins() -> None:
    quiet = io.StringIO()
    configure_logging(quiet=True, stream=quiet)
    get_logger("srcs").info("hidden")
    get_logger("srcs").warning("shown")

    loud = io.StringIO()
    configure_logging(quiet=True, verbose=True, stream=loud)
    get_logger("srcs").debug("details")

    assert quiet.getvalue() == "[genbuild:srcs] WARNING shown\n"
    assert loud.getvalue() == "[genbuild:srcs] DEBUG details\n"


def test_reconfiguring_replaces_handlers(tmp_path: Path) -> None:
    first = io.StringIO()
    second = io.StringIO()
    log_file = tmp_path / "genbuild.log"

    configure_logging(stream=first)
    logger = configure_logging(stream=second, log_file=log_file)
    get_logger("targets").info("once")
    for handler in logger.handlers:
        handler.flush()

    assert first.getvalue() == ""
    assert second.getvalue() == "[genbuild:targets] INFO once\n"
    assert len(logger.handlers) == 2
    assert log_file.read_text(encoding="utf-8").rstrip().endswith("INFO targets: once")
