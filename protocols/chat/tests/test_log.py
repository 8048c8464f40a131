"""
Tests for component logging.
"""
import io
import logging

from core.log import configure, get_logger


def test_component_prefix():
    stream = io.StringIO()
    configure(stream=stream)

    get_logger("NodeStore").info("Created channel")

    assert stream.getvalue() == "[NodeStore] Created channel\n"


def test_verbose_enables_debug():
    stream = io.StringIO()
    root = configure(verbose=True, stream=stream)

    get_logger("ThreadView").debug("Window now 1 item(s)")

    assert root.level == logging.DEBUG
    assert "[ThreadView] Window now 1 item(s)" in stream.getvalue()


def test_configure_replaces_handler():
    configure(stream=io.StringIO())
    root = configure(stream=io.StringIO())

    assert len(root.handlers) == 1
