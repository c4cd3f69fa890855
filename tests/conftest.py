"""Fixtures shared by every codeskel test package.

``skel`` commands and the logging tests install root handlers through
``configure_logging``. Those handlers are removed after each test so a
stream handler never outlives the ``CliRunner`` stream it writes to.
"""

import logging
from collections.abc import Iterator

import pytest
import structlog

from codeskel.core.logging import ConsoleSuppressingFilter, clear_pass_id


def _installed_by_codeskel(handler: logging.Handler) -> bool:
    if type(handler) is logging.FileHandler:
        return True
    return any(isinstance(f, ConsoleSuppressingFilter) for f in handler.filters)


@pytest.fixture(autouse=True)
def reset_codeskel_logging() -> Iterator[None]:
    yield
    root = logging.getLogger()
    for handler in [h for h in root.handlers if _installed_by_codeskel(h)]:
        root.removeHandler(handler)
        handler.close()
    structlog.reset_defaults()
    clear_pass_id()
