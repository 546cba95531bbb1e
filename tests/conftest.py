from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

# Ensure src/ is importable when the package is not installed
TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class DummyLogger:
    """Collect log calls without touching the logging machinery."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict]] = []

    def _log(self, level: str, message: str, **kwargs) -> None:
        self.records.append((level, message, kwargs.get("extra") or {}))

    def debug(self, message: str, **kwargs) -> None:
        self._log("debug", message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log("info", message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log("error", message, **kwargs)

    def messages(self, level: str | None = None) -> list[str]:
        return [
            message
            for record_level, message, _ in self.records
            if level is None or record_level == level
        ]


@pytest.fixture
def dummy_logger() -> DummyLogger:
    return DummyLogger()


@pytest.fixture(autouse=True)
def _isolate_osadoc_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("osadoc")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
