# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from bash_toolkit._logging import (
    StructuredLogger,
    _coerce_level,
    _JsonFormatter,
    configure_logging,
    get_logger,
)


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@contextmanager
def _capture(logger: logging.Logger) -> Iterator[list[logging.LogRecord]]:
    handler = _CaptureHandler()
    logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        yield
    finally:
        for handler in root.handlers:
            if handler not in original_handlers:
                handler.close()
        root.handlers = original_handlers
        root.setLevel(original_level)


def test_structured_logger_emits_structured_records() -> None:
    logger = get_logger("tests.logging").bind(component="unit-test")
    base_logger = logger.logger
    base_logger.setLevel(logging.INFO)

    with _capture(base_logger) as records:
        logger.info("structured", event="tests.event", context={"attempt": 1})

    assert len(records) == 1
    record = records[0]
    assert record.event == "tests.event"
    assert record.context == {"component": "unit-test", "attempt": 1}
    assert record.getMessage() == "structured"


def test_structured_logger_reads_event_from_extra() -> None:
    logger = get_logger("tests.logging.extra")
    logger.logger.setLevel(logging.INFO)

    with _capture(logger.logger) as records:
        logger.info("with-extra", extra={"event": "tests.extra", "count": 2})

    assert records[0].event == "tests.extra"
    assert records[0].context == {"count": 2}


def test_structured_logger_requires_event() -> None:
    logger = get_logger("tests.logging.missing")
    logger.logger.setLevel(logging.INFO)

    with pytest.raises(TypeError, match="event"):
        logger.info("no event")


def test_structured_logger_rejects_non_mapping_context() -> None:
    logger = get_logger("tests.logging.context")
    logger.logger.setLevel(logging.INFO)

    with pytest.raises(TypeError, match="mapping"):
        logger.info("bad", event="tests.bad", context=["not", "a", "mapping"])


def test_bind_does_not_mutate_parent() -> None:
    parent = StructuredLogger(logging.getLogger("tests.bind"), context={"a": 1})

    child = parent.bind(b=2)

    assert parent.extra == {"a": 1}
    assert child.extra == {"a": 1, "b": 2}
    assert child.logger is parent.logger


def test_configure_logging_reads_environment() -> None:
    configure_logging(
        env={"BASH_TOOLKIT_LOG_LEVEL": "debug", "BASH_TOOLKIT_LOG_FORMAT": "json"},
        force=True,
    )

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert isinstance(root.handlers[0].formatter, _JsonFormatter)


def test_configure_logging_keeps_existing_handlers_without_force() -> None:
    root = logging.getLogger()
    sentinel = _CaptureHandler()
    root.handlers = [sentinel]

    configure_logging(level="WARNING", env={})

    assert root.handlers == [sentinel]
    assert root.level == logging.WARNING


def test_json_formatter_renders_event_and_context() -> None:
    record = logging.LogRecord(
        "tests.json", logging.INFO, __file__, 1, "hello %s", ("world",), None
    )
    record.event = "tests.json"
    record.context = {"path": "/workspace"}

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["message"] == "hello world"
    assert payload["event"] == "tests.json"
    assert payload["context"] == {"path": "/workspace"}
    assert payload["level"] == "INFO"


def test_coerce_level_accepts_names_and_ints() -> None:
    assert _coerce_level("info") == logging.INFO
    assert _coerce_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError, match="Unknown log level"):
        _ = _coerce_level("loud")
