"""
Unit tests for logging setup.

Why: Operators trace a delivery through the logs by its delivery id and
     repository; both output modes must carry them.

What: Tests JsonFormatter, DeliveryLogAdapter and configure_logging.

How: Formats hand-built records and captures adapter output with caplog.
"""

import json
import logging
import sys

import pytest

from release_lock.logging_config import DeliveryLogAdapter, JsonFormatter, configure_logging


def make_record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="release_lock.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello %s",
        args=("world",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self) -> None:
        document = json.loads(JsonFormatter().format(make_record()))

        assert document["level"] == "INFO"
        assert document["logger"] == "release_lock.test"
        assert document["msg"] == "hello world"
        assert "time" in document
        assert "delivery_id" not in document

    def test_context_fields_included(self) -> None:
        record = make_record(delivery_id="d-1", owner="octo-org", repo="service", unrelated="x")

        document = json.loads(JsonFormatter().format(record))

        assert document["delivery_id"] == "d-1"
        assert document["owner"] == "octo-org"
        assert document["repo"] == "service"
        assert "unrelated" not in document

    def test_exception_info(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        document = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in document["exc_info"]


class TestDeliveryLogAdapter:
    """Tests for DeliveryLogAdapter prefixes and context binding."""

    def test_prefix_with_delivery_only(self, caplog: pytest.LogCaptureFixture) -> None:
        log = DeliveryLogAdapter(logging.getLogger("release_lock.test"), {"delivery_id": "d-1"})

        with caplog.at_level(logging.INFO, logger="release_lock.test"):
            log.info("received")

        assert caplog.records[-1].getMessage() == "[d-1] received"
        assert caplog.records[-1].delivery_id == "d-1"

    def test_bind_adds_repository(self, caplog: pytest.LogCaptureFixture) -> None:
        """
        Why: Once the payload is normalized every line should name the repository
        What: Tests that bind keeps earlier fields and adds new ones
        How: Binds owner and repo onto an adapter and logs through both
        """
        base = DeliveryLogAdapter(logging.getLogger("release_lock.test"), {"delivery_id": "d-1"})
        bound = base.bind(owner="octo-org", repo="service", installation_id=4242)

        with caplog.at_level(logging.INFO, logger="release_lock.test"):
            bound.info("applied")
            base.info("still bare")

        applied, bare = caplog.records[-2:]
        assert applied.getMessage() == "[d-1 octo-org/service] applied"
        assert applied.installation_id == 4242
        assert bare.getMessage() == "[d-1] still bare"

    def test_missing_delivery_id(self, caplog: pytest.LogCaptureFixture) -> None:
        log = DeliveryLogAdapter(logging.getLogger("release_lock.test"), {})

        with caplog.at_level(logging.INFO, logger="release_lock.test"):
            log.info("orphan")

        assert caplog.records[-1].getMessage() == "[-] orphan"


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_prod_mode_uses_json(self) -> None:
        configure_logging("warning", mode="prod")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_local_mode_uses_text(self) -> None:
        configure_logging("DEBUG", mode="local")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("chatty", mode="local")

        assert logging.getLogger().level == logging.INFO
