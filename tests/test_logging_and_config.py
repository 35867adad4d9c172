"""Structured logging, redaction, instrumentation and configuration loading."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from style_app.config import AppConfig  # noqa: E402
from style_app.logging_config import (  # noqa: E402
    CORRELATION_ID,
    JsonFormatter,
    log_event,
    operation_context,
    redact_for_log,
)
from style_app.observability import instrument_operation  # noqa: E402


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def captured():
    handler = _ListHandler()
    logger = logging.getLogger("style_app.tests")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    observability_logger = logging.getLogger("style_app.observability")
    observability_logger.addHandler(handler)
    observability_logger.setLevel(logging.DEBUG)
    yield logger, handler
    logger.removeHandler(handler)
    observability_logger.removeHandler(handler)


def test_redaction_masks_demographics_contacts_and_urls() -> None:
    scrubbed = redact_for_log(
        {
            "age_band": "25-34",
            "presenting_gender": "womenswear",
            "note": "reach me at someone@example.com",
            "link": "https://example.com/look.jpg",
            "nested": [{"image_url": "generated://abc", "theme": "office"}],
        }
    )

    assert scrubbed["age_band"] == "[redacted]"
    assert scrubbed["presenting_gender"] == "[redacted]"
    assert scrubbed["note"] == "reach me at [redacted-email]"
    assert scrubbed["link"] == "[redacted-url]"
    assert scrubbed["nested"][0] == {"image_url": "[redacted]", "theme": "office"}


def test_log_event_emits_json_with_correlation_id(captured) -> None:
    logger, handler = captured

    with operation_context("ingest", correlation_id="corr-123"):
        log_event(logger, logging.WARNING, "persistence_failed", step="save_profile", age_band="18-24")

    record = handler.records[-1]
    payload = json.loads(JsonFormatter().format(record))
    assert payload["event"] == "persistence_failed"
    assert payload["correlation_id"] == "corr-123"
    assert payload["step"] == "save_profile"
    assert payload["age_band"] == "[redacted]"
    assert payload["level"] == "WARNING"


def test_operation_scope_is_shared_by_nested_operations_and_cleared(captured) -> None:
    _, handler = captured

    @instrument_operation("outer")
    def outer() -> None:
        inner()

    @instrument_operation("inner")
    def inner() -> None:
        return None

    outer()

    ids = {record.correlation_id for record in handler.records}
    assert len(ids) == 1 and None not in ids
    assert CORRELATION_ID.get() is None


def test_instrumented_operation_logs_start_and_completion(captured) -> None:
    _, handler = captured

    @instrument_operation("demo")
    def double(value: int) -> int:
        return value * 2

    assert double(value=4) == 8
    events = [record.event for record in handler.records]
    assert events[-2:] == ["operation_started", "operation_completed"]


def test_instrumented_operation_marks_caller_errors_as_rejected(captured) -> None:
    _, handler = captured

    @instrument_operation("demo")
    def explode() -> None:
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        explode()
    assert handler.records[-1].event == "operation_rejected"


def test_config_reads_environment_file(tmp_path: Path, monkeypatch) -> None:
    config_file = tmp_path / "staging.yaml"
    config_file.write_text(
        "# staging\nprofile_store_backend: rest\nrest_url: \"https://db.example.com/rest/v1\"\nrest_timeout_seconds: 2.5\n"
    )
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_file))
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("REST_API_KEY", "secret")

    config = AppConfig.from_env()

    assert config.profile_store_backend == "rest"
    assert config.rest_url == "https://db.example.com/rest/v1"
    assert config.rest_api_key == "secret"
    assert config.rest_timeout_seconds == 2.5
    assert config.environment == "staging"


def test_config_defaults_and_validation(monkeypatch) -> None:
    for key in ("APP_ENV", "APP_CONFIG_PATH", "PROFILE_STORE_BACKEND", "REST_URL", "REST_TIMEOUT_SECONDS"):
        monkeypatch.delenv(key, raising=False)

    assert AppConfig.from_env().profile_store_backend == "sqlite"
    with pytest.raises(ValueError):
        AppConfig(profile_store_backend="mongo")
    with pytest.raises(ValueError):
        AppConfig(profile_store_backend="rest")
