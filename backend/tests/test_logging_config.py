import json
import logging

import pytest

from video_dimensions.core.logging_config import JsonFormatter, TickIdFilter, configure_logging, tick_context, tick_id_ctx_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("video_dimensions.test", logging.INFO, __file__, 1, "video_dimensions_updated", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_tick_id_and_extras() -> None:
    with tick_context("tick-1"):
        record = _record(file_id="a1", width=1920, tags=["promo"])
        TickIdFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "video_dimensions_updated"
    assert payload["tick_id"] == "tick-1"
    assert payload["file_id"] == "a1"
    assert payload["width"] == 1920
    assert payload["tags"] == ["promo"]
    assert "lineno" not in payload
    assert "args" not in payload


def test_tick_id_defaults_to_dash_outside_a_tick() -> None:
    record = _record()
    TickIdFilter().filter(record)
    assert record.tick_id == "-"


def test_tick_context_restores_the_outer_tick_id() -> None:
    with tick_context("outer"):
        with tick_context("inner") as tick_id:
            assert tick_id == "inner"
            assert tick_id_ctx_var.get() == "inner"
        assert tick_id_ctx_var.get() == "outer"
    assert tick_id_ctx_var.get() is None


def test_configure_logging_installs_json_handler_and_quiets_httpx(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
    monkeypatch.setattr(logging.getLogger("httpx"), "level", logging.NOTSET)

    configure_logging(json_logs=True)

    (handler,) = captured["handlers"]
    assert isinstance(handler.formatter, JsonFormatter)
    assert captured["force"] is True
    assert logging.getLogger("httpx").level == logging.WARNING
