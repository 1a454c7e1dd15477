"""Tests for run timing and structured logging."""
import json
import logging
import pytest
from campfire.utils.logging import log_error, log_structured
from campfire.utils.timing import RunTimer


def test_run_timer_counts_forests(caplog):
    caplog.set_level(logging.INFO, logger="campfire")

    with RunTimer("warm") as timer:
        timer.record(True)
        timer.record(True)
        timer.record(False)

    assert timer.total == 3
    assert timer.elapsed >= 0
    entry = json.loads(caplog.records[-1].getMessage())
    assert entry["message"] == "warm finished"
    assert (entry["resolved"], entry["unresolved"]) == (2, 1)


def test_run_timer_does_not_swallow_errors():
    with pytest.raises(RuntimeError):
        with RunTimer("warm"):
            raise RuntimeError("boom")


def test_log_structured_is_json(caplog):
    caplog.set_level(logging.DEBUG, logger="campfire")

    log_structured("warning", "Rejected result", forest_name="Badja State Forest", score=0.5)

    record = caplog.records[-1]
    assert record.levelname == "WARNING"
    entry = json.loads(record.getMessage())
    assert entry["level"] == "WARNING"
    assert entry["forest_name"] == "Badja State Forest"


def test_log_error_includes_traceback(caplog):
    caplog.set_level(logging.ERROR, logger="campfire")
    try:
        raise ValueError("bad ring")
    except ValueError as error:
        log_error(error, {"zone_id": "7"})

    entry = json.loads(caplog.records[-1].getMessage())
    assert entry["error_type"] == "ValueError"
    assert entry["zone_id"] == "7"
    assert "Traceback" in entry["traceback"]
