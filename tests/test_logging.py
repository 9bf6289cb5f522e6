import json

import structlog
from structlog.contextvars import clear_contextvars

from mta_supervisor.utils.logging import bind_supervisor_context, report_best_effort, setup_logging


def test_structured_logs_include_correlation(capsys):
    setup_logging("INFO", "json")
    bind_supervisor_context(server_pid=4321, channel="/tmp/mta_input_1")

    try:
        structlog.get_logger().info("test_event", foo="bar")
    finally:
        clear_contextvars()

    out = capsys.readouterr().out.strip().splitlines()[-1]
    data = json.loads(out)
    assert data["event"] == "test_event"
    assert data["serverPid"] == 4321
    assert data["channel"] == "/tmp/mta_input_1"
    assert data["foo"] == "bar"


def test_redaction(capsys):
    setup_logging("INFO", "json")
    structlog.get_logger().info("leak_test", password="secret", rcon_password="hunter2")

    out = capsys.readouterr().out.strip().splitlines()[-1]
    data = json.loads(out)
    assert data["password"] == "[REDACTED]"
    assert data["rcon_password"] == "[REDACTED]"


def test_best_effort_failures_reported_when_verbose(capsys):
    setup_logging("INFO", "json")

    report_best_effort(True, "Failed to forward command to server", error="EPIPE")

    data = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert data["level"] == "warning"
    assert data["error"] == "EPIPE"


def test_best_effort_failures_silent_by_default(capsys):
    setup_logging("INFO", "json")

    report_best_effort(False, "Failed to forward command to server", error="EPIPE")

    assert capsys.readouterr().out == ""
