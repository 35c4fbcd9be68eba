from __future__ import annotations

import logging

import pytest

from nbsmith.core.debug import format_user_friendly_render_error
from nbsmith.core.diagnostics import LoggingEmitter, NullEmitter, format_event_message
from nbsmith.core.exceptions import KernelExecutionError, exception_messages
from nbsmith.ui.cli.diagnostics import CliEmitter
from nbsmith.ui.cli.state import set_cli_state


def _raise_nested_kernel_error() -> None:
    try:
        raise RuntimeError("Kernel died while executing cell 3.")
    except RuntimeError as exc:
        raise KernelExecutionError("execution failed") from exc


def test_null_emitter_is_noop(caplog: pytest.LogCaptureFixture) -> None:
    emitter = NullEmitter()
    with caplog.at_level(logging.WARNING):
        emitter.warning("nothing to see")
        emitter.error("still quiet")
    assert not caplog.records
    emitter.event("ignored", {"value": 1})
    assert emitter.debug_enabled is False


def test_logging_emitter_logs_messages(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter(debug_enabled=True)
    with caplog.at_level(logging.INFO):
        emitter.error("boom")
        emitter.event("transient_removed", {"path": "report.ipynb"})
    messages = [record.message for record in caplog.records]
    assert "boom" in messages
    assert "Removed transient notebook report.ipynb" in messages
    assert emitter.debug_enabled is True


def test_cli_emitter_bridges_state(capsys: pytest.CaptureFixture[str]) -> None:
    state = set_cli_state(verbosity=1, debug=False)
    emitter = CliEmitter(state=state)

    emitter.warning("Heads up", exc=None)
    emitter.error("Boom", exc=None)
    emitter.event("custom", {"flag": True})

    captured = capsys.readouterr()
    combined_output = f"{captured.out}\n{captured.err}"
    assert "Heads up" in combined_output
    assert "Boom" in combined_output
    assert state.consume_events("custom") == [{"flag": True}]
    assert state.consume_events("custom") == []


def test_cli_emitter_gates_kernel_events_on_verbosity(capsys: pytest.CaptureFixture[str]) -> None:
    state = set_cli_state(verbosity=1, debug=False)
    emitter = CliEmitter(state=state)

    emitter.event("kernel_started", {"kernel": "python3", "mode": "keepalive"})
    emitter.event("transient_removed", {"path": "a.ipynb"})
    first = capsys.readouterr().err

    state.verbosity = 2
    emitter.event("kernel_started", {"kernel": "python3", "mode": "keepalive"})
    second = capsys.readouterr().err

    assert "Starting python3 kernel" not in first
    assert "Removed transient notebook a.ipynb" in first
    assert "Starting python3 kernel" in second
    assert len(state.consume_events("kernel_started")) == 2


def test_cli_emitter_is_quiet_about_events_by_default(capsys: pytest.CaptureFixture[str]) -> None:
    emitter = CliEmitter(state=set_cli_state(verbosity=0, debug=False))

    emitter.event("transient_removed", {"path": "a.ipynb"})

    assert capsys.readouterr().err == ""


def test_cli_emitter_error_details_follow_verbosity(capsys: pytest.CaptureFixture[str]) -> None:
    emitter = CliEmitter(state=set_cli_state(verbosity=1, debug=False))

    emitter.error("render failed", exc=KernelExecutionError("kernel died"))

    err = capsys.readouterr().err
    assert "render failed" in err
    assert "kernel died" in err
    assert "type: KernelExecutionError" in err


def test_format_user_friendly_render_error_reports_root_cause() -> None:
    try:
        _raise_nested_kernel_error()
    except KernelExecutionError as error:
        message = format_user_friendly_render_error(error)
    assert message == (
        "Render failed: Kernel died while executing cell 3. "
        "Re-run with --debug for technical details."
    )


def test_exception_messages_follow_the_chain() -> None:
    try:
        _raise_nested_kernel_error()
    except KernelExecutionError as error:
        assert exception_messages(error) == [
            "execution failed",
            "Kernel died while executing cell 3.",
        ]


@pytest.mark.parametrize(
    ("name", "payload", "expected"),
    [
        ("kernel_started", {"kernel": "python3", "mode": "keepalive"}, "Starting python3 kernel (keepalive)"),
        ("execution_skipped", {"path": "a.qmd"}, "Skipping execution of a.qmd (disabled)"),
        ("freeze_hit", {"path": "a.qmd"}, "Reusing frozen execution results for a.qmd"),
        ("unknown", {}, None),
    ],
)
def test_format_event_message(name, payload, expected) -> None:
    assert format_event_message(name, payload) == expected
