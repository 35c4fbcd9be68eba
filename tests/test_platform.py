from __future__ import annotations

import io
from itertools import product

import pytest

from nbsmith.core.platform import (
    EnvironmentSignals,
    is_interactive_session,
    is_windows,
    running_in_ci,
)
from nbsmith.engines.jupyter.kernel import default_daemon_policy, resolve_daemon


class _Tty(io.StringIO):
    def isatty(self) -> bool:
        return True


def test_ci_markers_are_detected() -> None:
    assert running_in_ci({"CI": "true"})
    assert running_in_ci({"GITHUB_ACTIONS": "true"})
    assert running_in_ci({"JENKINS_URL": "https://ci.example.org"})
    assert not running_in_ci({"CI": "false"})
    assert not running_in_ci({})


def test_windows_detection_uses_platform_name() -> None:
    assert is_windows("win32")
    assert is_windows("cygwin")
    assert not is_windows("linux")
    assert not is_windows("darwin")


def test_interactive_session_from_tty_or_rstudio() -> None:
    assert is_interactive_session({}, _Tty())
    assert not is_interactive_session({}, io.StringIO())
    assert is_interactive_session({"RSTUDIO_VERSION": "2024.04"}, io.StringIO())


def test_detect_combines_signals() -> None:
    signals = EnvironmentSignals.detect(environ={"CI": "1"}, stream=_Tty(), platform="linux")
    assert signals == EnvironmentSignals(interactive=True, windows=False, ci=True)


@pytest.mark.parametrize(("interactive", "windows", "ci"), list(product([True, False], repeat=3)))
def test_default_policy_requires_all_three_conditions(
    interactive: bool, windows: bool, ci: bool
) -> None:
    signals = EnvironmentSignals(interactive=interactive, windows=windows, ci=ci)
    expected = interactive and not windows and not ci
    assert default_daemon_policy(signals) is expected
    assert resolve_daemon(None, signals=signals) is expected


def test_explicit_daemon_setting_overrides_policy() -> None:
    hostile = EnvironmentSignals(interactive=False, windows=True, ci=True)
    friendly = EnvironmentSignals(interactive=True, windows=False, ci=False)
    assert resolve_daemon(True, signals=hostile) is True
    assert resolve_daemon(False, signals=friendly) is False
    assert resolve_daemon(0, signals=friendly) is False
    assert resolve_daemon(300, signals=hostile) is True


def test_custom_policy_is_consulted_when_unset() -> None:
    signals = EnvironmentSignals(interactive=False, windows=False, ci=False)
    assert resolve_daemon(None, policy=lambda _signals: True, signals=signals) is True
