"""Host environment signals used by execution policies."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
import sys
from typing import TextIO


# Variables set by the common CI providers. ``CI`` alone covers most of them
# but a few (Jenkins, TeamCity, Azure) only expose their own markers.
_CI_VARIABLES = (
    "CI",
    "CONTINUOUS_INTEGRATION",
    "BUILD_NUMBER",
    "RUN_ID",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "TRAVIS",
    "CIRCLECI",
    "APPVEYOR",
    "BUILDKITE",
    "DRONE",
    "JENKINS_URL",
    "TEAMCITY_VERSION",
    "TF_BUILD",
    "BITBUCKET_BUILD_NUMBER",
    "CODEBUILD_BUILD_ID",
)

_FALSE_TOKENS = {"", "0", "false", "no", "off"}


def is_windows(platform: str | None = None) -> bool:
    """Return whether the host operating system is Windows."""
    return (platform or sys.platform).startswith(("win32", "cygwin"))


def is_rstudio(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return bool(env.get("RSTUDIO_VERSION"))


def is_interactive_terminal(stream: TextIO | None = None) -> bool:
    target = sys.stderr if stream is None else stream
    try:
        return bool(target.isatty())
    except (AttributeError, ValueError):
        return False


def is_interactive_session(
    environ: Mapping[str, str] | None = None, stream: TextIO | None = None
) -> bool:
    """Return whether a terminal or a supervising IDE is attached."""
    return is_rstudio(environ) or is_interactive_terminal(stream)


def running_in_ci(environ: Mapping[str, str] | None = None) -> bool:
    """Return whether continuous-integration markers are present."""
    env = os.environ if environ is None else environ
    for name in _CI_VARIABLES:
        value = env.get(name)
        if value is not None and value.strip().lower() not in _FALSE_TOKENS:
            return True
    return False


@dataclass(frozen=True, slots=True)
class EnvironmentSignals:
    """Boolean capability queries describing the host session."""

    interactive: bool
    windows: bool
    ci: bool

    @classmethod
    def detect(
        cls,
        *,
        environ: Mapping[str, str] | None = None,
        stream: TextIO | None = None,
        platform: str | None = None,
    ) -> EnvironmentSignals:
        return cls(
            interactive=is_interactive_session(environ, stream),
            windows=is_windows(platform),
            ci=running_in_ci(environ),
        )


__all__ = [
    "EnvironmentSignals",
    "is_interactive_session",
    "is_interactive_terminal",
    "is_rstudio",
    "is_windows",
    "running_in_ci",
]
