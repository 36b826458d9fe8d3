"""Shared test fixtures for handshake.

Provides an in-memory web context, a recording protocol handler, and
output isolation. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from typing import Optional

import pytest

from handshake.auth.base import ProtocolHandler
from handshake.context import MockWebContext
from handshake.models import Credentials, RedirectAction, UserProfile
from handshake.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Recording protocol handler
# ---------------------------------------------------------------------------


class RecordingHandler(ProtocolHandler):
    """Protocol handler returning canned values and recording every call."""

    def __init__(
        self,
        direct: bool = False,
        outcome: Optional[RedirectAction] = None,
        credentials: Optional[Credentials] = None,
        profile: Optional[UserProfile] = None,
    ) -> None:
        self.direct = direct
        self.outcome = outcome or RedirectAction.redirect("https://idp.example.com/authorize")
        self.credentials = credentials
        self.profile = profile
        self.calls: list[str] = []
        self.init_calls = 0

    @property
    def direct_redirection(self) -> bool:
        return self.direct

    def compute_redirect_outcome(self, client, context) -> RedirectAction:
        self.calls.append("compute_redirect_outcome")
        return self.outcome

    def extract_credentials(self, client, context) -> Optional[Credentials]:
        self.calls.append("extract_credentials")
        return self.credentials

    def build_profile(self, client, credentials, context) -> Optional[UserProfile]:
        self.calls.append("build_profile")
        if self.profile is not None:
            return self.profile
        return UserProfile(id="jdoe")

    def initialize(self, client) -> None:
        self.init_calls += 1


@pytest.fixture
def context() -> MockWebContext:
    """An empty in-memory request on http://localhost."""
    return MockWebContext()


@pytest.fixture
def handler() -> RecordingHandler:
    """An indirect recording handler."""
    return RecordingHandler()


@pytest.fixture
def direct_handler() -> RecordingHandler:
    """A direct recording handler."""
    return RecordingHandler(direct=True)


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
