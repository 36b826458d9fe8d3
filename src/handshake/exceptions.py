"""Exception hierarchy for handshake.

All exceptions inherit from :class:`HandshakeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`handshake.exit_codes`.
The command line entry point in :func:`handshake.app.main` catches
``HandshakeError`` and exits with the appropriate code.

:class:`RequiresHttpAction` is not a failure: it is the raised form of an
:class:`~handshake.models.HttpAction` and tells the web integration layer
to stop processing and emit the carried HTTP outcome.

Subclass hierarchy::

    HandshakeError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- CredentialsError     (exit 3)
    +-- RequiresHttpAction   (exit 3)
    +-- ClientNotFoundError  (exit 4)
    +-- ProviderError        (exit 6)
    +-- ConfigError          (exit 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from handshake.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PROVIDER_ERROR,
)

if TYPE_CHECKING:
    from handshake.models import HttpAction


class HandshakeError(Exception):
    """Base exception for all handshake errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`handshake.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(HandshakeError):
    """Raised for invalid CLI arguments or an unusable client setup."""

    exit_code = EXIT_INVALID_USAGE


class CredentialsError(HandshakeError):
    """Raised by an authenticator when credentials are rejected."""

    exit_code = EXIT_AUTH_FAILURE


class RequiresHttpAction(HandshakeError):
    """Stop processing the request and emit :attr:`action` instead.

    Raised by :meth:`~handshake.auth.client.AuthenticationClient.get_credentials`
    for deferred redirections, by
    :meth:`~handshake.auth.client.AuthenticationClient.get_redirect_action`,
    and by protocol handlers that need to challenge the user agent.

    Args:
        action: The HTTP outcome to emit.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, action: HttpAction):
        super().__init__(action.message)
        self.action = action

    @property
    def status_code(self) -> int:
        return self.action.status_code


class ClientNotFoundError(HandshakeError):
    """Raised when no client is registered under the requested name."""

    exit_code = EXIT_NOT_FOUND


class ProviderError(HandshakeError):
    """Raised by protocol handlers on network failures or malformed provider responses.

    The core never retries these; they propagate to the caller.
    """

    exit_code = EXIT_PROVIDER_ERROR


class ConfigError(HandshakeError):
    """Raised for configuration problems (invalid JSON, bad secret sources, duplicate names)."""

    exit_code = EXIT_GENERIC_FAILURE
