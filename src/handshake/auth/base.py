"""Abstract base class for protocol handlers.

A :class:`ProtocolHandler` supplies the protocol specifics of one kind of
identity source; the handshake itself (redirect decision, loop guard,
credential and profile pipeline) is implemented once by
:class:`~handshake.auth.client.AuthenticationClient` against this
interface.

To implement a new protocol, subclass :class:`ProtocolHandler` and
provide:

1. :attr:`~ProtocolHandler.direct_redirection` -- whether a redirect
   request goes straight to the provider or through an intermediate hop.
2. :meth:`~ProtocolHandler.compute_redirect_outcome` -- how to reach the
   provider (may persist one-time state such as an OAuth ``state``).
3. :meth:`~ProtocolHandler.extract_credentials` -- credentials from the
   request, or ``None``.
4. :meth:`~ProtocolHandler.build_profile` -- a profile from credentials.

Handlers must not keep per-request state on ``self``: one instance serves
every request of its client concurrently. Per-request state belongs in the
:class:`~handshake.context.WebContext` session.

See Also:
    :mod:`handshake.protocols` for the built-in handlers.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from handshake.context import WebContext
from handshake.exceptions import ConfigError, InvalidUsageError
from handshake.models import ClientSettings, Credentials, RedirectAction, UserProfile

if TYPE_CHECKING:
    from handshake.auth.client import AuthenticationClient


class Mechanism(str, enum.Enum):
    """The authentication mechanism implemented by a handler."""

    FORM_MECHANISM = "form"
    BASICAUTH_MECHANISM = "basic_auth"
    OAUTH_MECHANISM = "oauth"
    OPENID_MECHANISM = "openid"
    SAML_PROTOCOL = "saml"
    CAS_PROTOCOL = "cas"
    OTHER = "other"


class ProtocolHandler(ABC):
    """Protocol specifics consumed by an authentication client.

    Every method receives the calling
    :class:`~handshake.auth.client.AuthenticationClient` so handlers can use
    its name (session keys) and its contextual callback URL.
    """

    type_name: str = ""
    """Identifier used in configuration files (``form``, ``basic``, ...)."""

    @property
    @abstractmethod
    def direct_redirection(self) -> bool:
        """Return True when redirects go to the provider without an intermediate hop."""
        ...

    @property
    def mechanism(self) -> Mechanism:
        return Mechanism.OTHER

    @abstractmethod
    def compute_redirect_outcome(
        self, client: AuthenticationClient, context: WebContext
    ) -> RedirectAction:
        """Return how the user agent reaches the provider.

        Called for direct redirections, for protected targets, and on the
        deferred continuation request of an indirect redirection.

        Args:
            client: The calling client.
            context: The current web context.

        Returns:
            A :class:`~handshake.models.RedirectAction`.
        """
        ...

    @abstractmethod
    def extract_credentials(
        self, client: AuthenticationClient, context: WebContext
    ) -> Optional[Credentials]:
        """Extract credentials from the current request.

        Returns:
            The credentials, or ``None`` when the request asserts no
            identity.

        Raises:
            RequiresHttpAction: When the handler must challenge the user
                agent instead (e.g. a ``401`` with ``WWW-Authenticate``).
        """
        ...

    @abstractmethod
    def build_profile(
        self,
        client: AuthenticationClient,
        credentials: Credentials,
        context: WebContext,
    ) -> Optional[UserProfile]:
        """Build the user profile for validated credentials.

        Raises:
            ProviderError: When the identity provider cannot be reached or
                answers with a malformed response.
        """
        ...

    def initialize(self, client: AuthenticationClient) -> None:
        """One-time setup, run lazily before the client's first operation.

        The default implementation validates the handler settings. Override
        to fetch discovery documents, load keys, etc. Must be safe to retry
        if it raises.

        Raises:
            InvalidUsageError: If :meth:`validate_settings` reports errors.
        """
        errors = self.validate_settings()
        if errors:
            raise InvalidUsageError(
                f"Client '{client.name}' is misconfigured: " + "; ".join(errors)
            )

    def validate_settings(self) -> list[str]:
        """Return human-readable configuration errors; empty when valid."""
        return []

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> ProtocolHandler:
        """Create a handler from a configuration entry.

        Raises:
            ConfigError: If the handler does not support configuration files,
                or a secret referenced by *settings* cannot be resolved.
        """
        raise ConfigError(f"{cls.__name__} cannot be built from settings")
