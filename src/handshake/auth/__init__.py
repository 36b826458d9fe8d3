"""The authentication handshake.

This package implements the protocol-independent part of authentication:
the redirect decision, the session loop guard, and the credentials ->
profile -> authorization pipeline.

The main entry points are:

- :class:`AuthenticationClient` -- the handshake state machine for one
  protocol handler.
- :class:`ClientBuilder` -- assembles a client's frozen configuration.
- :class:`ProtocolHandler` -- abstract base class for protocol specifics.
- :class:`Clients` -- registry of clients sharing one callback URL, and
  :func:`create_clients` to build it from configuration.

Typical usage::

    from handshake.auth import create_clients
    from handshake.config import load_config

    clients = create_clients(load_config())
    client = clients.find_client_from_context(context)
    credentials = client.get_credentials(context)
    profile = client.get_user_profile(credentials, context)
"""

from handshake.auth.authenticator import (
    Authenticator,
    AuthenticatorProfileCreator,
    InMemoryUsernamePasswordAuthenticator,
    ProfileCreator,
    SimpleTestUsernamePasswordAuthenticator,
)
from handshake.auth.authorization import (
    AuthorizationGenerator,
    DefaultRolesPermissionsAuthorizationGenerator,
    FromAttributesAuthorizationGenerator,
    RememberMeAuthorizationGenerator,
)
from handshake.auth.base import Mechanism, ProtocolHandler
from handshake.auth.client import (
    NEEDS_CLIENT_REDIRECTION_PARAMETER,
    AuthenticationClient,
    ClientBuilder,
)
from handshake.auth.loop_guard import ATTEMPTED_AUTHENTICATION_SUFFIX, SessionLoopGuard
from handshake.auth.manager import CLIENT_NAME_PARAMETER, Clients, create_clients

__all__ = [
    "ATTEMPTED_AUTHENTICATION_SUFFIX",
    "CLIENT_NAME_PARAMETER",
    "NEEDS_CLIENT_REDIRECTION_PARAMETER",
    "AuthenticationClient",
    "Authenticator",
    "AuthenticatorProfileCreator",
    "AuthorizationGenerator",
    "ClientBuilder",
    "Clients",
    "DefaultRolesPermissionsAuthorizationGenerator",
    "FromAttributesAuthorizationGenerator",
    "InMemoryUsernamePasswordAuthenticator",
    "Mechanism",
    "ProfileCreator",
    "ProtocolHandler",
    "RememberMeAuthorizationGenerator",
    "SessionLoopGuard",
    "SimpleTestUsernamePasswordAuthenticator",
    "create_clients",
]
