"""Clients registry -- several authentication clients behind one callback URL.

The :class:`Clients` registry is the central coordinator of a deployment:
it holds every configured
:class:`~handshake.auth.client.AuthenticationClient`, gives each one the
shared callback URL (tagged with ``client_name=<name>`` so the callback can
tell clients apart) and finds the client a request belongs to.

For configuration-driven setups, call :func:`create_clients` with a
:class:`~handshake.models.ClientsConfig` loaded by
:func:`~handshake.config.load_config`.

See Also:
    :class:`~handshake.auth.client.ClientBuilder` -- programmatic setup.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from handshake.auth.authenticator import (
    AuthenticatorProfileCreator,
    InMemoryUsernamePasswordAuthenticator,
)
from handshake.auth.authorization import (
    DefaultRolesPermissionsAuthorizationGenerator,
    FromAttributesAuthorizationGenerator,
)
from handshake.auth.base import ProtocolHandler
from handshake.auth.client import AuthenticationClient, ClientBuilder
from handshake.config import resolve_secret
from handshake.context import WebContext
from handshake.exceptions import ClientNotFoundError, ConfigError
from handshake.helpers import add_parameter, has_parameter, is_blank
from handshake.models import ClientSettings, ClientsConfig

logger = logging.getLogger(__name__)

CLIENT_NAME_PARAMETER = "client_name"
"""Callback URL parameter naming the client a callback request belongs to."""


class Clients:
    """Registry of authentication clients sharing one callback URL.

    Clients are looked up by name. When a shared *callback_url* is given,
    every client without its own callback URL receives it, with
    ``client_name=<name>`` appended when the client includes its name in
    the callback URL (the default) and the parameter is not already there.

    Client names must be unique: they key the session loop guard, so two
    clients with one name would corrupt each other's state.

    Args:
        callback_url: Callback URL shared by the clients.
        clients: The clients to register, in order.
        default_client: Name of the client used when a request names none.

    Raises:
        ConfigError: On duplicate client names or an unknown default client.

    Example::

        clients = Clients("/callback", [form_client, github_client])
        client = clients.find_client_from_context(context)
        credentials = client.get_credentials(context)
    """

    def __init__(
        self,
        callback_url: Optional[str] = None,
        clients: Iterable[AuthenticationClient] = (),
        default_client: Optional[str] = None,
    ) -> None:
        self._callback_url = callback_url
        self._clients: dict[str, AuthenticationClient] = {}
        for client in clients:
            self.register(client)
        if default_client is not None and default_client not in self._clients:
            raise ConfigError(f"Default client '{default_client}' is not registered")
        self._default_client = default_client

    @property
    def callback_url(self) -> Optional[str]:
        return self._callback_url

    def register(self, client: AuthenticationClient) -> AuthenticationClient:
        """Register *client*, giving it the shared callback URL.

        Returns:
            The registered client (a new instance when its callback URL was
            rewritten).

        Raises:
            ConfigError: If a client with the same name is already registered.
        """
        name = client.name
        if name in self._clients:
            raise ConfigError(
                f"Duplicate client name '{name}': clients sharing a name "
                "corrupt each other's session state"
            )
        client = self._with_shared_callback(client)
        self._clients[name] = client
        logger.info("Registered client '%s' (%s)", name, client.mechanism.value)
        return client

    def _with_shared_callback(self, client: AuthenticationClient) -> AuthenticationClient:
        url = client.callback_url
        if is_blank(url):
            url = self._callback_url
        if url is not None and client.config.include_client_name_in_callback_url:
            if not has_parameter(url, CLIENT_NAME_PARAMETER):
                url = add_parameter(url, CLIENT_NAME_PARAMETER, client.name)
        if url == client.callback_url:
            return client
        return client.with_callback_url(url)

    def find_client(self, name: str) -> AuthenticationClient:
        """Return the client registered under *name*.

        Raises:
            ClientNotFoundError: If no client has that name.
        """
        client = self._clients.get(name)
        if client is None:
            available = ", ".join(self._clients) or "(none)"
            raise ClientNotFoundError(
                f"No client named '{name}'. Available clients: {available}"
            )
        return client

    def find_client_from_context(self, context: WebContext) -> AuthenticationClient:
        """Return the client named by the ``client_name`` request parameter.

        Falls back to the default client when the request names none.

        Raises:
            ClientNotFoundError: If the request names no known client and
                there is no default.
        """
        name = context.get_request_parameter(CLIENT_NAME_PARAMETER)
        if is_blank(name):
            if self._default_client is None:
                raise ClientNotFoundError(
                    f"Request has no '{CLIENT_NAME_PARAMETER}' parameter"
                )
            name = self._default_client
        return self.find_client(name)  # type: ignore[arg-type]

    def names(self) -> list[str]:
        """Return the registered client names in registration order."""
        return list(self._clients)

    def __iter__(self):
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)


def default_handler_types() -> dict[str, type[ProtocolHandler]]:
    """Return the built-in handler classes keyed by configuration type.

    The following handlers are available:

    - ``form`` -- login form posted to the callback URL.
    - ``basic`` -- HTTP Basic ``Authorization`` header.
    - ``oauth2`` -- OAuth2 authorization code grant with PKCE.
    """
    from handshake.protocols.basic import BasicAuthHandler
    from handshake.protocols.form import FormHandler
    from handshake.protocols.oauth2 import OAuth2Handler

    return {
        handler.type_name: handler
        for handler in (FormHandler, BasicAuthHandler, OAuth2Handler)
    }


def build_client(
    settings: ClientSettings,
    handler_types: Optional[dict[str, type[ProtocolHandler]]] = None,
) -> AuthenticationClient:
    """Create one client from its configuration entry.

    Authorization generators are registered in this order: default roles
    and permissions, then roles read from ``role_attributes``. A non-empty
    ``users`` table installs an in-memory authenticator whose profiles are
    used as-is.

    Raises:
        ConfigError: If the handler type is unknown or a secret cannot be
            resolved.
    """
    types = handler_types if handler_types is not None else default_handler_types()
    handler_cls = types.get(settings.type)
    if handler_cls is None:
        available = ", ".join(sorted(types)) or "(none)"
        raise ConfigError(
            f"Unknown client type '{settings.type}'. Available types: {available}"
        )

    builder = ClientBuilder(handler_cls.from_settings(settings))
    if settings.name:
        builder.name(settings.name)
    if settings.callback_url:
        builder.callback_url(settings.callback_url)
    builder.enable_contextual_redirects(settings.enable_contextual_redirects)
    builder.include_client_name_in_callback_url(
        settings.include_client_name_in_callback_url
    )

    if settings.default_roles or settings.default_permissions:
        builder.add_authorization_generator(
            DefaultRolesPermissionsAuthorizationGenerator(
                settings.default_roles, settings.default_permissions
            )
        )
    if settings.role_attributes:
        builder.add_authorization_generator(
            FromAttributesAuthorizationGenerator(role_attributes=settings.role_attributes)
        )

    if settings.users:
        users = {name: resolve_secret(source) for name, source in settings.users.items()}
        builder.authenticator(InMemoryUsernamePasswordAuthenticator(users))
        builder.profile_creator(AuthenticatorProfileCreator())

    return builder.build()


def create_clients(
    config: ClientsConfig,
    handler_types: Optional[dict[str, type[ProtocolHandler]]] = None,
) -> Clients:
    """Create a :class:`Clients` registry from a loaded configuration.

    Args:
        config: The validated configuration.
        handler_types: Handler classes keyed by type; defaults to
            :func:`default_handler_types`.

    Returns:
        A registry holding one client per configuration entry.

    Raises:
        ConfigError: On unknown types, unresolvable secrets, or duplicate names.
    """
    clients = [build_client(settings, handler_types) for settings in config.clients]
    return Clients(config.callback_url, clients, config.default_client)
