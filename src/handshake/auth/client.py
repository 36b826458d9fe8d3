"""The authentication client -- the handshake state machine.

:class:`AuthenticationClient` implements, once and for every protocol, the
decisions taken on each request:

* **Redirect decision** (:meth:`~AuthenticationClient.resolve_redirect`):
  AJAX callers get a ``401``; a session marked by a failed attempt gets a
  ``403`` for protected targets; direct handlers and protected targets go
  straight to the provider; otherwise the user agent is sent to the
  callback URL flagged with ``needs_client_redirection=true`` and the real
  redirect is deferred to that next request.
* **Credential extraction** (:meth:`~AuthenticationClient.get_credentials`):
  the deferred continuation always ends in an HTTP action; otherwise the
  handler extracts credentials, the optional authenticator validates them,
  and the session marker records the failure or is cleared on success.
* **Profile construction** (:meth:`~AuthenticationClient.get_user_profile`):
  the handler (or the configured profile creator) builds the profile, then
  the authorization generators enrich it in registration order.

The client holds configuration only and is safe to share across
concurrent requests; per-request state lives in the
:class:`~handshake.context.WebContext`.

See Also:
    :class:`~handshake.auth.base.ProtocolHandler` -- the protocol interface.
    :class:`~handshake.auth.manager.Clients` -- several clients behind one
    callback URL.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Union

from handshake.auth.base import Mechanism, ProtocolHandler
from handshake.auth.loop_guard import SessionLoopGuard
from handshake.context import HttpConstants, WebContext
from handshake.exceptions import CredentialsError, InvalidUsageError, RequiresHttpAction
from handshake.helpers import add_parameter, is_blank, is_not_blank, prepend_host_to_url
from handshake.models import (
    ClientConfig,
    Credentials,
    HttpAction,
    RedirectAction,
    RedirectType,
    UserProfile,
)

logger = logging.getLogger(__name__)

NEEDS_CLIENT_REDIRECTION_PARAMETER = "needs_client_redirection"
"""Flags the deferred continuation request of an indirect redirection."""

RedirectOutcome = Union[RedirectAction, HttpAction]


class AuthenticationClient:
    """Drive the authentication handshake for one protocol handler.

    Build instances with :class:`ClientBuilder`. The handler is initialized
    lazily, at most once, before the first operation.

    Args:
        handler: The protocol specifics.
        config: Frozen client configuration. Defaults to an empty one.
    """

    def __init__(
        self, handler: ProtocolHandler, config: Optional[ClientConfig] = None
    ) -> None:
        self._handler = handler
        self._config = config or ClientConfig()
        self._guard = SessionLoopGuard(self.name)
        self._init_lock = threading.Lock()
        self._initialized = False

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        """The configured name, or the handler class name when blank."""
        if is_blank(self._config.name):
            return type(self._handler).__name__
        return self._config.name  # type: ignore[return-value]

    @property
    def handler(self) -> ProtocolHandler:
        return self._handler

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def callback_url(self) -> Optional[str]:
        return self._config.callback_url

    @property
    def direct_redirection(self) -> bool:
        return self._handler.direct_redirection

    @property
    def mechanism(self) -> Mechanism:
        return self._handler.mechanism

    @property
    def loop_guard(self) -> SessionLoopGuard:
        return self._guard

    def with_callback_url(self, callback_url: Optional[str]) -> AuthenticationClient:
        """Return a new client identical to this one but for its callback URL."""
        config = self._config.model_copy(update={"callback_url": callback_url})
        return AuthenticationClient(self._handler, config)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"callback_url={self._config.callback_url!r}, "
            f"direct_redirection={self.direct_redirection}, "
            f"enable_contextual_redirects={self._config.enable_contextual_redirects})"
        )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Initialize the handler once. A failed initialization is retried on next use.

        Raises:
            InvalidUsageError: If the client or its handler is misconfigured.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            if not self._handler.direct_redirection and is_blank(
                self._config.callback_url
            ):
                raise InvalidUsageError(
                    f"Client '{self.name}' redirects indirectly and needs a callback URL"
                )
            self._handler.initialize(self)
            self._initialized = True
            logger.debug("Initialized client %r", self)

    # ------------------------------------------------------------------
    # Redirection
    # ------------------------------------------------------------------

    def resolve_redirect(
        self,
        context: WebContext,
        requires_authentication: bool,
        ajax_request: bool,
    ) -> RedirectOutcome:
        """Decide how to answer a request that needs the user to authenticate.

        Args:
            context: The current web context.
            requires_authentication: Whether the requested target is
                protected (the user must authenticate now).
            ajax_request: Whether the request comes from ``XMLHttpRequest``.

        Returns:
            A :class:`~handshake.models.RedirectAction` to follow, or an
            :class:`~handshake.models.HttpAction` (``401`` for AJAX, ``403``
            when authentication was already attempted for a protected
            target) to emit instead.
        """
        self.init()
        if ajax_request:
            return HttpAction.unauthorized("AJAX request -> 401")

        if self._guard.consume(context) and requires_authentication:
            logger.error(
                "Client '%s': authentication already tried and protected target -> forbidden",
                self.name,
            )
            return HttpAction.forbidden("authentication already tried -> forbidden")

        if self._handler.direct_redirection or requires_authentication:
            return self._handler.compute_redirect_outcome(self, context)

        intermediate_url = add_parameter(
            self.get_contextual_callback_url(context),  # type: ignore[arg-type]
            NEEDS_CLIENT_REDIRECTION_PARAMETER,
            "true",
        )
        return RedirectAction.redirect(intermediate_url)

    def get_redirect_action(
        self,
        context: WebContext,
        requires_authentication: bool,
        ajax_request: bool,
    ) -> RedirectAction:
        """Same decision as :meth:`resolve_redirect`, raising HTTP actions.

        Raises:
            RequiresHttpAction: When the decision is an HTTP action.
        """
        outcome = self.resolve_redirect(context, requires_authentication, ajax_request)
        if isinstance(outcome, HttpAction):
            raise RequiresHttpAction(outcome)
        return outcome

    def redirect(
        self,
        context: WebContext,
        requires_authentication: bool,
        ajax_request: bool,
    ) -> RedirectOutcome:
        """Decide and write the outcome to the response.

        A redirect sets ``302`` and ``Location``; a rendered response sets
        ``200`` and writes the body; an HTTP action writes its status,
        headers and body.

        Returns:
            The outcome that was written.
        """
        outcome = self.resolve_redirect(context, requires_authentication, ajax_request)
        write_outcome(context, outcome)
        return outcome

    def get_redirection_url(self, context: WebContext) -> Optional[str]:
        """Best-effort link to the provider for an anonymous page.

        Returns:
            The redirect location, or ``None`` when the decision is an HTTP
            action or a rendered response.
        """
        outcome = self.resolve_redirect(context, False, False)
        if isinstance(outcome, HttpAction):
            return None
        return outcome.location

    def get_contextual_callback_url(self, context: Optional[WebContext]) -> Optional[str]:
        """Return the callback URL, made absolute for *context* when enabled.

        A relative URL is completed with the request scheme, host and port
        only when contextual redirects are enabled and a context is given.
        """
        url = self._config.callback_url
        if context is not None and self._config.enable_contextual_redirects and url is not None:
            return prepend_host_to_url(url, context)
        return url

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def get_credentials(self, context: WebContext) -> Optional[Credentials]:
        """Extract and validate the credentials of the current request.

        Returns:
            The credentials, or ``None`` when the request asserts no valid
            identity. ``None`` marks the session for the loop guard;
            credentials clear the mark.

        Raises:
            RequiresHttpAction: On the deferred continuation of an indirect
                redirection (``OK`` with content, or ``REDIRECT``), or when
                the handler challenges the user agent.
        """
        self.init()
        value = context.get_request_parameter(NEEDS_CLIENT_REDIRECTION_PARAMETER)
        if is_not_blank(value):
            action = self._handler.compute_redirect_outcome(self, context)
            message = "Needs client redirection"
            if action.type is RedirectType.SUCCESS:
                raise RequiresHttpAction(HttpAction.ok(message, action.content or ""))
            raise RequiresHttpAction(HttpAction.redirect(message, action.location or ""))

        credentials = self._handler.extract_credentials(self, context)
        if credentials is not None:
            credentials = self._validate(credentials, context)

        if credentials is None:
            self._guard.mark(context)
        else:
            self._guard.clear(context)
            credentials.client_name = self.name
        return credentials

    def _validate(
        self, credentials: Credentials, context: WebContext
    ) -> Optional[Credentials]:
        authenticator = self._config.authenticator
        if authenticator is None:
            return credentials
        try:
            authenticator.validate(credentials, context)
        except CredentialsError as exc:
            logger.info("Client '%s': credentials rejected: %s", self.name, exc)
            return None
        return credentials

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_user_profile(
        self, credentials: Optional[Credentials], context: WebContext
    ) -> Optional[UserProfile]:
        """Build the profile for *credentials* and apply the authorization generators.

        Returns:
            The enriched profile, or ``None`` without credentials.
        """
        self.init()
        logger.debug("Client '%s': credentials: %r", self.name, credentials)
        if credentials is None:
            return None

        creator = self._config.profile_creator
        if creator is not None:
            profile = creator.create(credentials, context)
        else:
            profile = self._handler.build_profile(self, credentials, context)
        if profile is None:
            logger.debug("Client '%s': no profile built", self.name)
            return None

        profile.client_name = self.name
        for generator in self._config.authorization_generators:
            generator(profile)
        logger.debug("Client '%s': profile: %s", self.name, profile.typed_id)
        return profile


def write_outcome(context: WebContext, outcome: RedirectOutcome) -> None:
    """Write a redirect decision or an HTTP action to the response."""
    if isinstance(outcome, HttpAction):
        context.set_response_status(outcome.status_code)
        for name, value in outcome.headers.items():
            context.set_response_header(name, value)
        if outcome.location is not None:
            context.set_response_header(HttpConstants.LOCATION_HEADER, outcome.location)
        if outcome.content is not None:
            context.write_response_content(outcome.content)
    elif outcome.type is RedirectType.REDIRECT:
        context.set_response_status(HttpConstants.TEMP_REDIRECT)
        context.set_response_header(HttpConstants.LOCATION_HEADER, outcome.location or "")
    else:
        context.set_response_status(HttpConstants.OK)
        context.write_response_content(outcome.content or "")


class ClientBuilder:
    """Assemble the configuration of an :class:`AuthenticationClient`.

    Every setter returns the builder; :meth:`build` freezes the
    configuration into a :class:`~handshake.models.ClientConfig`.

    Example::

        client = (
            ClientBuilder(BasicAuthHandler(realm="api"))
            .name("BasicAuth")
            .authenticator(InMemoryUsernamePasswordAuthenticator({"jdoe": "s3cret"}))
            .add_authorization_generator(
                DefaultRolesPermissionsAuthorizationGenerator(["ROLE_USER"])
            )
            .build()
        )
    """

    def __init__(self, handler: ProtocolHandler) -> None:
        self._handler = handler
        self._values: dict[str, Any] = {}
        self._generators: list[Any] = []

    def name(self, name: str) -> ClientBuilder:
        self._values["name"] = name
        return self

    def callback_url(self, callback_url: str) -> ClientBuilder:
        self._values["callback_url"] = callback_url
        return self

    def enable_contextual_redirects(self, enabled: bool = True) -> ClientBuilder:
        self._values["enable_contextual_redirects"] = enabled
        return self

    def include_client_name_in_callback_url(self, include: bool) -> ClientBuilder:
        self._values["include_client_name_in_callback_url"] = include
        return self

    def add_authorization_generator(self, generator: Any) -> ClientBuilder:
        self._generators.append(generator)
        return self

    def add_authorization_generators(self, *generators: Any) -> ClientBuilder:
        self._generators.extend(generators)
        return self

    def authenticator(self, authenticator: Any) -> ClientBuilder:
        self._values["authenticator"] = authenticator
        return self

    def profile_creator(self, profile_creator: Any) -> ClientBuilder:
        self._values["profile_creator"] = profile_creator
        return self

    def build(self) -> AuthenticationClient:
        config = ClientConfig(
            authorization_generators=tuple(self._generators), **self._values
        )
        return AuthenticationClient(self._handler, config)
