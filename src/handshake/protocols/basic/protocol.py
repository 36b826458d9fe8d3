"""HTTP Basic authentication handler.

This module provides :class:`BasicAuthHandler`. Redirection is direct: the
user agent is sent to the callback URL, where a missing or malformed
``Authorization: Basic`` header is answered with a ``401`` challenge
carrying ``WWW-Authenticate: Basic realm="..."`` so the browser prompts for
credentials.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Optional

from handshake.auth.base import Mechanism, ProtocolHandler
from handshake.context import HttpConstants, WebContext
from handshake.exceptions import RequiresHttpAction
from handshake.models import (
    ClientSettings,
    Credentials,
    HttpAction,
    RedirectAction,
    UserProfile,
    UsernamePasswordCredentials,
)

if TYPE_CHECKING:
    from handshake.auth.client import AuthenticationClient

_PREFIX = "Basic "


class BasicAuthHandler(ProtocolHandler):
    """Authenticate via the HTTP Basic ``Authorization`` header.

    Args:
        realm: Realm announced in the ``WWW-Authenticate`` challenge.
    """

    type_name = "basic"

    def __init__(self, realm: str = "authentication required") -> None:
        self._realm = realm

    @property
    def realm(self) -> str:
        return self._realm

    @property
    def direct_redirection(self) -> bool:
        return True

    @property
    def mechanism(self) -> Mechanism:
        return Mechanism.BASICAUTH_MECHANISM

    def compute_redirect_outcome(
        self, client: AuthenticationClient, context: WebContext
    ) -> RedirectAction:
        return RedirectAction.redirect(client.get_contextual_callback_url(context) or "")

    def extract_credentials(
        self, client: AuthenticationClient, context: WebContext
    ) -> Optional[Credentials]:
        """Decode the ``Authorization`` header.

        Raises:
            RequiresHttpAction: ``401`` with a ``WWW-Authenticate`` challenge
                when the header is missing or malformed.
        """
        header = context.get_request_header(HttpConstants.AUTHORIZATION_HEADER)
        if header is None or not header.startswith(_PREFIX):
            raise self._challenge("No Basic Authorization header")

        try:
            decoded = base64.b64decode(header[len(_PREFIX):].strip(), validate=True)
            raw = decoded.decode("utf-8")
        except ValueError:
            raise self._challenge("Malformed Basic Authorization header") from None

        username, sep, password = raw.partition(":")
        if not sep:
            raise self._challenge("Basic credential must be in 'username:password' format")
        return UsernamePasswordCredentials(username=username, password=password)

    def build_profile(
        self,
        client: AuthenticationClient,
        credentials: Credentials,
        context: WebContext,
    ) -> Optional[UserProfile]:
        if credentials.user_profile is not None:
            return credentials.user_profile
        if isinstance(credentials, UsernamePasswordCredentials):
            return UserProfile(
                id=credentials.username,
                attributes={"username": credentials.username},
            )
        return None

    def _challenge(self, message: str) -> RequiresHttpAction:
        return RequiresHttpAction(
            HttpAction.unauthorized(
                message,
                headers={
                    HttpConstants.WWW_AUTHENTICATE_HEADER: f'Basic realm="{self._realm}"'
                },
            )
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> BasicAuthHandler:
        return cls(realm=settings.realm)
