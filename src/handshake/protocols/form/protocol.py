"""Form login handler.

This module provides :class:`FormHandler`. Redirects go to a login page
(made absolute for the request when the client enables contextual
redirects); the login form posts ``username`` and ``password`` back to the
callback URL, where they become
:class:`~handshake.models.UsernamePasswordCredentials`.

Form credentials are only as good as their check: configure the client
with an :class:`~handshake.auth.authenticator.Authenticator`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from handshake.auth.base import Mechanism, ProtocolHandler
from handshake.context import WebContext
from handshake.helpers import is_blank, prepend_host_to_url
from handshake.models import (
    ClientSettings,
    Credentials,
    RedirectAction,
    UserProfile,
    UsernamePasswordCredentials,
)

if TYPE_CHECKING:
    from handshake.auth.client import AuthenticationClient


class FormHandler(ProtocolHandler):
    """Authenticate through a login form.

    Args:
        login_url: Page rendering the login form.
        username_parameter: Form field holding the username.
        password_parameter: Form field holding the password.
    """

    type_name = "form"

    def __init__(
        self,
        login_url: Optional[str] = None,
        username_parameter: str = "username",
        password_parameter: str = "password",
    ) -> None:
        self._login_url = login_url
        self._username_parameter = username_parameter
        self._password_parameter = password_parameter

    @property
    def login_url(self) -> Optional[str]:
        return self._login_url

    @property
    def direct_redirection(self) -> bool:
        return False

    @property
    def mechanism(self) -> Mechanism:
        return Mechanism.FORM_MECHANISM

    def compute_redirect_outcome(
        self, client: AuthenticationClient, context: WebContext
    ) -> RedirectAction:
        url = self._login_url or ""
        if client.config.enable_contextual_redirects:
            url = prepend_host_to_url(url, context)
        return RedirectAction.redirect(url)

    def extract_credentials(
        self, client: AuthenticationClient, context: WebContext
    ) -> Optional[Credentials]:
        username = context.get_request_parameter(self._username_parameter)
        password = context.get_request_parameter(self._password_parameter)
        if is_blank(username) or is_blank(password):
            return None
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

    def validate_settings(self) -> list[str]:
        errors: list[str] = []
        if is_blank(self._login_url):
            errors.append("Form login requires 'login_url'")
        return errors

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> FormHandler:
        return cls(
            login_url=settings.login_url,
            username_parameter=settings.username_parameter,
            password_parameter=settings.password_parameter,
        )
