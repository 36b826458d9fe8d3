"""OAuth2 Authorization Code handler with PKCE.

This module provides :class:`OAuth2Handler`, which implements the
``oauth2`` handler type:

1. The redirect sends the user agent to the authorization URL with a
   random ``state`` and a PKCE challenge (:rfc:`7636`); the state and the
   code verifier are kept in the session under ``<client name>$state`` and
   ``<client name>$codeVerifier``.
2. On the callback, the ``code`` becomes
   :class:`~handshake.models.OAuthCodeCredentials` once the returned
   ``state`` matches the one in the session. Both session entries are
   single use.
3. Building the profile exchanges the code for an access token and reads
   the userinfo endpoint with it.

Also exports :func:`generate_pkce_pair`.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlencode

import httpx

from handshake.auth.base import Mechanism, ProtocolHandler
from handshake.config import resolve_secret
from handshake.context import WebContext
from handshake.exceptions import ProviderError
from handshake.helpers import is_blank, is_not_blank
from handshake.models import (
    ClientSettings,
    Credentials,
    OAuthCodeCredentials,
    RedirectAction,
    UserProfile,
)

if TYPE_CHECKING:
    from handshake.auth.client import AuthenticationClient

logger = logging.getLogger(__name__)

STATE_SUFFIX = "$state"
CODE_VERIFIER_SUFFIX = "$codeVerifier"


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


class OAuth2Handler(ProtocolHandler):
    """Authenticate via the OAuth2 Authorization Code grant.

    Args:
        authorization_url: Provider authorization endpoint.
        token_url: Provider token endpoint.
        userinfo_url: Endpoint returning the user's attributes as JSON.
        client_id: Registered client identifier.
        client_secret: Registered client secret, if any.
        scopes: Requested scopes.
        use_pkce: Send a PKCE S256 challenge.
        id_attribute: Userinfo field holding the user identifier.
        http_client: Optional ``httpx.Client`` used for provider calls.
        timeout: Provider call timeout in seconds.
    """

    type_name = "oauth2"

    def __init__(
        self,
        authorization_url: Optional[str] = None,
        token_url: Optional[str] = None,
        userinfo_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        scopes: Optional[list[str]] = None,
        use_pkce: bool = True,
        id_attribute: str = "sub",
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self._authorization_url = authorization_url
        self._token_url = token_url
        self._userinfo_url = userinfo_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._scopes = list(scopes or [])
        self._use_pkce = use_pkce
        self._id_attribute = id_attribute
        self._http_client = http_client
        self._timeout = timeout

    @property
    def direct_redirection(self) -> bool:
        return False

    @property
    def mechanism(self) -> Mechanism:
        return Mechanism.OAUTH_MECHANISM

    def compute_redirect_outcome(
        self, client: AuthenticationClient, context: WebContext
    ) -> RedirectAction:
        state = secrets.token_urlsafe(32)
        context.set_session_attribute(client.name + STATE_SUFFIX, state)

        params: dict[str, str] = {"response_type": "code", "state": state}
        if self._client_id:
            params["client_id"] = self._client_id
        redirect_uri = client.get_contextual_callback_url(context)
        if redirect_uri:
            params["redirect_uri"] = redirect_uri
        if self._scopes:
            params["scope"] = " ".join(self._scopes)
        if self._use_pkce:
            code_verifier, code_challenge = generate_pkce_pair()
            context.set_session_attribute(client.name + CODE_VERIFIER_SUFFIX, code_verifier)
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        url = self._authorization_url or ""
        sep = "&" if "?" in url else "?"
        return RedirectAction.redirect(f"{url}{sep}{urlencode(params)}")

    def extract_credentials(
        self, client: AuthenticationClient, context: WebContext
    ) -> Optional[Credentials]:
        state_key = client.name + STATE_SUFFIX
        verifier_key = client.name + CODE_VERIFIER_SUFFIX

        error = context.get_request_parameter("error")
        if is_not_blank(error):
            logger.info(
                "Client '%s': provider returned error '%s': %s",
                client.name,
                error,
                context.get_request_parameter("error_description") or "",
            )
            self._forget(context, state_key, verifier_key)
            return None

        code = context.get_request_parameter("code")
        if is_blank(code):
            return None

        expected_state = context.get_session_attribute(state_key)
        code_verifier = context.get_session_attribute(verifier_key)
        self._forget(context, state_key, verifier_key)

        state = context.get_request_parameter("state") or ""
        if is_blank(expected_state) or not hmac.compare_digest(
            str(expected_state).encode("utf-8"), state.encode("utf-8")
        ):
            logger.warning("Client '%s': OAuth2 state mismatch, ignoring code", client.name)
            return None

        return OAuthCodeCredentials(
            code=code,
            state=state,
            redirect_uri=client.get_contextual_callback_url(context),
            code_verifier=code_verifier,
        )

    def build_profile(
        self,
        client: AuthenticationClient,
        credentials: Credentials,
        context: WebContext,
    ) -> Optional[UserProfile]:
        """Exchange the code and fetch the user's attributes.

        Raises:
            ProviderError: On HTTP errors, non-JSON answers, or a missing
                ``access_token`` or identifier.
        """
        if not isinstance(credentials, OAuthCodeCredentials):
            return None

        token_data = self._exchange_code(credentials)
        access_token = token_data["access_token"]
        userinfo = self._request_json(
            "GET",
            self._userinfo_url or "",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

        user_id = userinfo.get(self._id_attribute)
        if user_id is None:
            raise ProviderError(
                f"Userinfo response missing '{self._id_attribute}' field"
            )
        profile = UserProfile(id=str(user_id), attributes=dict(userinfo))
        profile.add_attribute("access_token", access_token)
        profile.add_attribute("refresh_token", token_data.get("refresh_token"))
        scope = token_data.get("scope")
        if isinstance(scope, str) and scope:
            profile.add_permissions(scope.split())
        return profile

    def validate_settings(self) -> list[str]:
        errors: list[str] = []
        if not self._authorization_url:
            errors.append("OAuth2 requires 'authorization_url'")
        if not self._token_url:
            errors.append("OAuth2 requires 'token_url'")
        if not self._userinfo_url:
            errors.append("OAuth2 requires 'userinfo_url'")
        if not self._client_id:
            errors.append("OAuth2 requires a client id")
        return errors

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> OAuth2Handler:
        client_id = (
            resolve_secret(settings.client_id_source)
            if settings.client_id_source
            else None
        )
        client_secret = (
            resolve_secret(settings.client_secret_source)
            if settings.client_secret_source
            else None
        )
        return cls(
            authorization_url=settings.authorization_url,
            token_url=settings.token_url,
            userinfo_url=settings.userinfo_url,
            client_id=client_id,
            client_secret=client_secret,
            scopes=settings.scopes,
            use_pkce=settings.use_pkce,
            id_attribute=settings.id_attribute,
        )

    @staticmethod
    def _forget(context: WebContext, *keys: str) -> None:
        for key in keys:
            context.set_session_attribute(key, None)

    def _exchange_code(self, credentials: OAuthCodeCredentials) -> dict[str, Any]:
        """Exchange the authorization code for tokens.

        Raises:
            ProviderError: On HTTP errors or if ``access_token`` is missing
                from the response.
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": credentials.code,
        }
        if credentials.redirect_uri:
            data["redirect_uri"] = credentials.redirect_uri
        if credentials.code_verifier:
            data["code_verifier"] = credentials.code_verifier
        if self._client_id:
            data["client_id"] = self._client_id
        if self._client_secret:
            data["client_secret"] = self._client_secret

        token_data = self._request_json(
            "POST",
            self._token_url or "",
            data=data,
            headers={"Accept": "application/json"},
        )
        if "access_token" not in token_data:
            raise ProviderError("Token response missing 'access_token' field")
        return token_data

    def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            if self._http_client is not None:
                response = self._http_client.request(
                    method, url, timeout=self._timeout, **kwargs
                )
            else:
                response = httpx.request(method, url, timeout=self._timeout, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Provider call %s %s failed: %s", method, url, exc)
            raise ProviderError(
                f"{method} {url} failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Provider call %s %s failed: %s", method, url, exc)
            raise ProviderError(f"{method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"{method} {url} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise ProviderError(f"{method} {url} returned a non-object JSON payload")
        return payload
