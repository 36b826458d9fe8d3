"""Canonical Pydantic models shared across all handshake modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Handshake outcomes** -- produced by clients and protocol handlers:
    :class:`RedirectAction` (how to reach the provider) and
    :class:`HttpAction` (stop and emit this HTTP outcome now).

**Identity** -- :class:`Credentials` and its protocol-specific subclasses,
    and the :class:`UserProfile` built from them.

**Configuration** -- :class:`ClientConfig` (the frozen runtime
    configuration of one client, assembled by
    :class:`~handshake.auth.client.ClientBuilder`), and the JSON-serialisable
    :class:`ClientSettings` / :class:`ClientsConfig` loaded by
    :mod:`handshake.config`.

All models use Pydantic v2. Outcome and runtime configuration models are
frozen; profiles are mutable because authorization generators enrich them
in place.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from handshake.context import HttpConstants


# --- Handshake outcomes ---


class RedirectType(str, enum.Enum):
    """Discriminator of a :class:`RedirectAction`."""

    REDIRECT = "redirect"
    SUCCESS = "success"


class RedirectAction(BaseModel):
    """How to reach the identity provider or complete the handshake.

    Either a ``REDIRECT`` to :attr:`location` or a ``SUCCESS`` carrying
    literal :attr:`content` to render directly (e.g. an auto-submitting
    POST form).

    Example::

        action = RedirectAction.redirect("https://idp.example.com/authorize")
        assert action.type is RedirectType.REDIRECT
    """

    model_config = ConfigDict(frozen=True)

    type: RedirectType
    location: Optional[str] = None
    content: Optional[str] = None

    @classmethod
    def redirect(cls, location: str) -> RedirectAction:
        return cls(type=RedirectType.REDIRECT, location=location)

    @classmethod
    def success(cls, content: str) -> RedirectAction:
        return cls(type=RedirectType.SUCCESS, content=content)


class HttpActionKind(str, enum.Enum):
    """The HTTP outcomes an authentication client can demand."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    OK = "ok"
    REDIRECT = "redirect"


class HttpAction(BaseModel):
    """Stop processing the request and emit this HTTP outcome now.

    Returned by
    :meth:`~handshake.auth.client.AuthenticationClient.resolve_redirect` and
    carried by :class:`~handshake.exceptions.RequiresHttpAction` when raised.

    Attributes:
        kind: Which outcome this is.
        status_code: HTTP status to set on the response.
        message: Diagnostic message (never sent to the user agent).
        location: Target of a ``REDIRECT``.
        content: Body of an ``OK``.
        headers: Extra response headers (e.g. ``WWW-Authenticate``).
    """

    model_config = ConfigDict(frozen=True)

    kind: HttpActionKind
    status_code: int
    message: str = ""
    location: Optional[str] = None
    content: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def unauthorized(
        cls, message: str, headers: Optional[dict[str, str]] = None
    ) -> HttpAction:
        return cls(
            kind=HttpActionKind.UNAUTHORIZED,
            status_code=HttpConstants.UNAUTHORIZED,
            message=message,
            headers=headers or {},
        )

    @classmethod
    def forbidden(cls, message: str) -> HttpAction:
        return cls(
            kind=HttpActionKind.FORBIDDEN,
            status_code=HttpConstants.FORBIDDEN,
            message=message,
        )

    @classmethod
    def ok(cls, message: str, content: str) -> HttpAction:
        return cls(
            kind=HttpActionKind.OK,
            status_code=HttpConstants.OK,
            message=message,
            content=content,
        )

    @classmethod
    def redirect(cls, message: str, location: str) -> HttpAction:
        return cls(
            kind=HttpActionKind.REDIRECT,
            status_code=HttpConstants.TEMP_REDIRECT,
            message=message,
            location=location,
        )


# --- Identity ---


class UserProfile(BaseModel):
    """A verified identity built from :class:`Credentials`.

    Authorization generators append roles, permissions and attributes in
    place, so ``roles`` and ``permissions`` keep insertion order and never
    hold duplicates when filled through the ``add_*`` helpers.
    """

    id: str
    client_name: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    remember_me: bool = False

    @property
    def typed_id(self) -> str:
        """Identifier qualified by the client that produced the profile."""
        return f"{self.client_name or 'UserProfile'}#{self.id}"

    def add_attribute(self, key: str, value: Any) -> None:
        if value is not None:
            self.attributes[key] = value

    def add_role(self, role: str) -> None:
        if role not in self.roles:
            self.roles.append(role)

    def add_roles(self, roles: list[str]) -> None:
        for role in roles:
            self.add_role(role)

    def add_permission(self, permission: str) -> None:
        if permission not in self.permissions:
            self.permissions.append(permission)

    def add_permissions(self, permissions: list[str]) -> None:
        for permission in permissions:
            self.add_permission(permission)


class Credentials(BaseModel):
    """Protocol-specific proof of identity extracted from a request.

    ``None`` in place of credentials is a normal outcome meaning "no identity
    asserted on this request". Authenticators may attach the profile they
    built while validating to :attr:`user_profile`.
    """

    client_name: Optional[str] = None
    user_profile: Optional[UserProfile] = None


class UsernamePasswordCredentials(Credentials):
    """Username and password, from a login form or an HTTP Basic header."""

    username: str
    password: str = Field(repr=False)


class TokenCredentials(Credentials):
    """An opaque token (API key, bearer token, ...)."""

    token: str = Field(repr=False)


class OAuthCodeCredentials(Credentials):
    """An OAuth2 authorization code returned to the callback URL."""

    code: str = Field(repr=False)
    state: Optional[str] = None
    redirect_uri: Optional[str] = None
    code_verifier: Optional[str] = Field(default=None, repr=False)


# --- Configuration ---


class ClientConfig(BaseModel):
    """Frozen runtime configuration of one authentication client.

    Assembled by :class:`~handshake.auth.client.ClientBuilder` before the
    client is put into service. ``authorization_generators`` keeps the
    registration order.

    The client :attr:`name` keys both its session loop-guard marker and its
    ``client_name`` callback parameter: two clients sharing a name within
    one session corrupt each other's loop guard.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: Optional[str] = None
    callback_url: Optional[str] = None
    enable_contextual_redirects: bool = False
    include_client_name_in_callback_url: bool = True
    authorization_generators: tuple[Any, ...] = ()
    authenticator: Optional[Any] = None
    profile_creator: Optional[Any] = None


class ClientSettings(BaseModel):
    """One client entry of a :class:`ClientsConfig` JSON file.

    The ``type`` field selects the protocol handler (``form``, ``basic``,
    ``oauth2``); the remaining fields supply handler-specific parameters.
    Extra fields are preserved in ``model_extra`` for third-party handlers.

    Example::

        ClientSettings(
            name="GitHub",
            type="oauth2",
            authorization_url="https://github.com/login/oauth/authorize",
            token_url="https://github.com/login/oauth/access_token",
            userinfo_url="https://api.github.com/user",
            client_id_source="env:GITHUB_CLIENT_ID",
            client_secret_source="env:GITHUB_CLIENT_SECRET",
        )
    """

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    type: str = Field(description="Handler type: form, basic, oauth2")
    callback_url: Optional[str] = Field(
        default=None, description="Overrides the shared callback URL"
    )
    enable_contextual_redirects: bool = False
    include_client_name_in_callback_url: bool = True
    # Authorization
    default_roles: list[str] = Field(default_factory=list)
    default_permissions: list[str] = Field(default_factory=list)
    role_attributes: list[str] = Field(
        default_factory=list,
        description="Profile attributes whose values become roles",
    )
    # Form login
    login_url: Optional[str] = None
    username_parameter: str = "username"
    password_parameter: str = "password"
    # HTTP Basic
    realm: str = "authentication required"
    users: dict[str, str] = Field(
        default_factory=dict,
        description="username -> password source (env:VAR, file:/path, literal:value)",
    )
    # OAuth2
    authorization_url: Optional[str] = None
    token_url: Optional[str] = None
    userinfo_url: Optional[str] = None
    client_id_source: Optional[str] = None
    client_secret_source: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    use_pkce: bool = True
    id_attribute: str = "sub"


class ClientsConfig(BaseModel):
    """Top-level configuration: a shared callback URL and the clients served by it."""

    callback_url: Optional[str] = Field(
        default=None, description="Callback URL shared by every client"
    )
    default_client: Optional[str] = None
    clients: list[ClientSettings] = Field(default_factory=list)
