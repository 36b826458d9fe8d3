"""Credential validation and profile creation for protocols without their own.

Protocols such as form login or HTTP Basic carry credentials but say nothing
about how to check them or what the resulting profile looks like. A client
can be configured with an :class:`Authenticator` (checks credentials,
optionally attaching a profile) and a :class:`ProfileCreator` (turns
validated credentials into a profile).
"""

from __future__ import annotations

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional

from handshake.context import WebContext
from handshake.exceptions import CredentialsError
from handshake.helpers import is_blank
from handshake.models import Credentials, UserProfile, UsernamePasswordCredentials

logger = logging.getLogger(__name__)


class Authenticator(ABC):
    """Validate credentials extracted by a protocol handler."""

    @abstractmethod
    def validate(self, credentials: Credentials, context: WebContext) -> None:
        """Check *credentials*, attaching a profile to them when known.

        Raises:
            CredentialsError: If the credentials are rejected.
        """
        ...


class ProfileCreator(ABC):
    """Create a user profile from validated credentials."""

    @abstractmethod
    def create(
        self, credentials: Credentials, context: WebContext
    ) -> Optional[UserProfile]:
        ...


def _require_username_password(credentials: Credentials) -> UsernamePasswordCredentials:
    if not isinstance(credentials, UsernamePasswordCredentials):
        raise CredentialsError(
            f"Expected username/password credentials, got {type(credentials).__name__}"
        )
    if is_blank(credentials.username):
        raise CredentialsError("Username cannot be blank")
    if is_blank(credentials.password):
        raise CredentialsError("Password cannot be blank")
    return credentials


class SimpleTestUsernamePasswordAuthenticator(Authenticator):
    """Accept any username equal to its password. For tests and demos only."""

    def validate(self, credentials: Credentials, context: WebContext) -> None:
        creds = _require_username_password(credentials)
        if creds.username != creds.password:
            raise CredentialsError(f"Username '{creds.username}' does not match password")
        creds.user_profile = UserProfile(
            id=creds.username, attributes={"username": creds.username}
        )


class InMemoryUsernamePasswordAuthenticator(Authenticator):
    """Check usernames and passwords against an in-memory table.

    Passwords are compared in constant time.

    Args:
        users: Mapping of username to password.
    """

    def __init__(self, users: dict[str, str]) -> None:
        self._users = dict(users)

    def validate(self, credentials: Credentials, context: WebContext) -> None:
        creds = _require_username_password(credentials)
        expected = self._users.get(creds.username)
        if expected is None or not hmac.compare_digest(
            expected.encode("utf-8"), creds.password.encode("utf-8")
        ):
            raise CredentialsError(f"Invalid credentials for user '{creds.username}'")
        logger.debug("Validated credentials for user '%s'", creds.username)
        creds.user_profile = UserProfile(
            id=creds.username, attributes={"username": creds.username}
        )


class AuthenticatorProfileCreator(ProfileCreator):
    """Return the profile an authenticator attached to the credentials."""

    def create(
        self, credentials: Credentials, context: WebContext
    ) -> Optional[UserProfile]:
        return credentials.user_profile
