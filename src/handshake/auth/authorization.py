"""Authorization generators: enrich a freshly built profile.

After a client builds a :class:`~handshake.models.UserProfile`, it applies
its generators in registration order, each mutating the profile in place.
Order matters: a generator may read attributes or roles added by an earlier
one.

Any callable taking a profile works as a generator; the classes below cover
the common cases.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional, Union

from handshake.models import UserProfile


class AuthorizationGenerator(ABC):
    """Base class for profile enrichment steps."""

    @abstractmethod
    def generate(self, profile: UserProfile) -> None:
        """Add roles, permissions or attributes to *profile* in place."""
        ...

    def __call__(self, profile: UserProfile) -> None:
        self.generate(profile)


GeneratorLike = Union[AuthorizationGenerator, Callable[[UserProfile], None]]


class DefaultRolesPermissionsAuthorizationGenerator(AuthorizationGenerator):
    """Grant the same roles and permissions to every profile."""

    def __init__(
        self,
        default_roles: Optional[Iterable[str]] = None,
        default_permissions: Optional[Iterable[str]] = None,
    ) -> None:
        self._roles = list(default_roles or [])
        self._permissions = list(default_permissions or [])

    def generate(self, profile: UserProfile) -> None:
        profile.add_roles(self._roles)
        profile.add_permissions(self._permissions)


class FromAttributesAuthorizationGenerator(AuthorizationGenerator):
    """Derive roles and permissions from profile attributes.

    An attribute value may be a list, or a string holding several values
    separated by *split_char*. Missing attributes are ignored.

    Example::

        generator = FromAttributesAuthorizationGenerator(role_attributes=["groups"])
        profile = UserProfile(id="jdoe", attributes={"groups": "admin,dev"})
        generator(profile)
        assert profile.roles == ["admin", "dev"]
    """

    def __init__(
        self,
        role_attributes: Optional[Iterable[str]] = None,
        permission_attributes: Optional[Iterable[str]] = None,
        split_char: str = ",",
    ) -> None:
        self._role_attributes = list(role_attributes or [])
        self._permission_attributes = list(permission_attributes or [])
        self._split_char = split_char

    def generate(self, profile: UserProfile) -> None:
        for name in self._role_attributes:
            profile.add_roles(self._values(profile, name))
        for name in self._permission_attributes:
            profile.add_permissions(self._values(profile, name))

    def _values(self, profile: UserProfile, name: str) -> list[str]:
        value = profile.attributes.get(name)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set)):
            items = [str(v) for v in value]
        else:
            items = str(value).split(self._split_char)
        return [item.strip() for item in items if item.strip()]


class RememberMeAuthorizationGenerator(AuthorizationGenerator):
    """Set ``remember_me`` from a boolean-ish profile attribute."""

    _TRUTHY = {"true", "1", "yes", "on"}

    def __init__(self, attribute: str = "remember_me") -> None:
        self._attribute = attribute

    def generate(self, profile: UserProfile) -> None:
        value = profile.attributes.get(self._attribute)
        if isinstance(value, bool):
            profile.remember_me = value
        elif value is not None:
            profile.remember_me = str(value).strip().lower() in self._TRUTHY
