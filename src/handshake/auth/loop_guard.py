"""Session marker remembering a failed authentication attempt.

When credential extraction yields nothing, the client marks the session.
The next redirect decision consumes the marker; for a protected target a
consumed marker turns the redirect into a ``403`` instead of sending the
user agent to the provider again, which breaks redirect loops.

The marker lives under ``<client name>$attemptedAuthentication``. Any
non-blank value counts as set.
"""

from __future__ import annotations

from handshake.context import WebContext
from handshake.helpers import is_not_blank

ATTEMPTED_AUTHENTICATION_SUFFIX = "$attemptedAuthentication"
ATTEMPTED_MARKER = "true"


class SessionLoopGuard:
    """Read and write the attempted-authentication marker of one client.

    Holds only the session key, so a guard can be shared across requests.

    Args:
        client_name: Name of the owning client.
    """

    def __init__(self, client_name: str) -> None:
        self._key = client_name + ATTEMPTED_AUTHENTICATION_SUFFIX

    @property
    def key(self) -> str:
        return self._key

    def is_marked(self, context: WebContext) -> bool:
        return is_not_blank(context.get_session_attribute(self._key))

    def mark(self, context: WebContext) -> None:
        context.set_session_attribute(self._key, ATTEMPTED_MARKER)

    def clear(self, context: WebContext) -> None:
        context.set_session_attribute(self._key, None)

    def consume(self, context: WebContext) -> bool:
        """Clear the marker and return whether it was set.

        The marker is single use: it is removed whenever it is found.
        """
        if not self.is_marked(context):
            return False
        self.clear(context)
        return True
