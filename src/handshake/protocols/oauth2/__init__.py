"""OAuth2 authorization code handler.

Implements the ``oauth2`` handler type: authorization code grant with PKCE
(:rfc:`7636`), token exchange and userinfo retrieval over ``httpx``.

See Also:
    :class:`~handshake.protocols.oauth2.protocol.OAuth2Handler`
"""

from handshake.protocols.oauth2.protocol import OAuth2Handler, generate_pkce_pair

__all__ = ["OAuth2Handler", "generate_pkce_pair"]
