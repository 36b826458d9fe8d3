"""Built-in protocol handlers.

Each sub-package provides one :class:`~handshake.auth.base.ProtocolHandler`:

- :mod:`handshake.protocols.form` -- login form posted back to the callback URL.
- :mod:`handshake.protocols.basic` -- HTTP Basic ``Authorization`` header.
- :mod:`handshake.protocols.oauth2` -- OAuth2 authorization code grant with PKCE.
"""
