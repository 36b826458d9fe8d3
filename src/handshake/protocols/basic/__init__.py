"""HTTP Basic authentication handler.

Implements the ``basic`` handler type, which reads a ``username:password``
pair from the ``Authorization: Basic`` header per :rfc:`7617`.

See Also:
    :class:`~handshake.protocols.basic.protocol.BasicAuthHandler`
"""

from handshake.protocols.basic.protocol import BasicAuthHandler

__all__ = ["BasicAuthHandler"]
