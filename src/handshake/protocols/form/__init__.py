"""Form login handler.

Implements the ``form`` handler type: the user agent is sent to a login
page whose form posts a username and password back to the callback URL.

See Also:
    :class:`~handshake.protocols.form.protocol.FormHandler`
"""

from handshake.protocols.form.protocol import FormHandler

__all__ = ["FormHandler"]
