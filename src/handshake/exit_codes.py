"""Numeric process exit codes used by the ``handshake`` command line tool.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~handshake.exceptions.HandshakeError` subclass.

Example::

    $ handshake url Missing
    $ echo $?
    4   # EXIT_NOT_FOUND -- no client with that name
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an invalid configuration."""

EXIT_AUTH_FAILURE = 3
"""Credentials were rejected or an HTTP action interrupted the handshake."""

EXIT_NOT_FOUND = 4
"""The requested client was not found."""

EXIT_PROVIDER_ERROR = 6
"""The identity provider could not be reached or answered with a malformed response."""
