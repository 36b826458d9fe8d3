"""handshake -- pluggable authentication clients for web applications.

An :class:`~handshake.auth.client.AuthenticationClient` drives the
authentication handshake for one identity source: it decides whether a
user agent has to be sent to the provider, guards against redirect loops
with a per-session marker, turns the incoming request into credentials and
the credentials into an enriched user profile.

The protocol specifics (form login, HTTP Basic, OAuth2, ...) live in
:class:`~handshake.auth.base.ProtocolHandler` implementations under
:mod:`handshake.protocols`.

Typical usage::

    from handshake.auth import ClientBuilder
    from handshake.protocols.form import FormHandler

    client = (
        ClientBuilder(FormHandler(login_url="/login"))
        .name("FormClient")
        .callback_url("/callback")
        .build()
    )
    client.redirect(context, requires_authentication=True, ajax_request=False)

Modules:
    models: Pydantic models shared across the package.
    context: The web context protocol and an in-memory implementation.
    config: JSON configuration loading and secret resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer command line tool for inspecting a configuration.
"""

__version__ = "0.3.0"
