"""Small string and URL helpers shared by clients and protocol handlers."""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

from handshake.context import HttpConstants, WebContext

_ABSOLUTE_PREFIXES = ("http://", "https://")


def is_blank(value: Any) -> bool:
    """Return True for ``None`` and for strings made only of whitespace."""
    if value is None:
        return True
    return not str(value).strip()


def is_not_blank(value: Any) -> bool:
    return not is_blank(value)


def is_absolute_url(url: str) -> bool:
    return url.startswith(_ABSOLUTE_PREFIXES)


def add_parameter(url: str, name: str, value: Optional[str]) -> str:
    """Append ``name=value`` to the query string of *url*.

    Any fragment is kept at the end. A ``None`` value appends ``name=``.

    Example::

        >>> add_parameter("/cb?client_name=Form", "needs_client_redirection", "true")
        '/cb?client_name=Form&needs_client_redirection=true'
    """
    base, sep, fragment = url.partition("#")
    joiner = "&" if "?" in base else "?"
    encoded = quote(value, safe="") if value is not None else ""
    result = f"{base}{joiner}{quote(name, safe='')}={encoded}"
    if sep:
        result += f"#{fragment}"
    return result


def has_parameter(url: str, name: str) -> bool:
    """Whether the query string of *url* already carries *name*."""
    query = url.partition("#")[0].partition("?")[2]
    return any(part.split("=", 1)[0] == name for part in query.split("&") if part)


def prepend_host_to_url(url: str, context: WebContext) -> str:
    """Turn a relative *url* into an absolute one for the current request.

    The port is omitted when it is the default port of the request scheme.
    Already absolute URLs are returned unchanged.
    """
    if is_absolute_url(url):
        return url
    scheme = context.get_scheme()
    port = context.get_server_port()
    parts = [scheme, "://", context.get_server_name()]
    if port != HttpConstants.DEFAULT_PORTS.get(scheme.lower()):
        parts.append(f":{port}")
    parts.append(url if url.startswith("/") else f"/{url}")
    return "".join(parts)
