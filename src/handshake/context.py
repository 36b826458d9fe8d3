"""The web context seen by authentication clients.

The request/response abstraction belongs to the web integration layer;
clients only consume the narrow :class:`WebContext` protocol below. Any
object with these methods works (a WSGI environ wrapper, a Starlette
request adapter, ...).

:class:`MockWebContext` is a plain in-memory implementation used by the
test suite and by the ``handshake url`` command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable


class HttpConstants:
    """HTTP status codes, header names and default ports used by clients."""

    OK = 200
    TEMP_REDIRECT = 302
    UNAUTHORIZED = 401
    FORBIDDEN = 403

    LOCATION_HEADER = "Location"
    AUTHORIZATION_HEADER = "Authorization"
    WWW_AUTHENTICATE_HEADER = "WWW-Authenticate"
    AJAX_HEADER_NAME = "X-Requested-With"
    AJAX_HEADER_VALUE = "XMLHttpRequest"

    DEFAULT_HTTP_PORT = 80
    DEFAULT_HTTPS_PORT = 443
    DEFAULT_PORTS = {"http": DEFAULT_HTTP_PORT, "https": DEFAULT_HTTPS_PORT}


@runtime_checkable
class WebContext(Protocol):
    """Request, response and session access for one request."""

    def get_request_parameter(self, name: str) -> Optional[str]:
        """Return a query or form parameter, or ``None`` when absent."""
        ...

    def get_request_header(self, name: str) -> Optional[str]:
        """Return a request header (case-insensitive), or ``None`` when absent."""
        ...

    def get_session_attribute(self, key: str) -> Any:
        ...

    def set_session_attribute(self, key: str, value: Any) -> None:
        """Store *value* under *key*; ``None`` removes the attribute."""
        ...

    def set_response_status(self, code: int) -> None:
        ...

    def set_response_header(self, name: str, value: str) -> None:
        ...

    def write_response_content(self, content: str) -> None:
        ...

    def get_scheme(self) -> str:
        ...

    def get_server_name(self) -> str:
        ...

    def get_server_port(self) -> int:
        ...


@dataclass
class MockWebContext:
    """In-memory :class:`WebContext`.

    Request fields are given at construction; response fields are filled as
    clients write to the context.

    Example::

        ctx = MockWebContext(parameters={"username": "jdoe"})
        ctx.set_session_attribute("key", "value")
        assert ctx.session == {"key": "value"}
    """

    parameters: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    session: dict[str, Any] = field(default_factory=dict)
    scheme: str = "http"
    server_name: str = "localhost"
    server_port: int = 80
    response_status: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)
    response_content: str = ""

    def get_request_parameter(self, name: str) -> Optional[str]:
        return self.parameters.get(name)

    def get_request_header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def get_session_attribute(self, key: str) -> Any:
        return self.session.get(key)

    def set_session_attribute(self, key: str, value: Any) -> None:
        if value is None:
            self.session.pop(key, None)
        else:
            self.session[key] = value

    def set_response_status(self, code: int) -> None:
        self.response_status = code

    def set_response_header(self, name: str, value: str) -> None:
        self.response_headers[name] = value

    def write_response_content(self, content: str) -> None:
        self.response_content += content

    def get_scheme(self) -> str:
        return self.scheme

    def get_server_name(self) -> str:
        return self.server_name

    def get_server_port(self) -> int:
        return self.server_port

    def is_ajax(self) -> bool:
        """Whether the request was sent by ``XMLHttpRequest``."""
        return (
            self.get_request_header(HttpConstants.AJAX_HEADER_NAME)
            == HttpConstants.AJAX_HEADER_VALUE
        )
