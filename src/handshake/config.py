"""Configuration loading, atomic saving and secret resolution.

A deployment describes its clients in a JSON file validated into a
:class:`~handshake.models.ClientsConfig`:

.. code-block:: json

    {
      "callback_url": "/callback",
      "clients": [
        {"name": "Form", "type": "form", "login_url": "/login.html"},
        {"name": "GitHub", "type": "oauth2",
         "authorization_url": "https://github.com/login/oauth/authorize",
         "token_url": "https://github.com/login/oauth/access_token",
         "userinfo_url": "https://api.github.com/user",
         "client_id_source": "env:GITHUB_CLIENT_ID",
         "client_secret_source": "env:GITHUB_CLIENT_SECRET",
         "id_attribute": "id"}
      ]
    }

Precedence for the file location (high to low):

1. An explicit ``path`` argument.
2. The ``HANDSHAKE_CONFIG`` environment variable.
3. ``./handshake.json``.

``HANDSHAKE_CALLBACK_URL`` overrides the shared ``callback_url`` of
whichever file was loaded.

Secrets never appear in the file itself; fields ending in ``_source`` hold
a descriptor resolved by :func:`resolve_secret`.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from handshake.exceptions import ConfigError
from handshake.models import ClientsConfig

_CONFIG_FILENAME = "handshake.json"
CONFIG_ENV_VAR = "HANDSHAKE_CONFIG"
CALLBACK_URL_ENV_VAR = "HANDSHAKE_CALLBACK_URL"


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Clients config ---


def resolve_config_path(path: Union[str, Path, None] = None) -> Path:
    """Return the configuration file location following the precedence chain."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.cwd() / _CONFIG_FILENAME


def load_config(path: Union[str, Path, None] = None) -> ClientsConfig:
    """Load and validate the clients configuration.

    Args:
        path: Explicit file location; see the module docstring for the
            fallbacks.

    Returns:
        The validated :class:`~handshake.models.ClientsConfig`.

    Raises:
        ConfigError: If the file does not exist, contains invalid JSON, or
            fails Pydantic validation.
    """
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")
    try:
        text = config_path.read_text(encoding="utf-8")
        data = json.loads(text)
        config = ClientsConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration at {config_path}: {exc}") from exc

    env_callback = os.environ.get(CALLBACK_URL_ENV_VAR)
    if env_callback:
        config.callback_url = env_callback
    return config


def save_config(config: ClientsConfig, path: Union[str, Path]) -> None:
    """Persist the clients configuration atomically.

    Args:
        config: The configuration to save.
        path: Destination file.
    """
    data = config.model_dump(mode="json", exclude_defaults=True)
    _atomic_write(Path(path), json.dumps(data, indent=2) + "\n")


# --- Secret source resolution ---


def resolve_secret(source: str) -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"literal:value"`` -- the value itself (tests, local demos)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved secret.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Secret file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read secret file {path}: {exc}") from exc

    if source.startswith("literal:"):
        return source[8:]

    raise ConfigError(f"Unknown secret source format: {source}")
