"""Connection configuration for the Redmine client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_PORTS: dict[str, int] = {
    "http": 80,
    "https": 443,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
#a plain mutable dataclass: the client's setters write straight into it
class ClientConfig:
    """
    Args:
        url:                   Redmine root URL (e.g. 'https://redmine.example.org')
        api_key:               API key from the Redmine "My account" page, may be None
        port:                  Explicit port; resolved from the URL on first request when None
        check_ssl_certificate: Verify the server certificate
        check_ssl_host:        Verify that the certificate matches the host name
        use_http_auth:         Send the API key as HTTP Basic credentials as well
    """

    url: str
    api_key: str | None = None
    port: int | None = None
    check_ssl_certificate: bool = False
    check_ssl_host: bool = False
    use_http_auth: bool = True

    def resolve_port(self, target_url: str) -> int | None:
        """Return the effective port for target_url, caching it once known.

        An explicit port always wins. Otherwise a port written in the URL is
        used, then the scheme default. Once resolved the value sticks until
        reset_port() is called.
        """
        if self.port is not None:
            return self.port
        parts = urlsplit(target_url)
        try:
            explicit = parts.port
        except ValueError:
            explicit = None
        resolved = explicit if explicit is not None else DEFAULT_PORTS.get(parts.scheme.lower())
        if resolved is None:
            logger.warning("Cannot infer a port for scheme %r", parts.scheme)
            return None
        self.port = resolved
        return resolved

    def reset_port(self) -> None:
        self.port = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from REDMINE_* environment variables.

        Environment variables:
            REDMINE_URL:                   Base URL of the Redmine instance.
            REDMINE_API_KEY:               API key.
            REDMINE_PORT:                  Optional explicit port.
            REDMINE_CHECK_SSL_CERTIFICATE: Verify certificates (default off).
            REDMINE_CHECK_SSL_HOST:        Verify host names (default off).
            REDMINE_USE_HTTP_AUTH:         Send Basic credentials (default on).

        Missing URL or key are left empty; get_client() decides what to do about them.
        """
        env = os.environ if environ is None else environ
        port = env.get("REDMINE_PORT", "").strip()
        return cls(
            url=env.get("REDMINE_URL", ""),
            api_key=env.get("REDMINE_API_KEY") or None,
            port=int(port) if port else None,
            check_ssl_certificate=_env_flag(env, "REDMINE_CHECK_SSL_CERTIFICATE", False),
            check_ssl_host=_env_flag(env, "REDMINE_CHECK_SSL_HOST", False),
            use_http_auth=_env_flag(env, "REDMINE_USE_HTTP_AUTH", True),
        )


def _env_flag(env, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be one of {sorted(_TRUE_VALUES | _FALSE_VALUES)}, got {raw!r}")
