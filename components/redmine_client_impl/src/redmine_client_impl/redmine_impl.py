"""
Authentication
--------------
Every request carries the API key in the X-Redmine-API-Key header. When
use_http_auth is on (the default) the key is also sent as HTTP Basic
credentials, with a throwaway number as the password; Redmine only looks
at the user name.

1. When get_client(interactive = True)
    User is prompted for the URL and key at runtime if any are missing from the environment.
2. When get_client(interactive = False) - Default
        REDMINE_URL      https://redmine.example.org
        REDMINE_API_KEY  <key from "My account" -> "API access key">

Dependencies:
    uv add requests defusedxml

"""
#to avoid having to consider forward declarations, the below line must be first line in the file
from __future__ import annotations

import logging
import random
import warnings
from dataclasses import dataclass
from getpass import getpass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from urllib3.exceptions import InsecureRequestWarning

from redmine_client_impl.api import API_FACTORIES
from redmine_client_impl.config import DEFAULT_PORTS, ClientConfig
from redmine_client_impl.decoding import decode_json, interpret_body
from tracker_client_interface.client import TrackerClient, TransportError, UnknownApiError
from tracker_client_interface.resource import ResourceApi

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

API_KEY_HEADER = "X-Redmine-API-Key"

UPLOAD_PATHS = ("/uploads.json", "/uploads.xml")

#(matches?, content type) evaluated in order, the last match wins so uploads beat the .json/.xml suffix
_CONTENT_TYPE_RULES = (
    (lambda path, url_path: url_path.endswith("xml"), "text/xml"),
    (lambda path, url_path: url_path.endswith("json"), "application/json"),
    (lambda path, url_path: path in UPLOAD_PATHS, "application/octet-stream"),
)

#the server ignores the password but Basic auth needs one
_AUTH_PASSWORD_RANGE = (100000, 199999)

PLAIN_HTTP_PORT = 80


def _no_auth(request: requests.PreparedRequest) -> requests.PreparedRequest:
    """Leave the request untouched. Unlike auth=None this stops requests from reading ~/.netrc."""
    return request


def _declared_charset(response: requests.Response) -> str | None:
    """Return the charset named in the Content-Type header, ignoring requests' ISO-8859-1 guess."""
    content_type = response.headers.get("Content-Type") or ""
    if "charset=" not in content_type.lower():
        return None
    return response.encoding


def content_type_for(path: str, target_url: str) -> str | None:
    """Return the Content-Type to send for path, or None when no rule applies.

    Suffix rules look at the path component of the full URL so a query string
    does not hide the extension. The upload rule compares the raw path.
    """
    url_path = urlsplit(target_url).path
    content_type = None
    for matches, candidate in _CONTENT_TYPE_RULES:
        if matches(path, url_path):
            content_type = candidate
    return content_type


def _with_port(target_url: str, port: int | None) -> str:
    """Write port into the URL's netloc unless it is already the effective port."""
    if port is None:
        return target_url
    parts = urlsplit(target_url)
    try:
        current = parts.port
    except ValueError:
        return target_url
    if current == port:
        return target_url
    if current is None and DEFAULT_PORTS.get(parts.scheme.lower()) == port:
        return target_url
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    userinfo = parts.netloc.rpartition("@")[0]
    netloc = f"{userinfo}@{host}:{port}" if userinfo else f"{host}:{port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


class _NoHostnameCheckAdapter(HTTPAdapter):
    """HTTPS adapter that verifies the certificate chain but not the host name."""

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["assert_hostname"] = False
        super().init_poolmanager(*args, **kwargs)


@dataclass(frozen=True)
class Response:
    """Status and interpreted body of one completed request."""

    status_code: int | None
    body: Any


# ---------------------------------------------------------------------------
# Client implementation
# ---------------------------------------------------------------------------

class RedmineClient(TrackerClient):
    """
    Args:
        url:     Redmine instance root URL (e.g. 'https://redmine.example.org')
        api_key: API key of the acting user, may be None for anonymous access

    Notes on usage:
        One request at a time per instance: the last response code and the
        lazily resolved port are shared, unguarded instance state.
        check_ssl_host only takes effect together with check_ssl_certificate;
        with certificate checking off no TLS verification happens at all.
    """

    def __init__(self, url: str, api_key: str | None, config: ClientConfig | None = None) -> None:
        self._config = config if config is not None else ClientConfig(url=url, api_key=api_key)
        self._apis: dict[str, ResourceApi] = {}
        self._response_code: int | None = None
        self._last_response: Response | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> RedmineClient:
        return cls(config.url, config.api_key, config)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def last_response(self) -> Response | None:
        """Return the status/body pair of the last completed request."""
        return self._last_response

    # ------------------------------------------------------------------
    # Sub-clients
    # ------------------------------------------------------------------

    def api(self, name: str) -> ResourceApi:
        """Return the cached sub-client for name, building it on first use.

        Raises:
            UnknownApiError: If name is not one of the known Redmine resources.
        """
        if name not in self._apis:
            factory = API_FACTORIES.get(name)
            if factory is None:
                raise UnknownApiError(name)
            self._apis[name] = factory(self)
        return self._apis[name]

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_url(self) -> str:
        return self._config.url

    def get_response_code(self) -> int | None:
        return self._response_code

    def set_check_ssl_certificate(self, check: bool = False) -> RedmineClient:
        self._config.check_ssl_certificate = check
        return self

    def set_check_ssl_host(self, check: bool = False) -> RedmineClient:
        self._config.check_ssl_host = check
        return self

    def set_use_http_auth(self, use: bool = True) -> RedmineClient:
        self._config.use_http_auth = use
        return self

    def set_port(self, port: int | None = None) -> RedmineClient:
        """Set the connection port. None leaves the current value untouched."""
        if port is not None:
            self._config.port = int(port)
        return self

    def reset_port(self) -> RedmineClient:
        """Forget the port so the next request infers it from the URL again."""
        self._config.reset_port()
        return self

    def get_port(self, url_path: str | None = None) -> int | None:
        """Return the connection port, inferring it from url_path when not yet known."""
        if url_path is None:
            return self._config.port
        return self._config.resolve_port(url_path)

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any:
        """GET path and decode the body. Only GET goes through the JSON decode step."""
        result = self._run_request(path, "GET")
        if not isinstance(result, str):
            return result
        return self.decode(result)

    def decode(self, text: str) -> Any:
        return decode_json(text)

    def post(self, path: str, data: str | bytes | None) -> Any:
        return self._run_request(path, "POST", data)

    def put(self, path: str, data: str | bytes | None) -> Any:
        return self._run_request(path, "PUT", data)

    def delete(self, path: str) -> Any:
        return self._run_request(path, "DELETE")

    # ------------------------------------------------------------------
    # Internal HTTP helpers
    # ------------------------------------------------------------------

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        config = self._config
        if config.check_ssl_certificate and not config.check_ssl_host:
            session.mount("https://", _NoHostnameCheckAdapter())
        return session

    def _headers(self, path: str, target_url: str) -> dict[str, str]:
        content_type = content_type_for(path, target_url)
        if content_type is None:
            return {}
        headers = {"Content-Type": content_type}
        #an empty key header would be sent as-is, leave it out instead
        if self._config.api_key is not None:
            headers[API_KEY_HEADER] = self._config.api_key
        return headers

    def _auth(self) -> Any:
        config = self._config
        if config.api_key is None or not config.use_http_auth:
            return _no_auth
        return HTTPBasicAuth(config.api_key, str(random.randint(*_AUTH_PASSWORD_RANGE)))

    def _tls_options(self, port: int | None) -> dict[str, Any]:
        if port == PLAIN_HTTP_PORT:
            return {}
        return {"verify": self._config.check_ssl_certificate}

    def _run_request(self, path: str, method: str = "GET", data: str | bytes | None = None) -> Any:
        self._response_code = None
        self._last_response = None

        target_url = self._config.url + path
        port = self._config.resolve_port(target_url)
        url = _with_port(target_url, port)

        kwargs: dict[str, Any] = {
            "headers": self._headers(path, target_url),
            "auth": self._auth(),
        }
        kwargs.update(self._tls_options(port))
        if method in ("POST", "PUT") and data is not None:
            kwargs["data"] = data.encode("utf-8") if isinstance(data, str) else data

        logger.debug("%s %s (port %s)", method, url, port)
        session = self._new_session()
        try:
            with warnings.catch_warnings():
                #unverified HTTPS is the configured default, not something to warn about on every call
                if kwargs.get("verify") is False:
                    warnings.simplefilter("ignore", InsecureRequestWarning)
                response = session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            partial = getattr(exc, "response", None)
            self._response_code = partial.status_code if partial is not None else None
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(type(exc).__name__, str(exc)) from exc
        finally:
            session.close()

        self._response_code = response.status_code
        logger.debug("%s %s -> %s", method, url, response.status_code)

        body = interpret_body(response.content, _declared_charset(response))
        self._last_response = Response(response.status_code, body)
        return body


# ---------------------------------------------------------------------------
# Get client
# ---------------------------------------------------------------------------

def get_client(*, interactive: bool = False) -> RedmineClient:
    """Return a configured RedmineClient.

    Reads the connection settings with ClientConfig.from_env(). If
    "interactive = True" and the URL or key is missing, the user will be prompted.

    Raises:
        EnvironmentError: In non-interactive mode when REDMINE_URL or REDMINE_API_KEY is unset.
    """
    config = ClientConfig.from_env()

    if interactive:
        if not config.url:
            config.url = input("Redmine base URL (e.g. https://redmine.example.org): ").strip()
        if not config.api_key:
            config.api_key = getpass("Redmine API key: ") or None
    else:
        #collects the missing fields and raises an error alerting to the missing values
        missing = [name for name, val in [
            ("REDMINE_URL", config.url),
            ("REDMINE_API_KEY", config.api_key),
        ] if not val]
        if missing:
            raise EnvironmentError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Set them or call get_client(interactive=True)."
            )

    return RedmineClient.from_config(config)
