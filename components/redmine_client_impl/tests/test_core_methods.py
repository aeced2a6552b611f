"""Unit tests for the RedmineClient request pipeline.

The per-call session factory is replaced with a MagicMock, so no request
ever leaves the process.
"""

#Run with "python -m pytest components/redmine_client_impl/tests -v"

import warnings
from xml.etree.ElementTree import Element

import pytest
import requests
from unittest.mock import MagicMock
from urllib3.exceptions import InsecureRequestWarning

from redmine_client_impl.api import Issue
from redmine_client_impl.config import ClientConfig
from redmine_client_impl.redmine_impl import (
    API_KEY_HEADER,
    RedmineClient,
    _NoHostnameCheckAdapter,
    _no_auth,
    content_type_for,
    get_client,
)
from tracker_client_interface.client import TransportError, UnknownApiError

BASE_URL = "https://redmine.example.org"
API_KEY = "0123456789abcdef"


def _response(status_code=200, text="", content_type="application/json; charset=utf-8", encoding="utf-8"):
    response = MagicMock()
    response.status_code = status_code
    response.content = text.encode(encoding)
    response.headers = {"Content-Type": content_type}
    response.encoding = encoding
    return response


#Fixture for mock tests
@pytest.fixture
def session():
    """A fake requests.Session answering 200 with an empty body."""
    fake = MagicMock()
    fake.request.return_value = _response()
    return fake


@pytest.fixture
def redmine_client(session):
    client = RedmineClient(BASE_URL, API_KEY)
    client._new_session = MagicMock(return_value=session)
    return client


def _sent(session):
    """Return (method, url, kwargs) of the last request handed to the fake session."""
    args, kwargs = session.request.call_args
    return args[0], args[1], kwargs


#--------------------------- port resolution --------------------------

def test_port_inferred_from_https_scheme(redmine_client, session):
    redmine_client.get("/issues.json")

    assert redmine_client.get_port() == 443
    _, url, _ = _sent(session)
    assert url == "https://redmine.example.org/issues.json"


def test_port_inferred_from_http_scheme(session):
    client = RedmineClient("http://redmine.example.org", API_KEY)
    client._new_session = MagicMock(return_value=session)

    client.get("/issues.json")

    assert client.get_port() == 80


def test_explicit_port_wins_over_scheme(redmine_client, session):
    redmine_client.set_port(8443)

    redmine_client.get("/issues.json")

    # the override is written into the URL handed to the transport
    _, url, _ = _sent(session)
    assert url == "https://redmine.example.org:8443/issues.json"
    assert redmine_client.get_port() == 8443


def test_port_written_in_url_wins_over_scheme():
    config = ClientConfig(url="http://localhost:3000")

    assert config.resolve_port("http://localhost:3000/issues.json") == 3000


def test_resolved_port_is_sticky_until_reset():
    client = RedmineClient(BASE_URL, API_KEY)

    assert client.get_port("https://redmine.example.org/x") == 443
    # a later URL with another scheme does not change the cached port
    assert client.get_port("http://redmine.example.org/x") == 443

    client.reset_port()
    assert client.get_port() is None
    assert client.get_port("http://redmine.example.org/x") == 80


def test_set_port_none_keeps_current_port(redmine_client):
    redmine_client.set_port(8080).set_port(None)

    assert redmine_client.get_port() == 8080


#--------------------------- headers and content type --------------------------

@pytest.mark.parametrize(
    "path, expected",
    [
        ("/issues.json", "application/json"),
        ("/issues.xml", "text/xml"),
        ("/issues.json?project_id=3&limit=5", "application/json"),
        ("/uploads.json", "application/octet-stream"),
        ("/uploads.xml", "application/octet-stream"),
        ("/issues", None),
    ],
)
def test_content_type_rules(path, expected):
    assert content_type_for(path, BASE_URL + path) == expected


def test_upload_path_sends_octet_stream_and_key(redmine_client, session):
    redmine_client.post("/uploads.json", b"\x00\x01binary")

    method, _, kwargs = _sent(session)
    assert method == "POST"
    assert kwargs["headers"] == {
        "Content-Type": "application/octet-stream",
        API_KEY_HEADER: API_KEY,
    }
    assert kwargs["data"] == b"\x00\x01binary"


def test_no_headers_when_no_rule_matches(redmine_client, session):
    redmine_client.get("/issues")

    _, _, kwargs = _sent(session)
    assert kwargs["headers"] == {}


def test_key_header_left_out_without_api_key(session):
    client = RedmineClient(BASE_URL, None)
    client._new_session = MagicMock(return_value=session)

    client.get("/projects.json")

    _, _, kwargs = _sent(session)
    assert kwargs["headers"] == {"Content-Type": "application/json"}
    assert kwargs["auth"] is _no_auth


#--------------------------- authentication --------------------------

def test_basic_auth_uses_key_and_throwaway_password(redmine_client, session):
    redmine_client.get("/issues.json")

    _, _, kwargs = _sent(session)
    auth = kwargs["auth"]
    assert auth.username == API_KEY
    assert 100000 <= int(auth.password) <= 199999


def test_basic_auth_disabled(redmine_client, session):
    redmine_client.set_use_http_auth(False).get("/issues.json")

    _, _, kwargs = _sent(session)
    assert kwargs["auth"] is _no_auth
    # the key header is still sent
    assert kwargs["headers"][API_KEY_HEADER] == API_KEY


#--------------------------- TLS options --------------------------

def test_tls_options_applied_when_port_is_not_80(redmine_client, session):
    redmine_client.set_check_ssl_certificate(True).get("/issues.json")

    _, _, kwargs = _sent(session)
    assert kwargs["verify"] is True


def test_tls_options_default_off(redmine_client, session):
    redmine_client.get("/issues.json")

    _, _, kwargs = _sent(session)
    assert kwargs["verify"] is False


def test_tls_options_never_applied_on_port_80(session):
    client = RedmineClient("http://redmine.example.org", API_KEY)
    client._new_session = MagicMock(return_value=session)
    client.set_check_ssl_certificate(True)

    client.get("/issues.json")

    _, _, kwargs = _sent(session)
    assert "verify" not in kwargs


def test_session_skips_hostname_check_when_only_certificate_checked():
    client = RedmineClient(BASE_URL, API_KEY).set_check_ssl_certificate(True)

    session = client._new_session()

    assert isinstance(session.get_adapter("https://redmine.example.org/"), _NoHostnameCheckAdapter)
    session.close()


def test_session_keeps_default_adapter_when_host_checked():
    client = RedmineClient(BASE_URL, API_KEY).set_check_ssl_certificate(True).set_check_ssl_host(True)

    session = client._new_session()

    assert not isinstance(session.get_adapter("https://redmine.example.org/"), _NoHostnameCheckAdapter)
    session.close()


def test_host_check_alone_does_not_enable_verification(redmine_client, session):
    redmine_client.set_check_ssl_host(True).get("/issues.json")

    _, _, kwargs = _sent(session)
    assert kwargs["verify"] is False
    session = RedmineClient(BASE_URL, API_KEY).set_check_ssl_host(True)._new_session()
    assert not isinstance(session.get_adapter(BASE_URL), _NoHostnameCheckAdapter)
    session.close()


#--------------------------- verbs and bodies --------------------------

def test_put_sends_utf8_body(redmine_client, session):
    redmine_client.put("/issues/1.json", '{"issue": {"subject": "café"}}')

    method, _, kwargs = _sent(session)
    assert method == "PUT"
    assert kwargs["data"] == '{"issue": {"subject": "café"}}'.encode("utf-8")


def test_post_without_body_sends_no_data(redmine_client, session):
    redmine_client.post("/issues/1/watchers.json", None)

    _, _, kwargs = _sent(session)
    assert "data" not in kwargs


def test_delete_sends_no_body(redmine_client, session):
    redmine_client.delete("/issues/1.json")

    method, _, kwargs = _sent(session)
    assert method == "DELETE"
    assert "data" not in kwargs


def test_session_closed_after_each_call(redmine_client, session):
    redmine_client.get("/issues.json")

    session.close.assert_called_once()


#--------------------------- response handling --------------------------

def test_get_decodes_json(redmine_client, session):
    session.request.return_value = _response(200, '{"a":1}')

    assert redmine_client.get("/issues.json") == {"a": 1}


def test_get_returns_plain_text_unchanged(redmine_client, session):
    session.request.return_value = _response(200, "not json or xml")

    assert redmine_client.get("/issues.json") == "not json or xml"


def test_get_reports_malformed_json_as_text(redmine_client, session):
    session.request.return_value = _response(200, '{"a":')

    assert redmine_client.get("/issues.json") == "Syntax error"


def test_get_parses_xml(redmine_client, session):
    session.request.return_value = _response(200, "<root/>")

    result = redmine_client.get("/issues.xml")

    assert isinstance(result, Element)
    assert result.tag == "root"


def test_empty_body_is_success(redmine_client, session):
    session.request.return_value = _response(204, "")

    assert redmine_client.get("/issues.json") is True
    assert redmine_client.delete("/issues/1.json") is True


def test_post_does_not_decode_json(redmine_client, session):
    session.request.return_value = _response(201, '{"issue": {"id": 7}}')

    assert redmine_client.post("/issues.json", "{}") == '{"issue": {"id": 7}}'


def test_error_status_is_not_raised(redmine_client, session):
    session.request.return_value = _response(404, "")

    assert redmine_client.get("/issues/999.json") is True
    assert redmine_client.get_response_code() == 404


def test_last_response_pairs_status_and_body(redmine_client, session):
    session.request.return_value = _response(201, "created")

    redmine_client.post("/issues.json", "{}")

    assert redmine_client.last_response.status_code == 201
    assert redmine_client.last_response.body == "created"


#--------------------------- response code bookkeeping --------------------------

def test_response_code_none_before_any_request():
    assert RedmineClient(BASE_URL, API_KEY).get_response_code() is None


def test_sequential_calls_report_their_own_status(redmine_client, session):
    session.request.side_effect = [_response(200, "{}"), _response(422, '{"errors": ["x"]}')]

    redmine_client.get("/issues.json")
    assert redmine_client.get_response_code() == 200

    redmine_client.post("/issues.json", "{}")
    assert redmine_client.get_response_code() == 422


def test_transport_failure_raises_transport_error(redmine_client, session):
    session.request.side_effect = [
        _response(200, "{}"),
        requests.ConnectionError("Name or service not known"),
    ]
    redmine_client.get("/issues.json")

    with pytest.raises(TransportError) as exc_info:
        redmine_client.get("/issues.json")

    assert exc_info.value.code == "ConnectionError"
    assert "Name or service not known" in exc_info.value.message
    # the previous call's status does not leak into the failed one
    assert redmine_client.get_response_code() is None
    assert redmine_client.last_response is None
    session.close.assert_called()


#--------------------------- sub-client registry --------------------------

def test_api_returns_cached_instance(redmine_client):
    first = redmine_client.api("issue")

    assert isinstance(first, Issue)
    assert redmine_client.api("issue") is first


def test_api_unknown_name_raises(redmine_client):
    with pytest.raises(UnknownApiError):
        redmine_client.api("not_a_real_resource")

    # UnknownApiError doubles as a ValueError for callers catching built-ins
    with pytest.raises(ValueError):
        redmine_client.api("")


def test_get_url_is_unmodified():
    assert RedmineClient("https://redmine.example.org/", API_KEY).get_url() == "https://redmine.example.org/"


#--------------------------- tests for get_client function --------------------------

def test_get_client_raises_when_env_vars_missing(monkeypatch):
    for var in ["REDMINE_URL", "REDMINE_API_KEY"]:
        monkeypatch.delenv(var, raising=False)

    with pytest.raises(EnvironmentError) as exc_info:
        get_client(interactive=False)

    assert "REDMINE_URL" in str(exc_info.value)
    assert "REDMINE_API_KEY" in str(exc_info.value)


def test_get_client_succeeds_when_env_vars_present(monkeypatch):
    monkeypatch.setenv("REDMINE_URL", BASE_URL)
    monkeypatch.setenv("REDMINE_API_KEY", API_KEY)
    monkeypatch.setenv("REDMINE_PORT", "8443")
    monkeypatch.setenv("REDMINE_CHECK_SSL_CERTIFICATE", "true")

    client = get_client(interactive=False)

    assert isinstance(client, RedmineClient)
    assert client.get_url() == BASE_URL
    assert client.get_port() == 8443
    assert client.config.check_ssl_certificate is True
    assert client.config.use_http_auth is True


def test_get_client_prompts_for_missing_values(monkeypatch):
    monkeypatch.delenv("REDMINE_URL", raising=False)
    monkeypatch.delenv("REDMINE_API_KEY", raising=False)
    monkeypatch.setattr("builtins.input", lambda prompt: " https://prompted.example.org ")
    monkeypatch.setattr("redmine_client_impl.redmine_impl.getpass", lambda prompt: "prompted-key")

    client = get_client(interactive=True)

    assert client.get_url() == "https://prompted.example.org"
    assert client.config.api_key == "prompted-key"


#--------------------------- charset handling --------------------------

def test_text_without_declared_charset_is_read_as_utf8(redmine_client, session):
    # requests would guess ISO-8859-1 for text/plain without a charset
    session.request.return_value = _response(200, "café", content_type="text/plain", encoding="utf-8")
    session.request.return_value.encoding = "ISO-8859-1"

    assert redmine_client.post("/issues/1/notes", "x") == "café"


def test_declared_charset_is_honoured(redmine_client, session):
    session.request.return_value = _response(
        200, "café", content_type="text/plain; charset=ISO-8859-1", encoding="ISO-8859-1"
    )

    assert redmine_client.post("/issues/1/notes", "x") == "café"


def test_xml_follows_its_own_encoding_declaration(redmine_client, session):
    xml = '<?xml version="1.0" encoding="UTF-8"?><issue><subject>café</subject></issue>'
    session.request.return_value = _response(200, xml, content_type="text/xml", encoding="utf-8")
    session.request.return_value.encoding = "ISO-8859-1"

    result = redmine_client.get("/issues/1.xml")

    assert result.find("subject").text == "café"


#--------------------------- insecure request warnings --------------------------

def _warn_insecure(*args, **kwargs):
    warnings.warn("Unverified HTTPS request", InsecureRequestWarning)
    return _response(200, "{}")


def test_unverified_https_is_silent_by_default(redmine_client, session):
    session.request.side_effect = _warn_insecure

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        redmine_client.get("/issues.json")

    assert not [w for w in caught if issubclass(w.category, InsecureRequestWarning)]


def test_warning_filter_does_not_outlive_the_call(redmine_client, session):
    redmine_client.get("/issues.json")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        warnings.warn("Unverified HTTPS request", InsecureRequestWarning)

    assert len(caught) == 1
