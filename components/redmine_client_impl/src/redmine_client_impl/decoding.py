"""Interpretation of Redmine response bodies.

Two steps:

1. ``interpret_body`` runs for every verb on the raw response bytes: an
   XML-looking body becomes an element tree (the parser honours the
   document's own encoding declaration), anything else is decoded to a
   string, an empty body becomes True.
2. ``decode_json`` runs for GET only. Malformed JSON is reported as a
   descriptive string instead of an exception.

Dependencies:
    uv add defusedxml
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as etree
from defusedxml import DefusedXmlException

from tracker_client_interface.client import ResponseDecodeError

logger = logging.getLogger(__name__)

#deepest array/object nesting accepted by decode_json
MAX_JSON_DEPTH = 512


class JsonError(str, Enum):
    DEPTH = "depth"
    CTRL_CHAR = "ctrl_char"
    SYNTAX = "syntax"
    UNKNOWN = "unknown"


JSON_ERRORS: dict[JsonError, str] = {
    JsonError.DEPTH:     "The maximum stack depth has been exceeded",
    JsonError.CTRL_CHAR: "Control character error, possibly incorrectly encoded",
    JsonError.SYNTAX:    "Syntax error",
    JsonError.UNKNOWN:   "Unknown JSON decoding error",
}


# ---------------------------------------------------------------------------
# Body interpretation (all verbs)
# ---------------------------------------------------------------------------

def interpret_body(content: bytes, encoding: str | None = None) -> Element | str | bool:
    """Turn raw response bytes into an XML element, a string, or True.

    Args:
        content:  The undecoded response body.
        encoding: Charset declared by the response headers; UTF-8 when None.
                  Only used for non-XML bodies.

    Raises:
        ResponseDecodeError: If the body starts with '<' but is not well-formed XML.
    """
    if not content:
        return True
    if content.startswith(b"<"):
        #bytes, not text, so expat follows <?xml encoding="..."?>
        try:
            return etree.fromstring(content)
        except (etree.ParseError, DefusedXmlException) as exc:
            raise ResponseDecodeError(f"Malformed XML response: {exc}") from exc
    return content.decode(encoding or "utf-8", errors="replace")


# ---------------------------------------------------------------------------
# JSON decode step (GET only)
# ---------------------------------------------------------------------------

def decode_json(text: str) -> Any:
    """Decode a JSON response body on a best-effort basis.

    Returns:
        The parsed dict or list for a JSON document; the original string when
        the body is not a JSON document (plain text, or a bare scalar such as
        ``42``); otherwise the description of the parse error from JSON_ERRORS.
        Documents nested deeper than MAX_JSON_DEPTH count as a depth error.
    """
    try:
        decoded = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        #plain text was never meant to be JSON, hand it back untouched
        if not _looks_like_json(text):
            return text
        category = classify_json_error(exc)
        logger.warning("Malformed JSON response: %s", exc)
        return JSON_ERRORS[category]

    if isinstance(decoded, (dict, list)):
        if nesting_depth(decoded) > MAX_JSON_DEPTH:
            logger.warning("JSON response nested deeper than %d levels", MAX_JSON_DEPTH)
            return JSON_ERRORS[JsonError.DEPTH]
        return decoded
    return text


def classify_json_error(exc: BaseException) -> JsonError:
    """Map a parser exception onto one of the JsonError categories."""
    if isinstance(exc, RecursionError):
        return JsonError.DEPTH
    if isinstance(exc, json.JSONDecodeError):
        if exc.msg.startswith("Invalid control character"):
            return JsonError.CTRL_CHAR
        return JsonError.SYNTAX
    return JsonError.UNKNOWN


def nesting_depth(value: Any) -> int:
    """Return how many array/object levels value contains (a scalar is 0)."""
    depth = 0
    level = [value]
    while True:
        containers = [v for v in level if isinstance(v, (dict, list))]
        if not containers:
            return depth
        depth += 1
        level = []
        for container in containers:
            level.extend(container.values() if isinstance(container, dict) else container)


def _looks_like_json(text: str) -> bool:
    return text.lstrip()[:1] in ("{", "[")
