"""Response body parsers.

A body parser turns the raw response payload into the operation's result
type. Parse failures, and failures of the model constructor, raise
MalformedBodyError so they are never confused with transport errors.
"""

import json
from collections.abc import Callable
from typing import Any, TypeVar
from xml.etree.ElementTree import Element, ParseError

import defusedxml.ElementTree as DefusedET
import httpx
from defusedxml import DefusedXmlException

from service_client_core.errors.exceptions import MalformedBodyError

T = TypeVar("T")

BodyParser = Callable[[httpx.Response], Any]

# Exceptions a model constructor raises for a payload of the wrong shape
MODEL_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


def _snapshot(response: httpx.Response) -> bytes:
    return response.content[:1024]


def json_body(model: Callable[[Any], T] | None = None) -> Callable[[httpx.Response], T]:
    """Parse a JSON payload, optionally building ``model`` from it.

    Example:
        ```python
        parse = json_body(OperationListResult.from_dict)
        result = parse(response)
        ```
    """

    def parse(response: httpx.Response) -> T:
        try:
            data = json.loads(response.content)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedBodyError(f"Response body is not valid JSON: {e}", body=_snapshot(response)) from e
        if model is None:
            return data
        try:
            return model(data)
        except MODEL_ERRORS as e:
            raise MalformedBodyError(
                f"Response body does not match {getattr(model, '__qualname__', model)}: {e!r}",
                body=_snapshot(response),
            ) from e

    return parse


def xml_body(model: Callable[[Element], T] | None = None) -> Callable[[httpx.Response], T]:
    """Parse an XML payload with defusedxml, optionally building ``model`` from the root element."""

    def parse(response: httpx.Response) -> T:
        try:
            root = DefusedET.fromstring(response.content)
        except (ParseError, DefusedXmlException) as e:
            raise MalformedBodyError(f"Response body is not valid XML: {e}", body=_snapshot(response)) from e
        if model is None:
            return root
        try:
            return model(root)
        except MODEL_ERRORS as e:
            raise MalformedBodyError(
                f"Response body does not match {getattr(model, '__qualname__', model)}: {e!r}",
                body=_snapshot(response),
            ) from e

    return parse


def text_body(response: httpx.Response) -> str:
    try:
        return response.content.decode(response.encoding or "utf-8")
    except (UnicodeDecodeError, LookupError) as e:
        raise MalformedBodyError(f"Response body is not valid text: {e}", body=_snapshot(response)) from e
