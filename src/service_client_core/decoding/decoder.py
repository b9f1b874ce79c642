"""Turn a raw response into a typed result or a structured error."""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

import httpx

from service_client_core.decoding.body import MODEL_ERRORS, BodyParser
from service_client_core.decoding.headers import HeaderField
from service_client_core.errors.exceptions import DecodeError
from service_client_core.errors.handler import raise_for_status

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseDecoder(Generic[T]):
    """Decode responses of one operation.

    Decoding happens in a fixed order: status check, header fields, body,
    model construction. The first failure wins.

    Args:
        expected_status: Success status code(s) declared by the operation.
        headers: Result field name -> header binding.
        body: Body parser (see ``json_body`` / ``xml_body``).
        model: Result constructor, called with the header fields as keyword
            arguments plus ``body_field=<parsed body>`` when a body parser is
            set. Without a model the parsed body is returned if there is one,
            otherwise the dict of header fields.
        body_field: Keyword the parsed body is passed to ``model`` under.

    Example:
        ```python
        decoder = ResponseDecoder(
            202,
            headers={
                "etag": HeaderField("etag"),
                "last_modified": HeaderField("last-modified", HeaderKind.DATETIME),
                "copy_id": HeaderField("x-ms-copy-id"),
            },
            model=CopyBlobResult,
        )
        result = decoder.decode(response)
        ```
    """

    def __init__(
        self,
        expected_status: int | Iterable[int] = 200,
        *,
        headers: Mapping[str, HeaderField] | None = None,
        body: BodyParser | None = None,
        model: Callable[..., T] | None = None,
        body_field: str = "body",
    ) -> None:
        if isinstance(expected_status, int):
            expected_status = (expected_status,)
        self.expected_status = frozenset(expected_status)
        self.headers = dict(headers or {})
        self.body = body
        self.model = model
        self.body_field = body_field

    def decode(self, response: httpx.Response) -> T:
        """Decode ``response``.

        Decode errors carry the method, URL and status of the response they
        were raised for.

        Raises:
            UnexpectedStatusError: Status outside ``expected_status``.
            MissingHeaderError / MalformedHeaderError: A bound header is absent or unparseable.
            MalformedBodyError: The body cannot be parsed into the result.
            DecodeError: The model rejected the decoded fields.
        """
        raise_for_status(response, self.expected_status)

        try:
            return self._build(response)
        except DecodeError as e:
            _attach_context(e, response)
            raise

    __call__ = decode

    def _build(self, response: httpx.Response) -> T:
        fields = decode_headers(response, self.headers)

        if self.body is not None:
            body = self.body(response)
            if self.model is None:
                return body
            fields[self.body_field] = body
        elif self.model is None:
            return fields  # type: ignore[return-value]

        try:
            return self.model(**fields)
        except MODEL_ERRORS as e:
            raise DecodeError(f"Cannot build {getattr(self.model, '__qualname__', self.model)}: {e!r}") from e


def _attach_context(error: DecodeError, response: httpx.Response) -> None:
    error.status_code = response.status_code
    try:
        request = response.request
    except RuntimeError:
        return
    if error.method is None:
        error.method = request.method
    if error.url is None:
        error.url = str(request.url)


def expect_status(response: httpx.Response, *expected: int) -> httpx.Response:
    """Return ``response`` unchanged if its status is one of ``expected``."""
    raise_for_status(response, expected or None)
    return response


def decode_headers(response: httpx.Response, bindings: Mapping[str, HeaderField]) -> dict[str, Any]:
    return {field: binding.extract(response.headers) for field, binding in bindings.items()}
