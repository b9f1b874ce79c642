"""Response decoding: status contract, typed headers and body payloads."""

from service_client_core.decoding.body import json_body, text_body, xml_body
from service_client_core.decoding.decoder import ResponseDecoder, decode_headers, expect_status
from service_client_core.decoding.headers import (
    HeaderField,
    HeaderKind,
    client_request_id_from_headers,
    date_from_headers,
    etag_from_headers,
    header_value,
    last_modified_from_headers,
    parse_http_date,
    request_id_from_headers,
    server_from_headers,
    version_from_headers,
)

__all__ = [
    "HeaderField",
    "HeaderKind",
    "ResponseDecoder",
    "client_request_id_from_headers",
    "date_from_headers",
    "decode_headers",
    "etag_from_headers",
    "expect_status",
    "header_value",
    "json_body",
    "last_modified_from_headers",
    "parse_http_date",
    "request_id_from_headers",
    "server_from_headers",
    "text_body",
    "version_from_headers",
    "xml_body",
]
