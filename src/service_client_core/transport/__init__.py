"""Pipeline and policies for sending requests.

A Pipeline runs a Request through an ordered chain of policies and ends in a
Transport that puts it on the wire with httpx.

Modules:
    request: Request model (headers, body bytes, idempotency, scopes)
    pipeline: Policy and Transport contracts and the Pipeline runner
    telemetry: User-Agent/request-id stamping and per-call logging
    retry: Retry with exponential backoff, jitter and Retry-After
    auth: Bearer token policy backed by a TokenCache
    httpx_transport: Terminal httpx send
    factory: create_pipeline for the standard chain

Example:
    ```python
    from service_client_core.transport import Request, create_pipeline

    pipeline = create_pipeline(credential=credential, scopes=["https://management.azure.com/.default"])
    response = await pipeline.send(Request("GET", "https://management.azure.com/subscriptions"))
    ```
"""

from service_client_core.transport.auth import BearerTokenPolicy
from service_client_core.transport.factory import create_pipeline
from service_client_core.transport.httpx_transport import HttpxTransport
from service_client_core.transport.pipeline import NextHandler, Pipeline, Policy, Transport
from service_client_core.transport.request import API_VERSION_PARAM, IDEMPOTENT_METHODS, Request, redact_url
from service_client_core.transport.retry import RetryPolicy
from service_client_core.transport.telemetry import LoggingPolicy, TelemetryPolicy

__all__ = [
    "API_VERSION_PARAM",
    "IDEMPOTENT_METHODS",
    "BearerTokenPolicy",
    "HttpxTransport",
    "LoggingPolicy",
    "NextHandler",
    "Pipeline",
    "Policy",
    "Request",
    "RetryPolicy",
    "TelemetryPolicy",
    "Transport",
    "create_pipeline",
    "redact_url",
]
