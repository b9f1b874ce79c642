"""Testing utilities for service clients.

Helpers for exercising pipelines without a network:

    factories: stub credentials and scripted httpx handlers

Example:
    ```python
    from service_client_core.testing import ScriptedHandler, StubCredential

    handler = ScriptedHandler([httpx.Response(503), httpx.Response(200)])
    client = ServiceClient(
        "https://api.example.com",
        StubCredential(),
        transport=httpx.MockTransport(handler),
    )
    ```
"""

from service_client_core.testing.factories import ScriptedHandler, StubCredential, create_json_response

__all__ = ["ScriptedHandler", "StubCredential", "create_json_response"]
