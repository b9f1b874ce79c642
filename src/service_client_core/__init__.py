"""Service Client Core - shared request-execution runtime for generated service clients.

Generated clients contribute URL templates, parameters and models; this
library sends the requests:
- Composable policy pipeline (telemetry, logging, retry, bearer auth) over httpx
- Per-scope token cache with single-flight refresh
- Response decoding into typed results or structured errors
- Lazy pagination driven by continuation tokens

Example:
    ```python
    from service_client_core import ServiceClient
    from service_client_core.auth import StaticTokenCredential

    async with ServiceClient("https://management.azure.com", StaticTokenCredential.from_env()) as client:
        request = client.build_request("GET", "/providers/Microsoft.Features/operations", api_version="2015-12-01")
        response = await client.send(request)
    ```
"""

__version__ = "0.1.0"

from service_client_core.client import ServiceClient  # noqa: E402

__all__ = ["ServiceClient", "__version__"]
