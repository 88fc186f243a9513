# _utils/client.py

import httpx

_TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=30.0, pool=10.0)


def make_client(**overrides: object) -> httpx.AsyncClient:
    """
    Build the shared async HTTP client used for model calls.

    Args:
        **overrides: Keyword arguments forwarded to ``httpx.AsyncClient``.

    Returns:
        httpx.AsyncClient: A configured client; the caller owns its lifetime.
    """
    options: dict[str, object] = {
        "timeout": _TIMEOUT,
        "headers": {"Content-Type": "application/json"},
        "follow_redirects": True,
    }
    options.update(overrides)
    return httpx.AsyncClient(**options)
