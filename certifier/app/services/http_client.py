import httpx

from certifier.app.config import CertifierSettings


def create_http_client(settings: CertifierSettings) -> httpx.AsyncClient:
    """
    Persistent HTTP client shared by retrieval and verification.

    The caller owns its lifecycle (`async with` or `aclose()`).
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers={"User-Agent": "certifier"},
    )
